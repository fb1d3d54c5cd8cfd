"""Stage Emitter: one process definition and its workflow statements per node.

Dispatch is on the node's parameter type through the template manager.
Unknown types render the placeholder template instead of raising.
"""

from dataclasses import dataclass, field

from flowcanvas.compiler.binder import ChannelTable, InputBinding
from flowcanvas.compiler.naming import (
    resolve_output_name,
    safe_file_name,
    sanitize_identifier,
    value_identifier,
)
from flowcanvas.contracts.compile import (
    CompileOptions,
    Diagnostic,
    InvocationStatement,
    StageDefinition,
)
from flowcanvas.contracts.enums import DiagnosticKind, StatementKind
from flowcanvas.contracts.errors import UnknownStageTemplateError
from flowcanvas.contracts.graph import StageNode, StageResources
from flowcanvas.contracts.params import (
    FileSourceParams,
    FilterParams,
    MapParams,
    MergeParams,
    OutputParams,
    UnsupportedParams,
)
from flowcanvas.core.graph import PipelineGraph
from flowcanvas.plugins.base import RenderRequest, StageTemplate
from flowcanvas.plugins.manager import StageTemplateManager
from flowcanvas.plugins.stages.generic import GenericStage, UnsupportedStage
from flowcanvas.plugins.templates import groovy_single_quoted


@dataclass
class EmitResult:
    """Definitions and statements in discovery order."""

    definitions: list[StageDefinition] = field(default_factory=list)
    statements: list[InvocationStatement] = field(default_factory=list)


def mix_expression(channels: list[str]) -> str:
    """A channel expression combining every channel in order."""
    if len(channels) == 1:
        return channels[0]
    return f"{channels[0]}.mix({', '.join(channels[1:])})"


def selection_expression(upstream: str, file_names: list[str]) -> str:
    condition = " || ".join(f"file.name == '{groovy_single_quoted(name)}'" for name in file_names)
    return f"{upstream}.filter {{ file -> {condition} }}"


def invocation_text(process_name: str, writes: list[str], arguments: list[str]) -> str:
    call = f"{process_name}({', '.join(arguments)})"
    if not writes:
        return call
    if len(writes) == 1:
        return f"{writes[0]} = {call}"
    return f"({', '.join(writes)}) = {call}"


class StageEmitter:
    """Emits stage definitions and invocation statements for one compilation."""

    def __init__(
        self,
        graph: PipelineGraph,
        table: ChannelTable,
        templates: StageTemplateManager,
        options: CompileOptions,
        diagnostics: list[Diagnostic],
    ) -> None:
        self._graph = graph
        self._table = table
        self._templates = templates
        self._options = options
        self._diagnostics = diagnostics
        self._placeholder = UnsupportedStage()
        self._output_counter = 0

    def emit(self) -> EmitResult:
        result = EmitResult()
        for node in self._graph.nodes():
            if isinstance(node.params, FileSourceParams):
                continue
            self._emit_node(node, result)
        return result

    def _template_for(self, node: StageNode) -> StageTemplate:
        if isinstance(node.params, UnsupportedParams):
            self._report(
                DiagnosticKind.UNSUPPORTED_STAGE,
                f"Node '{node.id}' has unsupported stage type '{node.params.requested}'",
                node.id,
            )
            if self._templates.has_template("unsupported"):
                return self._templates.get_template("unsupported")
            return self._placeholder
        try:
            return self._templates.get_template(node.params.type)
        except UnknownStageTemplateError:
            self._report(
                DiagnosticKind.UNSUPPORTED_STAGE,
                f"No stage template registered for '{node.params.type}' (node '{node.id}')",
                node.id,
            )
            return self._placeholder

    def _emit_node(self, node: StageNode, result: EmitResult) -> None:
        template = self._template_for(node)
        bindings = self._table.inputs_of(node.id)

        if isinstance(template, GenericStage):
            arguments, value_inputs, reads = self._bind_ports(node, bindings)
            primary: list[str] = []
        else:
            primary = self._primary_channels(node, template, bindings)
            value_inputs = []
            arguments = []
            reads = []

        if template.requires_input and not primary:
            self._report(
                DiagnosticKind.MISSING_INPUT,
                f"Node '{node.id}' has no resolvable input and was omitted",
                node.id,
            )
            return

        names = self._table.names
        process_name = names.allocate(
            sanitize_identifier(f"{template.process_stem(node)}_{node.id}")
        )
        params = node.params

        if primary:
            upstream = mix_expression(primary)
            reads = list(primary)
            selected = self._selected_files(node)
            if selected:
                selection_channel = names.allocate(f"{sanitize_identifier(node.id)}_selected")
                result.statements.append(
                    InvocationStatement(
                        kind=StatementKind.SELECTION,
                        text=f"{selection_channel} = {selection_expression(upstream, selected)}",
                        node_id=node.id,
                        reads=tuple(primary),
                        writes=(selection_channel,),
                        comment=f"Select files for {process_name}: {', '.join(selected)}",
                    )
                )
                upstream = selection_channel
                reads = [selection_channel]
            if template.collects_input or (
                isinstance(params, OutputParams) and params.selected_file == "all"
            ):
                upstream = f"{upstream}.collect()"
            arguments = [upstream]

        output_file = None
        if isinstance(params, OutputParams):
            self._output_counter += 1
            output_file = resolve_output_name(
                self._options,
                process_name=process_name,
                counter=self._output_counter,
                label=safe_file_name(params.label),
                extension=params.download_format,
            )

        request = RenderRequest(
            node=node,
            process_name=process_name,
            resources=self._resources_for(node, template),
            value_inputs=tuple(value_inputs),
            has_input=bool(arguments),
            output_file=output_file,
        )
        result.definitions.append(
            StageDefinition(node_id=node.id, process_name=process_name, text=template.render(request))
        )

        writes = [channel.name for channel in self._table.channels_of(node.id)]
        is_output = isinstance(params, OutputParams)
        result.statements.append(
            InvocationStatement(
                kind=StatementKind.OUTPUT if is_output else StatementKind.INVOKE,
                text=invocation_text(process_name, writes, arguments),
                node_id=node.id,
                reads=tuple(dict.fromkeys(reads)),
                writes=tuple(writes),
                comment=f"Save output from: {params.label}" if is_output else None,
            )
        )

    def _primary_channels(
        self,
        node: StageNode,
        template: StageTemplate,
        bindings: list[InputBinding],
    ) -> list[str]:
        primary_port = template.primary_port(node)
        declared = {port.name for port in node.inputs}
        channels: list[str] = []
        for binding in bindings:
            port = binding.port
            if port is None or port == primary_port or port not in declared:
                if binding.channel not in channels:
                    channels.append(binding.channel)
            else:
                self._report(
                    DiagnosticKind.IGNORED_INPUT,
                    f"Input port '{port}' of node '{node.id}' is not consumed by "
                    f"'{template.name}'; edge {binding.edge.describe()} ignored",
                    node.id,
                    edge=binding.edge.describe(),
                )
        return channels

    def _bind_ports(
        self,
        node: StageNode,
        bindings: list[InputBinding],
    ) -> tuple[list[str], list[str], list[str]]:
        """Group bindings by target port: one argument and one ``val`` per port.

        Declared ports come first in declaration order, then undeclared
        ports in the order their first edge appears.
        """
        by_port: dict[str, list[str]] = {}
        for port in node.inputs:
            by_port[port.name] = []
        for binding in bindings:
            channels = by_port.setdefault(binding.port or "in", [])
            if binding.channel not in channels:
                channels.append(binding.channel)

        arguments: list[str] = []
        value_inputs: list[str] = []
        reads: list[str] = []
        taken: set[str] = set()
        for port, channels in by_port.items():
            if not channels:
                continue
            arguments.append(mix_expression(channels))
            reads.extend(channels)
            identifier = value_identifier(port)
            while identifier in taken:
                identifier = f"{identifier}_"
            taken.add(identifier)
            value_inputs.append(identifier)
        return arguments, value_inputs, reads

    def _selected_files(self, node: StageNode) -> list[str]:
        params = node.params
        if isinstance(params, (FilterParams, MapParams, MergeParams)):
            return list(params.selected_files)
        if isinstance(params, OutputParams) and params.selected_file != "all":
            return [params.selected_file]
        return []

    def _resources_for(self, node: StageNode, template: StageTemplate) -> StageResources:
        defaults = self._options.default_resources
        own = node.resources
        return StageResources(
            cpus=own.cpus or defaults.cpus or 1,
            memory=own.memory or defaults.memory or "2.GB",
            time_limit=own.time_limit or defaults.time_limit,
            container=own.container or template.default_container or defaults.container,
        )

    def _report(
        self,
        kind: DiagnosticKind,
        message: str,
        node_id: str,
        edge: str | None = None,
    ) -> None:
        self._diagnostics.append(Diagnostic(kind=kind, message=message, node_id=node_id, edge=edge))
