"""Channel Binder: names every producer port and resolves edges to channels.

Editors may record port names that no longer match the declared ports
(stale handle ids, renamed ports). Resolution therefore walks a chain:

1. exact ``<node>.<port>`` key
2. the bare ``<node>_out`` handle alias
3. the part of the port name after its last separator
4. the first channel registered for the source node
5. give up and drop the edge

Every step after the first that succeeds records a diagnostic, as does a
dropped edge. Nothing here raises for malformed content.
"""

from dataclasses import dataclass, field

from flowcanvas.compiler.naming import NameAllocator, sanitize_identifier
from flowcanvas.contracts.compile import Channel, Diagnostic
from flowcanvas.contracts.enums import DiagnosticKind
from flowcanvas.contracts.errors import UnknownStageTemplateError
from flowcanvas.contracts.graph import ChannelEdge, StageNode
from flowcanvas.contracts.params import FileSourceParams
from flowcanvas.core.graph import PipelineGraph
from flowcanvas.plugins.manager import StageTemplateManager

_ALIAS_PORTS = ("out", "output")
_SEPARATORS = (".", "_", "-", ":")


@dataclass(frozen=True)
class SourceChannel:
    """A file source: one parameter list and one channel declaration."""

    node_id: str
    channel: str
    param_name: str
    files: tuple[str, ...]


@dataclass(frozen=True)
class InputBinding:
    """One resolved edge: the channel feeding ``port`` of the target node."""

    port: str | None
    channel: str
    edge: ChannelEdge


@dataclass(frozen=True)
class _LookupEntry:
    channel: str
    is_alias: bool


@dataclass
class ChannelTable:
    """Result of binding: channels, lookup keys and per-node inputs.

    One table is built per compilation and passed explicitly to the later
    phases; it is never shared between compilations.
    """

    names: NameAllocator
    channels: list[Channel] = field(default_factory=list)
    sources: list[SourceChannel] = field(default_factory=list)
    lookup: dict[str, _LookupEntry] = field(default_factory=dict)
    by_node: dict[str, list[Channel]] = field(default_factory=dict)
    inputs: dict[str, list[InputBinding]] = field(default_factory=dict)

    def channels_of(self, node_id: str) -> list[Channel]:
        return list(self.by_node.get(node_id, []))

    def inputs_of(self, node_id: str) -> list[InputBinding]:
        return list(self.inputs.get(node_id, []))

    @property
    def source_channel_names(self) -> set[str]:
        return {source.channel for source in self.sources}


class ChannelBinder:
    """Assigns channel names and resolves every edge for one compilation."""

    def __init__(
        self,
        graph: PipelineGraph,
        templates: StageTemplateManager,
        diagnostics: list[Diagnostic],
    ) -> None:
        self._graph = graph
        self._templates = templates
        self._diagnostics = diagnostics

    def bind(self) -> ChannelTable:
        table = ChannelTable(names=NameAllocator())
        for node in self._graph.nodes():
            self._register_node(table, node)
        for node in self._graph.nodes():
            table.inputs[node.id] = self._bind_inputs(table, node)
        for edge in self._graph.dangling_edges():
            self._report(
                DiagnosticKind.UNRESOLVED_EDGE,
                f"Edge {edge.describe()} references an unknown node and was dropped",
                node_id=edge.target,
                edge=edge,
            )
        return table

    def resolve(self, table: ChannelTable, edge: ChannelEdge) -> str | None:
        """Resolve the channel an edge reads, or None if it cannot be bound."""
        source, port = edge.source, edge.source_port or "out"

        entry = table.lookup.get(f"{source}.{port}")
        if entry is not None:
            if entry.is_alias:
                self._report(
                    DiagnosticKind.BINDING_ALIAS,
                    f"Edge {edge.describe()} bound through alias '{port}' to {entry.channel}",
                    node_id=edge.target,
                    edge=edge,
                )
            return entry.channel

        if port == f"{source}_out":
            entry = table.lookup.get(port)
            if entry is not None:
                self._report(
                    DiagnosticKind.BINDING_ALIAS,
                    f"Edge {edge.describe()} bound through handle alias to {entry.channel}",
                    node_id=edge.target,
                    edge=edge,
                )
                return entry.channel

        split = max(port.rfind(sep) for sep in _SEPARATORS)
        if split >= 0:
            entry = table.lookup.get(f"{source}.{port[split + 1:]}")
            if entry is not None:
                self._report(
                    DiagnosticKind.BINDING_ALIAS,
                    f"Edge {edge.describe()} bound by port suffix to {entry.channel}",
                    node_id=edge.target,
                    edge=edge,
                )
                return entry.channel

        produced = table.by_node.get(source)
        if produced:
            self._report(
                DiagnosticKind.BINDING_FALLBACK,
                f"Edge {edge.describe()} fell back to first channel {produced[0].name}",
                node_id=edge.target,
                edge=edge,
            )
            return produced[0].name

        self._report(
            DiagnosticKind.UNRESOLVED_EDGE,
            f"Edge {edge.describe()} matches no channel of '{source}' and was dropped",
            node_id=edge.target,
            edge=edge,
        )
        return None

    def _register_node(self, table: ChannelTable, node: StageNode) -> None:
        sanitized = sanitize_identifier(node.id)
        params = node.params
        if isinstance(params, FileSourceParams):
            name = table.names.allocate(f"ch_files_{sanitized}")
            table.sources.append(
                SourceChannel(
                    node_id=node.id,
                    channel=name,
                    param_name=table.names.allocate(f"files_{sanitized}"),
                    files=tuple(params.files),
                )
            )
            ports = [port.name for port in node.outputs] or ["out"]
            channels = [Channel(name=name, node_id=node.id, port=ports[0])]
            for port in ports:
                table.lookup[f"{node.id}.{port}"] = _LookupEntry(name, is_alias=False)
        else:
            try:
                template = self._templates.get_template(params.type)
            except UnknownStageTemplateError:
                # No template means no outputs; the emitter reports it
                ports = []
            else:
                ports = template.produced_ports(node)
            channels = []
            for port in ports:
                name = table.names.allocate(f"{sanitized}_{sanitize_identifier(port)}")
                channels.append(Channel(name=name, node_id=node.id, port=port))
                table.lookup[f"{node.id}.{port}"] = _LookupEntry(name, is_alias=False)

        table.channels.extend(channels)
        table.by_node[node.id] = channels
        if channels:
            first = channels[0].name
            for alias in (f"{node.id}.{p}" for p in _ALIAS_PORTS):
                table.lookup.setdefault(alias, _LookupEntry(first, is_alias=True))
            table.lookup.setdefault(f"{node.id}_out", _LookupEntry(first, is_alias=True))

    def _bind_inputs(self, table: ChannelTable, node: StageNode) -> list[InputBinding]:
        bindings: list[InputBinding] = []
        seen: set[tuple[str | None, str]] = set()
        for edge in self._graph.incoming(node.id):
            channel = self.resolve(table, edge)
            if channel is None:
                continue
            key = (edge.target_port, channel)
            if key in seen:
                continue
            seen.add(key)
            bindings.append(InputBinding(port=edge.target_port, channel=channel, edge=edge))
        return bindings

    def _report(
        self,
        kind: DiagnosticKind,
        message: str,
        *,
        node_id: str | None,
        edge: ChannelEdge,
    ) -> None:
        self._diagnostics.append(
            Diagnostic(kind=kind, message=message, node_id=node_id, edge=edge.describe())
        )
