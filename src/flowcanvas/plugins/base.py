# src/flowcanvas/plugins/base.py
"""Base class for stage template implementations.

A stage template turns one StageNode into a Nextflow ``process`` block.
Templates are registered through the ``flowcanvas_get_stage_templates``
hook and looked up by the ``type`` tag of the node's parameter record.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from flowcanvas.contracts.graph import StageNode, StageResources
from flowcanvas.plugins.templates import ProcessTemplate, groovy_single_quoted


@dataclass(frozen=True)
class RenderRequest:
    """Everything a template needs to render one stage definition.

    Attributes:
        node: The node being compiled
        process_name: Unique, sanitized process name
        resources: Resource requests with every default already applied
        value_inputs: Input identifiers for stages that take one value per bound port
        has_input: Whether any upstream channel is bound to the stage
        output_file: Resolved result file name (output sinks only)
    """

    node: StageNode
    process_name: str
    resources: StageResources
    value_inputs: tuple[str, ...] = ()
    has_input: bool = True
    output_file: str | None = None


class StageTemplate(ABC):
    """Base class for stage templates.

    Subclass, set ``name`` and ``source`` and implement ``context()``.

    Example:
        class EchoStage(StageTemplate):
            name = "echo"
            source = '''
        process {{ process_name }} {
            {{ directives }}

            script:
            \"\"\"
            echo {{ message | shell_quote | gscript }}
            \"\"\"
        }'''

            def context(self, request: RenderRequest) -> dict[str, Any]:
                return {"message": request.node.params.message}
    """

    name: str
    source: str
    description: str = ""
    plugin_version: str = "0.0.0"

    # Container used when neither the node nor the settings name one
    default_container: str | None = None
    # Directives appended after the resource directives
    extra_directives: tuple[str, ...] = ()
    # Fixed output ports; None means the node's declared outputs
    output_ports: tuple[str, ...] | None = None
    # Stages that can run without any bound input (generic, placeholder)
    requires_input: bool = True
    # Merge-style stages consume every upstream item at once
    collects_input: bool = False

    def __init__(self) -> None:
        self._template = ProcessTemplate(self.source)

    @property
    def template_hash(self) -> str:
        return self._template.template_hash

    def process_stem(self, node: StageNode) -> str:
        """Process name before the node id suffix and sanitization."""
        return self.name

    def produced_ports(self, node: StageNode) -> list[str]:
        """Output ports this stage actually emits, in declaration order."""
        if self.output_ports is not None:
            return list(self.output_ports)
        return [port.name for port in node.outputs]

    def primary_port(self, node: StageNode) -> str | None:
        """Input port that receives the main data stream.

        Edges to any other declared input port are not consumed.
        """
        return node.inputs[0].name if node.inputs else None

    def directives(self, request: RenderRequest) -> list[str]:
        resources = request.resources
        lines = []
        if resources.container:
            lines.append(f"container '{groovy_single_quoted(resources.container)}'")
        lines.append(f"cpus {resources.cpus}")
        lines.append(f"memory '{groovy_single_quoted(resources.memory)}'")
        if resources.time_limit:
            lines.append(f"time '{groovy_single_quoted(resources.time_limit)}'")
        lines.extend(self.extra_directives)
        return lines

    @abstractmethod
    def context(self, request: RenderRequest) -> dict[str, Any]:
        """Template variables specific to this stage type."""
        ...

    def render(self, request: RenderRequest) -> str:
        """Render the process block.

        Raises:
            TemplateError: If the template fails to render
        """
        return self._template.render(
            process_name=request.process_name,
            directives="\n    ".join(self.directives(request)),
            params=request.node.params,
            node_id=request.node.id,
            **self.context(request),
        ).strip("\n")
