"""Generic user-scripted stage and the unsupported-stage placeholder."""

from typing import Any

from flowcanvas.contracts.graph import StageNode
from flowcanvas.contracts.params import GenericStageParams, UnsupportedParams
from flowcanvas.plugins.base import RenderRequest, StageTemplate

GENERIC_SOURCE = r'''
process {{ process_name }} {
    {{ directives }}

{% if value_inputs %}
    input:
{% for name in value_inputs %}
    val {{ name }}
{% endfor %}

{% endif %}
    output:
    stdout

    script:
    {{ script }}
}
'''

PLACEHOLDER_SOURCE = r'''
// UNSUPPORTED STAGE '{{ requested }}' (node {{ node_label }})
process {{ process_name }} {
{% if has_input %}
    input:
    path input_file

{% endif %}
    script:
    """
    echo {{ message | shell_quote | gscript }} >&2
    exit 1
    """
}
'''


class GenericStage(StageTemplate):
    """A stage whose script body is written by the user and emitted verbatim."""

    name = "generic"
    description = "User-written script with retry on failure"
    plugin_version = "1.0.0"
    source = GENERIC_SOURCE
    extra_directives = ("errorStrategy 'retry'", "maxRetries 2")
    requires_input = False

    def process_stem(self, node: StageNode) -> str:
        return "process"

    def produced_ports(self, node: StageNode) -> list[str]:
        # stdout is the only output, bound to the first declared port
        return [node.outputs[0].name] if node.outputs else []

    def context(self, request: RenderRequest) -> dict[str, Any]:
        params = request.node.params
        assert isinstance(params, GenericStageParams)
        return {"value_inputs": list(request.value_inputs), "script": params.script.strip()}


class UnsupportedStage(StageTemplate):
    """Placeholder for stage types with no registered template.

    Renders a labelled process that fails loudly, so the script stays
    well-formed and the problem is visible both in the text and at run time.
    """

    name = "unsupported"
    description = "Placeholder that fails with a diagnostic message"
    plugin_version = "1.0.0"
    source = PLACEHOLDER_SOURCE
    output_ports = ()
    requires_input = False

    def directives(self, request: RenderRequest) -> list[str]:
        return []

    def context(self, request: RenderRequest) -> dict[str, Any]:
        requested = self.requested_type(request.node)
        node_label = " ".join(request.node.id.split())
        return {
            "requested": " ".join(requested.split()),
            "node_label": node_label,
            "has_input": request.has_input,
            "message": (
                f"UNSUPPORTED STAGE '{requested}' (node {node_label}): "
                "no template is registered for this stage type"
            ),
        }

    @staticmethod
    def requested_type(node: StageNode) -> str:
        params = node.params
        if isinstance(params, UnsupportedParams):
            return params.requested
        return params.type
