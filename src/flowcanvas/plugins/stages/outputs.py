"""Output sink template: publishes upstream files into the results directory."""

from typing import Any

from flowcanvas.contracts.graph import StageNode
from flowcanvas.contracts.params import OutputParams
from flowcanvas.plugins.base import RenderRequest, StageTemplate

OUTPUT_SOURCE = r'''
process {{ process_name }} {
    {{ directives }}

    input:
{% if combine %}
    path '*'
{% else %}
    path input_file
{% endif %}

    output:
    path "{{ output_file }}"

    script:
    """
{% if combine %}
    OUT="{{ output_file }}"
    echo {{ header | shell_quote | gscript }} > "\$OUT"
    echo "Generated: \$(date)" >> "\$OUT"
    for file in *; do
        if [ -f "\$file" ] && [ "\$file" != "\$OUT" ]; then
            echo "" >> "\$OUT"
            echo "=== File: \$file ===" >> "\$OUT"
            cat "\$file" >> "\$OUT"
            echo "" >> "\$OUT"
        fi
    done
    echo "=== End of Combined Output ===" >> "\$OUT"
{% else %}
    OUT="{{ output_file }}"
    echo {{ header | shell_quote | gscript }} > "\$OUT"
    echo "Generated: \$(date)" >> "\$OUT"
    echo "Source file: ${input_file}" >> "\$OUT"
    echo "" >> "\$OUT"
    cat "${input_file}" >> "\$OUT"
    echo "=== End of Output ===" >> "\$OUT"
{% endif %}
    """
}
'''


class OutputDisplay(StageTemplate):
    """Writes upstream files to ``params.outdir`` under the naming pattern.

    With ``selected_file == "all"`` every upstream file is combined into one
    result; otherwise only the selected file is published.
    """

    name = "output"
    description = "Publish results to the output directory"
    plugin_version = "1.0.0"
    source = OUTPUT_SOURCE
    extra_directives = (
        "errorStrategy 'retry'",
        "maxRetries 2",
        "publishDir params.outdir, mode: 'copy'",
    )
    output_ports = ()

    def process_stem(self, node: StageNode) -> str:
        params = node.params
        assert isinstance(params, OutputParams)
        return f"save_{params.label}"

    def context(self, request: RenderRequest) -> dict[str, Any]:
        params = request.node.params
        assert isinstance(params, OutputParams)
        if request.output_file is None:
            raise ValueError(f"Output stage {request.node.id} rendered without an output file name")
        output_file = request.output_file
        if params.selected_file != "all":
            # Nextflow expands the input's base name at run time
            stem, dot, extension = output_file.rpartition(".")
            output_file = f"{stem}_${{input_file.baseName}}{dot}{extension}" if dot else output_file
        combine = params.selected_file == "all"
        return {
            "combine": combine,
            "header": f"=== Combined Output: {params.label} ===" if combine else f"=== {params.label} Output ===",
            "output_file": output_file,
        }
