"""Quality-control and read-trimming preset templates.

Both presets publish their results under ``params.outdir`` and declare a
fixed multi-output contract. The trimming preset checks at run time that it
was given reads, not QC reports, and fails the task if not.
"""

from typing import Any

from flowcanvas.contracts.graph import StageNode
from flowcanvas.contracts.params import FastQCParams, TrimmomaticParams
from flowcanvas.plugins.base import RenderRequest, StageTemplate

FASTQC_SOURCE = r'''
process {{ process_name }} {
    {{ directives }}

    input:
    path reads

    output:
    path reads, emit: reads_out
    path "*.zip", emit: zip
    path "*.html", emit: html

    script:
    """
    fastqc {{ options | gscript }} --threads ${task.cpus} --outdir . "${reads}"
    """
}
'''

TRIMMOMATIC_SOURCE = r'''
process {{ process_name }} {
    {{ directives }}

    input:
    path reads

    output:
    path "*_trimmed.fastq", emit: trimmed_reads
    path "*_unpaired*.fastq", optional: true, emit: unpaired_reads
    path "*.log", optional: true, emit: trim_log

    script:
    """
    INPUT_FILE="${reads}"
    case "\$INPUT_FILE" in
        *.zip|*.html)
            echo "========================================" >&2
            echo "WORKFLOW CONFIGURATION ERROR" >&2
            echo "ERROR: Trimmomatic received non-FASTQ input: \$INPUT_FILE" >&2
            echo "Trimmomatic requires FASTQ files (.fastq, .fq, .fastq.gz, .fq.gz)." >&2
            echo "This looks like a FastQC report. Connect the file source to Trimmomatic" >&2
            echo "directly and use FastQC outputs only for quality reports." >&2
            echo "========================================" >&2
            exit 1
            ;;
        *.fastq|*.fq|*.fastq.gz|*.fq.gz)
            ;;
        *)
            echo "WARNING: input does not have a FASTQ extension: \$INPUT_FILE" >&2
            ;;
    esac

    BASE_NAME=\$(basename "\$INPUT_FILE")
    BASE_NAME=\${BASE_NAME%.gz}
    BASE_NAME=\${BASE_NAME%.fastq}
    BASE_NAME=\${BASE_NAME%.fq}

    trimmomatic SE -threads ${task.cpus} -phred33 \\
        "\$INPUT_FILE" \\
        "\${BASE_NAME}_trimmed.fastq" \\
        {{ steps | gscript }} \\
        2>&1 | tee "\${BASE_NAME}_trimming.log"

    if [ ! -f "\${BASE_NAME}_trimmed.fastq" ]; then
        echo "ERROR: Trimmomatic output file was not created: \${BASE_NAME}_trimmed.fastq" >&2
        exit 1
    fi
    """
}
'''


class FastQCPreset(StageTemplate):
    """FastQC quality control: reads pass through, reports are emitted."""

    name = "fastqc"
    description = "FastQC quality report (reads_out, zip, html)"
    plugin_version = "1.0.0"
    source = FASTQC_SOURCE
    default_container = "biocontainers/fastqc:v0.11.9_cv8"
    extra_directives = (
        'tag "${reads.baseName}"',
        "publishDir \"${params.outdir}/fastqc\", mode: 'copy'",
    )
    output_ports = ("reads_out", "zip", "html")

    def context(self, request: RenderRequest) -> dict[str, Any]:
        params = request.node.params
        assert isinstance(params, FastQCParams)
        return {"options": params.options.strip()}


class TrimmomaticPreset(StageTemplate):
    """Trimmomatic single-end read trimming."""

    name = "trimmomatic"
    description = "Trimmomatic SE trimming (trimmed_reads, unpaired_reads, trim_log)"
    plugin_version = "1.0.0"
    source = TRIMMOMATIC_SOURCE
    default_container = "quay.io/biocontainers/trimmomatic:0.39--hdfd78af_2"
    extra_directives = (
        'tag "${reads.baseName}"',
        "publishDir \"${params.outdir}/trimmomatic\", mode: 'copy'",
    )
    output_ports = ("trimmed_reads", "unpaired_reads", "trim_log")

    def primary_port(self, node: StageNode) -> str | None:
        # QC reports are accepted on the canvas but never fed to the tool
        if any(port.name == "reads" for port in node.inputs):
            return "reads"
        return super().primary_port(node)

    def context(self, request: RenderRequest) -> dict[str, Any]:
        params = request.node.params
        assert isinstance(params, TrimmomaticParams)
        return {"steps": params.step_arguments()}
