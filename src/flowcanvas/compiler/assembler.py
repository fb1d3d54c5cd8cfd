"""Script Assembler: joins the compiled parts in a fixed section order.

Sections:
    1. header and default parameters (output dir, input dir, per-source file lists)
    2. source channel declarations (an explicit empty channel for a source with no files)
    3. stage definitions, first-discovery order, one per node
    4. the ``workflow`` block: non-output statements, then output statements

Assembly is a pure function of its arguments.
"""

from collections.abc import Sequence

from flowcanvas.compiler.binder import SourceChannel
from flowcanvas.contracts.compile import CompileOptions, InvocationStatement, StageDefinition
from flowcanvas.plugins.templates import groovy_single_quoted


def _quoted(value: str) -> str:
    return f"'{groovy_single_quoted(value)}'"


def _parameter_section(options: CompileOptions, sources: Sequence[SourceChannel]) -> list[str]:
    lines = [
        f"params.outdir = {_quoted(options.output_dir)}",
        f"params.inputdir = {_quoted(options.input_dir)}",
    ]
    for source in sources:
        files = ", ".join(_quoted(name) for name in source.files)
        lines.append(f"params.{source.param_name} = [{files}]")
    return lines


def _source_section(sources: Sequence[SourceChannel]) -> list[str]:
    lines = []
    for source in sources:
        if source.files:
            lines.append(f"{source.channel} = Channel.fromList(params.{source.param_name})")
            lines.append('    .map { filename -> file("${params.inputdir}/${filename}") }')
        else:
            lines.append(f"{source.channel} = Channel.empty()")
    return lines


def _workflow_section(statements: Sequence[InvocationStatement]) -> list[str]:
    body = [s for s in statements if not s.is_output]
    outputs = [s for s in statements if s.is_output]

    lines = ["workflow {"]
    for statement in body:
        lines.extend(statement.render())
    if body and outputs:
        lines.append("")
    for statement in outputs:
        lines.extend(statement.render())
    lines.append("}")
    return lines


def surviving_definitions(
    definitions: Sequence[StageDefinition],
    statements: Sequence[InvocationStatement],
) -> list[StageDefinition]:
    """Definitions of nodes that still have a statement, deduplicated by node id."""
    invoked = {statement.node_id for statement in statements}
    seen: set[str] = set()
    kept = []
    for definition in definitions:
        if definition.node_id in seen or definition.node_id not in invoked:
            continue
        seen.add(definition.node_id)
        kept.append(definition)
    return kept


def assemble_script(
    options: CompileOptions,
    sources: Sequence[SourceChannel],
    definitions: Sequence[StageDefinition],
    statements: Sequence[InvocationStatement],
) -> str:
    """Concatenate every section into the final script text.

    ``statements`` must already be ordered; ``definitions`` should already
    be filtered with ``surviving_definitions``.
    """
    sections = [
        [f"// Workflow script for {' '.join(options.run_name.split())}", "nextflow.enable.dsl = 2"],
        _parameter_section(options, sources),
    ]
    source_lines = _source_section(sources)
    if source_lines:
        sections.append(source_lines)
    for definition in definitions:
        sections.append(definition.text.splitlines())
    sections.append(_workflow_section(statements))

    return "\n\n".join("\n".join(section) for section in sections) + "\n"
