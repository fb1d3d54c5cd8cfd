# src/flowcanvas/cli.py
"""FlowCanvas Command Line Interface.

Entry point for the flowcanvas CLI tool.
"""

import json
from datetime import UTC, datetime
from pathlib import Path

import typer
from pydantic import ValidationError

from flowcanvas import __version__
from flowcanvas.compiler import GraphCompiler
from flowcanvas.contracts import CompileResult, GraphDocument, GraphDocumentError, RunState
from flowcanvas.contracts.status import WorkflowExecutionStatus
from flowcanvas.core.config import FlowCanvasSettings, default_settings, load_settings
from flowcanvas.core.graph import load_graph_document
from flowcanvas.core.logging import configure_logging

app = typer.Typer(
    name="flowcanvas",
    help="FlowCanvas: compile stage graphs to Nextflow and track their runs.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"flowcanvas version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """FlowCanvas: compile stage graphs to Nextflow and track their runs."""
    pass


def _load_config(settings: str | None) -> FlowCanvasSettings:
    """Load settings (or defaults) and configure logging from them."""
    if settings is None:
        config = default_settings()
    else:
        try:
            config = load_settings(Path(settings))
        except FileNotFoundError:
            typer.echo(f"Error: Settings file not found: {settings}", err=True)
            raise typer.Exit(1) from None
        except ValidationError as e:
            typer.echo("Configuration errors:", err=True)
            for error in e.errors():
                loc = ".".join(str(x) for x in error["loc"])
                typer.echo(f"  - {loc}: {error['msg']}", err=True)
            raise typer.Exit(1) from None

    configure_logging(config.logging.level, config.logging.json_output)
    return config


def _load_graph(graph: str, editor_format: bool) -> GraphDocument:
    try:
        return load_graph_document(Path(graph), editor_format=editor_format)
    except FileNotFoundError:
        typer.echo(f"Error: Graph file not found: {graph}", err=True)
        raise typer.Exit(1) from None
    except GraphDocumentError as e:
        typer.echo(f"Graph document error: {e}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo("Graph document errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None


def _compile(
    config: FlowCanvasSettings,
    document: GraphDocument,
    *,
    name: str | None = None,
    outdir: str | None = None,
    naming: str | None = None,
    timestamp: datetime | None = None,
) -> CompileResult:
    overrides = {
        key: value
        for key, value in (("run_name", name), ("output_dir", outdir), ("naming_pattern", naming))
        if value is not None
    }
    compile_settings = config.compile.model_copy(update=overrides)
    options = compile_settings.to_options(timestamp or datetime.now(UTC))
    return GraphCompiler().compile(document, options)


def _echo_diagnostics(result: CompileResult) -> None:
    for diagnostic in result.diagnostics:
        typer.echo(f"  - {diagnostic}", err=True)


GRAPH_ARGUMENT = typer.Argument(..., help="Graph document (JSON or YAML).")
SETTINGS_OPTION = typer.Option(None, "--settings", "-s", help="Path to settings YAML file.")
EDITOR_FORMAT_OPTION = typer.Option(
    False,
    "--editor-format",
    "-e",
    help="The graph file holds the canvas editor's native payload.",
)


@app.command("compile")
def compile_command(
    graph: str = GRAPH_ARGUMENT,
    settings: str | None = SETTINGS_OPTION,
    output: str | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the script here instead of stdout.",
    ),
    name: str | None = typer.Option(None, "--name", help="Run name (overrides settings)."),
    outdir: str | None = typer.Option(None, "--outdir", help="Output directory (overrides settings)."),
    naming: str | None = typer.Option(None, "--naming", help="Output naming pattern (overrides settings)."),
    timestamp: datetime | None = typer.Option(
        None,
        "--timestamp",
        help="Fix the timestamp used in output names (reproducible builds).",
    ),
    editor_format: bool = EDITOR_FORMAT_OPTION,
) -> None:
    """Compile a graph document to a Nextflow script.

    Diagnostics are reported on stderr; the script is always produced.
    """
    config = _load_config(settings)
    document = _load_graph(graph, editor_format)
    result = _compile(config, document, name=name, outdir=outdir, naming=naming, timestamp=timestamp)

    if result.diagnostics:
        typer.echo(f"{len(result.diagnostics)} diagnostic(s):", err=True)
        _echo_diagnostics(result)

    if output is None:
        typer.echo(result.script, nl=False)
    else:
        Path(output).write_text(result.script, encoding="utf-8")
        typer.echo(f"Script written: {output} ({result.script_hash[:12]})")


@app.command()
def validate(
    graph: str = GRAPH_ARGUMENT,
    settings: str | None = SETTINGS_OPTION,
    editor_format: bool = EDITOR_FORMAT_OPTION,
) -> None:
    """Compile a graph and report diagnostics. Exits 1 if there are any."""
    config = _load_config(settings)
    document = _load_graph(graph, editor_format)
    result = _compile(config, document)

    if result.diagnostics:
        typer.echo(f"Graph has {len(result.diagnostics)} diagnostic(s):", err=True)
        _echo_diagnostics(result)
        raise typer.Exit(1)

    typer.echo(f"Graph valid: {graph}")
    typer.echo(f"  Nodes: {len(document.nodes)}, edges: {len(document.edges)}")
    typer.echo(f"  Stages: {len(result.definitions)}, statements: {len(result.statements)}")
    typer.echo(f"  Graph hash: {result.graph_hash[:12]} ({result.hash_version})")


def _format_status(status: WorkflowExecutionStatus) -> list[str]:
    lines = [f"[{status.state.value}] {status.current_stage} ({status.progress:.0f}%)"]
    for node in status.nodes:
        progress = f"{node.progress:.0f}%" if node.progress is not None else "-"
        lines.append(f"  {node.display_name:16} {node.status.value:8} {progress:>5}  {node.key}")
    return lines


@app.command()
def run(
    graph: str = GRAPH_ARGUMENT,
    settings: str | None = SETTINGS_OPTION,
    execute: bool = typer.Option(
        False,
        "--execute",
        "-x",
        help="Actually launch the engine (required for safety).",
    ),
    inputs: list[Path] = typer.Option(
        [],
        "--input",
        "-i",
        help="Input file to place in the run's inputs directory (repeatable).",
    ),
    editor_format: bool = EDITOR_FORMAT_OPTION,
) -> None:
    """Compile a graph and execute it through the engine.

    Requires --execute flag to actually run (safety feature).
    """
    from flowcanvas.engine import CancellationRegistry, EngineRunner, ExecutionStatusTracker

    config = _load_config(settings)
    document = _load_graph(graph, editor_format)
    result = _compile(config, document)

    if result.diagnostics:
        typer.echo(f"{len(result.diagnostics)} diagnostic(s):", err=True)
        _echo_diagnostics(result)

    if not execute:
        typer.echo(f"Script compiled: {len(result.definitions)} stages.")
        typer.echo("")
        typer.echo("To execute, add --execute (or -x) flag:", err=True)
        typer.echo(f"  flowcanvas run {graph} --execute", err=True)
        raise typer.Exit(1)

    input_contents = {}
    for path in inputs:
        try:
            input_contents[path.name] = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            typer.echo(f"Error: Input file not found: {path}", err=True)
            raise typer.Exit(1) from None

    registry = CancellationRegistry(config.engine.cancel_grace_seconds)
    tracker = ExecutionStatusTracker(config.tracker, canceller=registry.cancel)
    tracker.subscribe(lambda status: typer.echo("\n".join(_format_status(status))))
    runner = EngineRunner(config.engine, tracker, registry)

    try:
        outcome = runner.run(
            result.script,
            config.compile.run_name,
            Path(config.compile.output_dir),
            inputs=input_contents,
        )
    except KeyboardInterrupt:
        status = tracker.cancel_run()
        typer.echo(f"\nRun cancelled: {status.run_id}", err=True)
        raise typer.Exit(130) from None

    typer.echo(f"\nRun {outcome.status.state.value}: {outcome.run_id}")
    typer.echo(f"  Workspace: {outcome.workspace.root}")
    if not outcome.success:
        if outcome.status.error:
            typer.echo(f"  Error: {outcome.status.error}", err=True)
        raise typer.Exit(1)


@app.command()
def track(
    logfile: str = typer.Argument(..., help="Saved engine output to replay."),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output the final snapshot as JSON.",
    ),
    settings: str | None = SETTINGS_OPTION,
) -> None:
    """Replay a saved engine log through the status tracker."""
    from flowcanvas.engine import ExecutionStatusTracker

    config = _load_config(settings)
    path = Path(logfile)
    if not path.exists():
        typer.echo(f"Error: Log file not found: {logfile}", err=True)
        raise typer.Exit(1)

    tracker = ExecutionStatusTracker(config.tracker)
    tracker.start_run(path.stem)
    tracker.feed_chunk(path.read_text(encoding="utf-8", errors="replace"))
    tracker.flush()
    status = tracker.snapshot

    if json_output:
        typer.echo(json.dumps(status.to_dict(), indent=2, ensure_ascii=False))
    else:
        typer.echo("\n".join(_format_status(status)))

    if status.state is RunState.FAILED:
        raise typer.Exit(1)


stages_app = typer.Typer(help="Stage template commands.")
app.add_typer(stages_app, name="stages")


@stages_app.command("list")
def stages_list() -> None:
    """List registered stage templates."""
    from flowcanvas.plugins import default_template_manager

    manager = default_template_manager()
    typer.echo("\nSTAGE TEMPLATES:")
    for spec in manager.get_specs():
        typer.echo(f"  {spec.name:12} {spec.version:8} - {spec.description}")
    typer.echo()


if __name__ == "__main__":
    app()
