# src/flowcanvas/compiler/compiler.py
"""GraphCompiler: graph document in, script text and diagnostics out.

Phases run in order, each consuming the previous one's output:

    binder → emitter → orderer → assembler

Compilation is synchronous and side-effect free apart from logging.
Malformed graph content never raises; it degrades to diagnostics and
best-effort omission.
"""

from flowcanvas.compiler.assembler import assemble_script, surviving_definitions
from flowcanvas.compiler.binder import ChannelBinder
from flowcanvas.compiler.emitter import StageEmitter
from flowcanvas.compiler.orderer import InvocationOrderer
from flowcanvas.contracts.compile import CompileOptions, CompileResult, Diagnostic
from flowcanvas.contracts.graph import GraphDocument
from flowcanvas.core.canonical import CANONICAL_VERSION, stable_hash, text_hash
from flowcanvas.core.graph import PipelineGraph
from flowcanvas.core.logging import get_logger
from flowcanvas.plugins.manager import StageTemplateManager, default_template_manager

logger = get_logger(__name__)


class GraphCompiler:
    """Compiles graph documents with one set of registered stage templates.

    Usage:
        compiler = GraphCompiler()
        result = compiler.compile(document, CompileOptions(run_name="demo"))
        print(result.script)
    """

    def __init__(self, templates: StageTemplateManager | None = None) -> None:
        self._templates = templates or default_template_manager()

    @property
    def templates(self) -> StageTemplateManager:
        return self._templates

    def compile(self, document: GraphDocument, options: CompileOptions | None = None) -> CompileResult:
        options = options or CompileOptions()
        diagnostics: list[Diagnostic] = []

        graph = PipelineGraph(document)
        cycle = graph.find_cycle()
        if cycle is not None:
            logger.warning("graph_cycle", nodes=cycle)
        table = ChannelBinder(graph, self._templates, diagnostics).bind()
        emitted = StageEmitter(graph, table, self._templates, options, diagnostics).emit()
        statements = InvocationOrderer(
            emitted.statements, table.source_channel_names, diagnostics
        ).order()
        definitions = surviving_definitions(emitted.definitions, statements)
        script = assemble_script(options, table.sources, definitions, statements)

        for diagnostic in diagnostics:
            logger.warning(
                "compile_diagnostic",
                kind=diagnostic.kind.value,
                message=diagnostic.message,
                node_id=diagnostic.node_id,
                edge=diagnostic.edge,
            )

        result = CompileResult(
            script=script,
            diagnostics=tuple(diagnostics),
            definitions=tuple(definitions),
            statements=tuple(statements),
            channels=tuple(table.channels),
            script_hash=text_hash(script),
            graph_hash=stable_hash(document),
            hash_version=CANONICAL_VERSION,
        )
        logger.info(
            "graph_compiled",
            run_name=options.run_name,
            nodes=graph.node_count,
            stages=len(definitions),
            statements=len(statements),
            diagnostics=len(diagnostics),
            script_hash=result.script_hash[:12],
            hash_version=result.hash_version,
        )
        return result


def compile_graph(
    document: GraphDocument,
    options: CompileOptions | None = None,
    templates: StageTemplateManager | None = None,
) -> CompileResult:
    """Compile ``document`` with the built-in templates (or ``templates``)."""
    return GraphCompiler(templates).compile(document, options)
