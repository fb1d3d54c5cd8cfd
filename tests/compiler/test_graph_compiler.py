# tests/compiler/test_graph_compiler.py
"""End-to-end compilation tests: graph document in, script text out."""

from typing import Any


def _workflow_lines(script: str) -> list[str]:
    """Non-blank lines inside the workflow block, stripped."""
    body = script.split("workflow {\n", 1)[1].rsplit("}", 1)[0]
    return [line.strip() for line in body.splitlines() if line.strip()]


def _compile(document: Any, **options: Any) -> Any:
    from flowcanvas.compiler import compile_graph
    from flowcanvas.contracts import CompileOptions

    return compile_graph(document, CompileOptions(**options))


class TestExampleGraph:
    """source → filter → sink."""

    def test_script_layout(self, example_graph) -> None:
        result = _compile(example_graph)
        script = result.script

        assert result.ok
        assert script.startswith("// Workflow script for workflow\nnextflow.enable.dsl = 2\n")
        assert script.count("ch_files_src = Channel.fromList(params.files_src)") == 1
        assert "params.files_src = ['reads.txt']" in script
        assert script.count("process filter_node_42 {") == 1
        assert script.count("process save_Result_sink {") == 1
        assert script.endswith("}\n")

    def test_sections_in_order(self, example_graph) -> None:
        script = _compile(example_graph).script

        positions = [
            script.index("params.outdir = 'results'"),
            script.index("ch_files_src = Channel.fromList"),
            script.index("process filter_node_42 {"),
            script.index("process save_Result_sink {"),
            script.index("workflow {"),
        ]
        assert positions == sorted(positions)

    def test_workflow_block(self, example_graph) -> None:
        lines = _workflow_lines(_compile(example_graph).script)

        assert lines == [
            "node_42_out = filter_node_42(ch_files_src)",
            "// Save output from: Result",
            "save_Result_sink(node_42_out.collect())",
        ]

    def test_output_file_uses_naming_pattern(self, example_graph) -> None:
        script = _compile(example_graph, run_name="demo", timestamp="20250101T120000").script

        assert 'path "demo_20250101T120000_save_Result_sink_01_Result.txt"' in script
        assert script.startswith("// Workflow script for demo\n")

    def test_result_metadata(self, example_graph) -> None:
        from flowcanvas.contracts import StatementKind

        result = _compile(example_graph)

        assert [d.process_name for d in result.definitions] == ["filter_node_42", "save_Result_sink"]
        assert [s.kind for s in result.statements] == [StatementKind.INVOKE, StatementKind.OUTPUT]
        assert len(result.script_hash) == 64
        assert len(result.graph_hash) == 64
        assert result.hash_version == "sha256-rfc8785-v1"

    def test_deterministic(self, example_graph) -> None:
        first = _compile(example_graph)
        second = _compile(example_graph)

        assert first.script == second.script
        assert first.script_hash == second.script_hash


class TestOrdering:
    """Dependency order is independent of document order."""

    def test_reversed_document_order(self, make_node, make_edge) -> None:
        from flowcanvas.contracts import GraphDocument

        doc = GraphDocument(
            nodes=[
                make_node("sink", {"type": "output", "label": "Final"}),
                make_node("m", {"type": "map"}),
                make_node("f", {"type": "filter", "text": "x"}),
                make_node("src", {"type": "file_source", "files": ["a.txt"]}),
            ],
            edges=[make_edge("m", "sink"), make_edge("f", "m"), make_edge("src", "f")],
        )

        lines = _workflow_lines(_compile(doc).script)

        assert lines == [
            "f_out = filter_f(ch_files_src)",
            "m_out = map_m(f_out)",
            "// Save output from: Final",
            "save_Final_sink(m_out.collect())",
        ]

    def test_long_chain_in_reverse_document_order(self, make_node, make_edge) -> None:
        from flowcanvas.contracts import GraphDocument

        length = 1200
        filters = [make_node(f"f{i}", {"type": "filter", "text": "x"}) for i in range(length)]
        edges = [make_edge("src", "f0")] + [make_edge(f"f{i - 1}", f"f{i}") for i in range(1, length)]
        doc = GraphDocument(
            nodes=[*reversed(filters), make_node("src", {"type": "file_source", "files": ["a.txt"]})],
            edges=list(reversed(edges)),
        )

        result = _compile(doc)

        lines = _workflow_lines(result.script)
        assert result.diagnostics == ()
        assert len(lines) == length
        assert lines[0] == "f0_out = filter_f0(ch_files_src)"
        assert lines[-1] == f"f{length - 1}_out = filter_f{length - 1}(f{length - 2}_out)"

    def test_outputs_after_everything(self, make_node, make_edge) -> None:
        from flowcanvas.contracts import GraphDocument

        doc = GraphDocument(
            nodes=[
                make_node("src", {"type": "file_source", "files": ["a.txt"]}),
                make_node("early", {"type": "output", "label": "Early"}),
                make_node("f", {"type": "filter"}),
                make_node("late", {"type": "output", "label": "Late"}),
            ],
            edges=[make_edge("src", "early"), make_edge("src", "f"), make_edge("f", "late")],
        )

        result = _compile(doc)

        kinds = [s.is_output for s in result.statements]
        assert kinds == [False, True, True]
        assert [s.node_id for s in result.statements] == ["f", "early", "late"]


class TestStageShapes:
    """Multi-output, collecting and value-input stages."""

    def test_multi_output_destructuring(self, make_node, make_edge) -> None:
        from flowcanvas.contracts import GraphDocument

        doc = GraphDocument(
            nodes=[
                make_node("src", {"type": "file_source", "files": ["r.fastq"]}),
                make_node("qc", {"type": "fastqc"}),
                make_node("report", {"type": "output", "label": "Report"}),
            ],
            edges=[make_edge("src", "qc"), make_edge("qc", "report", source_port="html")],
        )

        lines = _workflow_lines(_compile(doc).script)

        assert lines[0] == "(qc_reads_out, qc_zip, qc_html) = fastqc_qc(ch_files_src)"
        assert lines[-1] == "save_Report_report(qc_html.collect())"

    def test_merge_mixes_and_collects(self, make_node, make_edge) -> None:
        from flowcanvas.contracts import GraphDocument

        doc = GraphDocument(
            nodes=[
                make_node("s1", {"type": "file_source", "files": ["a.txt"]}),
                make_node("s2", {"type": "file_source", "files": ["b.txt"]}),
                make_node("m", {"type": "merge"}),
            ],
            edges=[make_edge("s1", "m"), make_edge("s2", "m")],
        )

        lines = _workflow_lines(_compile(doc).script)

        assert lines == ["m_out = merge_m(ch_files_s1.mix(ch_files_s2).collect())"]

    def test_generic_value_inputs(self, make_node, make_edge) -> None:
        from flowcanvas.contracts import GraphDocument

        doc = GraphDocument(
            nodes=[
                make_node("s1", {"type": "file_source", "files": ["a.txt"]}),
                make_node("s2", {"type": "file_source", "files": ["b.txt"]}),
                make_node("g", {"type": "generic"}),
            ],
            edges=[make_edge("s1", "g"), make_edge("s2", "g", target_port="extra")],
        )

        result = _compile(doc)

        assert _workflow_lines(result.script) == ["g_out = process_g(ch_files_s1, ch_files_s2)"]
        definition = result.definitions[0].text
        assert "val input_in" in definition
        assert "val extra" in definition

    def test_generic_without_inputs(self, make_node) -> None:
        from flowcanvas.contracts import GraphDocument

        result = _compile(GraphDocument(nodes=[make_node("g", {"type": "generic"})]))

        assert result.ok
        assert _workflow_lines(result.script) == ["g_out = process_g()"]

    def test_empty_source(self, make_node, make_edge) -> None:
        from flowcanvas.contracts import GraphDocument

        doc = GraphDocument(
            nodes=[make_node("src", {"type": "file_source"}), make_node("f", {"type": "filter"})],
            edges=[make_edge("src", "f")],
        )

        script = _compile(doc).script

        assert "ch_files_src = Channel.empty()" in script
        assert "params.files_src = []" in script

    def test_node_resources_override_defaults(self, make_node, make_edge) -> None:
        from flowcanvas.contracts import GraphDocument

        doc = GraphDocument(
            nodes=[
                make_node("src", {"type": "file_source", "files": ["a.txt"]}),
                make_node("f", {"type": "filter"}, resources={"cpus": 8, "container": "alpine:3"}),
                make_node("qc", {"type": "fastqc"}),
            ],
            edges=[make_edge("src", "f"), make_edge("src", "qc")],
        )

        script = _compile(doc).script

        assert "cpus 8" in script
        assert "container 'alpine:3'" in script
        assert "container 'biocontainers/fastqc:v0.11.9_cv8'" in script
        assert "memory '2.GB'" in script


class TestSelection:
    """Named-file selection ahead of a stage."""

    def test_operator_selection(self, make_node, make_edge) -> None:
        from flowcanvas.contracts import GraphDocument, StatementKind

        doc = GraphDocument(
            nodes=[
                make_node("src", {"type": "file_source", "files": ["a.txt", "b.txt", "c.txt"]}),
                make_node("f", {"type": "filter", "text": "x", "selected_files": ["a.txt", "b.txt"]}),
            ],
            edges=[make_edge("src", "f")],
        )

        result = _compile(doc)

        assert _workflow_lines(result.script) == [
            "// Select files for filter_f: a.txt, b.txt",
            "f_selected = ch_files_src.filter { file -> file.name == 'a.txt' || file.name == 'b.txt' }",
            "f_out = filter_f(f_selected)",
        ]
        assert result.statements[0].kind is StatementKind.SELECTION

    def test_output_selected_file(self, make_node, make_edge) -> None:
        from flowcanvas.contracts import GraphDocument

        doc = GraphDocument(
            nodes=[
                make_node("src", {"type": "file_source", "files": ["a.txt", "b.txt"]}),
                make_node("out", {"type": "output", "label": "A", "selected_file": "a.txt"}),
            ],
            edges=[make_edge("src", "out")],
        )

        lines = _workflow_lines(_compile(doc).script)

        assert "out_selected = ch_files_src.filter { file -> file.name == 'a.txt' }" in lines
        assert lines[-1] == "save_A_out(out_selected)"


class TestDegradation:
    """Malformed content becomes diagnostics, never exceptions."""

    def test_missing_input_omits_node(self, make_node) -> None:
        from flowcanvas.contracts import DiagnosticKind, GraphDocument

        result = _compile(GraphDocument(nodes=[make_node("f", {"type": "filter"})]))

        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.MISSING_INPUT]
        assert "process filter_f" not in result.script
        assert _workflow_lines(result.script) == []

    def test_ignored_secondary_port(self, make_node, make_edge) -> None:
        from flowcanvas.contracts import DiagnosticKind, GraphDocument

        doc = GraphDocument(
            nodes=[
                make_node("src", {"type": "file_source", "files": ["r.fastq"]}),
                make_node("qc", {"type": "fastqc"}),
                make_node("trim", {"type": "trimmomatic"}),
            ],
            edges=[
                make_edge("src", "qc"),
                make_edge("src", "trim", target_port="reads"),
                make_edge("qc", "trim", source_port="html", target_port="qc_reports"),
            ],
        )

        result = _compile(doc)

        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.IGNORED_INPUT]
        lines = _workflow_lines(result.script)
        assert "(trim_trimmed_reads, trim_unpaired_reads, trim_trim_log) = trimmomatic_trim(ch_files_src)" in lines

    def test_unsupported_stage_placeholder(self, make_node) -> None:
        from flowcanvas.contracts import DiagnosticKind, GraphDocument

        doc = GraphDocument(nodes=[make_node("x1", {"type": "unsupported", "requested": "process:bwa"})])

        result = _compile(doc)

        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.UNSUPPORTED_STAGE]
        assert "// UNSUPPORTED STAGE 'process:bwa' (node x1)" in result.script
        assert _workflow_lines(result.script) == ["unsupported_x1()"]

    def test_unregistered_template_uses_placeholder(self, make_node) -> None:
        from flowcanvas.compiler import GraphCompiler
        from flowcanvas.contracts import DiagnosticKind, GraphDocument
        from flowcanvas.plugins import StageTemplateManager

        doc = GraphDocument(nodes=[make_node("g", {"type": "generic"})])

        result = GraphCompiler(StageTemplateManager()).compile(doc)

        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.UNSUPPORTED_STAGE]
        assert "UNSUPPORTED STAGE 'generic'" in result.script

    def test_two_node_cycle(self, make_node, make_edge) -> None:
        from flowcanvas.contracts import DiagnosticKind, GraphDocument

        doc = GraphDocument(
            nodes=[
                make_node("src", {"type": "file_source", "files": ["a.txt"]}),
                make_node("a", {"type": "map"}),
                make_node("b", {"type": "map"}),
                make_node("side", {"type": "filter"}),
            ],
            edges=[
                make_edge("src", "a"),
                make_edge("a", "b"),
                make_edge("b", "a"),
                make_edge("src", "side"),
            ],
        )

        result = _compile(doc)

        kinds = [d.kind for d in result.diagnostics]
        assert DiagnosticKind.CYCLIC_DEPENDENCY in kinds
        cycle = result.diagnostics_of(DiagnosticKind.CYCLIC_DEPENDENCY)[0]
        assert "a -> b -> a" in cycle.message
        # The unrelated branch survives
        assert _workflow_lines(result.script) == ["side_out = filter_side(ch_files_src)"]
        assert "process map_a" not in result.script
        assert result.script.endswith("}\n")

    def test_self_loop(self, make_node, make_edge) -> None:
        from flowcanvas.contracts import DiagnosticKind, GraphDocument

        doc = GraphDocument(nodes=[make_node("a", {"type": "map"})], edges=[make_edge("a", "a")])

        result = _compile(doc)

        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.CYCLIC_DEPENDENCY]
        assert _workflow_lines(result.script) == []

    def test_dependents_of_cycle_dropped(self, make_node, make_edge) -> None:
        from flowcanvas.contracts import DiagnosticKind, GraphDocument

        doc = GraphDocument(
            nodes=[
                make_node("a", {"type": "map"}),
                make_node("b", {"type": "map"}),
                make_node("sink", {"type": "output"}),
            ],
            edges=[make_edge("a", "b"), make_edge("b", "a"), make_edge("b", "sink")],
        )

        result = _compile(doc)

        assert result.statements == ()
        assert result.diagnostics_of(DiagnosticKind.DROPPED_DEPENDENT)

    def test_diagnostics_logged(self, make_node, capsys) -> None:
        from flowcanvas.contracts import GraphDocument
        from flowcanvas.core.logging import configure_logging

        configure_logging("WARNING", json_output=True)
        _compile(GraphDocument(nodes=[make_node("f", {"type": "filter"})]))

        err = capsys.readouterr().err
        assert "compile_diagnostic" in err
        assert "missing_input" in err

    def test_graph_cycle_logged(self, make_node, make_edge, capsys) -> None:
        from flowcanvas.contracts import GraphDocument
        from flowcanvas.core.logging import configure_logging

        configure_logging("WARNING", json_output=True)
        doc = GraphDocument(
            nodes=[make_node("a", {"type": "map"}), make_node("b", {"type": "map"})],
            edges=[make_edge("a", "b"), make_edge("b", "a")],
        )
        _compile(doc)

        cycle_lines = [line for line in capsys.readouterr().err.splitlines() if "graph_cycle" in line]
        assert len(cycle_lines) == 1
        assert '"a"' in cycle_lines[0]
        assert '"b"' in cycle_lines[0]

    def test_empty_graph(self) -> None:
        from flowcanvas.contracts import GraphDocument

        result = _compile(GraphDocument())

        assert result.ok
        assert result.script.endswith("workflow {\n}\n")
