# tests/compiler/test_compiler_properties.py
"""Property-based tests for compilation over arbitrary graphs.

Graphs are drawn with colliding node ids, stale port names, dangling edges
and cycles. Whatever the input, compilation must not raise and the script
must keep its ordering and naming guarantees.
"""

from typing import Any

from hypothesis import given
from hypothesis import strategies as st

NODE_IDS = ["a", "b", "a-b", "a_b", "a b", "1", "x.y", "x_y", "src", "sink"]
STAGE_TYPES = ["file_source", "filter", "map", "merge", "generic", "fastqc", "trimmomatic", "output"]
SOURCE_PORTS = [None, "out", "output", "zip", "html", "reads_out", "trimmed_reads", "bogus", "node.out"]
TARGET_PORTS = [None, "in", "reads", "qc_reports", "extra"]


def _params(draw: Any, stage_type: str) -> dict[str, Any]:
    params: dict[str, Any] = {"type": stage_type}
    if stage_type == "file_source":
        params["files"] = draw(st.lists(st.sampled_from(["a.txt", "b.txt", "r.fastq"]), max_size=3, unique=True))
    elif stage_type == "filter":
        params["text"] = draw(st.text(max_size=5))
        params["selected_files"] = draw(st.lists(st.sampled_from(["a.txt", "b.txt"]), max_size=2, unique=True))
    elif stage_type == "output":
        params["label"] = draw(st.sampled_from(["Result", "QC Report", "out-1"]))
        params["selected_file"] = draw(st.sampled_from(["all", "a.txt"]))
    return params


@st.composite
def graph_documents(draw: Any) -> Any:
    from flowcanvas.contracts import ChannelEdge, GraphDocument, StageNode

    ids = draw(st.lists(st.sampled_from(NODE_IDS), min_size=1, max_size=8, unique=True))
    nodes = [
        StageNode.model_validate({"id": node_id, "params": _params(draw, draw(st.sampled_from(STAGE_TYPES)))})
        for node_id in ids
    ]
    # Targets may name a node that is not in the document
    endpoints = st.sampled_from([*ids, "ghost"])
    edges = draw(
        st.lists(
            st.builds(
                ChannelEdge,
                source=endpoints,
                source_port=st.sampled_from(SOURCE_PORTS),
                target=endpoints,
                target_port=st.sampled_from(TARGET_PORTS),
            ),
            max_size=12,
        )
    )
    return GraphDocument(nodes=nodes, edges=edges)


def _compile(document: Any) -> Any:
    from flowcanvas.compiler import compile_graph

    return compile_graph(document)


class TestCompilationProperties:
    """Guarantees that hold for every graph."""

    @given(document=graph_documents())
    def test_compiles_without_raising(self, document: Any) -> None:
        result = _compile(document)

        assert result.script.startswith("// Workflow script for workflow\n")
        assert result.script.endswith("}\n")

    @given(document=graph_documents())
    def test_deterministic(self, document: Any) -> None:
        first = _compile(document)
        second = _compile(document)

        assert first.script == second.script
        assert first.diagnostics == second.diagnostics

    @given(document=graph_documents())
    def test_reads_follow_their_producers(self, document: Any) -> None:
        result = _compile(document)
        source_ids = {node.id for node in document.nodes if node.param_type == "file_source"}
        available = {channel.name for channel in result.channels if channel.node_id in source_ids}

        for statement in result.statements:
            for channel in statement.reads:
                assert channel in available, f"{statement.text} reads {channel} before it exists"
            available.update(statement.writes)

    @given(document=graph_documents())
    def test_outputs_are_a_trailing_group(self, document: Any) -> None:
        flags = [statement.is_output for statement in _compile(document).statements]

        assert flags == sorted(flags)

    @given(document=graph_documents())
    def test_names_are_unique(self, document: Any) -> None:
        result = _compile(document)
        channel_names = [channel.name for channel in result.channels]
        process_names = [definition.process_name for definition in result.definitions]

        assert len(channel_names) == len(set(channel_names))
        assert len(process_names) == len(set(process_names))
        assert not set(channel_names) & set(process_names)

    @given(document=graph_documents())
    def test_definitions_match_statements(self, document: Any) -> None:
        result = _compile(document)

        assert {d.node_id for d in result.definitions} == {s.node_id for s in result.statements}
        for definition in result.definitions:
            assert result.script.count(definition.text) == 1
