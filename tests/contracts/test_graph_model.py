# tests/contracts/test_graph_model.py
"""Tests for the graph document model and editor payload conversion."""

import pytest
from pydantic import ValidationError


class TestStageNodeDefaults:
    """Catalog ports and kinds applied when a node declares none."""

    def test_filter_gets_in_and_out(self) -> None:
        from flowcanvas.contracts import StageKind, StageNode

        node = StageNode.model_validate({"id": "f", "params": {"type": "filter", "text": "x"}})

        assert node.kind is StageKind.OPERATOR
        assert [p.name for p in node.inputs] == ["in"]
        assert [p.name for p in node.outputs] == ["out"]

    def test_fastqc_has_three_outputs(self) -> None:
        from flowcanvas.contracts import StageNode

        node = StageNode.model_validate({"id": "qc", "params": {"type": "fastqc"}})

        assert [p.name for p in node.outputs] == ["reads_out", "zip", "html"]

    def test_trimmomatic_ports(self) -> None:
        from flowcanvas.contracts import StageNode

        node = StageNode.model_validate({"id": "trim", "params": {"type": "trimmomatic"}})

        assert [p.name for p in node.inputs] == ["reads", "qc_reports"]
        assert [p.name for p in node.outputs] == ["trimmed_reads", "unpaired_reads", "trim_log"]

    def test_declared_ports_are_kept(self) -> None:
        from flowcanvas.contracts import StageNode

        node = StageNode.model_validate(
            {
                "id": "g",
                "params": {"type": "generic"},
                "inputs": [{"name": "left"}, {"name": "right"}],
                "outputs": [{"name": "result"}],
            }
        )

        assert [p.name for p in node.inputs] == ["left", "right"]
        assert [p.name for p in node.outputs] == ["result"]

    def test_sink_has_no_outputs(self) -> None:
        from flowcanvas.contracts import StageKind, StageNode

        node = StageNode.model_validate({"id": "s", "params": {"type": "output"}})

        assert node.kind is StageKind.SINK
        assert node.outputs == []

    def test_unknown_param_type_rejected(self) -> None:
        from flowcanvas.contracts import StageNode

        with pytest.raises(ValidationError):
            StageNode.model_validate({"id": "x", "kind": "stage", "params": {"type": "bogus"}})

    def test_display_label_falls_back_to_type_and_id(self) -> None:
        from flowcanvas.contracts import StageNode

        node = StageNode.model_validate({"id": "7", "params": {"type": "map"}})

        assert node.display_label == "map_7"

    def test_node_is_frozen(self) -> None:
        from flowcanvas.contracts import StageNode

        node = StageNode.model_validate({"id": "f", "params": {"type": "filter"}})

        with pytest.raises(ValidationError):
            node.label = "changed"  # type: ignore[misc]


class TestGraphDocument:
    """Document-level validation."""

    def test_duplicate_node_ids_rejected(self) -> None:
        from flowcanvas.contracts import GraphDocument

        with pytest.raises(ValidationError, match="Duplicate node id"):
            GraphDocument.model_validate(
                {
                    "nodes": [
                        {"id": "a", "params": {"type": "filter"}},
                        {"id": "a", "params": {"type": "map"}},
                    ]
                }
            )

    def test_empty_document(self) -> None:
        from flowcanvas.contracts import GraphDocument

        doc = GraphDocument()

        assert doc.nodes == []
        assert doc.edges == []

    def test_edge_describe(self) -> None:
        from flowcanvas.contracts import ChannelEdge

        edge = ChannelEdge(source="a", source_port="out", target="b", target_port="in")

        assert edge.describe() == "a.out -> b.in"


class TestEditorPayload:
    """Conversion from the canvas editor's native document."""

    def test_file_input_and_filter(self) -> None:
        from flowcanvas.contracts import FileSourceParams, FilterParams, GraphDocument

        doc = GraphDocument.from_editor_payload(
            {
                "nodes": [
                    {"id": "1", "type": "fileInput", "data": {"files": [{"name": "a.txt"}, "b.txt"]}},
                    {
                        "id": "2",
                        "type": "operator",
                        "data": {
                            "operatorType": "filter",
                            "filterText": "PASS",
                            "filterMode": "startsWith",
                            "filterNegate": True,
                        },
                    },
                ],
                "edges": [{"source": "1", "target": "2", "sourceHandle": "1_out", "targetHandle": "in"}],
            }
        )

        source, operator = doc.nodes
        assert isinstance(source.params, FileSourceParams)
        assert source.params.files == ["a.txt", "b.txt"]
        assert isinstance(operator.params, FilterParams)
        assert operator.params.mode == "startsWith"
        assert operator.params.negate is True
        assert doc.edges[0].source_port == "1_out"

    def test_merge_separator_unescaped(self) -> None:
        from flowcanvas.contracts import GraphDocument, MergeParams

        doc = GraphDocument.from_editor_payload(
            {
                "nodes": [
                    {
                        "id": "m",
                        "type": "operator",
                        "data": {"operatorType": "merge", "mergeJoinSeparator": "\\n---\\n"},
                    }
                ],
                "edges": [],
            }
        )

        params = doc.nodes[0].params
        assert isinstance(params, MergeParams)
        assert params.separator == "\n---\n"

    def test_map_replace_text(self) -> None:
        from flowcanvas.contracts import GraphDocument, MapParams

        doc = GraphDocument.from_editor_payload(
            {
                "nodes": [
                    {
                        "id": "m",
                        "type": "operator",
                        "data": {
                            "operatorType": "map",
                            "mapOperation": "replaceText",
                            "mapReplaceFind": "a",
                            "mapReplaceWith": "b",
                        },
                    }
                ],
            }
        )

        params = doc.nodes[0].params
        assert isinstance(params, MapParams)
        assert params.operation == "replace_text"
        assert (params.find, params.replace) == ("a", "b")

    def test_unknown_types_become_unsupported(self) -> None:
        from flowcanvas.contracts import GraphDocument, UnsupportedParams

        doc = GraphDocument.from_editor_payload(
            {
                "nodes": [
                    {"id": "x", "type": "hologram", "data": {}},
                    {"id": "y", "type": "operator", "data": {"operatorType": "sort"}},
                    {"id": "z", "type": "process", "data": {"processType": "bwa"}},
                ]
            }
        )

        requested = []
        for node in doc.nodes:
            assert isinstance(node.params, UnsupportedParams)
            requested.append(node.params.requested)
        assert requested == ["hologram", "operator:sort", "process:bwa"]

    def test_unknown_filter_mode_passes_through(self) -> None:
        from flowcanvas.contracts import FilterParams, GraphDocument

        doc = GraphDocument.from_editor_payload(
            {
                "nodes": [
                    {
                        "id": "f",
                        "type": "operator",
                        "data": {"operatorType": "filter", "filterMode": "equals", "filterText": "PASS"},
                    }
                ]
            }
        )

        params = doc.nodes[0].params
        assert isinstance(params, FilterParams)
        assert params.text == ""
        assert params.mode == "contains"

    def test_invalid_values_become_placeholder(self) -> None:
        from flowcanvas.contracts import GraphDocument, StageKind, UnsupportedParams

        doc = GraphDocument.from_editor_payload(
            {
                "nodes": [
                    {
                        "id": "t",
                        "type": "process",
                        "data": {"processType": "trimmomatic", "leading": "lots", "minlen": -1},
                    }
                ]
            }
        )

        node = doc.nodes[0]
        assert isinstance(node.params, UnsupportedParams)
        assert node.params.requested == "process with invalid leading, min_len"
        assert node.kind is StageKind.STAGE

    def test_output_display(self) -> None:
        from flowcanvas.contracts import GraphDocument, OutputParams

        doc = GraphDocument.from_editor_payload(
            {
                "nodes": [
                    {
                        "id": "o",
                        "type": "outputDisplay",
                        "data": {"label": "Report", "downloadFormat": "csv", "selectedFileName": "a.txt"},
                    }
                ]
            }
        )

        params = doc.nodes[0].params
        assert isinstance(params, OutputParams)
        assert (params.label, params.download_format, params.selected_file) == ("Report", "csv", "a.txt")

    def test_resources_from_camel_case(self) -> None:
        from flowcanvas.contracts import GraphDocument

        doc = GraphDocument.from_editor_payload(
            {
                "nodes": [
                    {
                        "id": "g",
                        "type": "process",
                        "data": {"processType": "generic", "cpus": 2, "memory": "8.GB", "containerImage": "alpine"},
                    }
                ]
            }
        )

        resources = doc.nodes[0].resources
        assert resources.cpus == 2
        assert resources.memory == "8.GB"
        assert resources.container == "alpine"
        assert resources.time_limit is None

    def test_not_a_mapping_raises(self) -> None:
        from flowcanvas.contracts import GraphDocument, GraphDocumentError

        with pytest.raises(GraphDocumentError):
            GraphDocument.from_editor_payload(["not", "a", "mapping"])

    def test_node_without_id_raises(self) -> None:
        from flowcanvas.contracts import GraphDocument, GraphDocumentError

        with pytest.raises(GraphDocumentError):
            GraphDocument.from_editor_payload({"nodes": [{"type": "fileInput"}]})

    def test_edges_missing_endpoints_are_skipped(self) -> None:
        from flowcanvas.contracts import GraphDocument

        doc = GraphDocument.from_editor_payload(
            {"nodes": [], "edges": [{"source": "a"}, {"source": "a", "target": "b"}]}
        )

        assert len(doc.edges) == 1
