# src/flowcanvas/core/graph.py
"""Pipeline graph operations for compilation.

Uses NetworkX for graph operations including:
- Incoming/outgoing edge lookup in document order
- Cycle detection and description
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, cast

import networkx as nx
import yaml
from networkx import MultiDiGraph

from flowcanvas.contracts.errors import GraphDocumentError
from flowcanvas.contracts.graph import ChannelEdge, GraphDocument, StageNode


class PipelineGraph:
    """Read-only view of a graph document.

    Wraps a NetworkX MultiDiGraph built once from the document. Discovery
    order is document order for both nodes and edges. Edges that reference
    unknown nodes are kept aside as dangling rather than inventing nodes.
    """

    def __init__(self, document: GraphDocument) -> None:
        self._document = document
        self._graph: MultiDiGraph[str] = nx.MultiDiGraph()
        self._dangling: list[ChannelEdge] = []

        for index, node in enumerate(document.nodes):
            self._graph.add_node(node.id, info=node, order=index)
        for index, edge in enumerate(document.edges):
            if self._graph.has_node(edge.source) and self._graph.has_node(edge.target):
                self._graph.add_edge(edge.source, edge.target, key=index, edge=edge)
            else:
                self._dangling.append(edge)

    @property
    def document(self) -> GraphDocument:
        return self._document

    @property
    def node_count(self) -> int:
        """Number of nodes in the graph."""
        return self._graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        """Number of edges between known nodes."""
        return self._graph.number_of_edges()

    def has_node(self, node_id: str) -> bool:
        return self._graph.has_node(node_id)

    def get_node(self, node_id: str) -> StageNode:
        """Get a node by id.

        Raises:
            KeyError: If node doesn't exist
        """
        if not self._graph.has_node(node_id):
            raise KeyError(f"Node not found: {node_id}")
        return cast(StageNode, self._graph.nodes[node_id]["info"])

    def nodes(self) -> list[StageNode]:
        """All nodes in discovery order."""
        return list(self._document.nodes)

    def incoming(self, node_id: str) -> list[ChannelEdge]:
        """Edges into a node, in document order."""
        edges = self._graph.in_edges(node_id, keys=True, data="edge")
        return [edge for _, _, _, edge in sorted(edges, key=lambda e: e[2])]

    def outgoing(self, node_id: str) -> list[ChannelEdge]:
        """Edges out of a node, in document order."""
        edges = self._graph.out_edges(node_id, keys=True, data="edge")
        return [edge for _, _, _, edge in sorted(edges, key=lambda e: e[2])]

    def dangling_edges(self) -> list[ChannelEdge]:
        """Edges whose source or target is not a node of the document."""
        return list(self._dangling)

    def is_acyclic(self) -> bool:
        return nx.is_directed_acyclic_graph(self._graph)

    def find_cycle(self) -> list[str] | None:
        """Node ids along one cycle, or None if the graph is acyclic."""
        try:
            cycle = nx.find_cycle(self._graph)
        except nx.NetworkXNoCycle:
            return None
        return [u for u, *_ in cycle]


def load_graph_document(path: Path, *, editor_format: bool = False) -> GraphDocument:
    """Read a graph document from a JSON or YAML file.

    Args:
        path: Document path; ``.json`` is parsed as JSON, anything else as YAML
        editor_format: The file holds the canvas editor's native payload

    Raises:
        FileNotFoundError: If the file doesn't exist
        GraphDocumentError: If the file is not a node/edge mapping
        ValidationError: If nodes or edges fail model validation
    """
    if not path.exists():
        raise FileNotFoundError(f"Graph document not found: {path}")

    text = path.read_text(encoding="utf-8")
    try:
        raw: Any = json.loads(text) if path.suffix.lower() == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise GraphDocumentError(f"Cannot parse {path}: {e}") from e

    if editor_format:
        return GraphDocument.from_editor_payload(raw)
    if not isinstance(raw, dict):
        raise GraphDocumentError(f"{path} must contain a mapping with 'nodes' and 'edges'")
    if not isinstance(raw.get("nodes", []), list) or not isinstance(raw.get("edges", []), list):
        raise GraphDocumentError(f"{path}: 'nodes' and 'edges' must be lists")
    return GraphDocument.model_validate(raw)
