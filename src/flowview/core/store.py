"""
Graph Store.

In-memory arena of nodes keyed by id plus the edge list delivered by the
parsing collaborator. Every component reads and writes nodes through the
store instead of holding private references, so a reload never leaves a
component pointing at a stale node object.

A networkx DiGraph mirrors the edge list as an adjacency index for
predecessor/successor queries.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterator, List, Optional

import networkx as nx

from ..errors import InvalidGraphError
from .types import ColumnLineage, Edge, Node, ParseError

logger = logging.getLogger(__name__)


class GraphStore:
    """
    Node arena plus edge list for the currently loaded query.

    Provides:
    - O(1) node lookup by id
    - Direct predecessor/successor queries
    - Auxiliary load data (parse error, column lineage)
    """

    def __init__(self):
        self._nodes: Dict[str, Node] = {}
        self._edges: List[Edge] = []
        self._graph = nx.DiGraph()
        self.parse_error: Optional[ParseError] = None
        self.column_lineage: List[ColumnLineage] = []

    # =========================================================================
    # Loading
    # =========================================================================

    def load(
        self,
        nodes: List[Node],
        edges: List[Edge],
        parse_error: Optional[ParseError] = None,
        column_lineage: Optional[List[ColumnLineage]] = None,
    ) -> None:
        """Replace the whole graph. Edges with unknown endpoints are dropped."""
        seen: Dict[str, Node] = {}
        for node in nodes:
            if node.id in seen:
                raise InvalidGraphError(f"Duplicate node id: {node.id}")
            seen[node.id] = node

        self._nodes = seen
        self._edges = []
        self._graph = nx.DiGraph()
        self._graph.add_nodes_from(self._nodes)

        skipped = 0
        for edge in edges:
            if edge.source not in self._nodes or edge.target not in self._nodes:
                skipped += 1
                continue
            self._edges.append(edge)
            self._graph.add_edge(edge.source, edge.target)

        if skipped:
            logger.debug(f"Dropped {skipped} edges referencing unknown nodes")

        self.parse_error = parse_error
        self.column_lineage = list(column_lineage or [])
        logger.debug(f"Loaded graph: {len(self._nodes)} nodes, {len(self._edges)} edges")

    def load_from_dict(self, data: Dict[str, Any]) -> None:
        """
        Load a graph payload from the parsing collaborator.

        Expected format:
        {
            "nodes": [{"id": "...", "type": "table", "x": 0, ...}, ...],
            "edges": [{"id": "...", "source": "...", "target": "..."}, ...],
            "error": {"message": "...", "line": 3} | "...",  # optional
            "columnLineage": [{"outputColumn": "...",
                               "sources": ["node-id" | {"nodeId": "..."}]}]
        }
        """
        nodes = [Node.model_validate(raw) for raw in data.get("nodes", [])]

        edges: List[Edge] = []
        for index, raw in enumerate(data.get("edges", [])):
            raw = dict(raw)
            raw.setdefault("id", f"edge-{index}")
            edges.append(Edge.model_validate(raw))

        error = data.get("error")
        if isinstance(error, str):
            error = {"message": error}
        parse_error = ParseError.model_validate(error) if error else None

        lineage: List[ColumnLineage] = []
        for entry in data.get("columnLineage", data.get("column_lineage", [])):
            sources = []
            for source in entry.get("sources", []):
                node_id = source.get("nodeId") if isinstance(source, dict) else source
                if node_id:
                    sources.append(node_id)
            output = entry.get("outputColumn", entry.get("output_column", ""))
            lineage.append(ColumnLineage(output_column=output, sources=sources))

        self.load(nodes, edges, parse_error, lineage)

    def load_from_json(self, json_str: str) -> None:
        """Load graph from JSON string."""
        self.load_from_dict(json.loads(json_str))

    def clear(self) -> None:
        self.load([], [])

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a node by ID."""
        return self._nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def find_edge(self, edge_id: str) -> Optional[Edge]:
        for edge in self._edges:
            if edge.id == edge_id:
                return edge
        return None

    @property
    def nodes(self) -> List[Node]:
        return list(self._nodes.values())

    @property
    def edges(self) -> List[Edge]:
        return list(self._edges)

    def iter_nodes(self) -> Iterator[Node]:
        return iter(self._nodes.values())

    def find_node_of_type(self, node_type: str) -> Optional[Node]:
        """First node of the given type in load order."""
        for node in self._nodes.values():
            if node.type == node_type:
                return node
        return None

    # =========================================================================
    # Adjacency
    # =========================================================================

    def predecessors(self, node_id: str) -> List[str]:
        if node_id not in self._graph:
            return []
        return list(self._graph.predecessors(node_id))

    def successors(self, node_id: str) -> List[str]:
        if node_id not in self._graph:
            return []
        return list(self._graph.successors(node_id))

    def neighbors(self, node_id: str) -> set[str]:
        """The node itself plus its direct predecessors and successors."""
        if node_id not in self._graph:
            return set()
        return {node_id, *self._graph.predecessors(node_id), *self._graph.successors(node_id)}

    # =========================================================================
    # Mutation
    # =========================================================================

    def move_node(self, node_id: str, x: float, y: float) -> bool:
        """Set a node position. Returns False for a stale id."""
        node = self._nodes.get(node_id)
        if node is None:
            return False
        node.move_to(x, y)
        return True

    def positions(self) -> Dict[str, tuple[float, float]]:
        return {node_id: (node.x, node.y) for node_id, node in self._nodes.items()}

    # =========================================================================
    # Statistics
    # =========================================================================

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def stats(self) -> Dict[str, Any]:
        """Get graph statistics."""
        nodes_by_type: Dict[str, int] = {}
        for node in self._nodes.values():
            nodes_by_type[node.type.value] = nodes_by_type.get(node.type.value, 0) + 1

        return {
            "total_nodes": self.node_count,
            "total_edges": self.edge_count,
            "nodes_by_type": nodes_by_type,
            "containers": sum(1 for n in self._nodes.values() if n.is_container),
            "has_error": self.parse_error is not None,
        }
