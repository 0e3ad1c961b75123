"""
Reachability and Focus Traversal.

Computes the node sets used by:
- focus mode (full upstream/downstream closure of the selected node)
- keyboard navigation (1-hop neighbours, layout reading order, siblings)
- column lineage highlighting (a path from each source to the select node)
- search over labels and ids
"""

from __future__ import annotations

import logging
from functools import cmp_to_key
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..core.types import ColumnLineage, Edge, FocusMode, LayoutType, Node, NodeType

logger = logging.getLogger(__name__)

SAME_ROW_TOLERANCE = 20.0
VERTICAL_DEPTH_BUCKET = 60.0
HORIZONTAL_DEPTH_BUCKET = 80.0


def _adjacency(edges: Iterable[Edge]) -> Tuple[Dict[str, List[str]], Dict[str, List[str]]]:
    outgoing: Dict[str, List[str]] = {}
    incoming: Dict[str, List[str]] = {}
    for edge in edges:
        outgoing.setdefault(edge.source, []).append(edge.target)
        incoming.setdefault(edge.target, []).append(edge.source)
    return outgoing, incoming


def _closure(node_id: str, adjacency: Dict[str, List[str]]) -> Set[str]:
    visited: Set[str] = set()
    to_visit = [node_id]

    while to_visit:
        current = to_visit.pop()
        if current in visited:
            continue
        visited.add(current)
        for neighbour in adjacency.get(current, []):
            if neighbour not in visited:
                to_visit.append(neighbour)

    visited.discard(node_id)
    return visited


def connected(node_id: str, edges: Iterable[Edge], mode: FocusMode) -> Set[str]:
    """
    Transitive closure from node_id, excluding node_id itself.

    upstream follows edges backward, downstream forward, all is the union.
    Cycles terminate through the visited set.
    """
    outgoing, incoming = _adjacency(edges)
    result: Set[str] = set()
    if mode in (FocusMode.UPSTREAM, FocusMode.ALL):
        result |= _closure(node_id, incoming)
    if mode in (FocusMode.DOWNSTREAM, FocusMode.ALL):
        result |= _closure(node_id, outgoing)
    result.discard(node_id)
    return result


def immediate_neighbors(node_id: str, edges: Iterable[Edge], mode: FocusMode) -> List[str]:
    """Direct predecessors/successors in edge order, without duplicates."""
    found: List[str] = []
    for edge in edges:
        if mode in (FocusMode.UPSTREAM, FocusMode.ALL) and edge.target == node_id:
            candidate = edge.source
        elif mode in (FocusMode.DOWNSTREAM, FocusMode.ALL) and edge.source == node_id:
            candidate = edge.target
        else:
            continue
        if candidate not in found:
            found.append(candidate)
    return found


def focus_set(node_id: str, edges: Iterable[Edge], mode: FocusMode) -> Set[str]:
    """Nodes kept at full opacity in focus mode: the closure plus the origin."""
    return connected(node_id, edges, mode) | {node_id}


def is_edge_in_focus(edge: Edge, focused: Set[str]) -> bool:
    return edge.source in focused and edge.target in focused


# =============================================================================
# Ordering
# =============================================================================

def _reading_order(a: Node, b: Node) -> float:
    if abs(a.y - b.y) < SAME_ROW_TOLERANCE:
        return a.x - b.x
    return a.y - b.y


def sort_layout_order(nodes: Iterable[Node]) -> List[Node]:
    """Rows top to bottom; nodes within 20 units of each other's y read left to right."""
    return sorted(nodes, key=cmp_to_key(_reading_order))


def cycle(ordered: Sequence[Node], current_id: Optional[str], forward: bool) -> Optional[Node]:
    """Next/previous node in ordered, wrapping. Unknown current starts at an end."""
    if not ordered:
        return None
    ids = [node.id for node in ordered]
    if current_id not in ids:
        return ordered[0] if forward else ordered[-1]
    index = ids.index(current_id)
    return ordered[(index + (1 if forward else -1)) % len(ordered)]


def depth_bucket(node: Node, layout: LayoutType) -> int:
    if node.depth is not None:
        return node.depth
    if layout == LayoutType.HORIZONTAL:
        return round(node.x / HORIZONTAL_DEPTH_BUCKET)
    return round(node.y / VERTICAL_DEPTH_BUCKET)


def siblings(nodes: Iterable[Node], current: Node, layout: LayoutType) -> List[Node]:
    """Nodes at the same depth as current, ordered across the layout."""
    depth = depth_bucket(current, layout)
    same_depth = [node for node in nodes if depth_bucket(node, layout) == depth]
    if layout == LayoutType.HORIZONTAL:
        return sorted(same_depth, key=lambda node: node.y)
    return sorted(same_depth, key=lambda node: node.x)


# =============================================================================
# Keyboard navigation
# =============================================================================

class KeyboardNavigator:
    """
    Picks the next node for keyboard moves.

    Connected-node moves remember the last index per (direction, origin) so
    repeated presses walk through all neighbours instead of bouncing.
    """

    def __init__(self):
        self._last_index: Dict[Tuple[str, str], int] = {}

    def reset(self) -> None:
        self._last_index.clear()

    def navigable(
        self,
        nodes: Iterable[Node],
        edges: Sequence[Edge],
        focus_mode: Optional[FocusMode] = None,
        selected_id: Optional[str] = None,
    ) -> List[Node]:
        """Nodes in reading order, restricted to the focus set when focus is on."""
        if focus_mode is None or selected_id is None:
            return sort_layout_order(nodes)
        keep = focus_set(selected_id, edges, focus_mode)
        return sort_layout_order(node for node in nodes if node.id in keep)

    def connected_target(
        self,
        origin_id: str,
        direction: FocusMode,
        edges: Sequence[Edge],
        allowed: Optional[Set[str]] = None,
    ) -> Optional[str]:
        """Cycle through the direct upstream or downstream neighbours of origin."""
        candidates = [
            node_id for node_id in immediate_neighbors(origin_id, edges, direction)
            if allowed is None or node_id in allowed
        ]
        if not candidates:
            return None

        key = (direction.value, origin_id)
        index = (self._last_index.get(key, -1) + 1) % len(candidates)
        self._last_index[key] = index
        return candidates[index]

    def adjacent_target(self, ordered: Sequence[Node], current_id: Optional[str], forward: bool) -> Optional[Node]:
        return cycle(ordered, current_id, forward)

    def sibling_target(
        self,
        nodes: Iterable[Node],
        current: Node,
        layout: LayoutType,
        forward: bool,
    ) -> Optional[Node]:
        target = cycle(siblings(nodes, current, layout), current.id, forward)
        if target is None or target.id == current.id:
            return None
        return target


# =============================================================================
# Column lineage
# =============================================================================

def find_path(source_id: str, target_id: str, edges: Sequence[Edge]) -> Optional[List[str]]:
    """First depth-first path from source to target, not necessarily the shortest."""
    outgoing, _ = _adjacency(edges)
    visited = {source_id}
    stack: List[Tuple[str, List[str]]] = [(source_id, [source_id])]

    while stack:
        current, path = stack.pop()
        if current == target_id:
            return path
        for neighbour in reversed(outgoing.get(current, [])):
            if neighbour not in visited:
                visited.add(neighbour)
                stack.append((neighbour, path + [neighbour]))
    return None


def lineage_for_column(column: str, lineage: Iterable[ColumnLineage]) -> Optional[ColumnLineage]:
    wanted = column.lower()
    for entry in lineage:
        if entry.output_column.lower() == wanted:
            return entry
    return None


def lineage_path(
    sources: Sequence[str],
    nodes: Iterable[Node],
    edges: Sequence[Edge],
) -> Tuple[Set[str], Set[str]]:
    """
    Node and edge ids to highlight for a column's sources.

    Every source is included; nodes on the first path found from each source
    to the select node are added. Edges are highlighted when both endpoints
    are in the node set.
    """
    node_ids: Set[str] = set(sources)
    terminal = next((node for node in nodes if node.type == NodeType.SELECT), None)
    if terminal is None or not sources:
        return node_ids, set()

    for source in sources:
        path = find_path(source, terminal.id, edges)
        if path is not None:
            node_ids.update(path)
        else:
            logger.debug(f"No path from lineage source {source} to {terminal.id}")

    edge_ids = {edge.id for edge in edges if edge.source in node_ids and edge.target in node_ids}
    return node_ids, edge_ids


# =============================================================================
# Search
# =============================================================================

def search(nodes: Iterable[Node], term: str) -> List[Node]:
    """Nodes whose label or id contains term (case-insensitive), in reading order."""
    needle = term.strip().lower()
    if not needle:
        return []
    matches = [node for node in nodes if needle in node.label.lower() or needle in node.id.lower()]
    return sort_layout_order(matches)


class SearchCursor:
    """Cycles through the results of the last search."""

    def __init__(self):
        self.term = ""
        self.results: List[str] = []
        self.index = -1

    def reset(self, term: str = "", results: Optional[Iterable[str]] = None) -> None:
        self.term = term
        self.results = list(results or [])
        self.index = -1

    def next(self) -> Optional[str]:
        if not self.results:
            return None
        self.index = (self.index + 1) % len(self.results)
        return self.results[self.index]

    def previous(self) -> Optional[str]:
        if not self.results:
            return None
        self.index = (self.index - 1) % len(self.results) if self.index >= 0 else len(self.results) - 1
        return self.results[self.index]
