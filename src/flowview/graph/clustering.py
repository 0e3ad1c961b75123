"""
Clustering Engine.

Above a node-count threshold, related nodes are grouped into clusters.
Each collapsed cluster is drawn as a single synthetic node; edges touching
its members are rewritten to the cluster id. Expanded clusters leave their
members in place.

Expanded flags survive re-clustering: clusters are matched to their prior
incarnation by id.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from ..config import ClusteringSettings
from ..core.geometry import Box
from ..core.types import Edge, Node, NodeType

logger = logging.getLogger(__name__)

CLUSTER_ID_PREFIX = "cluster-"

# Group name per node type; anything unlisted lands in "other"
TYPE_GROUPS: Dict[NodeType, str] = {
    NodeType.TABLE: "tables",
    NodeType.JOIN: "joins",
    NodeType.FILTER: "filters",
    NodeType.AGGREGATE: "aggregates",
    NodeType.SORT: "sorts",
    NodeType.CTE: "ctes",
    NodeType.SUBQUERY: "subqueries",
    NodeType.WINDOW: "windows",
    NodeType.UNION: "unions",
    NodeType.CASE: "cases",
}

GROUP_TITLES: Dict[str, str] = {
    "tables": "Tables",
    "joins": "Joins",
    "filters": "Filters",
    "aggregates": "Aggregates",
    "sorts": "Sorts",
    "ctes": "CTEs",
    "subqueries": "Subqueries",
    "windows": "Window Functions",
    "unions": "Unions",
    "cases": "Case Statements",
    "other": "Other",
}


class GroupingStrategy(Protocol):
    """Partitions nodes into named candidate clusters."""

    def group(self, nodes: Sequence[Node]) -> Dict[str, List[Node]]: ...

    def label(self, group: str, count: int) -> str: ...


class TypeGroupingStrategy:
    """Groups nodes by operator type."""

    def group(self, nodes: Sequence[Node]) -> Dict[str, List[Node]]:
        groups: Dict[str, List[Node]] = {}
        for node in nodes:
            groups.setdefault(TYPE_GROUPS.get(node.type, "other"), []).append(node)
        return groups

    def label(self, group: str, count: int) -> str:
        return f"{GROUP_TITLES.get(group, group.title())} ({count})"


@dataclass
class NodeCluster:
    """
    A group of nodes that can be collapsed into one placeholder.

    node_ids is kept while collapsed so expanding never loses membership.
    """
    id: str
    group: str
    label: str
    node_ids: Tuple[str, ...]
    box: Box
    expanded: bool = False

    def contains(self, node_id: str) -> bool:
        return node_id in self.node_ids

    def as_node(self) -> Node:
        return Node(
            id=self.id,
            type=NodeType.CLUSTER,
            label=self.label,
            description="Click to expand",
            x=self.box.x,
            y=self.box.y,
            width=self.box.width,
            height=self.box.height,
        )


@dataclass
class ClusteredGraph:
    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)


def cluster_bounds(nodes: Sequence[Node], padding: float) -> Box:
    if not nodes:
        return Box(0.0, 0.0, 200.0, 100.0)
    min_x = min(node.box.x for node in nodes)
    min_y = min(node.box.y for node in nodes)
    max_x = max(node.box.right for node in nodes)
    max_y = max(node.box.bottom for node in nodes)
    return Box(min_x, min_y, max_x - min_x + padding, max_y - min_y + padding)


def rewrite_edges(edges: Iterable[Edge], owner: Dict[str, str]) -> List[Edge]:
    """
    Point edges at collapsed cluster ids.

    Self-loops created by the rewrite are dropped and parallel edges are
    collapsed to the first occurrence of each (source, target) pair.
    """
    rewritten: Dict[str, Edge] = {}
    for edge in edges:
        source = owner.get(edge.source, edge.source)
        target = owner.get(edge.target, edge.target)
        if source == target and (edge.source in owner or edge.target in owner):
            continue

        key = f"{source}->{target}"
        if key in rewritten:
            continue
        if source == edge.source and target == edge.target:
            rewritten[key] = edge
        else:
            rewritten[key] = edge.rewired(source, target)
    return list(rewritten.values())


class ClusterEngine:
    """Builds clusters for a graph and keeps their expanded flags."""

    def __init__(
        self,
        settings: Optional[ClusteringSettings] = None,
        strategy: Optional[GroupingStrategy] = None,
    ):
        self.settings = settings or ClusteringSettings()
        self.strategy = strategy or TypeGroupingStrategy()
        self._clusters: Dict[str, NodeCluster] = {}

    @property
    def clusters(self) -> List[NodeCluster]:
        return list(self._clusters.values())

    @property
    def active(self) -> bool:
        return bool(self._clusters)

    def should_cluster(self, node_count: int) -> bool:
        return self.settings.enabled and node_count >= self.settings.threshold

    def get(self, cluster_id: str) -> Optional[NodeCluster]:
        return self._clusters.get(cluster_id)

    def is_cluster(self, node_id: str) -> bool:
        return node_id in self._clusters

    def cluster_for_node(self, node_id: str) -> Optional[NodeCluster]:
        for cluster in self._clusters.values():
            if cluster.contains(node_id):
                return cluster
        return None

    def reset(self) -> None:
        self._clusters = {}

    # =========================================================================
    # Build
    # =========================================================================

    def cluster(
        self,
        nodes: Sequence[Node],
        edges: Sequence[Edge],
        prior: Optional[Iterable[NodeCluster]] = None,
    ) -> ClusteredGraph:
        """
        Replace collapsed groups with placeholder nodes.

        prior defaults to the current clusters; their expanded flags are
        carried over by id. Below the threshold the input is returned
        unchanged and cluster state is cleared.
        """
        if not self.should_cluster(len(nodes)):
            self._clusters = {}
            return ClusteredGraph(list(nodes), list(edges))

        previous = {cluster.id: cluster for cluster in (self.clusters if prior is None else prior)}
        clusters: Dict[str, NodeCluster] = {}
        assigned: set[str] = set()

        for group, members in self.strategy.group(nodes).items():
            members = [node for node in members if node.id not in assigned]
            if not members:
                continue
            assigned.update(node.id for node in members)

            cluster_id = f"{CLUSTER_ID_PREFIX}{group}"
            earlier = previous.get(cluster_id)
            clusters[cluster_id] = NodeCluster(
                id=cluster_id,
                group=group,
                label=self.strategy.label(group, len(members)),
                node_ids=tuple(node.id for node in members),
                box=cluster_bounds(members, self.settings.padding),
                expanded=earlier.expanded if earlier is not None else self.settings.default_expanded,
            )

        self._clusters = clusters
        return self.project(nodes, edges)

    def project(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> ClusteredGraph:
        """Apply the current expanded/collapsed flags to a raw graph."""
        owner: Dict[str, str] = {}
        collapsed = [cluster for cluster in self._clusters.values() if not cluster.expanded]
        for cluster in collapsed:
            for node_id in cluster.node_ids:
                owner[node_id] = cluster.id

        if not owner:
            return ClusteredGraph(list(nodes), list(edges))

        shown = [node for node in nodes if node.id not in owner]
        shown.extend(cluster.as_node() for cluster in collapsed)
        result = ClusteredGraph(shown, rewrite_edges(edges, owner))
        logger.debug(
            f"Clustered {len(nodes)} nodes into {len(result.nodes)} "
            f"({len(collapsed)} collapsed clusters)"
        )
        return result

    # =========================================================================
    # Expand / collapse
    # =========================================================================

    def _set_expanded(self, cluster_id: str, expanded: bool) -> bool:
        cluster = self._clusters.get(cluster_id)
        if cluster is None:
            return False
        if cluster.expanded != expanded:
            self._clusters[cluster_id] = replace(cluster, expanded=expanded)
            logger.debug(f"Cluster {cluster_id} {'expanded' if expanded else 'collapsed'}")
        return True

    def expand(self, cluster_id: str) -> bool:
        return self._set_expanded(cluster_id, True)

    def collapse(self, cluster_id: str) -> bool:
        return self._set_expanded(cluster_id, False)

    def toggle(self, cluster_id: str) -> Optional[bool]:
        """Flip one cluster. Returns its new expanded flag, None if unknown."""
        cluster = self._clusters.get(cluster_id)
        if cluster is None:
            return None
        self._set_expanded(cluster_id, not cluster.expanded)
        return not cluster.expanded

    def expand_all(self) -> None:
        for cluster_id in list(self._clusters):
            self._set_expanded(cluster_id, True)

    def collapse_all(self) -> None:
        for cluster_id in list(self._clusters):
            self._set_expanded(cluster_id, False)

    def expanded_flags(self) -> Dict[str, bool]:
        return {cluster_id: cluster.expanded for cluster_id, cluster in self._clusters.items()}
