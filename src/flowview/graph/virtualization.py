"""
Virtualization Engine.

Culls nodes and edges outside the viewport so draw cost stays bounded on
large graphs.

Visibility rules:
- the screen rectangle is mapped into graph space and expanded by a margin
  given in screen pixels
- a node is visible iff its box intersects that rectangle
- an edge is visible iff both endpoints are visible
- every culled node is counted against the side of the (unexpanded)
  viewport its centre lies beyond

Small graphs (fewer nodes than the threshold) are never culled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Protocol, Sequence, Set, Tuple

from ..config import VirtualizationSettings
from ..core.geometry import Box, Point, Size
from ..core.scheduling import FrameThrottle, Scheduler, TimerHandle
from ..core.types import Direction, Edge, Node
from ..viewport.camera import CameraState

logger = logging.getLogger(__name__)

INDICATOR_ARROWS = {
    Direction.TOP: "↑",
    Direction.BOTTOM: "↓",
    Direction.LEFT: "←",
    Direction.RIGHT: "→",
}
INDICATOR_INSET = 20.0


def _empty_counts() -> Dict[Direction, int]:
    return {direction: 0 for direction in Direction}


@dataclass(frozen=True)
class VirtualizationResult:
    visible_nodes: Tuple[Node, ...]
    visible_node_ids: FrozenSet[str]
    visible_edges: Tuple[Edge, ...]
    offscreen_counts: Dict[Direction, int] = field(default_factory=_empty_counts)
    total_nodes: int = 0
    total_edges: int = 0

    @property
    def offscreen_total(self) -> int:
        return sum(self.offscreen_counts.values())


@dataclass(frozen=True)
class OffscreenIndicator:
    """Badge telling the user how many nodes lie beyond one viewport edge."""

    direction: Direction
    count: int
    position: Point
    size: Size

    @property
    def label(self) -> str:
        return f"{INDICATOR_ARROWS[self.direction]} {self.count}"


def viewport_rect(camera: CameraState, viewport: Size) -> Box:
    """The screen rectangle expressed in graph coordinates."""
    return camera.box_to_graph(Box(0.0, 0.0, viewport.width, viewport.height))


def offscreen_direction(node: Node, rect: Box) -> Optional[Direction]:
    """Side of rect that node's centre lies beyond, None when inside."""
    center = node.center
    if rect.contains_point(center):
        return None

    left = rect.x - center.x
    right = center.x - rect.right
    top = rect.y - center.y
    bottom = center.y - rect.bottom

    if max(left, right) > max(top, bottom):
        return Direction.LEFT if left > right else Direction.RIGHT
    return Direction.TOP if top > bottom else Direction.BOTTOM


def compute_visible(
    camera: CameraState,
    viewport: Size,
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    margin: float,
    threshold: int = 1,
) -> VirtualizationResult:
    """
    Pure visibility computation for one camera.

    When fewer than threshold nodes are given everything is visible.
    """
    if len(nodes) < threshold:
        return VirtualizationResult(
            visible_nodes=tuple(nodes),
            visible_node_ids=frozenset(node.id for node in nodes),
            visible_edges=tuple(edges),
            total_nodes=len(nodes),
            total_edges=len(edges),
        )

    rect = viewport_rect(camera, viewport)
    expanded = rect.expand(margin / camera.scale)

    visible: List[Node] = []
    visible_ids: Set[str] = set()
    counts = _empty_counts()

    for node in nodes:
        if node.box.intersects(expanded):
            visible.append(node)
            visible_ids.add(node.id)
            continue
        direction = offscreen_direction(node, rect)
        if direction is not None:
            counts[direction] += 1

    visible_edges = tuple(
        edge for edge in edges if edge.source in visible_ids and edge.target in visible_ids
    )

    return VirtualizationResult(
        visible_nodes=tuple(visible),
        visible_node_ids=frozenset(visible_ids),
        visible_edges=visible_edges,
        offscreen_counts=counts,
        total_nodes=len(nodes),
        total_edges=len(edges),
    )


def build_indicators(result: VirtualizationResult, viewport: Size) -> List[OffscreenIndicator]:
    """Screen-space badges for every side with culled nodes."""
    counts = result.offscreen_counts
    width, height = viewport
    placements = {
        Direction.TOP: (Point(width / 2, INDICATOR_INSET), Size(60.0, 20.0)),
        Direction.BOTTOM: (Point(width / 2, height - INDICATOR_INSET), Size(60.0, 20.0)),
        Direction.LEFT: (Point(INDICATOR_INSET, height / 2), Size(40.0, 20.0)),
        Direction.RIGHT: (Point(width - INDICATOR_INSET, height / 2), Size(40.0, 20.0)),
    }
    indicators = []
    for direction, (position, size) in placements.items():
        if counts.get(direction, 0) > 0:
            indicators.append(OffscreenIndicator(direction, counts[direction], position, size))
    return indicators


class VirtualizationHost(Protocol):
    """What the engine needs from its owner: inputs plus materialization hooks."""

    @property
    def camera_state(self) -> CameraState: ...

    @property
    def viewport_size(self) -> Size: ...

    def render_nodes(self) -> List[Node]: ...

    def render_edges(self) -> List[Edge]: ...

    def materialize_node(self, node: Node) -> None: ...

    def materialize_edge(self, edge: Edge) -> None: ...

    def dematerialize(self, element_id: str) -> None: ...

    def visibility_changed(self, result: VirtualizationResult, indicators: List[OffscreenIndicator]) -> None: ...


class VirtualizationEngine:
    """
    Keeps the materialized scene in sync with the visible set.

    Node additions/removals are diffed; edges are rebuilt wholesale whenever
    any node enters or leaves. Recomputation during continuous pan/zoom goes
    through a one-frame throttle.
    """

    def __init__(
        self,
        host: VirtualizationHost,
        scheduler: Scheduler,
        settings: Optional[VirtualizationSettings] = None,
    ):
        self.host = host
        self.scheduler = scheduler
        self.settings = settings or VirtualizationSettings()
        self.enabled = self.settings.enabled
        self.result: Optional[VirtualizationResult] = None
        self.indicators: List[OffscreenIndicator] = []

        self._rendered_nodes: Set[str] = set()
        self._rendered_edges: List[str] = []
        self._throttle = FrameThrottle(scheduler, self._run, self.settings.frame_interval_ms)
        self._deferred: Optional[TimerHandle] = None

    @property
    def materialized_node_ids(self) -> FrozenSet[str]:
        return frozenset(self._rendered_nodes)

    @property
    def materialized_edge_ids(self) -> Tuple[str, ...]:
        return tuple(self._rendered_edges)

    def is_materialized(self, node_id: str) -> bool:
        return node_id in self._rendered_nodes

    # =========================================================================
    # Triggers
    # =========================================================================

    def request_update(self) -> None:
        """Throttled recomputation for continuous camera motion."""
        if self.enabled:
            self._throttle()

    def update_now(self) -> Optional[VirtualizationResult]:
        """Unthrottled recomputation (after fit or full re-render)."""
        if not self.enabled:
            return None
        self._throttle.flush()
        return self.result

    def rematerialize(self, deferred: bool = False) -> None:
        """
        Full re-render: draw every node and edge, then cull.

        After a graph reload the cull is deferred by one frame so freshly
        materialized geometry settles first; otherwise it runs immediately.
        """
        self.cancel()
        self._clear_scene()
        self._materialize_all()
        if not self.enabled:
            return
        if deferred:
            self._deferred = self.scheduler.call_later(
                self.settings.frame_interval_ms, self._run_deferred
            )
        else:
            self.update_now()

    def set_enabled(self, enabled: bool) -> None:
        if enabled == self.enabled:
            return
        self.enabled = enabled
        logger.debug(f"Virtualization {'enabled' if enabled else 'disabled'}")

        if enabled:
            self.update_now()
            return

        self.cancel()
        self._materialize_all()
        nodes = self.host.render_nodes()
        edges = self.host.render_edges()
        self.result = compute_visible(
            self.host.camera_state, self.host.viewport_size, nodes, edges, 0.0, len(nodes) + 1
        )
        self.indicators = []
        self.host.visibility_changed(self.result, [])

    def cancel(self) -> None:
        self._throttle.cancel()
        if self._deferred is not None:
            self._deferred.cancel()
            self._deferred = None

    @property
    def has_pending(self) -> bool:
        return self._throttle.has_pending or self._deferred is not None

    def reset(self) -> None:
        """Forget the materialized scene without touching the surface."""
        self.cancel()
        self._rendered_nodes.clear()
        self._rendered_edges.clear()
        self.result = None
        self.indicators = []

    # =========================================================================
    # Internals
    # =========================================================================

    def _run_deferred(self) -> None:
        self._deferred = None
        self.update_now()

    def _run(self) -> None:
        if not self.enabled:
            return

        nodes = self.host.render_nodes()
        edges = self.host.render_edges()
        result = compute_visible(
            self.host.camera_state,
            self.host.viewport_size,
            nodes,
            edges,
            self.settings.margin,
            self.settings.threshold,
        )

        removed = [node_id for node_id in self._rendered_nodes if node_id not in result.visible_node_ids]
        added = [node for node in result.visible_nodes if node.id not in self._rendered_nodes]

        for node_id in removed:
            self.host.dematerialize(node_id)
            self._rendered_nodes.discard(node_id)
        for node in added:
            self.host.materialize_node(node)
            self._rendered_nodes.add(node.id)

        if added or removed:
            self._rebuild_edges(result.visible_edges)
            logger.debug(
                f"Virtualization: +{len(added)} -{len(removed)} nodes, "
                f"{len(result.visible_nodes)}/{result.total_nodes} visible"
            )

        self.result = result
        self.indicators = build_indicators(result, self.host.viewport_size)
        self.host.visibility_changed(result, self.indicators)

    def _rebuild_edges(self, edges: Sequence[Edge]) -> None:
        for edge_id in self._rendered_edges:
            self.host.dematerialize(edge_id)
        self._rendered_edges = []
        for edge in edges:
            self.host.materialize_edge(edge)
            self._rendered_edges.append(edge.id)

    def _materialize_all(self) -> None:
        for node in self.host.render_nodes():
            if node.id not in self._rendered_nodes:
                self.host.materialize_node(node)
                self._rendered_nodes.add(node.id)
        self._rebuild_edges(self.host.render_edges())

    def _clear_scene(self) -> None:
        for node_id in self._rendered_nodes:
            self.host.dematerialize(node_id)
        for edge_id in self._rendered_edges:
            self.host.dematerialize(edge_id)
        self._rendered_nodes.clear()
        self._rendered_edges = []
