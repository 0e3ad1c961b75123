"""
Nested Viewport Manager.

A container node (CTE or subquery with a nested sub-graph) can be opened
into a floating panel. Each panel has:
- a CloudOffset placing it relative to its anchor node, and
- a CloudViewState whose camera pans/zooms the sub-graph inside the panel.

Mapping a sub-graph point to the screen composes three transforms:

    screen = primary(anchor + offset + content_inset + nested(local))

Views are created lazily on first open and retained when the panel is
closed, so reopening restores the previous nested pan/zoom.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ..config import WHEEL_ZOOM_IN, WHEEL_ZOOM_OUT, NestedViewportSettings
from ..core.geometry import Box, Point, Size, curve_between, facing_anchors
from ..core.store import GraphStore
from ..core.types import Node
from ..errors import UnknownNodeError
from .camera import Camera, CameraState

logger = logging.getLogger(__name__)

# Content size reported for a container whose children carry no geometry
EMPTY_CONTENT_SIZE = Size(120.0, 100.0)
CONTENT_MARGIN = 10.0


@dataclass(frozen=True)
class CloudOffset:
    """Panel position relative to the anchor node's top-left corner."""

    offset_x: float
    offset_y: float

    def moved(self, dx: float, dy: float) -> "CloudOffset":
        return CloudOffset(self.offset_x + dx, self.offset_y + dy)


@dataclass
class CloudViewState:
    camera: Camera
    dragging: bool = False


@dataclass
class PanelGeometry:
    """Resolved geometry of one open panel, in primary graph space."""

    node_id: str
    box: Box
    content_origin: Point
    connector: Tuple[Point, ...] = field(default_factory=tuple)


class NestedViewportManager:
    """Per-container cameras and panel offsets."""

    def __init__(self, store: GraphStore, settings: Optional[NestedViewportSettings] = None):
        self.store = store
        self.settings = settings or NestedViewportSettings()
        self._views: Dict[str, CloudViewState] = {}
        self._offsets: Dict[str, CloudOffset] = {}

    def reset(self) -> None:
        """Drop every view and offset; called on graph reload."""
        self._views.clear()
        self._offsets.clear()

    # =========================================================================
    # Open / close
    # =========================================================================

    def _container(self, node_id: str) -> Node:
        node = self.store.get_node(node_id)
        if node is None:
            raise UnknownNodeError(node_id)
        return node

    def open_container(self, node_id: str) -> Optional[CloudViewState]:
        """Open a container panel. Idempotent; returns None for non-containers."""
        node = self._container(node_id)
        if not node.is_container:
            logger.debug(f"Ignoring open on non-container node {node_id}")
            return None

        node.expanded = True
        view = self._views.get(node_id)
        if view is None:
            view = CloudViewState(Camera(self.settings.min_scale, self.settings.max_scale))
            self._views[node_id] = view
            logger.debug(f"Created nested view for {node_id}")
        return view

    def close_container(self, node_id: str) -> None:
        node = self._container(node_id)
        node.expanded = False
        view = self._views.get(node_id)
        if view is not None:
            view.dragging = False

    def toggle_container(self, node_id: str) -> bool:
        """Flip a container open/closed. Returns the new expanded flag."""
        node = self._container(node_id)
        if node.has_open_panel:
            self.close_container(node_id)
            return False
        return self.open_container(node_id) is not None

    def view(self, node_id: str) -> Optional[CloudViewState]:
        return self._views.get(node_id)

    def open_containers(self) -> List[Node]:
        return [node for node in self.store.iter_nodes() if node.has_open_panel]

    def containers(self) -> List[Node]:
        return [node for node in self.store.iter_nodes() if node.is_container]

    # =========================================================================
    # Panel geometry
    # =========================================================================

    def content_size(self, node: Node) -> Size:
        """Extent of the laid-out sub-graph inside the panel."""
        if not node.children:
            return EMPTY_CONTENT_SIZE
        right = max(child.box.right for child in node.children)
        bottom = max(child.box.bottom for child in node.children)
        return Size(max(right, 0.0) + CONTENT_MARGIN, max(bottom, 0.0) + CONTENT_MARGIN)

    def panel_size(self, node: Node) -> Size:
        content = self.content_size(node)
        padding = self.settings.padding
        return Size(
            content.width + padding * 2,
            content.height + padding * 2 + self.settings.header_height,
        )

    def default_offset(self, node: Node) -> CloudOffset:
        """Panel to the left of its anchor, vertically centred on it."""
        size = self.panel_size(node)
        return CloudOffset(
            -size.width - self.settings.gap,
            -(size.height - self.settings.node_height) / 2,
        )

    def offset_for(self, node_id: str) -> CloudOffset:
        override = self._offsets.get(node_id)
        if override is not None:
            return override
        return self.default_offset(self._container(node_id))

    def panel_box(self, node_id: str) -> Optional[Box]:
        """Panel rectangle in primary graph space, None when the panel is closed."""
        node = self.store.get_node(node_id)
        if node is None or not node.has_open_panel:
            return None
        offset = self.offset_for(node_id)
        size = self.panel_size(node)
        return Box(node.x + offset.offset_x, node.y + offset.offset_y, size.width, size.height)

    def panel_boxes(self) -> Dict[str, Box]:
        boxes: Dict[str, Box] = {}
        for node in self.open_containers():
            box = self.panel_box(node.id)
            if box is not None:
                boxes[node.id] = box
        return boxes

    def content_origin(self, node_id: str) -> Optional[Point]:
        box = self.panel_box(node_id)
        if box is None:
            return None
        return Point(box.x + self.settings.padding, box.y + self.settings.header_height)

    def connector(self, node_id: str) -> Tuple[Point, ...]:
        """
        Curve from the panel to its anchor node, leaving and entering on the
        facing sides. Recomputed on every call, never cached.
        """
        box = self.panel_box(node_id)
        if box is None:
            return ()
        node = self._container(node_id)
        anchor = Box(node.x, node.y, self.settings.node_width, self.settings.node_height)
        start, end, horizontal = facing_anchors(box, anchor)
        return curve_between(start, end, horizontal)

    def geometry(self, node_id: str) -> Optional[PanelGeometry]:
        box = self.panel_box(node_id)
        origin = self.content_origin(node_id)
        if box is None or origin is None:
            return None
        return PanelGeometry(node_id, box, origin, self.connector(node_id))

    # =========================================================================
    # Coordinate composition
    # =========================================================================

    def local_to_graph(self, node_id: str, point: Point) -> Optional[Point]:
        """Sub-graph point to primary graph space."""
        origin = self.content_origin(node_id)
        view = self._views.get(node_id)
        if origin is None or view is None:
            return None
        inner = view.camera.graph_to_screen(point)
        return Point(origin.x + inner.x, origin.y + inner.y)

    def local_to_screen(self, node_id: str, point: Point, primary: CameraState) -> Optional[Point]:
        graph_point = self.local_to_graph(node_id, point)
        if graph_point is None:
            return None
        return primary.graph_to_screen(graph_point)

    def screen_to_local(self, node_id: str, point: Point, primary: CameraState) -> Optional[Point]:
        origin = self.content_origin(node_id)
        view = self._views.get(node_id)
        if origin is None or view is None:
            return None
        graph_point = primary.screen_to_graph(point)
        return view.camera.screen_to_graph(Point(graph_point.x - origin.x, graph_point.y - origin.y))

    # =========================================================================
    # Gestures
    # =========================================================================

    def drag_container(self, node_id: str, dx: float, dy: float) -> CloudOffset:
        """Move a panel by a graph-space delta. The anchor node never moves."""
        offset = self.offset_for(node_id).moved(dx, dy)
        self._offsets[node_id] = offset
        return offset

    def drag_anchor_node(self, node_id: str, dx: float, dy: float) -> None:
        """Move the anchor node; its panel follows through the unchanged offset."""
        node = self._container(node_id)
        self.store.move_node(node_id, node.x + dx, node.y + dy)

    def pan(self, node_id: str, dx: float, dy: float) -> bool:
        view = self._views.get(node_id)
        if view is None:
            return False
        view.camera.pan(dx, dy)
        return True

    def zoom(self, node_id: str, factor: float, pivot: Point) -> bool:
        """Zoom a nested camera; pivot is in panel content coordinates."""
        view = self._views.get(node_id)
        if view is None:
            return False
        return view.camera.zoom(factor, pivot)

    def wheel(self, node_id: str, delta_y: float, pivot: Point) -> bool:
        factor = WHEEL_ZOOM_OUT if delta_y > 0 else WHEEL_ZOOM_IN
        return self.zoom(node_id, factor, pivot)

    def reset_view(self, node_id: str) -> None:
        view = self._views.get(node_id)
        if view is not None:
            view.camera.reset()

    # =========================================================================
    # Offsets
    # =========================================================================

    @property
    def offsets(self) -> Dict[str, CloudOffset]:
        return dict(self._offsets)

    def replace_offsets(self, offsets: Mapping[str, CloudOffset]) -> None:
        """Replace the whole offset map (history restore)."""
        self._offsets = dict(offsets)

    def stacked_offsets(self, nodes: Iterable[Node]) -> Dict[str, CloudOffset]:
        """
        Offsets placing panels in one row above the topmost container, sorted
        by x and pushed right so they never overlap.
        """
        nodes = list(nodes)
        if not nodes:
            return {}

        placements = []
        for node in nodes:
            size = self.panel_size(node)
            x = node.x + node.width / 2 - size.width / 2
            placements.append([node, size, x])
        placements.sort(key=lambda item: item[2])

        for previous, current in zip(placements, placements[1:]):
            min_x = previous[2] + previous[1].width + self.settings.gap
            if current[2] < min_x:
                current[2] = min_x

        bottom = min(node.y for node in nodes) - self.settings.stack_vertical_gap
        return {
            node.id: CloudOffset(x - node.x, bottom - size.height - node.y)
            for node, size, x in placements
        }

    def expand_all(self) -> List[str]:
        """Open every container and stack the panels. Returns opened ids."""
        containers = self.containers()
        for node in containers:
            self.open_container(node.id)
        self._offsets.update(self.stacked_offsets(containers))
        logger.debug(f"Expanded {len(containers)} containers")
        return [node.id for node in containers]

    def collapse_all(self) -> List[str]:
        closed = []
        for node in self.open_containers():
            self.close_container(node.id)
            closed.append(node.id)
        return closed
