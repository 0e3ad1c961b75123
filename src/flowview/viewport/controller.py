"""
Viewport Controller.

Owns the primary camera and the viewport size. Implements:
- pan and zoom-around-pivot
- fit-to-view with the chrome-aware centring and the "100%" baseline
- zoom-to-node as a toggle over the 1-hop neighbourhood
- keyboard camera helpers (ensure visible, centre on node)
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from ..config import (
    ENSURE_VISIBLE_MARGIN,
    MIN_AVAILABLE_SIZE,
    VISIBILITY_TOLERANCE,
    WHEEL_ZOOM_IN,
    WHEEL_ZOOM_OUT,
    ViewportSettings,
)
from ..core.geometry import Box, Point, Size, union_boxes
from ..core.store import GraphStore
from ..core.types import Node
from ..errors import UnknownNodeError
from .camera import IDENTITY, Camera, CameraState

logger = logging.getLogger(__name__)


class ViewportController:
    """
    Primary camera plus the state of an active zoom-to-node.

    The controller never draws; callers read `state` after a mutation and
    forward it to the rendering surface.
    """

    def __init__(
        self,
        settings: Optional[ViewportSettings] = None,
        width: float = 800.0,
        height: float = 600.0,
    ):
        self.settings = settings or ViewportSettings()
        self.camera = Camera(self.settings.min_scale, self.settings.max_scale)
        self._size = Size(width, height)
        self._fit_scale: Optional[float] = None

        self.zoomed_node_id: Optional[str] = None
        self._pre_zoom: Optional[CameraState] = None
        self._zoom_visible: Optional[FrozenSet[str]] = None

    # =========================================================================
    # Size and derived areas
    # =========================================================================

    @property
    def size(self) -> Size:
        return self._size

    def set_size(self, width: float, height: float) -> None:
        self._size = Size(max(0.0, width), max(0.0, height))

    @property
    def state(self) -> CameraState:
        return self.camera.state

    @property
    def fit_scale(self) -> Optional[float]:
        """Scale produced by the last fit_to_view(), the 100% zoom baseline."""
        return self._fit_scale

    def available_area(self) -> Box:
        """Screen rectangle left for the graph once host chrome is removed."""
        chrome = self.settings.chrome
        width = max(MIN_AVAILABLE_SIZE, self._size.width - chrome.left - chrome.right)
        height = max(MIN_AVAILABLE_SIZE, self._size.height - chrome.top - chrome.bottom)
        return Box(chrome.left, chrome.top, width, height)

    def screen_rect(self) -> Box:
        return Box(0.0, 0.0, self._size.width, self._size.height)

    def visible_graph_rect(self) -> Box:
        """The viewport rectangle mapped into graph space."""
        return self.state.box_to_graph(self.screen_rect())

    # =========================================================================
    # Conversions
    # =========================================================================

    def screen_to_graph(self, point: Point) -> Point:
        return self.camera.screen_to_graph(point)

    def graph_to_screen(self, point: Point) -> Point:
        return self.camera.graph_to_screen(point)

    # =========================================================================
    # Pan / zoom
    # =========================================================================

    def pan(self, dx: float, dy: float) -> None:
        self.camera.pan(dx, dy)

    def zoom(self, factor: float, pivot: Optional[Point] = None) -> bool:
        """Zoom by factor around pivot (defaults to the viewport centre)."""
        if pivot is None:
            pivot = self.screen_rect().center
        return self.camera.zoom(factor, pivot)

    def zoom_in(self) -> bool:
        return self.zoom(self.settings.zoom_step)

    def zoom_out(self) -> bool:
        return self.zoom(1 / self.settings.zoom_step)

    def wheel(self, delta_y: float, pivot: Point) -> bool:
        """Mouse wheel: scrolling down zooms out, up zooms in."""
        factor = WHEEL_ZOOM_OUT if delta_y > 0 else WHEEL_ZOOM_IN
        return self.zoom(factor, pivot)

    def zoom_level(self) -> int:
        """Current scale as a percentage of the fit-to-view baseline."""
        if not self._fit_scale:
            return 100
        return round(self.camera.scale / self._fit_scale * 100)

    # =========================================================================
    # Fit to view
    # =========================================================================

    def fit_to_view(
        self,
        nodes: Iterable[Node],
        panel_boxes: Optional[Mapping[str, Box]] = None,
    ) -> CameraState:
        """
        Centre the union of node boxes (plus open panel boxes) in the
        available area and record the resulting scale as the baseline.

        Empty or non-finite bounds degrade to the identity camera.
        """
        boxes = [node.box for node in nodes]
        boxes.extend((panel_boxes or {}).values())
        bounds = union_boxes(boxes)

        self.zoomed_node_id = None
        self._pre_zoom = None
        self._zoom_visible = None

        if bounds is None or bounds.is_degenerate():
            logger.debug(f"fit_to_view on degenerate bounds {bounds}, using identity camera")
            self.camera.restore(IDENTITY)
            self._fit_scale = 1.0
            return self.state

        area = self.available_area()
        pad_x = min(self.settings.fit_padding, area.width / 4)
        pad_y = min(self.settings.fit_padding, area.height / 4)
        scale_x = (area.width - pad_x * 2) / bounds.width
        scale_y = (area.height - pad_y * 2) / bounds.height
        scale = self.camera.clamp(min(scale_x, scale_y, self.settings.fit_max_scale))

        self.camera.set(
            scale,
            (area.width - bounds.width * scale) / 2 - bounds.x * scale + area.x,
            (area.height - bounds.height * scale) / 2 - bounds.y * scale + area.y,
        )
        self._fit_scale = self.camera.scale
        logger.debug(f"Fit {len(boxes)} boxes at scale {self._fit_scale:.3f}")
        return self.state

    # =========================================================================
    # Zoom to node
    # =========================================================================

    @property
    def is_zoomed_to_node(self) -> bool:
        return self.zoomed_node_id is not None

    def is_hidden(self, node_id: str) -> bool:
        """True when an active zoom-to-node hides this node."""
        return self._zoom_visible is not None and node_id not in self._zoom_visible

    @property
    def zoom_visible_ids(self) -> Optional[FrozenSet[str]]:
        return self._zoom_visible

    def zoom_to_node(
        self,
        node_id: str,
        store: GraphStore,
        panel_boxes: Optional[Mapping[str, Box]] = None,
    ) -> bool:
        """
        Toggle zoom-to-node.

        When not zoomed, hides everything outside the node's 1-hop
        neighbourhood and frames it. When zoomed (to any node), restores full
        visibility, refits to refresh the baseline and reinstates the camera
        held before zooming in. Returns True when the call zoomed in.
        """
        panel_boxes = panel_boxes or {}

        if self.zoomed_node_id is not None:
            previous = self._pre_zoom
            logger.debug(f"Leaving zoom-to-node {self.zoomed_node_id}")
            self.fit_to_view(store.iter_nodes(), panel_boxes)
            if previous is not None:
                self.camera.restore(previous)
            return False

        node = store.get_node(node_id)
        if node is None:
            raise UnknownNodeError(node_id)

        neighbours = frozenset(store.neighbors(node_id))
        boxes: Dict[str, Box] = {}
        for neighbour_id in neighbours:
            neighbour = store.get_node(neighbour_id)
            if neighbour is not None:
                boxes[neighbour_id] = neighbour.box
        shown_panels = [box for owner, box in panel_boxes.items() if owner in neighbours]

        if len(boxes) == 1 and node_id not in panel_boxes:
            bounds = node.box.expand(self.settings.single_node_padding)
        else:
            bounds = union_boxes([*boxes.values(), *shown_panels]) or node.box

        area = self.available_area()
        fill = self.settings.zoom_to_node_fill
        scale = min(area.width * fill / bounds.width, area.height * fill / bounds.height)
        cap = self.settings.zoom_to_node_max_scale
        if self._fit_scale:
            cap = min(cap, self._fit_scale * self.settings.zoom_to_node_fit_multiplier)

        self._pre_zoom = self.state
        self.zoomed_node_id = node_id
        self._zoom_visible = neighbours

        center = bounds.center
        scale = self.camera.clamp(min(scale, cap))
        self.camera.set(
            scale,
            area.width / 2 - center.x * scale + area.x,
            area.height / 2 - center.y * scale + area.y,
        )
        logger.debug(f"Zoomed to node {node_id} with {len(neighbours)} neighbours visible")
        return True

    def clear_zoom_to_node(self) -> None:
        """Forget an active zoom-to-node without moving the camera."""
        self.zoomed_node_id = None
        self._pre_zoom = None
        self._zoom_visible = None

    # =========================================================================
    # Keyboard helpers
    # =========================================================================

    def is_node_in_viewport(self, node: Node, tolerance: float = VISIBILITY_TOLERANCE) -> bool:
        box = self.state.box_to_screen(node.box)
        return (
            box.x >= -tolerance
            and box.right <= self._size.width + tolerance
            and box.y >= -tolerance
            and box.bottom <= self._size.height + tolerance
        )

    def ensure_node_visible(self, node: Node, margin: float = ENSURE_VISIBLE_MARGIN) -> bool:
        """Pan the minimum amount to bring node margin pixels inside the viewport."""
        if self.is_node_in_viewport(node):
            return False

        box = self.state.box_to_screen(node.box)
        width, height = self._size

        dx = 0.0
        if box.right > width - margin:
            dx = width - margin - box.right
        elif box.x < margin:
            dx = margin - box.x

        dy = 0.0
        if box.bottom > height - margin:
            dy = height - margin - box.bottom
        elif box.y < margin:
            dy = margin - box.y

        if dx == 0 and dy == 0:
            return False
        self.camera.pan(dx, dy)
        return True

    def center_on_node(self, node: Node) -> None:
        """Centre node in the viewport at the current scale."""
        center = node.center
        scale = self.camera.scale
        self.camera.set(
            scale,
            self._size.width / 2 - center.x * scale,
            self._size.height / 2 - center.y * scale,
        )

    def reset_view(
        self,
        nodes: Iterable[Node],
        panel_boxes: Optional[Mapping[str, Box]] = None,
    ) -> CameraState:
        return self.fit_to_view(nodes, panel_boxes)
