"""
Minimap projection.

Projects graph bounds into a small fixed-size map and reports where the
primary viewport sits inside it. A click on the map converts back into a
camera offset that centres the clicked graph point.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from ..config import MINIMAP_HEIGHT, MINIMAP_MAX_SCALE, MINIMAP_PADDING, MINIMAP_WIDTH
from ..core.geometry import Box, Point, Size
from ..core.types import Node
from .camera import CameraState

MIN_MARKER_WIDTH = 4.0
MIN_MARKER_HEIGHT = 3.0


@dataclass(frozen=True)
class MinimapMarker:
    node_id: str
    node_type: str
    box: Box


class Minimap:
    def __init__(
        self,
        width: float = MINIMAP_WIDTH,
        height: float = MINIMAP_HEIGHT,
        padding: float = MINIMAP_PADDING,
        max_scale: float = MINIMAP_MAX_SCALE,
    ):
        self.width = width
        self.height = height
        self.padding = padding
        self.max_scale = max_scale

    def map_scale(self, bounds: Box) -> float:
        if bounds.is_degenerate():
            return self.max_scale
        scale_x = (self.width - self.padding * 2) / bounds.width
        scale_y = (self.height - self.padding * 2) / bounds.height
        return min(scale_x, scale_y, self.max_scale)

    def markers(self, nodes: Iterable[Node], bounds: Box) -> List[MinimapMarker]:
        scale = self.map_scale(bounds)
        markers = []
        for node in nodes:
            box = node.box
            markers.append(
                MinimapMarker(
                    node.id,
                    node.type.value,
                    Box(
                        (box.x - bounds.x) * scale + self.padding,
                        (box.y - bounds.y) * scale + self.padding,
                        max(MIN_MARKER_WIDTH, box.width * scale),
                        max(MIN_MARKER_HEIGHT, box.height * scale),
                    ),
                )
            )
        return markers

    def viewport_rect(self, camera: CameraState, viewport: Size, bounds: Box) -> Box:
        """The visible graph region drawn on the map, clamped to the map."""
        scale = self.map_scale(bounds)
        visible = camera.box_to_graph(Box(0.0, 0.0, viewport.width, viewport.height))
        return Box(
            max(0.0, (visible.x - bounds.x) * scale + self.padding),
            max(0.0, (visible.y - bounds.y) * scale + self.padding),
            min(self.width, visible.width * scale),
            min(self.height, visible.height * scale),
        )

    def map_to_graph(self, point: Point, bounds: Box) -> Point:
        scale = self.map_scale(bounds)
        return Point(
            (point.x - self.padding) / scale + bounds.x,
            (point.y - self.padding) / scale + bounds.y,
        )

    def camera_for_click(self, point: Point, camera: CameraState, viewport: Size, bounds: Box) -> CameraState:
        """Camera at the same scale with the clicked graph point centred."""
        target = self.map_to_graph(point, bounds)
        return CameraState(
            camera.scale,
            viewport.width / 2 - target.x * camera.scale,
            viewport.height / 2 - target.y * camera.scale,
        )
