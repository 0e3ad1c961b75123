"""
Camera.

A camera is the affine map from graph space to screen space:

    screen_x = graph_x * scale + offset_x
    screen_y = graph_y * scale + offset_y

The primary canvas and every open container panel each own one Camera.
Pan, zoom and zoom-around-pivot are implemented once here so both kinds
of viewport share identical math.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from ..core.geometry import Box, Point

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CameraState:
    """Immutable snapshot of a camera transform."""

    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    def graph_to_screen(self, point: Point) -> Point:
        return Point(point.x * self.scale + self.offset_x, point.y * self.scale + self.offset_y)

    def screen_to_graph(self, point: Point) -> Point:
        return Point((point.x - self.offset_x) / self.scale, (point.y - self.offset_y) / self.scale)

    def box_to_screen(self, box: Box) -> Box:
        origin = self.graph_to_screen(Point(box.x, box.y))
        return Box(origin.x, origin.y, box.width * self.scale, box.height * self.scale)

    def box_to_graph(self, box: Box) -> Box:
        origin = self.screen_to_graph(Point(box.x, box.y))
        return Box(origin.x, origin.y, box.width / self.scale, box.height / self.scale)


IDENTITY = CameraState()


class Camera:
    """
    Mutable camera clamped to [min_scale, max_scale].

    Every mutation sanitizes its inputs: non-finite values and non-positive
    zoom factors are ignored so the transform can never become NaN/Infinity.
    """

    def __init__(self, min_scale: float, max_scale: float, state: CameraState = IDENTITY):
        self.min_scale = min_scale
        self.max_scale = max_scale
        self._scale = 1.0
        self._offset_x = 0.0
        self._offset_y = 0.0
        self.restore(state)

    @property
    def scale(self) -> float:
        return self._scale

    @property
    def offset_x(self) -> float:
        return self._offset_x

    @property
    def offset_y(self) -> float:
        return self._offset_y

    @property
    def state(self) -> CameraState:
        return CameraState(self._scale, self._offset_x, self._offset_y)

    def clamp(self, scale: float) -> float:
        return min(max(scale, self.min_scale), self.max_scale)

    def set(self, scale: float, offset_x: float, offset_y: float) -> None:
        """Set the transform; invalid components keep their current value."""
        if math.isfinite(scale) and scale > 0:
            self._scale = self.clamp(scale)
        else:
            logger.debug(f"Rejected camera scale {scale}")
        if math.isfinite(offset_x):
            self._offset_x = offset_x
        if math.isfinite(offset_y):
            self._offset_y = offset_y

    def restore(self, state: CameraState) -> None:
        self.set(state.scale, state.offset_x, state.offset_y)

    def reset(self) -> None:
        self.restore(IDENTITY)

    def pan(self, dx: float, dy: float) -> None:
        if not (math.isfinite(dx) and math.isfinite(dy)):
            return
        self._offset_x += dx
        self._offset_y += dy

    def zoom(self, factor: float, pivot: Point) -> bool:
        """
        Multiply scale by factor, keeping the graph point under pivot fixed.

        Returns False when nothing changed (invalid factor or already at a
        scale limit).
        """
        if not (math.isfinite(factor) and factor > 0):
            return False
        if not (math.isfinite(pivot.x) and math.isfinite(pivot.y)):
            return False

        new_scale = self.clamp(self._scale * factor)
        if new_scale == self._scale:
            return False

        ratio = new_scale / self._scale
        self._offset_x = pivot.x - (pivot.x - self._offset_x) * ratio
        self._offset_y = pivot.y - (pivot.y - self._offset_y) * ratio
        self._scale = new_scale
        return True

    def graph_to_screen(self, point: Point) -> Point:
        return self.state.graph_to_screen(point)

    def screen_to_graph(self, point: Point) -> Point:
        return self.state.screen_to_graph(point)

    def __repr__(self) -> str:
        return f"Camera(scale={self._scale:.4f}, offset=({self._offset_x:.1f}, {self._offset_y:.1f}))"
