"""
Plain geometry values shared by every component.

All boxes are axis-aligned and expressed as (x, y, width, height) with the
origin in the top-left corner, matching the rendering surface convention.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, NamedTuple, Optional

from ..config import DEFAULT_BOX_HEIGHT, DEFAULT_BOX_WIDTH

logger = logging.getLogger(__name__)


class Point(NamedTuple):
    x: float
    y: float


class Size(NamedTuple):
    width: float
    height: float


@dataclass(frozen=True)
class Box:
    """Axis-aligned rectangle."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)

    @classmethod
    def from_extents(cls, min_x: float, min_y: float, max_x: float, max_y: float) -> "Box":
        return cls(min_x, min_y, max_x - min_x, max_y - min_y)

    @classmethod
    def default(cls) -> "Box":
        """Box substituted whenever real bounds are empty or non-finite."""
        return cls(0.0, 0.0, DEFAULT_BOX_WIDTH, DEFAULT_BOX_HEIGHT)

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x, self.y, self.width, self.height))

    def is_degenerate(self) -> bool:
        """True when the box cannot be used as a divisor for fitting."""
        return not self.is_finite() or self.width <= 0 or self.height <= 0

    def expand(self, amount: float) -> "Box":
        return Box(
            self.x - amount,
            self.y - amount,
            self.width + amount * 2,
            self.height + amount * 2,
        )

    def translate(self, dx: float, dy: float) -> "Box":
        return Box(self.x + dx, self.y + dy, self.width, self.height)

    def intersects(self, other: "Box") -> bool:
        """AABB overlap test; touching edges count as overlap."""
        return not (
            self.right < other.x
            or self.x > other.right
            or self.bottom < other.y
            or self.y > other.bottom
        )

    def contains_point(self, point: Point) -> bool:
        return self.x <= point.x <= self.right and self.y <= point.y <= self.bottom

    def contains_box(self, other: "Box", tolerance: float = 1e-6) -> bool:
        return (
            other.x >= self.x - tolerance
            and other.y >= self.y - tolerance
            and other.right <= self.right + tolerance
            and other.bottom <= self.bottom + tolerance
        )


def union_boxes(boxes: Iterable[Box]) -> Optional[Box]:
    """
    Smallest box enclosing every input box.

    Returns None for an empty input. Non-finite results are replaced with
    the default box rather than propagated.
    """
    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    seen = False

    for box in boxes:
        seen = True
        min_x = min(min_x, box.x)
        min_y = min(min_y, box.y)
        max_x = max(max_x, box.right)
        max_y = max(max_y, box.bottom)

    if not seen:
        return None

    result = Box.from_extents(min_x, min_y, max_x, max_y)
    if not result.is_finite():
        logger.debug(f"Non-finite bounds {result}, substituting default box")
        return Box.default()
    return result


def bounds_or_default(boxes: Iterable[Box]) -> Box:
    """union_boxes() that never returns None."""
    return union_boxes(boxes) or Box.default()


def facing_anchors(origin: Box, target: Box) -> tuple[Point, Point, bool]:
    """
    Pick the sides of origin and target that face each other.

    The angle from origin's centre to target's centre is bucketed into four
    90 degree quadrants. Returns the origin anchor, the target anchor and
    whether the connection runs horizontally.
    """
    oc = origin.center
    tc = target.center
    angle = math.atan2(tc.y - oc.y, tc.x - oc.x)
    quarter = math.pi / 4

    if -quarter < angle <= quarter:
        return Point(origin.right, oc.y), Point(target.x, tc.y), True
    if quarter < angle <= 3 * quarter:
        return Point(oc.x, origin.bottom), Point(tc.x, target.y), False
    if -3 * quarter < angle <= -quarter:
        return Point(oc.x, origin.y), Point(tc.x, target.bottom), False
    return Point(origin.x, oc.y), Point(target.right, tc.y), True


def curve_between(start: Point, end: Point, horizontal: bool) -> tuple[Point, Point, Point, Point]:
    """Cubic bezier control polygon bending along the connection axis."""
    if horizontal:
        mid_x = (start.x + end.x) / 2
        return start, Point(mid_x, start.y), Point(mid_x, end.y), end
    mid_y = (start.y + end.y) / 2
    return start, Point(start.x, mid_y), Point(end.x, mid_y), end
