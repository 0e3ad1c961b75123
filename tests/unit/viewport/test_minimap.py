"""
Unit tests for the minimap projection.
"""

import pytest

from flowview.core.geometry import Box, Point, Size
from flowview.viewport.camera import CameraState
from flowview.viewport.minimap import Minimap

from factories import make_node


@pytest.fixture
def minimap():
    return Minimap()


BOUNDS = Box(0, 0, 1000, 500)


class TestMinimap:
    """Tests for Minimap."""

    def test_scale_uses_tighter_axis(self, minimap):
        assert minimap.map_scale(BOUNDS) == pytest.approx(0.13)

    def test_scale_is_capped(self, minimap):
        assert minimap.map_scale(Box(0, 0, 10, 10)) == 0.15

    def test_markers(self, minimap):
        marker = minimap.markers([make_node("a", 100, 100)], BOUNDS)[0]
        assert marker.node_id == "a"
        assert marker.box.x == pytest.approx(23)
        assert marker.box.width == pytest.approx(23.4)
        assert marker.box.height == pytest.approx(7.8)

    def test_tiny_nodes_keep_minimum_marker(self, minimap):
        marker = minimap.markers([make_node("a", width=1, height=1)], BOUNDS)[0]
        assert (marker.box.width, marker.box.height) == (4, 3)

    def test_viewport_rect_is_clamped(self, minimap):
        rect = minimap.viewport_rect(CameraState(0.1, 0, 0), Size(800, 600), BOUNDS)
        assert rect.x == 10
        assert rect.width == 150
        assert rect.height == 100

    def test_click_centres_point(self, minimap):
        camera = minimap.camera_for_click(Point(75, 50), CameraState(1, 0, 0), Size(800, 600), BOUNDS)
        assert camera.scale == 1
        assert camera.offset_x == pytest.approx(400 - 65 / 0.13)
        assert camera.offset_y == pytest.approx(300 - 40 / 0.13)
