"""
Unit tests for ViewportController: fit-to-view, zoom-to-node and the
keyboard camera helpers.
"""

import pytest

from flowview.config import MIN_AVAILABLE_SIZE, ViewportSettings
from flowview.core.geometry import Box, Point, union_boxes
from flowview.core.store import GraphStore
from flowview.errors import UnknownNodeError
from flowview.viewport.camera import IDENTITY
from flowview.viewport.controller import ViewportController

from factories import make_node


@pytest.fixture
def viewport():
    return ViewportController(width=800, height=600)


class TestFitToView:
    """Tests for fit_to_view."""

    def test_three_node_graph_fits_with_padding(self, viewport, linear_graph):
        nodes, _ = linear_graph
        state = viewport.fit_to_view(nodes)

        assert state.scale == pytest.approx(320 / 540)
        assert state.offset_x == pytest.approx(130)
        assert viewport.zoom_level() == 100

        screen = state.box_to_screen(union_boxes(node.box for node in nodes))
        assert screen.x >= 80
        assert screen.y >= 80
        assert 800 - screen.right >= 80
        assert 600 - screen.bottom >= 80

    def test_small_graph_capped_at_fit_max(self, viewport):
        viewport.fit_to_view([make_node("solo")])
        assert viewport.state.scale == 1.5
        assert viewport.fit_scale == 1.5

    def test_empty_graph_uses_identity(self, viewport):
        viewport.camera.set(2.0, 10.0, 10.0)
        assert viewport.fit_to_view([]) == IDENTITY
        assert viewport.fit_scale == 1.0

    def test_panel_boxes_are_included(self, viewport):
        nodes = [make_node("a")]
        viewport.fit_to_view(nodes, {"a": Box(-1000, 0, 200, 200)})
        screen = viewport.state.box_to_screen(Box(-1000, 0, 200, 200))
        assert screen.x >= 50

    def test_available_area_has_a_floor(self, viewport):
        viewport.set_size(200, 150)
        area = viewport.available_area()
        assert (area.width, area.height) == (MIN_AVAILABLE_SIZE, MIN_AVAILABLE_SIZE)
        assert (area.x, area.y) == (50, 50)

    def test_custom_scale_range_applies(self):
        viewport = ViewportController(ViewportSettings(min_scale=0.5, max_scale=1.0))
        viewport.fit_to_view([make_node("a", width=20000)])
        assert viewport.state.scale == 0.5


class TestZoomLevel:
    """Tests for zoom steps relative to the fit baseline."""

    def test_zoom_in_and_out(self, viewport, linear_graph):
        nodes, _ = linear_graph
        viewport.fit_to_view(nodes)

        viewport.zoom_in()
        assert viewport.zoom_level() == 120

        viewport.zoom_out()
        assert viewport.zoom_level() == 100

    def test_wheel_direction(self, viewport):
        viewport.wheel(1, viewport.screen_rect().center)
        assert viewport.state.scale == pytest.approx(0.9)

        viewport.wheel(-1, viewport.screen_rect().center)
        assert viewport.state.scale == pytest.approx(0.99)

    def test_zoom_defaults_to_viewport_center(self, viewport):
        viewport.zoom(2.0)
        assert viewport.graph_to_screen(viewport.screen_to_graph(Point(400, 300))) == Point(400, 300)
        assert viewport.state.offset_x == -400


class TestZoomToNode:
    """Tests for the zoom-to-node toggle."""

    def test_toggle_is_an_involution(self, viewport, chain_store):
        viewport.fit_to_view(chain_store.nodes)
        viewport.pan(37, -12)
        before = viewport.state

        assert viewport.zoom_to_node("a", chain_store)
        assert viewport.zoomed_node_id == "a"
        assert viewport.state != before

        assert not viewport.zoom_to_node("a", chain_store)
        assert viewport.state == before
        assert viewport.zoomed_node_id is None
        assert viewport.zoom_visible_ids is None

    def test_hides_nodes_outside_one_hop(self, viewport, chain_store):
        viewport.fit_to_view(chain_store.nodes)
        viewport.zoom_to_node("a", chain_store)

        assert viewport.zoom_visible_ids == frozenset({"a", "b"})
        assert viewport.is_hidden("c")
        assert viewport.is_hidden("d")
        assert not viewport.is_hidden("b")

    def test_second_call_on_other_node_turns_zoom_off(self, viewport, chain_store):
        viewport.fit_to_view(chain_store.nodes)
        viewport.zoom_to_node("a", chain_store)
        assert not viewport.zoom_to_node("d", chain_store)
        assert not viewport.is_hidden("c")

    def test_scale_capped_relative_to_fit(self, viewport, chain_store):
        viewport.fit_to_view(chain_store.nodes)
        viewport.zoom_to_node("a", chain_store)
        assert viewport.state.scale == pytest.approx(viewport.fit_scale * 1.8)

    def test_single_node_gets_padding(self, viewport):
        store = GraphStore()
        store.load([make_node("solo")], [])
        viewport.fit_to_view(store.nodes)

        viewport.zoom_to_node("solo", store)
        scale = 384 / 620
        assert viewport.state.scale == pytest.approx(scale)
        assert viewport.state.offset_x == pytest.approx(290 - 90 * scale)
        assert viewport.state.offset_y == pytest.approx(300 - 30 * scale)

    def test_unknown_node_raises(self, viewport, chain_store):
        with pytest.raises(UnknownNodeError):
            viewport.zoom_to_node("missing", chain_store)

    def test_fit_clears_zoom(self, viewport, chain_store):
        viewport.zoom_to_node("b", chain_store)
        viewport.fit_to_view(chain_store.nodes)
        assert not viewport.is_zoomed_to_node
        assert not viewport.is_hidden("d")


class TestKeyboardHelpers:
    """Tests for ensure_node_visible / center_on_node."""

    def test_visible_node_does_not_pan(self, viewport):
        assert not viewport.ensure_node_visible(make_node("a", 100, 100))
        assert viewport.state == IDENTITY

    def test_offscreen_node_is_pulled_in_by_margin(self, viewport):
        node = make_node("far", 1000, 100)
        assert not viewport.is_node_in_viewport(node)

        assert viewport.ensure_node_visible(node)
        assert viewport.state.offset_x == -480
        assert viewport.state.offset_y == 0
        assert viewport.is_node_in_viewport(node)

    def test_center_on_node(self, viewport):
        viewport.center_on_node(make_node("far", 1000, 100))
        assert (viewport.state.offset_x, viewport.state.offset_y) == (-690, 170)
