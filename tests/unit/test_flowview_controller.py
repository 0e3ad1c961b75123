"""
Integration-style tests for FlowViewController: loading, gestures,
focus, clusters, panels and undo/redo wired together against an in-memory
render surface.
"""

from unittest.mock import MagicMock

import pytest

from flowview.cli.utils import RecordingSurface
from flowview.config import ClusteringSettings, FlowViewSettings
from flowview.controller import CONNECTOR_PREFIX, PANEL_PREFIX, FlowViewController
from flowview.core.geometry import Point
from flowview.core.observers import DIMMED_EDGE_OPACITY, DIMMED_NODE_OPACITY
from flowview.core.scheduling import ManualScheduler
from flowview.core.types import ColumnLineage, Direction, FocusMode, LayoutType, NodeType
from flowview.errors import UnknownNodeError
from flowview.viewport.camera import CameraState

from factories import grid_nodes, make_edge, make_node


@pytest.fixture
def surface():
    return RecordingSurface()


@pytest.fixture
def host():
    return MagicMock()


@pytest.fixture
def controller(surface, scheduler, host):
    return FlowViewController(surface, scheduler=scheduler, host=host, width=800, height=600)


@pytest.fixture
def loaded(controller, linear_graph):
    nodes, edges = linear_graph
    controller.load_graph(nodes, edges, column_lineage=[ColumnLineage(output_column="total", sources=["a"])])
    return controller


class TestLoading:
    """Tests for graph load and initial render."""

    def test_load_fits_and_draws_everything(self, loaded, surface, scheduler):
        assert loaded.zoom_level() == 100
        assert set(surface.nodes) == {"a", "b", "c"}
        assert set(surface.edges) == {"a-b", "b-c"}
        assert surface.transforms[None] == loaded.viewport.state
        assert len(loaded.history) == 1

        scheduler.advance(16)
        assert set(surface.nodes) == {"a", "b", "c"}

    def test_observers_are_notified(self, controller, linear_graph):
        viewport_observer = MagicMock()
        history_observer = MagicMock()
        controller.add_viewport_observer(viewport_observer)
        controller.add_history_observer(history_observer)

        controller.load_graph(*linear_graph)

        viewport_observer.on_camera_changed.assert_called_with(controller.viewport.state, 100)
        history_observer.on_history_changed.assert_called_with(False, False)

    def test_reload_resets_state(self, loaded, linear_graph):
        loaded.select_node("b")
        loaded.zoom_in()
        loaded.load_graph(*linear_graph)

        assert loaded.selected_node_id is None
        assert len(loaded.history) == 1
        assert not loaded.history.can_undo

    def test_load_from_dict(self, controller, surface):
        controller.load_from_dict({
            "nodes": [{"id": "t", "type": "table", "x": 0, "y": 0}],
            "edges": [],
            "error": {"message": "boom"},
        })
        assert set(surface.nodes) == {"t"}
        assert controller.store.parse_error.message == "boom"

    def test_stats(self, loaded):
        stats = loaded.stats()
        assert stats["nodes"] == 3
        assert stats["rendered_edges"] == 2
        assert stats["clusters"] == 0
        assert stats["zoom_level"] == 100


class TestDragAndHistory:
    """Tests for drag gestures and undo/redo."""

    def test_node_drag_records_once_and_undoes(self, loaded, surface):
        scale = loaded.viewport.state.scale
        loaded.begin_node_drag("a", Point(100, 100))
        loaded.update_drag(Point(105, 100))
        loaded.update_drag(Point(110, 100))
        assert loaded.is_dragging
        assert len(loaded.history) == 1

        assert loaded.end_drag()
        assert len(loaded.history) == 2
        assert loaded.store.get_node("a").x == pytest.approx(10 / scale)

        assert loaded.undo()
        assert loaded.store.get_node("a").x == 0
        assert surface.nodes["a"].box.x == 0

        assert loaded.redo()
        assert loaded.store.get_node("a").x == pytest.approx(10 / scale)

    def test_abandoned_drag_is_not_recorded(self, loaded):
        loaded.begin_node_drag("a", Point(0, 0))
        loaded.update_drag(Point(20, 0))
        loaded.abandon_drag()

        assert not loaded.is_dragging
        assert len(loaded.history) == 1
        assert loaded.store.get_node("a").x > 0

    def test_drag_without_motion(self, loaded):
        loaded.begin_pan_drag(Point(0, 0))
        loaded.update_drag(Point(0, 0))
        assert not loaded.end_drag()
        assert len(loaded.history) == 1

    def test_pan_drag_moves_camera(self, loaded):
        before = loaded.viewport.state
        loaded.begin_pan_drag(Point(0, 0))
        loaded.update_drag(Point(30, -10))
        loaded.end_drag()

        assert loaded.viewport.state.offset_x == before.offset_x + 30
        assert loaded.viewport.state.offset_y == before.offset_y - 10

    def test_zoom_in_is_undoable(self, loaded):
        fitted = loaded.viewport.state
        loaded.zoom_in()
        assert loaded.zoom_level() == 120

        assert loaded.undo()
        assert loaded.viewport.state == fitted
        assert not loaded.undo()

    def test_wheel_burst_records_once_when_quiet(self, loaded, scheduler):
        fitted = loaded.viewport.state
        loaded.wheel(-100, Point(400, 300))
        scheduler.advance(100)
        loaded.wheel(-100, Point(400, 300))
        zoomed = loaded.viewport.state

        scheduler.advance(299)
        assert len(loaded.history) == 1
        scheduler.advance(1)
        assert len(loaded.history) == 2

        assert loaded.undo()
        assert loaded.viewport.state == fitted
        assert loaded.redo()
        assert loaded.viewport.state == zoomed

    def test_unknown_node_drag_raises(self, loaded):
        with pytest.raises(UnknownNodeError):
            loaded.begin_node_drag("missing", Point(0, 0))


class TestZoomToNode:
    """Tests for zoom-to-node through the controller."""

    @pytest.fixture
    def chain(self, controller):
        controller.load_graph(
            [make_node(name, i * 300, 0) for i, name in enumerate("abcd")],
            [make_edge("a", "b"), make_edge("b", "c"), make_edge("c", "d")],
        )
        return controller

    def test_toggle_hides_and_restores(self, chain, surface):
        chain.pan(15, 5)
        before = chain.viewport.state

        assert chain.zoom_to_node("a")
        assert chain.selected_node_id == "a"
        assert surface.nodes["c"].hidden
        assert surface.edges["c-d"].hidden
        assert not surface.nodes["b"].hidden

        assert not chain.zoom_to_node("a")
        assert chain.viewport.state == before
        assert not surface.nodes["c"].hidden

    def test_double_toggle_restores_selection_and_focus(self, chain, surface):
        chain.select_node("c")
        chain.set_focus(True, FocusMode.UPSTREAM)
        before = chain.viewport.state

        chain.zoom_to_node("a")
        assert chain.selected_node_id == "a"
        chain.zoom_to_node("a")

        assert chain.viewport.state == before
        assert chain.selected_node_id == "c"
        assert chain.focused_node_ids() == {"a", "b", "c"}
        assert surface.nodes["d"].opacity == DIMMED_NODE_OPACITY
        assert surface.nodes["c"].selected

    def test_unknown_node(self, chain):
        with pytest.raises(UnknownNodeError):
            chain.zoom_to_node("missing")
        with pytest.raises(UnknownNodeError):
            chain.center_on_node("missing")


class TestFocusAndSelection:
    """Tests for selection, focus dimming and host navigation."""

    def test_focus_dims_outside_closure(self, loaded, surface):
        loaded.select_node("b")
        loaded.set_focus(True, FocusMode.DOWNSTREAM)

        assert loaded.focused_node_ids() == {"b", "c"}
        assert surface.nodes["a"].opacity == DIMMED_NODE_OPACITY
        assert surface.nodes["b"].opacity == 1.0
        assert surface.nodes["b"].selected
        assert surface.edges["a-b"].opacity == DIMMED_EDGE_OPACITY
        assert surface.edges["b-c"].opacity == 1.0
        assert len(loaded.history) == 2

    def test_toggle_focus(self, loaded):
        loaded.select_node("a")
        assert loaded.toggle_focus()
        assert not loaded.toggle_focus()
        assert loaded.focused_node_ids() is None

    def test_unknown_selection_is_ignored(self, loaded):
        loaded.select_node("a")
        loaded.select_node("missing")
        assert loaded.selected_node_id == "a"

    def test_activate_forwards_source_line(self, loaded, host):
        assert loaded.activate("a")
        host.navigate_to_line.assert_called_once_with(3)

        assert loaded.activate("a-b")
        host.navigate_to_line.assert_called_with(5)

        assert not loaded.activate("c")

    def test_highlight_column(self, loaded, surface):
        assert loaded.highlight_column("TOTAL") == {"a", "b", "c"}
        assert surface.nodes["a"].highlighted
        assert surface.edges["a-b"].highlighted

        loaded.clear_highlight()
        assert not surface.nodes["a"].highlighted


class TestNavigation:
    """Tests for keyboard navigation and search."""

    def test_connected_and_adjacent(self, loaded):
        loaded.select_node("a")
        assert loaded.navigate_connected(FocusMode.DOWNSTREAM) == "b"
        assert loaded.selected_node_id == "b"
        assert loaded.navigate_adjacent(True) == "c"
        assert loaded.navigate_adjacent(True) == "a"

    def test_connected_without_selection(self, loaded):
        assert loaded.navigate_connected(FocusMode.UPSTREAM) is None

    def test_search_moves_selection(self, loaded):
        assert loaded.search("b") == ["b"]
        assert loaded.next_search_result() == "b"
        assert loaded.selected_node_id == "b"
        assert loaded.previous_search_result() == "b"


class TestResize:
    """Tests for debounced resize."""

    def test_resize_refits_after_quiet_period(self, loaded, scheduler):
        initial_fit = loaded.viewport.fit_scale

        loaded.resize(1000, 700)
        scheduler.advance(100)
        loaded.resize(1200, 900)
        scheduler.advance(149)
        assert loaded.viewport.fit_scale == initial_fit

        scheduler.advance(1)
        assert loaded.viewport.fit_scale == pytest.approx(720 / 540)
        assert len(loaded.history) == 1


class TestVirtualization:
    """Tests for culling through the controller."""

    def test_pan_culls_fifty_node_graph(self, surface, scheduler):
        controller = FlowViewController(surface, scheduler=scheduler, width=800, height=600)
        observer = MagicMock()
        controller.add_viewport_observer(observer)

        controller.load_graph(grid_nodes(10, 5, 80, 120), [])
        scheduler.advance(16)
        assert controller.visibility.offscreen_total == 0

        controller.viewport.camera.restore(CameraState(1.0, 0.0, 0.0))
        controller.pan(-270, 0)
        scheduler.advance(16)

        result = controller.visibility
        assert result.offscreen_total == 10
        assert result.offscreen_counts[Direction.LEFT] == 10
        assert len(surface.nodes) == 40
        assert controller.stats()["visible_nodes"] == 40
        observer.on_visibility_changed.assert_called()

    def test_far_pan_culls_with_default_settings(self, controller, scheduler):
        controller.load_graph([make_node(f"t{i}", (i % 10) * 200, (i // 10) * 100) for i in range(50)], [])
        scheduler.advance(16)
        assert controller.visibility.total_nodes == 50

        controller.pan(2000, 0)
        scheduler.advance(16)

        result = controller.visibility
        assert result.total_nodes == 50
        assert not controller.clusters.active
        assert len(result.visible_nodes) + result.offscreen_total == 50
        assert result.offscreen_counts[Direction.RIGHT] > 0

    def test_disabling_virtualization_draws_everything(self, surface, scheduler):
        controller = FlowViewController(surface, scheduler=scheduler, width=800, height=600)
        controller.load_graph(grid_nodes(10, 5, 80, 120), [])
        controller.viewport.camera.restore(CameraState(1.0, -270.0, 0.0))
        controller.render()
        assert len(surface.nodes) == 40

        controller.set_virtualization_enabled(False)
        assert len(surface.nodes) == 50


class TestClusters:
    """Tests for clustering through the controller."""

    @pytest.fixture
    def dense(self, surface, scheduler):
        settings = FlowViewSettings(clustering=ClusteringSettings(enabled=True))
        controller = FlowViewController(surface, settings, scheduler, width=800, height=600)
        tables = [make_node(f"t{i}", i * 200, 0) for i in range(20)]
        joins = [make_node(f"j{i}", i * 200, 200, NodeType.JOIN) for i in range(10)]
        edges = [make_edge(f"t{i}", f"j{i // 2}") for i in range(20)]
        controller.load_graph(tables + joins + [make_node("s", 0, 400, NodeType.SELECT)], edges)
        return controller

    def test_dense_graph_is_clustered(self, dense, surface):
        assert set(surface.nodes) == {"cluster-tables", "cluster-joins", "cluster-other"}
        assert surface.nodes["cluster-tables"].kind == "cluster"

    def test_toggle_cluster_rerenders(self, dense, surface):
        observer = MagicMock()
        dense.add_cluster_observer(observer)

        assert dense.toggle_cluster("cluster-tables") is True
        assert "t0" in surface.nodes
        assert "cluster-tables" not in surface.nodes
        assert len(dense.render_nodes()) == 22
        observer.on_clusters_changed.assert_called_once()

    def test_expand_and_collapse_all(self, dense, surface):
        dense.expand_all_clusters()
        assert len(surface.nodes) == 31
        dense.collapse_all_clusters()
        assert len(surface.nodes) == 3

    def test_cluster_for_node(self, dense):
        assert dense.cluster_for_node("j3").id == "cluster-joins"


class TestContainers:
    """Tests for container panels through the controller."""

    @pytest.fixture
    def with_container(self, controller):
        cte = make_node(
            "cte", 400, 0, NodeType.CTE,
            children=[make_node("c1", 0, 0), make_node("c2", 0, 100)],
            child_edges=[make_edge("c1", "c2")],
        )
        controller.load_graph([make_node("t", 0, 0), cte], [make_edge("t", "cte")])
        return controller

    def test_toggle_draws_and_removes_panel(self, with_container, surface):
        assert with_container.toggle_container("cte")
        assert f"{PANEL_PREFIX}cte" in surface.nodes
        assert f"{CONNECTOR_PREFIX}cte" in surface.edges
        assert surface.nodes["cte/c1"].scope == "cte"
        assert "cte/c1-c2" in surface.edges
        assert "cte" in surface.transforms

        assert not with_container.toggle_container("cte")
        assert f"{PANEL_PREFIX}cte" not in surface.nodes
        assert "cte/c1" not in surface.nodes

    def test_panel_drag_is_undoable(self, with_container):
        with_container.toggle_container("cte")
        default = with_container.nested.offset_for("cte")
        scale = with_container.viewport.state.scale

        with_container.begin_panel_drag("cte", Point(0, 0))
        assert with_container.nested.view("cte").dragging
        with_container.update_drag(Point(10, 0))
        assert with_container.end_drag()
        assert not with_container.nested.view("cte").dragging

        moved = with_container.nested.offset_for("cte")
        assert moved.offset_x == pytest.approx(default.offset_x + 10 / scale)
        assert with_container.store.get_node("cte").x == 400

        with_container.undo()
        assert with_container.nested.offset_for("cte") == default

    def test_nested_wheel_zooms_only_panel(self, with_container, surface):
        with_container.toggle_container("cte")
        primary = with_container.viewport.state

        assert with_container.nested_wheel("cte", -1, Point(300, 300))
        assert with_container.nested.view("cte").camera.scale == pytest.approx(1.1)
        assert surface.transforms["cte"].scale == pytest.approx(1.1)
        assert with_container.viewport.state == primary

    def test_expand_all_fits_panels(self, with_container):
        assert with_container.expand_all_containers() == ["cte"]
        box = with_container.nested.panel_box("cte")
        screen = with_container.viewport.state.box_to_screen(box)
        assert screen.x >= 0
        assert screen.y >= 0
        assert screen.right <= 800
        assert screen.bottom <= 600

        assert with_container.collapse_all_containers() == ["cte"]


class TestLayoutAndMinimap:
    """Tests for layout switches, minimap and teardown."""

    def test_apply_layout(self, loaded):
        moved = loaded.apply_layout(LayoutType.HORIZONTAL, {"a": (0, 500), "ghost": (1, 1)})
        assert moved == 1
        assert loaded.layout == LayoutType.HORIZONTAL
        assert loaded.store.get_node("a").y == 500
        assert len(loaded.history) == 2

    def test_minimap_click_recentres(self, loaded):
        bounds = loaded.graph_bounds()
        scale = loaded.minimap.map_scale(bounds)
        state = loaded.minimap_click(Point(10 + bounds.width / 2 * scale, 10 + bounds.height / 2 * scale))

        center = state.graph_to_screen(bounds.center)
        assert center.x == pytest.approx(400)
        assert center.y == pytest.approx(300)

    def test_minimap_markers(self, loaded):
        assert [marker.node_id for marker in loaded.minimap_markers()] == ["a", "b", "c"]

    def test_dispose_clears_surface(self, loaded, surface, scheduler):
        loaded.resize(1000, 800)
        loaded.dispose()
        assert surface.nodes == {}
        assert surface.edges == {}
        assert scheduler.pending == 0
