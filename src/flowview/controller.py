"""
FlowView Controller.

The single context object owning every component of the viewport engine:

    GraphStore ── ClusterEngine ──► render nodes/edges
        │                               │
        ├── NestedViewportManager       ├── VirtualizationEngine ──► RenderSurface
        │                               │
    ViewportController ─────────────────┘
        │
    LayoutHistory

It is created on view init, reset on every graph load and torn down with
dispose(). All mutation happens synchronously inside its public methods;
the only deferred work runs through the injected Scheduler.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .config import FlowViewSettings
from .core.geometry import Box, Point, Size, bounds_or_default, curve_between, facing_anchors
from .core.observers import (
    DIMMED_EDGE_OPACITY,
    DIMMED_NODE_OPACITY,
    ClusterObserver,
    EdgeDraw,
    HistoryObserver,
    HostBridge,
    NodeDraw,
    RenderSurface,
    ViewportObserver,
)
from .core.scheduling import Debouncer, ManualScheduler, Scheduler
from .core.store import GraphStore
from .core.types import ColumnLineage, Edge, FocusMode, LayoutType, Node, NodeType, ParseError
from .errors import UnknownNodeError
from .graph.clustering import ClusterEngine, NodeCluster
from .graph.reachability import (
    KeyboardNavigator,
    SearchCursor,
    focus_set,
    is_edge_in_focus,
    lineage_for_column,
    lineage_path,
    search,
)
from .graph.virtualization import OffscreenIndicator, VirtualizationEngine, VirtualizationResult
from .history import LayoutHistory, LayoutHistorySnapshot
from .viewport.camera import CameraState
from .viewport.controller import ViewportController
from .viewport.minimap import Minimap, MinimapMarker
from .viewport.nested import NestedViewportManager

logger = logging.getLogger(__name__)

PANEL_PREFIX = "panel:"
CONNECTOR_PREFIX = "connector:"


@dataclass
class DragGesture:
    """An in-progress pointer drag. Nothing is recorded until it ends."""

    kind: str
    target_id: Optional[str]
    last: Point
    moved: bool = False


class FlowViewController:
    """
    Explicit context object for one diagram view.

    Host input (pointer, wheel, keys, resize) enters through the public
    methods; draw instructions leave through the RenderSurface and state
    changes through the registered observers.
    """

    def __init__(
        self,
        surface: RenderSurface,
        settings: Optional[FlowViewSettings] = None,
        scheduler: Optional[Scheduler] = None,
        host: Optional[HostBridge] = None,
        width: float = 800.0,
        height: float = 600.0,
    ):
        self.settings = settings or FlowViewSettings()
        self.scheduler = scheduler or ManualScheduler()
        self.surface = surface
        self.host = host

        self.store = GraphStore()
        self.viewport = ViewportController(self.settings.viewport, width, height)
        self.nested = NestedViewportManager(self.store, self.settings.nested)
        self.clusters = ClusterEngine(self.settings.clustering)
        self.virtualization = VirtualizationEngine(self, self.scheduler, self.settings.virtualization)
        self.history: LayoutHistory[LayoutHistorySnapshot] = LayoutHistory(self.settings.history.max_entries)
        self.navigator = KeyboardNavigator()
        self.search_cursor = SearchCursor()
        self.minimap = Minimap()

        self.selected_node_id: Optional[str] = None
        self.focus_enabled = False
        self.focus_mode = FocusMode.ALL
        self.layout = LayoutType.VERTICAL
        self.highlighted_node_ids: Set[str] = set()
        self._pre_zoom_selection: Optional[str] = None

        self._render_nodes: List[Node] = []
        self._render_edges: List[Edge] = []
        self._node_index: Dict[str, Node] = {}
        self._edge_index: Dict[str, Edge] = {}
        self._panel_elements: Dict[str, List[str]] = {}
        self._drag: Optional[DragGesture] = None
        self._resize = Debouncer(self.scheduler, self._on_resize_settled, self.settings.resize_debounce_ms)
        self._wheel_settled = Debouncer(
            self.scheduler, self._on_wheel_settled, self.settings.wheel_history_debounce_ms
        )

        self._viewport_observers: List[ViewportObserver] = []
        self._cluster_observers: List[ClusterObserver] = []
        self._history_observers: List[HistoryObserver] = []

    # =========================================================================
    # Observers
    # =========================================================================

    def add_viewport_observer(self, observer: ViewportObserver) -> None:
        self._viewport_observers.append(observer)

    def add_cluster_observer(self, observer: ClusterObserver) -> None:
        self._cluster_observers.append(observer)

    def add_history_observer(self, observer: HistoryObserver) -> None:
        self._history_observers.append(observer)

    def _notify_camera(self) -> None:
        state = self.viewport.state
        level = self.viewport.zoom_level()
        for observer in self._viewport_observers:
            observer.on_camera_changed(state, level)

    def _notify_clusters(self) -> None:
        clusters = self.clusters.clusters
        for observer in self._cluster_observers:
            observer.on_clusters_changed(clusters)

    def _notify_history(self) -> None:
        for observer in self._history_observers:
            observer.on_history_changed(self.history.can_undo, self.history.can_redo)

    # =========================================================================
    # VirtualizationHost
    # =========================================================================

    @property
    def camera_state(self) -> CameraState:
        return self.viewport.state

    @property
    def viewport_size(self) -> Size:
        return self.viewport.size

    def render_nodes(self) -> List[Node]:
        return list(self._render_nodes)

    def render_edges(self) -> List[Edge]:
        return list(self._render_edges)

    def materialize_node(self, node: Node) -> None:
        self.surface.draw_node(self._node_draw(node))

    def materialize_edge(self, edge: Edge) -> None:
        self.surface.draw_edge(self._edge_draw(edge))

    def dematerialize(self, element_id: str) -> None:
        self.surface.remove(element_id)

    def visibility_changed(self, result: VirtualizationResult, indicators: List[OffscreenIndicator]) -> None:
        for observer in self._viewport_observers:
            observer.on_visibility_changed(result, indicators)

    # =========================================================================
    # Loading and rendering
    # =========================================================================

    def load_graph(
        self,
        nodes: List[Node],
        edges: List[Edge],
        parse_error: Optional[ParseError] = None,
        column_lineage: Optional[List[ColumnLineage]] = None,
    ) -> None:
        """Replace the graph and reset every piece of per-graph state."""
        self.store.load(nodes, edges, parse_error, column_lineage)
        self._reset_graph_state()
        self._rebuild_render_graph()
        self.viewport.fit_to_view(self._render_nodes, self._panel_boxes())
        self._push_transform()
        self.virtualization.rematerialize(deferred=True)
        self._draw_panels()
        self._notify_clusters()
        self._notify_camera()
        self.history.initialize(self.snapshot())
        self._notify_history()
        logger.debug(f"Loaded graph with {self.store.node_count} nodes, {len(self._render_nodes)} rendered")

    def load_from_dict(self, data: Dict[str, Any]) -> None:
        """Load a parser payload (see GraphStore.load_from_dict)."""
        scratch = GraphStore()
        scratch.load_from_dict(data)
        self.load_graph(scratch.nodes, scratch.edges, scratch.parse_error, scratch.column_lineage)

    def _reset_graph_state(self) -> None:
        self._cancel_drag()
        self._wheel_settled.cancel()
        self.history.clear()
        self.nested.reset()
        self.clusters.reset()
        self.navigator.reset()
        self.search_cursor.reset()
        self.viewport.clear_zoom_to_node()
        self.selected_node_id = None
        self._pre_zoom_selection = None
        self.focus_enabled = False
        self.highlighted_node_ids = set()
        self.virtualization.cancel()
        self._clear_panels()

    def _rebuild_render_graph(self) -> None:
        clustered = self.clusters.cluster(self.store.nodes, self.store.edges)
        self._render_nodes = clustered.nodes
        self._render_edges = clustered.edges
        self._node_index = {node.id: node for node in self._render_nodes}
        self._edge_index = {edge.id: edge for edge in self._render_edges}

    def render(self) -> None:
        """Full re-render: re-cluster, redraw everything, cull immediately."""
        self._rebuild_render_graph()
        self.virtualization.rematerialize(deferred=False)
        self._draw_panels()
        self._notify_clusters()

    def _push_transform(self) -> None:
        self.surface.set_transform(self.viewport.state)

    def _camera_changed(self, continuous: bool = False) -> None:
        """Camera mutation happens-before the dependent visibility pass."""
        self._push_transform()
        if continuous:
            self.virtualization.request_update()
        else:
            self.virtualization.update_now()
        self._notify_camera()

    # =========================================================================
    # Draw instructions
    # =========================================================================

    def _focused_ids(self) -> Optional[Set[str]]:
        if not self.focus_enabled or self.selected_node_id is None:
            return None
        return focus_set(self.selected_node_id, self._render_edges, self.focus_mode)

    def _node_draw(self, node: Node, focused: Optional[Set[str]] = None) -> NodeDraw:
        if focused is None:
            focused = self._focused_ids()
        dimmed = focused is not None and node.id not in focused
        return NodeDraw(
            element_id=node.id,
            kind="cluster" if node.type == NodeType.CLUSTER else "node",
            box=node.box,
            label=node.label,
            node_type=node.type.value,
            opacity=DIMMED_NODE_OPACITY if dimmed else 1.0,
            hidden=self.viewport.is_hidden(node.id),
            selected=node.id == self.selected_node_id,
            highlighted=node.id in self.highlighted_node_ids,
        )

    def _edge_points(self, source: Box, target: Box) -> Tuple[Point, ...]:
        start, end, horizontal = facing_anchors(source, target)
        return curve_between(start, end, horizontal)

    def _edge_draw(self, edge: Edge, focused: Optional[Set[str]] = None) -> EdgeDraw:
        if focused is None:
            focused = self._focused_ids()
        source = self._node_index.get(edge.source)
        target = self._node_index.get(edge.target)
        points = () if source is None or target is None else self._edge_points(source.box, target.box)
        dimmed = focused is not None and not is_edge_in_focus(edge, focused)
        return EdgeDraw(
            element_id=edge.id,
            source=edge.source,
            target=edge.target,
            points=points,
            opacity=DIMMED_EDGE_OPACITY if dimmed else 1.0,
            hidden=self.viewport.is_hidden(edge.source) or self.viewport.is_hidden(edge.target),
            highlighted=edge.source in self.highlighted_node_ids and edge.target in self.highlighted_node_ids,
        )

    def _restyle(self) -> None:
        """Redraw every materialized element after a styling change."""
        focused = self._focused_ids()
        for node_id in self.virtualization.materialized_node_ids:
            node = self._node_index.get(node_id)
            if node is not None:
                self.surface.draw_node(self._node_draw(node, focused))
        for edge_id in self.virtualization.materialized_edge_ids:
            edge = self._edge_index.get(edge_id)
            if edge is not None:
                self.surface.draw_edge(self._edge_draw(edge, focused))
        self._draw_panels()

    def _redraw_node(self, node_id: str) -> None:
        """Redraw a moved node, its materialized edges and its panel connector."""
        node = self._node_index.get(node_id)
        if node is None:
            return
        focused = self._focused_ids()
        if self.virtualization.is_materialized(node_id):
            self.surface.draw_node(self._node_draw(node, focused))
        for edge_id in self.virtualization.materialized_edge_ids:
            edge = self._edge_index.get(edge_id)
            if edge is not None and node_id in (edge.source, edge.target):
                self.surface.draw_edge(self._edge_draw(edge, focused))
        if node.has_open_panel:
            self._draw_panel(node)

    # =========================================================================
    # Panels
    # =========================================================================

    def _panel_boxes(self) -> Dict[str, Box]:
        return {
            node_id: box for node_id, box in self.nested.panel_boxes().items()
            if node_id in self._node_index
        }

    def _clear_panels(self) -> None:
        for elements in self._panel_elements.values():
            for element_id in elements:
                self.surface.remove(element_id)
        self._panel_elements = {}

    def _remove_panel(self, node_id: str) -> None:
        for element_id in self._panel_elements.pop(node_id, []):
            self.surface.remove(element_id)

    def _draw_panels(self) -> None:
        open_ids = {node.id for node in self.nested.open_containers() if node.id in self._node_index}
        for node_id in list(self._panel_elements):
            if node_id not in open_ids:
                self._remove_panel(node_id)
        for node_id in open_ids:
            self._draw_panel(self._node_index[node_id])

    def _draw_panel(self, node: Node) -> None:
        geometry = self.nested.geometry(node.id)
        view = self.nested.view(node.id)
        if geometry is None or view is None:
            return

        hidden = self.viewport.is_hidden(node.id)
        panel_id = f"{PANEL_PREFIX}{node.id}"
        connector_id = f"{CONNECTOR_PREFIX}{node.id}"
        elements = [panel_id, connector_id]

        self.surface.draw_node(NodeDraw(panel_id, "panel", geometry.box, label=node.label, hidden=hidden))
        self.surface.draw_edge(
            EdgeDraw(connector_id, panel_id, node.id, geometry.connector, hidden=hidden, connector=True)
        )
        self.surface.set_transform(view.camera.state, scope=node.id)

        children = {child.id: child for child in node.children}
        for child in node.children:
            element_id = f"{node.id}/{child.id}"
            elements.append(element_id)
            self.surface.draw_node(
                NodeDraw(
                    element_id, "node", child.box, label=child.label,
                    node_type=child.type.value, hidden=hidden, scope=node.id,
                )
            )
        for edge in node.child_edges:
            source = children.get(edge.source)
            target = children.get(edge.target)
            if source is None or target is None:
                continue
            element_id = f"{node.id}/{edge.id}"
            elements.append(element_id)
            self.surface.draw_edge(
                EdgeDraw(
                    element_id, edge.source, edge.target,
                    self._edge_points(source.box, target.box), hidden=hidden, scope=node.id,
                )
            )
        self._panel_elements[node.id] = elements

    # =========================================================================
    # Camera
    # =========================================================================

    def pan(self, dx: float, dy: float) -> None:
        self.viewport.pan(dx, dy)
        self._camera_changed(continuous=True)

    def wheel(self, delta_y: float, pivot: Point) -> None:
        if self.viewport.wheel(delta_y, pivot):
            self._camera_changed(continuous=True)
            self._wheel_settled()

    def _on_wheel_settled(self) -> None:
        self.record_history()

    def zoom_in(self) -> None:
        if self.viewport.zoom_in():
            self._camera_changed()
            self.record_history()

    def zoom_out(self) -> None:
        if self.viewport.zoom_out():
            self._camera_changed()
            self.record_history()

    def fit_to_view(self, record: bool = True) -> CameraState:
        state = self.viewport.fit_to_view(self._render_nodes, self._panel_boxes())
        self._restyle()
        self._camera_changed()
        if record:
            self.record_history()
        return state

    def reset_view(self) -> CameraState:
        return self.fit_to_view()

    def zoom_level(self) -> int:
        return self.viewport.zoom_level()

    def zoom_to_node(self, node_id: str) -> bool:
        """Toggle zoom-to-node. Returns True when the call zoomed in."""
        if not self.viewport.is_zoomed_to_node and node_id not in self._node_index:
            raise UnknownNodeError(node_id)

        zoom_store = GraphStore()
        zoom_store.load(self._render_nodes, self._render_edges)
        zoomed = self.viewport.zoom_to_node(node_id, zoom_store, self._panel_boxes())
        if zoomed:
            self._pre_zoom_selection = self.selected_node_id
            self.selected_node_id = node_id
        else:
            # Toggling off restores the selection along with the camera
            self.selected_node_id = self._pre_zoom_selection
            self._pre_zoom_selection = None
        self._restyle()
        self._camera_changed()
        self.record_history()
        return zoomed

    def ensure_node_visible(self, node_id: str) -> bool:
        node = self._node_index.get(node_id)
        if node is None:
            return False
        moved = self.viewport.ensure_node_visible(node)
        if moved:
            self._camera_changed()
        return moved

    def center_on_node(self, node_id: str) -> None:
        node = self._node_index.get(node_id)
        if node is None:
            raise UnknownNodeError(node_id)
        self.viewport.center_on_node(node)
        self._camera_changed()

    # =========================================================================
    # Resize
    # =========================================================================

    def resize(self, width: float, height: float) -> None:
        """Update the viewport size; fit once resizing has settled."""
        self.viewport.set_size(width, height)
        self._resize()

    def _on_resize_settled(self) -> None:
        self.fit_to_view(record=False)

    # =========================================================================
    # Selection, focus and source navigation
    # =========================================================================

    def select_node(self, node_id: Optional[str]) -> None:
        if node_id is not None and node_id not in self._node_index:
            logger.debug(f"Ignoring selection of unknown node {node_id}")
            return
        self.selected_node_id = node_id
        self._restyle()

    def set_focus(self, enabled: bool, mode: Optional[FocusMode] = None) -> None:
        self.focus_enabled = enabled
        if mode is not None:
            self.focus_mode = FocusMode(mode)
        self._restyle()
        self.record_history()

    def toggle_focus(self) -> bool:
        self.set_focus(not self.focus_enabled)
        return self.focus_enabled

    def focused_node_ids(self) -> Optional[Set[str]]:
        return self._focused_ids()

    def activate(self, element_id: str) -> bool:
        """Forward the source line of a node or edge to the host."""
        node = self.store.get_node(element_id)
        line = node.start_line if node is not None else None
        if node is None:
            edge = self._edge_index.get(element_id) or self.store.find_edge(element_id)
            line = edge.start_line if edge is not None else None
        if line is None or self.host is None:
            return False
        self.host.navigate_to_line(line)
        return True

    # =========================================================================
    # Column lineage
    # =========================================================================

    def highlight_column(self, column: str) -> Set[str]:
        """Highlight the sources of an output column and a path to the select node."""
        entry = lineage_for_column(column, self.store.column_lineage)
        if entry is None or not entry.sources:
            self.highlighted_node_ids = set()
        else:
            self.highlighted_node_ids, _ = lineage_path(entry.sources, self.store.nodes, self.store.edges)
        self._restyle()
        return set(self.highlighted_node_ids)

    def clear_highlight(self) -> None:
        self.highlighted_node_ids = set()
        self._restyle()

    # =========================================================================
    # Keyboard navigation and search
    # =========================================================================

    def _navigable(self) -> List[Node]:
        mode = self.focus_mode if self.focus_enabled else None
        return self.navigator.navigable(self._render_nodes, self._render_edges, mode, self.selected_node_id)

    def _move_to(self, node_id: Optional[str]) -> Optional[str]:
        if node_id is None:
            return None
        self.select_node(node_id)
        self.ensure_node_visible(node_id)
        return node_id

    def navigate_connected(self, direction: FocusMode) -> Optional[str]:
        """Step to the next direct upstream/downstream neighbour of the selection."""
        if self.selected_node_id is None:
            return None
        allowed = None
        if self.focus_enabled:
            allowed = {node.id for node in self._navigable()}
        target = self.navigator.connected_target(
            self.selected_node_id, FocusMode(direction), self._render_edges, allowed
        )
        return self._move_to(target)

    def navigate_adjacent(self, forward: bool = True) -> Optional[str]:
        target = self.navigator.adjacent_target(self._navigable(), self.selected_node_id, forward)
        return self._move_to(target.id if target is not None else None)

    def navigate_sibling(self, forward: bool = True) -> Optional[str]:
        current = self._node_index.get(self.selected_node_id or "")
        if current is None:
            return None
        target = self.navigator.sibling_target(self._navigable(), current, self.layout, forward)
        return self._move_to(target.id if target is not None else None)

    def search(self, term: str) -> List[str]:
        results = [node.id for node in search(self._render_nodes, term)]
        self.search_cursor.reset(term, results)
        return results

    def next_search_result(self) -> Optional[str]:
        return self._move_to(self.search_cursor.next())

    def previous_search_result(self) -> Optional[str]:
        return self._move_to(self.search_cursor.previous())

    # =========================================================================
    # Clusters
    # =========================================================================

    def toggle_cluster(self, cluster_id: str) -> Optional[bool]:
        expanded = self.clusters.toggle(cluster_id)
        if expanded is not None:
            self.render()
        return expanded

    def expand_all_clusters(self) -> None:
        self.clusters.expand_all()
        self.render()

    def collapse_all_clusters(self) -> None:
        self.clusters.collapse_all()
        self.render()

    def cluster_for_node(self, node_id: str) -> Optional[NodeCluster]:
        return self.clusters.cluster_for_node(node_id)

    # =========================================================================
    # Containers
    # =========================================================================

    def toggle_container(self, node_id: str) -> bool:
        expanded = self.nested.toggle_container(node_id)
        self._draw_panels()
        return expanded

    def expand_all_containers(self) -> List[str]:
        opened = self.nested.expand_all()
        self._draw_panels()
        self.fit_to_view()
        return opened

    def collapse_all_containers(self) -> List[str]:
        closed = self.nested.collapse_all()
        self._draw_panels()
        return closed

    def _panel_content_point(self, node_id: str, screen_point: Point) -> Optional[Point]:
        origin = self.nested.content_origin(node_id)
        if origin is None:
            return None
        graph_point = self.viewport.screen_to_graph(screen_point)
        return Point(graph_point.x - origin.x, graph_point.y - origin.y)

    def nested_wheel(self, node_id: str, delta_y: float, screen_pivot: Point) -> bool:
        """Wheel inside a panel zooms only that panel's camera."""
        pivot = self._panel_content_point(node_id, screen_pivot)
        if pivot is None or not self.nested.wheel(node_id, delta_y, pivot):
            return False
        self._push_nested_transform(node_id)
        return True

    def _push_nested_transform(self, node_id: str) -> None:
        view = self.nested.view(node_id)
        if view is not None:
            self.surface.set_transform(view.camera.state, scope=node_id)

    # =========================================================================
    # Drag gestures
    # =========================================================================

    def begin_pan_drag(self, point: Point) -> None:
        self._drag = DragGesture("pan", None, point)

    def begin_node_drag(self, node_id: str, point: Point) -> None:
        if not self.store.has_node(node_id) or node_id not in self._node_index:
            raise UnknownNodeError(node_id)
        self._drag = DragGesture("node", node_id, point)

    def begin_panel_drag(self, node_id: str, point: Point) -> None:
        if self.nested.panel_box(node_id) is None:
            raise UnknownNodeError(node_id)
        self._drag = DragGesture("panel", node_id, point)
        self._set_view_dragging(node_id, True)

    def begin_nested_pan_drag(self, node_id: str, point: Point) -> None:
        if self.nested.view(node_id) is None:
            raise UnknownNodeError(node_id)
        self._drag = DragGesture("nested", node_id, point)
        self._set_view_dragging(node_id, True)

    @property
    def is_dragging(self) -> bool:
        return self._drag is not None

    def update_drag(self, point: Point) -> None:
        drag = self._drag
        if drag is None:
            return

        dx = point.x - drag.last.x
        dy = point.y - drag.last.y
        drag.last = point
        if dx == 0 and dy == 0:
            return
        drag.moved = True

        scale = self.viewport.camera.scale
        if drag.kind == "pan":
            self.pan(dx, dy)
        elif drag.kind == "node":
            node = self.store.get_node(drag.target_id)
            if node is not None:
                self.store.move_node(node.id, node.x + dx / scale, node.y + dy / scale)
                self._redraw_node(node.id)
        elif drag.kind == "panel":
            self.nested.drag_container(drag.target_id, dx / scale, dy / scale)
            node = self._node_index.get(drag.target_id)
            if node is not None:
                self._draw_panel(node)
        elif drag.kind == "nested":
            self.nested.pan(drag.target_id, dx / scale, dy / scale)
            self._push_nested_transform(drag.target_id)

    def end_drag(self) -> bool:
        """Finish the gesture; a drag that moved records one history entry."""
        drag = self._drag
        self._cancel_drag()
        if drag is None or not drag.moved:
            return False
        if drag.kind == "pan":
            self.virtualization.update_now()
        self.record_history()
        return True

    def abandon_drag(self) -> None:
        """Stop the gesture at the last processed move without recording."""
        self._cancel_drag()

    def _cancel_drag(self) -> None:
        drag = self._drag
        self._drag = None
        if drag is not None and drag.kind in ("panel", "nested"):
            self._set_view_dragging(drag.target_id, False)

    def _set_view_dragging(self, node_id: Optional[str], dragging: bool) -> None:
        view = self.nested.view(node_id) if node_id else None
        if view is not None:
            view.dragging = dragging

    # =========================================================================
    # Layout switch
    # =========================================================================

    def apply_layout(self, layout: LayoutType, positions: Mapping[str, Tuple[float, float]]) -> int:
        """
        Apply node coordinates computed by an external layout algorithm.

        Unknown ids are skipped. Returns the number of nodes moved.
        """
        moved = 0
        for node_id, (x, y) in positions.items():
            if self.store.move_node(node_id, x, y):
                moved += 1
        self.layout = LayoutType(layout)
        self.render()
        self.fit_to_view()
        return moved

    # =========================================================================
    # History
    # =========================================================================

    def snapshot(self) -> LayoutHistorySnapshot:
        return LayoutHistorySnapshot(
            camera=self.viewport.state,
            selected_node_id=self.selected_node_id,
            focus_enabled=self.focus_enabled,
            focus_mode=self.focus_mode,
            layout=self.layout,
            positions=tuple((node.id, node.x, node.y) for node in self.store.iter_nodes()),
            cloud_offsets=tuple(sorted(self.nested.offsets.items())),
        )

    def record_history(self) -> bool:
        recorded = self.history.record(self.snapshot())
        self._notify_history()
        return recorded

    def undo(self) -> bool:
        snapshot = self.history.undo()
        if snapshot is not None:
            logger.debug(f"Undo to history entry {self.history.index}")
            self._apply_snapshot(snapshot)
        self._notify_history()
        return snapshot is not None

    def redo(self) -> bool:
        snapshot = self.history.redo()
        if snapshot is not None:
            logger.debug(f"Redo to history entry {self.history.index}")
            self._apply_snapshot(snapshot)
        self._notify_history()
        return snapshot is not None

    def _apply_snapshot(self, snapshot: LayoutHistorySnapshot) -> None:
        """
        Restore camera, positions, panel offsets, selection and focus.

        Every piece of state is written before anything is redrawn or any
        observer runs, so no partially restored state is observable.
        """
        self._cancel_drag()
        self.viewport.clear_zoom_to_node()
        self._pre_zoom_selection = None
        self._wheel_settled.cancel()
        self.viewport.camera.restore(snapshot.camera)

        stale = 0
        for node_id, x, y in snapshot.positions:
            if not self.store.move_node(node_id, x, y):
                stale += 1
        if stale:
            logger.debug(f"Skipped {stale} stale node positions while restoring history")

        self.nested.replace_offsets(snapshot.offset_map())
        selected = snapshot.selected_node_id
        self.selected_node_id = selected if selected is None or self.store.has_node(selected) else None
        self.focus_enabled = snapshot.focus_enabled
        self.focus_mode = snapshot.focus_mode
        self.layout = snapshot.layout

        self._rebuild_render_graph()
        self._push_transform()
        self.virtualization.rematerialize(deferred=False)
        self._draw_panels()
        self._notify_camera()

    # =========================================================================
    # Virtualization and minimap
    # =========================================================================

    def set_virtualization_enabled(self, enabled: bool) -> None:
        self.virtualization.set_enabled(enabled)

    @property
    def visibility(self) -> Optional[VirtualizationResult]:
        return self.virtualization.result

    def graph_bounds(self) -> Box:
        return bounds_or_default([node.box for node in self._render_nodes])

    def minimap_markers(self) -> List[MinimapMarker]:
        return self.minimap.markers(self._render_nodes, self.graph_bounds())

    def minimap_viewport(self) -> Box:
        return self.minimap.viewport_rect(self.viewport.state, self.viewport.size, self.graph_bounds())

    def minimap_click(self, point: Point) -> CameraState:
        target = self.minimap.camera_for_click(point, self.viewport.state, self.viewport.size, self.graph_bounds())
        self.viewport.camera.restore(target)
        self._camera_changed()
        return self.viewport.state

    # =========================================================================
    # Introspection
    # =========================================================================

    def rendered_node(self, node_id: str) -> Optional[Node]:
        return self._node_index.get(node_id)

    def stats(self) -> Dict[str, Any]:
        result = self.virtualization.result
        return {
            "nodes": self.store.node_count,
            "edges": self.store.edge_count,
            "rendered_nodes": len(self._render_nodes),
            "rendered_edges": len(self._render_edges),
            "clusters": len(self.clusters.clusters),
            "scale": self.viewport.camera.scale,
            "zoom_level": self.zoom_level(),
            "visible_nodes": len(result.visible_nodes) if result else len(self._render_nodes),
            "offscreen": dict(result.offscreen_counts) if result else {},
        }

    def dispose(self) -> None:
        """Cancel pending work and remove everything from the surface."""
        self._resize.cancel()
        self._wheel_settled.cancel()
        self._cancel_drag()
        self.virtualization.cancel()
        for node_id in self.virtualization.materialized_node_ids:
            self.surface.remove(node_id)
        for edge_id in self.virtualization.materialized_edge_ids:
            self.surface.remove(edge_id)
        self.virtualization.reset()
        self._clear_panels()
        self._render_nodes = []
        self._render_edges = []
        self._node_index = {}
        self._edge_index = {}
