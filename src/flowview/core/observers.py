"""
Collaborator Contracts.

The core never draws and never talks to the host directly. It emits
declarative draw instructions to a RenderSurface and notifies a small set
of named observers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Protocol, Tuple

from .geometry import Box, Point

if TYPE_CHECKING:
    from ..graph.clustering import NodeCluster
    from ..graph.virtualization import OffscreenIndicator, VirtualizationResult
    from ..viewport.camera import CameraState

# Opacity applied by focus mode to elements outside the closure
DIMMED_NODE_OPACITY = 0.25
DIMMED_EDGE_OPACITY = 0.15


@dataclass(frozen=True)
class NodeDraw:
    """
    Draw instruction for one node-like element.

    kind is "node" for operator nodes, "cluster" for cluster placeholders and
    "panel" for a container's floating sub-graph panel.
    """
    element_id: str
    kind: str
    box: Box
    label: str = ""
    node_type: Optional[str] = None
    opacity: float = 1.0
    hidden: bool = False
    selected: bool = False
    highlighted: bool = False
    scope: Optional[str] = None


@dataclass(frozen=True)
class EdgeDraw:
    """Draw instruction for an edge or a panel connector, as a path in graph space."""
    element_id: str
    source: str
    target: str
    points: Tuple[Point, ...]
    opacity: float = 1.0
    hidden: bool = False
    highlighted: bool = False
    connector: bool = False
    scope: Optional[str] = None


class RenderSurface(Protocol):
    """Drawing collaborator. scope is None for the primary canvas, else a container id."""

    def draw_node(self, request: NodeDraw) -> None: ...

    def draw_edge(self, request: EdgeDraw) -> None: ...

    def remove(self, element_id: str) -> None: ...

    def set_transform(self, camera: "CameraState", scope: Optional[str] = None) -> None: ...


class ViewportObserver(Protocol):
    def on_camera_changed(self, camera: "CameraState", zoom_level: int) -> None: ...

    def on_visibility_changed(
        self,
        result: "VirtualizationResult",
        indicators: List["OffscreenIndicator"],
    ) -> None: ...


class ClusterObserver(Protocol):
    def on_clusters_changed(self, clusters: List["NodeCluster"]) -> None: ...


class HistoryObserver(Protocol):
    def on_history_changed(self, can_undo: bool, can_redo: bool) -> None: ...


class HostBridge(Protocol):
    """Host application collaborator receiving editor navigation requests."""

    def navigate_to_line(self, line: int) -> None: ...
