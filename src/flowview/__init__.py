"""
flowview - Graph viewport and exploration engine for SQL flow diagrams.

flowview owns the interactive state behind a query flow diagram: camera
geometry, viewport culling, clustering of dense graphs, drill-in panels
for CTEs and subqueries, reachability for focus and navigation, and
layout undo/redo. Drawing is delegated to a host-supplied RenderSurface.

Key Components:
- core: node/edge types, geometry, graph store, scheduling, contracts
- viewport: primary camera, nested panel cameras, minimap
- graph: virtualization, clustering, reachability
- history: layout undo/redo
- controller: the FlowViewController context object

Usage:
    from flowview import FlowViewController

    view = FlowViewController(surface, width=1280, height=800)
    view.load_from_dict(payload)
    view.zoom_to_node("join_1")
"""

__version__ = "0.1.0"

from .config import FlowViewSettings
from .controller import FlowViewController
from .core.types import ColumnLineage, Direction, Edge, FocusMode, LayoutType, Node, NodeType, ParseError
from .errors import FlowViewError, InvalidGraphError, UnknownNodeError

__all__ = [
    "__version__",
    "FlowViewController",
    "FlowViewSettings",
    "Node",
    "Edge",
    "NodeType",
    "FocusMode",
    "LayoutType",
    "Direction",
    "ColumnLineage",
    "ParseError",
    "FlowViewError",
    "InvalidGraphError",
    "UnknownNodeError",
]
