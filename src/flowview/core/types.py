"""
Core type definitions for flowview.

Nodes and edges arrive from the SQL parsing collaborator with camelCase keys.
Aliases accept that shape while the Python API stays snake_case.
"""

from enum import StrEnum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..config import DEFAULT_NODE_HEIGHT, DEFAULT_NODE_WIDTH
from .geometry import Box, Point


class NodeType(StrEnum):
    """Kinds of operator nodes in a query flow."""
    TABLE = "table"
    FILTER = "filter"
    JOIN = "join"
    AGGREGATE = "aggregate"
    SORT = "sort"
    LIMIT = "limit"
    SELECT = "select"
    RESULT = "result"
    CTE = "cte"
    UNION = "union"
    SUBQUERY = "subquery"
    WINDOW = "window"
    CASE = "case"
    CLUSTER = "cluster"


CONTAINER_TYPES = frozenset({NodeType.CTE, NodeType.SUBQUERY})


class ClauseType(StrEnum):
    """SQL clause an edge was derived from."""
    JOIN = "join"
    WHERE = "where"
    HAVING = "having"
    ON = "on"
    FILTER = "filter"
    FLOW = "flow"
    MERGE_SOURCE = "merge_source"
    MERGE_TARGET = "merge_target"


class FocusMode(StrEnum):
    """Direction of a reachability closure."""
    UPSTREAM = "upstream"
    DOWNSTREAM = "downstream"
    ALL = "all"


class LayoutType(StrEnum):
    """Layout algorithms the external layout collaborator can produce."""
    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"
    COMPACT = "compact"
    FORCE = "force"
    RADIAL = "radial"


class Direction(StrEnum):
    """Screen directions used for off-screen counts."""
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"


class Edge(BaseModel):
    """
    Directed flow between two nodes.

    Edges are immutable; clustering produces rewritten copies.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    source: str
    target: str
    label: Optional[str] = None
    sql_clause: Optional[str] = Field(default=None, alias="sqlClause")
    clause_type: Optional[ClauseType] = Field(default=None, alias="clauseType")
    start_line: Optional[int] = Field(default=None, alias="startLine")
    end_line: Optional[int] = Field(default=None, alias="endLine")

    def rewired(self, source: str, target: str) -> "Edge":
        """Copy of this edge pointing at new endpoints."""
        key = f"{source}->{target}"
        return self.model_copy(update={"id": f"{self.id}:{key}", "source": source, "target": target})


class Node(BaseModel):
    """
    Operator node placed in graph space.

    Position and the expanded flag are mutated in place by drag handlers and
    container toggles; everything else is set by the parsing collaborator.
    """
    model_config = ConfigDict(frozen=False, populate_by_name=True, extra="ignore")

    id: str
    type: NodeType
    label: str = ""
    description: Optional[str] = None
    x: float = 0.0
    y: float = 0.0
    width: float = DEFAULT_NODE_WIDTH
    height: float = DEFAULT_NODE_HEIGHT
    children: List["Node"] = Field(default_factory=list)
    child_edges: List[Edge] = Field(default_factory=list, alias="childEdges")
    expanded: bool = False
    collapsible: bool = False
    depth: Optional[int] = None
    start_line: Optional[int] = Field(default=None, alias="startLine")
    end_line: Optional[int] = Field(default=None, alias="endLine")

    @property
    def box(self) -> Box:
        return Box(self.x, self.y, self.width or DEFAULT_NODE_WIDTH, self.height or DEFAULT_NODE_HEIGHT)

    @property
    def center(self) -> Point:
        return self.box.center

    @property
    def is_container(self) -> bool:
        """CTE or subquery carrying a nested sub-graph."""
        return self.type in CONTAINER_TYPES and bool(self.children)

    @property
    def has_open_panel(self) -> bool:
        return self.is_container and self.expanded

    def move_to(self, x: float, y: float) -> None:
        self.x = x
        self.y = y

    def __hash__(self):
        return hash(self.id)

    def __eq__(self, other):
        if isinstance(other, Node):
            return self.id == other.id
        return False


class ColumnLineage(BaseModel):
    """Sources feeding one output column, supplied by the parser."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    output_column: str = Field(alias="outputColumn")
    sources: List[str] = Field(default_factory=list)


class ParseError(BaseModel):
    """Parse failure reported alongside a graph load."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    message: str
    line: Optional[int] = None


Node.model_rebuild()
