"""Shared fixtures for flowview tests."""

from typing import List, Tuple

import pytest

from factories import make_edge, make_node
from flowview.core.scheduling import ManualScheduler
from flowview.core.store import GraphStore
from flowview.core.types import Edge, Node, NodeType


@pytest.fixture
def linear_graph() -> Tuple[List[Node], List[Edge]]:
    """A -> B -> C spanning a 540 x 120 bounding box."""
    nodes = [
        make_node("a", 0, 0, start_line=3),
        make_node("b", 180, 30, NodeType.JOIN),
        make_node("c", 360, 60, NodeType.SELECT),
    ]
    edges = [make_edge("a", "b", start_line=5), make_edge("b", "c")]
    return nodes, edges


@pytest.fixture
def chain_store() -> GraphStore:
    """A -> B -> C -> D laid out left to right."""
    store = GraphStore()
    store.load(
        [make_node(name, i * 300, 0) for i, name in enumerate("abcd")],
        [make_edge("a", "b"), make_edge("b", "c"), make_edge("c", "d")],
    )
    return store


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()
