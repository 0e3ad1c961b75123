"""
Focus Command - Print the reachability closure of a node.
"""

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from ...core.store import GraphStore
from ...core.types import FocusMode
from ...errors import FlowViewError
from ...graph.reachability import connected, sort_layout_order
from ..utils import echo_error, load_payload

console = Console()


@click.command()
@click.argument("graph_json", type=click.Path())
@click.argument("node_id")
@click.option(
    "--mode",
    type=click.Choice([mode.value for mode in FocusMode]),
    default=FocusMode.ALL.value,
    help="Direction of the closure",
)
def focus(graph_json: str, node_id: str, mode: str) -> None:
    """
    List every node connected to NODE_ID upstream, downstream or both.
    """
    data = load_payload(graph_json)
    if data is None:
        raise SystemExit(1)

    store = GraphStore()
    try:
        store.load_from_dict(data)
    except (FlowViewError, ValidationError) as e:
        echo_error(f"Could not load graph: {e}")
        raise SystemExit(1)

    if not store.has_node(node_id):
        echo_error(f"Node not found: {node_id}")
        raise SystemExit(1)

    closure = connected(node_id, store.edges, FocusMode(mode))
    nodes = sort_layout_order(node for node in store.iter_nodes() if node.id in closure)

    table = Table(title=f"{mode} of {node_id} ({len(nodes)} nodes)")
    table.add_column("Id")
    table.add_column("Type")
    table.add_column("Label")
    for node in nodes:
        table.add_row(node.id, node.type.value, node.label)
    console.print(table)
