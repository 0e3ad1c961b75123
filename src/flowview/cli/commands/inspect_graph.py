"""
Inspect Command - Report what the viewport engine would draw.

Loads a graph payload, fits it into a viewport of the given size,
optionally pans, and prints camera, clustering and virtualization
figures.
"""

import logging
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from ...config import ClusteringSettings, FlowViewSettings
from ...controller import FlowViewController
from ...core.scheduling import ManualScheduler
from ..utils import RecordingSurface, load_controller

logger = logging.getLogger(__name__)

console = Console()


@click.command("inspect")
@click.argument("graph_json", type=click.Path())
@click.option("--width", default=1280.0, type=float, help="Viewport width in pixels")
@click.option("--height", default=800.0, type=float, help="Viewport height in pixels")
@click.option("--pan", nargs=2, type=float, default=None, help="Pan by DX DY screen pixels after fitting")
@click.option("--cluster", is_flag=True, help="Group large graphs into collapsed clusters")
def inspect(
    graph_json: str,
    width: float,
    height: float,
    pan: Optional[Tuple[float, float]],
    cluster: bool,
) -> None:
    """
    Fit a graph and report scale, visibility and clusters.
    """
    scheduler = ManualScheduler()
    surface = RecordingSurface()
    settings = FlowViewSettings(clustering=ClusteringSettings(enabled=cluster))
    controller = FlowViewController(surface, settings, scheduler, width=width, height=height)

    if not load_controller(controller, graph_json):
        raise SystemExit(1)

    # Let the post-load visibility pass run
    scheduler.advance(controller.settings.virtualization.frame_interval_ms)
    if pan:
        controller.pan(*pan)
        controller.virtualization.update_now()

    stats = controller.stats()
    summary = Table(title="Viewport", show_header=False)
    summary.add_column("Metric", style="bold")
    summary.add_column("Value")
    summary.add_row("Viewport", f"{width:g} x {height:g}")
    summary.add_row("Scale", f"{stats['scale']:.4f}")
    summary.add_row("Zoom level", f"{stats['zoom_level']}%")
    summary.add_row("Nodes", f"{stats['nodes']} ({stats['rendered_nodes']} rendered)")
    summary.add_row("Edges", f"{stats['edges']} ({stats['rendered_edges']} rendered)")
    summary.add_row("Visible nodes", f"{stats['visible_nodes']}/{stats['rendered_nodes']}")
    for direction, count in stats["offscreen"].items():
        summary.add_row(f"Off-screen {direction}", str(count))
    console.print(summary)

    if controller.store.parse_error is not None:
        error = controller.store.parse_error
        where = f" (line {error.line})" if error.line is not None else ""
        console.print(f"[yellow]Parse error{where}: {error.message}[/yellow]")

    clusters = controller.clusters.clusters
    if clusters:
        table = Table(title="Clusters")
        table.add_column("Id")
        table.add_column("Label")
        table.add_column("Members", justify="right")
        table.add_column("State")
        for cluster in clusters:
            table.add_row(
                cluster.id,
                cluster.label,
                str(len(cluster.node_ids)),
                "expanded" if cluster.expanded else "collapsed",
            )
        console.print(table)

    logger.debug(f"Surface holds {len(surface.nodes)} nodes and {len(surface.edges)} edges")
