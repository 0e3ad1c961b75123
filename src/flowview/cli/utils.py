"""
CLI Utilities - Shared helpers for the diagnostic commands.

Includes payload loading, message helpers and an in-memory render surface
that records the draw instructions a real host would receive.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

import click
from pydantic import ValidationError

from ..core.observers import EdgeDraw, NodeDraw
from ..errors import FlowViewError
from ..viewport.camera import CameraState


def echo_error(message: str) -> None:
    """Print an error message in red to stderr."""
    click.echo(click.style(f"❌ {message}", fg="red"), err=True)


def load_payload(path: str) -> Optional[Dict[str, Any]]:
    """
    Read a graph payload from a JSON file.

    Returns None (after reporting why) when the file is missing or is not
    a JSON object.
    """
    file = Path(path)
    if not file.exists():
        echo_error(f"Graph file not found: {path}")
        return None
    try:
        data = json.loads(file.read_text())
    except json.JSONDecodeError as e:
        echo_error(f"Invalid JSON in {path}: {e}")
        return None
    if not isinstance(data, dict):
        echo_error(f"Expected a JSON object in {path}")
        return None
    return data


def load_controller(controller, path: str) -> bool:
    """Load a payload file into a controller, reporting failures."""
    data = load_payload(path)
    if data is None:
        return False
    try:
        controller.load_from_dict(data)
    except (FlowViewError, ValidationError) as e:
        echo_error(f"Could not load graph: {e}")
        return False
    return True


class RecordingSurface:
    """RenderSurface keeping the latest draw instruction per element."""

    def __init__(self):
        self.nodes: Dict[str, NodeDraw] = {}
        self.edges: Dict[str, EdgeDraw] = {}
        self.transforms: Dict[Optional[str], CameraState] = {}

    def draw_node(self, request: NodeDraw) -> None:
        self.nodes[request.element_id] = request

    def draw_edge(self, request: EdgeDraw) -> None:
        self.edges[request.element_id] = request

    def remove(self, element_id: str) -> None:
        self.nodes.pop(element_id, None)
        self.edges.pop(element_id, None)

    def set_transform(self, camera: CameraState, scope: Optional[str] = None) -> None:
        self.transforms[scope] = camera
