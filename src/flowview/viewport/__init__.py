from .camera import Camera, CameraState
from .controller import ViewportController
from .minimap import Minimap
from .nested import CloudOffset, CloudViewState, NestedViewportManager

__all__ = [
    "Camera",
    "CameraState",
    "ViewportController",
    "Minimap",
    "CloudOffset",
    "CloudViewState",
    "NestedViewportManager",
]
