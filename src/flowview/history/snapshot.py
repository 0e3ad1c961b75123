"""Layout history snapshot."""

from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from ..core.types import FocusMode, LayoutType
from ..viewport.camera import CameraState
from ..viewport.nested import CloudOffset


class LayoutHistorySnapshot(BaseModel):
    """
    Immutable record of the user-visible layout after a discrete action.

    Positions are (node_id, x, y) triples; cloud offsets are
    (container_id, offset) pairs. Both are stored as tuples so two snapshots
    of the same layout compare equal.
    """
    model_config = ConfigDict(frozen=True)

    camera: CameraState
    selected_node_id: Optional[str] = None
    focus_enabled: bool = False
    focus_mode: FocusMode = FocusMode.ALL
    layout: LayoutType = LayoutType.VERTICAL
    positions: Tuple[Tuple[str, float, float], ...] = ()
    cloud_offsets: Tuple[Tuple[str, CloudOffset], ...] = ()

    def position_map(self) -> Dict[str, Tuple[float, float]]:
        return {node_id: (x, y) for node_id, x, y in self.positions}

    def offset_map(self) -> Dict[str, CloudOffset]:
        return dict(self.cloud_offsets)
