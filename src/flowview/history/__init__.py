from .manager import LayoutHistory
from .snapshot import LayoutHistorySnapshot

__all__ = ["LayoutHistory", "LayoutHistorySnapshot"]
