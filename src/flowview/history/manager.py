"""
Layout History.

Bounded linear undo stack with a cursor. The entry under the cursor is the
current layout; undo/redo move the cursor and hand back the entry there.
"""

import logging
from typing import Generic, List, Optional, TypeVar

from ..config import HISTORY_MAX_ENTRIES

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LayoutHistory(Generic[T]):
    """
    Undo/redo over immutable snapshots.

    - record() drops the redo tail, skips a snapshot equal to the current
      one and evicts the oldest entries past max_entries
    - undo()/redo() return None at either end and leave the cursor alone
    """

    def __init__(self, max_entries: int = HISTORY_MAX_ENTRIES):
        self.max_entries = max(1, max_entries)
        self._entries: List[T] = []
        self._index = -1

    def clear(self) -> None:
        self._entries = []
        self._index = -1

    def initialize(self, snapshot: T) -> bool:
        """Set the baseline entry. No-op (returns False) when one exists."""
        if self._entries:
            return False
        self._entries = [snapshot]
        self._index = 0
        return True

    def record(self, snapshot: T) -> bool:
        """Push a snapshot after the cursor. Returns False for a duplicate."""
        if self._index >= 0 and self._entries[self._index] == snapshot:
            return False

        del self._entries[self._index + 1:]
        self._entries.append(snapshot)

        overflow = len(self._entries) - self.max_entries
        if overflow > 0:
            del self._entries[:overflow]
            logger.debug(f"History full, evicted {overflow} oldest entries")

        self._index = len(self._entries) - 1
        return True

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return 0 <= self._index < len(self._entries) - 1

    def undo(self) -> Optional[T]:
        if not self.can_undo:
            return None
        self._index -= 1
        return self._entries[self._index]

    def redo(self) -> Optional[T]:
        if not self.can_redo:
            return None
        self._index += 1
        return self._entries[self._index]

    @property
    def current(self) -> Optional[T]:
        if self._index < 0:
            return None
        return self._entries[self._index]

    @property
    def index(self) -> int:
        return self._index

    def __len__(self) -> int:
        return len(self._entries)
