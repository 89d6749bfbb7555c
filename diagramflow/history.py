"""
Undo/redo history for the active document.

The history works via snapshots:
- Each write records a full copy of the document as it was before the write
- Undo hands back the most recent snapshot and keeps the current state for redo
- Redo re-applies a snapshot from the future stack
- Recording a new write invalidates the redo stack
"""

from typing import Optional

from .models import DiagramDocument


HISTORY_MAX = 50


class HistoryManager:
    """
    Bounded snapshot stacks for one document.

    Snapshots are deep copies, so later edits to a document never reach
    into the history. Switching documents must call `reset()`.
    """

    def __init__(self, max_history: int = HISTORY_MAX):
        self._history: list[DiagramDocument] = []  # Past states
        self._future: list[DiagramDocument] = []   # Undone states (for redo)
        self._max_history = max_history

    @property
    def can_undo(self) -> bool:
        return len(self._history) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._future) > 0

    @property
    def undo_depth(self) -> int:
        return len(self._history)

    @property
    def redo_depth(self) -> int:
        return len(self._future)

    def record(self, current: DiagramDocument) -> None:
        """Save the pre-write state; drops the oldest past the limit."""
        self._history.append(current.clone())
        if len(self._history) > self._max_history:
            self._history.pop(0)

        # New action invalidates the redo stack
        self._future.clear()

    def undo(self, current: DiagramDocument) -> Optional[DiagramDocument]:
        """Step back; returns the state to write, or None if nothing to undo."""
        if not self.can_undo:
            return None
        self._future.append(current.clone())
        return self._history.pop()

    def redo(self, current: DiagramDocument) -> Optional[DiagramDocument]:
        """Step forward; returns the state to write, or None if nothing to redo."""
        if not self.can_redo:
            return None
        self._history.append(current.clone())
        return self._future.pop()

    def reset(self) -> None:
        """Forget all history (the active document changed)."""
        self._history.clear()
        self._future.clear()
