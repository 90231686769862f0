from __future__ import annotations

# hexboard/board/history.py
from typing import List, Optional

from .model import BoardData

DEFAULT_DEPTH = 20


class HistoryManager:
    """Bounded undo/redo over full board snapshots.

    Entries are serialised JSON strings so every entry is independent of the
    live board object and of every other entry.
    """

    def __init__(self, initial: Optional[BoardData] = None, max_depth: int = DEFAULT_DEPTH):
        self.stack: List[str] = []
        self.redo_stack: List[str] = []
        self.max_depth = max(1, int(max_depth))
        self._current = (initial or BoardData()).to_json()

    @property
    def current(self) -> BoardData:
        return BoardData.from_json(self._current)

    @property
    def can_undo(self) -> bool:
        return bool(self.stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def is_current(self, state: BoardData) -> bool:
        return state.to_json() == self._current

    def _push(self, stack: List[str], entry: str) -> None:
        # trim if needed
        if len(stack) >= self.max_depth:
            stack.pop(0)
        stack.append(entry)

    def commit(self, next_state: BoardData) -> BoardData:
        self._push(self.stack, self._current)
        self.redo_stack.clear()
        self._current = next_state.to_json()
        return next_state

    def adopt(self, state: BoardData) -> None:
        """Replace the baseline without recording an entry (remote updates)."""
        self._current = state.to_json()

    def undo(self) -> Optional[BoardData]:
        if not self.stack:
            return None
        entry = self.stack.pop()
        self._push(self.redo_stack, self._current)
        self._current = entry
        return BoardData.from_json(entry)

    def redo(self) -> Optional[BoardData]:
        if not self.redo_stack:
            return None
        entry = self.redo_stack.pop()
        self._push(self.stack, self._current)
        self._current = entry
        return BoardData.from_json(entry)

    def clear(self) -> None:
        self.stack.clear()
        self.redo_stack.clear()


__all__ = ["DEFAULT_DEPTH", "HistoryManager"]
