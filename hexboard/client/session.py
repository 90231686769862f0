from __future__ import annotations

"""
Editor session for one open board.

Wires the interaction engine, undo history, camera and (optionally) the
realtime sync client together. Every local change goes through
:meth:`BoardSession._state_changed`, the single place where outbound
broadcasts are decided.
"""

import logging
from typing import Any, Callable, Dict, Iterable, Optional, TypeVar

from hexboard.board.history import HistoryManager
from hexboard.board.interaction import InteractionEngine
from hexboard.board.model import BoardData, HexContent, Hexagon
from hexboard.board.preferences import PreferencesStore, UserPreferences
from hexboard.board.viewport import Viewport
from hexboard.collab.room import can_write
from hexboard.config import get_settings

from .api import BoardApiClient, BoardApiError
from .sync_client import BoardSyncClient

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class ReadOnlyBoardError(PermissionError):
    """Raised when a viewer/comment session attempts a structural edit."""


class BoardSession:
    def __init__(
        self,
        board_id: str,
        data: Any = None,
        *,
        title: str = "",
        role: str = "owner",
        viewport: Optional[Viewport] = None,
        preferences: Optional[UserPreferences] = None,
        sync: Optional[BoardSyncClient] = None,
        history_depth: Optional[int] = None,
    ) -> None:
        self.board_id = board_id
        self.title = title
        self.role = role
        self.board = data if isinstance(data, BoardData) else BoardData.from_dict(data)
        self.viewport = viewport or Viewport()
        self.viewport.restore(self.board.viewport)
        depth = history_depth or get_settings().history_depth
        self.history = HistoryManager(self.board, max_depth=depth)
        prefs = preferences or UserPreferences()
        self.engine = InteractionEngine(
            self.board,
            self.viewport,
            history=self.history,
            on_change=self._on_engine_change,
            disconnect_velocity_threshold=prefs.disconnect_velocity_threshold,
            read_only=self.read_only,
        )
        self.sync: Optional[BoardSyncClient] = None
        self.last_error: Optional[str] = None
        self.dirty = False
        self._suppress_broadcast = False
        if sync is not None:
            self.attach_sync(sync)

    @classmethod
    def open(
        cls, api: BoardApiClient, board_id: str, **kwargs: Any
    ) -> "BoardSession":
        board = api.get_board(board_id)
        kwargs.setdefault("role", board.get("role") or "owner")
        return cls(board_id, board.get("data"), title=board.get("title") or "", **kwargs)

    @property
    def read_only(self) -> bool:
        return not can_write(self.role)

    def attach_sync(self, client: BoardSyncClient) -> None:
        self.sync = client
        client.role = self.role
        client.on_board_update = self.apply_remote

    # Broadcast gate -----------------------------------------------------------
    def _state_changed(self) -> None:
        if self._suppress_broadcast:
            self._suppress_broadcast = False
            return
        if self.sync is None or self.read_only:
            return
        self.sync.publish(self.board.as_dict())

    def _on_engine_change(self, _board: BoardData, committed: bool) -> None:
        self.dirty = True
        self._state_changed()

    def _replace(self, board: BoardData) -> None:
        self.board = board
        self.engine.set_board(board)

    # Pointer passthrough ------------------------------------------------------
    def pointer_down(self, sx: float, sy: float, **kwargs: Any) -> str:
        return self.engine.pointer_down(sx, sy, **kwargs)

    def pointer_move(self, sx: float, sy: float, **kwargs: Any) -> str:
        if self.sync is not None:
            self.sync.update_cursor(*self.viewport.screen_to_world(sx, sy))
        return self.engine.pointer_move(sx, sy, **kwargs)

    def pointer_up(self, *args: Any, **kwargs: Any) -> str:
        return self.engine.pointer_up(*args, **kwargs)

    # Structural edits ---------------------------------------------------------
    def edit(self, mutate: Callable[[BoardData], T]) -> T:
        """Run ``mutate`` on the live board and record one history step."""
        if self.read_only:
            raise ReadOnlyBoardError(f"{self.role} cannot edit board {self.board_id}")
        result = mutate(self.board)
        self.engine.commit()
        return result

    def add_hexagon(self, x: float, y: float, **kwargs: Any) -> Hexagon:
        return self.edit(lambda board: board.add_hexagon(x, y, **kwargs))

    def spawn_connected(self, anchor_id: Optional[str] = None, **kwargs: Any) -> Hexagon:
        anchor = anchor_id or self.engine.last_selected
        if not anchor:
            raise ValueError("no anchor hexagon selected")
        spacing = self.engine.snap_distance
        return self.edit(lambda board: board.spawn_connected(anchor, spacing=spacing, **kwargs))

    def connect(self, first_id: str, second_id: str) -> bool:
        return self.edit(lambda board: board.connect(first_id, second_id))

    def disconnect(self, first_id: str, second_id: str) -> bool:
        return self.edit(lambda board: board.disconnect(first_id, second_id))

    def detach(self, hex_id: str) -> list:
        return self.edit(lambda board: board.clear_connections(hex_id))

    def delete(self, hex_ids: Iterable[str]) -> list:
        ids = list(hex_ids)
        removed = self.edit(lambda board: board.delete_hexagons(ids))
        self.engine.set_board(self.board)
        return removed

    def delete_selected(self) -> list:
        return self.delete(self.engine.selection)

    def update_hexagon(
        self,
        hex_id: str,
        *,
        text: Optional[str] = None,
        fill_color: Optional[str] = None,
        content: Any = ...,
    ) -> Hexagon:
        if isinstance(content, dict):
            content = HexContent.from_dict(content)
        return self.edit(
            lambda board: board.update_hexagon(
                hex_id, text=text, fill_color=fill_color, content=content
            )
        )

    # History ------------------------------------------------------------------
    def undo(self) -> bool:
        state = self.history.undo()
        if state is None:
            return False
        self._replace(state)
        self.dirty = True
        self._state_changed()
        return True

    def redo(self) -> bool:
        state = self.history.redo()
        if state is None:
            return False
        self._replace(state)
        self.dirty = True
        self._state_changed()
        return True

    # Remote -------------------------------------------------------------------
    def apply_remote(self, data: Dict[str, Any], sender: str = "") -> None:
        """Adopt a collaborator's snapshot without history or re-broadcast."""
        board = BoardData.from_dict(data)
        board.viewport = dict(self.board.viewport)
        self.history.adopt(board)
        self._replace(board)
        LOGGER.debug("Applied remote update on %s from %s", self.board_id, sender or "?")
        self._suppress_broadcast = True
        self._state_changed()

    # Persistence --------------------------------------------------------------
    def snapshot(self) -> Dict[str, Any]:
        data = self.board.as_dict()
        data["viewport"] = self.viewport.encode()
        return data

    def save(self, api: BoardApiClient, *, title: Optional[str] = None) -> bool:
        data = self.snapshot()
        try:
            board = api.update_board(self.board_id, title=title, data=data)
        except BoardApiError as exc:
            self.last_error = exc.message or "Failed to save board"
            LOGGER.warning("Save failed for %s: %s", self.board_id, self.last_error)
            return False
        self.board.viewport = data["viewport"]
        self.history.adopt(self.board)
        self.title = board.get("title") or self.title
        self.dirty = False
        self.last_error = None
        return True

    def comment(
        self,
        api: BoardApiClient,
        text: str,
        *,
        hexagon_id: Optional[str] = None,
        share: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        try:
            comment = api.add_comment(self.board_id, text, hexagon_id=hexagon_id, share=share)
        except BoardApiError as exc:
            self.last_error = exc.message
            return None
        self.board.comments.append(comment)
        self.history.adopt(self.board)
        self.last_error = None
        return comment

    def set_disconnect_velocity(
        self,
        value: float,
        *,
        store: Optional[PreferencesStore] = None,
        user_id: Optional[str] = None,
    ) -> UserPreferences:
        if store is not None:
            prefs = store.set_disconnect_velocity(user_id, value)
        else:
            prefs = UserPreferences(disconnect_velocity_threshold=value)
        self.engine.disconnect_velocity_threshold = prefs.disconnect_velocity_threshold
        return prefs


__all__ = ["BoardSession", "ReadOnlyBoardError"]
