from __future__ import annotations

"""
Room orchestration for realtime board sessions.

A room is the set of live connections on one board. Rooms exist only while
they have members: the registry creates one on first join and drops it on
last leave. Nothing here holds board state; messages are relayed as-is.
"""

import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from . import protocol

LOGGER = logging.getLogger(__name__)

ROLES = ("owner", "editor", "viewer", "comment")
WRITE_ROLES = frozenset({"owner", "editor"})


def _now() -> float:
    return time.time()


def can_write(role: Optional[str]) -> bool:
    return role in WRITE_ROLES


@dataclass
class ConnectionState:
    client_id: str
    label: str
    role: str
    websocket: Any
    user_id: Optional[str] = None
    cursor: Optional[Tuple[float, float]] = None
    joined_at: float = field(default_factory=_now)
    last_seen: float = field(default_factory=_now)

    @property
    def can_edit(self) -> bool:
        return can_write(self.role)

    def roster_entry(self) -> Dict[str, Any]:
        return {"id": self.client_id, "label": self.label}


class BoardRoom:
    def __init__(self, board_id: str) -> None:
        self.board_id = board_id
        self.connections: Dict[str, ConnectionState] = {}

    def __len__(self) -> int:
        return len(self.connections)

    def __contains__(self, client_id: object) -> bool:
        return client_id in self.connections

    def join(self, state: ConnectionState) -> None:
        self.connections[state.client_id] = state
        state.last_seen = _now()

    def leave(self, client_id: str) -> bool:
        return self.connections.pop(client_id, None) is not None

    def roster(self) -> List[Dict[str, Any]]:
        return [state.roster_entry() for state in self.connections.values()]

    def members(self, *, exclude: Iterable[str] = ()) -> List[ConnectionState]:
        skip = set(exclude)
        return [s for cid, s in self.connections.items() if cid not in skip]


class RoomRegistry:
    """
    Registry of active board rooms.

    Handlers for one connection run to completion on the event loop, so each
    room is only ever mutated by the join/leave of its own members.
    """

    def __init__(self) -> None:
        self._rooms: Dict[str, BoardRoom] = {}

    # Membership ---------------------------------------------------------------
    def room(self, board_id: str) -> Optional[BoardRoom]:
        return self._rooms.get(board_id)

    def unique_client_id(self, board_id: str, requested: Optional[str] = None) -> str:
        candidate = (requested or "").strip()[:128]
        room = self._rooms.get(board_id)
        if candidate and (room is None or candidate not in room):
            return candidate
        return f"conn-{secrets.token_hex(8)}"

    def join(self, board_id: str, state: ConnectionState) -> BoardRoom:
        room = self._rooms.get(board_id)
        if room is None:
            room = BoardRoom(board_id)
            self._rooms[board_id] = room
            LOGGER.debug("Room opened for board %s", board_id)
        room.join(state)
        LOGGER.info(
            "collab.join board=%s client=%s role=%s members=%s",
            board_id,
            state.client_id,
            state.role,
            len(room),
        )
        return room

    def leave(self, board_id: str, client_id: str) -> Optional[BoardRoom]:
        """Remove a member; returns the room if it still has members."""
        room = self._rooms.get(board_id)
        if room is None:
            return None
        if room.leave(client_id):
            LOGGER.info("collab.leave board=%s client=%s", board_id, client_id)
        if not room.connections:
            self._rooms.pop(board_id, None)
            LOGGER.debug("Room closed for board %s", board_id)
            return None
        return room

    # Delivery -----------------------------------------------------------------
    async def send(self, state: ConnectionState, payload: Dict[str, Any]) -> None:
        await state.websocket.send_text(protocol.dumps(payload))

    async def broadcast(
        self, board_id: str, message: str, *, exclude: Iterable[str] = ()
    ) -> int:
        room = self._rooms.get(board_id)
        if room is None:
            return 0
        delivered = 0
        failures: List[str] = []
        for state in room.members(exclude=exclude):
            try:
                await state.websocket.send_text(message)
                delivered += 1
            except Exception as exc:  # pragma: no cover - network path
                LOGGER.warning("Collab broadcast failed for %s: %s", state.client_id, exc)
                failures.append(state.client_id)
        for client_id in failures:
            self.leave(board_id, client_id)
        return delivered

    async def broadcast_roster(self, board_id: str) -> int:
        room = self._rooms.get(board_id)
        if room is None:
            return 0
        payload = protocol.presence_state(board_id, room.roster())
        return await self.broadcast(board_id, protocol.dumps(payload))

    async def relay(
        self, board_id: str, sender: ConnectionState, raw: str, body: Dict[str, Any]
    ) -> int:
        """Forward a decoded client frame to the other members.

        The ``sender`` field is always rewritten to the connection's own
        client id. ``board_update`` from a non-writing role is dropped.
        """
        msg_type = body.get("type")
        sender.last_seen = _now()
        if body.get("boardId") not in (None, board_id):
            LOGGER.debug("Dropping %s for foreign board from %s", msg_type, sender.client_id)
            return 0
        if msg_type == protocol.BOARD_UPDATE:
            if not sender.can_edit:
                LOGGER.info(
                    "collab.drop board=%s client=%s role=%s reason=read_only",
                    board_id,
                    sender.client_id,
                    sender.role,
                )
                return 0
        elif msg_type == protocol.PRESENCE:
            cursor = protocol.parse_cursor(body.get("cursor"))
            if cursor is not None:
                sender.cursor = cursor
        else:
            return 0
        if body.get("sender") != sender.client_id:
            LOGGER.info(
                "collab.restamp board=%s client=%s claimed=%s",
                board_id,
                sender.client_id,
                body.get("sender"),
            )
            body = {**body, "sender": sender.client_id}
            raw = protocol.dumps(body)
        return await self.broadcast(board_id, raw, exclude=[sender.client_id])

    # Introspection ------------------------------------------------------------
    def stats(self) -> Dict[str, Any]:
        rooms = list(self._rooms.values())
        return {
            "rooms": len(rooms),
            "connections": sum(len(room) for room in rooms),
        }

    def clear(self) -> None:
        self._rooms.clear()


__all__ = [
    "BoardRoom",
    "ConnectionState",
    "ROLES",
    "RoomRegistry",
    "WRITE_ROLES",
    "can_write",
]
