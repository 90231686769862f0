from __future__ import annotations

"""Realtime board sync client for the /api/collab/ws channel."""

import asyncio
import logging
import os
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from hexboard.collab import protocol
from hexboard.collab.room import can_write
from hexboard.config import get_settings

from .throttle import Coalescer, Scheduler, Throttle

LOGGER = logging.getLogger(__name__)

UPDATE_INTERVAL = 0.09
PRESENCE_INTERVAL = 0.06
RECONNECT_DELAY = 3.0


def _default_base() -> str:
    return (os.getenv("HEXBOARD_SERVER_BASE") or "http://127.0.0.1:8000").rstrip("/")


def _build_ws_url(base: str, path: str) -> str:
    if base.startswith("https://"):
        scheme = "wss://"
        rest = base[len("https://") :]
    elif base.startswith("http://"):
        scheme = "ws://"
        rest = base[len("http://") :]
    else:
        scheme = "ws://"
        rest = base
    if not path.startswith("/"):
        path = f"/{path}"
    return f"{scheme}{rest.rstrip('/')}{path}"


class SyncConnectionError(RuntimeError):
    """The broker refused the socket (bad credential or no access)."""


@dataclass
class RemoteCursor:
    client_id: str
    label: str
    x: float
    y: float


class BoardSyncClient:
    """
    Transport-agnostic sync state machine for one open board.

    ``send`` receives encoded frames; inbound frames are fed through
    :meth:`handle_message`. Outbound board state is throttled so only the
    newest snapshot leaves, cursor samples are coalesced, and frames carrying
    our own ``client_id`` are ignored.
    """

    def __init__(
        self,
        board_id: str,
        *,
        send: Callable[[str], Any],
        client_id: Optional[str] = None,
        label: str = protocol.GUEST_LABEL,
        role: str = "editor",
        scheduler: Optional[Scheduler] = None,
        update_interval: float = UPDATE_INTERVAL,
        presence_interval: float = PRESENCE_INTERVAL,
        on_board_update: Optional[Callable[[Dict[str, Any], str], None]] = None,
        on_presence: Optional[Callable[[Dict[str, RemoteCursor]], None]] = None,
    ) -> None:
        self.board_id = board_id
        self.client_id = client_id or f"client-{uuid.uuid4().hex}"
        self.label = label or protocol.GUEST_LABEL
        self.role = role
        self._send = send
        self.on_board_update = on_board_update
        self.on_presence = on_presence
        self.remote_cursors: Dict[str, RemoteCursor] = {}
        self.roster: List[Dict[str, Any]] = []
        self.sent_updates = 0
        self.sent_presence = 0
        self._closed = False
        self._updates: Throttle[Dict[str, Any]] = Throttle(
            update_interval, self._send_update, scheduler=scheduler
        )
        self._cursor: Coalescer[tuple] = Coalescer(
            presence_interval, self._send_presence, scheduler=scheduler
        )

    @property
    def can_edit(self) -> bool:
        return can_write(self.role)

    # Outbound -----------------------------------------------------------------
    def publish(self, data: Dict[str, Any]) -> bool:
        """Queue the latest board state for broadcast."""
        if self._closed or not self.can_edit:
            return False
        self._updates.submit(data)
        return True

    def update_cursor(self, x: float, y: float) -> None:
        if self._closed:
            return
        self._cursor.submit((float(x), float(y)))

    def flush(self) -> None:
        self._updates.flush()

    def _send_update(self, data: Dict[str, Any]) -> None:
        if self._closed or not self.can_edit:
            return
        self.sent_updates += 1
        self._send(protocol.dumps(protocol.board_update(self.board_id, data, self.client_id)))

    def _send_presence(self, cursor: tuple) -> None:
        if self._closed or cursor is None:
            return
        self.sent_presence += 1
        self._send(
            protocol.dumps(protocol.presence(self.board_id, self.client_id, cursor, self.label))
        )

    # Inbound ------------------------------------------------------------------
    def handle_message(self, raw: Any) -> Optional[str]:
        """Apply one inbound frame; returns the handled type or ``None``."""
        body = protocol.decode(raw)
        if body is None:
            LOGGER.debug("Sync client dropped undecodable frame")
            return None
        if body.get("boardId") not in (None, self.board_id):
            return None
        msg_type = body["type"]
        if msg_type == protocol.PRESENCE_STATE:
            self._apply_roster(body.get("users"))
            return msg_type
        sender = str(body.get("sender") or "")
        if sender == self.client_id:
            return None
        if msg_type == protocol.BOARD_UPDATE:
            data = body.get("data")
            if not isinstance(data, dict):
                return None
            if self.on_board_update is not None:
                self.on_board_update(data, sender)
            return msg_type
        if msg_type == protocol.PRESENCE:
            cursor = protocol.parse_cursor(body.get("cursor"))
            if cursor is None or not sender:
                return None
            label = str(body.get("label") or protocol.GUEST_LABEL)
            self.remote_cursors[sender] = RemoteCursor(sender, label, cursor[0], cursor[1])
            self._emit_presence()
            return msg_type
        return None

    def _apply_roster(self, users: Any) -> None:
        roster = [u for u in users or [] if isinstance(u, dict) and u.get("id")]
        self.roster = roster
        live = {str(u["id"]) for u in roster}
        for client_id in list(self.remote_cursors):
            if client_id not in live:
                self.remote_cursors.pop(client_id, None)
        for entry in roster:
            cursor = self.remote_cursors.get(str(entry["id"]))
            if cursor is not None and entry.get("label"):
                cursor.label = str(entry["label"])
        self._emit_presence()

    def _emit_presence(self) -> None:
        if self.on_presence is not None:
            self.on_presence(dict(self.remote_cursors))

    def close(self) -> None:
        self._closed = True
        self._updates.cancel()
        self._cursor.cancel()


class BoardSocket:
    """``websockets`` transport that pumps frames for a :class:`BoardSyncClient`."""

    def __init__(
        self,
        board_id: str,
        *,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        share: Optional[str] = None,
        client_id: Optional[str] = None,
        label: str = protocol.GUEST_LABEL,
        role: str = "editor",
        update_interval: Optional[float] = None,
        presence_interval: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or _default_base()).rstrip("/")
        self.board_id = board_id
        self._token = token
        self._share = share
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._ws: Any = None
        self._explicit_close = False
        self.client = BoardSyncClient(
            board_id,
            send=self._outbox.put_nowait,
            client_id=client_id,
            label=label,
            role=role,
            update_interval=(
                settings.update_interval if update_interval is None else update_interval
            ),
            presence_interval=(
                settings.presence_interval if presence_interval is None else presence_interval
            ),
        )

    @property
    def url(self) -> str:
        params: Dict[str, str] = {"boardId": self.board_id, "clientId": self.client.client_id}
        if self._token:
            params["token"] = self._token
        if self._share:
            params["share"] = self._share
        return _build_ws_url(self.base_url, f"/api/collab/ws?{urlencode(params)}")

    async def run(self) -> None:
        """Connect and pump frames until the socket closes."""
        LOGGER.debug("Sync socket opening for board %s", self.board_id)
        try:
            async with websockets.connect(self.url) as ws:
                self._ws = ws
                LOGGER.info("Sync socket connected (%s)", self.board_id)
                writer = asyncio.create_task(self._writer(ws))
                try:
                    async for message in ws:
                        self.client.handle_message(message)
                except ConnectionClosed as exc:
                    LOGGER.info("Sync socket closed (%s): %s", self.board_id, exc)
                finally:
                    writer.cancel()
                    self._ws = None
        except InvalidHandshake as exc:
            raise SyncConnectionError(f"board {self.board_id}: {exc}") from exc

    async def run_forever(self, reconnect_delay: float = RECONNECT_DELAY) -> None:
        """Reconnect after drops until :meth:`close`; refusals are final."""
        while not self._explicit_close:
            try:
                await self.run()
            except OSError as exc:
                LOGGER.warning("Sync socket error (%s): %s", self.board_id, exc)
            if self._explicit_close:
                break
            await asyncio.sleep(reconnect_delay)

    async def _writer(self, ws: Any) -> None:
        while True:
            message = await self._outbox.get()
            await ws.send(message)

    async def close(self) -> None:
        self._explicit_close = True
        self.client.close()
        if self._ws is not None:
            await self._ws.close()


__all__ = [
    "BoardSocket",
    "BoardSyncClient",
    "PRESENCE_INTERVAL",
    "RemoteCursor",
    "SyncConnectionError",
    "UPDATE_INTERVAL",
]
