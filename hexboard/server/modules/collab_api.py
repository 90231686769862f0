from __future__ import annotations

import logging
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from hexboard.collab import protocol
from hexboard.collab.room import ConnectionState, RoomRegistry
from hexboard.config.feature_flags import is_enabled
from hexboard.logging_config import access_log, bind_connection, unbind_connection
from hexboard.server.core import auth
from hexboard.server.core.collab import get_rooms
from hexboard.server.core.db import session_scope
from hexboard.server.core.storage import resolve_role

LOGGER = logging.getLogger(__name__)

POLICY_VIOLATION = 1008

router = APIRouter(prefix="/api/collab", tags=["Collaboration"])


def _authorize(
    board_id: str, token: Optional[str], share: Optional[str]
) -> Optional[Tuple[str, Optional[str], Optional[str]]]:
    """Resolve ``(role, user_id, email)`` for a connecting socket."""
    if not board_id:
        return None
    if share and not is_enabled("enable_share_links"):
        share = None
    with session_scope() as db:
        user = auth.resolve_token(db, token) if token else None
        if token and user is None and not share:
            return None
        user_id = user.user_id if user else None
        role = resolve_role(db, board_id, user_id=user_id, share_token=share)
        if role is None:
            return None
        return role, user_id, (user.email if user else None)


async def _reject(websocket: WebSocket, board_id: str, reason: str) -> None:
    access_log().info("collab.reject board=%s reason=%s", board_id or "-", reason)
    await websocket.close(code=POLICY_VIOLATION, reason=reason)


@router.websocket("/ws")
async def collab_ws(websocket: WebSocket, rooms: RoomRegistry = Depends(get_rooms)) -> None:
    params = websocket.query_params
    board_id = (params.get("boardId") or "").strip()
    if not is_enabled("enable_collaboration"):
        await _reject(websocket, board_id, "collaboration_disabled")
        return
    access = _authorize(board_id, params.get("token"), params.get("share"))
    if access is None:
        await _reject(websocket, board_id, "unauthorized")
        return
    role, user_id, email = access

    await websocket.accept()
    client_id = rooms.unique_client_id(board_id, params.get("clientId"))
    state = ConnectionState(
        client_id=client_id,
        label=protocol.label_for(email),
        role=role,
        websocket=websocket,
        user_id=user_id,
    )
    context = bind_connection(board_id, client_id)
    rooms.join(board_id, state)
    try:
        await rooms.broadcast_roster(board_id)
        while True:
            message = await websocket.receive()
            if message.get("type") == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None and message.get("bytes") is not None:
                raw = message["bytes"].decode("utf-8", errors="replace")
            body = protocol.decode(raw)
            if body is None:
                LOGGER.debug("collab.malformed board=%s client=%s", board_id, client_id)
                continue
            await rooms.relay(board_id, state, raw, body)
    except WebSocketDisconnect:
        pass
    except Exception as exc:  # pragma: no cover - network path
        LOGGER.warning("Collab websocket error (%s): %s", client_id, exc, exc_info=True)
    finally:
        remaining = rooms.leave(board_id, client_id)
        if remaining is not None:
            try:
                await rooms.broadcast_roster(board_id)
            except Exception:  # pragma: no cover - network path
                LOGGER.debug("Roster refresh failed after %s left %s", client_id, board_id)
        unbind_connection(context)


@router.get("/stats")
async def collab_stats(rooms: RoomRegistry = Depends(get_rooms)):
    return {"ok": True, **rooms.stats()}
