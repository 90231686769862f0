from __future__ import annotations

"""
Wire format of the realtime board channel.

Messages are compact JSON objects::

    {"type": "board_update", "boardId": ..., "data": {...}, "sender": ...}
    {"type": "presence", "boardId": ..., "sender": ..., "cursor": {"x", "y"}, "label": ...}
    {"type": "presence_state", "boardId": ..., "users": [{"id": ..., "label": ...}]}
"""

import json
from typing import Any, Dict, Iterable, Optional, Tuple

BOARD_UPDATE = "board_update"
PRESENCE = "presence"
PRESENCE_STATE = "presence_state"
MESSAGE_TYPES = frozenset({BOARD_UPDATE, PRESENCE, PRESENCE_STATE})

GUEST_LABEL = "Guest"


def dumps(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def decode(raw: Any) -> Optional[Dict[str, Any]]:
    """Parse a frame; anything that is not a known message yields ``None``."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if not isinstance(raw, str):
        return None
    try:
        body = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    if body.get("type") not in MESSAGE_TYPES:
        return None
    return body


def board_update(board_id: str, data: Dict[str, Any], sender: str) -> Dict[str, Any]:
    return {"type": BOARD_UPDATE, "boardId": board_id, "data": data, "sender": sender}


def presence(
    board_id: str, sender: str, cursor: Tuple[float, float], label: str
) -> Dict[str, Any]:
    return {
        "type": PRESENCE,
        "boardId": board_id,
        "sender": sender,
        "cursor": {"x": cursor[0], "y": cursor[1]},
        "label": label,
    }


def presence_state(board_id: str, users: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    return {"type": PRESENCE_STATE, "boardId": board_id, "users": list(users)}


def parse_cursor(raw: Any) -> Optional[Tuple[float, float]]:
    if not isinstance(raw, dict):
        return None
    try:
        return (float(raw["x"]), float(raw["y"]))
    except (KeyError, TypeError, ValueError):
        return None


def label_for(email: Optional[str]) -> str:
    """Human label for presence: the mailbox part of an email, else Guest."""
    if not email:
        return GUEST_LABEL
    local = email.split("@", 1)[0].strip()
    return local or GUEST_LABEL


__all__ = [
    "BOARD_UPDATE",
    "GUEST_LABEL",
    "MESSAGE_TYPES",
    "PRESENCE",
    "PRESENCE_STATE",
    "board_update",
    "decode",
    "dumps",
    "label_for",
    "parse_cursor",
    "presence",
    "presence_state",
]
