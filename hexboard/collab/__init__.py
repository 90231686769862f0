"""
Collaboration primitives for hexboard.

The wire protocol and room management live here so both the FastAPI
backend and the sync client share one data contract.
"""

from __future__ import annotations

from . import protocol
from .room import BoardRoom, ConnectionState, RoomRegistry, can_write

__all__ = [
    "BoardRoom",
    "ConnectionState",
    "RoomRegistry",
    "can_write",
    "protocol",
]
