from __future__ import annotations

from hexboard.collab.room import ConnectionState, RoomRegistry

# Process-local; multiple workers would each hold their own rooms.
ROOMS = RoomRegistry()


def get_rooms() -> RoomRegistry:
    """FastAPI dependency returning the shared room registry."""
    return ROOMS


__all__ = ["ROOMS", "ConnectionState", "get_rooms"]
