"""Client-side services: HTTP API wrapper, realtime sync and the editor session."""

from __future__ import annotations

from .api import BoardApiClient, BoardApiError
from .session import BoardSession, ReadOnlyBoardError
from .sync_client import BoardSocket, BoardSyncClient, RemoteCursor, SyncConnectionError
from .throttle import Coalescer, Throttle

__all__ = [
    "BoardApiClient",
    "BoardApiError",
    "BoardSession",
    "BoardSocket",
    "BoardSyncClient",
    "Coalescer",
    "ReadOnlyBoardError",
    "RemoteCursor",
    "SyncConnectionError",
    "Throttle",
]
