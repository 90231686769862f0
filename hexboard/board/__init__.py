"""
Board document model and the client-side interaction engine.

Everything here is pure, synchronous and UI-toolkit agnostic so the same
code drives a canvas front-end, headless tests and scripted editing.
"""

from __future__ import annotations

from .geometry import build_connection_lines, hexagon_vertices
from .history import HistoryManager
from .interaction import InteractionEngine
from .model import BoardData, HexContent, Hexagon, snap_distance
from .preferences import PreferencesStore, UserPreferences
from .viewport import Viewport

__all__ = [
    "BoardData",
    "HexContent",
    "Hexagon",
    "HistoryManager",
    "InteractionEngine",
    "PreferencesStore",
    "UserPreferences",
    "Viewport",
    "build_connection_lines",
    "hexagon_vertices",
    "snap_distance",
]
