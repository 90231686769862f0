"""Configuration helpers: feature flags and server/realtime settings."""

from __future__ import annotations

from . import feature_flags
from .settings import Settings, get_settings, load_settings, reset_settings

__all__ = ["Settings", "feature_flags", "get_settings", "load_settings", "reset_settings"]
