from __future__ import annotations

# hexboard/board/preferences.py
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, ValidationError

LOGGER = logging.getLogger(__name__)

DEFAULT_DISCONNECT_VELOCITY = 60.0
ANONYMOUS_KEY = "anonymous"


def default_preferences_path() -> Path:
    override = os.getenv("HEXBOARD_PREFERENCES_FILE")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".hexboard" / "preferences.json"


class UserPreferences(BaseModel):
    """Per-user knobs kept on the local machine, never on the server."""

    disconnect_velocity_threshold: float = Field(
        default=DEFAULT_DISCONNECT_VELOCITY, ge=0.0
    )

    model_config = ConfigDict(extra="ignore")


class PreferencesStore:
    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        self.path = Path(path) if path else default_preferences_path()

    def _read(self) -> Dict[str, Any]:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.warning("Preferences file unreadable (%s): %s", self.path, exc)
            return {}
        return raw if isinstance(raw, dict) else {}

    def load(self, user_id: str | None) -> UserPreferences:
        entry = self._read().get(user_id or ANONYMOUS_KEY)
        if not isinstance(entry, dict):
            return UserPreferences()
        try:
            return UserPreferences.model_validate(entry)
        except ValidationError as exc:
            LOGGER.debug("Ignoring invalid preferences for %s: %s", user_id, exc)
            return UserPreferences()

    def save(self, user_id: str | None, prefs: UserPreferences) -> None:
        data = self._read()
        data[user_id or ANONYMOUS_KEY] = prefs.model_dump()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")

    def set_disconnect_velocity(self, user_id: str | None, value: float) -> UserPreferences:
        prefs = UserPreferences(disconnect_velocity_threshold=value)
        self.save(user_id, prefs)
        return prefs


__all__ = [
    "DEFAULT_DISCONNECT_VELOCITY",
    "PreferencesStore",
    "UserPreferences",
    "default_preferences_path",
]
