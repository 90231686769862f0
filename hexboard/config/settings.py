from __future__ import annotations

"""
Server and realtime settings.

Values come from the ``server`` / ``realtime`` sections of ``hexboard.json``
(or ``config/hexboard.json``), overridden by ``HEXBOARD_*`` environment
variables.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

CONFIG_CANDIDATES: Sequence[Path] = (Path("config/hexboard.json"), Path("hexboard.json"))
DEFAULT_ALLOWED_ORIGINS: tuple[str, ...] = (
    "http://127.0.0.1:5173",
    "http://localhost:5173",
    "http://127.0.0.1:8000",
    "http://localhost:8000",
)

_ENV_MAP: Dict[str, str] = {
    "HEXBOARD_DB_URL": "db_url",
    "HEXBOARD_INVITE_ALLOWLIST": "invite_allowlist",
    "HEXBOARD_TOKEN_TTL": "token_ttl",
    "HEXBOARD_ALLOWED_ORIGINS": "allowed_origins",
    "HEXBOARD_LOG_DIR": "log_dir",
    "HEXBOARD_LOG_LEVEL": "log_level",
    "HEXBOARD_HOST": "host",
    "HEXBOARD_PORT": "port",
    "HEXBOARD_UPDATE_INTERVAL": "update_interval",
    "HEXBOARD_PRESENCE_INTERVAL": "presence_interval",
    "HEXBOARD_HISTORY_DEPTH": "history_depth",
}
_LIST_FIELDS = frozenset({"invite_allowlist", "allowed_origins"})

_CACHE: Optional["Settings"] = None


class Settings(BaseModel):
    db_url: str = "sqlite:///./data/hexboard.db"
    invite_allowlist: List[str] = Field(default_factory=list)
    token_ttl: float = Field(default=7 * 24 * 3600.0, gt=0)
    allowed_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))
    log_dir: Optional[str] = None
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)
    update_interval: float = Field(default=0.09, ge=0)
    presence_interval: float = Field(default=0.06, ge=0)
    history_depth: int = Field(default=20, ge=1)

    model_config = ConfigDict(extra="ignore")

    def is_invited(self, email: str) -> bool:
        wanted = email.strip().lower()
        return any(item.strip().lower() == wanted for item in self.invite_allowlist if item.strip())


def _read_json(path: Path) -> Dict[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, json.JSONDecodeError):
        return {}
    return payload if isinstance(payload, dict) else {}


def _split(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def load_settings(env: Optional[Dict[str, str]] = None) -> Settings:
    values: Dict[str, Any] = {}
    for path in CONFIG_CANDIDATES:
        payload = _read_json(path)
        for section in ("server", "realtime"):
            block = payload.get(section)
            if isinstance(block, dict):
                values.update(block)
    source = os.environ if env is None else env
    for env_name, field_name in _ENV_MAP.items():
        raw = source.get(env_name)
        if raw is None or raw == "":
            continue
        values[field_name] = _split(raw) if field_name in _LIST_FIELDS else raw
    for field_name in _LIST_FIELDS:
        if isinstance(values.get(field_name), str):
            values[field_name] = _split(values[field_name])
    return Settings.model_validate(values)


def get_settings(*, refresh: bool = False) -> Settings:
    global _CACHE
    if refresh or _CACHE is None:
        _CACHE = load_settings()
    return _CACHE


def reset_settings() -> None:
    global _CACHE
    _CACHE = None


__all__ = ["Settings", "get_settings", "load_settings", "reset_settings"]
