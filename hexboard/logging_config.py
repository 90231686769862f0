from __future__ import annotations

import json
import logging
import os
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_LOG_FILE = "server.log"
ACCESS_LOGGER = "hexboard.access"

_REQUEST_ID_VAR: ContextVar[str | None] = ContextVar("hexboard_request_id", default=None)
_BOARD_ID_VAR: ContextVar[str | None] = ContextVar("hexboard_board_id", default=None)
_CLIENT_ID_VAR: ContextVar[str | None] = ContextVar("hexboard_client_id", default=None)
_CONTEXT_FILTER: logging.Filter | None = None

_CONTEXT_FIELDS = ("request_id", "board_id", "client_id")
_RESERVED_ATTRS: frozenset[str] = frozenset(
    set(logging.LogRecord("", 0, "", 0, "", (), None).__dict__)
    | {"message", "asctime", *_CONTEXT_FIELDS}
)


class StructuredJsonFormatter(logging.Formatter):
    """One JSON object per line, carrying request and socket context."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in _CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value:
                payload[name] = value

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = record.stack_info

        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        if extras:
            payload["extra"] = _serialise_extra(extras)
        return json.dumps(payload, ensure_ascii=True)


class RequestContextFilter(logging.Filter):
    """Copy the active request id and collab connection onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = {
            "request_id": _REQUEST_ID_VAR.get(),
            "board_id": _BOARD_ID_VAR.get(),
            "client_id": _CLIENT_ID_VAR.get(),
        }
        for name, value in context.items():
            if value or not hasattr(record, name):
                setattr(record, name, value)
        return True


def _serialise_extra(data: Dict[str, Any]) -> Dict[str, Any]:
    serialised: Dict[str, Any] = {}
    for key, value in data.items():
        try:
            json.dumps(value)
            serialised[key] = value
        except (TypeError, ValueError):
            serialised[key] = repr(value)
    return serialised


def set_request_id(value: str | None) -> Token:
    return _REQUEST_ID_VAR.set(value)


def get_request_id() -> str | None:
    return _REQUEST_ID_VAR.get()


def reset_request_id(token: Token) -> None:
    try:
        _REQUEST_ID_VAR.reset(token)
    except (RuntimeError, ValueError):
        pass


def bind_connection(board_id: str | None, client_id: str | None) -> tuple[Token, Token]:
    """Tag records emitted by a websocket handler with its board and client."""
    return (_BOARD_ID_VAR.set(board_id), _CLIENT_ID_VAR.set(client_id))


def unbind_connection(tokens: tuple[Token, Token]) -> None:
    board_token, client_token = tokens
    try:
        _BOARD_ID_VAR.reset(board_token)
        _CLIENT_ID_VAR.reset(client_token)
    except (RuntimeError, ValueError):
        pass


def _coerce_level(level: str) -> int:
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def default_log_dir() -> Path:
    for env_name in ("HEXBOARD_LOG_DIR", "LOG_DIR"):
        override = os.getenv(env_name)
        if override:
            return Path(override).expanduser().resolve()
    return (REPO_ROOT / "logs").resolve()


def _context_filter() -> logging.Filter:
    global _CONTEXT_FILTER
    if _CONTEXT_FILTER is None:
        _CONTEXT_FILTER = RequestContextFilter()
    return _CONTEXT_FILTER


def _rotating(path: Path, formatter: logging.Formatter, max_bytes: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(str(path), maxBytes=max_bytes, backupCount=5, encoding="utf-8")
    handler.setFormatter(formatter)
    handler.addFilter(_context_filter())
    return handler


def init_logging(
    log_dir: str | os.PathLike[str] | None = None,
    *,
    level: str = "INFO",
    filename: str = DEFAULT_LOG_FILE,
    console: bool = True,
) -> Path:
    """Install structured JSON logging on the root logger.

    Access decisions (rejected sockets, dropped writes, failed logins) also go
    to ``access.log`` through the ``hexboard.access`` logger.
    """
    base = Path(log_dir).expanduser().resolve() if log_dir else default_log_dir()
    base.mkdir(parents=True, exist_ok=True)
    log_path = base / filename

    root_logger = logging.getLogger()
    root_logger.setLevel(_coerce_level(level))
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = StructuredJsonFormatter()
    root_logger.addHandler(_rotating(log_path, formatter, 5 * 1024 * 1024))
    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        stream_handler.addFilter(_context_filter())
        root_logger.addHandler(stream_handler)

    access_logger = logging.getLogger(ACCESS_LOGGER)
    access_logger.setLevel(logging.INFO)
    access_path = base / "access.log"
    if not any(getattr(h, "_hexboard_access", False) for h in access_logger.handlers):
        access_handler = _rotating(access_path, formatter, 1_000_000)
        access_handler._hexboard_access = True  # type: ignore[attr-defined]
        access_logger.addHandler(access_handler)

    os.environ.setdefault("HEXBOARD_LOG_FILE", str(log_path))
    return log_path


def access_log() -> logging.Logger:
    return logging.getLogger(ACCESS_LOGGER)


__all__ = [
    "ACCESS_LOGGER",
    "RequestContextFilter",
    "StructuredJsonFormatter",
    "access_log",
    "bind_connection",
    "default_log_dir",
    "get_request_id",
    "init_logging",
    "reset_request_id",
    "set_request_id",
    "unbind_connection",
]
