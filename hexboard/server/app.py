"""
hexboard FastAPI entrypoint.

Provides a ``create_app`` factory that configures logging, CORS, the database
and the auth, boards and collaboration routers.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Sequence

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hexboard import __version__
from hexboard.config import get_settings
from hexboard.config.feature_flags import load_feature_flags
from hexboard.logging_config import init_logging
from hexboard.server.core import db
from hexboard.server.core.errors import register_exception_handlers
from hexboard.server.core.middleware_ex import RequestContextMiddleware
from hexboard.server.modules import auth_api, boards_api, collab_api

LOGGER = logging.getLogger(__name__)
APP_VERSION = os.getenv("HEXBOARD_VERSION", __version__)


def _configure_logging(log_dir: Optional[str | Path]) -> tuple[Path, str]:
    settings = get_settings()
    level = os.getenv("LOG_LEVEL") or settings.log_level
    log_path = init_logging(log_dir or settings.log_dir, level=level)
    LOGGER.info(
        "Server logging configured",
        extra={"log_path": str(log_path), "log_level": level},
    )
    return log_path, level


def _resolve_cors_origins(allowed_origins: Optional[Sequence[str]]) -> list[str]:
    if allowed_origins is not None:
        origins = list(allowed_origins)
    else:
        origins = list(get_settings().allowed_origins)
    return list(dict.fromkeys(origins))


def create_app(
    *,
    database_url: Optional[str] = None,
    enable_cors: bool = True,
    allowed_origins: Optional[Sequence[str]] = None,
    log_dir: Optional[str | Path] = None,
) -> FastAPI:
    """Application factory used by both CLI launches and ASGI servers."""
    log_path, log_level = _configure_logging(log_dir)

    app = FastAPI(title="hexboard", version=APP_VERSION)
    app.state.version = APP_VERSION
    app.state.log_path = log_path
    app.state.log_level = log_level

    if database_url is not None:
        db.configure(database_url)
    db.init_db()

    if enable_cors:
        origins = _resolve_cors_origins(allowed_origins)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        LOGGER.info("CORS enabled", extra={"origins": origins})

    app.add_middleware(RequestContextMiddleware)

    register_exception_handlers(app)

    app.include_router(auth_api.router)
    app.include_router(boards_api.router)
    app.include_router(collab_api.router)

    @app.get("/health", tags=["System"], summary="Simple health check")
    async def core_health():
        return {"ok": True}

    LOGGER.info(
        "FastAPI application ready",
        extra={
            "routes": len(app.routes),
            "version": APP_VERSION,
            "features": load_feature_flags(),
        },
    )
    return app


if os.getenv("HEXBOARD_SKIP_APP_AUTOLOAD", "").strip().lower() in {
    "1",
    "true",
    "yes",
    "on",
}:
    app: FastAPI | None = None
else:
    app = create_app()
