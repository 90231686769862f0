from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Iterator, Optional

from sqlalchemy import Float, Integer, String, Text, UniqueConstraint, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from hexboard.config import get_settings

LOGGER = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class UserRow(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    pass_hash: Mapped[str] = mapped_column(String(255), default="")
    created: Mapped[float] = mapped_column(Float, default=lambda: time.time())


class SessionTokenRow(Base):
    __tablename__ = "session_tokens"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    hash: Mapped[str] = mapped_column(String(64), unique=True, index=True)  # sha256 of raw token
    created: Mapped[float] = mapped_column(Float, default=lambda: time.time())
    expires: Mapped[float] = mapped_column(Float, default=0.0)
    revoked: Mapped[int] = mapped_column(Integer, default=0)


class BoardRow(Base):
    __tablename__ = "boards"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    board_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    owner_id: Mapped[str] = mapped_column(String(64), index=True)
    title: Mapped[str] = mapped_column(String(255), default="Untitled Board")
    data: Mapped[str] = mapped_column(Text, default="{}")  # JSON string
    created: Mapped[float] = mapped_column(Float, default=lambda: time.time())
    updated: Mapped[float] = mapped_column(Float, default=lambda: time.time())


class CollaboratorRow(Base):
    __tablename__ = "board_collaborators"
    __table_args__ = (UniqueConstraint("board_id", "user_id"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    board_id: Mapped[str] = mapped_column(String(64), index=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    role: Mapped[str] = mapped_column(String(32), default="viewer")
    created: Mapped[float] = mapped_column(Float, default=lambda: time.time())


class ShareLinkRow(Base):
    __tablename__ = "board_shares"
    __table_args__ = (UniqueConstraint("board_id", "role"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    board_id: Mapped[str] = mapped_column(String(64), index=True)
    token: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    role: Mapped[str] = mapped_column(String(32), default="view")
    created: Mapped[float] = mapped_column(Float, default=lambda: time.time())


_engine: Optional[Engine] = None
SessionLocal: Optional[sessionmaker] = None


def configure(url: Optional[str] = None, *, echo: bool = False) -> Engine:
    """(Re)bind the module engine; tests point this at a temp database."""
    global _engine, SessionLocal
    if _engine is not None:
        _engine.dispose()
    url = (url or get_settings().db_url).strip()
    if url.startswith("sqlite"):
        if url in {"sqlite://", "sqlite:///:memory:"}:
            _engine = create_engine(
                url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            path = url.split("///", 1)[-1]
            if path:
                Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)
            _engine = create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    else:
        _engine = create_engine(url, echo=echo, pool_pre_ping=True)
    SessionLocal = sessionmaker(bind=_engine, autoflush=False, expire_on_commit=False)
    LOGGER.debug("Database bound to %s", _engine.url.render_as_string(hide_password=True))
    return _engine


def _ensure_engine() -> Engine:
    if _engine is None:
        return configure()
    return _engine


def init_db() -> Engine:
    engine = _ensure_engine()
    Base.metadata.create_all(engine)
    return engine


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a session per request."""
    if SessionLocal is None:
        _ensure_engine()
    assert SessionLocal is not None
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    if SessionLocal is None:
        _ensure_engine()
    assert SessionLocal is not None
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# --- helpers ---
def as_json_str(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))


def from_json_str(raw: Optional[str]) -> Any:
    try:
        return json.loads(raw or "{}")
    except ValueError:
        return {}


__all__ = [
    "Base",
    "BoardRow",
    "CollaboratorRow",
    "SessionLocal",
    "SessionTokenRow",
    "ShareLinkRow",
    "UserRow",
    "as_json_str",
    "configure",
    "from_json_str",
    "get_db",
    "init_db",
    "session_scope",
]
