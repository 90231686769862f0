from __future__ import annotations

import heapq
import itertools
import os
import sys
from pathlib import Path
from typing import Any, Callable, Iterator, List, Tuple

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("HEXBOARD_SKIP_APP_AUTOLOAD", "1")

INVITED = ("alice@example.com", "bob@example.com", "carol@example.com", "dave@example.com")


class _Handle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock with ``call_later`` semantics close to an asyncio loop."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self._queue: List[Tuple[float, int, _Handle, Callable[..., Any], tuple]] = []
        self._seq = itertools.count()

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> _Handle:
        handle = _Handle()
        heapq.heappush(self._queue, (self.now + delay, next(self._seq), handle, callback, args))
        return handle

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            when, _, handle, callback, args = heapq.heappop(self._queue)
            self.now = when
            if not handle.cancelled:
                callback(*args)
        self.now = target

    @property
    def pending(self) -> int:
        return sum(1 for entry in self._queue if not entry[2].cancelled)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def hexboard_env(tmp_path, monkeypatch) -> Iterator[Path]:
    """Isolated cwd, database and settings for server-side tests."""
    from hexboard.config import feature_flags, reset_settings
    from hexboard.server.core.collab import ROOMS

    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HEXBOARD_INVITE_ALLOWLIST", ",".join(INVITED))
    monkeypatch.setenv("HEXBOARD_DB_URL", f"sqlite:///{tmp_path / 'hexboard.db'}")
    monkeypatch.setenv("HEXBOARD_LOG_DIR", str(tmp_path / "logs"))
    reset_settings()
    feature_flags.reset_cache()
    ROOMS.clear()
    try:
        yield tmp_path
    finally:
        ROOMS.clear()
        reset_settings()
        feature_flags.reset_cache()


@pytest.fixture
def api_client(hexboard_env):
    from fastapi.testclient import TestClient

    from hexboard.server.app import create_app

    app = create_app(
        database_url=f"sqlite:///{hexboard_env / 'hexboard.db'}",
        log_dir=hexboard_env / "logs",
    )
    with TestClient(app) as client:
        yield client


@pytest.fixture
def db_session(hexboard_env):
    from hexboard.server.core import db

    db.configure(f"sqlite:///{hexboard_env / 'store.db'}")
    db.init_db()
    assert db.SessionLocal is not None
    session = db.SessionLocal()
    try:
        yield session
    finally:
        session.close()


def register(client, email: str, password: str = "secret-pw") -> str:
    response = client.post("/api/auth/register", json={"email": email, "password": password})
    assert response.status_code == 200, response.json()
    return response.json()["token"]


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
