from __future__ import annotations

"""
Timer helpers for outbound realtime traffic.

Both helpers only ever deliver the most recent value. They run on anything
that looks like an asyncio loop (``time()`` and ``call_later()``), which
keeps them usable with a fake scheduler in tests.
"""

import asyncio
import logging
from typing import Any, Callable, Generic, Optional, Protocol, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class Scheduler(Protocol):
    def time(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Any: ...


def _running_loop() -> Scheduler:
    return asyncio.get_running_loop()


class Throttle(Generic[T]):
    """Leading-edge throttle with a superseding trailing send.

    ``submit`` fires at once when ``interval`` has passed since the last
    delivery; otherwise the latest value is delivered when the window ends.
    The first window opens when the throttle is created (or on the first
    submit when it was created outside a running loop).
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[T], Any],
        *,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.interval = float(interval)
        self._callback = callback
        self._scheduler = scheduler
        self._pending: Optional[T] = None
        self._has_pending = False
        self._handle: Any = None
        self._last_sent: Optional[float] = None
        if scheduler is None:
            try:
                self._scheduler = _running_loop()
            except RuntimeError:
                # no loop yet; the window opens on the first submit
                pass
        if self._scheduler is not None:
            self._last_sent = self._scheduler.time()

    def _loop(self) -> Scheduler:
        if self._scheduler is None:
            self._scheduler = _running_loop()
        return self._scheduler

    @property
    def pending(self) -> bool:
        return self._has_pending

    def submit(self, value: T) -> None:
        loop = self._loop()
        if self._last_sent is None:
            self._last_sent = loop.time()
        self._pending = value
        self._has_pending = True
        self._cancel_timer()
        wait = self.interval - (loop.time() - self._last_sent)
        if wait <= 0:
            self._fire()
        else:
            self._handle = loop.call_later(wait, self._fire)

    def flush(self) -> None:
        self._cancel_timer()
        if self._has_pending:
            self._fire()

    def cancel(self) -> None:
        self._cancel_timer()
        self._pending = None
        self._has_pending = False

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        if not self._has_pending:
            return
        value = self._pending
        self._pending = None
        self._has_pending = False
        self._last_sent = self._loop().time()
        self._callback(value)  # type: ignore[arg-type]


class Coalescer(Generic[T]):
    """Trailing-only coalescing timer.

    The first ``submit`` arms a timer for ``delay``; later submits before it
    fires just replace the value, so continuous input yields one delivery
    per ``delay`` carrying the newest value.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[T], Any],
        *,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.delay = float(delay)
        self._callback = callback
        self._scheduler = scheduler
        self._latest: Optional[T] = None
        self._handle: Any = None

    def _loop(self) -> Scheduler:
        if self._scheduler is None:
            self._scheduler = _running_loop()
        return self._scheduler

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def submit(self, value: T) -> None:
        self._latest = value
        if self._handle is None:
            self._handle = self._loop().call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._latest = None

    def _fire(self) -> None:
        self._handle = None
        value = self._latest
        self._latest = None
        self._callback(value)  # type: ignore[arg-type]


__all__ = ["Coalescer", "Scheduler", "Throttle"]
