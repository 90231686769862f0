from __future__ import annotations

import logging
import re
import time
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from hexboard.logging_config import (
    bind_connection,
    reset_request_id,
    set_request_id,
    unbind_connection,
)

_log = logging.getLogger("hexboard.request")

_BOARD_PATH = re.compile(r"^/api/boards/(?P<board_id>[^/]+)")


def board_id_from_path(path: str) -> Optional[str]:
    """Board addressed by a ``/api/boards/{id}/...`` route, if any."""
    match = _BOARD_PATH.match(path)
    return match.group("board_id") if match else None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Bind request context for logging and emit one ``http_request`` line.

    The request id comes from ``X-Request-ID`` (or a fresh uuid) and is echoed
    back; board routes also bind their board id so every record logged while
    serving the request carries it. Handling time is returned in
    ``X-Process-Time``.
    """

    def __init__(
        self,
        app: ASGIApp,
        header_name: str = "X-Request-ID",
        timing_header: str = "X-Process-Time",
    ):
        super().__init__(app)
        self.header_name = header_name
        self.timing_header = timing_header

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get(self.header_name) or str(uuid.uuid4())
        board_id = board_id_from_path(request.url.path)
        request.state.request_id = rid
        request.state.board_id = board_id

        rid_token = set_request_id(rid)
        bound = bind_connection(board_id, None)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            elapsed = time.perf_counter() - started
            response.headers[self.header_name] = rid
            response.headers[self.timing_header] = f"{elapsed:.6f}s"
            _log.info(
                "http_request",
                extra={
                    "http": {
                        "method": request.method,
                        "path": request.url.path,
                        "status_code": response.status_code,
                        "duration_ms": round(elapsed * 1000, 3),
                    }
                },
            )
            return response
        finally:
            unbind_connection(bound)
            reset_request_id(rid_token)


__all__ = ["RequestContextMiddleware", "board_id_from_path"]
