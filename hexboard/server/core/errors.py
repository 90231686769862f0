from __future__ import annotations

import logging
import traceback
import uuid
from typing import Any, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from hexboard.logging_config import reset_request_id, set_request_id

from .auth import AuthError
from .storage import BoardForbidden, BoardNotFound, UserNotFound

_log = logging.getLogger("hexboard.errors")


def _request_id(request: Request) -> Optional[str]:
    state_rid = getattr(request.state, "request_id", None)
    header_rid = request.headers.get("X-Request-ID")
    return state_rid or header_rid or None


def _error_response(
    request: Request,
    *,
    status: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    rid = _request_id(request)
    body = {"ok": False, "code": code, "message": message}
    if details is not None:
        body["details"] = details
    if rid:
        body["request_id"] = rid

    response = JSONResponse(body, status_code=status)
    if rid:
        response.headers["X-Request-ID"] = rid
    return response


def _with_context(request: Request, build):
    rid = _request_id(request)
    token = set_request_id(rid) if rid else None
    try:
        return build()
    finally:
        if token is not None:
            reset_request_id(token)


def register_exception_handlers(app) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def _http_exc(request: Request, exc: StarletteHTTPException):
        detail = exc.detail
        return _error_response(
            request,
            status=exc.status_code,
            code=getattr(exc, "error_code", None) or f"http_{exc.status_code}",
            message=str(detail) if detail else "Request failed",
            details=detail if isinstance(detail, (dict, list)) else None,
        )

    @app.exception_handler(AuthError)
    async def _auth_exc(request: Request, exc: AuthError):
        codes = {400: "bad_request", 403: "not_invited", 409: "conflict"}
        return _error_response(
            request,
            status=exc.status,
            code=codes.get(exc.status, "unauthorized"),
            message=exc.message,
        )

    @app.exception_handler(BoardNotFound)
    async def _not_found(request: Request, exc: BoardNotFound):
        return _error_response(request, status=404, code="board_not_found", message="Board not found")

    @app.exception_handler(UserNotFound)
    async def _user_not_found(request: Request, exc: UserNotFound):
        return _error_response(request, status=404, code="user_not_found", message="User not found")

    @app.exception_handler(BoardForbidden)
    async def _forbidden(request: Request, exc: BoardForbidden):
        return _error_response(
            request, status=403, code="forbidden", message=str(exc) or "Forbidden"
        )

    @app.exception_handler(RequestValidationError)
    async def _val_exc(request: Request, exc: RequestValidationError):
        def build():
            _log.debug("validation error: %s", exc)
            return _error_response(
                request,
                status=422,
                code="validation_error",
                message="Request validation failed",
                details=exc.errors(),
            )

        return _with_context(request, build)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        err_id = uuid.uuid4().hex

        def build():
            tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            _log.error("Unhandled exception [%s]: %s", err_id, tb)
            return _error_response(
                request,
                status=500,
                code="internal_error",
                message="Internal server error",
                details={"error_id": err_id},
            )

        return _with_context(request, build)


__all__ = ["register_exception_handlers"]
