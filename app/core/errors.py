# app/core/errors.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

log = logging.getLogger("app.errors")


# -----------------------------
# Error taxonomy
# -----------------------------
class AppError(Exception):
    """
    Base for every error the core raises on purpose.
    Carries an HTTP status and a short machine-readable code.
    """

    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details


class ValidationError(AppError):
    status_code = 400
    default_code = "VALIDATION_FAILED"


class AuthenticationError(AppError):
    status_code = 401
    default_code = "AUTH_REQUIRED"


class AuthorizationError(AppError):
    status_code = 403
    default_code = "INSUFFICIENT_PERMISSIONS"


class NotFoundError(AppError):
    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    default_code = "CONFLICT"


class InvariantViolation(AppError):
    status_code = 400
    default_code = "INVARIANT_VIOLATION"


class UpstreamError(AppError):
    status_code = 500
    default_code = "UPSTREAM_ERROR"


# Codes for HTTPExceptions raised by FastAPI/Starlette themselves
_HTTP_STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "AUTH_REQUIRED",
    403: "INSUFFICIENT_PERMISSIONS",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    429: "TOO_MANY_REQUESTS",
}


# -----------------------------
# Trace / request id helpers
# -----------------------------
def _ensure_trace_id(request: Request) -> str:
    """
    Return a stable trace_id for this request.
    Prefer a value already set on request.state (by the logging middleware),
    then the inbound X-Request-ID header, and finally generate a new one.
    """
    val = getattr(request.state, "trace_id", None)
    if val:
        return str(val)

    inbound = request.headers.get("x-request-id")
    trace_id = inbound or uuid.uuid4().hex
    request.state.trace_id = trace_id
    return trace_id


def _payload(*, message: str, code: str, trace_id: str, details: Optional[Any] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "success": False,
        "error": message,
        "code": code,
        "trace_id": trace_id,
    }
    if details is not None:
        body["details"] = details
    return body


def _respond(request: Request, status: int, message: str, code: str, details: Any = None, headers=None):
    trace_id = _ensure_trace_id(request)
    out_headers = dict(headers or {})
    out_headers["X-Request-ID"] = trace_id
    return JSONResponse(
        status_code=status,
        headers=out_headers,
        content=_payload(message=message, code=code, trace_id=trace_id, details=details),
    )


# -----------------------------
# Install / register handlers
# -----------------------------
def register_exception_handlers(app: FastAPI) -> None:
    """
    Registers consistent JSON error handlers.
    Every failure leaves as {success: false, error, code, trace_id}.
    """

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        log.log(
            level,
            "%s %s %s -> %s code=%s | trace_id=%s | %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc.status_code,
            exc.code,
            _ensure_trace_id(request),
            exc.message,
            exc_info=exc.status_code >= 500,
        )
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return _respond(request, exc.status_code, exc.message, exc.code, exc.details, headers)

    @app.exception_handler(HTTPException)
    async def http_exc_handler(request: Request, exc: HTTPException):
        status_code = int(exc.status_code)
        message = exc.detail if isinstance(exc.detail, str) else "HTTP error"
        code = _HTTP_STATUS_CODES.get(status_code, "HTTP_ERROR")

        level = logging.ERROR if status_code >= 500 else logging.WARNING
        log.log(
            level,
            "HTTPException %s %s -> %s | trace_id=%s | detail=%r",
            request.method,
            request.url.path,
            status_code,
            _ensure_trace_id(request),
            exc.detail,
        )
        return _respond(request, status_code, message, code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        log.warning(
            "ValidationError %s %s -> 400 | trace_id=%s | errors=%s",
            request.method,
            request.url.path,
            _ensure_trace_id(request),
            errors,
        )
        # ctx may hold exception instances that are not JSON serializable
        details = [{k: v for k, v in e.items() if k != "ctx"} for e in errors]
        return _respond(request, 400, "Validation failed.", "VALIDATION_FAILED", details)

    @app.exception_handler(SQLAlchemyError)
    async def store_exc_handler(request: Request, exc: SQLAlchemyError):
        log.exception(
            "Store failure %s %s -> 500 | trace_id=%s",
            request.method,
            request.url.path,
            _ensure_trace_id(request),
        )
        return _respond(request, 500, "Storage failure.", "STORE_ERROR")

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):
        # Full traceback to server logs; generic message to client
        log.exception(
            "Unhandled exception %s %s -> 500 | trace_id=%s",
            request.method,
            request.url.path,
            _ensure_trace_id(request),
        )
        return _respond(request, 500, "Internal server error.", "INTERNAL_ERROR")
