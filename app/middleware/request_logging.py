# app/middleware/request_logging.py
from __future__ import annotations

import logging
import time
import uuid
from typing import Iterable, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("app.request")

QUIET_PATHS = frozenset(
    {
        "/api/healthz",
        "/api/readyz",
        "/docs",
        "/docs/oauth2-redirect",
        "/redoc",
        "/openapi.json",
        "/favicon.ico",
    }
)


def _caller_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    return request.client.host if request.client else "-"


def _level(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One log line per API call: method, path, status, caller uid, elapsed ms
    and the trace id. The trace id is taken from X-Request-ID when the client
    sends one and echoed back on the response; error handlers reuse it.
    """

    def __init__(self, app, quiet_paths: Optional[Iterable[str]] = None):
        super().__init__(app)
        self.quiet_paths = frozenset(quiet_paths) if quiet_paths is not None else QUIET_PATHS

    def _is_quiet(self, request: Request) -> bool:
        return request.method == "OPTIONS" or request.url.path in self.quiet_paths

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        trace_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.trace_id = trace_id
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "%s %s crashed after %.1fms trace_id=%s",
                request.method,
                request.url.path,
                (time.perf_counter() - started) * 1000,
                trace_id,
            )
            raise

        response.headers["X-Request-ID"] = trace_id
        if self._is_quiet(request):
            return response

        # set by the auth dependency once the bearer token resolves
        uid = getattr(request.state, "user_id", None) or "anonymous"
        logger.log(
            _level(response.status_code),
            "%s %s -> %s uid=%s ip=%s %.1fms trace_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            uid,
            _caller_ip(request),
            (time.perf_counter() - started) * 1000,
            trace_id,
        )
        return response
