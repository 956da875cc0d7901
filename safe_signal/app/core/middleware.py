"""
Request middleware for the Alert Service.

Every request gets a correlation id (X-Request-ID) and a timing header
(X-Process-Time). Requests that ingest an alert also answer with
X-Alert-ID, taken from the tag the alert route puts on the request, and
their completion line is logged at WARNING so alerts stand out from
routine contact traffic. Health probes log at DEBUG only.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from safe_signal.app.core.config import settings
from safe_signal.app.core.logging_config import (
    close_request_context,
    open_request_context,
)

logger = logging.getLogger(__name__)

_QUIET_PREFIXES = (
    "/docs", "/redoc", "/openapi", "/favicon", f"{settings.API_PREFIX}/health",
)


def _level_for(path: str, status_code: int, alert_id) -> int:
    if status_code >= 500:
        return logging.ERROR
    if alert_id is not None or status_code >= 400:
        return logging.WARNING
    if path.startswith(_QUIET_PREFIXES):
        return logging.DEBUG
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Correlation id, timing and one completion line per request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:16]
        client_ip = request.client.host if request.client else "unknown"
        path = request.url.path
        ctx = open_request_context(request_id, client_ip, path)
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.error(
                "%s %s → 500 (%.1fms) [%s]",
                request.method, path, duration_ms, client_ip,
                extra={"duration_ms": duration_ms, "status_code": 500},
            )
            close_request_context()
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        alert_id = ctx.get("alert_id")

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{duration_ms:.1f}ms"
        if alert_id is not None:
            response.headers["X-Alert-ID"] = str(alert_id)

        logger.log(
            _level_for(path, response.status_code, alert_id),
            "%s %s → %d (%.1fms) [%s]",
            request.method, path, response.status_code, duration_ms, client_ip,
            extra={"duration_ms": duration_ms, "status_code": response.status_code},
        )
        close_request_context()
        return response
