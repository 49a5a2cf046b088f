"""
Request logging middleware.

Logs every request with method, path, status and latency, and records
the same numbers as Prometheus metrics.
"""

from __future__ import annotations

import time

import structlog
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from guide_common.logging import bind_context, clear_context
from guide_common.utils import new_id

logger = structlog.get_logger(__name__)

http_requests_total = Counter(
    "webapp_http_requests_total",
    "HTTP requests handled by the web app",
    ["method", "endpoint", "status"],
)
http_request_duration_seconds = Histogram(
    "webapp_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
)


def _endpoint(request: Request) -> str:
    """Route template (``/users/{user_id}``) to keep metric cardinality bounded."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status and latency."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or new_id()
        bind_context(request_id=request_id)
        start = time.monotonic()
        try:
            response = await call_next(request)
        finally:
            clear_context()
        duration = time.monotonic() - start
        endpoint = _endpoint(request)
        http_requests_total.labels(request.method, endpoint, str(response.status_code)).inc()
        http_request_duration_seconds.labels(request.method, endpoint).observe(duration)
        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(duration * 1000, 2),
            request_id=request_id,
        )
        response.headers["X-Request-ID"] = request_id
        return response
