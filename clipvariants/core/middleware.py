"""FastAPI middleware for metrics, correlation IDs and request logging."""

import logging
import re
import time
import uuid
from typing import Callable, Iterable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from clipvariants.core.logging import clear_correlation_id, set_correlation_id
from clipvariants.core.metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_PROGRESS,
    HTTP_REQUESTS_TOTAL,
)

logger = logging.getLogger("clipvariants.requests")

CORRELATION_ID_HEADER = "X-Correlation-ID"
MAX_CORRELATION_ID_LENGTH = 128

# Job and video IDs are uuid4 hex; version keys follow them in download paths
_HEX_ID_RE = re.compile(r"/[0-9a-f]{32}(?=/|$)", re.IGNORECASE)
_VERSION_KEY_RE = re.compile(r"(/versions/)[^/]+")


def endpoint_label(path: str) -> str:
    """Collapse per-job path segments so metrics stay low-cardinality.

    ``/api/v1/jobs/<hex>/versions/warm/download`` becomes
    ``/api/v1/jobs/{id}/versions/{key}/download``.
    """
    path = _HEX_ID_RE.sub("/{id}", path)
    return _VERSION_KEY_RE.sub(r"\1{key}", path)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Records request counts, latencies and in-flight requests."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        endpoint = endpoint_label(request.url.path)
        in_progress = HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=endpoint)

        in_progress.inc()
        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            HTTP_REQUEST_DURATION_SECONDS.labels(method=method, endpoint=endpoint).observe(
                time.perf_counter() - start_time
            )
            HTTP_REQUESTS_TOTAL.labels(
                method=method, endpoint=endpoint, status_code=str(status_code)
            ).inc()
            in_progress.dec()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds a correlation ID to the request and echoes it in the response.

    A client-supplied ID is reused when present and reasonably short;
    otherwise a fresh one is generated. Jobs submitted by the request inherit
    it, so their background logs can be matched to the submission.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_ID_HEADER, "").strip()
        if not correlation_id or len(correlation_id) > MAX_CORRELATION_ID_LENGTH:
            correlation_id = str(uuid.uuid4())

        set_correlation_id(correlation_id)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            return response
        finally:
            clear_correlation_id()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs the start, completion and failure of each request.

    Requests to ``quiet_paths`` (health probes, metric scrapes) are logged at
    DEBUG so they do not drown out job traffic.
    """

    def __init__(self, app: ASGIApp, quiet_paths: Iterable[str] = ("/health", "/metrics")):
        super().__init__(app)
        self.quiet_paths = frozenset(quiet_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        level = logging.DEBUG if path in self.quiet_paths else logging.INFO
        start_time = time.perf_counter()

        logger.log(
            level,
            "Request started",
            extra={
                "method": request.method,
                "path": path,
                "query": str(request.query_params),
                "client_ip": request.client.host if request.client else None,
                "user_agent": request.headers.get("user-agent"),
            },
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={
                    "method": request.method,
                    "path": path,
                    "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
                    "error": str(e),
                },
                exc_info=True,
            )
            raise

        logger.log(
            level,
            "Request completed",
            extra={
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
            },
        )
        return response


__all__ = [
    "MetricsMiddleware",
    "CorrelationIdMiddleware",
    "RequestLoggingMiddleware",
    "endpoint_label",
]
