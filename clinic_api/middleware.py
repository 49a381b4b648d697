"""Request-scoped middleware: correlation ids, throttling, access logs and metrics."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import deque

from fastapi import Request, status
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from clinic_api.logging_utils import _identity_id_ctx_var, _request_id_ctx_var

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

REQUEST_COUNTER = Counter(
    "clinic_api_requests_total",
    "HTTP requests handled, by route template and status.",
    ["method", "route", "status"],
)
REQUEST_LATENCY = Histogram(
    "clinic_api_request_duration_seconds",
    "HTTP request latency in seconds, by route template.",
    ["method", "route"],
)


def route_label(request: Request) -> str:
    """Route template for metric labels; ids in paths would explode cardinality."""

    route = request.scope.get("route")
    template = getattr(route, "path", None)
    return template or "unmatched"


class SlidingWindowLimiter:
    """Per-key sliding window over the last ``window_seconds``."""

    def __init__(self, limit: int, window_seconds: int) -> None:
        self.limit = max(1, limit)
        self.window_seconds = max(1, window_seconds)
        self._hits: dict[str, deque[float]] = {}
        self._lock = asyncio.Lock()

    async def allow(self, key: str) -> bool:
        now = time.monotonic()
        cutoff = now - self.window_seconds
        async with self._lock:
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= self.limit:
                return False
            hits.append(now)
            return True


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id, and a clean identity slot, to the logging context."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        request.state.identity_id = None

        request_token = _request_id_ctx_var.set(request_id)
        identity_token = _identity_id_ctx_var.set(None)
        try:
            response = await call_next(request)
        finally:
            _identity_id_ctx_var.reset(identity_token)
            _request_id_ctx_var.reset(request_token)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject clients that exceed the configured request rate."""

    def __init__(self, app: ASGIApp, limiter: SlidingWindowLimiter) -> None:
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        if request.method == "OPTIONS":
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        if await self.limiter.allow(client_ip):
            return await call_next(request)

        logger.warning("rate limit exceeded", extra={"client_ip": client_ip})
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"detail": "Rate limit exceeded", "code": "rate_limited"},
        )


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One structured log line and one metric sample per request."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self._observe(request, "500", started)
            logger.exception(
                "request failed",
                extra={"method": request.method, "path": request.url.path},
            )
            raise

        elapsed = self._observe(request, str(response.status_code), started)
        logger.info(
            "request completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "route": route_label(request),
                "status_code": response.status_code,
                "duration_ms": round(elapsed * 1000, 2),
                "caller": getattr(request.state, "identity_id", None) or "anonymous",
            },
        )
        return response

    @staticmethod
    def _observe(request: Request, status_code: str, started: float) -> float:
        elapsed = time.perf_counter() - started
        route = route_label(request)
        REQUEST_COUNTER.labels(method=request.method, route=route, status=status_code).inc()
        REQUEST_LATENCY.labels(method=request.method, route=route).observe(elapsed)
        return elapsed
