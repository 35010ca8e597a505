"""HTTP middleware: request context, rate limiting and access logs."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from slotbook.logging_utils import (
    _request_id_ctx_var,
    _tenant_id_ctx_var,
    get_current_tenant,
)
from slotbook.metrics import REQUEST_COUNTER, REQUEST_LATENCY

logger = logging.getLogger(__name__)


class SimpleRateLimiter:
    """Fixed-window in-memory rate limiter keyed by client and tenant."""

    def __init__(self, limit: int, window_seconds: int) -> None:
        self.limit = max(1, limit)
        self.window_seconds = max(1, window_seconds)
        self._entries: dict[str, tuple[int, float]] = {}
        self._lock = asyncio.Lock()

    async def allow(self, key: str) -> bool:
        now = time.monotonic()
        async with self._lock:
            count, window_start = self._entries.get(key, (0, now))
            if now - window_start >= self.window_seconds:
                self._entries[key] = (1, now)
                return True
            if count >= self.limit:
                return False
            self._entries[key] = (count + 1, window_start)
            return True


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request and tenant identifiers for the duration of a request."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        request_token = _request_id_ctx_var.set(request_id)
        tenant_token = _tenant_id_ctx_var.set(request.headers.get("X-Tenant-ID"))
        try:
            response = await call_next(request)
        finally:
            _request_id_ctx_var.reset(request_token)
            _tenant_id_ctx_var.reset(tenant_token)

        response.headers["X-Request-ID"] = request_id
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject callers that exceed the configured request budget."""

    def __init__(self, app: FastAPI, limiter: SimpleRateLimiter) -> None:  # type: ignore[override]
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        if request.method == "OPTIONS":
            return await call_next(request)

        client_host = request.client.host if request.client else "unknown"
        tenant_value = request.headers.get("X-Tenant-ID") or "anonymous"
        if not await self.limiter.allow(f"{client_host}:{tenant_value}"):
            logger.warning(
                "rate limit exceeded",
                extra={"client_ip": client_host, "tenant": tenant_value},
            )
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Rate limit exceeded"},
            )
        return await call_next(request)


def _route_label(request: Request) -> str:
    # Templated path keeps metric label cardinality bounded.
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Emit structured access logs and feed request metrics."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        started = time.perf_counter()
        method = request.method

        try:
            response = await call_next(request)
        except Exception:
            elapsed = time.perf_counter() - started
            path = _route_label(request)
            REQUEST_COUNTER.labels(
                method=method, path=path, status="500", tenant=get_current_tenant()
            ).inc()
            REQUEST_LATENCY.labels(method=method, path=path).observe(elapsed)
            logger.exception(
                "request failed",
                extra={"method": method, "path": path, "duration_ms": round(elapsed * 1000, 2)},
            )
            raise

        elapsed = time.perf_counter() - started
        path = _route_label(request)
        REQUEST_COUNTER.labels(
            method=method,
            path=path,
            status=str(response.status_code),
            tenant=get_current_tenant(),
        ).inc()
        REQUEST_LATENCY.labels(method=method, path=path).observe(elapsed)
        logger.info(
            "request completed",
            extra={
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": round(elapsed * 1000, 2),
            },
        )
        return response
