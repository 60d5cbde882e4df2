"""Simple in-memory sliding-window rate limiter.

Reads (GET/HEAD) and writes (everything else) draw from separate per-IP
budgets, so a burst of edits from the back office never starves the tour
list refreshes.  Writes get a quarter of the read budget.

This in-memory implementation is sufficient for a single-instance
deployment; multiple workers each keep their own window.
"""

from __future__ import annotations

import time
from collections import defaultdict
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.config import Settings, get_settings

_READ_METHODS = {"GET", "HEAD", "OPTIONS"}


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP, per-method-class sliding window rate limiter."""

    def __init__(self, app: Any, settings: Settings | None = None) -> None:
        super().__init__(app)
        s = settings or get_settings()
        self._limits = {
            "read": s.rate_limit_per_minute,
            "write": max(s.rate_limit_per_minute // 4, 1),
        }
        self._window_seconds = 60
        # (ip, bucket) -> list of timestamps
        self._requests: dict[tuple[str, str], list[float]] = defaultdict(list)

    def _client_ip(self, request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    def _cleanup(self, key: tuple[str, str], now: float) -> None:
        cutoff = now - self._window_seconds
        self._requests[key] = [t for t in self._requests[key] if t > cutoff]

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        bucket = "read" if request.method in _READ_METHODS else "write"
        key = (self._client_ip(request), bucket)
        limit = self._limits[bucket]
        now = time.monotonic()
        self._cleanup(key, now)

        if len(self._requests[key]) >= limit:
            retry_after = int(self._window_seconds - (now - self._requests[key][0]))
            return Response(
                content='{"detail":"Rate limit exceeded"}',
                status_code=429,
                media_type="application/json",
                headers={"Retry-After": str(max(retry_after, 1))},
            )

        self._requests[key].append(now)

        response = await call_next(request)

        remaining = limit - len(self._requests[key])
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(max(remaining, 0))

        return response
