"""Inbound fixed-window rate limiting, partitioned by client address.

Each client gets ``limit`` requests per ``window`` seconds. There is no
queueing: a request over the limit is rejected immediately.
"""

import logging
import threading
import time
from typing import Callable

from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter:
    """Per-key fixed window counter."""

    def __init__(
        self,
        limit: int,
        window: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit <= 0 or window <= 0:
            raise ValueError("limit and window must be positive")
        self.limit = limit
        self.window = window
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = threading.Lock()

    def allow(self, key: str) -> bool:
        """Count one request for ``key``; False when its window is exhausted."""
        now = self._clock()
        with self._lock:
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window:
                started, count = now, 0
            if count >= self.limit:
                return False
            self._windows[key] = (started, count + 1)
            if len(self._windows) > 10_000:
                self._prune(now)
            return True

    def _prune(self, now: float) -> None:
        expired = [key for key, (started, _) in self._windows.items() if now - started >= self.window]
        for key in expired:
            del self._windows[key]


class RateLimitMiddleware:
    """ASGI middleware rejecting requests over the per-client limit with 429."""

    def __init__(self, app, limiter: FixedWindowRateLimiter) -> None:
        self.app = app
        self.limiter = limiter

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        client = scope.get("client")
        client_key = client[0] if client else "unknown"
        if not self.limiter.allow(client_key):
            logger.warning("Rate limit exceeded for %s", client_key)
            response = JSONResponse({"error": "Too many requests"}, status_code=429)
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)
