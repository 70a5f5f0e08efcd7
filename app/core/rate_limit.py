import asyncio
import time
from collections import defaultdict, deque
from collections.abc import Callable

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.core.errors import error_payload
from app.core.settings import Settings


class SlidingWindowRateLimiter:
    def __init__(self, window_seconds: int = 60) -> None:
        self.window_seconds = window_seconds
        self._events: dict[tuple[str, str], deque[float]] = defaultdict(deque)
        self._lock = asyncio.Lock()

    async def allow(self, key: tuple[str, str], limit: int) -> bool:
        now = time.monotonic()
        cutoff = now - self.window_seconds
        async with self._lock:
            bucket = self._events[key]
            while bucket and bucket[0] < cutoff:
                bucket.popleft()
            if len(bucket) >= limit:
                return False
            bucket.append(now)
            return True


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, settings: Settings):
        super().__init__(app)
        self.settings = settings
        self.limiter = SlidingWindowRateLimiter(window_seconds=settings.rate_limit_window_seconds)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path.startswith("/health"):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        limit = self.settings.rate_limit_per_minute
        allowed = await self.limiter.allow(key=(path, client_ip), limit=limit)
        if not allowed:
            # middleware runs outside the exception handlers, so build the error body here
            return JSONResponse(
                status_code=429,
                content=error_payload(
                    "rate_limited",
                    "Too many requests",
                    {"path": path, "limit": limit, "window_seconds": self.settings.rate_limit_window_seconds},
                ),
            )

        return await call_next(request)
