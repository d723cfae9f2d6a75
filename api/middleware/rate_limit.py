"""
Rate limiting middleware for the triage API.

Sliding-window counter per client, keyed by tenant and IP.
"""

import logging
import time
from typing import Callable, Dict, List

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

EXEMPT_PATHS = ("/health", "/metrics", "/docs", "/openapi.json")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window rate limiter."""

    def __init__(
        self,
        app,
        requests_per_minute: int = 100,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.window_seconds = window_seconds
        self._clock = clock
        self._requests: Dict[str, List[float]] = {}
        self._last_sweep = clock()

    @property
    def tracked_clients(self) -> int:
        return len(self._requests)

    async def dispatch(self, request: Request, call_next):
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        client_id = self._get_client_id(request)
        now = self._clock()
        window_start = now - self.window_seconds
        self._sweep(now)

        recent = [t for t in self._requests.get(client_id, []) if t > window_start]
        if len(recent) >= self.requests_per_minute:
            self._requests[client_id] = recent
            logger.warning(f"Rate limit exceeded for {client_id}")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Rate limit exceeded. Please try again later."},
                headers={"Retry-After": str(self.window_seconds)},
            )

        recent.append(now)
        self._requests[client_id] = recent
        response = await call_next(request)

        remaining = self.requests_per_minute - len(recent)
        response.headers["X-RateLimit-Limit"] = str(self.requests_per_minute)
        response.headers["X-RateLimit-Remaining"] = str(max(0, remaining))

        return response

    def _sweep(self, now: float):
        """Forget clients with no request inside the window, at most once per window."""
        if now - self._last_sweep < self.window_seconds:
            return
        window_start = now - self.window_seconds
        idle = [cid for cid, stamps in self._requests.items() if not stamps or stamps[-1] <= window_start]
        for cid in idle:
            del self._requests[cid]
        self._last_sweep = now

    def _get_client_id(self, request: Request) -> str:
        """Identify client by tenant header plus IP."""
        host = request.client.host if request.client else "unknown"
        tenant = request.headers.get("X-Tenant-Id")
        if tenant:
            return f"tenant:{tenant}:ip:{host}"
        return f"ip:{host}"
