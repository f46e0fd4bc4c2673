"""
In-memory rate limiting for the auth endpoints.

Sliding-window counter per (client IP, route). Login and registration are
the only public write endpoints, so they are the ones guarded.
Not shared between worker processes.
"""
import time
import logging
from collections import defaultdict, deque

from fastapi import Request

from domain.errors import RateLimitError

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Sliding-window rate limiter keyed by arbitrary strings.

    Timestamps are kept oldest-first in a deque per key so expiry only
    touches the left end.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._hits: dict[str, deque[float]] = defaultdict(deque)

    def _expire(self, key: str, window_seconds: int) -> deque[float]:
        hits = self._hits[key]
        cutoff = self._clock() - window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()
        return hits

    def check(self, key: str, max_requests: int, window_seconds: int) -> bool:
        """Record a hit and return True, or return False when the window is full."""
        hits = self._expire(key, window_seconds)
        if len(hits) >= max_requests:
            return False
        hits.append(self._clock())
        return True

    def remaining(self, key: str, max_requests: int, window_seconds: int) -> int:
        return max(0, max_requests - len(self._expire(key, window_seconds)))

    def retry_after(self, key: str, window_seconds: int) -> int:
        """Seconds until the oldest hit leaves the window."""
        hits = self._expire(key, window_seconds)
        if not hits:
            return 0
        return max(1, int(hits[0] + window_seconds - self._clock()) + 1)

    def reset(self) -> None:
        self._hits.clear()


# Global rate limiter instance
limiter = RateLimiter()


def rate_limit(max_requests: int = 10, window_seconds: int = 60):
    """
    FastAPI dependency factory.

    Usage:
        @router.post("/login")
        async def login(..., _rate=Depends(rate_limit(10, 60))):
    """
    async def _check_rate_limit(request: Request):
        client_ip = request.client.host if request.client else "unknown"
        key = f"{client_ip}:{request.url.path}"

        if not limiter.check(key, max_requests, window_seconds):
            logger.warning(
                f"Rate limit exceeded: {client_ip} on {request.url.path} "
                f"({max_requests}/{window_seconds}s)"
            )
            error = RateLimitError(
                f"Too many requests. Maximum {max_requests} per {window_seconds} seconds.",
                details={"retryAfter": limiter.retry_after(key, window_seconds)},
            )
            error.headers = {
                "Retry-After": str(limiter.retry_after(key, window_seconds)),
                "X-RateLimit-Limit": str(max_requests),
                "X-RateLimit-Remaining": "0",
            }
            raise error

    return _check_rate_limit
