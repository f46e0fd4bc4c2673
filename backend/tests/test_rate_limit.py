"""
Tests for in-memory rate limiter middleware.

Tests: RateLimiter class — sliding window, retry-after, rate_limit dependency.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest
from unittest.mock import MagicMock

from domain.errors import RateLimitError
from middleware.rate_limit import RateLimiter, rate_limit, limiter as global_limiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestRateLimiter:
    """Tests for the RateLimiter class."""

    @pytest.mark.unit
    def test_allows_requests_under_limit(self):
        """Requests under the limit should be allowed."""
        limiter = RateLimiter()
        for _ in range(5):
            assert limiter.check("testkey", max_requests=5, window_seconds=60) is True

    @pytest.mark.unit
    def test_blocks_requests_over_limit(self):
        """Request exceeding the limit should be blocked."""
        limiter = RateLimiter()
        for _ in range(3):
            limiter.check("testkey", max_requests=3, window_seconds=60)
        assert limiter.check("testkey", max_requests=3, window_seconds=60) is False

    @pytest.mark.unit
    def test_different_keys_independent(self):
        """Different keys should have independent limits."""
        limiter = RateLimiter()
        for _ in range(3):
            limiter.check("key1", max_requests=3, window_seconds=60)
        assert limiter.check("key1", max_requests=3, window_seconds=60) is False
        assert limiter.check("key2", max_requests=3, window_seconds=60) is True

    @pytest.mark.unit
    def test_window_expiry(self):
        """Requests should be allowed again once the window slides past them."""
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        for _ in range(2):
            limiter.check("testkey", max_requests=2, window_seconds=10)
        assert limiter.check("testkey", max_requests=2, window_seconds=10) is False

        clock.now += 10.5
        assert limiter.check("testkey", max_requests=2, window_seconds=10) is True

    @pytest.mark.unit
    def test_sliding_not_fixed_window(self):
        """Only the hits older than the window expire."""
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        limiter.check("k", max_requests=2, window_seconds=10)
        clock.now += 6
        limiter.check("k", max_requests=2, window_seconds=10)
        clock.now += 5  # first hit expired, second still counts
        assert limiter.remaining("k", max_requests=2, window_seconds=10) == 1

    @pytest.mark.unit
    def test_remaining_count(self):
        """remaining() should return correct count."""
        limiter = RateLimiter()
        assert limiter.remaining("testkey", max_requests=5, window_seconds=60) == 5
        limiter.check("testkey", max_requests=5, window_seconds=60)
        assert limiter.remaining("testkey", max_requests=5, window_seconds=60) == 4

    @pytest.mark.unit
    def test_remaining_at_zero(self):
        """remaining() should return 0 when limit is reached, not negative."""
        limiter = RateLimiter()
        for _ in range(6):
            limiter.check("testkey", max_requests=5, window_seconds=60)
        assert limiter.remaining("testkey", max_requests=5, window_seconds=60) == 0

    @pytest.mark.unit
    def test_retry_after(self):
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        assert limiter.retry_after("k", 60) == 0
        limiter.check("k", max_requests=1, window_seconds=60)
        clock.now += 20
        assert 40 <= limiter.retry_after("k", 60) <= 41

    @pytest.mark.unit
    def test_reset(self):
        limiter = RateLimiter()
        limiter.check("once", max_requests=1, window_seconds=60)
        assert limiter.check("once", max_requests=1, window_seconds=60) is False
        limiter.reset()
        assert limiter.check("once", max_requests=1, window_seconds=60) is True


class TestRateLimitDependency:
    """Tests for the rate_limit() FastAPI dependency."""

    @staticmethod
    def _request(ip: str = "10.0.0.1", path: str = "/api/auth/login"):
        request = MagicMock()
        request.client.host = ip
        request.url.path = path
        return request

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_raises_429_with_headers(self):
        global_limiter.reset()
        check = rate_limit(max_requests=2, window_seconds=60)
        await check(self._request())
        await check(self._request())
        with pytest.raises(RateLimitError) as exc_info:
            await check(self._request())
        error = exc_info.value
        assert error.status_code == 429
        assert error.headers["X-RateLimit-Limit"] == "2"
        assert error.headers["X-RateLimit-Remaining"] == "0"
        assert int(error.headers["Retry-After"]) >= 1
        global_limiter.reset()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_keys_by_client_and_path(self):
        global_limiter.reset()
        check = rate_limit(max_requests=1, window_seconds=60)
        await check(self._request(ip="10.0.0.1"))
        await check(self._request(ip="10.0.0.2"))
        await check(self._request(ip="10.0.0.1", path="/api/auth/register"))
        global_limiter.reset()
