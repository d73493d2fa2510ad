"""Tests for the fixed-window rate limiter."""

import pytest

from mediarelay.core.ratelimit import RateLimiter


class TestRateLimiter:
    def test_allows_up_to_limit_per_window(self):
        limiter = RateLimiter(limit=3, window=60)
        assert [limiter.allow("u", now=t) for t in (0, 1, 2, 3)] == [True, True, True, False]

    def test_window_resets(self):
        limiter = RateLimiter(limit=1, window=60)
        assert limiter.allow("u", now=0)
        assert not limiter.allow("u", now=59)
        assert limiter.allow("u", now=60)

    def test_identities_are_independent(self):
        limiter = RateLimiter(limit=1, window=60)
        assert limiter.allow("a", now=0)
        assert limiter.allow("b", now=0)
        assert not limiter.allow("a", now=1)

    def test_retry_after(self):
        limiter = RateLimiter(limit=1, window=60)
        limiter.allow("u", now=10)
        assert limiter.retry_after("u", now=25) == 45
        assert limiter.retry_after("unknown", now=25) == 60

    def test_injected_clock(self):
        now = [0.0]
        limiter = RateLimiter(limit=1, window=5, clock=lambda: now[0])
        assert limiter.allow("u")
        assert not limiter.allow("u")
        now[0] = 5.0
        assert limiter.allow("u")

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            RateLimiter(limit=0)
