"""Unit tests for the sliding-window rate limiter."""

import asyncio

import pytest

from miau_index.errors import RateLimitError
from miau_index.ratelimit import RateLimiter


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.mark.unit
class TestRateLimiter:
    def test_allows_up_to_limit(self, clock):
        limiter = RateLimiter(max_requests=3, window=10, clock=clock)
        for _ in range(3):
            limiter.check_limit("api")
            limiter.record_request("api")

        with pytest.raises(RateLimitError) as exc_info:
            limiter.check_limit("api")
        assert exc_info.value.retry_after == 10

    def test_window_slides(self, clock):
        limiter = RateLimiter(max_requests=2, window=10, clock=clock)
        limiter.record_request()
        clock.now = 4
        limiter.record_request()

        clock.now = 10.5
        limiter.check_limit()
        assert limiter.usage().current == 1

    def test_keys_are_independent(self, clock):
        limiter = RateLimiter(max_requests=1, window=10, clock=clock)
        limiter.record_request("anilist")

        limiter.check_limit("kitsu")
        with pytest.raises(RateLimitError):
            limiter.check_limit("anilist")

    def test_usage(self, clock):
        limiter = RateLimiter(max_requests=5, window=60, clock=clock)
        limiter.record_request()
        clock.now = 15
        limiter.record_request()

        usage = limiter.usage()
        assert (usage.current, usage.limit, usage.remaining) == (2, 5, 3)
        assert usage.reset_in == 45

    def test_reset_and_clear(self, clock):
        limiter = RateLimiter(max_requests=1, window=60, clock=clock)
        limiter.record_request("a")
        limiter.record_request("b")

        limiter.reset("a")
        limiter.check_limit("a")
        limiter.clear()
        limiter.check_limit("b")

    def test_per_minute(self):
        limiter = RateLimiter.per_minute(30)
        assert (limiter.max_requests, limiter.window) == (30, 60.0)

    def test_acquire_waits_for_slot(self, clock, monkeypatch):
        limiter = RateLimiter(max_requests=1, window=5, clock=clock)
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            clock.now += seconds

        monkeypatch.setattr("miau_index.ratelimit.asyncio.sleep", fake_sleep)

        asyncio.run(limiter.acquire())
        asyncio.run(limiter.acquire())

        assert sleeps == [5]
        assert limiter.usage().current == 1
