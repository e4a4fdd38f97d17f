"""Tests for the sliding window rate limiter."""

import asyncio
from datetime import timedelta

import pytest

from monitor.services import rate_limiter as rate_limiter_module
from monitor.services.rate_limiter import RateLimiter, RateLimiterRegistry


@pytest.fixture
def limiter(clock):
    return RateLimiter("test", max_calls=5, window=timedelta(seconds=1), clock=clock)


class TestAdmission:
    def test_allows_up_to_max_calls(self, limiter, clock):
        for _ in range(4):
            limiter.record_call()
            clock.advance(0.1)
        assert limiter.can_make_call() is True

        limiter.record_call()
        assert limiter.can_make_call() is False

    def test_window_slides_past_earliest_call(self, limiter, clock):
        for _ in range(5):
            limiter.record_call()
            clock.advance(0.1)
        # Earliest call is 0.5s old
        assert limiter.can_make_call() is False

        clock.advance(0.51)
        assert limiter.can_make_call() is True
        assert limiter.get_stats()["used"] == 4


class TestWaitTime:
    def test_zero_when_under_budget(self, limiter):
        limiter.record_call()
        assert limiter.get_wait_time() == timedelta(0)

    def test_time_until_oldest_call_leaves_window(self, limiter, clock):
        limiter.record_call()
        clock.advance(0.3)
        for _ in range(4):
            limiter.record_call()

        assert limiter.get_wait_time() == timedelta(seconds=0.7)


class TestThrottle:
    async def test_throttle_sleeps_for_wait_time_then_records(
        self, limiter, clock, monkeypatch
    ):
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            clock.advance(seconds)

        monkeypatch.setattr(rate_limiter_module.asyncio, "sleep", fake_sleep)

        for _ in range(5):
            await limiter.throttle()
        assert sleeps == []

        await limiter.throttle()
        assert sleeps == [pytest.approx(1.0)]
        assert limiter.get_stats()["used"] == 1

    async def test_concurrent_waiters_never_exceed_window(self):
        class TrackingLimiter(RateLimiter):
            peaks: list[int] = []

            def record_call(self):
                super().record_call()
                self.peaks.append(self.get_stats()["used"])

        limiter = TrackingLimiter("burst", max_calls=2, window=timedelta(seconds=0.1))
        limiter.record_call()
        limiter.record_call()

        await asyncio.gather(*(limiter.throttle() for _ in range(5)))

        assert len(limiter.peaks) == 7
        assert max(limiter.peaks) <= 2

    def test_reset(self, limiter):
        for _ in range(5):
            limiter.record_call()
        limiter.reset()
        assert limiter.can_make_call() is True


class TestRegistry:
    def test_vendor_budgets_stay_below_limits(self):
        registry = RateLimiterRegistry.with_defaults()
        assert registry.get("finnhub").max_calls == 55
        assert registry.get("coingecko").max_calls == 25
        assert registry.get("congress").window == timedelta(hours=1)

    def test_get_all_stats(self):
        registry = RateLimiterRegistry()
        registry.register("a", 2, timedelta(seconds=1)).record_call()
        assert registry.get_all_stats() == [
            {
                "name": "a",
                "used": 1,
                "max": 2,
                "window_seconds": 1.0,
                "available": 1,
            }
        ]
