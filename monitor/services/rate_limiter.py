"""
RateLimiter - Sliding window call budget per external service.

Tracks call timestamps within a trailing window. Bursts are allowed up to
max_calls; after that, throttle() waits exactly until the oldest call in the
window slides out.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable

from loguru import logger

from monitor.config import RATE_LIMITS


class RateLimiter:
    """
    Sliding window rate limiter.

    Usage:
        limiter = RateLimiter("finnhub", max_calls=55, window=timedelta(minutes=1))

        await limiter.throttle()
        response = await client.get(url)
    """

    def __init__(
        self,
        name: str,
        max_calls: int,
        window: timedelta,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.name = name
        self.max_calls = max_calls
        self.window = window
        self._calls: list[datetime] = []
        self._clock = clock

    def can_make_call(self) -> bool:
        """Check if a call can be made without exceeding the limit."""
        self._prune_old_calls()
        return len(self._calls) < self.max_calls

    def record_call(self) -> None:
        """Record a call being made."""
        self._calls.append(self._clock())

    def get_wait_time(self) -> timedelta:
        """Get time to wait before another call is permitted."""
        self._prune_old_calls()

        if len(self._calls) < self.max_calls:
            return timedelta(0)

        oldest_call = self._calls[0]
        return max(timedelta(0), oldest_call + self.window - self._clock())

    async def throttle(self) -> None:
        """Wait until a call is permitted, then record it."""
        # Re-check after every sleep: concurrent waiters wake together
        while (wait_time := self.get_wait_time()) > timedelta(0):
            logger.debug(
                f"[RateLimiter:{self.name}] Waiting {wait_time.total_seconds():.2f}s "
                f"to respect rate limit"
            )
            await asyncio.sleep(wait_time.total_seconds())

        self.record_call()

    def get_stats(self) -> dict[str, Any]:
        """Get current usage stats."""
        self._prune_old_calls()
        return {
            "name": self.name,
            "used": len(self._calls),
            "max": self.max_calls,
            "window_seconds": self.window.total_seconds(),
            "available": max(0, self.max_calls - len(self._calls)),
        }

    def reset(self) -> None:
        """Forget all recorded calls."""
        self._calls = []

    def _prune_old_calls(self) -> None:
        """Remove calls that are outside the current window."""
        cutoff = self._clock() - self.window
        self._calls = [t for t in self._calls if t > cutoff]


class RateLimiterRegistry:
    """Registry holding one rate limiter per external API."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._limiters: dict[str, RateLimiter] = {}
        self._clock = clock

    @classmethod
    def with_defaults(
        cls, clock: Callable[[], datetime] = datetime.now
    ) -> "RateLimiterRegistry":
        """Create a registry pre-populated with the vendor budgets."""
        registry = cls(clock=clock)
        for name, (max_calls, window) in RATE_LIMITS.items():
            registry.register(name, max_calls, window)
        return registry

    def register(self, name: str, max_calls: int, window: timedelta) -> RateLimiter:
        limiter = RateLimiter(name, max_calls, window, clock=self._clock)
        self._limiters[name] = limiter
        return limiter

    def get(self, name: str) -> RateLimiter:
        return self._limiters[name]

    def __contains__(self, name: str) -> bool:
        return name in self._limiters

    def get_all_stats(self) -> list[dict[str, Any]]:
        return [limiter.get_stats() for limiter in self._limiters.values()]
