"""
RequestDeduplicator - Prevents duplicate concurrent requests.

When multiple callers request the same resource simultaneously,
only one actual request is made and the outcome is shared.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass
class PendingRequest:
    """An in-flight request and the time it was started."""

    task: asyncio.Task[Any]
    timestamp: datetime


class RequestDeduplicator:
    """
    Deduplicates concurrent async requests.

    When multiple coroutines request the same key simultaneously,
    only one actual request is made. All callers await the same result
    (or the same exception). Entries older than max_age are treated as
    no longer in flight, so a stuck request cannot block a key forever.

    Usage:
        dedup = RequestDeduplicator()

        async def fetch_data(url: str):
            return await dedup.dedupe(
                key=url,
                request_fn=lambda: http_client.get(url)
            )
    """

    def __init__(
        self,
        max_age: timedelta = timedelta(seconds=5),
        clock: Callable[[], datetime] = datetime.now,
        debug: bool = False,
    ):
        self._pending: dict[str, PendingRequest] = {}
        self._max_age = max_age
        self._clock = clock
        self._debug = debug
        self._stats = DeduplicatorStats()

    async def dedupe(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Execute request with deduplication.

        If a request with the same key is already in flight,
        wait for and return its result instead of making a new request.

        Args:
            key: Unique identifier for this request
            request_fn: Async function to execute if no duplicate exists

        Returns:
            Result from request_fn (either fresh or from in-flight request)
        """
        existing = self._pending.get(key)
        if existing is not None:
            if self._clock() - existing.timestamp < self._max_age:
                self._stats.deduplicated += 1
                self._log(f"DEDUPE: Waiting for in-flight request: {key[:50]}")
                return await asyncio.shield(existing.task)

            self._stats.expired += 1
            self._log(f"EXPIRED: Discarding stuck request: {key[:50]}")
            del self._pending[key]

        self._stats.total += 1
        self._log(f"NEW: Starting request: {key[:50]}")
        task = asyncio.create_task(self._execute_and_cleanup(key, request_fn))
        # Every waiter may be cancelled before the shared task fails
        task.add_done_callback(_retrieve_exception)
        self._pending[key] = PendingRequest(task=task, timestamp=self._clock())

        # One caller being cancelled must not cancel the shared request
        return await asyncio.shield(task)

    async def _execute_and_cleanup(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[T]],
    ) -> T:
        """Execute request and clean up when done."""
        try:
            return await request_fn()
        finally:
            current = self._pending.get(key)
            # A newer request may have replaced an expired entry under this key
            if current is not None and current.task is asyncio.current_task():
                del self._pending[key]
            self._log(f"DONE: Request completed: {key[:50]}")

    def is_pending(self, key: str) -> bool:
        """Check if a request for key is in flight and not expired."""
        existing = self._pending.get(key)
        if existing is None:
            return False
        if self._clock() - existing.timestamp >= self._max_age:
            del self._pending[key]
            return False
        return True

    def cancel(self, key: str) -> bool:
        """Cancel an in-flight request."""
        pending = self._pending.pop(key, None)
        if pending is None:
            return False
        pending.task.cancel()
        self._log(f"CANCEL: Request cancelled: {key[:50]}")
        return True

    def clear(self) -> int:
        """Cancel all in-flight requests."""
        count = len(self._pending)
        for pending in self._pending.values():
            pending.task.cancel()
        self._pending.clear()
        if count:
            self._log(f"CLEAR: {count} requests cancelled")
        return count

    @property
    def size(self) -> int:
        """Number of in-flight requests."""
        return len(self._pending)

    def get_stats(self) -> "DeduplicatorStats":
        """Get deduplication statistics."""
        self._stats.in_flight = len(self._pending)
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[Deduplicator] {message}")


def _retrieve_exception(task: asyncio.Task[Any]) -> None:
    if not task.cancelled():
        task.exception()


class DeduplicatorStats:
    """Statistics for request deduplication."""

    def __init__(self):
        self.total: int = 0  # Total unique requests made
        self.deduplicated: int = 0  # Requests that were deduplicated
        self.expired: int = 0  # Stuck entries discarded after max_age
        self.in_flight: int = 0  # Current in-flight requests

    @property
    def dedup_rate(self) -> float:
        """Calculate deduplication rate."""
        total = self.total + self.deduplicated
        if total == 0:
            return 0.0
        return self.deduplicated / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_requests": self.total,
            "deduplicated": self.deduplicated,
            "expired": self.expired,
            "in_flight": self.in_flight,
            "dedup_rate": f"{self.dedup_rate:.2%}",
        }
