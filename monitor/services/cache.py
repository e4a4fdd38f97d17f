"""
CacheManager - In-memory cache with TTL and stale fallback support.

Features:
- Per-entry TTL (Time To Live)
- Stale reads for fallback when a fresh fetch fails
- Explicit pruning of entries older than twice their TTL

Expired entries are never removed on read; staleness is computed when the
entry is looked up. Callers are expected to run prune() periodically.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A single cache entry with metadata."""

    data: T
    timestamp: datetime
    ttl: timedelta

    def age(self, now: datetime) -> timedelta:
        return now - self.timestamp

    def is_fresh(self, now: datetime) -> bool:
        """Check if entry is still within its TTL."""
        return self.age(now) <= self.ttl

    def is_prunable(self, now: datetime) -> bool:
        """Check if entry is older than twice its TTL."""
        return self.age(now) > self.ttl * 2


class CacheManager:
    """
    In-memory cache manager with TTL and stale fallback.

    Usage:
        cache = CacheManager(default_ttl=timedelta(minutes=5))

        data = cache.get("my_key")
        if data is None:
            try:
                data = await fetch_data()
                cache.set("my_key", data)
            except Exception:
                data = cache.get_stale("my_key")
    """

    def __init__(
        self,
        default_ttl: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = datetime.now,
        debug: bool = False,
    ):
        self._memory: dict[str, CacheEntry[Any]] = {}
        self._default_ttl = default_ttl
        self._clock = clock
        self._debug = debug
        self._stats = CacheStats()

    @property
    def default_ttl(self) -> timedelta:
        return self._default_ttl

    def get(self, key: str) -> Any | None:
        """
        Get fresh value from cache.

        Returns None on miss or when the entry is past its TTL. Expired
        entries are kept for get_stale().
        """
        entry = self._memory.get(key)
        if entry is None:
            self._stats.misses += 1
            self._log(f"MISS: {key[:50]}")
            return None

        if not entry.is_fresh(self._clock()):
            self._stats.misses += 1
            self._log(f"EXPIRED: {key[:50]}")
            return None

        self._stats.hits += 1
        self._log(f"HIT: {key[:50]}")
        return entry.data

    def get_stale(self, key: str) -> Any | None:
        """Get value from cache ignoring its TTL (fallback path only)."""
        entry = self._memory.get(key)
        if entry is None:
            return None

        self._stats.stale_hits += 1
        self._log(f"STALE HIT: {key[:50]}")
        return entry.data

    def is_fresh(self, key: str) -> bool:
        entry = self._memory.get(key)
        return entry is not None and entry.is_fresh(self._clock())

    def get_age(self, key: str) -> timedelta | None:
        """Get age of the cached value, or None if not cached."""
        entry = self._memory.get(key)
        if entry is None:
            return None
        return entry.age(self._clock())

    def set(self, key: str, data: Any, ttl: timedelta | None = None) -> None:
        """
        Set value in cache, overwriting any previous entry.

        Args:
            key: Cache key
            data: Data to cache
            ttl: Time to live (uses default if not specified)
        """
        if ttl is None:
            ttl = self._default_ttl
        self._memory[key] = CacheEntry(data=data, timestamp=self._clock(), ttl=ttl)
        self._log(f"SET: {key[:50]} (TTL: {ttl.total_seconds()}s)")

    def delete(self, key: str) -> bool:
        """Delete a specific key from cache."""
        if self._memory.pop(key, None) is not None:
            self._log(f"DELETE: {key[:50]}")
            return True
        return False

    def clear(self) -> None:
        """Clear all cache entries."""
        count = len(self._memory)
        self._memory.clear()
        self._log(f"CLEAR: {count} entries removed")

    def prune(self) -> int:
        """Remove entries older than twice their TTL. Returns count removed."""
        now = self._clock()
        pruned_keys = [k for k, v in self._memory.items() if v.is_prunable(now)]
        for key in pruned_keys:
            del self._memory[key]

        if pruned_keys:
            self._log(f"PRUNE: {len(pruned_keys)} entries removed")

        return len(pruned_keys)

    def __contains__(self, key: str) -> bool:
        return key in self._memory

    def __len__(self) -> int:
        return len(self._memory)

    def stats(self) -> "CacheStats":
        """Get cache statistics."""
        self._stats.size = len(self._memory)
        self._stats.keys = list(self._memory.keys())
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[CacheManager] {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    stale_hits: int = 0
    size: int = 0
    keys: list[str] = field(default_factory=list)

    @property
    def hit_rate(self) -> float:
        """Calculate fresh hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "stale_hits": self.stale_hits,
            "size": self.size,
            "keys": self.keys,
            "hit_rate": f"{self.hit_rate:.2%}",
        }
