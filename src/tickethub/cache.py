"""Per-provider TTL cache for normalized tickets.

Each provider owns one `TTLCache`. Entries expire a fixed number of
seconds after they were stored; reads check expiry and treat expired
entries as misses, deleting them on the spot. There is no background
sweep, so a lookup is a single dict access plus a clock read.

Example:
    cache = TTLCache(default_ttl=600, max_size=100)  # 10 min TTL
    cache.set("ticket:C123:1704067200.000100", ticket)
    cache.get("ticket:C123:1704067200.000100")  # -> ticket
    # After 10 minutes...
    cache.get("ticket:C123:1704067200.000100")  # -> None (expired)
"""

from __future__ import annotations

import re
import time
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from tickethub.constants import DEFAULT_CACHE_MAX_SIZE
from tickethub.exceptions import CacheError

T = TypeVar("T")


class CacheStats(BaseModel):
    """Snapshot of a cache's live contents and hit counters."""

    size: int = Field(..., ge=0, description="Number of live (unexpired) entries")
    keys: list[str] = Field(default_factory=list, description="Live keys in insertion order")
    hits: int = Field(default=0, ge=0, description="Reads that returned a value")
    misses: int = Field(default=0, ge=0, description="Reads that found nothing or an expired entry")

    @property
    def hit_rate(self) -> float:
        """Return hits / total reads, 0.0 when nothing was read yet."""
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class CacheEntry(Generic[T]):
    """A cached value with the time it was stored and its TTL.

    Attributes:
        key: The cache key.
        value: The cached value.
        stored_at: Monotonic time when the entry was stored.
        ttl: Time-to-live in seconds.
    """

    __slots__ = ("key", "stored_at", "ttl", "value")

    def __init__(self, key: str, value: T, ttl: float, stored_at: float) -> None:
        self.key = key
        self.value = value
        self.ttl = ttl
        self.stored_at = stored_at

    def is_expired(self, now: float) -> bool:
        """Return True once more than ``ttl`` seconds have passed since storing."""
        return now - self.stored_at > self.ttl


class TTLCache(Generic[T]):
    """In-memory key/value store with per-entry expiry.

    Expired entries are evicted lazily on read. When the cache is full,
    expired entries are purged first and then the oldest entry goes.

    Attributes:
        default_ttl: TTL in seconds used when `set` is called without one.
        max_size: Maximum number of stored entries.
    """

    def __init__(
        self,
        default_ttl: float,
        max_size: int = DEFAULT_CACHE_MAX_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            default_ttl: Time-to-live in seconds for entries stored without an explicit TTL.
            max_size: Maximum number of items in cache.
            clock: Source of monotonic time, in seconds.

        Raises:
            CacheError: If default_ttl or max_size is not positive.
        """
        if default_ttl <= 0:
            raise CacheError("Cache TTL must be positive", {"ttl": default_ttl})
        if max_size <= 0:
            raise CacheError("Cache max_size must be positive", {"max_size": max_size})

        self._entries: dict[str, CacheEntry[T]] = {}
        self._clock = clock
        self._hits = 0
        self._misses = 0
        self.default_ttl = default_ttl
        self.max_size = max_size

    def get(self, key: str) -> T | None:
        """Get a value from the cache.

        Args:
            key: Cache key.

        Returns:
            Cached value or None if not found/expired.
        """
        entry = self._entries.get(key)

        if entry is None:
            self._misses += 1
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._misses += 1
            return None

        self._hits += 1
        return entry.value

    def set(self, key: str, value: T, ttl: float | None = None) -> None:
        """Store a value, replacing any previous entry for the key.

        Args:
            key: Cache key.
            value: Value to cache.
            ttl: Time-to-live in seconds, defaults to ``default_ttl``.

        Raises:
            CacheError: If ttl is not positive.
        """
        entry_ttl = self.default_ttl if ttl is None else ttl
        if entry_ttl <= 0:
            raise CacheError("Cache TTL must be positive", {"key": key, "ttl": entry_ttl})

        if key not in self._entries and len(self._entries) >= self.max_size:
            self._evict_expired()
            if len(self._entries) >= self.max_size:
                oldest_key = next(iter(self._entries))
                del self._entries[oldest_key]

        # Re-insert so insertion order tracks the latest write
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(key, value, entry_ttl, self._clock())

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[T]],
        ttl: float | None = None,
    ) -> T:
        """Return the cached value, or await ``compute()`` and cache its result.

        Exceptions raised by ``compute`` propagate and nothing is cached.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        value = await compute()
        self.set(key, value, ttl)
        return value

    def invalidate(self, key: str) -> bool:
        """Remove a specific key from the cache.

        Args:
            key: Cache key to remove.

        Returns:
            True if an entry was removed.
        """
        return self._entries.pop(key, None) is not None

    def invalidate_matching(self, pattern: str | re.Pattern[str]) -> int:
        """Remove every key containing ``pattern`` (or matching it, for a regex).

        Returns:
            Number of entries removed.
        """
        if isinstance(pattern, str):
            doomed = [key for key in self._entries if pattern in key]
        else:
            doomed = [key for key in self._entries if pattern.search(key)]

        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        """Clear all entries and reset hit counters."""
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def stats(self) -> CacheStats:
        """Return a snapshot of live entries and hit counters.

        Expired entries are purged first so ``size`` never counts them.
        """
        self._evict_expired()
        return CacheStats(
            size=len(self._entries),
            keys=list(self._entries),
            hits=self._hits,
            misses=self._misses,
        )

    def _evict_expired(self) -> None:
        """Remove all expired entries from the cache."""
        now = self._clock()
        expired_keys = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired_keys:
            del self._entries[key]

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def __len__(self) -> int:
        """Return the number of stored entries.

        Note: This includes potentially expired entries; use `stats()`
        for the live count.
        """
        return len(self._entries)
