"""
Cache backend implementations.

Provides memory and null cache backends.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable


@dataclass
class CacheEntry:
    """A cache entry with metadata.

    Attributes:
        value: Cached value
        created_at: Creation timestamp (monotonic seconds)
        ttl: Time-to-live in seconds
        hits: Number of cache hits
    """

    value: Any
    created_at: float
    ttl: float | None = None
    hits: int = 0

    def is_expired(self, now: float) -> bool:
        """Check if entry is expired at ``now``."""
        if self.ttl is None:
            return False
        return now - self.created_at > self.ttl

    def age_seconds(self, now: float) -> float:
        """Get age in seconds."""
        return now - self.created_at


class CacheBackend(ABC):
    """Abstract base class for cache backends."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Get a value from the cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None
        """
        raise NotImplementedError

    @abstractmethod
    async def set(
        self, key: str, value: Any, ttl: float | None = None
    ) -> None:
        """Set a value in the cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds
        """
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a value from the cache.

        Args:
            key: Cache key

        Returns:
            True if deleted, False if not found
        """
        raise NotImplementedError

    @abstractmethod
    async def clear(self) -> None:
        """Clear all cache entries."""
        raise NotImplementedError

    @abstractmethod
    async def cleanup_expired(self) -> int:
        """Remove expired entries.

        Returns:
            Number of entries removed
        """
        raise NotImplementedError

    @property
    @abstractmethod
    def size(self) -> int:
        """Number of entries currently held (expired ones included until swept)."""
        raise NotImplementedError

    async def close(self) -> None:
        """Close the backend (cleanup)."""
        pass


class MemoryCache(CacheBackend):
    """In-memory cache backend with TTL support.

    Example:
        >>> cache = MemoryCache(max_size=1000, default_ttl=300)
        >>> await cache.set("key", "value")
        >>> value = await cache.get("key")
    """

    def __init__(
        self,
        max_size: int | None = None,
        default_ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize memory cache.

        Args:
            max_size: Maximum number of entries (None = unbounded)
            default_ttl: Default TTL in seconds
            clock: Monotonic time source
        """
        self._cache: dict[str, CacheEntry] = {}
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._clock = clock
        self._lock = asyncio.Lock()
        self._evictions = 0

    async def get(self, key: str) -> Any | None:
        """Get a value from the cache."""
        async with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None

            if entry.is_expired(self._clock()):
                del self._cache[key]
                return None

            entry.hits += 1
            return entry.value

    async def set(
        self, key: str, value: Any, ttl: float | None = None
    ) -> None:
        """Set a value in the cache."""
        async with self._lock:
            if (
                self._max_size is not None
                and len(self._cache) >= self._max_size
                and key not in self._cache
            ):
                self._evict_one()

            self._cache[key] = CacheEntry(
                value=value,
                created_at=self._clock(),
                ttl=ttl if ttl is not None else self._default_ttl,
            )

    async def delete(self, key: str) -> bool:
        """Delete a value from the cache."""
        async with self._lock:
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    async def clear(self) -> None:
        """Clear all cache entries."""
        async with self._lock:
            self._cache.clear()

    async def cleanup_expired(self) -> int:
        """Remove expired entries."""
        async with self._lock:
            now = self._clock()
            expired = [k for k, v in self._cache.items() if v.is_expired(now)]
            for key in expired:
                del self._cache[key]
            return len(expired)

    def _evict_one(self) -> None:
        """Evict one entry (expired first, then least hit)."""
        if not self._cache:
            return

        self._evictions += 1
        now = self._clock()
        for key, entry in self._cache.items():
            if entry.is_expired(now):
                del self._cache[key]
                return

        min_hits_key = min(self._cache, key=lambda k: self._cache[k].hits)
        del self._cache[min_hits_key]

    @property
    def size(self) -> int:
        """Get current cache size."""
        return len(self._cache)

    @property
    def evictions(self) -> int:
        """Number of capacity evictions so far."""
        return self._evictions


class NullCache(CacheBackend):
    """Null cache backend that doesn't cache anything.

    Used when caching is disabled.
    """

    async def get(self, key: str) -> Any | None:  # noqa: ARG002
        """Always returns None."""
        return None

    async def set(
        self, key: str, value: Any, ttl: float | None = None
    ) -> None:
        """Does nothing."""
        pass

    async def delete(self, key: str) -> bool:  # noqa: ARG002
        """Always returns False."""
        return False

    async def clear(self) -> None:
        """Does nothing."""
        pass

    async def cleanup_expired(self) -> int:
        """Nothing to remove."""
        return 0

    @property
    def size(self) -> int:
        """Always empty."""
        return 0
