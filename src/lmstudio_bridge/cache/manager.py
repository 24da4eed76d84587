"""
Cache manager for completion results.

Wraps a backend with best-effort semantics: a backend failure only forces
recomputation, it never fails the call.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import Any

from lmstudio_bridge.cache.backends import CacheBackend, MemoryCache, NullCache
from lmstudio_bridge.telemetry.logger import get_logger

logger = get_logger("lmstudio_bridge.cache")


@dataclass
class CacheStats:
    """Cache statistics.

    Attributes:
        hits: Number of cache hits
        misses: Number of cache misses
        sets: Number of cache sets
        failures: Number of backend failures absorbed
        swept: Number of expired entries removed by the sweeper
    """

    hits: int = 0
    misses: int = 0
    sets: int = 0
    failures: int = 0
    swept: int = 0

    @property
    def total_requests(self) -> int:
        """Get total number of lookups."""
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Get cache hit rate (0.0 to 1.0)."""
        total = self.total_requests
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "failures": self.failures,
            "swept": self.swept,
            "total_requests": self.total_requests,
            "hit_rate": self.hit_rate,
        }

    def reset(self) -> None:
        """Reset statistics."""
        self.hits = 0
        self.misses = 0
        self.sets = 0
        self.failures = 0
        self.swept = 0


@dataclass
class CacheConfig:
    """Cache configuration.

    Attributes:
        enabled: Whether caching is enabled
        ttl: Default TTL in seconds
        check_period: Interval of the expired-entry sweep in seconds
        max_size: Maximum number of entries (None = unbounded)
    """

    enabled: bool = True
    ttl: float = 300.0
    check_period: float = 60.0
    max_size: int | None = None

    @classmethod
    def disabled(cls) -> CacheConfig:
        """Create disabled cache config."""
        return cls(enabled=False)


class CacheManager:
    """Manages caching of completion results.

    Example:
        >>> manager = CacheManager(CacheConfig(ttl=300))
        >>> manager.start()
        >>> cached = await manager.lookup(key)
        >>> if cached is None:
        ...     result = await compute()
        ...     await manager.store(key, result)
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        backend: CacheBackend | None = None,
    ) -> None:
        """Initialize cache manager.

        Args:
            config: Cache configuration
            backend: Cache backend (defaults to MemoryCache)
        """
        self._config = config or CacheConfig()
        self._stats = CacheStats()
        self._sweeper: asyncio.Task[None] | None = None

        if not self._config.enabled:
            self._backend: CacheBackend = NullCache()
        else:
            self._backend = backend or MemoryCache(
                max_size=self._config.max_size,
                default_ttl=self._config.ttl,
            )

    def start(self) -> None:
        """Start the periodic expired-entry sweep (requires a running loop)."""
        if not self._config.enabled or self._sweeper is not None:
            return
        if self._config.check_period <= 0:
            return
        self._sweeper = asyncio.get_running_loop().create_task(
            self._sweep_loop(), name="cache-sweeper"
        )

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.check_period)
            await self.sweep()

    async def sweep(self) -> int:
        """Remove expired entries now.

        Returns:
            Number of entries removed
        """
        try:
            removed = await self._backend.cleanup_expired()
        except Exception as e:
            self._stats.failures += 1
            logger.warning("Cache sweep failed", error=str(e))
            return 0

        self._stats.swept += removed
        if removed:
            logger.debug("Expired cache entries swept", removed=removed)
        return removed

    async def lookup(self, key: str) -> Any | None:
        """Look up a cached value.

        Args:
            key: Cache key

        Returns:
            Cached value, or None when absent, expired, disabled or failing
        """
        if not self._config.enabled:
            self._stats.misses += 1
            return None

        try:
            value = await self._backend.get(key)
        except Exception as e:
            self._stats.failures += 1
            self._stats.misses += 1
            logger.warning("Cache lookup failed", cache_key=key, error=str(e))
            return None

        if value is not None:
            self._stats.hits += 1
        else:
            self._stats.misses += 1
        return value

    async def store(self, key: str, value: Any, ttl: float | None = None) -> bool:
        """Store a value.

        Args:
            key: Cache key
            value: Value to cache
            ttl: TTL override in seconds

        Returns:
            True if stored
        """
        if not self._config.enabled:
            return False

        try:
            await self._backend.set(
                key,
                value,
                ttl=ttl if ttl is not None else self._config.ttl,
            )
        except Exception as e:
            self._stats.failures += 1
            logger.warning("Cache store failed", cache_key=key, error=str(e))
            return False

        self._stats.sets += 1
        return True

    async def invalidate(self, key: str) -> bool:
        """Remove a single entry.

        Args:
            key: Cache key

        Returns:
            True if an entry was removed
        """
        return await self._backend.delete(key)

    async def flush(self) -> None:
        """Clear all cached entries."""
        await self._backend.clear()

    @property
    def size(self) -> int:
        """Number of entries currently held."""
        return self._backend.size

    @property
    def stats(self) -> CacheStats:
        """Get cache statistics."""
        return self._stats

    @property
    def config(self) -> CacheConfig:
        """Get cache configuration."""
        return self._config

    @property
    def enabled(self) -> bool:
        """Check if caching is enabled."""
        return self._config.enabled

    async def close(self) -> None:
        """Stop the sweeper, flush entries and close the backend."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper
            self._sweeper = None
        await self.flush()
        await self._backend.close()
