"""
Response caching module for lmstudio-bridge.

Provides TTL caching of completion results keyed by content hashes.
"""

from lmstudio_bridge.cache.backends import (
    CacheBackend,
    CacheEntry,
    MemoryCache,
    NullCache,
)
from lmstudio_bridge.cache.key import CacheKey, CacheKeyGenerator
from lmstudio_bridge.cache.manager import CacheConfig, CacheManager, CacheStats

__all__ = [
    "CacheBackend",
    "CacheConfig",
    "CacheEntry",
    "CacheKey",
    "CacheKeyGenerator",
    "CacheManager",
    "CacheStats",
    "MemoryCache",
    "NullCache",
]
