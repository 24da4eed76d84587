"""
Cache key generation utilities.

Provides deterministic cache key generation for tool requests.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any


@dataclass
class CacheKey:
    """A cache key with metadata.

    Attributes:
        key: The cache key string
        operation: Operation (tool) name the key was derived from
        arguments_hash: Hash of the normalized arguments
    """

    key: str
    operation: str = ""
    arguments_hash: str = ""

    def __str__(self) -> str:
        """Return the key string."""
        return self.key

    def __hash__(self) -> int:
        """Return hash of the key."""
        return hash(self.key)

    def __eq__(self, other: object) -> bool:
        """Check equality."""
        if isinstance(other, CacheKey):
            return self.key == other.key
        if isinstance(other, str):
            return self.key == other
        return False


class CacheKeyGenerator:
    """Generates deterministic cache keys for tool requests.

    The key is a SHA-256 digest over the operation name and the canonical
    JSON form of its arguments, so logically identical requests collide
    regardless of argument ordering.

    Example:
        >>> generator = CacheKeyGenerator()
        >>> key = generator.generate("summarize", {"content": "...", "max_words": 100})
        >>> len(key.key)
        64
    """

    def __init__(self, excluded_arguments: list[str] | None = None) -> None:
        """Initialize key generator.

        Args:
            excluded_arguments: Argument names left out of the key
        """
        self._excluded = set(excluded_arguments or [])

    def generate(self, operation: str, arguments: dict[str, Any] | None = None) -> CacheKey:
        """Generate a cache key.

        Args:
            operation: Operation (tool) name
            arguments: Normalized arguments

        Returns:
            CacheKey instance
        """
        filtered = {
            k: v for k, v in (arguments or {}).items() if k not in self._excluded
        }
        canonical = self._canonical_json(filtered)

        digest = hashlib.sha256()
        digest.update(operation.encode())
        digest.update(b"\0")
        digest.update(canonical.encode())

        return CacheKey(
            key=digest.hexdigest(),
            operation=operation,
            arguments_hash=self.content_hash(canonical),
        )

    @staticmethod
    def content_hash(content: str) -> str:
        """Hash a string using SHA-256.

        Large inputs (file contents) are folded into arguments through this
        digest instead of being embedded verbatim.

        Args:
            content: String to hash

        Returns:
            Hex digest
        """
        return hashlib.sha256(content.encode()).hexdigest()

    @staticmethod
    def _canonical_json(arguments: dict[str, Any]) -> str:
        return json.dumps(
            arguments,
            sort_keys=True,
            ensure_ascii=True,
            separators=(",", ":"),
            default=str,
        )
