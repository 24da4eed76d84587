"""
Retry policy with a per-attempt deadline and linearly growing delay.

Every failure raised by the wrapped operation is retried alike, up to the
configured bound; the last failure is surfaced unmodified.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from lmstudio_bridge.errors import RequestTimeoutError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry policy.

    Attributes:
        max_retries: Additional attempts after the first (0 = no retries)
        base_delay: Delay unit in seconds
        max_delay_factor: Cap on the delay, as a multiple of ``base_delay``
        timeout: Deadline of each attempt in seconds (None = no deadline)
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay_factor: float = 3.0
    timeout: float | None = 30.0

    @classmethod
    def from_env(cls) -> RetryConfig:
        """Create configuration from environment variables."""
        return cls(
            max_retries=int(os.getenv("LM_STUDIO_MAX_RETRIES", "3")),
            base_delay=int(os.getenv("LM_STUDIO_RETRY_DELAY", "1000")) / 1000.0,
            timeout=int(os.getenv("LM_STUDIO_TIMEOUT", "30000")) / 1000.0,
        )

    @classmethod
    def no_retry(cls) -> RetryConfig:
        """Create a config that disables retries."""
        return cls(max_retries=0)


@dataclass
class RetryResult:
    """Result of a retry operation.

    Attributes:
        success: Whether the operation succeeded
        value: The result value (if success)
        error: The last error (if failed)
        attempts: Number of attempts made
        total_delay_ms: Total delay from retries in milliseconds
    """

    success: bool
    value: Any = None
    error: Exception | None = None
    attempts: int = 0
    total_delay_ms: float = 0.0


class RetryPolicy:
    """Bounded retry with linear, capped backoff.

    The delay before retry ``n`` (1-based) is
    ``min(base_delay * n, base_delay * max_delay_factor)``. Nothing is
    waited before the first attempt.

    Example:
        >>> policy = RetryPolicy(RetryConfig(max_retries=3, base_delay=1.0, timeout=30))
        >>> result = await policy.execute(call_endpoint)
        >>> if not result.success:
        ...     raise result.error
    """

    def __init__(self, config: RetryConfig | None = None) -> None:
        """Initialize retry policy.

        Args:
            config: Retry configuration
        """
        self._config = config or RetryConfig()

    @property
    def config(self) -> RetryConfig:
        return self._config

    def calculate_delay(self, attempt: int) -> float:
        """Calculate the delay before a retry.

        Args:
            attempt: Retry number (1 = first retry)

        Returns:
            Delay in seconds
        """
        base = self._config.base_delay
        return min(base * attempt, base * self._config.max_delay_factor)

    def should_retry(self, error: Exception, attempt: int) -> bool:  # noqa: ARG002
        """Check if another attempt is allowed.

        Error kinds are not distinguished; only the bound matters.

        Args:
            error: The exception that occurred
            attempt: Attempts made so far

        Returns:
            True if should retry
        """
        return attempt <= self._config.max_retries

    async def _attempt(self, operation: Callable[[], Awaitable[T]]) -> T:
        timeout = self._config.timeout
        if timeout is None:
            return await operation()
        try:
            return await asyncio.wait_for(operation(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(
                f"Request timed out after {int(timeout * 1000)}ms",
                timeout=timeout,
                cause=e,
            ) from e

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        on_retry: Callable[[int, Exception, float], None] | None = None,
    ) -> RetryResult:
        """Execute an operation with retry.

        Args:
            operation: Async operation to execute (called once per attempt)
            on_retry: Optional callback called before each retry with
                (attempt, error, delay)

        Returns:
            RetryResult with success status and value/error
        """
        total_delay = 0.0
        attempt = 0

        while True:
            attempt += 1
            try:
                value = await self._attempt(operation)
                return RetryResult(
                    success=True,
                    value=value,
                    attempts=attempt,
                    total_delay_ms=total_delay * 1000,
                )
            except Exception as e:
                if not self.should_retry(e, attempt):
                    return RetryResult(
                        success=False,
                        error=e,
                        attempts=attempt,
                        total_delay_ms=total_delay * 1000,
                    )

                delay = self.calculate_delay(attempt)
                total_delay += delay

                if on_retry:
                    on_retry(attempt, e, delay)

                await asyncio.sleep(delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    on_retry: Callable[[int, Exception, float], None] | None = None,
) -> T:
    """Execute an operation with retry, raising on failure.

    Args:
        operation: Async operation to execute
        config: Retry configuration
        on_retry: Optional callback called before each retry

    Returns:
        Operation result

    Raises:
        The last exception if all retries fail
    """
    result = await RetryPolicy(config).execute(operation, on_retry)
    if result.success:
        return result.value
    raise result.error  # type: ignore[misc]
