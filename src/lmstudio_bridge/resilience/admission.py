"""
Admission control: concurrency bound plus a rolling per-minute limit.

Excess work is rejected immediately rather than queued.
"""

from __future__ import annotations

import os
import time
import uuid
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from lmstudio_bridge.errors import OverloadedError, ShuttingDownError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable


class RejectReason(str, Enum):
    """Why an admission was refused."""

    CONCURRENCY = "concurrency"
    RATE = "rate"
    SHUTTING_DOWN = "shutting_down"

    @property
    def message(self) -> str:
        return _REJECT_MESSAGES[self]


_REJECT_MESSAGES: dict[RejectReason, str] = {
    RejectReason.CONCURRENCY: "Too many concurrent requests. Please try again later.",
    RejectReason.RATE: "Rate limit exceeded. Please try again later.",
    RejectReason.SHUTTING_DOWN: "Server is shutting down",
}


@dataclass
class AdmissionConfig:
    """Configuration for admission control.

    Attributes:
        enabled: Whether the limits are enforced
        max_concurrent: Maximum concurrently admitted calls
        max_per_minute: Maximum admissions within the trailing window
        window_seconds: Length of the rolling window
    """

    enabled: bool = True
    max_concurrent: int = 10
    max_per_minute: int = 60
    window_seconds: float = 60.0

    @classmethod
    def from_env(cls) -> AdmissionConfig:
        """Create configuration from environment variables."""
        return cls(
            enabled=os.getenv("RATE_LIMIT_ENABLED", "true").lower() != "false",
            max_concurrent=int(os.getenv("RATE_LIMIT_MAX_CONCURRENT", "10")),
            max_per_minute=int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "60")),
        )

    @classmethod
    def unlimited(cls) -> AdmissionConfig:
        """Create config with no limits."""
        return cls(enabled=False)


@dataclass(frozen=True)
class Admission:
    """Outcome of an admission attempt.

    Attributes:
        admitted: Whether the call may proceed
        request_id: Identifier to release (only when admitted)
        reason: Rejection reason (only when rejected)
    """

    admitted: bool
    request_id: str | None = None
    reason: RejectReason | None = None

    def __bool__(self) -> bool:
        return self.admitted


class AdmissionGate:
    """Bounds in-flight calls and admissions per rolling minute.

    ``try_admit`` never suspends, so on a single event loop two admissions
    cannot jointly exceed the bounds. Every successful admission must be
    released exactly once.

    Example:
        >>> gate = AdmissionGate(AdmissionConfig(max_concurrent=2, max_per_minute=60))
        >>> admission = gate.try_admit()
        >>> if admission:
        ...     try:
        ...         await do_work()
        ...     finally:
        ...         gate.release(admission.request_id)

        >>> # Or as a context manager
        >>> async with gate.admit():
        ...     await do_work()
    """

    def __init__(
        self,
        config: AdmissionConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the gate.

        Args:
            config: Admission configuration
            clock: Monotonic time source
        """
        self._config = config or AdmissionConfig()
        self._clock = clock

        self._active: set[str] = set()
        self._timestamps: deque[float] = deque()
        self._closed = False

        # Statistics
        self._peak_active = 0
        self._total_admitted = 0
        self._total_rejected = 0

    @property
    def config(self) -> AdmissionConfig:
        return self._config

    @property
    def active_count(self) -> int:
        """Number of admitted calls not yet released."""
        return len(self._active)

    @property
    def is_limited(self) -> bool:
        """Check if limits are enforced."""
        return self._config.enabled

    @property
    def closed(self) -> bool:
        return self._closed

    def _prune(self, now: float) -> None:
        cutoff = now - self._config.window_seconds
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    @property
    def requests_in_window(self) -> int:
        """Admissions recorded within the trailing window."""
        self._prune(self._clock())
        return len(self._timestamps)

    def try_admit(self) -> Admission:
        """Admit a call if both limits allow it.

        Returns:
            Admission with a request id, or a rejection reason
        """
        if self._closed:
            self._total_rejected += 1
            return Admission(admitted=False, reason=RejectReason.SHUTTING_DOWN)

        now = self._clock()
        self._prune(now)

        if self._config.enabled:
            if len(self._timestamps) >= self._config.max_per_minute:
                self._total_rejected += 1
                return Admission(admitted=False, reason=RejectReason.RATE)
            if len(self._active) >= self._config.max_concurrent:
                self._total_rejected += 1
                return Admission(admitted=False, reason=RejectReason.CONCURRENCY)

        request_id = uuid.uuid4().hex
        self._active.add(request_id)
        self._timestamps.append(now)
        self._total_admitted += 1
        self._peak_active = max(self._peak_active, len(self._active))
        return Admission(admitted=True, request_id=request_id)

    def release(self, request_id: str | None) -> bool:
        """Release an admission.

        Args:
            request_id: Identifier returned by ``try_admit``

        Returns:
            True if the id was active
        """
        if request_id is None or request_id not in self._active:
            return False
        self._active.discard(request_id)
        return True

    @asynccontextmanager
    async def admit(self) -> AsyncIterator[str]:
        """Admit for the duration of the block.

        Yields:
            The request id

        Raises:
            OverloadedError: If a limit is currently exceeded
            ShuttingDownError: If the gate is closed
        """
        admission = self.try_admit()
        if not admission:
            raise self.rejection_error(admission.reason)
        try:
            yield admission.request_id  # type: ignore[misc]
        finally:
            self.release(admission.request_id)

    @staticmethod
    def rejection_error(reason: RejectReason | None) -> OverloadedError | ShuttingDownError:
        """Build the error matching a rejection reason."""
        if reason == RejectReason.SHUTTING_DOWN:
            return ShuttingDownError()
        reason = reason or RejectReason.CONCURRENCY
        return OverloadedError(reason.message, reason=reason.value)

    def close(self) -> None:
        """Refuse all further admissions; releases keep working."""
        self._closed = True

    def get_stats(self) -> dict[str, int]:
        """Get admission statistics."""
        return {
            "active": len(self._active),
            "peak_active": self._peak_active,
            "requests_in_window": self.requests_in_window,
            "total_admitted": self._total_admitted,
            "total_rejected": self._total_rejected,
            "max_concurrent": self._config.max_concurrent,
            "max_per_minute": self._config.max_per_minute,
        }

    def __repr__(self) -> str:
        if not self._config.enabled:
            return f"AdmissionGate(unlimited, active={len(self._active)})"
        return (
            f"AdmissionGate("
            f"active={len(self._active)}/{self._config.max_concurrent}, "
            f"window={len(self._timestamps)}/{self._config.max_per_minute})"
        )
