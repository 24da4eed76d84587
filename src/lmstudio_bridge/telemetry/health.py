"""
Endpoint health monitoring for lmstudio-bridge.

The monitor probes the remote endpoint on a fixed interval, and on demand,
and keeps a single health state that the execution path reads before
dispatching work.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from lmstudio_bridge.telemetry.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = get_logger("lmstudio_bridge.health")


class HealthStatus(str, Enum):
    """Health status levels."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class HealthCheckResult:
    """Result of a single probe.

    Attributes:
        status: Health status
        message: Status message
        latency_ms: Probe latency in milliseconds
        timestamp: Probe completion time (monitor clock)
        details: Additional details
    """

    status: HealthStatus
    message: str = ""
    latency_ms: float = 0.0
    timestamp: float = 0.0
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "message": self.message,
            "latency_ms": self.latency_ms,
            "timestamp": self.timestamp,
            "details": self.details,
        }


@dataclass(frozen=True)
class HealthSnapshot:
    """Read-only view of the health state.

    Attributes:
        healthy: True only when the last probe succeeded
        status: Current status
        last_checked_at: Time of the last probe result (None before the first)
    """

    healthy: bool
    status: HealthStatus
    last_checked_at: float | None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "healthy": self.healthy,
            "status": self.status.value,
            "last_checked_at": self.last_checked_at,
        }


@dataclass
class HealthConfig:
    """Health monitor configuration.

    Attributes:
        interval: Seconds between scheduled probes
        probe_timeout: Deadline of a single probe in seconds
        stale_after: Age in seconds after which a non-healthy reading is
            re-probed from the execution path
    """

    interval: float = 60.0
    probe_timeout: float = 5.0
    stale_after: float = 10.0


class HealthMonitor:
    """Tracks reachability of the remote endpoint.

    States move from UNKNOWN to HEALTHY or UNHEALTHY on the first probe,
    which runs as soon as the monitor starts. Only probe results write the
    state.

    Example:
        >>> monitor = HealthMonitor(transport.list_models, HealthConfig(interval=60))
        >>> await monitor.start()
        >>> if await monitor.ensure_healthy():
        ...     await dispatch()
    """

    def __init__(
        self,
        probe: Callable[[], Awaitable[Any]],
        config: HealthConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the monitor.

        Args:
            probe: Async callable that raises when the endpoint is unreachable
            config: Monitor configuration
            clock: Monotonic time source
        """
        self._probe_fn = probe
        self._config = config or HealthConfig()
        self._clock = clock

        self._status = HealthStatus.UNKNOWN
        self._last_checked_at: float | None = None
        self._last_result: HealthCheckResult | None = None
        self._probe_count = 0

        self._loop_task: asyncio.Task[None] | None = None
        self._inflight: asyncio.Task[HealthCheckResult] | None = None

    @property
    def status(self) -> HealthStatus:
        """Current health status."""
        return self._status

    @property
    def healthy(self) -> bool:
        """True only in the HEALTHY state."""
        return self._status == HealthStatus.HEALTHY

    @property
    def last_checked_at(self) -> float | None:
        """Time of the last probe result."""
        return self._last_checked_at

    @property
    def last_result(self) -> HealthCheckResult | None:
        """Most recent probe result."""
        return self._last_result

    @property
    def probe_count(self) -> int:
        """Number of completed probes."""
        return self._probe_count

    @property
    def running(self) -> bool:
        """Whether the scheduled probe loop is active."""
        return self._loop_task is not None and not self._loop_task.done()

    def snapshot(self) -> HealthSnapshot:
        """Get a read-only snapshot of the state."""
        return HealthSnapshot(
            healthy=self.healthy,
            status=self._status,
            last_checked_at=self._last_checked_at,
        )

    def is_stale(self) -> bool:
        """Whether the current reading is older than ``stale_after``."""
        if self._last_checked_at is None:
            return True
        return self._clock() - self._last_checked_at > self._config.stale_after

    async def start(self, wait_first: bool = True) -> None:
        """Run the first probe and schedule the periodic loop.

        Args:
            wait_first: Await the initial probe before returning
        """
        if self.running:
            return

        if wait_first:
            await self.probe()
            self._loop_task = asyncio.get_running_loop().create_task(
                self._run(initial_delay=True), name="health-monitor"
            )
        else:
            self._loop_task = asyncio.get_running_loop().create_task(
                self._run(initial_delay=False), name="health-monitor"
            )

    async def _run(self, initial_delay: bool) -> None:
        if not initial_delay:
            await self.probe()
        while True:
            await asyncio.sleep(self._config.interval)
            await self.probe()

    async def stop(self) -> None:
        """Cancel the periodic loop and any probe in flight.

        Callers waiting on the cancelled probe see an UNHEALTHY result.
        """
        for task in (self._loop_task, self._inflight):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._loop_task = None
        self._inflight = None

    async def probe(self) -> HealthCheckResult:
        """Probe the endpoint now.

        Concurrent callers share the probe already in flight. If that probe
        is cancelled by ``stop()`` while callers wait on it, they get an
        UNHEALTHY result instead of the cancellation.

        Returns:
            The probe result
        """
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.get_running_loop().create_task(self._probe_once())
        task = self._inflight
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                # The caller itself was cancelled.
                raise
        result = HealthCheckResult(
            status=HealthStatus.UNHEALTHY,
            message="Health probe cancelled",
            timestamp=self._clock(),
        )
        self._record(result)
        return result

    async def _probe_once(self) -> HealthCheckResult:
        start = self._clock()
        try:
            await asyncio.wait_for(self._probe_fn(), timeout=self._config.probe_timeout)
        except asyncio.TimeoutError:
            result = HealthCheckResult(
                status=HealthStatus.UNHEALTHY,
                message=f"Health probe timed out after {self._config.probe_timeout}s",
            )
        except Exception as e:
            result = HealthCheckResult(
                status=HealthStatus.UNHEALTHY,
                message=str(e) or type(e).__name__,
            )
        else:
            result = HealthCheckResult(status=HealthStatus.HEALTHY, message="ok")

        now = self._clock()
        result.latency_ms = (now - start) * 1000
        result.timestamp = now
        self._record(result)
        return result

    def _record(self, result: HealthCheckResult) -> None:
        previous = self._status
        self._status = result.status
        self._last_checked_at = result.timestamp
        self._last_result = result
        self._probe_count += 1

        if result.healthy:
            logger.debug("Health check successful", latency_ms=round(result.latency_ms, 2))
        else:
            logger.error("Health check failed", error=result.message)

        if previous != result.status:
            logger.info(
                "Endpoint health changed",
                previous=previous.value,
                current=result.status.value,
            )

    async def ensure_healthy(self) -> bool:
        """Decide whether work may be dispatched now.

        UNKNOWN counts as not healthy. A non-healthy reading older than
        ``stale_after`` triggers one synchronous re-probe first.

        Returns:
            True if the endpoint is healthy
        """
        if self.healthy:
            return True
        if self.is_stale():
            logger.debug("Stale unhealthy reading, re-probing", status=self._status.value)
            await self.probe()
        return self.healthy
