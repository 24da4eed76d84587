"""In-flight request tracking and shutdown drain."""

from __future__ import annotations

import asyncio
import contextlib
import uuid
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from lmstudio_bridge.telemetry.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = get_logger("lmstudio_bridge.server")

DEFAULT_POLL_INTERVAL = 1.0


class RequestTracker:
    """Tracks requests accepted at the tool boundary.

    Example:
        >>> tracker = RequestTracker()
        >>> async with tracker.track() as request_id:
        ...     await handle(request_id)
        >>> drained = await tracker.drain(grace=5.0)
    """

    def __init__(self) -> None:
        self._active: set[str] = set()
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def active(self) -> int:
        """Number of requests currently tracked."""
        return len(self._active)

    @asynccontextmanager
    async def track(self) -> AsyncIterator[str]:
        """Track a request for the duration of the block.

        Yields:
            The request id
        """
        request_id = uuid.uuid4().hex
        self._active.add(request_id)
        self._idle.clear()
        try:
            yield request_id
        finally:
            self._active.discard(request_id)
            if not self._active:
                self._idle.set()

    async def wait_idle(self) -> None:
        """Wait until no request is tracked."""
        await self._idle.wait()

    async def drain(self, grace: float, poll_interval: float = DEFAULT_POLL_INTERVAL) -> bool:
        """Wait for tracked requests to finish, bounded by ``grace``.

        Wakes as soon as the last request finishes and reports progress every
        ``poll_interval`` seconds otherwise.

        Args:
            grace: Upper bound on the wait in seconds
            poll_interval: Interval between progress reports

        Returns:
            True if every request finished, False if the grace period ran out
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + grace

        while self._active:
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning(
                    "Forcefully shutting down after timeout", active_requests=len(self._active)
                )
                return False
            logger.info(f"Waiting for {len(self._active)} active requests")
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._idle.wait(), timeout=min(poll_interval, remaining))

        return True
