"""
Builder for fluent client construction.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from lmstudio_bridge.cache import CacheConfig, CacheManager
from lmstudio_bridge.resilience import AdmissionConfig, AdmissionGate, RetryConfig, RetryPolicy
from lmstudio_bridge.telemetry.health import HealthConfig, HealthMonitor
from lmstudio_bridge.transport import HttpTransport

if TYPE_CHECKING:
    from collections.abc import Callable

    from lmstudio_bridge.client.core import ResilientClient


class ResilientClientBuilder:
    """Builder for creating ResilientClient instances with custom configuration.

    Example:
        >>> client = await (
        ...     ResilientClientBuilder()
        ...     .base_url("http://localhost:1234")
        ...     .model("qwen2.5-7b-instruct")
        ...     .max_concurrent(2)
        ...     .retry(max_retries=2, base_delay=0.5)
        ...     .build()
        ... )
    """

    def __init__(self) -> None:
        """Initialize the builder."""
        self._base_url = "http://localhost:1234"
        self._api_key: str | None = None
        self._model = "local-model"
        self._timeout: float = 30.0
        self._retry = RetryConfig()
        self._admission = AdmissionConfig()
        self._cache = CacheConfig()
        self._health = HealthConfig()
        self._transport: HttpTransport | None = None
        self._clock: Callable[[], float] = time.monotonic

    def base_url(self, url: str) -> ResilientClientBuilder:
        """Set the server URL (``/v1`` is appended).

        Args:
            url: Server URL

        Returns:
            Self for chaining
        """
        self._base_url = url
        return self

    def api_key(self, key: str) -> ResilientClientBuilder:
        """Set explicit API key.

        Args:
            key: API key

        Returns:
            Self for chaining
        """
        self._api_key = key
        return self

    def model(self, model_id: str) -> ResilientClientBuilder:
        """Set the model identifier sent with every request.

        Args:
            model_id: Model identifier

        Returns:
            Self for chaining
        """
        self._model = model_id
        return self

    def timeout(self, seconds: float) -> ResilientClientBuilder:
        """Set the per-attempt timeout.

        Args:
            seconds: Timeout in seconds

        Returns:
            Self for chaining
        """
        self._timeout = seconds
        return self

    def retry(self, max_retries: int = 3, base_delay: float = 1.0) -> ResilientClientBuilder:
        """Configure retries.

        Args:
            max_retries: Retries after the first attempt
            base_delay: Backoff base in seconds

        Returns:
            Self for chaining
        """
        self._retry = RetryConfig(max_retries=max_retries, base_delay=base_delay)
        return self

    def max_concurrent(self, n: int) -> ResilientClientBuilder:
        """Set maximum concurrent requests."""
        self._admission = AdmissionConfig(
            enabled=self._admission.enabled,
            max_concurrent=n,
            max_per_minute=self._admission.max_per_minute,
        )
        return self

    def max_per_minute(self, n: int) -> ResilientClientBuilder:
        """Set maximum admissions per rolling minute."""
        self._admission = AdmissionConfig(
            enabled=self._admission.enabled,
            max_concurrent=self._admission.max_concurrent,
            max_per_minute=n,
        )
        return self

    def unlimited(self) -> ResilientClientBuilder:
        """Disable admission limits."""
        self._admission = AdmissionConfig.unlimited()
        return self

    def cache(self, enabled: bool = True, ttl: float = 300.0) -> ResilientClientBuilder:
        """Configure the result cache.

        Args:
            enabled: Whether results are cached
            ttl: Entry lifetime in seconds

        Returns:
            Self for chaining
        """
        self._cache = CacheConfig(enabled=enabled, ttl=ttl, check_period=self._cache.check_period)
        return self

    def health_interval(self, seconds: float) -> ResilientClientBuilder:
        """Set the interval between scheduled health probes."""
        self._health = HealthConfig(
            interval=seconds,
            probe_timeout=self._health.probe_timeout,
            stale_after=self._health.stale_after,
        )
        return self

    def transport(self, transport: HttpTransport) -> ResilientClientBuilder:
        """Use a pre-built transport instead of creating one."""
        self._transport = transport
        return self

    def clock(self, clock: Callable[[], float]) -> ResilientClientBuilder:
        """Set the monotonic time source."""
        self._clock = clock
        return self

    async def build(self, start: bool = True) -> ResilientClient:
        """Build the ResilientClient instance.

        Args:
            start: Run the first health probe and start background tasks

        Returns:
            Configured ResilientClient

        Raises:
            ValueError: If the model is empty
        """
        if not self._model:
            raise ValueError("Model must be set before building")

        from lmstudio_bridge.client.core import ResilientClient

        transport = self._transport or HttpTransport(
            self._base_url,
            api_key=self._api_key,
            timeout=self._timeout,
        )
        retry = RetryConfig(
            max_retries=self._retry.max_retries,
            base_delay=self._retry.base_delay,
            max_delay_factor=self._retry.max_delay_factor,
            timeout=self._timeout,
        )
        client = ResilientClient(
            transport,
            model=self._model,
            retry=RetryPolicy(retry),
            gate=AdmissionGate(self._admission, clock=self._clock),
            cache=CacheManager(self._cache),
            health=HealthMonitor(transport.list_models, self._health, clock=self._clock),
            clock=self._clock,
        )
        if start:
            await client.start()
        return client
