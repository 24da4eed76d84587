"""Resilient client: the single entry point tool handlers call.

Composes the result cache, the admission gate, the health monitor and the
retry policy around the chat-completion endpoint, and owns the request
metrics and the shutdown flag.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from lmstudio_bridge.cache import CacheManager
from lmstudio_bridge.client.response import extract_delta, parse_completion
from lmstudio_bridge.errors import (
    BridgeError,
    RemoteError,
    ShuttingDownError,
    UnavailableError,
)
from lmstudio_bridge.resilience import AdmissionGate, RetryConfig, RetryPolicy
from lmstudio_bridge.telemetry.health import HealthMonitor
from lmstudio_bridge.telemetry.logger import get_logger
from lmstudio_bridge.telemetry.metrics import MetricsSnapshot, RequestMetrics
from lmstudio_bridge.transport import HttpTransport

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from lmstudio_bridge.client.builder import ResilientClientBuilder
    from lmstudio_bridge.client.response import ChatCompletion
    from lmstudio_bridge.config import BridgeConfig
    from lmstudio_bridge.telemetry.health import HealthSnapshot

logger = get_logger("lmstudio_bridge.client")

DEFAULT_TEMPERATURE = 0.3


@dataclass
class ExecuteOptions:
    """Per-call execution options.

    Attributes:
        temperature: Sampling temperature (defaults to 0.3)
        max_tokens: Maximum output tokens
        cache_key: Key identifying logically identical requests
    """

    temperature: float | None = None
    max_tokens: int | None = None
    cache_key: str | None = None


class ResilientClient:
    """Mediates calls to a single chat-completion endpoint.

    One unit of work flows through: cache lookup, admission, health check,
    retried remote call, cache store. Every failure reaches the caller as a
    ``BridgeError`` subclass tagged with its ``ErrorKind``.

    Example:
        >>> client = ResilientClient.from_config(BridgeConfig.from_env())
        >>> await client.start()
        >>> text = await client.execute(
        ...     "Summarize: ...",
        ...     ExecuteOptions(max_tokens=300, cache_key=key),
        ... )
        >>> print(client.metrics().to_dict())
        >>> await client.shutdown()
    """

    def __init__(
        self,
        transport: HttpTransport,
        *,
        model: str,
        retry: RetryPolicy | None = None,
        gate: AdmissionGate | None = None,
        cache: CacheManager | None = None,
        health: HealthMonitor | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the client.

        Use ``ResilientClient.from_config`` or the builder for public
        construction.
        """
        self._transport = transport
        self._model = model
        self._retry = retry or RetryPolicy()
        self._gate = gate or AdmissionGate(clock=clock)
        self._cache = cache or CacheManager()
        self._health = health or HealthMonitor(transport.list_models, clock=clock)
        self._clock = clock

        self._metrics = RequestMetrics()
        self._shutting_down = False
        self._shutdown_done = False
        self._transport_closed = False

    @classmethod
    def from_config(
        cls,
        config: BridgeConfig,
        transport: HttpTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> ResilientClient:
        """Build a client from a validated configuration.

        Args:
            config: Bridge configuration
            transport: Transport override (defaults to an HttpTransport)
            clock: Monotonic time source

        Returns:
            Unstarted ResilientClient
        """
        lm = config.lm_studio
        transport = transport or HttpTransport(
            lm.base_url,
            api_key=lm.api_key,
            timeout=lm.timeout_ms / 1000.0,
        )
        return cls(
            transport,
            model=lm.model,
            retry=RetryPolicy(config.retry_config()),
            gate=AdmissionGate(config.admission_config(), clock=clock),
            cache=CacheManager(config.cache_config()),
            health=HealthMonitor(transport.list_models, config.health_config(), clock=clock),
            clock=clock,
        )

    @classmethod
    def builder(cls) -> ResilientClientBuilder:
        """Get a builder for fluent configuration."""
        from lmstudio_bridge.client.builder import ResilientClientBuilder

        return ResilientClientBuilder()

    async def start(self) -> None:
        """Run the first health probe and start background tasks."""
        await self._health.start()
        self._cache.start()
        logger.info(
            "Resilient client started",
            model=self._model,
            base_url=self._transport.base_url,
            healthy=self._health.healthy,
        )

    @property
    def model(self) -> str:
        return self._model

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    @property
    def active_requests(self) -> int:
        return self._gate.active_count

    @property
    def gate(self) -> AdmissionGate:
        return self._gate

    @property
    def cache(self) -> CacheManager:
        return self._cache

    @property
    def monitor(self) -> HealthMonitor:
        return self._health

    @property
    def retry_config(self) -> RetryConfig:
        return self._retry.config

    def _build_payload(self, prompt: str, options: ExecuteOptions, stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": (
                options.temperature if options.temperature is not None else DEFAULT_TEMPERATURE
            ),
            "stream": stream,
        }
        if options.max_tokens is not None:
            payload["max_tokens"] = options.max_tokens
        return payload

    async def _complete(self, payload: dict[str, Any]) -> ChatCompletion:
        data = await self._transport.post_chat(payload)
        return parse_completion(data)

    def _on_retry(self, attempt: int, error: Exception, delay: float) -> None:
        self._metrics.record_retry()
        logger.warning(
            f"LM Studio request failed, attempt {attempt}/{self._retry.config.max_retries}",
            error=str(error),
            retries_left=self._retry.config.max_retries - attempt,
            delay_ms=round(delay * 1000),
        )

    def _admit(self) -> str:
        """Admit a call, counting and raising on rejection."""
        if self._shutting_down:
            raise ShuttingDownError()

        admission = self._gate.try_admit()
        if not admission:
            self._metrics.record_request()
            self._metrics.record_rejection()
            logger.warning("Request rejected", reason=admission.reason.value if admission.reason else None)
            raise self._gate.rejection_error(admission.reason)
        return admission.request_id  # type: ignore[return-value]

    async def _require_healthy(self) -> None:
        if not await self._health.ensure_healthy():
            raise UnavailableError(
                "LM Studio is not responding. Please ensure it is running.",
                last_checked_at=self._health.last_checked_at,
            )

    async def execute(self, prompt: str, options: ExecuteOptions | None = None) -> str:
        """Run one unit of work.

        Args:
            prompt: User prompt
            options: Execution options

        Returns:
            Text of the first choice (empty string when the model sent none)

        Raises:
            ShuttingDownError: Shutdown has begun
            OverloadedError: Admission rejected
            UnavailableError: Endpoint not healthy
            RequestTimeoutError: Last attempt timed out
            RemoteError: Last attempt failed otherwise
        """
        if self._shutting_down:
            raise ShuttingDownError()

        options = options or ExecuteOptions()
        cache_key = options.cache_key if self._cache.enabled else None

        if cache_key:
            cached = await self._cache.lookup(cache_key)
            if cached is not None:
                self._metrics.record_request()
                self._metrics.record_cache_hit()
                logger.debug("Cache hit", cache_key=cache_key)
                return cached

        request_id = self._admit()
        try:
            try:
                await self._require_healthy()
            finally:
                self._metrics.record_request()

            payload = self._build_payload(prompt, options, stream=False)
            start = self._clock()
            result = await self._retry.execute(
                lambda: self._complete(payload), on_retry=self._on_retry
            )
            duration_ms = (self._clock() - start) * 1000

            if not result.success:
                self._metrics.record_error()
                error = result.error
                logger.error(
                    "LM Studio completion failed",
                    error=str(error),
                    attempts=result.attempts,
                    duration_ms=round(duration_ms, 2),
                    prompt_length=len(prompt),
                )
                if isinstance(error, BridgeError):
                    raise error
                raise RemoteError(str(error) or type(error).__name__, cause=error) from error

            completion: ChatCompletion = result.value
            text = completion.text
            self._metrics.record_latency(duration_ms / 1000, completion.total_tokens)
            logger.info(
                "LM Studio completion successful",
                duration_ms=round(duration_ms, 2),
                prompt_length=len(prompt),
                response_length=len(text),
                tokens_used=completion.total_tokens,
                attempts=result.attempts,
            )

            if cache_key and not self._shutting_down:
                await self._cache.store(cache_key, text)

            return text
        finally:
            self._gate.release(request_id)

    async def stream(
        self, prompt: str, options: ExecuteOptions | None = None
    ) -> AsyncIterator[str]:
        """Stream the completion as text chunks.

        The sequence is lazy, finite and not restartable. Streams are not
        retried or cached. Admission is held until the generator finishes or
        is closed, so a consumer that may stop early should close it with
        ``aclose()`` or iterate under ``contextlib.aclosing``:

            async with aclosing(client.stream(prompt)) as chunks:
                async for chunk in chunks:
                    ...

        Args:
            prompt: User prompt
            options: Execution options (``cache_key`` is ignored)

        Yields:
            Content deltas in arrival order
        """
        options = options or ExecuteOptions()
        request_id = self._admit()
        try:
            try:
                await self._require_healthy()
            finally:
                self._metrics.record_request()

            payload = self._build_payload(prompt, options, stream=True)
            start = self._clock()
            try:
                async with self._transport.stream_chat(payload) as response:
                    async for line in response.aiter_lines():
                        line = line.strip()
                        if not line.startswith("data:"):
                            continue
                        data = line[len("data:"):].strip()
                        if data == "[DONE]":
                            break
                        try:
                            chunk = json.loads(data)
                        except ValueError as e:
                            raise RemoteError("Malformed stream chunk", cause=e) from e
                        delta = extract_delta(chunk) if isinstance(chunk, dict) else ""
                        if delta:
                            yield delta
            except BridgeError as e:
                self._metrics.record_error()
                logger.error("LM Studio streaming failed", error=str(e))
                raise
            except Exception as e:
                self._metrics.record_error()
                logger.error("LM Studio streaming failed", error=str(e))
                raise RemoteError(str(e) or type(e).__name__, cause=e) from e

            logger.info(
                "LM Studio streaming completion successful",
                duration_ms=round((self._clock() - start) * 1000, 2),
                prompt_length=len(prompt),
            )
        finally:
            self._gate.release(request_id)

    def health(self) -> HealthSnapshot:
        """Read-only health snapshot."""
        return self._health.snapshot()

    def metrics(self) -> MetricsSnapshot:
        """Read-only metrics snapshot."""
        m = self._metrics
        return MetricsSnapshot(
            total_requests=m.total_requests,
            total_errors=m.total_errors,
            active_requests=self._gate.active_count,
            cache_size=self._cache.size,
            requests_in_window=self._gate.requests_in_window,
            rejected_requests=m.rejected_requests,
            cache_hits=m.cache_hits,
            retries=m.retries,
            healthy=self._health.healthy,
            last_health_check=self._health.last_checked_at,
            avg_latency_ms=m.avg_latency_ms,
            p50_latency_ms=m.p50_latency_ms,
        )

    async def shutdown(self) -> None:
        """Stop admitting work and release background resources.

        Idempotent. Does not wait for admitted calls; the HTTP client is
        closed here only when nothing is in flight, otherwise by ``close``.
        """
        self._shutting_down = True
        if self._shutdown_done:
            return
        self._shutdown_done = True

        logger.info("Shutting down LM Studio client", active_requests=self._gate.active_count)
        self._gate.close()
        await self._cache.close()
        await self._health.stop()
        if self._gate.active_count == 0:
            await self._close_transport()

    async def _close_transport(self) -> None:
        if not self._transport_closed:
            self._transport_closed = True
            await self._transport.close()

    async def close(self) -> None:
        """Shut down and close the HTTP client unconditionally."""
        await self.shutdown()
        await self._close_transport()

    async def __aenter__(self) -> ResilientClient:
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
