"""Root pytest fixtures for lmstudio-bridge tests."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import pytest

from lmstudio_bridge.cache import CacheConfig, CacheManager
from lmstudio_bridge.client import ResilientClient
from lmstudio_bridge.errors import RemoteError
from lmstudio_bridge.resilience import AdmissionConfig, AdmissionGate, RetryConfig, RetryPolicy
from lmstudio_bridge.telemetry.health import HealthMonitor

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable


def completion_payload(
    content: str | None = "Hello from LM Studio",
    model: str = "local-model",
    finish_reason: str | None = "stop",
    usage: dict[str, int] | None = None,
) -> dict[str, Any]:
    """Build a chat-completion response body."""
    response: dict[str, Any] = {
        "id": "chatcmpl-123",
        "object": "chat.completion",
        "created": 1699012345,
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": finish_reason,
            }
        ],
    }
    if usage:
        response["usage"] = usage
    return response


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class _FakeStreamResponse:
    def __init__(self, lines: list[str]) -> None:
        self._lines = lines

    async def aiter_lines(self) -> AsyncIterator[str]:
        for line in self._lines:
            yield line


class FakeTransport:
    """In-process stand-in for HttpTransport.

    ``failures`` are raised by successive chat calls before the endpoint
    starts answering with ``content``.
    """

    base_url = "http://fake-lmstudio/v1"

    def __init__(
        self,
        content: str | None = "Hello from LM Studio",
        *,
        delay: float = 0.0,
        probe_delay: float = 0.0,
        healthy: bool = True,
    ) -> None:
        self.content = content
        self.delay = delay
        self.probe_delay = probe_delay
        self.healthy = healthy
        self.failures: list[Exception] = []
        self.stream_lines: list[str] = []
        self.payloads: list[dict[str, Any]] = []
        self.chat_calls = 0
        self.model_calls = 0
        self.closed = False

    async def post_chat(self, payload: dict[str, Any]) -> dict[str, Any]:
        self.chat_calls += 1
        self.payloads.append(payload)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failures:
            raise self.failures.pop(0)
        return completion_payload(
            self.content,
            usage={"prompt_tokens": 5, "completion_tokens": 7, "total_tokens": 12},
        )

    async def list_models(self) -> list[str]:
        self.model_calls += 1
        if self.probe_delay:
            await asyncio.sleep(self.probe_delay)
        if not self.healthy:
            raise RemoteError("Connection failed")
        return ["local-model"]

    @asynccontextmanager
    async def stream_chat(self, payload: dict[str, Any]) -> AsyncIterator[_FakeStreamResponse]:
        self.chat_calls += 1
        self.payloads.append(payload)
        if self.failures:
            raise self.failures.pop(0)
        yield _FakeStreamResponse(self.stream_lines)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    """Manually advanced clock."""
    return FakeClock()


@pytest.fixture
def transport() -> FakeTransport:
    """Healthy fake endpoint."""
    return FakeTransport()


@pytest.fixture
def make_client() -> Callable[..., ResilientClient]:
    """Factory for clients wired to a fake transport with fast retries."""

    def factory(
        transport: FakeTransport,
        *,
        max_retries: int = 3,
        base_delay: float = 0.001,
        timeout: float | None = 1.0,
        admission: AdmissionConfig | None = None,
        cache: CacheConfig | None = None,
        clock: Callable[[], float] | None = None,
    ) -> ResilientClient:
        kwargs: dict[str, Any] = {"clock": clock} if clock else {}
        return ResilientClient(
            transport,  # type: ignore[arg-type]
            model="local-model",
            retry=RetryPolicy(
                RetryConfig(max_retries=max_retries, base_delay=base_delay, timeout=timeout)
            ),
            gate=AdmissionGate(admission or AdmissionConfig(), **kwargs),
            cache=CacheManager(cache or CacheConfig()),
            health=HealthMonitor(transport.list_models, **kwargs),
            **kwargs,
        )

    return factory
