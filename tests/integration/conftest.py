"""
Integration test helpers.

Shared fixtures that mock the LM Studio HTTP API with pytest-httpx.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from lmstudio_bridge.config import BridgeConfig

from tests.conftest import completion_payload

if TYPE_CHECKING:
    import pytest_httpx

BASE_URL = "http://studio.test:1234"
CHAT_URL = f"{BASE_URL}/v1/chat/completions"
MODELS_URL = f"{BASE_URL}/v1/models"


def sse_body(deltas: list[str]) -> bytes:
    """Build a server-sent-event body from content deltas."""
    events = [
        json.dumps({"choices": [{"index": 0, "delta": {"content": d}, "finish_reason": None}]})
        for d in deltas
    ]
    events.append(json.dumps({"choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}]}))
    lines = [f"data: {e}\n\n" for e in events] + ["data: [DONE]\n\n"]
    return "".join(lines).encode()


def mock_models(httpx_mock: pytest_httpx.HTTPXMock, healthy: bool = True) -> None:
    """Register the model listing used by health probes."""
    if healthy:
        httpx_mock.add_response(
            url=MODELS_URL,
            method="GET",
            json={"object": "list", "data": [{"id": "local-model", "object": "model"}]},
            is_reusable=True,
        )
    else:
        httpx_mock.add_response(
            url=MODELS_URL, method="GET", status_code=503, is_reusable=True
        )


def mock_completion(
    httpx_mock: pytest_httpx.HTTPXMock,
    content: str = "Hello from LM Studio",
    status_code: int = 200,
) -> None:
    """Register one chat-completion response."""
    if status_code >= 400:
        httpx_mock.add_response(
            url=CHAT_URL,
            method="POST",
            status_code=status_code,
            json={"error": {"message": f"Server error {status_code}"}},
        )
    else:
        httpx_mock.add_response(
            url=CHAT_URL,
            method="POST",
            json=completion_payload(
                content,
                usage={"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
            ),
        )


@pytest.fixture
def bridge_config() -> BridgeConfig:
    """Configuration pointing at the mocked server with fast retries."""
    return BridgeConfig.from_env(
        {
            "LM_STUDIO_URL": BASE_URL,
            "LM_STUDIO_RETRY_DELAY": "1",
            "LM_STUDIO_TIMEOUT": "2000",
            "RATE_LIMIT_MAX_CONCURRENT": "2",
        }
    )
