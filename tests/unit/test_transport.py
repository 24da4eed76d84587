"""Tests for the HTTP transport."""

import json

import httpx
import pytest

from lmstudio_bridge.errors import RemoteError, RequestTimeoutError
from lmstudio_bridge.transport import HttpTransport, api_base_url, get_auth_header, resolve_api_key

BASE = "http://localhost:1234"
CHAT_URL = f"{BASE}/v1/chat/completions"
MODELS_URL = f"{BASE}/v1/models"


class TestHelpers:
    """Tests for URL and auth helpers."""

    def test_api_base_url(self) -> None:
        """Test the /v1 prefix."""
        assert api_base_url("http://localhost:1234") == "http://localhost:1234/v1"
        assert api_base_url("http://localhost:1234/") == "http://localhost:1234/v1"
        assert api_base_url("http://localhost:1234/v1") == "http://localhost:1234/v1"

    def test_resolve_api_key_explicit_wins(self, monkeypatch) -> None:
        """Test explicit key precedence."""
        monkeypatch.setenv("LM_STUDIO_API_KEY", "from-env")
        assert resolve_api_key("explicit") == "explicit"
        assert resolve_api_key() == "from-env"

    def test_auth_header(self) -> None:
        """Test bearer header."""
        assert get_auth_header("abc") == {"Authorization": "Bearer abc"}


class TestHttpTransport:
    """Tests for HttpTransport requests."""

    @pytest.mark.asyncio
    async def test_post_chat(self, httpx_mock) -> None:
        """Test a successful completion POST."""
        httpx_mock.add_response(url=CHAT_URL, method="POST", json={"ok": True})

        async with HttpTransport(BASE, api_key="lm-studio") as transport:
            data = await transport.post_chat({"model": "local-model", "messages": []})

        assert data == {"ok": True}
        request = httpx_mock.get_request()
        assert request.headers["Authorization"] == "Bearer lm-studio"
        assert json.loads(request.content)["model"] == "local-model"

    @pytest.mark.asyncio
    async def test_http_error_maps_to_remote_error(self, httpx_mock) -> None:
        """Test 5xx mapping with the server's message."""
        httpx_mock.add_response(
            url=CHAT_URL,
            method="POST",
            status_code=500,
            json={"error": {"message": "Model crashed"}},
        )

        transport = HttpTransport(BASE)
        with pytest.raises(RemoteError) as exc_info:
            await transport.post_chat({})
        await transport.close()

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Model crashed"

    @pytest.mark.asyncio
    async def test_invalid_json_body(self, httpx_mock) -> None:
        """Test a non-JSON success body."""
        httpx_mock.add_response(url=CHAT_URL, method="POST", text="not json")

        transport = HttpTransport(BASE)
        with pytest.raises(RemoteError, match="not valid JSON"):
            await transport.post_chat({})
        await transport.close()

    @pytest.mark.asyncio
    async def test_connect_error(self, httpx_mock) -> None:
        """Test connection failures."""
        httpx_mock.add_exception(httpx.ConnectError("refused"))

        transport = HttpTransport(BASE)
        with pytest.raises(RemoteError) as exc_info:
            await transport.post_chat({})
        await transport.close()

        assert exc_info.value.status_code is None
        assert exc_info.value.message.startswith("Connection failed")

    @pytest.mark.asyncio
    async def test_timeout(self, httpx_mock) -> None:
        """Test transport timeouts."""
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"))

        transport = HttpTransport(BASE, timeout=2.0)
        with pytest.raises(RequestTimeoutError) as exc_info:
            await transport.post_chat({})
        await transport.close()

        assert exc_info.value.timeout == 2.0

    @pytest.mark.asyncio
    async def test_list_models(self, httpx_mock) -> None:
        """Test the model listing used for health probes."""
        httpx_mock.add_response(
            url=MODELS_URL,
            method="GET",
            json={"object": "list", "data": [{"id": "qwen2.5-7b"}, {"id": "llama-3.1-8b"}]},
        )

        transport = HttpTransport(BASE)
        assert await transport.list_models() == ["qwen2.5-7b", "llama-3.1-8b"]
        await transport.close()

    @pytest.mark.asyncio
    async def test_list_models_unexpected_payload(self, httpx_mock) -> None:
        """Test a listing without a data array."""
        httpx_mock.add_response(url=MODELS_URL, method="GET", json={"models": []})

        transport = HttpTransport(BASE)
        with pytest.raises(RemoteError, match="Unexpected model list payload"):
            await transport.list_models()
        await transport.close()

    @pytest.mark.asyncio
    async def test_stream_chat(self, httpx_mock) -> None:
        """Test streaming forces stream=true and yields lines."""
        httpx_mock.add_response(
            url=CHAT_URL,
            method="POST",
            content=b'data: {"choices":[{"delta":{"content":"Hi"}}]}\n\ndata: [DONE]\n\n',
        )

        transport = HttpTransport(BASE)
        async with transport.stream_chat({"stream": False}) as response:
            lines = [line async for line in response.aiter_lines() if line]
        await transport.close()

        assert lines[-1] == "data: [DONE]"
        assert json.loads(httpx_mock.get_request().content)["stream"] is True

    @pytest.mark.asyncio
    async def test_stream_chat_error_status(self, httpx_mock) -> None:
        """Test streaming error responses."""
        httpx_mock.add_response(
            url=CHAT_URL, method="POST", status_code=503, json={"error": "Loading model"}
        )

        transport = HttpTransport(BASE)
        with pytest.raises(RemoteError) as exc_info:
            async with transport.stream_chat({}):
                pass
        await transport.close()

        assert exc_info.value.status_code == 503
        assert exc_info.value.message == "Loading model"
