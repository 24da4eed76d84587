"""HTTP transport to the OpenAI-compatible endpoint.

Provides:
- Chat completion POST and model listing (used as the health probe)
- Server-sent-event streaming
- Mapping of httpx failures onto the bridge error kinds
"""

from __future__ import annotations

import json as json_module
from contextlib import asynccontextmanager, suppress
from typing import TYPE_CHECKING, Any

import httpx

from lmstudio_bridge.errors import RemoteError, RequestTimeoutError
from lmstudio_bridge.transport.auth import get_auth_header

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


_DEFAULT_TIMEOUT = 30.0
_DEFAULT_CONNECT_TIMEOUT = 10.0

CHAT_COMPLETIONS_PATH = "/chat/completions"
MODELS_PATH = "/models"


def api_base_url(base_url: str) -> str:
    """Append the ``/v1`` API prefix to a server URL unless already present."""
    base = base_url.rstrip("/")
    if base.endswith("/v1"):
        return base
    return f"{base}/v1"


class HttpTransport:
    """HTTP transport for the chat-completion endpoint.

    Uses httpx for async HTTP requests with streaming support.

    Example:
        >>> transport = HttpTransport("http://localhost:1234", api_key="lm-studio")
        >>> data = await transport.post_chat({"model": "local-model", "messages": [...]})
        >>> models = await transport.list_models()
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout: float | None = None,
        connect_timeout: float = _DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        """Initialize HTTP transport.

        Args:
            base_url: Server URL (``/v1`` is appended)
            api_key: Explicit API key (overrides env)
            timeout: Request timeout in seconds
            connect_timeout: Connect timeout in seconds
        """
        self._base_url = api_base_url(base_url)
        self._timeout = timeout if timeout is not None else _DEFAULT_TIMEOUT
        self._connect_timeout = connect_timeout
        self._auth_headers = get_auth_header(api_key)

        # Client instance (lazy initialization)
        self._client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout, connect=self._connect_timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _build_headers(self, extra_headers: dict[str, str] | None = None) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "lmstudio-bridge",
        }
        headers.update(self._auth_headers)
        if extra_headers:
            headers.update(extra_headers)
        return headers

    def _translate(self, error: httpx.HTTPError, path: str) -> Exception:
        url = f"{self._base_url}{path}"
        if isinstance(error, httpx.TimeoutException):
            return RequestTimeoutError(
                f"Request timed out: {error}", timeout=self._timeout, cause=error
            )
        if isinstance(error, httpx.ConnectError):
            return RemoteError(f"Connection failed: {error}", url=url, cause=error)
        return RemoteError(f"HTTP error: {error}", url=url, cause=error)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Make an HTTP request.

        Args:
            method: HTTP method
            path: Request path (relative to the API base)
            json: JSON body
            headers: Additional headers

        Returns:
            HTTP response

        Raises:
            RequestTimeoutError: On transport timeouts
            RemoteError: On connection failures and HTTP errors (4xx, 5xx)
        """
        client = self._get_client()

        try:
            response = await client.request(
                method=method,
                url=path,
                json=json,
                headers=self._build_headers(headers),
            )
        except httpx.HTTPError as e:
            raise self._translate(e, path) from e

        if response.status_code >= 400:
            body = None
            with suppress(ValueError):
                body = response.json()
            raise RemoteError.from_response(
                status_code=response.status_code,
                body=body,
                url=f"{self._base_url}{path}",
            )

        return response

    def _json(self, response: httpx.Response, path: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(
                "Response body is not valid JSON",
                status_code=response.status_code,
                url=f"{self._base_url}{path}",
                cause=e,
            ) from e

    async def post_chat(self, payload: dict[str, Any]) -> Any:
        """POST a chat completion request.

        Args:
            payload: Request body

        Returns:
            Parsed JSON response
        """
        response = await self.request("POST", CHAT_COMPLETIONS_PATH, json=payload)
        return self._json(response, CHAT_COMPLETIONS_PATH)

    async def list_models(self) -> list[str]:
        """List the model ids the server exposes.

        Returns:
            Model identifiers
        """
        response = await self.request("GET", MODELS_PATH)
        data = self._json(response, MODELS_PATH)
        if not isinstance(data, dict) or not isinstance(data.get("data"), list):
            raise RemoteError(
                "Unexpected model list payload",
                status_code=response.status_code,
                raw_error=data,
            )
        return [str(m.get("id", "")) for m in data["data"] if isinstance(m, dict)]

    @asynccontextmanager
    async def stream_chat(
        self,
        payload: dict[str, Any],
    ) -> AsyncIterator[httpx.Response]:
        """Make a streaming chat completion request.

        Args:
            payload: Request body (``stream`` is forced on)

        Yields:
            HTTP response for streaming
        """
        client = self._get_client()
        headers = self._build_headers({"Accept": "text/event-stream"})
        body = {**payload, "stream": True}

        try:
            async with client.stream(
                "POST",
                CHAT_COMPLETIONS_PATH,
                json=body,
                headers=headers,
            ) as response:
                if response.status_code >= 400:
                    raw = await response.aread()
                    error_body = None
                    with suppress(ValueError):
                        error_body = json_module.loads(raw)
                    raise RemoteError.from_response(
                        status_code=response.status_code,
                        body=error_body,
                        url=f"{self._base_url}{CHAT_COMPLETIONS_PATH}",
                    )

                yield response
        except httpx.HTTPError as e:
            raise self._translate(e, CHAT_COMPLETIONS_PATH) from e

    async def __aenter__(self) -> HttpTransport:
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
