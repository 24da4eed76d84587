"""
Tool server boundary.

Receives tool calls, tracks them for the shutdown drain, derives cache keys
for cacheable tools and turns bridge failures into error results.
"""

from __future__ import annotations

import asyncio
import signal
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from lmstudio_bridge.cache import CacheKeyGenerator
from lmstudio_bridge.config import BridgeConfig
from lmstudio_bridge.errors import BridgeError, ShuttingDownError
from lmstudio_bridge.server.lifecycle import RequestTracker
from lmstudio_bridge.telemetry.logger import get_logger, log_context, log_performance

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from lmstudio_bridge.client import ResilientClient

logger = get_logger("lmstudio_bridge.server")


@dataclass
class Tool:
    """A registered tool.

    Attributes:
        name: Tool name
        description: Human-readable description
        handler: Async callable ``(arguments, client, cache_key) -> text``
        cacheable: Whether a cache key is derived for calls
    """

    name: str
    description: str
    handler: Callable[[dict[str, Any], ResilientClient, str | None], Awaitable[str]]
    cacheable: bool = True


@dataclass
class ToolResult:
    """Result returned to the caller of a tool."""

    text: str
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": [{"type": "text", "text": self.text}],
            "isError": self.is_error,
        }


class ToolServer:
    """Dispatches tool calls to handlers backed by a ResilientClient.

    Example:
        >>> server = ToolServer(client, config)
        >>> server.register(Tool("summarize", "Summarize text", summarize))
        >>> server.install_signal_handlers(asyncio.get_running_loop())
        >>> result = await server.call_tool("summarize", {"content": text})
    """

    def __init__(
        self,
        client: ResilientClient,
        config: BridgeConfig | None = None,
        tracker: RequestTracker | None = None,
        key_generator: CacheKeyGenerator | None = None,
    ) -> None:
        """Initialize the server.

        Args:
            client: Resilient client shared by all tools
            config: Bridge configuration (shutdown grace period)
            tracker: Request tracker
            key_generator: Cache key generator
        """
        self._client = client
        self._config = config or BridgeConfig()
        self._tracker = tracker or RequestTracker()
        self._keys = key_generator or CacheKeyGenerator()
        self._tools: dict[str, Tool] = {}
        self._shutting_down = False
        self._shutdown_task: asyncio.Task[bool] | None = None
        self._stopped = asyncio.Event()

    @property
    def tracker(self) -> RequestTracker:
        return self._tracker

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    def register(self, tool: Tool) -> None:
        """Register a tool, replacing any tool with the same name."""
        self._tools[tool.name] = tool

    def list_tools(self) -> list[Tool]:
        """Registered tools in registration order."""
        logger.info("Listing available tools", count=len(self._tools))
        return list(self._tools.values())

    def get_tool(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def generate_cache_key(self, tool: str, arguments: dict[str, Any]) -> str:
        """Derive the cache key of a tool call."""
        return self._keys.generate(tool, arguments).key

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResult:
        """Execute a tool call.

        Args:
            name: Tool name
            arguments: Tool arguments

        Returns:
            ToolResult; failures are reported with ``is_error`` set
        """
        arguments = arguments or {}
        async with self._tracker.track() as request_id:
            with log_context(request_id=request_id, tool=name, model=self._client.model):
                return await self._dispatch(name, arguments)

    async def _dispatch(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        start = time.monotonic()
        try:
            if self._shutting_down:
                raise ShuttingDownError()

            logger.info("Tool call received")
            tool = self._tools.get(name)
            if tool is None:
                logger.error("Unknown tool")
                return ToolResult(f"Error: Unknown tool: {name}", is_error=True)

            cache_key = self.generate_cache_key(name, arguments) if tool.cacheable else None
            text = await tool.handler(arguments, self._client, cache_key)

            logger.info("Tool execution successful", response_length=len(text))
            log_performance(logger, f"tool_{name}", start, success=True)
            return ToolResult(text)
        except BridgeError as e:
            logger.error("Tool execution error", error=e.message, kind=e.kind.value)
            log_performance(logger, f"tool_{name}", start, success=False)
            return ToolResult(f"Error: {e.message}", is_error=True)
        except ValueError as e:
            logger.warning("Input validation failed", error=str(e))
            log_performance(logger, f"tool_{name}", start, success=False)
            return ToolResult(f"Validation error: {e}", is_error=True)

    async def graceful_shutdown(self, signal_name: str = "SIGTERM") -> bool:
        """Stop accepting calls, drain in-flight ones, then shut the client down.

        Repeated calls wait for the first shutdown to finish.

        Args:
            signal_name: Name of the triggering signal, for logging

        Returns:
            True if every in-flight call finished within the grace period
        """
        self._shutting_down = True
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.get_running_loop().create_task(
                self._shutdown(signal_name), name="graceful-shutdown"
            )
        return await asyncio.shield(self._shutdown_task)

    async def _shutdown(self, signal_name: str) -> bool:
        logger.info(f"Received {signal_name}, starting graceful shutdown")
        await self._client.shutdown()

        drained = await self._tracker.drain(self._config.shutdown_grace)

        await self._client.close()
        self._stopped.set()
        if drained:
            logger.info("Graceful shutdown complete")
        return drained

    async def wait_stopped(self) -> None:
        """Wait until a graceful shutdown has finished."""
        await self._stopped.wait()

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        """Trigger a graceful shutdown on SIGINT and SIGTERM."""
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(
                    sig,
                    lambda s=sig: loop.create_task(self.graceful_shutdown(s.name)),
                )
            except NotImplementedError:
                logger.warning("Signal handlers not supported on this platform", signal=sig.name)
