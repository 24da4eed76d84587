"""lmstudio-bridge: resilient client for a local OpenAI-compatible endpoint.

Mediates tool calls to a single chat-completion endpoint with admission
control, result caching, bounded retries, health probing and a graceful
shutdown drain.
"""
from __future__ import annotations

from lmstudio_bridge.client import (
    ExecuteOptions,
    ResilientClient,
    ResilientClientBuilder,
)
from lmstudio_bridge.config import BridgeConfig
from lmstudio_bridge.errors import (
    BridgeError,
    ConfigError,
    ErrorKind,
    OverloadedError,
    RemoteError,
    RequestTimeoutError,
    ShuttingDownError,
    UnavailableError,
)
from lmstudio_bridge.server import RequestTracker, Tool, ToolResult, ToolServer
from lmstudio_bridge.telemetry import HealthSnapshot, MetricsSnapshot

__version__ = "0.1.0"

__all__ = [
    # Client
    "BridgeConfig",
    "ExecuteOptions",
    "ResilientClient",
    "ResilientClientBuilder",
    # Errors
    "BridgeError",
    "ConfigError",
    "ErrorKind",
    "OverloadedError",
    "RemoteError",
    "RequestTimeoutError",
    "ShuttingDownError",
    "UnavailableError",
    # State
    "HealthSnapshot",
    "MetricsSnapshot",
    # Server
    "RequestTracker",
    "Tool",
    "ToolResult",
    "ToolServer",
    # Version
    "__version__",
]
