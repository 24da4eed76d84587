"""
Server boundary - tool dispatch and graceful shutdown.

This module provides:
- ToolServer: Tool registry and call dispatch over a ResilientClient
- RequestTracker: In-flight request accounting and shutdown drain
"""

from lmstudio_bridge.server.lifecycle import RequestTracker
from lmstudio_bridge.server.tools import Tool, ToolResult, ToolServer

__all__ = [
    "RequestTracker",
    "Tool",
    "ToolResult",
    "ToolServer",
]
