"""
Client layer - User-facing API.

This module provides:
- ResilientClient: Single entry point for completion calls
- ResilientClientBuilder: Fluent construction
- Response schema types
"""

from lmstudio_bridge.client.builder import ResilientClientBuilder
from lmstudio_bridge.client.core import ExecuteOptions, ResilientClient
from lmstudio_bridge.client.response import (
    ChatChoice,
    ChatCompletion,
    ChatMessage,
    Usage,
    extract_delta,
    parse_completion,
)

__all__ = [
    "ChatChoice",
    "ChatCompletion",
    "ChatMessage",
    "ExecuteOptions",
    "ResilientClient",
    "ResilientClientBuilder",
    "Usage",
    "extract_delta",
    "parse_completion",
]
