"""Error hierarchy for lmstudio-bridge.

Every failure reaches the caller as a typed exception tagged with an
``ErrorKind``.
"""

from lmstudio_bridge.errors.base import (
    BridgeError,
    ConfigError,
    ErrorContext,
    OverloadedError,
    RemoteError,
    RequestTimeoutError,
    ShuttingDownError,
    UnavailableError,
)
from lmstudio_bridge.errors.kinds import ErrorKind, extract_error_message

__all__ = [
    "BridgeError",
    "ConfigError",
    "ErrorContext",
    "ErrorKind",
    "OverloadedError",
    "RemoteError",
    "RequestTimeoutError",
    "ShuttingDownError",
    "UnavailableError",
    "extract_error_message",
]
