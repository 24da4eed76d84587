"""Base error classes for lmstudio-bridge.

Provides a layered error hierarchy:
- BridgeError: Base class for all bridge errors
- OverloadedError: Admission rejected
- UnavailableError: Endpoint not healthy
- RequestTimeoutError: Attempt deadline exceeded
- RemoteError: Endpoint error or invalid response
- ShuttingDownError: Call made after shutdown began
- ConfigError: Invalid configuration
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from lmstudio_bridge.errors.kinds import ErrorKind, extract_error_message


@dataclass
class ErrorContext:
    """Structured error context for diagnostics."""

    details: dict[str, Any] = field(default_factory=dict)
    """Additional details about the error"""

    source: str | None = None
    """Error source (e.g., 'admission', 'health', 'remote')"""

    hint: str | None = None
    """Actionable hint for resolving the error"""

    def __str__(self) -> str:
        parts = []
        if self.source:
            parts.append(f"[{self.source}]")
        if self.hint:
            parts.append(f"(hint: {self.hint})")
        return " ".join(parts)


class BridgeError(Exception):
    """Base class for all lmstudio-bridge errors.

    Attributes:
        message: Human-readable error message
        context: Structured error context
        kind: Failure classification
    """

    kind: ErrorKind = ErrorKind.REMOTE_ERROR

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
    ) -> None:
        self.message = message
        self.context = context or ErrorContext()
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message."""
        ctx_str = str(self.context)
        if ctx_str:
            return f"{self.message} {ctx_str}"
        return self.message

    def with_hint(self, hint: str) -> BridgeError:
        """Add a hint to this error."""
        self.context.hint = hint
        self.args = (self._format_message(),)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to a tagged failure dictionary."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "details": dict(self.context.details),
        }


class OverloadedError(BridgeError):
    """Admission rejected by the concurrency or rate limit.

    Never retried by this layer; the caller decides whether to try later.
    """

    kind = ErrorKind.OVERLOADED

    def __init__(self, message: str, *, reason: str | None = None) -> None:
        ctx = ErrorContext(source="admission")
        if reason:
            ctx.details["reason"] = reason
        super().__init__(message, ctx)
        self.reason = reason


class UnavailableError(BridgeError):
    """Endpoint health was not HEALTHY at dispatch time."""

    kind = ErrorKind.UNAVAILABLE

    def __init__(self, message: str, *, last_checked_at: float | None = None) -> None:
        ctx = ErrorContext(source="health")
        if last_checked_at is not None:
            ctx.details["last_checked_at"] = last_checked_at
        super().__init__(message, ctx)
        self.last_checked_at = last_checked_at


class RequestTimeoutError(BridgeError):
    """A single attempt exceeded its deadline."""

    kind = ErrorKind.TIMEOUT

    def __init__(
        self,
        message: str,
        *,
        timeout: float | None = None,
        cause: BaseException | None = None,
    ) -> None:
        ctx = ErrorContext(source="remote")
        if timeout is not None:
            ctx.details["timeout"] = timeout
        super().__init__(message, ctx)
        self.timeout = timeout
        self.__cause__ = cause


class RemoteError(BridgeError):
    """Error from the remote endpoint.

    Raised when the endpoint answers with an HTTP error, returns a payload
    that does not match the chat-completion schema, or cannot be reached.

    Attributes:
        status_code: HTTP status code (None when no response was received)
        raw_error: Parsed error body, if any
    """

    kind = ErrorKind.REMOTE_ERROR

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        raw_error: Any = None,
        url: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        ctx = ErrorContext(source="remote")
        if status_code is not None:
            ctx.details["status_code"] = status_code
        if url:
            ctx.details["url"] = url
        super().__init__(message, ctx)
        self.status_code = status_code
        self.raw_error = raw_error
        self.url = url
        self.__cause__ = cause

    @classmethod
    def from_response(
        cls,
        status_code: int,
        body: Any = None,
        url: str | None = None,
    ) -> RemoteError:
        """Create RemoteError from an HTTP error response.

        Args:
            status_code: HTTP status code
            body: Response body (parsed JSON)
            url: Request URL

        Returns:
            RemoteError carrying the server's message
        """
        message = extract_error_message(body) or f"HTTP {status_code}"
        return cls(message, status_code=status_code, raw_error=body, url=url)


class ShuttingDownError(BridgeError):
    """Call arrived after shutdown had begun."""

    kind = ErrorKind.SHUTTING_DOWN

    def __init__(self, message: str = "Server is shutting down") -> None:
        super().__init__(message, ErrorContext(source="lifecycle"))


class ConfigError(BridgeError):
    """Invalid configuration."""

    kind = ErrorKind.CONFIG

    def __init__(self, message: str, *, field: str | None = None) -> None:
        ctx = ErrorContext(source="config")
        if field:
            ctx.details["field"] = field
        super().__init__(message, ctx)
        self.field = field
