"""Failure kinds surfaced by the resilient client.

Every failure returned to a caller is tagged with one of these kinds so the
caller can decide between backing off (overloaded, unavailable) and
reporting a permanent failure (remote error after exhausting retries).
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Failure classification."""

    OVERLOADED = "overloaded"
    """Admission rejected by the concurrency or per-minute limit."""

    UNAVAILABLE = "unavailable"
    """Endpoint was not healthy at dispatch time."""

    TIMEOUT = "timeout"
    """A single attempt exceeded its deadline."""

    REMOTE_ERROR = "remote_error"
    """Endpoint answered with an error, an invalid payload, or was unreachable."""

    SHUTTING_DOWN = "shutting_down"
    """Call arrived after shutdown had begun."""

    CONFIG = "config"
    """Invalid configuration detected at startup."""

    @property
    def is_backoff(self) -> bool:
        """Whether a caller should back off and try again later."""
        return self in _BACKOFF_KINDS

    @property
    def is_retried(self) -> bool:
        """Whether the retry policy retries failures of this kind."""
        return self in _RETRIED_KINDS


_BACKOFF_KINDS: set[ErrorKind] = {
    ErrorKind.OVERLOADED,
    ErrorKind.UNAVAILABLE,
}

# All failures raised by the wrapped remote call are retried alike.
_RETRIED_KINDS: set[ErrorKind] = {
    ErrorKind.TIMEOUT,
    ErrorKind.REMOTE_ERROR,
}


def extract_error_message(body: Any) -> str | None:
    """Extract error message from an error response body.

    Supports the envelopes OpenAI-compatible servers return:
    - ``{"error": {"message": "..."}}``
    - ``{"error": "..."}``
    - ``{"message": "..."}`` / ``{"detail": "..."}``

    Args:
        body: Response body (parsed JSON)

    Returns:
        Error message if found, None otherwise
    """
    if not isinstance(body, dict) or not body:
        return None

    if "error" in body:
        error = body["error"]
        if isinstance(error, dict):
            msg = error.get("message")
            if isinstance(msg, str):
                return msg
        elif isinstance(error, str):
            return error

    if "message" in body:
        msg = body["message"]
        if isinstance(msg, str):
            return msg

    if "detail" in body:
        detail = body["detail"]
        if isinstance(detail, str):
            return detail
        if isinstance(detail, list) and detail:
            return str(detail[0])

    return None
