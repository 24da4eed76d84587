"""
Structured logging for lmstudio-bridge.

All bridge loggers hang off the ``lmstudio_bridge`` logger, which owns one
stderr handler; stdout is reserved for the tool-call line protocol. Keyword
arguments to the log methods become structured fields, and the current
request's ``LogContext`` is attached to every record written inside it.
"""

from __future__ import annotations

import json
import logging
import re
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, TextIO

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, MutableMapping

ROOT_LOGGER = "lmstudio_bridge"

LEVELS: dict[str, int] = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

REDACTED = "***REDACTED***"

_RESERVED_KWARGS = ("exc_info", "stack_info", "stacklevel")


def parse_level(value: str | int) -> int:
    """Map a level name such as ``info`` or ``WARN`` to a logging level."""
    if isinstance(value, int):
        return value
    try:
        return LEVELS[value.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown log level: {value!r}") from None


@dataclass(frozen=True)
class LogContext:
    """Fields identifying the tool call a record belongs to."""

    request_id: str | None = None
    tool: str | None = None
    model: str | None = None

    def to_dict(self) -> dict[str, str]:
        return {k: v for k, v in asdict(self).items() if v is not None}


_context: ContextVar[LogContext] = ContextVar("lmstudio_bridge_log_context", default=LogContext())


def get_log_context() -> LogContext:
    """Context of the current task."""
    return _context.get()


@contextmanager
def log_context(**fields: str | None) -> Iterator[LogContext]:
    """Attach request fields to every record logged inside the block.

    Example:
        >>> with log_context(request_id=request_id, tool="summarize"):
        ...     logger.info("Tool call received")
    """
    current = _context.get()
    merged = LogContext(**{**current.to_dict(), **fields})
    token = _context.set(merged)
    try:
        yield merged
    finally:
        _context.reset(token)


class SensitiveDataMasker:
    """Redacts credentials from messages and fields.

    Covers bearer tokens, ``LM_STUDIO_API_KEY=...`` assignments and any
    ``api_key``-style pair; fields whose name looks like a credential are
    replaced outright.
    """

    PATTERNS = (
        re.compile(r"(Bearer\s+)\S+", re.IGNORECASE),
        re.compile(r"(LM_STUDIO_API_KEY\s*=\s*)\S+"),
        re.compile(r"(api[_-]?key[\"']?\s*[:=]\s*[\"']?)[^\"'\s,}]+", re.IGNORECASE),
    )
    SENSITIVE_KEYS = ("api_key", "apikey", "authorization", "token", "secret", "password")

    def mask(self, text: str) -> str:
        for pattern in self.PATTERNS:
            text = pattern.sub(rf"\g<1>{REDACTED}", text)
        return text

    def mask_fields(self, fields: dict[str, Any]) -> dict[str, Any]:
        masked: dict[str, Any] = {}
        for key, value in fields.items():
            if any(s in key.lower() for s in self.SENSITIVE_KEYS):
                masked[key] = REDACTED
            elif isinstance(value, str):
                masked[key] = self.mask(value)
            elif isinstance(value, dict):
                masked[key] = self.mask_fields(value)
            else:
                masked[key] = value
        return masked


class BridgeFormatter(logging.Formatter):
    """Renders ``timestamp [LEVEL] logger: message {fields}`` or one JSON object.

    Fields are the record's request context followed by its keyword fields;
    tracebacks follow on the next lines in text mode.
    """

    def __init__(self, json_output: bool = False, masker: SensitiveDataMasker | None = None) -> None:
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")
        self.json_output = json_output
        self.masker = masker or SensitiveDataMasker()

    def _fields(self, record: logging.LogRecord) -> dict[str, Any]:
        fields: dict[str, Any] = getattr(record, "context", {}).copy()
        fields.update(getattr(record, "fields", {}))
        return self.masker.mask_fields(fields)

    def format(self, record: logging.LogRecord) -> str:
        timestamp = f"{self.formatTime(record, self.datefmt)}.{int(record.msecs):03d}"
        message = self.masker.mask(record.getMessage())
        fields = self._fields(record)
        error = self.formatException(record.exc_info) if record.exc_info else None

        if self.json_output:
            data = {
                "timestamp": timestamp,
                "level": record.levelname,
                "logger": record.name,
                "message": message,
                **fields,
            }
            if error:
                data["exception"] = error
            return json.dumps(data, default=str)

        line = f"{timestamp} [{record.levelname}] {record.name}: {message}"
        if fields:
            line += f" {json.dumps(fields, default=str)}"
        if error:
            line += f"\n{error}"
        return line


class _ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.context = get_log_context().to_dict()
        return True


class BridgeLogger(logging.LoggerAdapter):
    """Logger adapter taking structured fields as keyword arguments.

    Example:
        >>> logger = get_logger("lmstudio_bridge.client")
        >>> logger.info("LM Studio completion successful", duration_ms=120, tokens_used=42)
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        passthrough = {k: kwargs.pop(k) for k in _RESERVED_KWARGS if k in kwargs}
        passthrough["extra"] = {"fields": dict(kwargs)}
        return msg, passthrough

    @staticmethod
    def configure(
        level: str | int = "info",
        format: str = "text",
        stream: TextIO | None = None,
    ) -> None:
        """Install the single bridge handler, replacing any previous one.

        Args:
            level: Level name (``error``, ``warn``, ``info``, ``debug``) or number
            format: ``text`` or ``json``
            stream: Output stream (default: stderr)
        """
        root = logging.getLogger(ROOT_LOGGER)
        for handler in list(root.handlers):
            root.removeHandler(handler)

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(BridgeFormatter(json_output=format == "json"))
        handler.addFilter(_ContextFilter())
        root.addHandler(handler)
        root.setLevel(parse_level(level))
        root.propagate = False


def get_logger(name: str) -> BridgeLogger:
    """Get a bridge logger, installing the default handler on first use."""
    if not logging.getLogger(ROOT_LOGGER).handlers:
        BridgeLogger.configure()
    return BridgeLogger(logging.getLogger(name), {})


def log_performance(
    logger: BridgeLogger,
    operation: str,
    start: float,
    clock: Callable[[], float] = time.monotonic,
    **fields: Any,
) -> float:
    """Log ``Performance: <operation>`` with the elapsed milliseconds.

    Args:
        logger: Logger to write to
        operation: Operation name
        start: Start time read from ``clock``
        clock: Time source
        **fields: Additional fields

    Returns:
        Duration in milliseconds
    """
    duration_ms = (clock() - start) * 1000
    logger.info(f"Performance: {operation}", duration_ms=round(duration_ms, 2), **fields)
    return duration_ms
