"""
Response schema for chat completions.

A payload that does not match the schema is a remote failure and is retried
like any other.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from lmstudio_bridge.errors import RemoteError


class ChatMessage(BaseModel):
    """Assistant message of a completion choice."""

    model_config = ConfigDict(extra="allow")

    role: str = Field(description="Message role")
    content: str | None = Field(default=None, description="Message text")


class ChatChoice(BaseModel):
    """A single completion choice."""

    model_config = ConfigDict(extra="allow")

    index: int = 0
    message: ChatMessage
    finish_reason: str | None = Field(description="Why the model stopped generating")


class Usage(BaseModel):
    """Token usage counts."""

    model_config = ConfigDict(extra="allow")

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class ChatCompletion(BaseModel):
    """Chat completion response.

    Attributes:
        model: Model that generated the response
        choices: Completion choices
        usage: Token usage information
    """

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    object: str | None = None
    created: int | None = None
    model: str
    choices: list[ChatChoice]
    usage: Usage | None = None

    @property
    def text(self) -> str:
        """First choice's message content, or empty string when absent."""
        if not self.choices:
            return ""
        return self.choices[0].message.content or ""

    @property
    def finish_reason(self) -> str | None:
        if not self.choices:
            return None
        return self.choices[0].finish_reason

    @property
    def total_tokens(self) -> int | None:
        if self.usage:
            return self.usage.total_tokens
        return None


def parse_completion(data: Any) -> ChatCompletion:
    """Validate a raw response body.

    Args:
        data: Parsed JSON body

    Returns:
        Validated ChatCompletion

    Raises:
        RemoteError: If the payload does not match the schema
    """
    try:
        return ChatCompletion.model_validate(data)
    except PydanticValidationError as e:
        raise RemoteError(
            f"Invalid completion response: {e.error_count()} schema error(s)",
            raw_error=data if isinstance(data, dict) else None,
            cause=e,
        ) from e


def extract_delta(chunk: dict[str, Any]) -> str:
    """Extract the content delta from a streaming chunk."""
    choices = chunk.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    delta = choices[0].get("delta") or {}
    content = delta.get("content") if isinstance(delta, dict) else None
    return content if isinstance(content, str) else ""
