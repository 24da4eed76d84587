"""Tests for error module."""

from lmstudio_bridge.errors import (
    BridgeError,
    ConfigError,
    ErrorContext,
    ErrorKind,
    OverloadedError,
    RemoteError,
    RequestTimeoutError,
    ShuttingDownError,
    UnavailableError,
    extract_error_message,
)


class TestErrorContext:
    """Tests for ErrorContext."""

    def test_empty_context(self) -> None:
        """Test empty context string representation."""
        assert str(ErrorContext()) == ""

    def test_context_with_source_and_hint(self) -> None:
        """Test context with source and hint."""
        ctx = ErrorContext(source="remote", hint="Start LM Studio")
        assert "[remote]" in str(ctx)
        assert "(hint: Start LM Studio)" in str(ctx)


class TestErrorKinds:
    """Tests for error kind tagging."""

    def test_each_error_carries_its_kind(self) -> None:
        """Test that every error class is tagged."""
        assert OverloadedError("busy").kind == ErrorKind.OVERLOADED
        assert UnavailableError("down").kind == ErrorKind.UNAVAILABLE
        assert RequestTimeoutError("slow").kind == ErrorKind.TIMEOUT
        assert RemoteError("bad").kind == ErrorKind.REMOTE_ERROR
        assert ShuttingDownError().kind == ErrorKind.SHUTTING_DOWN
        assert ConfigError("invalid").kind == ErrorKind.CONFIG

    def test_backoff_kinds(self) -> None:
        """Test that overloaded and unavailable ask callers to back off."""
        assert ErrorKind.OVERLOADED.is_backoff
        assert ErrorKind.UNAVAILABLE.is_backoff
        assert not ErrorKind.REMOTE_ERROR.is_backoff

    def test_retried_kinds(self) -> None:
        """Test that only remote-call failures are retried."""
        assert ErrorKind.TIMEOUT.is_retried
        assert ErrorKind.REMOTE_ERROR.is_retried
        assert not ErrorKind.OVERLOADED.is_retried
        assert not ErrorKind.SHUTTING_DOWN.is_retried

    def test_all_are_bridge_errors(self) -> None:
        """Test the common base class."""
        assert isinstance(ShuttingDownError(), BridgeError)
        assert isinstance(RequestTimeoutError("slow"), BridgeError)


class TestRemoteError:
    """Tests for RemoteError."""

    def test_from_response_uses_server_message(self) -> None:
        """Test that the server's error message is kept."""
        error = RemoteError.from_response(
            500, {"error": {"message": "Model not loaded"}}, url="http://x/v1/chat/completions"
        )
        assert error.message == "Model not loaded"
        assert error.status_code == 500
        assert error.context.details["url"] == "http://x/v1/chat/completions"

    def test_from_response_without_body(self) -> None:
        """Test fallback message."""
        error = RemoteError.from_response(503)
        assert error.message == "HTTP 503"

    def test_cause_is_chained(self) -> None:
        """Test that the underlying cause is preserved."""
        cause = ConnectionError("refused")
        error = RemoteError("Connection failed", cause=cause)
        assert error.__cause__ is cause
        assert error.status_code is None

    def test_to_dict(self) -> None:
        """Test tagged failure dictionary."""
        data = RemoteError("bad", status_code=400).to_dict()
        assert data["kind"] == "remote_error"
        assert data["message"] == "bad"
        assert data["details"]["status_code"] == 400


class TestOtherErrors:
    """Tests for the remaining error classes."""

    def test_overloaded_reason(self) -> None:
        """Test rejection reason in details."""
        error = OverloadedError("Too many concurrent requests", reason="concurrency")
        assert error.reason == "concurrency"
        assert error.context.details["reason"] == "concurrency"

    def test_unavailable_last_checked(self) -> None:
        """Test last-checked timestamp in details."""
        error = UnavailableError("down", last_checked_at=12.5)
        assert error.last_checked_at == 12.5

    def test_shutting_down_default_message(self) -> None:
        """Test default message."""
        assert ShuttingDownError().message == "Server is shutting down"

    def test_with_hint(self) -> None:
        """Test adding a hint."""
        error = UnavailableError("down").with_hint("Start the server")
        assert "(hint: Start the server)" in str(error)


class TestExtractErrorMessage:
    """Tests for extract_error_message."""

    def test_nested_error_message(self) -> None:
        """Test OpenAI-style envelope."""
        assert extract_error_message({"error": {"message": "boom"}}) == "boom"

    def test_string_error(self) -> None:
        """Test plain string error."""
        assert extract_error_message({"error": "boom"}) == "boom"

    def test_unknown_shapes(self) -> None:
        """Test bodies without a message."""
        assert extract_error_message(None) is None
        assert extract_error_message({}) is None
        assert extract_error_message(["boom"]) is None
