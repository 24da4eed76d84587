"""Tests for the retry policy."""

import asyncio

import pytest

from lmstudio_bridge.errors import RemoteError, RequestTimeoutError
from lmstudio_bridge.resilience import RetryConfig, RetryPolicy, with_retry


class TestRetryConfig:
    """Tests for RetryConfig."""

    def test_default_config(self) -> None:
        """Test default retry configuration."""
        config = RetryConfig()
        assert config.max_retries == 3
        assert config.base_delay == 1.0
        assert config.timeout == 30.0

    def test_no_retry_config(self) -> None:
        """Test no-retry configuration."""
        assert RetryConfig.no_retry().max_retries == 0

    def test_from_env(self, monkeypatch) -> None:
        """Test millisecond environment values."""
        monkeypatch.setenv("LM_STUDIO_MAX_RETRIES", "5")
        monkeypatch.setenv("LM_STUDIO_RETRY_DELAY", "250")
        monkeypatch.setenv("LM_STUDIO_TIMEOUT", "2000")
        config = RetryConfig.from_env()
        assert config.max_retries == 5
        assert config.base_delay == 0.25
        assert config.timeout == 2.0


class TestBackoff:
    """Tests for delay calculation."""

    def test_linear_capped(self) -> None:
        """Test linear growth capped at three times the base."""
        policy = RetryPolicy(RetryConfig(base_delay=1.0))
        assert policy.calculate_delay(1) == 1.0
        assert policy.calculate_delay(2) == 2.0
        assert policy.calculate_delay(3) == 3.0
        assert policy.calculate_delay(4) == 3.0
        assert policy.calculate_delay(10) == 3.0

    def test_should_retry_bound(self) -> None:
        """Test that only the attempt count matters."""
        policy = RetryPolicy(RetryConfig(max_retries=2))
        assert policy.should_retry(ValueError(), 1)
        assert policy.should_retry(RemoteError("bad", status_code=400), 2)
        assert not policy.should_retry(RemoteError("bad"), 3)


class TestRetryPolicy:
    """Tests for RetryPolicy.execute."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self) -> None:
        """Test no retry when the first attempt succeeds."""
        calls = 0

        async def operation() -> str:
            nonlocal calls
            calls += 1
            return "ok"

        result = await RetryPolicy(RetryConfig(base_delay=0.001)).execute(operation)
        assert result.success
        assert result.value == "ok"
        assert result.attempts == 1
        assert calls == 1

    @pytest.mark.asyncio
    async def test_retries_until_success(self) -> None:
        """Test recovery after transient failures."""
        calls = 0
        retries: list[tuple[int, float]] = []

        async def operation() -> str:
            nonlocal calls
            calls += 1
            if calls < 3:
                raise RemoteError("HTTP 503", status_code=503)
            return "ok"

        policy = RetryPolicy(RetryConfig(max_retries=3, base_delay=0.001))
        result = await policy.execute(
            operation, on_retry=lambda attempt, _e, delay: retries.append((attempt, delay))
        )
        assert result.success
        assert result.attempts == 3
        assert retries == [(1, 0.001), (2, 0.002)]

    @pytest.mark.asyncio
    async def test_exhausts_attempts(self) -> None:
        """Test max_retries + 1 total attempts."""
        calls = 0

        async def operation() -> str:
            nonlocal calls
            calls += 1
            raise RemoteError("HTTP 500", status_code=500)

        result = await RetryPolicy(RetryConfig(max_retries=3, base_delay=0.001)).execute(operation)
        assert not result.success
        assert result.attempts == 4
        assert calls == 4
        assert isinstance(result.error, RemoteError)

    @pytest.mark.asyncio
    async def test_client_errors_are_retried_too(self) -> None:
        """Test that no error is classified as permanent."""
        calls = 0

        async def operation() -> str:
            nonlocal calls
            calls += 1
            raise RemoteError("HTTP 400", status_code=400)

        await RetryPolicy(RetryConfig(max_retries=2, base_delay=0.001)).execute(operation)
        assert calls == 3

    @pytest.mark.asyncio
    async def test_attempt_timeout(self) -> None:
        """Test per-attempt deadline."""

        async def operation() -> str:
            await asyncio.sleep(1)
            return "late"

        policy = RetryPolicy(RetryConfig(max_retries=1, base_delay=0.001, timeout=0.02))
        result = await policy.execute(operation)
        assert not result.success
        assert result.attempts == 2
        assert isinstance(result.error, RequestTimeoutError)
        assert result.error.message == "Request timed out after 20ms"

    @pytest.mark.asyncio
    async def test_with_retry_raises_last_error(self) -> None:
        """Test the raising helper."""

        async def operation() -> str:
            raise RemoteError("boom")

        with pytest.raises(RemoteError, match="boom"):
            await with_retry(operation, RetryConfig(max_retries=1, base_delay=0.001))
