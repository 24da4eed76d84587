"""Tests for client construction."""

import pytest

from lmstudio_bridge.client import ResilientClient, ResilientClientBuilder
from lmstudio_bridge.config import BridgeConfig

from tests.conftest import FakeTransport


class TestResilientClientBuilder:
    """Tests for ResilientClientBuilder."""

    @pytest.mark.asyncio
    async def test_build_with_settings(self) -> None:
        """Test fluent configuration reaches the components."""
        transport = FakeTransport()
        client = await (
            ResilientClient.builder()
            .model("qwen2.5-7b-instruct")
            .transport(transport)
            .max_concurrent(2)
            .max_per_minute(30)
            .retry(max_retries=1, base_delay=0.5)
            .timeout(10)
            .cache(ttl=60)
            .build()
        )
        try:
            assert client.model == "qwen2.5-7b-instruct"
            assert client.gate.config.max_concurrent == 2
            assert client.gate.config.max_per_minute == 30
            assert client.retry_config.max_retries == 1
            assert client.retry_config.timeout == 10
            assert client.cache.config.ttl == 60
            assert client.health().healthy
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_build_without_start(self) -> None:
        """Test an unstarted client has not probed."""
        transport = FakeTransport()
        client = await ResilientClientBuilder().transport(transport).build(start=False)
        assert transport.model_calls == 0
        assert not client.monitor.running

    @pytest.mark.asyncio
    async def test_unlimited(self) -> None:
        """Test disabling admission limits."""
        client = await (
            ResilientClientBuilder().transport(FakeTransport()).unlimited().build(start=False)
        )
        assert not client.gate.is_limited

    @pytest.mark.asyncio
    async def test_empty_model_rejected(self) -> None:
        """Test model validation."""
        with pytest.raises(ValueError):
            await ResilientClientBuilder().model("").build()


class TestFromConfig:
    """Tests for ResilientClient.from_config."""

    def test_from_config(self) -> None:
        """Test environment settings reach the components."""
        config = BridgeConfig.from_env(
            {
                "LM_STUDIO_MODEL": "llama-3.1-8b",
                "RATE_LIMIT_MAX_CONCURRENT": "4",
                "CACHE_ENABLED": "false",
                "LM_STUDIO_TIMEOUT": "5000",
            }
        )
        client = ResilientClient.from_config(config, transport=FakeTransport())
        assert client.model == "llama-3.1-8b"
        assert client.gate.config.max_concurrent == 4
        assert not client.cache.enabled
        assert client.retry_config.timeout == 5.0

    def test_default_transport(self) -> None:
        """Test the HTTP transport targets the /v1 API."""
        config = BridgeConfig.from_env({"LM_STUDIO_URL": "http://studio.test:1234"})
        client = ResilientClient.from_config(config)
        assert client.monitor is not None
        assert client._transport.base_url == "http://studio.test:1234/v1"
