"""
Configuration for lmstudio-bridge.

These Pydantic models describe every tunable of the bridge, with defaults,
and are loaded from environment variables by ``BridgeConfig.from_env``.
Durations follow the environment conventions: milliseconds for endpoint
timings, seconds for cache timings.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from lmstudio_bridge.cache import CacheConfig
from lmstudio_bridge.errors import ConfigError
from lmstudio_bridge.resilience import AdmissionConfig, RetryConfig
from lmstudio_bridge.telemetry.health import HealthConfig
from lmstudio_bridge.telemetry.logger import LEVELS, BridgeLogger

if TYPE_CHECKING:
    from collections.abc import Mapping


class LmStudioSettings(BaseModel):
    """Remote endpoint settings."""

    model_config = ConfigDict(extra="forbid")

    base_url: str = Field(default="http://localhost:1234", description="Server URL")
    api_key: str = Field(default="lm-studio", description="API credential")
    model: str = Field(default="local-model", description="Model identifier")
    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    retry_delay_ms: int = Field(default=1000, gt=0, description="Retry base delay")
    timeout_ms: int = Field(default=30000, gt=0, description="Per-attempt timeout")
    health_check_interval_ms: int = Field(
        default=60000, gt=0, description="Interval between health probes"
    )
    probe_timeout_ms: int = Field(default=5000, gt=0, description="Health probe timeout")

    @field_validator("base_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return value.rstrip("/")


class ServerSettings(BaseModel):
    """Process-level settings."""

    model_config = ConfigDict(extra="forbid")

    name: str = "LMStudio"
    version: str = "1.0.0"
    log_level: str = "info"
    log_format: str = Field(default="text", pattern=r"^(text|json)$")
    graceful_shutdown_timeout_ms: int = Field(default=5000, gt=0)

    @field_validator("log_level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in LEVELS:
            raise ValueError("log_level must be one of error, warn, info, debug")
        return normalized


class RateLimitSettings(BaseModel):
    """Admission limits."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    max_requests_per_minute: int = Field(default=60, gt=0)
    max_concurrent: int = Field(default=10, gt=0)


class CacheSettings(BaseModel):
    """Result cache settings."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    ttl: int = Field(default=300, gt=0, description="Entry TTL in seconds")
    check_period: int = Field(default=60, gt=0, description="Sweep interval in seconds")


class BridgeConfig(BaseModel):
    """Complete bridge configuration.

    Example:
        >>> config = BridgeConfig.from_env()
        >>> client = ResilientClient.from_config(config)
    """

    model_config = ConfigDict(extra="forbid")

    lm_studio: LmStudioSettings = Field(default_factory=LmStudioSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> BridgeConfig:
        """Load configuration from environment variables.

        Args:
            env: Variables to read (defaults to ``os.environ``)

        Returns:
            Validated configuration

        Raises:
            ConfigError: If a value is invalid
        """
        env = os.environ if env is None else env

        def pick(section: dict[str, Any], field: str, var: str) -> None:
            value = env.get(var)
            if value is not None and value != "":
                section[field] = value

        lm_studio: dict[str, Any] = {}
        pick(lm_studio, "base_url", "LM_STUDIO_URL")
        pick(lm_studio, "api_key", "LM_STUDIO_API_KEY")
        pick(lm_studio, "model", "LM_STUDIO_MODEL")
        pick(lm_studio, "max_retries", "LM_STUDIO_MAX_RETRIES")
        pick(lm_studio, "retry_delay_ms", "LM_STUDIO_RETRY_DELAY")
        pick(lm_studio, "timeout_ms", "LM_STUDIO_TIMEOUT")
        pick(lm_studio, "health_check_interval_ms", "HEALTH_CHECK_INTERVAL")

        server: dict[str, Any] = {}
        pick(server, "name", "SERVER_NAME")
        pick(server, "version", "SERVER_VERSION")
        pick(server, "log_level", "LOG_LEVEL")
        pick(server, "log_format", "LOG_FORMAT")
        pick(server, "graceful_shutdown_timeout_ms", "GRACEFUL_SHUTDOWN_TIMEOUT")

        rate_limit: dict[str, Any] = {
            "enabled": _flag(env.get("RATE_LIMIT_ENABLED")),
        }
        pick(rate_limit, "max_requests_per_minute", "RATE_LIMIT_MAX_REQUESTS")
        pick(rate_limit, "max_concurrent", "RATE_LIMIT_MAX_CONCURRENT")

        cache: dict[str, Any] = {"enabled": _flag(env.get("CACHE_ENABLED"))}
        pick(cache, "ttl", "CACHE_TTL")
        pick(cache, "check_period", "CACHE_CHECK_PERIOD")

        try:
            return cls(
                lm_studio=LmStudioSettings(**lm_studio),
                server=ServerSettings(**server),
                rate_limit=RateLimitSettings(**rate_limit),
                cache=CacheSettings(**cache),
            )
        except PydanticValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(p) for p in first.get("loc", ()))
            raise ConfigError(
                f"Invalid configuration: {first.get('msg', 'invalid value')}",
                field=location or None,
            ) from e

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_retries=self.lm_studio.max_retries,
            base_delay=self.lm_studio.retry_delay_ms / 1000.0,
            timeout=self.lm_studio.timeout_ms / 1000.0,
        )

    def admission_config(self) -> AdmissionConfig:
        return AdmissionConfig(
            enabled=self.rate_limit.enabled,
            max_concurrent=self.rate_limit.max_concurrent,
            max_per_minute=self.rate_limit.max_requests_per_minute,
        )

    def cache_config(self) -> CacheConfig:
        return CacheConfig(
            enabled=self.cache.enabled,
            ttl=float(self.cache.ttl),
            check_period=float(self.cache.check_period),
        )

    def health_config(self) -> HealthConfig:
        return HealthConfig(
            interval=self.lm_studio.health_check_interval_ms / 1000.0,
            probe_timeout=self.lm_studio.probe_timeout_ms / 1000.0,
        )

    def configure_logging(self) -> None:
        """Apply the log level and format to every bridge logger."""
        BridgeLogger.configure(
            level=self.server.log_level,
            format=self.server.log_format,
        )

    @property
    def shutdown_grace(self) -> float:
        """Shutdown grace period in seconds."""
        return self.server.graceful_shutdown_timeout_ms / 1000.0


def _flag(value: str | None) -> bool:
    """Feature flags are on unless explicitly set to ``false``."""
    return value is None or value.strip().lower() != "false"
