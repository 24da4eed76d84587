"""
Telemetry module for lmstudio-bridge.

Provides structured logging, request metrics and endpoint health monitoring.
"""

from lmstudio_bridge.telemetry.health import (
    HealthCheckResult,
    HealthConfig,
    HealthMonitor,
    HealthSnapshot,
    HealthStatus,
)
from lmstudio_bridge.telemetry.logger import (
    BridgeFormatter,
    BridgeLogger,
    LogContext,
    SensitiveDataMasker,
    get_log_context,
    get_logger,
    log_context,
    log_performance,
    parse_level,
)
from lmstudio_bridge.telemetry.metrics import MetricsSnapshot, RequestMetrics

__all__ = [
    "BridgeFormatter",
    "BridgeLogger",
    "HealthCheckResult",
    "HealthConfig",
    "HealthMonitor",
    "HealthSnapshot",
    "HealthStatus",
    "LogContext",
    "MetricsSnapshot",
    "RequestMetrics",
    "SensitiveDataMasker",
    "get_log_context",
    "get_logger",
    "log_context",
    "log_performance",
    "parse_level",
]
