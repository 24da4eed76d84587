"""
Request metrics for lmstudio-bridge.

Counters are owned by the resilient client and only read by collaborators
through ``MetricsSnapshot``.
"""

from __future__ import annotations

import statistics
from collections import deque
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class MetricsSnapshot:
    """Read-only view of the client metrics.

    Attributes:
        total_requests: Calls counted (cache hits and rejections included)
        total_errors: Calls that failed after reaching the endpoint
        active_requests: Calls currently admitted
        cache_size: Entries currently held by the cache
        requests_in_window: Admissions within the trailing 60 seconds
        rejected_requests: Admissions refused by the gate
        cache_hits: Calls served from the cache
        retries: Retry attempts performed
        healthy: Endpoint health at snapshot time
        last_health_check: Time of the last probe result
        avg_latency_ms: Mean latency of recent remote calls
        p50_latency_ms: Median latency of recent remote calls
    """

    total_requests: int = 0
    total_errors: int = 0
    active_requests: int = 0
    cache_size: int = 0
    requests_in_window: int = 0
    rejected_requests: int = 0
    cache_hits: int = 0
    retries: int = 0
    healthy: bool = False
    last_health_check: float | None = None
    avg_latency_ms: float = 0.0
    p50_latency_ms: float = 0.0

    @property
    def error_rate(self) -> float:
        """Calculate error rate."""
        if self.total_requests == 0:
            return 0.0
        return self.total_errors / self.total_requests

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_requests": self.total_requests,
            "total_errors": self.total_errors,
            "active_requests": self.active_requests,
            "cache_size": self.cache_size,
            "requests_in_window": self.requests_in_window,
            "rejected_requests": self.rejected_requests,
            "cache_hits": self.cache_hits,
            "retries": self.retries,
            "error_rate": self.error_rate,
            "healthy": self.healthy,
            "last_health_check": self.last_health_check,
            "avg_latency_ms": self.avg_latency_ms,
            "p50_latency_ms": self.p50_latency_ms,
        }


@dataclass
class RequestMetrics:
    """Monotonic request counters plus a bounded latency sample window."""

    total_requests: int = 0
    total_errors: int = 0
    rejected_requests: int = 0
    cache_hits: int = 0
    retries: int = 0
    total_tokens: int = 0
    max_samples: int = 1000
    latency_samples: deque[float] = field(init=False)

    def __post_init__(self) -> None:
        self.latency_samples = deque(maxlen=self.max_samples)

    def record_request(self) -> None:
        self.total_requests += 1

    def record_error(self) -> None:
        self.total_errors += 1

    def record_rejection(self) -> None:
        self.rejected_requests += 1

    def record_cache_hit(self) -> None:
        self.cache_hits += 1

    def record_retry(self) -> None:
        self.retries += 1

    def record_latency(self, seconds: float, tokens: int | None = None) -> None:
        """Record the latency of a completed remote call."""
        self.latency_samples.append(seconds)
        if tokens:
            self.total_tokens += tokens

    @property
    def avg_latency_ms(self) -> float:
        if not self.latency_samples:
            return 0.0
        return statistics.mean(self.latency_samples) * 1000

    @property
    def p50_latency_ms(self) -> float:
        if not self.latency_samples:
            return 0.0
        return statistics.median(self.latency_samples) * 1000
