"""
Resilience layer - admission control and retry.

This module provides:
- AdmissionGate: Concurrency bound plus rolling per-minute limit, rejecting
  excess work immediately
- RetryPolicy: Per-attempt deadline with linear, capped backoff
"""

from lmstudio_bridge.resilience.admission import (
    Admission,
    AdmissionConfig,
    AdmissionGate,
    RejectReason,
)
from lmstudio_bridge.resilience.retry import (
    RetryConfig,
    RetryPolicy,
    RetryResult,
    with_retry,
)

__all__ = [
    "Admission",
    "AdmissionConfig",
    "AdmissionGate",
    "RejectReason",
    "RetryConfig",
    "RetryPolicy",
    "RetryResult",
    "with_retry",
]
