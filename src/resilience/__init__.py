"""Resilience patterns for progression commits

This module provides the conflict retry loop and metrics collection for the
optimistic read-modify-write performed by the progression coordinator.
"""

from src.resilience.retry import retry_with_backoff, with_retry, is_retryable_error
from src.resilience.metrics import (
    record_action,
    record_conflict_retry,
    record_rewards,
)

__all__ = [
    # Retry
    "retry_with_backoff",
    "with_retry",
    "is_retryable_error",
    # Metrics
    "record_action",
    "record_conflict_retry",
    "record_rewards",
]
