"""
Retry utilities for broker connection setup.

Provides a backoff decorator and the predicate used to decide whether an
amqpstorm failure is transient.
"""

from brokerkit.retry.retry import (
    RetryConfig,
    retry,
    is_transient_rmq_error,
)

__all__ = [
    "RetryConfig",
    "retry",
    "is_transient_rmq_error",
]
