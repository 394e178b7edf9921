"""
Retry helpers for establishing broker connections.

Only connection setup is retried. Messages are never redelivered or delayed
by this package.
"""

import logging
import random
import time
from dataclasses import dataclass
from functools import wraps
from typing import Callable, Optional, Tuple, Type

import amqpstorm.exception

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    """Maximum number of attempts (including the initial one)"""

    initial_delay: float = 1.0
    """Delay in seconds before the first retry"""

    max_delay: float = 60.0
    """Upper bound for any single delay"""

    exponential_base: float = 2.0
    """Backoff multiplier; 1.0 gives a fixed interval"""

    jitter: bool = True
    """Whether to add random jitter to delays"""

    jitter_factor: float = 0.1
    """Jitter factor (delay +/- delay * jitter_factor)"""

    exceptions: Tuple[Type[Exception], ...] = (Exception,)
    """Exception types to retry on"""

    exception_filter: Optional[Callable[[Exception], bool]] = None
    """Optional predicate deciding whether an exception is retryable"""

    on_retry: Optional[Callable[[Exception, int, float], None]] = None
    """Optional callback invoked before each retry: on_retry(exception, attempt, delay)"""

    @classmethod
    def fixed_interval(
        cls,
        attempts: int,
        interval: float,
        exception_filter: Optional[Callable[[Exception], bool]] = None,
    ) -> "RetryConfig":
        """Retry ``attempts`` times, sleeping exactly ``interval`` seconds in between."""
        return cls(
            max_attempts=max(1, attempts),
            initial_delay=interval,
            max_delay=interval,
            exponential_base=1.0,
            jitter=False,
            exception_filter=exception_filter,
        )


def _calculate_delay(config: RetryConfig, attempt: int) -> float:
    """Delay before retrying after the (0-indexed) ``attempt``."""
    delay = config.initial_delay * (config.exponential_base ** attempt)
    delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_amount = delay * config.jitter_factor
        delay += random.uniform(-jitter_amount, jitter_amount)

    return max(0, delay)


def _should_retry(config: RetryConfig, exception: Exception) -> bool:
    if not isinstance(exception, config.exceptions):
        return False
    if config.exception_filter:
        return config.exception_filter(exception)
    return True


def retry(config: Optional[RetryConfig] = None) -> Callable:
    """
    Decorator retrying a function with backoff.

    Args:
        config: Retry configuration (uses defaults if None)

    Example:
        @retry(RetryConfig.fixed_interval(attempts=5, interval=2.0))
        def connect():
            return amqpstorm.Connection("localhost", "guest", "guest")
    """
    if config is None:
        config = RetryConfig()

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(config.max_attempts):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not _should_retry(config, e):
                        logger.debug(
                            "Exception %s does not match retry criteria, not retrying",
                            type(e).__name__,
                        )
                        raise

                    if attempt + 1 >= config.max_attempts:
                        logger.warning(
                            "Max retry attempts (%d) reached for %s",
                            config.max_attempts,
                            func.__name__,
                        )
                        raise

                    delay = _calculate_delay(config, attempt)
                    logger.warning(
                        "Attempt %d/%d failed for %s with %s: %s. Retrying in %.2fs...",
                        attempt + 1,
                        config.max_attempts,
                        func.__name__,
                        type(e).__name__,
                        str(e),
                        delay,
                    )

                    if config.on_retry:
                        try:
                            config.on_retry(e, attempt + 1, delay)
                        except Exception as callback_error:
                            logger.error("Error in retry callback: %s", callback_error)

                    time.sleep(delay)

            raise RuntimeError("Retry logic error: no attempts were made")

        return wrapper
    return decorator


def is_transient_rmq_error(exception: Exception) -> bool:
    """
    Determine if a broker error is transient and worth another attempt.

    Connection and channel errors from amqpstorm qualify, as do socket level
    failures (refused connections, DNS hiccups).
    """
    if isinstance(exception, (
        amqpstorm.exception.AMQPConnectionError,
        amqpstorm.exception.AMQPChannelError,
    )):
        return True

    if isinstance(exception, (ConnectionError, OSError)):
        return True

    return False
