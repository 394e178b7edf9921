"""
Failure hooks for per-delivery handler errors.

Handler errors never reach the transport: the delivery is acknowledged and the
error is handed to a hook. The default hook logs it. Pass a different hook to
escalate, count or forward failures without touching the ack contract.
"""

import logging
from typing import Callable, Optional

from brokerkit.logging import get_logger
from brokerkit.rmq.errors import HandlerError

logger = get_logger(__name__)

FailureHook = Callable[[HandlerError], None]


def log_handler_failure(error: HandlerError) -> None:
    """Default hook: log the failure with its traceback."""
    cause = error.__cause__
    logger.error(
        "Handler failed for delivery %s on queue %s: %s",
        error.delivery_tag,
        error.queue,
        cause if cause is not None else error,
        exc_info=(type(cause), cause, cause.__traceback__) if cause is not None else None,
        extra={"queue": error.queue, "delivery_tag": error.delivery_tag},
    )


def report_failure(
    hook: Optional[FailureHook],
    cause: BaseException,
    queue: str,
    delivery_tag: Optional[int],
    correlation_id: Optional[str] = None,
    body: Optional[str] = None,
) -> HandlerError:
    """
    Wrap ``cause`` in a HandlerError and pass it to ``hook``.

    A hook that raises is logged and suppressed.
    """
    error = HandlerError(queue, delivery_tag, correlation_id=correlation_id, body=body)
    error.__cause__ = cause

    try:
        (hook or log_handler_failure)(error)
    except Exception:
        logging.getLogger(__name__).exception(
            "Failure hook raised while reporting delivery %s on queue %s",
            delivery_tag,
            queue,
        )
    return error
