"""Structured logging with per-delivery context.

Example:
    ```python
    from brokerkit.logging import configure_logging, get_logger, scoped_context

    configure_logging(service_name="order-service", json_format=True)

    logger = get_logger(__name__)
    with scoped_context(queue="orders", correlation_id="abc-123"):
        logger.info("Handling order")  # queue and correlation_id are attached
    ```
"""

from brokerkit.logging.config import configure_logging, is_configured
from brokerkit.logging.factory import ContextLogger, get_logger
from brokerkit.logging.context import (
    LogContext,
    clear_context,
    get_context,
    scoped_context,
    set_context,
    update_context,
)

__all__ = [
    "configure_logging",
    "is_configured",
    "ContextLogger",
    "get_logger",
    "LogContext",
    "clear_context",
    "get_context",
    "scoped_context",
    "set_context",
    "update_context",
]
