"""Logger factory with automatic context injection."""

import logging

from brokerkit.logging.context import get_context


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that includes the current LogContext in all records."""

    def process(self, msg, kwargs):
        extra = kwargs.get("extra") or {}

        context = get_context()
        if context:
            # Explicit extra values win over context values
            for key, value in context.to_dict().items():
                extra.setdefault(key, value)

        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    """
    Get a logger with automatic context injection.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Reply sent")  # includes queue/correlation_id when bound
    """
    return ContextLogger(logging.getLogger(name), {})
