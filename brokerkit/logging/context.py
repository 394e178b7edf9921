"""Context management for structured logging.

Context is stored in a contextvar, so each dispatch thread carries its own
delivery fields while sharing the service metadata set at startup.
"""

import contextvars
import os
import socket
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, asdict, replace
from typing import Any, Dict, Iterator, Optional

_log_context: contextvars.ContextVar[Optional["LogContext"]] = contextvars.ContextVar(
    "log_context", default=None
)

# Set by configure_logging; threads without their own context fall back to it
_global_context: Optional["LogContext"] = None


@dataclass
class LogContext:
    """Standard attributes attached to every log record when set."""

    # Service metadata (set at startup)
    app_name: Optional[str] = None
    environment: Optional[str] = None
    version: Optional[str] = None

    # Broker context (set per delivery or call)
    exchange: Optional[str] = None
    queue: Optional[str] = None
    routing_key: Optional[str] = None
    correlation_id: Optional[str] = None
    delivery_tag: Optional[int] = None

    # Process context
    hostname: Optional[str] = None
    process_id: Optional[int] = None
    thread_name: Optional[str] = None

    custom: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        data = asdict(self)
        custom = data.pop("custom", {})
        result = {key: value for key, value in data.items() if value is not None}
        result.update(custom)
        return result

    @classmethod
    def from_environment(cls) -> "LogContext":
        return cls(
            app_name=os.getenv("APP_NAME"),
            environment=os.getenv("APP_ENV") or os.getenv("ENVIRONMENT"),
            version=os.getenv("APP_VERSION"),
            hostname=os.getenv("HOSTNAME") or socket.gethostname(),
            process_id=os.getpid(),
        )


def set_global_context(context: Optional[LogContext]) -> None:
    global _global_context
    _global_context = context


def set_context(context: Optional[LogContext]) -> None:
    _log_context.set(context)


def get_context() -> Optional[LogContext]:
    """Current context for this thread, or the global one."""
    return _log_context.get() or _global_context


def clear_context() -> None:
    _log_context.set(None)


def update_context(**kwargs) -> None:
    """Update the current context with new values."""
    current = _log_context.get()
    if current is None:
        current = replace(_global_context) if _global_context else LogContext()
        current.custom = dict(current.custom)
        set_context(current)

    for key, value in kwargs.items():
        if key == "custom":
            current.custom.update(value)
        elif hasattr(current, key):
            setattr(current, key, value)
        else:
            current.custom[key] = value


@contextmanager
def scoped_context(**kwargs) -> Iterator[LogContext]:
    """
    Bind context fields for the duration of a block.

    Used around each delivery on consumer threads:

        with scoped_context(queue="orders", delivery_tag=7):
            handler(message)
    """
    base = get_context()
    scoped = replace(base) if base else LogContext()
    scoped.custom = dict(scoped.custom)
    scoped.thread_name = threading.current_thread().name
    for key, value in kwargs.items():
        if hasattr(scoped, key) and key != "custom":
            setattr(scoped, key, value)
        else:
            scoped.custom[key] = value

    token = _log_context.set(scoped)
    try:
        yield scoped
    finally:
        _log_context.reset(token)
