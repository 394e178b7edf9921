"""
Exception types raised by the RabbitMQ client.

Transport failures during setup propagate to the caller. Handler failures are
wrapped in HandlerError and only ever handed to a failure hook.
"""

from typing import Optional


class RabbitMQError(Exception):
    """Base class for all client errors."""


class RoutingNotConfiguredError(RabbitMQError, LookupError):
    """Raised when a message type has no registered routing metadata."""

    def __init__(self, message_type: type) -> None:
        self.message_type = message_type
        super().__init__(
            f"No routing metadata registered for {message_type.__qualname__}"
        )


class BrokerConnectionError(RabbitMQError, ConnectionError):
    """Raised when the broker is unreachable or connection setup fails."""


class RpcTimeoutError(RabbitMQError, TimeoutError):
    """Raised when no reply with a matching correlation id arrives in time."""

    def __init__(self, correlation_id: str, queue: str, timeout: float) -> None:
        self.correlation_id = correlation_id
        self.queue = queue
        self.timeout = timeout
        super().__init__(
            f"No reply for call {correlation_id} on queue '{queue}' "
            f"within {timeout:.3f}s"
        )


class HandlerError(RabbitMQError):
    """
    A failure raised while decoding or handling a single delivery.

    The original exception is available as ``__cause__``. The delivery this
    error belongs to has already been (or is about to be) acknowledged.
    """

    def __init__(
        self,
        queue: str,
        delivery_tag: Optional[int],
        correlation_id: Optional[str] = None,
        body: Optional[str] = None,
    ) -> None:
        self.queue = queue
        self.delivery_tag = delivery_tag
        self.correlation_id = correlation_id
        self.body = body
        super().__init__(
            f"Handler failed for delivery {delivery_tag} on queue '{queue}'"
        )
