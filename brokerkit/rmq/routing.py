"""Registry mapping message types to their routing metadata."""

import threading
from typing import Callable, Dict, Optional, Type, TypeVar

from brokerkit.rmq.config import RoutingMetadata
from brokerkit.rmq.errors import RoutingNotConfiguredError

T = TypeVar("T", bound=type)


class RoutingRegistry:
    """
    Explicit type -> RoutingMetadata lookup.

    Populate it at startup and pass it to the client:

        registry = RoutingRegistry()

        @registry.route(exchange="orders", queue="orders.created", durable=True)
        @dataclass
        class OrderCreated:
            order_id: str
    """

    def __init__(self, routes: Optional[Dict[type, RoutingMetadata]] = None) -> None:
        self._routes: Dict[type, RoutingMetadata] = dict(routes or {})
        self._lock = threading.Lock()

    def register(self, message_type: type, metadata: RoutingMetadata) -> None:
        with self._lock:
            self._routes[message_type] = metadata

    def route(self, exchange: str, queue: str, durable: bool = False) -> Callable[[T], T]:
        """Class decorator registering the decorated type."""
        metadata = RoutingMetadata(exchange=exchange, queue=queue, durable=durable)

        def decorator(message_type: T) -> T:
            self.register(message_type, metadata)
            return message_type

        return decorator

    def resolve(self, message_type: Type) -> RoutingMetadata:
        """
        Return the metadata registered for ``message_type``.

        Raises:
            RoutingNotConfiguredError: If the type was never registered
        """
        metadata = self._routes.get(message_type)
        if metadata is None:
            raise RoutingNotConfiguredError(message_type)
        return metadata

    def resolve_instance(self, message: object) -> RoutingMetadata:
        return self.resolve(type(message))

    def __contains__(self, message_type: object) -> bool:
        return message_type in self._routes

    def __len__(self) -> int:
        return len(self._routes)
