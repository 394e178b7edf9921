"""
BrokerClient: one connection, one channel per queue, three messaging patterns.

Example:
    ```python
    registry = RoutingRegistry()

    @registry.route(exchange="math", queue="math.double")
    @dataclass
    class Number:
        value: int

    with BrokerClient(ConnectionConfig(host="localhost"), registry) as client:
        client.serve_message(Number, lambda n: Number(n.value * 2))
        assert client.call_message(Number(21)) == Number(42)
    ```
"""

import logging
import threading
from typing import Any, Callable, Optional

from brokerkit.rmq.channel_pool import ChannelPool
from brokerkit.rmq.codec import JsonCodec
from brokerkit.rmq.config import DEFAULT_RPC_TIMEOUT, ConnectionConfig
from brokerkit.rmq.connection import ConnectionFactory, ConnectionManager
from brokerkit.rmq.dispatch import ConsumerDispatcher
from brokerkit.rmq.hooks import FailureHook, log_handler_failure
from brokerkit.rmq.interface import MessageCodec
from brokerkit.rmq.publisher import Publisher
from brokerkit.rmq.puller import Puller
from brokerkit.rmq.routing import RoutingRegistry
from brokerkit.rmq.rpc import PendingRpcCall, RpcClient, RpcServer
from brokerkit.rmq.subscriber import Subscriber, Subscription

logger = logging.getLogger(__name__)


class BrokerClient:
    """
    Facade over the connection manager, channel pool and messaging roles.

    Nothing touches the broker until the first operation. ``dispose()``
    releases channels and the connection; a later operation reconnects.
    """

    def __init__(
        self,
        config: Optional[ConnectionConfig] = None,
        registry: Optional[RoutingRegistry] = None,
        codec: Optional[MessageCodec] = None,
        failure_hook: Optional[FailureHook] = None,
        connection_factory: Optional[ConnectionFactory] = None,
    ) -> None:
        self.config = config or ConnectionConfig()
        self.registry = registry or RoutingRegistry()
        self.codec = codec or JsonCodec()
        self.failure_hook = failure_hook or log_handler_failure

        self.connection_manager = ConnectionManager(self.config, connection_factory)
        self.pool = ChannelPool(self.connection_manager)
        self._dispatchers = [
            ConsumerDispatcher("rmq-subscriber"),
            ConsumerDispatcher("rmq-rpc-server"),
            ConsumerDispatcher("rmq-rpc-reply"),
        ]
        subscriber_dispatch, server_dispatch, reply_dispatch = self._dispatchers

        self.publisher = Publisher(self.pool, self.registry, self.codec)
        self.subscriber = Subscriber(
            self.pool, self.registry, self.codec, self.failure_hook, subscriber_dispatch
        )
        self.puller = Puller(self.pool, self.registry, self.codec, self.failure_hook)
        self.rpc_client = RpcClient(
            self.pool, self.publisher, self.registry, self.codec, reply_dispatch
        )
        self.rpc_server = RpcServer(
            self.pool, self.registry, self.codec, self.failure_hook, server_dispatch
        )
        self._dispose_lock = threading.Lock()

    # Publish

    def publish(
        self,
        exchange: str,
        queue: str,
        routing_key: str,
        body: Any,
        persistent: bool = False,
    ) -> None:
        self.publisher.publish(exchange, queue, routing_key, body, persistent=persistent)

    def publish_message(self, message: Any) -> None:
        self.publisher.publish_message(message)

    # Subscribe / pull

    def subscribe(
        self,
        queue: str,
        durable: bool,
        handler: Callable[[Any], None],
        message_type: Optional[type] = None,
    ) -> Subscription:
        return self.subscriber.subscribe(queue, durable, handler, message_type=message_type)

    def subscribe_message(self, message_type: type, handler: Callable[[Any], None]) -> Subscription:
        return self.subscriber.subscribe_message(message_type, handler)

    def pull(
        self,
        queue: str,
        durable: bool,
        handler: Callable[[Any], None],
        message_type: Optional[type] = None,
    ) -> bool:
        return self.puller.pull(queue, durable, handler, message_type=message_type)

    def pull_message(self, message_type: type, handler: Callable[[Any], None]) -> bool:
        return self.puller.pull_message(message_type, handler)

    # RPC

    def call(
        self,
        exchange: str,
        queue: str,
        routing_key: str,
        body: Any,
        persistent: bool = False,
        timeout: float = DEFAULT_RPC_TIMEOUT,
        response_type: Optional[type] = None,
    ) -> Any:
        return self.rpc_client.call(
            exchange,
            queue,
            routing_key,
            body,
            persistent=persistent,
            timeout=timeout,
            response_type=response_type,
        )

    def call_async(
        self,
        exchange: str,
        queue: str,
        routing_key: str,
        body: Any,
        persistent: bool = False,
        timeout: float = DEFAULT_RPC_TIMEOUT,
        response_type: Optional[type] = None,
    ) -> PendingRpcCall:
        return self.rpc_client.call_async(
            exchange,
            queue,
            routing_key,
            body,
            persistent=persistent,
            timeout=timeout,
            response_type=response_type,
        )

    def call_message(self, message: Any, timeout: float = DEFAULT_RPC_TIMEOUT) -> Any:
        return self.rpc_client.call_message(message, timeout=timeout)

    def serve(
        self,
        exchange: str,
        queue: str,
        durable: bool,
        handler: Callable[[Any], Any],
        request_type: Optional[type] = None,
    ) -> Subscription:
        return self.rpc_server.serve(exchange, queue, durable, handler, request_type=request_type)

    def serve_message(self, message_type: type, handler: Callable[[Any], Any]) -> Subscription:
        return self.rpc_server.serve_message(message_type, handler)

    # Lifecycle

    def is_connected(self) -> bool:
        return self.connection_manager.is_open()

    def dispose(self) -> None:
        """
        Cancel consumers, close every pooled channel, then the connection.

        Safe to call more than once.
        """
        with self._dispose_lock:
            logger.info("Disposing broker client...")
            self.subscriber.shutdown()
            self.rpc_server.shutdown()
            self.rpc_client.shutdown()
            self.pool.close_all()
            self.connection_manager.close()
            for dispatcher in self._dispatchers:
                dispatcher.join()
            logger.info("Broker client disposed")

    def __enter__(self) -> "BrokerClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.dispose()
        return False
