"""
In-memory stand-ins for amqpstorm connections and channels.

Only the surface this library uses is implemented. Routing follows the
default exchange (routing key = queue name) and direct exchanges (exact
binding key). Deliveries to push consumers run synchronously in the
publishing thread, so scenario tests need no sleeps; ``start_consuming``
simply blocks until the channel has no consumers or is closed.

    broker = FakeBroker()
    client = BrokerClient(ConnectionConfig(), connection_factory=broker.connection_factory)
"""

import itertools
import threading
import uuid
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Set, Tuple

from amqpstorm.exception import AMQPChannelError, AMQPConnectionError


class FakeMessage:
    """Mimics ``amqpstorm.Message`` for delivered and fetched messages."""

    def __init__(self, body: Any, properties: Optional[dict] = None, delivery_tag: Optional[int] = None) -> None:
        self.body = body
        self.properties = dict(properties or {})
        self.delivery_tag = delivery_tag

    @property
    def correlation_id(self) -> Optional[str]:
        return self.properties.get("correlation_id")

    @property
    def reply_to(self) -> Optional[str]:
        return self.properties.get("reply_to")

    def copy_for(self, delivery_tag: int) -> "FakeMessage":
        return FakeMessage(self.body, self.properties, delivery_tag)


class _Consumer:
    def __init__(self, tag: str, channel: "FakeChannel", callback: Callable, no_ack: bool) -> None:
        self.tag = tag
        self.channel = channel
        self.callback = callback
        self.no_ack = no_ack


class FakeBroker:
    """Shared broker state behind every FakeConnection created from it."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.exchanges: Dict[str, dict] = {}
        self.queues: Dict[str, dict] = {}
        self.bindings: Set[Tuple[str, str, str]] = set()
        self.backlog: Dict[str, Deque[FakeMessage]] = {}
        self.consumers: Dict[str, List[_Consumer]] = {}
        self.published: List[Tuple[str, str, FakeMessage]] = []
        self.unroutable: List[FakeMessage] = []
        self.connections: List["FakeConnection"] = []
        self._round_robin = itertools.count()

    def connection_factory(self, config: Any = None) -> "FakeConnection":
        """Usable as ``ConnectionManager``'s connection factory."""
        connection = FakeConnection(self)
        with self.lock:
            self.connections.append(connection)
        return connection

    def declare_queue(self, queue: str, **arguments) -> None:
        with self.lock:
            self.queues.setdefault(queue, dict(arguments))
            self.backlog.setdefault(queue, deque())
            self.consumers.setdefault(queue, [])

    def depth(self, queue: str) -> int:
        with self.lock:
            return len(self.backlog.get(queue, ()))

    def route(self, exchange: str, routing_key: str) -> List[str]:
        with self.lock:
            if not exchange:
                return [routing_key] if routing_key in self.queues else []
            return sorted(
                queue
                for queue, bound_exchange, key in self.bindings
                if bound_exchange == exchange and key == routing_key
            )

    def publish(self, exchange: str, routing_key: str, message: FakeMessage) -> None:
        with self.lock:
            self.published.append((exchange, routing_key, message))
            targets = self.route(exchange, routing_key)
            if not targets:
                self.unroutable.append(message)
            for queue in targets:
                self.backlog[queue].append(message)
        for queue in targets:
            self.drain(queue)

    def drain(self, queue: str) -> None:
        """Hand queued messages to consumers until either runs out."""
        while True:
            with self.lock:
                consumers = [c for c in self.consumers.get(queue, []) if c.channel.is_open]
                backlog = self.backlog.get(queue)
                if not consumers or not backlog:
                    return
                consumer = consumers[next(self._round_robin) % len(consumers)]
                message = backlog.popleft()
                delivered = consumer.channel._track(message, consumer.no_ack)
            consumer.callback(delivered)

    def remove_consumers(self, channel: "FakeChannel", tag: Optional[str] = None) -> None:
        with self.lock:
            for queue, consumers in self.consumers.items():
                self.consumers[queue] = [
                    c for c in consumers
                    if not (c.channel is channel and (tag is None or c.tag == tag))
                ]


class _Exchange:
    def __init__(self, channel: "FakeChannel") -> None:
        self._channel = channel

    def declare(self, exchange: str = "", exchange_type: str = "direct", durable: bool = False, auto_delete: bool = False, **kwargs) -> dict:
        self._channel._check_open()
        with self._channel.broker.lock:
            self._channel.broker.exchanges.setdefault(
                exchange,
                {"exchange_type": exchange_type, "durable": durable, "auto_delete": auto_delete},
            )
        self._channel.calls.append(("exchange.declare", exchange))
        return {}


class _Queue:
    def __init__(self, channel: "FakeChannel") -> None:
        self._channel = channel

    def declare(self, queue: str = "", durable: bool = False, exclusive: bool = False, auto_delete: bool = False, **kwargs) -> dict:
        self._channel._check_open()
        self._channel.broker.declare_queue(
            queue, durable=durable, exclusive=exclusive, auto_delete=auto_delete
        )
        self._channel.calls.append(("queue.declare", queue))
        return {"queue": queue, "message_count": self._channel.broker.depth(queue)}

    def bind(self, queue: str = "", exchange: str = "", routing_key: str = "", **kwargs) -> dict:
        self._channel._check_open()
        with self._channel.broker.lock:
            self._channel.broker.bindings.add((queue, exchange, routing_key))
        self._channel.calls.append(("queue.bind", queue, exchange, routing_key))
        return {}


class _Basic:
    def __init__(self, channel: "FakeChannel") -> None:
        self._channel = channel

    def qos(self, prefetch_count: int = 0, **kwargs) -> dict:
        self._channel._check_open()
        self._channel.prefetch_count = prefetch_count
        return {}

    def publish(self, body: Any, routing_key: str, exchange: str = "", properties: Optional[dict] = None, **kwargs) -> None:
        self._channel._check_open()
        if isinstance(body, bytes):
            body = body.decode("utf-8")
        self._channel.broker.publish(exchange, routing_key, FakeMessage(body, properties))

    def consume(self, callback: Callable, queue: str = "", consumer_tag: str = "", no_ack: bool = False, exclusive: bool = False, **kwargs) -> str:
        self._channel._check_open()
        broker = self._channel.broker
        tag = consumer_tag or f"ctag-{uuid.uuid4().hex[:12]}"
        with broker.lock:
            if queue not in broker.queues:
                raise AMQPChannelError(f"NOT_FOUND - no queue '{queue}'")
            broker.consumers[queue].append(_Consumer(tag, self._channel, callback, no_ack))
            self._channel.consumer_tags.append(tag)
        broker.drain(queue)
        return tag

    def cancel(self, consumer_tag: str = "") -> dict:
        self._channel._check_open()
        self._channel.broker.remove_consumers(self._channel, consumer_tag)
        if consumer_tag in self._channel.consumer_tags:
            self._channel.consumer_tags.remove(consumer_tag)
        self._channel._wake()
        return {}

    def get(self, queue: str = "", no_ack: bool = False, **kwargs) -> Optional[FakeMessage]:
        self._channel._check_open()
        broker = self._channel.broker
        with broker.lock:
            backlog = broker.backlog.get(queue)
            if not backlog:
                return None
            return self._channel._track(backlog.popleft(), no_ack)

    def ack(self, delivery_tag: int = 0, multiple: bool = False) -> None:
        self._channel._check_open()
        with self._channel.broker.lock:
            if delivery_tag not in self._channel.unacked:
                raise AMQPChannelError(f"PRECONDITION_FAILED - unknown delivery tag {delivery_tag}")
            self._channel.unacked.discard(delivery_tag)
            self._channel.acked.append(delivery_tag)


class FakeChannel:
    """Mimics ``amqpstorm.Channel``."""

    def __init__(self, broker: FakeBroker, channel_id: int) -> None:
        self.broker = broker
        self.channel_id = channel_id
        self.exchange = _Exchange(self)
        self.queue = _Queue(self)
        self.basic = _Basic(self)
        self.consumer_tags: List[str] = []
        self.prefetch_count: Optional[int] = None
        self.unacked: Set[int] = set()
        self.acked: List[int] = []
        self.calls: List[tuple] = []
        self._delivery_tags = itertools.count(1)
        self._open = True
        self._wakeup = threading.Condition()

    @property
    def is_open(self) -> bool:
        return self._open

    def _check_open(self) -> None:
        if not self._open:
            raise AMQPChannelError(f"Channel {self.channel_id} is closed")

    def _track(self, message: FakeMessage, no_ack: bool) -> FakeMessage:
        delivered = message.copy_for(next(self._delivery_tags))
        if not no_ack:
            self.unacked.add(delivered.delivery_tag)
        return delivered

    def _wake(self) -> None:
        with self._wakeup:
            self._wakeup.notify_all()

    def start_consuming(self, to_tuple: bool = False, auto_decode: bool = True) -> None:
        with self._wakeup:
            while self._open and self.consumer_tags:
                self._wakeup.wait(0.05)

    def close(self) -> None:
        self.broker.remove_consumers(self)
        self.consumer_tags.clear()
        self._open = False
        self._wake()


class FakeConnection:
    """Mimics ``amqpstorm.Connection``."""

    def __init__(self, broker: Optional[FakeBroker] = None) -> None:
        self.broker = broker or FakeBroker()
        self.channels: List[FakeChannel] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    def channel(self) -> FakeChannel:
        with self._lock:
            if not self._open:
                raise AMQPConnectionError("Connection is closed")
            channel = FakeChannel(self.broker, next(self._ids))
            self.channels.append(channel)
            return channel

    def close(self) -> None:
        with self._lock:
            channels = list(self.channels)
            self._open = False
        for channel in channels:
            if channel.is_open:
                channel.close()
