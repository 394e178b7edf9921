"""
RabbitMQ push subscriber.

Handlers run on the queue's dispatch thread. Every delivery is acknowledged
exactly once after the handler returns or raises; failures go to the
failure hook and never stop the consumer. A poison message is consumed and
dropped instead of being redelivered forever.
"""

import logging
import threading
from typing import Any, Callable, List, Optional

from amqpstorm import Channel, Message

from brokerkit.logging import scoped_context
from brokerkit.rmq.channel_pool import ChannelPool
from brokerkit.rmq.codec import JsonCodec
from brokerkit.rmq.config import normalize_queue_name
from brokerkit.rmq.dispatch import ConsumerDispatcher
from brokerkit.rmq.hooks import FailureHook, report_failure
from brokerkit.rmq.interface import MessageCodec
from brokerkit.rmq.routing import RoutingRegistry

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class Subscription:
    """Handle for an installed consumer."""

    def __init__(
        self,
        queue: str,
        consumer_tag: str,
        channel: Channel,
        lock: threading.RLock,
    ) -> None:
        self.queue = queue
        self.consumer_tag = consumer_tag
        self._channel = channel
        self._lock = lock
        self._active = True

    @property
    def active(self) -> bool:
        return self._active and self._channel.is_open

    def cancel(self) -> None:
        """Stop receiving deliveries. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        with self._lock:
            try:
                if self._channel.is_open:
                    self._channel.basic.cancel(self.consumer_tag)
                    logger.info("Consumer %s on queue %s cancelled", self.consumer_tag, self.queue)
            except Exception as e:
                logger.exception("Error cancelling consumer %s: %s", self.consumer_tag, e)


class Subscriber:
    """Installs long-lived push consumers."""

    def __init__(
        self,
        pool: ChannelPool,
        registry: Optional[RoutingRegistry] = None,
        codec: Optional[MessageCodec] = None,
        failure_hook: Optional[FailureHook] = None,
        dispatcher: Optional[ConsumerDispatcher] = None,
    ) -> None:
        self._pool = pool
        self._registry = registry or RoutingRegistry()
        self._codec = codec or JsonCodec()
        self._failure_hook = failure_hook
        self._dispatcher = dispatcher or ConsumerDispatcher("rmq-subscriber")
        self._subscriptions: List[Subscription] = []

    def _on_message(
        self,
        queue: str,
        channel: Channel,
        handler: Handler,
        message_type: Optional[type],
    ) -> Callable[[Message], None]:
        def on_message(message: Message) -> None:
            delivery_tag = message.delivery_tag
            correlation_id = message.correlation_id
            with scoped_context(
                queue=queue,
                delivery_tag=delivery_tag,
                correlation_id=correlation_id,
            ):
                try:
                    handler(self._codec.decode(message.body, message_type))
                except Exception as e:
                    report_failure(
                        self._failure_hook,
                        e,
                        queue,
                        delivery_tag,
                        correlation_id=correlation_id,
                        body=message.body,
                    )
                finally:
                    with self._pool.lock_for(queue):
                        channel.basic.ack(delivery_tag=delivery_tag)
                    logger.debug("Message %s on queue %s acknowledged", delivery_tag, queue)

        return on_message

    def subscribe(
        self,
        queue: str,
        durable: bool,
        handler: Handler,
        message_type: Optional[type] = None,
    ) -> Subscription:
        """
        Install a push consumer on ``queue`` and return immediately.

        Args:
            queue: Queue to consume (declared if needed)
            durable: Declare the queue durable
            handler: Called with each decoded message on the dispatch thread
            message_type: Optional type the JSON body is decoded into
        """
        queue = normalize_queue_name(queue)
        channel = self._pool.get_channel(queue, durable=durable, fair_dispatch=True)

        with self._pool.lock_for(queue):
            consumer_tag = channel.basic.consume(
                callback=self._on_message(queue, channel, handler, message_type),
                queue=queue,
                no_ack=False,
            )
        self._dispatcher.ensure_running(queue, channel)

        subscription = Subscription(queue, consumer_tag, channel, self._pool.lock_for(queue))
        self._subscriptions.append(subscription)
        logger.info("Subscribed to queue %s (consumer %s)", queue, consumer_tag)
        return subscription

    def subscribe_message(self, message_type: type, handler: Handler) -> Subscription:
        """
        Subscribe to the queue registered for ``message_type``.

        Raises:
            RoutingNotConfiguredError: If ``message_type`` is not registered
        """
        route = self._registry.resolve(message_type)
        return self.subscribe(route.queue, route.durable, handler, message_type=message_type)

    def subscriptions(self) -> List[Subscription]:
        return [s for s in self._subscriptions if s.active]

    def shutdown(self) -> None:
        """Cancel every subscription installed through this subscriber."""
        logger.info("Shutting down Subscriber...")
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()
