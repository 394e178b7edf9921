"""
RabbitMQ publisher.

Sends message bodies to an exchange/routing key pair through the channel
pooled for the target queue.
"""

import logging
from typing import Any, Optional

from brokerkit.rmq.channel_pool import ChannelPool
from brokerkit.rmq.codec import JsonCodec, to_wire
from brokerkit.rmq.config import Envelope, normalize_queue_name
from brokerkit.rmq.interface import MessageCodec
from brokerkit.rmq.routing import RoutingRegistry

logger = logging.getLogger(__name__)


class Publisher:
    """Fire-and-forget publishing."""

    def __init__(
        self,
        pool: ChannelPool,
        registry: Optional[RoutingRegistry] = None,
        codec: Optional[MessageCodec] = None,
    ) -> None:
        self._pool = pool
        self._registry = registry or RoutingRegistry()
        self._codec = codec or JsonCodec()

    def encode(self, body: Any) -> str:
        """Encode ``body`` unless it is already wire text."""
        return to_wire(self._codec, body)

    def send(self, queue: str, envelope: Envelope, durable: bool = False) -> None:
        """
        Publish a prepared envelope through the channel for ``queue``.

        Topology (exchange, queue and binding) is declared on first use.
        """
        queue = normalize_queue_name(queue)
        channel = self._pool.get_channel(
            queue,
            durable=durable,
            exchange=envelope.exchange,
            routing_key=envelope.routing_key,
        )
        with self._pool.lock_for(queue):
            channel.basic.publish(
                body=envelope.body,
                routing_key=envelope.routing_key,
                exchange=envelope.exchange,
                properties=envelope.properties(),
            )
        logger.debug(
            "Message published to exchange '%s' with routing key '%s'",
            envelope.exchange,
            envelope.routing_key,
        )

    def publish(
        self,
        exchange: str,
        queue: str,
        routing_key: str,
        body: Any,
        persistent: bool = False,
    ) -> None:
        """
        Publish ``body`` to ``exchange`` with ``routing_key``.

        Args:
            exchange: Target exchange ("" for the default exchange)
            queue: Queue whose channel is used; declared and bound if needed
            routing_key: Routing key for the message
            body: Payload; str/bytes are sent as-is, anything else is encoded
            persistent: Mark the queue/exchange durable and the message persistent
        """
        envelope = Envelope(
            exchange=exchange or "",
            routing_key=routing_key,
            body=self.encode(body),
            persistent=persistent,
        )
        self.send(queue, envelope, durable=persistent)

    def publish_message(self, message: Any) -> None:
        """
        Publish a registered message type using its routing metadata.

        Raises:
            RoutingNotConfiguredError: If ``type(message)`` is not registered
        """
        route = self._registry.resolve_instance(message)
        self.publish(
            route.exchange,
            route.queue,
            route.routing_key,
            message,
            persistent=route.durable,
        )
