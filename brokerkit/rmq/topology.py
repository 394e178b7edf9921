"""Exchange, queue and binding declaration."""

import logging

from amqpstorm import Channel

from brokerkit.rmq.config import (
    ExchangeType,
    normalize_exchange_name,
    normalize_queue_name,
)

logger = logging.getLogger(__name__)


class TopologyDeclarer:
    """
    Declares broker entities on a channel.

    AMQP declarations are idempotent as long as the arguments match, so
    calling these more than once for the same entity is safe. The default
    exchange (empty name) is never declared or bound; the broker routes to
    queues by name through it.
    """

    def __init__(self, exchange_type: ExchangeType = ExchangeType.DIRECT) -> None:
        self._exchange_type = exchange_type

    def declare_exchange(self, channel: Channel, exchange: str, durable: bool = False) -> str:
        exchange = normalize_exchange_name(exchange)
        if not exchange:
            return exchange
        channel.exchange.declare(
            exchange=exchange,
            exchange_type=str(self._exchange_type),
            durable=durable,
            auto_delete=False,
        )
        logger.debug("Exchange declared: %s (durable=%s)", exchange, durable)
        return exchange

    def declare_queue(
        self,
        channel: Channel,
        queue: str,
        durable: bool = False,
        exclusive: bool = False,
        auto_delete: bool = False,
    ) -> str:
        queue = normalize_queue_name(queue)
        channel.queue.declare(
            queue=queue,
            durable=durable,
            exclusive=exclusive,
            auto_delete=auto_delete,
        )
        logger.info("Queue declared: %s (durable=%s)", queue, durable)
        return queue

    def bind(self, channel: Channel, queue: str, exchange: str, routing_key: str) -> bool:
        """Bind ``queue`` to ``exchange``; returns False for the default exchange."""
        exchange = normalize_exchange_name(exchange)
        if not exchange:
            return False
        channel.queue.bind(
            queue=normalize_queue_name(queue),
            exchange=exchange,
            routing_key=routing_key,
        )
        logger.info(
            "Queue %s bound to exchange %s with routing key '%s'",
            queue,
            exchange,
            routing_key,
        )
        return True
