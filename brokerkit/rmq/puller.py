"""Single synchronous fetch from a queue."""

import logging
from typing import Any, Callable, Optional

from brokerkit.logging import scoped_context
from brokerkit.rmq.channel_pool import ChannelPool
from brokerkit.rmq.codec import JsonCodec
from brokerkit.rmq.config import normalize_queue_name
from brokerkit.rmq.hooks import FailureHook, report_failure
from brokerkit.rmq.interface import MessageCodec
from brokerkit.rmq.routing import RoutingRegistry

logger = logging.getLogger(__name__)


class Puller:
    """
    On-demand consumption with ``basic.get``.

    Blocks the caller for one round trip. Handler failures are reported the
    same way as for subscribers, and the message is acknowledged on every
    exit path.
    """

    def __init__(
        self,
        pool: ChannelPool,
        registry: Optional[RoutingRegistry] = None,
        codec: Optional[MessageCodec] = None,
        failure_hook: Optional[FailureHook] = None,
    ) -> None:
        self._pool = pool
        self._registry = registry or RoutingRegistry()
        self._codec = codec or JsonCodec()
        self._failure_hook = failure_hook

    def pull(
        self,
        queue: str,
        durable: bool,
        handler: Callable[[Any], None],
        message_type: Optional[type] = None,
        exchange: Optional[str] = None,
        routing_key: Optional[str] = None,
    ) -> bool:
        """
        Fetch at most one message from ``queue`` and hand it to ``handler``.

        Returns:
            True if a message was fetched, False if the queue was empty
        """
        queue = normalize_queue_name(queue)
        channel = self._pool.get_channel(
            queue,
            durable=durable,
            exchange=exchange,
            routing_key=routing_key,
        )

        with self._pool.lock_for(queue):
            message = channel.basic.get(queue=queue, no_ack=False)
        if message is None:
            logger.debug("Queue %s is empty", queue)
            return False

        delivery_tag = message.delivery_tag
        with scoped_context(queue=queue, delivery_tag=delivery_tag):
            try:
                handler(self._codec.decode(message.body, message_type))
            except Exception as e:
                report_failure(self._failure_hook, e, queue, delivery_tag, body=message.body)
            finally:
                with self._pool.lock_for(queue):
                    channel.basic.ack(delivery_tag=delivery_tag)
        return True

    def pull_message(self, message_type: type, handler: Callable[[Any], None]) -> bool:
        """
        Pull from the queue registered for ``message_type``.

        Raises:
            RoutingNotConfiguredError: If ``message_type`` is not registered
        """
        route = self._registry.resolve(message_type)
        return self.pull(
            route.queue,
            route.durable,
            handler,
            message_type=message_type,
            exchange=route.exchange,
            routing_key=route.routing_key,
        )
