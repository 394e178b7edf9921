"""
Per-queue channel pool.

Channels are not safe for concurrent use, so every queue gets exactly one
channel and one re-entrant lock. Callers hold ``lock_for(queue)`` around any
operation on that queue's channel.
"""

import logging
import threading
from typing import Dict, Optional, Set, Tuple

from amqpstorm import Channel

from brokerkit.rmq.config import normalize_exchange_name, normalize_queue_name
from brokerkit.rmq.connection import ConnectionManager
from brokerkit.rmq.topology import TopologyDeclarer

logger = logging.getLogger(__name__)


class ChannelPool:
    """
    Maps queue names to lazily created, cached channels.

    Creation runs under the lock of the queue being created, so unrelated
    queues never wait on each other and concurrent first access to the same
    queue creates (and declares) exactly one channel.
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        declarer: Optional[TopologyDeclarer] = None,
    ) -> None:
        self._connection_manager = connection_manager
        self._declarer = declarer or TopologyDeclarer()
        self._channels: Dict[str, Channel] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self._bindings: Set[Tuple[str, str, str]] = set()
        self._durable: Dict[str, bool] = {}
        self._fair_dispatch: Set[str] = set()

    def lock_for(self, queue: Optional[str]) -> threading.RLock:
        """Return the lock serializing operations on ``queue``'s channel."""
        name = normalize_queue_name(queue)
        with self._locks_guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.RLock()
            return lock

    def get_channel(
        self,
        queue: Optional[str],
        durable: bool = False,
        exchange: Optional[str] = None,
        routing_key: Optional[str] = None,
        fair_dispatch: bool = False,
        exclusive: bool = False,
        auto_delete: bool = False,
    ) -> Channel:
        """
        Get or create the channel for ``queue``.

        The first access declares the queue. Prefetch is set to one the first
        time any caller asks for ``fair_dispatch``, even when the channel was
        opened earlier by a publisher. A later ``durable`` that differs from
        the declared one is logged and ignored. When ``exchange`` is given,
        the exchange is declared and the queue bound to it with
        ``routing_key`` (the queue name by default), once per distinct
        binding.
        """
        name = normalize_queue_name(queue)

        channel = self._channels.get(name)
        if channel is None:
            with self.lock_for(name):
                channel = self._channels.get(name)
                if channel is None:
                    channel = self._create(name, durable, exclusive, auto_delete)
                    self._channels[name] = channel
                    self._durable[name] = durable

        if durable != self._durable.get(name, durable):
            logger.warning(
                "Queue %s was declared with durable=%s; ignoring durable=%s",
                name,
                self._durable[name],
                durable,
            )
        if fair_dispatch and name not in self._fair_dispatch:
            self._ensure_fair_dispatch(channel, name)

        exchange = normalize_exchange_name(exchange)
        if exchange:
            self._ensure_binding(channel, name, exchange, routing_key or name, durable)
        return channel

    def _create(
        self,
        name: str,
        durable: bool,
        exclusive: bool,
        auto_delete: bool,
    ) -> Channel:
        channel = self._connection_manager.channel()
        self._declarer.declare_queue(
            channel,
            name,
            durable=durable,
            exclusive=exclusive,
            auto_delete=auto_delete,
        )
        logger.info("Channel created for queue %s", name)
        return channel

    def _ensure_fair_dispatch(self, channel: Channel, name: str) -> None:
        with self.lock_for(name):
            if name in self._fair_dispatch:
                return
            channel.basic.qos(prefetch_count=1)
            self._fair_dispatch.add(name)
            logger.debug("Prefetch set to 1 for queue %s", name)

    def _ensure_binding(
        self,
        channel: Channel,
        name: str,
        exchange: str,
        routing_key: str,
        durable: bool,
    ) -> None:
        key = (name, exchange, routing_key)
        if key in self._bindings:
            return
        with self.lock_for(name):
            if key in self._bindings:
                return
            self._declarer.declare_exchange(channel, exchange, durable=durable)
            self._declarer.bind(channel, name, exchange, routing_key)
            self._bindings.add(key)

    def channels(self) -> Dict[str, Channel]:
        """Snapshot of the pooled channels keyed by queue name."""
        return dict(self._channels)

    def __contains__(self, queue: object) -> bool:
        return isinstance(queue, str) and normalize_queue_name(queue) in self._channels

    def __len__(self) -> int:
        return len(self._channels)

    def close_all(self) -> None:
        """Close every pooled channel. Errors are logged, not raised."""
        for name, channel in self.channels().items():
            with self.lock_for(name):
                try:
                    if channel.is_open:
                        channel.close()
                        logger.info("Channel for queue %s closed", name)
                except Exception as e:
                    logger.exception("Error closing channel for queue %s: %s", name, e)
                finally:
                    self._channels.pop(name, None)
                    self._durable.pop(name, None)
                    self._fair_dispatch.discard(name)
        self._bindings.clear()
