"""
Consumer dispatch threads.

amqpstorm delivers pushed messages only while something runs
``channel.start_consuming()``. Each pooled channel gets at most one such
thread; every consumer registered on that channel is served by it.
"""

import logging
import threading
from typing import Dict

from amqpstorm import Channel
from amqpstorm.exception import AMQPError

logger = logging.getLogger(__name__)


class ConsumerDispatcher:
    """Starts and tracks one daemon consuming thread per queue channel."""

    def __init__(self, thread_prefix: str = "rmq-consumer") -> None:
        self._thread_prefix = thread_prefix
        self._threads: Dict[str, threading.Thread] = {}
        self._lock = threading.Lock()

    def ensure_running(self, queue: str, channel: Channel) -> threading.Thread:
        """Start the consuming thread for ``queue`` unless one is alive."""
        with self._lock:
            thread = self._threads.get(queue)
            if thread is not None and thread.is_alive():
                return thread

            thread = threading.Thread(
                target=self._consume,
                args=(queue, channel),
                name=f"{self._thread_prefix}-{queue}",
                daemon=True,
            )
            self._threads[queue] = thread
            thread.start()
            logger.debug("Started dispatch thread %s", thread.name)
            return thread

    def _consume(self, queue: str, channel: Channel) -> None:
        try:
            while True:
                channel.start_consuming()
                # start_consuming returns once the channel has no consumers left
                with self._lock:
                    if not channel.is_open or not channel.consumer_tags:
                        self._threads.pop(queue, None)
                        break
        except AMQPError as e:
            with self._lock:
                self._threads.pop(queue, None)
            if channel.is_open:
                logger.exception("Dispatch thread for queue %s failed: %s", queue, e)
            else:
                logger.info("Dispatch thread for queue %s stopped: channel closed", queue)
        logger.debug("Dispatch thread for queue %s exiting", queue)

    def threads(self) -> Dict[str, threading.Thread]:
        with self._lock:
            return dict(self._threads)

    def join(self, timeout: float = 1.0) -> None:
        """Wait briefly for dispatch threads to finish after channels close."""
        for thread in self.threads().values():
            if thread is not threading.current_thread():
                thread.join(timeout)
