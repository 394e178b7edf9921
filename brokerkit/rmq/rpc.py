"""
Request/reply over RabbitMQ.

RpcClient turns the asynchronous transport into a blocking call. Each client
owns an exclusive reply queue; a single dispatch thread consumes it and
resolves the pending call whose correlation id matches the reply. Replies
carrying any other id never unblock a call.

RpcServer consumes requests, runs a handler and always replies (echoing the
correlation id) and acknowledges, even when the handler raises.
"""

import logging
import threading
import time
import uuid
from concurrent.futures import CancelledError, Future, TimeoutError as FutureTimeoutError
from enum import StrEnum
from typing import Any, Callable, Dict, List, Optional

from amqpstorm import Channel, Message

from brokerkit.logging import scoped_context
from brokerkit.rmq.channel_pool import ChannelPool
from brokerkit.rmq.codec import JsonCodec, to_wire
from brokerkit.rmq.config import (
    DEFAULT_RPC_TIMEOUT,
    JSON_CONTENT_TYPE,
    Envelope,
    normalize_queue_name,
)
from brokerkit.rmq.dispatch import ConsumerDispatcher
from brokerkit.rmq.errors import RpcTimeoutError
from brokerkit.rmq.hooks import FailureHook, report_failure
from brokerkit.rmq.interface import MessageCodec
from brokerkit.rmq.publisher import Publisher
from brokerkit.rmq.routing import RoutingRegistry
from brokerkit.rmq.subscriber import Subscription

logger = logging.getLogger(__name__)

REPLY_QUEUE_PREFIX = "rpc.reply"


class CallState(StrEnum):
    CREATED = "created"
    PUBLISHED = "published"
    WAITING = "waiting"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class PendingRpcCall:
    """
    One in-flight RPC call.

    The deadline is fixed when the request is published. ``result()`` blocks
    until the matching reply arrives or the deadline passes; ``cancel()``
    abandons the call.
    """

    def __init__(
        self,
        correlation_id: str,
        queue: str,
        timeout: float,
        codec: MessageCodec,
        response_type: Optional[type] = None,
        discard: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.correlation_id = correlation_id
        self.queue = queue
        self.timeout = timeout
        self.deadline: Optional[float] = None
        self.state = CallState.CREATED
        self._codec = codec
        self._response_type = response_type
        self._discard = discard
        self._future: Future = Future()

    def start_clock(self) -> None:
        self.deadline = time.monotonic() + self.timeout

    def resolve(self, body: Any) -> bool:
        """Complete the call with a raw reply body; False if it was cancelled."""
        if not self._future.set_running_or_notify_cancel():
            return False
        self._future.set_result(body)
        return True

    def done(self) -> bool:
        return self._future.done()

    def cancel(self) -> bool:
        cancelled = self._future.cancel()
        if cancelled:
            self.state = CallState.CANCELLED
            self._forget()
        return cancelled

    def _forget(self) -> None:
        if self._discard is not None:
            self._discard(self.correlation_id)

    def result(self) -> Any:
        """
        Wait for the reply and return it decoded.

        Raises:
            RpcTimeoutError: If no matching reply arrived before the deadline
            concurrent.futures.CancelledError: If the call was cancelled
        """
        if self.deadline is None:
            self.start_clock()
        if self.state in (CallState.CREATED, CallState.PUBLISHED):
            self.state = CallState.WAITING

        while True:
            remaining = self.deadline - time.monotonic()
            if remaining <= 0 and not self._future.done():
                self.state = CallState.TIMED_OUT
                self._forget()
                raise RpcTimeoutError(self.correlation_id, self.queue, self.timeout)
            try:
                body = self._future.result(timeout=max(remaining, 0))
                break
            except FutureTimeoutError:
                continue
            except CancelledError:
                self.state = CallState.CANCELLED
                raise

        self.state = CallState.COMPLETED
        return self._codec.decode(body, self._response_type)


class RpcClient:
    """Blocking request/reply client."""

    def __init__(
        self,
        pool: ChannelPool,
        publisher: Publisher,
        registry: Optional[RoutingRegistry] = None,
        codec: Optional[MessageCodec] = None,
        dispatcher: Optional[ConsumerDispatcher] = None,
        reply_queue: Optional[str] = None,
    ) -> None:
        self._pool = pool
        self._publisher = publisher
        self._registry = registry or RoutingRegistry()
        self._codec = codec or JsonCodec()
        self._dispatcher = dispatcher or ConsumerDispatcher("rmq-rpc-reply")
        self._reply_queue = reply_queue or f"{REPLY_QUEUE_PREFIX}.{uuid.uuid4().hex}"
        self._reply_subscription: Optional[Subscription] = None
        self._reply_lock = threading.Lock()
        self._pending: Dict[str, PendingRpcCall] = {}
        self._pending_lock = threading.Lock()

    @property
    def reply_queue(self) -> str:
        return self._reply_queue

    def pending(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    def _ensure_reply_consumer(self) -> None:
        if self._reply_subscription is not None:
            return
        with self._reply_lock:
            if self._reply_subscription is not None:
                return
            channel = self._pool.get_channel(
                self._reply_queue,
                durable=False,
                exclusive=True,
                auto_delete=True,
            )
            with self._pool.lock_for(self._reply_queue):
                tag = channel.basic.consume(
                    callback=self._on_reply,
                    queue=self._reply_queue,
                    no_ack=True,
                    exclusive=True,
                )
            self._dispatcher.ensure_running(self._reply_queue, channel)
            self._reply_subscription = Subscription(
                self._reply_queue, tag, channel, self._pool.lock_for(self._reply_queue)
            )
            logger.info("RPC reply consumer started on %s", self._reply_queue)

    def _on_reply(self, message: Message) -> None:
        correlation_id = message.correlation_id
        with self._pending_lock:
            call = self._pending.pop(correlation_id, None) if correlation_id else None

        if call is None:
            logger.warning(
                "Dropping reply with unknown correlation id %s on %s",
                correlation_id,
                self._reply_queue,
            )
            return
        if not call.resolve(message.body):
            logger.debug("Reply %s arrived for a cancelled call", correlation_id)

    def _discard(self, correlation_id: str) -> None:
        with self._pending_lock:
            self._pending.pop(correlation_id, None)

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
        """
        Publish a request and return its pending call without waiting.

        Transport errors while publishing propagate unwrapped.
        """
        queue = normalize_queue_name(queue)
        self._ensure_reply_consumer()

        call = PendingRpcCall(
            correlation_id=uuid.uuid4().hex,
            queue=queue,
            timeout=timeout,
            codec=self._codec,
            response_type=response_type,
            discard=self._discard,
        )
        with self._pending_lock:
            self._pending[call.correlation_id] = call

        envelope = Envelope(
            exchange=exchange or "",
            routing_key=routing_key,
            body=self._publisher.encode(body),
            correlation_id=call.correlation_id,
            reply_to=self._reply_queue,
            persistent=persistent,
        )
        call.start_clock()
        try:
            self._publisher.send(queue, envelope, durable=persistent)
        except Exception:
            self._discard(call.correlation_id)
            raise
        if call.state == CallState.CREATED:
            call.state = CallState.PUBLISHED
        logger.debug("RPC request %s published to queue %s", call.correlation_id, queue)
        return call

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
        """
        Send a request and block until the matching reply arrives.

        Args:
            exchange: Exchange the request is published to
            queue: Request queue (declared and bound if needed)
            routing_key: Routing key for the request
            body: Request payload
            persistent: Publish persistently to durable topology
            timeout: Seconds to wait, measured from publish
            response_type: Optional type the reply is decoded into

        Raises:
            RpcTimeoutError: If no matching reply arrives within ``timeout``
        """
        return self.call_async(
            exchange,
            queue,
            routing_key,
            body,
            persistent=persistent,
            timeout=timeout,
            response_type=response_type,
        ).result()

    def call_message(self, message: Any, timeout: float = DEFAULT_RPC_TIMEOUT) -> Any:
        """
        Call using the routing registered for ``type(message)``.

        The reply is decoded into the same type as the request.

        Raises:
            RoutingNotConfiguredError: If the message type is not registered
        """
        route = self._registry.resolve_instance(message)
        return self.call(
            route.exchange,
            route.queue,
            route.routing_key,
            message,
            persistent=route.durable,
            timeout=timeout,
            response_type=type(message),
        )

    def shutdown(self) -> None:
        """Cancel pending calls and the reply consumer."""
        with self._pending_lock:
            pending = list(self._pending.values())
            self._pending.clear()
        for call in pending:
            call.cancel()
        with self._reply_lock:
            subscription, self._reply_subscription = self._reply_subscription, None
        if subscription is not None:
            subscription.cancel()


class RpcServer:
    """Serves requests from a queue and replies to each caller."""

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
        self._dispatcher = dispatcher or ConsumerDispatcher("rmq-rpc-server")
        self._subscriptions: List[Subscription] = []

    def _on_request(
        self,
        queue: str,
        channel: Channel,
        handler: Callable[[Any], Any],
        request_type: Optional[type],
    ) -> Callable[[Message], None]:
        def on_request(message: Message) -> None:
            delivery_tag = message.delivery_tag
            correlation_id = message.correlation_id
            reply_to = message.reply_to
            reply_properties = {"content_type": JSON_CONTENT_TYPE}
            if correlation_id is not None:
                reply_properties["correlation_id"] = correlation_id

            # Without a handler result the caller gets its request back unchanged
            reply_body = message.body
            with scoped_context(
                queue=queue,
                delivery_tag=delivery_tag,
                correlation_id=correlation_id,
            ):
                try:
                    request = self._codec.decode(message.body, request_type)
                    reply_body = to_wire(self._codec, handler(request))
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
                        try:
                            self._reply(channel, reply_to, reply_body, reply_properties)
                        except Exception as e:
                            logger.exception(
                                "Failed to publish reply %s to %s: %s",
                                correlation_id,
                                reply_to,
                                e,
                            )
                        finally:
                            channel.basic.ack(delivery_tag=delivery_tag)

        return on_request

    def _reply(
        self,
        channel: Channel,
        reply_to: Optional[str],
        body: str,
        properties: dict,
    ) -> None:
        if not reply_to:
            logger.warning(
                "Request %s has no reply_to; acknowledging without a reply",
                properties.get("correlation_id"),
            )
            return
        # The default exchange routes straight to the queue named by reply_to
        channel.basic.publish(
            body=body,
            routing_key=reply_to,
            exchange="",
            properties=properties,
        )
        logger.debug("Reply %s sent to %s", properties.get("correlation_id"), reply_to)

    def serve(
        self,
        exchange: str,
        queue: str,
        durable: bool,
        handler: Callable[[Any], Any],
        request_type: Optional[type] = None,
    ) -> Subscription:
        """
        Install the request consumer and return immediately.

        The queue is bound to ``exchange`` with its own name as routing key.
        """
        queue = normalize_queue_name(queue)
        channel = self._pool.get_channel(
            queue,
            durable=durable,
            exchange=exchange,
            routing_key=queue,
            fair_dispatch=True,
        )
        with self._pool.lock_for(queue):
            consumer_tag = channel.basic.consume(
                callback=self._on_request(queue, channel, handler, request_type),
                queue=queue,
                no_ack=False,
            )
        self._dispatcher.ensure_running(queue, channel)

        subscription = Subscription(queue, consumer_tag, channel, self._pool.lock_for(queue))
        self._subscriptions.append(subscription)
        logger.info("RPC server listening on queue %s (consumer %s)", queue, consumer_tag)
        return subscription

    def serve_message(self, message_type: type, handler: Callable[[Any], Any]) -> Subscription:
        """
        Serve the queue registered for ``message_type``.

        Raises:
            RoutingNotConfiguredError: If ``message_type`` is not registered
        """
        route = self._registry.resolve(message_type)
        return self.serve(
            route.exchange,
            route.queue,
            route.durable,
            handler,
            request_type=message_type,
        )

    def shutdown(self) -> None:
        logger.info("Shutting down RpcServer...")
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()
