"""
RabbitMQ messaging on top of amqpstorm.

This package provides:
- A single shared connection per client with lazy, race-free creation
- One channel per queue, serialized with per-queue locks
- Publish/subscribe, on-demand pull and blocking request/reply (RPC)
- An explicit registry mapping message types to exchange/queue routing
"""

from brokerkit.rmq.channel_pool import ChannelPool
from brokerkit.rmq.client import BrokerClient
from brokerkit.rmq.codec import JsonCodec
from brokerkit.rmq.config import (
    DEFAULT_RPC_TIMEOUT,
    UNDEFINED_QUEUE_NAME,
    ConnectionConfig,
    Envelope,
    RoutingMetadata,
)
from brokerkit.rmq.connection import (
    ConnectionManager,
    create_connection,
    get_rabbitmq_ssl_options,
)
from brokerkit.rmq.errors import (
    BrokerConnectionError,
    HandlerError,
    RabbitMQError,
    RoutingNotConfiguredError,
    RpcTimeoutError,
)
from brokerkit.rmq.hooks import FailureHook, log_handler_failure
from brokerkit.rmq.interface import MessageCodec
from brokerkit.rmq.publisher import Publisher
from brokerkit.rmq.puller import Puller
from brokerkit.rmq.routing import RoutingRegistry
from brokerkit.rmq.rpc import CallState, PendingRpcCall, RpcClient, RpcServer
from brokerkit.rmq.subscriber import Subscriber, Subscription
from brokerkit.rmq.topology import TopologyDeclarer

__all__ = [
    # Client
    "BrokerClient",
    # Config
    "DEFAULT_RPC_TIMEOUT",
    "UNDEFINED_QUEUE_NAME",
    "ConnectionConfig",
    "Envelope",
    "RoutingMetadata",
    "RoutingRegistry",
    # Connection
    "ChannelPool",
    "ConnectionManager",
    "TopologyDeclarer",
    "create_connection",
    "get_rabbitmq_ssl_options",
    # Errors
    "BrokerConnectionError",
    "HandlerError",
    "RabbitMQError",
    "RoutingNotConfiguredError",
    "RpcTimeoutError",
    "FailureHook",
    "log_handler_failure",
    # Codec
    "JsonCodec",
    "MessageCodec",
    # Roles
    "Publisher",
    "Puller",
    "Subscriber",
    "Subscription",
    "CallState",
    "PendingRpcCall",
    "RpcClient",
    "RpcServer",
]
