"""
RabbitMQ configuration dataclasses.

This module provides configuration objects for the broker connection, the
routing metadata attached to message types and the outgoing message envelope.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Optional

DEFAULT_VIRTUAL_HOST = "/"
DEFAULT_PORT = 5672
DEFAULT_RPC_TIMEOUT = 30.0
UNDEFINED_QUEUE_NAME = "undefined_queue"

PERSISTENT_DELIVERY_MODE = 2
JSON_CONTENT_TYPE = "application/json"


class ExchangeType(StrEnum):
    """AMQP exchange types."""
    # NOTE: exchanges declared by this library are always direct
    DIRECT = "direct"
    FANOUT = "fanout"
    TOPIC = "topic"


@dataclass
class ConnectionConfig:
    """
    Connection parameters for the broker.

    Attributes:
        host: RabbitMQ server hostname
        port: RabbitMQ server port (usually 5672 or 5671 for SSL)
        username: Authentication username
        password: Authentication password
        virtual_host: Virtual host to connect to (empty means "/")
        heartbeat: Heartbeat interval in seconds
        automatic_recovery_enabled: Retry connection establishment on transient errors
        network_recovery_interval: Seconds to wait between connection attempts
        recovery_attempts: Total connection attempts when recovery is enabled
        ssl_enabled: Whether to use SSL/TLS
        ssl_hostname: Server hostname for certificate verification
    """
    host: str = "localhost"
    port: int = DEFAULT_PORT
    username: str = "guest"
    password: str = "guest"
    virtual_host: str = DEFAULT_VIRTUAL_HOST
    heartbeat: int = 60
    automatic_recovery_enabled: bool = True
    network_recovery_interval: float = 5.0
    recovery_attempts: int = 3
    ssl_enabled: bool = False
    ssl_hostname: Optional[str] = None

    def resolved_virtual_host(self) -> str:
        """Return the virtual host, falling back to "/" when blank."""
        if self.virtual_host is None or not self.virtual_host.strip():
            return DEFAULT_VIRTUAL_HOST
        return self.virtual_host


@dataclass(frozen=True)
class RoutingMetadata:
    """
    Where messages of a given type live on the broker.

    The routing key of a type is its queue name.
    """
    exchange: str
    queue: str
    durable: bool = False

    @property
    def routing_key(self) -> str:
        return self.queue


@dataclass
class Envelope:
    """An outgoing message and the transport properties it carries."""
    exchange: str
    routing_key: str
    body: str
    correlation_id: Optional[str] = None
    reply_to: Optional[str] = None
    persistent: bool = False

    def properties(self) -> dict:
        """Build the AMQP basic properties for this envelope."""
        props = {"content_type": JSON_CONTENT_TYPE}
        if self.persistent:
            props["delivery_mode"] = PERSISTENT_DELIVERY_MODE
        if self.correlation_id is not None:
            props["correlation_id"] = self.correlation_id
        if self.reply_to is not None:
            props["reply_to"] = self.reply_to
        return props


def normalize_queue_name(queue: Optional[str]) -> str:
    """Strip a queue name, substituting a placeholder for blank names."""
    if queue is None or not queue.strip():
        return UNDEFINED_QUEUE_NAME
    return queue.strip()


def normalize_exchange_name(exchange: Optional[str]) -> str:
    """Strip an exchange name; blank names mean the default exchange."""
    if exchange is None:
        return ""
    return exchange.strip()
