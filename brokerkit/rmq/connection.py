"""
RabbitMQ connection management.

A ConnectionManager owns exactly one amqpstorm connection, created lazily on
first use and shared by every channel the client opens.
"""

import logging
import ssl
import threading
from typing import Callable, Optional

import amqpstorm

from brokerkit.retry import RetryConfig, retry, is_transient_rmq_error
from brokerkit.rmq.config import ConnectionConfig
from brokerkit.rmq.errors import BrokerConnectionError

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[ConnectionConfig], amqpstorm.Connection]


def get_rabbitmq_ssl_options(hostname: Optional[str]) -> dict:
    """
    Create SSL options for a RabbitMQ connection.

    Raises:
        ValueError: If hostname is empty or None
    """
    if hostname is None or len(hostname) == 0:
        raise ValueError(
            "SSL is enabled but no hostname provided. "
            "Please set RABBITMQ_SSL_HOSTNAME"
        )
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.load_default_certs(purpose=ssl.Purpose.SERVER_AUTH)
    return {
        "context": context,
        "server_hostname": hostname,
    }


def create_connection(config: ConnectionConfig) -> amqpstorm.Connection:
    """Open a new amqpstorm connection from ``config``."""
    ssl_options = None
    if config.ssl_enabled:
        ssl_options = get_rabbitmq_ssl_options(config.ssl_hostname)

    return amqpstorm.Connection(
        hostname=config.host,
        username=config.username,
        password=config.password,
        port=config.port,
        virtual_host=config.resolved_virtual_host(),
        heartbeat=config.heartbeat,
        ssl=config.ssl_enabled,
        ssl_options=ssl_options,
    )


class ConnectionManager:
    """
    Owner of the single shared broker connection.

    ``connect()`` is race free: concurrent first callers all receive the same
    connection. A failed attempt caches nothing, so a later call may retry.
    """

    def __init__(
        self,
        config: ConnectionConfig,
        connection_factory: Optional[ConnectionFactory] = None,
    ) -> None:
        self._config = config
        self._connection_factory = connection_factory or create_connection
        self._connection: Optional[amqpstorm.Connection] = None
        self._lock = threading.Lock()

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    def _retry_config(self) -> RetryConfig:
        attempts = self._config.recovery_attempts if self._config.automatic_recovery_enabled else 1
        return RetryConfig.fixed_interval(
            attempts=attempts,
            interval=self._config.network_recovery_interval,
            exception_filter=is_transient_rmq_error,
        )

    def _open(self) -> amqpstorm.Connection:
        @retry(self._retry_config())
        def _establish():
            return self._connection_factory(self._config)

        try:
            return _establish()
        except Exception as e:
            logger.error(
                "Failed to connect to RabbitMQ at %s:%s%s: %s",
                self._config.host,
                self._config.port,
                self._config.resolved_virtual_host(),
                e,
            )
            raise BrokerConnectionError(
                f"Unable to connect to RabbitMQ at {self._config.host}:{self._config.port}"
            ) from e

    def connect(self) -> amqpstorm.Connection:
        """
        Return the shared connection, creating it if none exists.

        Raises:
            BrokerConnectionError: If the broker cannot be reached
        """
        connection = self._connection
        if connection is not None:
            return connection

        with self._lock:
            if self._connection is None:
                self._connection = self._open()
                logger.info(
                    "RabbitMQ connection established to %s:%s (vhost %s)",
                    self._config.host,
                    self._config.port,
                    self._config.resolved_virtual_host(),
                )
            return self._connection

    def channel(self) -> amqpstorm.Channel:
        """Open a new channel on the shared connection."""
        return self.connect().channel()

    def is_open(self) -> bool:
        connection = self._connection
        return connection is not None and connection.is_open

    def close(self) -> None:
        """
        Close and forget the shared connection.

        Errors are logged, not raised. A later ``connect()`` opens a new one.
        """
        with self._lock:
            connection, self._connection = self._connection, None

        if connection is None:
            return
        try:
            if connection.is_open:
                connection.close()
                logger.info("RabbitMQ connection closed")
        except Exception as e:
            logger.warning("Error closing RabbitMQ connection: %s", e)

    def __enter__(self) -> "ConnectionManager":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
