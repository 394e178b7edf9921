"""RabbitMQ provider with SSL and recovery settings.

Example:
    ```python
    from brokerkit.cli.providers.rabbitmq import create_rabbitmq_context, rmq_params

    app = typer.Typer()

    @app.callback()
    @rmq_params
    def setup(ctx: typer.Context):
        rmq = create_rabbitmq_context(**ctx.obj['rabbitmq'])
        client = BrokerClient(rmq.to_connection_config())
    ```
"""

import logging
from dataclasses import dataclass
from typing import Annotated, Callable, Optional

import typer

from brokerkit.cli.params import OptionSpec, option_group
from brokerkit.rmq.config import DEFAULT_PORT, DEFAULT_VIRTUAL_HOST, ConnectionConfig

logger = logging.getLogger(__name__)


# Type aliases for CLI parameters
RabbitMQHost = Annotated[str, typer.Option(envvar="RABBITMQ_HOST")]
RabbitMQPort = Annotated[int, typer.Option(envvar="RABBITMQ_PORT")]
RabbitMQUser = Annotated[Optional[str], typer.Option(envvar="RABBITMQ_USER")]
RabbitMQPassword = Annotated[Optional[str], typer.Option(envvar="RABBITMQ_PASSWORD")]
RabbitMQVHost = Annotated[Optional[str], typer.Option(envvar="RABBITMQ_VHOST")]
RabbitMQHeartbeat = Annotated[
    int, typer.Option(envvar="RABBITMQ_HEARTBEAT", help="Heartbeat interval in seconds")
]
RabbitMQRecovery = Annotated[
    bool,
    typer.Option(envvar="RABBITMQ_RECOVERY", help="Retry connection setup on transient errors"),
]
RabbitMQRecoveryInterval = Annotated[
    float,
    typer.Option(envvar="RABBITMQ_RECOVERY_INTERVAL", help="Seconds between connection attempts"),
]
RabbitMQEnableSSL = Annotated[bool, typer.Option(envvar="RABBITMQ_ENABLE_SSL")]
RabbitMQSSLHostname = Annotated[
    Optional[str], typer.Option(envvar="RABBITMQ_SSL_HOSTNAME")
]


@dataclass
class RabbitMQContext:
    """Typed RabbitMQ context with connection configuration.

    Attributes:
        host: RabbitMQ host
        port: RabbitMQ port
        user: Optional username
        password: Optional password
        vhost: Virtual host (defaults to "/")
        heartbeat: Heartbeat interval in seconds
        recovery: Whether connection setup is retried
        recovery_interval: Seconds between connection attempts
        enable_ssl: Whether SSL is enabled
        ssl_hostname: Optional SSL hostname for verification
    """

    host: str
    port: int = DEFAULT_PORT
    user: Optional[str] = None
    password: Optional[str] = None
    vhost: str = DEFAULT_VIRTUAL_HOST
    heartbeat: int = 60
    recovery: bool = True
    recovery_interval: float = 5.0
    enable_ssl: bool = False
    ssl_hostname: Optional[str] = None

    def to_connection_config(self) -> ConnectionConfig:
        return ConnectionConfig(
            host=self.host,
            port=self.port,
            username=self.user or "guest",
            password=self.password or "guest",
            virtual_host=self.vhost or DEFAULT_VIRTUAL_HOST,
            heartbeat=self.heartbeat,
            automatic_recovery_enabled=self.recovery,
            network_recovery_interval=self.recovery_interval,
            ssl_enabled=self.enable_ssl,
            ssl_hostname=self.ssl_hostname or None,
        )


def create_rabbitmq_context(
    host: str,
    port: int = DEFAULT_PORT,
    user: Optional[str] = None,
    password: Optional[str] = None,
    vhost: Optional[str] = DEFAULT_VIRTUAL_HOST,
    heartbeat: int = 60,
    recovery: bool = True,
    recovery_interval: float = 5.0,
    enable_ssl: bool = False,
    ssl_hostname: Optional[str] = None,
) -> RabbitMQContext:
    """Create RabbitMQ context from CLI values.

    Raises:
        typer.BadParameter: If SSL is enabled without an SSL hostname
    """
    logger.debug("Creating RabbitMQ context for host: %s:%s", host, port)

    if enable_ssl and not ssl_hostname:
        raise typer.BadParameter(
            "SSL is enabled but no hostname provided. Please set RABBITMQ_SSL_HOSTNAME"
        )

    return RabbitMQContext(
        host=host,
        port=port,
        user=user,
        password=password,
        vhost=vhost or DEFAULT_VIRTUAL_HOST,
        heartbeat=heartbeat,
        recovery=recovery,
        recovery_interval=recovery_interval,
        enable_ssl=enable_ssl,
        ssl_hostname=ssl_hostname,
    )


# ==============================================================================
# Decorator for injecting RabbitMQ parameters
# ==============================================================================

# Collected under the keyword names create_rabbitmq_context takes
RABBITMQ_OPTIONS = [
    OptionSpec('rabbitmq_host', RabbitMQHost, "localhost", key='host'),
    OptionSpec('rabbitmq_port', RabbitMQPort, DEFAULT_PORT, key='port'),
    OptionSpec('rabbitmq_user', RabbitMQUser, "guest", key='user'),
    OptionSpec('rabbitmq_password', RabbitMQPassword, "guest", key='password'),
    OptionSpec('rabbitmq_vhost', RabbitMQVHost, DEFAULT_VIRTUAL_HOST, key='vhost'),
    OptionSpec('rabbitmq_heartbeat', RabbitMQHeartbeat, 60, key='heartbeat'),
    OptionSpec('rabbitmq_recovery', RabbitMQRecovery, True, key='recovery'),
    OptionSpec('rabbitmq_recovery_interval', RabbitMQRecoveryInterval, 5.0, key='recovery_interval'),
    OptionSpec('rabbitmq_enable_ssl', RabbitMQEnableSSL, False, key='enable_ssl'),
    OptionSpec('rabbitmq_ssl_hostname', RabbitMQSSLHostname, "", key='ssl_hostname'),
]


def rmq_params(func: Callable) -> Callable:
    """
    Decorator that injects RabbitMQ parameters into the callback.

    Usage:
        @app.callback()
        @rmq_params
        def callback(ctx: typer.Context, ...):
            rmq = ctx.obj['rabbitmq']
            # rmq = {'host': ..., 'port': ..., 'user': ..., ...}
    """
    return option_group('rabbitmq', RABBITMQ_OPTIONS)(func)
