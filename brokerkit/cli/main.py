import json
import logging
import time
from typing import Annotated, Any, Optional

import typer

from brokerkit.cli.providers.logging import create_logging_context, logging_params
from brokerkit.cli.providers.rabbitmq import create_rabbitmq_context, rmq_params
from brokerkit.rmq import BrokerClient, RpcTimeoutError
from brokerkit.rmq.config import DEFAULT_RPC_TIMEOUT

app = typer.Typer(help="Publish, pull and call over RabbitMQ.")
logger = logging.getLogger(__name__)

SERVICE_NAME = "brokerkit-cli"

Exchange = Annotated[str, typer.Argument(help="Exchange name; use '' for the default exchange")]
Queue = Annotated[str, typer.Argument(help="Queue name")]
Body = Annotated[str, typer.Argument(help="JSON message body")]
RoutingKey = Annotated[
    Optional[str], typer.Option(help="Routing key (defaults to the queue name)")
]
Durable = Annotated[bool, typer.Option(help="Declare durable topology and persist messages")]


def _parse_body(body: str) -> str:
    try:
        json.loads(body)
    except ValueError as e:
        raise typer.BadParameter(f"Body is not valid JSON: {e}") from e
    return body


def _client(ctx: typer.Context) -> BrokerClient:
    client = ctx.obj.get('client')
    if client is None:
        rmq = create_rabbitmq_context(**ctx.obj['rabbitmq'])
        client = BrokerClient(
            rmq.to_connection_config(),
            connection_factory=ctx.obj.get('connection_factory'),
        )
        ctx.obj['client'] = client
        ctx.call_on_close(client.dispose)
    return client


def _echo_json(value: Any) -> None:
    typer.echo(json.dumps(value, ensure_ascii=False))


@app.callback()
@rmq_params
@logging_params
def callback(ctx: typer.Context):
    log_config = ctx.obj.get('logging', {})
    create_logging_context(SERVICE_NAME, **log_config)


@app.command()
def publish(
    ctx: typer.Context,
    exchange: Exchange,
    queue: Queue,
    body: Body,
    routing_key: RoutingKey = None,
    durable: Durable = False,
):
    """Publish one message."""
    payload = _parse_body(body)
    _client(ctx).publish(exchange, queue, routing_key or queue, payload, persistent=durable)
    typer.echo(f"Published to {exchange or '(default)'}/{routing_key or queue}")


@app.command()
def pull(
    ctx: typer.Context,
    queue: Queue,
    durable: Durable = False,
):
    """Fetch and acknowledge at most one message."""
    if not _client(ctx).pull(queue, durable, _echo_json):
        typer.echo(f"Queue {queue} is empty")


@app.command()
def call(
    ctx: typer.Context,
    exchange: Exchange,
    queue: Queue,
    body: Body,
    routing_key: RoutingKey = None,
    timeout: Annotated[float, typer.Option(help="Seconds to wait for the reply")] = DEFAULT_RPC_TIMEOUT,
):
    """Send an RPC request and print the reply."""
    payload = _parse_body(body)
    try:
        reply = _client(ctx).call(exchange, queue, routing_key or queue, payload, timeout=timeout)
    except RpcTimeoutError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)
    _echo_json(reply)


@app.command("serve-echo")
def serve_echo(
    ctx: typer.Context,
    exchange: Exchange,
    queue: Queue,
    durable: Durable = False,
    duration: Annotated[
        Optional[float], typer.Option(help="Stop after this many seconds (default: run until interrupted)")
    ] = None,
):
    """Answer RPC requests on a queue with the request itself."""
    _client(ctx).serve(exchange, queue, durable, lambda request: request)
    typer.echo(f"Echoing requests on {queue}")

    started = time.monotonic()
    try:
        while duration is None or time.monotonic() - started < duration:
            time.sleep(0.2)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


def main():
    app(obj={})


if __name__ == "__main__":
    main()
