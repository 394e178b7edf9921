"""Typer option providers for the brokerkit CLI."""

from brokerkit.cli.providers.logging import LoggingContext, create_logging_context, logging_params
from brokerkit.cli.providers.rabbitmq import RabbitMQContext, create_rabbitmq_context, rmq_params

__all__ = [
    "LoggingContext",
    "create_logging_context",
    "logging_params",
    "RabbitMQContext",
    "create_rabbitmq_context",
    "rmq_params",
]
