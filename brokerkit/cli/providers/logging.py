"""Logging provider with OpenTelemetry support.

Example:
    ```python
    from brokerkit.cli.providers.logging import create_logging_context, logging_params

    app = typer.Typer()

    @app.callback()
    @logging_params
    def setup(ctx: typer.Context):
        create_logging_context("my-worker", **ctx.obj['logging'])
    ```
"""

import logging
import os
from dataclasses import dataclass
from typing import Annotated, Callable, Literal, Optional

import typer

from brokerkit.cli.params import OptionSpec, OptionValues, option_group
from brokerkit.logging import LogContext, configure_logging

logger = logging.getLogger(__name__)

VALID_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

# Type aliases for CLI parameters
LogLevel = Annotated[
    Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    typer.Option(help="Logging level"),
]
EnableOTLP = Annotated[bool, typer.Option("--log-otlp", help="Enable OTLP logging")]
JsonLogs = Annotated[bool, typer.Option("--log-json", help="Emit JSON log lines")]


@dataclass
class LoggingContext:
    """Typed logging context.

    Attributes:
        service_name: Service name attached to every record
        log_level: Configured logging level
        enable_otlp: Whether OTLP export is enabled
        json_format: Whether console output is JSON
        log_context: Global LogContext installed by configure_logging
    """

    service_name: str
    log_level: str
    enable_otlp: bool
    json_format: bool
    log_context: LogContext


def create_logging_context(
    service_name: str,
    log_level: str = "INFO",
    enable_otlp: bool = False,
    json_format: bool = False,
    otlp_endpoint: Optional[str] = None,
) -> LoggingContext:
    """Configure process logging and return its context.

    Args:
        service_name: Service name for records and the OTLP resource
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_otlp: Enable OTLP log export
        json_format: Emit JSON lines instead of plain text
        otlp_endpoint: OTLP endpoint URL (defaults to env or http://localhost:4317)
    """
    log_context = configure_logging(
        service_name=service_name,
        log_level=log_level,
        json_format=json_format,
        enable_otlp=enable_otlp,
        otlp_endpoint=otlp_endpoint,
    )
    logger.debug("Logging context created for service: %s", service_name)
    return LoggingContext(
        service_name=service_name,
        log_level=log_level,
        enable_otlp=enable_otlp,
        json_format=json_format,
        log_context=log_context,
    )


# ==============================================================================
# Decorator for injecting logging parameters
# ==============================================================================

def logging_params(func: Callable) -> Callable:
    """
    Decorator that injects logging parameters into the callback.

    Reads from CLI flags or environment variables:
    - LOG_OTLP (true/1/yes) or --log-otlp flag
    - LOG_LEVEL (DEBUG/INFO/WARNING/ERROR/CRITICAL) or --log-level flag
    - LOG_JSON (true/1/yes) or --log-json flag

    Environment variables take precedence if set.

    Usage:
        @app.callback()
        @logging_params
        def callback(ctx: typer.Context, ...):
            log_config = ctx.obj['logging']
            # log_config = {'enable_otlp': False, 'log_level': 'INFO', 'json_format': False}
    """
    specs = [
        OptionSpec('log_otlp', EnableOTLP, _env_flag('LOG_OTLP'), key='enable_otlp'),
        OptionSpec('log_level', LogLevel, _env_level() or 'INFO'),
        OptionSpec('log_json', JsonLogs, _env_flag('LOG_JSON'), key='json_format'),
    ]
    return option_group('logging', specs, resolve=_apply_env)(func)


def _apply_env(values: OptionValues) -> OptionValues:
    return {
        'enable_otlp': bool(values['enable_otlp']) or _env_flag('LOG_OTLP'),
        'log_level': _env_level() or values['log_level'],
        'json_format': bool(values['json_format']) or _env_flag('LOG_JSON'),
    }


def _env_level() -> Optional[str]:
    level = os.getenv('LOG_LEVEL', '').upper()
    return level if level in VALID_LEVELS else None


def _env_flag(name: str) -> bool:
    return os.getenv(name, '').lower() in ('true', '1', 'yes')
