"""Logging configuration and setup.

Console output is always installed; OTLP export is opt-in.
"""

import logging
import os
import sys
from typing import Optional

from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource

from brokerkit.logging.context import LogContext, set_global_context
from brokerkit.logging.formatters import StructuredFormatter

_configured = False
_global_context: Optional[LogContext] = None


def configure_logging(
    service_name: Optional[str] = None,
    environment: Optional[str] = None,
    log_level: str = "INFO",
    json_format: bool = False,
    enable_otlp: bool = False,
    otlp_endpoint: Optional[str] = None,
    force_reconfigure: bool = False,
    **context_kwargs,
) -> LogContext:
    """Configure logging for a process using the broker client.

    Call once at startup. Values not passed are auto-detected from the
    environment (APP_NAME, APP_ENV, APP_VERSION, HOSTNAME).

    Args:
        service_name: Service name (defaults to APP_NAME or "brokerkit")
        environment: Deployment environment (defaults to APP_ENV or "development")
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Emit JSON lines via StructuredFormatter instead of plain text
        enable_otlp: Also export records over OTLP/gRPC
        otlp_endpoint: OTLP collector endpoint (defaults to env or http://localhost:4317)
        force_reconfigure: Replace handlers installed by an earlier call
        **context_kwargs: Extra attributes added to every record

    Returns:
        LogContext: The configured global log context
    """
    global _configured, _global_context

    if _configured and not force_reconfigure:
        return _global_context

    root_logger = logging.getLogger()
    if force_reconfigure:
        root_logger.handlers.clear()

    context = LogContext.from_environment()
    if service_name:
        context.app_name = service_name
    if environment:
        context.environment = environment
    for key, value in context_kwargs.items():
        if hasattr(context, key):
            setattr(context, key, value)
        else:
            context.custom[key] = value

    if not context.app_name:
        context.app_name = "brokerkit"
    if not context.environment:
        context.environment = "development"

    set_global_context(context)
    _global_context = context

    root_logger.setLevel(getattr(logging, log_level.upper()))

    if enable_otlp:
        _setup_otlp(context, otlp_endpoint)
    _setup_console(context, json_format)

    # Reduce noise from the transport
    logging.getLogger("amqpstorm").setLevel(logging.WARNING)

    _configured = True

    logging.getLogger(__name__).debug(
        "Logging configured for %s (json=%s, otlp=%s)",
        context.app_name,
        json_format,
        enable_otlp,
    )
    return context


def _setup_otlp(context: LogContext, otlp_endpoint: Optional[str]) -> None:
    resource_attrs = {
        "service.name": context.app_name,
        "service.version": context.version or "unknown",
        "deployment.environment": context.environment or "unknown",
    }
    if context.hostname:
        resource_attrs["host.name"] = context.hostname

    logger_provider = LoggerProvider(resource=Resource.create(resource_attrs))
    set_logger_provider(logger_provider)

    endpoint = (
        otlp_endpoint
        or os.getenv("OTEL_EXPORTER_OTLP_LOGS_ENDPOINT")
        or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
        or "http://localhost:4317"
    )
    logger_provider.add_log_record_processor(
        BatchLogRecordProcessor(OTLPLogExporter(endpoint=endpoint, insecure=True))
    )

    handler = LoggingHandler(level=logging.NOTSET, logger_provider=logger_provider)
    logging.getLogger().addHandler(handler)


def _setup_console(context: LogContext, json_format: bool) -> None:
    handler = logging.StreamHandler(sys.stdout)
    if json_format:
        handler.setFormatter(StructuredFormatter(context))
    else:
        handler.setFormatter(logging.Formatter(
            f"%(asctime)s - [{context.app_name}] %(name)s - %(levelname)s - %(message)s"
        ))
    logging.getLogger().addHandler(handler)


def is_configured() -> bool:
    return _configured
