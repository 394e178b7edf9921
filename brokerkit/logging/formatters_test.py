"""Tests for StructuredFormatter."""

import json
import logging
import sys

from brokerkit.logging.context import LogContext, clear_context, scoped_context
from brokerkit.logging.formatters import StructuredFormatter


def _record(msg="hello", exc_info=None, **extra):
    record = logging.LogRecord(
        name="brokerkit.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:

    def setup_method(self):
        clear_context()

    def test_basic_fields(self):
        data = json.loads(StructuredFormatter().format(_record()))

        assert data["severity"] == "INFO"
        assert data["logger"] == "brokerkit.test"
        assert data["message"] == "hello"
        assert data["source"]["line"] == 10
        assert "trace_id" not in data

    def test_global_and_scoped_context(self):
        formatter = StructuredFormatter(LogContext(app_name="svc", environment="test"))

        with scoped_context(queue="orders", delivery_tag=4):
            data = json.loads(formatter.format(_record()))

        assert data["app_name"] == "svc"
        assert data["queue"] == "orders"
        assert data["delivery_tag"] == 4

    def test_extra_fields(self):
        data = json.loads(StructuredFormatter().format(_record(routing_key="orders.created")))
        assert data["routing_key"] == "orders.created"

    def test_exception_details(self):
        try:
            raise ValueError("bad payload")
        except ValueError:
            exc_info = sys.exc_info()

        data = json.loads(StructuredFormatter().format(_record(exc_info=exc_info)))

        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "bad payload"
        assert "Traceback" in data["exception"]["stacktrace"]

    def test_source_can_be_omitted(self):
        data = json.loads(StructuredFormatter(include_source=False).format(_record()))
        assert "source" not in data
