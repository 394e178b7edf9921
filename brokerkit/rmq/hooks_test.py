"""Tests for failure hooks."""

import logging
import unittest
from unittest.mock import Mock

from brokerkit.rmq.errors import HandlerError
from brokerkit.rmq.hooks import log_handler_failure, report_failure


class TestReportFailure(unittest.TestCase):

    def test_wraps_cause(self):
        hook = Mock()
        cause = ValueError("bad payload")

        error = report_failure(hook, cause, "orders", 7, correlation_id="abc", body="{}")

        hook.assert_called_once_with(error)
        self.assertIsInstance(error, HandlerError)
        self.assertIs(error.__cause__, cause)
        self.assertEqual(error.delivery_tag, 7)
        self.assertEqual(error.correlation_id, "abc")
        self.assertEqual(error.body, "{}")

    def test_hook_errors_are_suppressed(self):
        hook = Mock(side_effect=RuntimeError("hook failed"))
        with self.assertLogs("brokerkit.rmq.hooks", level=logging.ERROR):
            report_failure(hook, ValueError("x"), "orders", 1)

    def test_default_hook_logs(self):
        with self.assertLogs("brokerkit.rmq.hooks", level=logging.ERROR) as logs:
            report_failure(None, ValueError("bad payload"), "orders", 3)

        self.assertIn("orders", logs.output[0])
        self.assertIn("bad payload", logs.output[0])

    def test_log_handler_failure_without_cause(self):
        with self.assertLogs("brokerkit.rmq.hooks", level=logging.ERROR):
            log_handler_failure(HandlerError("orders", 1))


if __name__ == "__main__":
    unittest.main()
