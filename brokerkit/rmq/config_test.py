"""Tests for RabbitMQ configuration helpers."""

import unittest

from brokerkit.rmq.config import (
    ConnectionConfig,
    Envelope,
    UNDEFINED_QUEUE_NAME,
    normalize_exchange_name,
    normalize_queue_name,
)


class TestConnectionConfig(unittest.TestCase):

    def test_defaults(self):
        config = ConnectionConfig()
        self.assertEqual(config.port, 5672)
        self.assertEqual(config.heartbeat, 60)
        self.assertTrue(config.automatic_recovery_enabled)
        self.assertEqual(config.network_recovery_interval, 5.0)
        self.assertEqual(config.resolved_virtual_host(), "/")

    def test_blank_virtual_host_means_root(self):
        self.assertEqual(ConnectionConfig(virtual_host="").resolved_virtual_host(), "/")
        self.assertEqual(ConnectionConfig(virtual_host="  ").resolved_virtual_host(), "/")

    def test_custom_virtual_host(self):
        self.assertEqual(ConnectionConfig(virtual_host="dev").resolved_virtual_host(), "dev")


class TestEnvelope(unittest.TestCase):

    def test_transient_properties(self):
        props = Envelope(exchange="e", routing_key="k", body="{}").properties()
        self.assertEqual(props, {"content_type": "application/json"})

    def test_persistent_rpc_properties(self):
        props = Envelope(
            exchange="e",
            routing_key="k",
            body="{}",
            correlation_id="abc",
            reply_to="rpc.reply.1",
            persistent=True,
        ).properties()
        self.assertEqual(props["delivery_mode"], 2)
        self.assertEqual(props["correlation_id"], "abc")
        self.assertEqual(props["reply_to"], "rpc.reply.1")


class TestNormalization(unittest.TestCase):

    def test_queue_name_is_stripped(self):
        self.assertEqual(normalize_queue_name("  orders "), "orders")

    def test_blank_queue_names_use_placeholder(self):
        for name in (None, "", "   "):
            self.assertEqual(normalize_queue_name(name), UNDEFINED_QUEUE_NAME)

    def test_exchange_name(self):
        self.assertEqual(normalize_exchange_name(None), "")
        self.assertEqual(normalize_exchange_name(" math "), "math")


if __name__ == "__main__":
    unittest.main()
