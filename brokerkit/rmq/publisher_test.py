"""Tests for Publisher."""

import json
import unittest
from dataclasses import dataclass

from brokerkit.rmq.channel_pool import ChannelPool
from brokerkit.rmq.config import ConnectionConfig, RoutingMetadata
from brokerkit.rmq.connection import ConnectionManager
from brokerkit.rmq.errors import RoutingNotConfiguredError
from brokerkit.rmq.publisher import Publisher
from brokerkit.rmq.routing import RoutingRegistry
from brokerkit.rmq.testing import FakeBroker


@dataclass
class InvoiceIssued:
    invoice_id: str
    amount: int


class TestPublisher(unittest.TestCase):

    def setUp(self):
        self.broker = FakeBroker()
        self.registry = RoutingRegistry()
        self.registry.register(
            InvoiceIssued, RoutingMetadata(exchange="billing", queue="invoices", durable=True)
        )
        manager = ConnectionManager(ConnectionConfig(), self.broker.connection_factory)
        self.pool = ChannelPool(manager)
        self.publisher = Publisher(self.pool, self.registry)

    def _last_published(self):
        return self.broker.published[-1]

    def test_publish_declares_topology_and_routes(self):
        self.publisher.publish("E1", "Q1", "Q1", {"op": "ping"})

        self.assertIn("E1", self.broker.exchanges)
        self.assertIn(("Q1", "E1", "Q1"), self.broker.bindings)
        self.assertEqual(self.broker.depth("Q1"), 1)

        exchange, routing_key, message = self._last_published()
        self.assertEqual((exchange, routing_key), ("E1", "Q1"))
        self.assertEqual(json.loads(message.body), {"op": "ping"})
        self.assertEqual(message.properties["content_type"], "application/json")
        self.assertNotIn("delivery_mode", message.properties)

    def test_persistent_publish(self):
        self.publisher.publish("E1", "Q1", "Q1", {"op": "save"}, persistent=True)

        _, _, message = self._last_published()
        self.assertEqual(message.properties["delivery_mode"], 2)
        self.assertTrue(self.broker.queues["Q1"]["durable"])
        self.assertTrue(self.broker.exchanges["E1"]["durable"])

    def test_string_body_sent_as_is(self):
        self.publisher.publish("", "raw", "raw", '{"already": "json"}')

        _, _, message = self._last_published()
        self.assertEqual(message.body, '{"already": "json"}')
        self.assertEqual(self.broker.depth("raw"), 1)

    def test_default_exchange_routes_by_queue_name(self):
        self.publisher.publish("", "jobs", "jobs", [1, 2, 3])

        self.assertEqual(self.broker.exchanges, {})
        self.assertEqual(self.broker.depth("jobs"), 1)

    def test_publish_reuses_queue_channel(self):
        self.publisher.publish("E1", "Q1", "Q1", 1)
        self.publisher.publish("E1", "Q1", "Q1", 2)

        self.assertEqual(len(self.pool), 1)
        self.assertEqual(self.broker.depth("Q1"), 2)

    def test_publish_message_uses_registry(self):
        self.publisher.publish_message(InvoiceIssued("inv-1", 100))

        exchange, routing_key, message = self._last_published()
        self.assertEqual((exchange, routing_key), ("billing", "invoices"))
        self.assertEqual(message.properties["delivery_mode"], 2)
        self.assertEqual(json.loads(message.body), {"invoice_id": "inv-1", "amount": 100})

    def test_publish_message_unregistered_type(self):
        with self.assertRaises(RoutingNotConfiguredError):
            self.publisher.publish_message({"not": "registered"})
        self.assertEqual(self.broker.published, [])


if __name__ == "__main__":
    unittest.main()
