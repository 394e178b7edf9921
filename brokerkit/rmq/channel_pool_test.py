"""Tests for ChannelPool."""

import threading
import unittest
from unittest.mock import Mock

from brokerkit.rmq.channel_pool import ChannelPool
from brokerkit.rmq.config import ConnectionConfig, UNDEFINED_QUEUE_NAME
from brokerkit.rmq.connection import ConnectionManager
from brokerkit.rmq.testing import FakeBroker


class TestChannelPool(unittest.TestCase):

    def setUp(self):
        self.broker = FakeBroker()
        self.manager = ConnectionManager(ConnectionConfig(), self.broker.connection_factory)
        self.pool = ChannelPool(self.manager)

    def _connection(self):
        return self.manager.connect()

    def test_channel_cached_per_queue(self):
        first = self.pool.get_channel("orders")
        second = self.pool.get_channel("orders")
        other = self.pool.get_channel("invoices")

        self.assertIs(first, second)
        self.assertIsNot(first, other)
        self.assertEqual(len(self.pool), 2)
        self.assertIn("orders", self.pool)

    def test_first_access_declares_queue(self):
        self.pool.get_channel("orders", durable=True)

        self.assertEqual(
            self.broker.queues["orders"],
            {"durable": True, "exclusive": False, "auto_delete": False},
        )

    def _run_concurrently(self, target, count=16):
        results = []
        barrier = threading.Barrier(count)

        def worker():
            barrier.wait()
            results.append(target())

        threads = [threading.Thread(target=worker) for _ in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results

    def _calls(self, name):
        return [
            call
            for channel in self._connection().channels
            for call in channel.calls
            if call[0] == name
        ]

    def test_concurrent_first_access_creates_one_channel(self):
        results = self._run_concurrently(lambda: self.pool.get_channel("orders"))

        self.assertEqual(len(results), 16)
        self.assertTrue(all(channel is results[0] for channel in results))
        self.assertEqual(len(self._connection().channels), 1)
        self.assertEqual(len(self.broker.connections), 1)
        self.assertEqual(self._calls("queue.declare"), [("queue.declare", "orders")])

    def test_concurrent_first_binding_declared_once(self):
        results = self._run_concurrently(
            lambda: self.pool.get_channel("orders", exchange="shop")
        )

        self.assertTrue(all(channel is results[0] for channel in results))
        self.assertEqual(self._calls("queue.declare"), [("queue.declare", "orders")])
        self.assertEqual(self._calls("exchange.declare"), [("exchange.declare", "shop")])
        self.assertEqual(self._calls("queue.bind"), [("queue.bind", "orders", "shop", "orders")])

    def test_blank_names_share_placeholder_channel(self):
        channel = self.pool.get_channel("")
        self.assertIs(self.pool.get_channel(None), channel)
        self.assertIs(self.pool.get_channel("   "), channel)
        self.assertIn(UNDEFINED_QUEUE_NAME, self.pool.channels())

    def test_names_are_stripped(self):
        self.assertIs(self.pool.get_channel(" orders "), self.pool.get_channel("orders"))

    def test_fair_dispatch_sets_prefetch(self):
        channel = self.pool.get_channel("work", fair_dispatch=True)
        self.assertEqual(channel.prefetch_count, 1)
        self.assertIsNone(self.pool.get_channel("other").prefetch_count)

    def test_fair_dispatch_applied_to_existing_channel(self):
        channel = self.pool.get_channel("work")
        self.assertIsNone(channel.prefetch_count)

        self.assertIs(self.pool.get_channel("work", fair_dispatch=True), channel)
        self.assertEqual(channel.prefetch_count, 1)

    def test_durable_mismatch_logged(self):
        self.pool.get_channel("orders", durable=False)

        with self.assertLogs("brokerkit.rmq.channel_pool", level="WARNING") as logs:
            self.pool.get_channel("orders", durable=True)

        self.assertIn("durable=False", logs.output[0])
        self.assertFalse(self.broker.queues["orders"]["durable"])

    def test_matching_durable_not_logged(self):
        self.pool.get_channel("orders", durable=True)

        with self.assertNoLogs("brokerkit.rmq.channel_pool", level="WARNING"):
            self.pool.get_channel("orders", durable=True)

    def test_binding_declared_once(self):
        channel = self.pool.get_channel("orders", exchange="shop", routing_key="orders")
        self.pool.get_channel("orders", exchange="shop", routing_key="orders")

        binds = [c for c in channel.calls if c[0] == "queue.bind"]
        self.assertEqual(binds, [("queue.bind", "orders", "shop", "orders")])
        self.assertIn("shop", self.broker.exchanges)

    def test_binding_added_for_existing_channel(self):
        self.pool.get_channel("orders")
        self.pool.get_channel("orders", exchange="shop")

        self.assertIn(("orders", "shop", "orders"), self.broker.bindings)

    def test_default_exchange_not_bound(self):
        channel = self.pool.get_channel("orders", exchange="")
        self.assertEqual([c for c in channel.calls if c[0] != "queue.declare"], [])

    def test_lock_per_queue(self):
        self.assertIs(self.pool.lock_for("a"), self.pool.lock_for(" a"))
        self.assertIsNot(self.pool.lock_for("a"), self.pool.lock_for("b"))

    def test_close_all(self):
        orders = self.pool.get_channel("orders")
        invoices = self.pool.get_channel("invoices")

        self.pool.close_all()

        self.assertFalse(orders.is_open)
        self.assertFalse(invoices.is_open)
        self.assertEqual(len(self.pool), 0)

    def test_close_all_logs_errors(self):
        self.pool.get_channel("orders")
        broken = Mock(is_open=True)
        broken.close.side_effect = RuntimeError("boom")
        self.pool._channels["broken"] = broken

        self.pool.close_all()  # should not raise
        self.assertEqual(len(self.pool), 0)


if __name__ == "__main__":
    unittest.main()
