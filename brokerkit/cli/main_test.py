"""Tests for the brokerkit CLI commands."""

import json
from unittest.mock import patch

import pytest
import typer
from typer.testing import CliRunner

from brokerkit.cli.main import app
from brokerkit.cli.providers.rabbitmq import create_rabbitmq_context, rmq_params
from brokerkit.rmq import BrokerClient
from brokerkit.rmq.testing import FakeBroker


runner = CliRunner()


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch('brokerkit.cli.main.create_logging_context') as mock_logging:
        yield mock_logging


@pytest.fixture
def broker():
    return FakeBroker()


def invoke(broker, args):
    return runner.invoke(app, args, obj={'connection_factory': broker.connection_factory})


class TestPublishAndPull:

    def test_publish_then_pull(self, broker):
        result = invoke(broker, ['publish', 'E1', 'Q1', '{"op": "ping"}'])
        assert result.exit_code == 0, result.output
        assert 'Published to E1/Q1' in result.output
        assert ('Q1', 'E1', 'Q1') in broker.bindings

        result = invoke(broker, ['pull', 'Q1'])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output.strip().splitlines()[-1]) == {"op": "ping"}
        assert broker.depth('Q1') == 0

    def test_pull_empty_queue(self, broker):
        result = invoke(broker, ['pull', 'jobs'])
        assert result.exit_code == 0
        assert 'Queue jobs is empty' in result.output

    def test_publish_rejects_invalid_json(self, broker):
        result = invoke(broker, ['publish', 'E1', 'Q1', 'not json'])
        assert result.exit_code != 0
        assert broker.published == []

    def test_durable_publish(self, broker):
        result = invoke(broker, ['publish', '', 'jobs', '[1]', '--durable'])
        assert result.exit_code == 0, result.output

        _, _, message = broker.published[-1]
        assert message.properties['delivery_mode'] == 2
        assert broker.queues['jobs']['durable'] is True

    def test_connection_closed_after_command(self, broker):
        invoke(broker, ['publish', '', 'jobs', '1'])
        assert not broker.connections[-1].is_open


class TestCall:

    def test_call_prints_reply(self, broker):
        server = BrokerClient(connection_factory=broker.connection_factory)
        server.serve('math', 'math.double', False, lambda req: {"x": req["x"] * 2})
        try:
            result = invoke(broker, ['call', 'math', 'math.double', '{"x": 2}', '--timeout', '5'])
        finally:
            server.dispose()

        assert result.exit_code == 0, result.output
        assert json.loads(result.output.strip().splitlines()[-1]) == {"x": 4}

    def test_call_timeout_exits_nonzero(self, broker):
        result = invoke(broker, ['call', '', 'nobody', '{}', '--timeout', '0.1'])
        assert result.exit_code == 1


class TestServeEcho:

    def test_serve_echo_declares_and_stops(self, broker):
        result = invoke(broker, ['serve-echo', 'echo', 'echo.q', '--duration', '0'])

        assert result.exit_code == 0, result.output
        assert 'Echoing requests on echo.q' in result.output
        assert ('echo.q', 'echo', 'echo.q') in broker.bindings


class TestRabbitMQProvider:

    def test_rmq_params_injects_context(self):
        sub_app = typer.Typer()
        seen = {}

        @sub_app.callback(invoke_without_command=True)
        @rmq_params
        def callback(ctx: typer.Context):
            seen.update(ctx.obj['rabbitmq'])

        result = runner.invoke(sub_app, [
            '--rabbitmq-host', 'rmq.local',
            '--rabbitmq-port', '5673',
            '--rabbitmq-vhost', 'dev',
            '--no-rabbitmq-recovery',
        ])

        assert result.exit_code == 0, result.output
        assert seen['host'] == 'rmq.local'
        assert seen['port'] == 5673
        assert seen['vhost'] == 'dev'
        assert seen['recovery'] is False

    def test_context_to_connection_config(self):
        config = create_rabbitmq_context(
            host='rmq.local',
            user='app',
            password='secret',
            vhost='',
            recovery_interval=1.5,
        ).to_connection_config()

        assert config.host == 'rmq.local'
        assert config.username == 'app'
        assert config.virtual_host == '/'
        assert config.network_recovery_interval == 1.5
        assert config.automatic_recovery_enabled is True

    def test_ssl_requires_hostname(self):
        with pytest.raises(typer.BadParameter):
            create_rabbitmq_context(host='rmq.local', enable_ssl=True, ssl_hostname='')
