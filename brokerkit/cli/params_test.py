"""Tests for option groups and the logging provider."""

from typing import Annotated

import pytest
import typer
from typer.testing import CliRunner

from brokerkit.cli.params import OptionSpec, option_group
from brokerkit.cli.providers.logging import logging_params
from brokerkit.cli.providers.rabbitmq import rmq_params


runner = CliRunner()

Color = Annotated[str, typer.Option(help="Color")]
Count = Annotated[int, typer.Option(help="Count")]


def run(decorators, args):
    """Invoke a bare callback wrapped in ``decorators`` and return ctx.obj."""
    sub_app = typer.Typer()
    seen = {}

    def callback(ctx: typer.Context):
        seen.update(ctx.obj)

    for decorator in reversed(decorators):
        callback = decorator(callback)
    sub_app.callback(invoke_without_command=True)(callback)

    result = runner.invoke(sub_app, args)
    assert result.exit_code == 0, result.output
    return seen


class TestOptionGroup:

    def test_values_collected_under_context_key(self):
        group = option_group('paint', [
            OptionSpec('paint_color', Color, 'red', key='color'),
            OptionSpec('paint_count', Count, 1),
        ])

        seen = run([group], ['--paint-color', 'blue'])

        assert seen['paint'] == {'color': 'blue', 'paint_count': 1}

    def test_resolve_post_processes_values(self):
        group = option_group(
            'paint',
            [OptionSpec('paint_count', Count, 1, key='count')],
            resolve=lambda values: {'count': values['count'] * 10},
        )

        seen = run([group], ['--paint-count', '3'])

        assert seen['paint'] == {'count': 30}

    def test_options_listed_in_help(self):
        sub_app = typer.Typer()

        @sub_app.callback(invoke_without_command=True)
        @option_group('paint', [OptionSpec('paint_color', Color, 'red')])
        def callback(ctx: typer.Context):
            pass

        result = runner.invoke(sub_app, ['--help'])

        assert '--paint-color' in result.output

    def test_name_clash_rejected(self):
        def callback(ctx: typer.Context, paint_color: str = 'red'):
            pass

        with pytest.raises(ValueError):
            option_group('paint', [OptionSpec('paint_color', Color, 'red')])(callback)


class TestLoggingProvider:

    def test_defaults(self, monkeypatch):
        for name in ('LOG_LEVEL', 'LOG_OTLP', 'LOG_JSON'):
            monkeypatch.delenv(name, raising=False)

        seen = run([logging_params], [])

        assert seen['logging'] == {'enable_otlp': False, 'log_level': 'INFO', 'json_format': False}

    def test_flags(self, monkeypatch):
        for name in ('LOG_LEVEL', 'LOG_OTLP', 'LOG_JSON'):
            monkeypatch.delenv(name, raising=False)

        seen = run([logging_params], ['--log-level', 'DEBUG', '--log-json'])

        assert seen['logging']['log_level'] == 'DEBUG'
        assert seen['logging']['json_format'] is True

    def test_environment_overrides_flag(self, monkeypatch):
        monkeypatch.setenv('LOG_LEVEL', 'error')

        seen = run([logging_params], ['--log-level', 'DEBUG'])

        assert seen['logging']['log_level'] == 'ERROR'

    def test_invalid_environment_level_ignored(self, monkeypatch):
        monkeypatch.setenv('LOG_LEVEL', 'chatty')

        seen = run([logging_params], ['--log-level', 'WARNING'])

        assert seen['logging']['log_level'] == 'WARNING'

    def test_stacks_with_rabbitmq_params(self, monkeypatch):
        monkeypatch.delenv('LOG_LEVEL', raising=False)

        seen = run([rmq_params, logging_params], ['--rabbitmq-host', 'rmq.local', '--log-level', 'DEBUG'])

        assert seen['rabbitmq']['host'] == 'rmq.local'
        assert seen['logging']['log_level'] == 'DEBUG'
