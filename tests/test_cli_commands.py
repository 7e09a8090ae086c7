"""Tests for CLI command parsing and basic functionality."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, Mock, patch

from typer.testing import CliRunner

from liqcast.cli import app
from liqcast.settings import Settings


def test_cli_help():
    """Test that CLI shows help correctly."""
    runner = CliRunner()
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "Exchange liquidation relay CLI" in result.output


def test_cli_commands_available():
    """Test that all expected CLI commands are available."""
    runner = CliRunner()
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("run", "exchanges-list", "config-show", "render-line", "send-test"):
        assert command in result.output


def test_render_line():
    """Test rendering a line from options."""
    runner = CliRunner()
    result = runner.invoke(
        app,
        ["render-line", "--exchange", "binance", "--symbol", "btc", "--side", "long", "--notional", "162500", "--price", "65000"],
    )
    assert result.exit_code == 0
    assert "Binance #BTC Liquidated Long: $163K at $65000.00" in result.output


def test_render_line_invalid_side():
    runner = CliRunner()
    result = runner.invoke(
        app,
        ["render-line", "--exchange", "okx", "--symbol", "BTC", "--side", "up", "--notional", "1", "--price", "1"],
    )
    assert result.exit_code == 1
    assert "Invalid side" in result.output


@patch("liqcast.cli._load_settings")
def test_exchanges_list(mock_load_settings):
    """Test listing exchanges with their enabled state."""
    mock_load_settings.return_value = Settings()
    runner = CliRunner()
    result = runner.invoke(app, ["exchanges-list"])
    assert result.exit_code == 0
    for name in ("binance", "bybit", "okx", "gate", "hyperliquid"):
        assert name in result.output


@patch("liqcast.cli._load_settings")
def test_config_show_masks_secrets(mock_load_settings):
    """Test that config-show never prints secrets."""
    mock_load_settings.return_value = Settings(telegram={"bot_token": "secret-token"})
    runner = CliRunner()
    result = runner.invoke(app, ["config-show"])
    assert result.exit_code == 0
    assert "secret-token" not in result.output
    assert json.loads(result.output)["telegram"]["bot_token"] == "***"


@patch("liqcast.cli._load_settings")
def test_config_error(mock_load_settings):
    mock_load_settings.side_effect = ValueError("Invalid configuration: boom")
    runner = CliRunner()
    result = runner.invoke(app, ["config-show"])
    assert result.exit_code == 2
    assert "Invalid configuration" in result.output


@patch("liqcast.cli._load_settings")
def test_send_test_dry_run(mock_load_settings):
    """Test sending one message through a dry-run channel."""
    mock_load_settings.return_value = Settings()
    runner = CliRunner()
    result = runner.invoke(app, ["send-test", "--channel", "telegram", "--text", "ping", "--dry-run"])
    assert result.exit_code == 0
    assert "Sent via telegram" in result.output


@patch("liqcast.cli._load_settings")
def test_send_test_missing_credentials(mock_load_settings):
    mock_load_settings.return_value = Settings()
    runner = CliRunner()
    result = runner.invoke(app, ["send-test", "--channel", "x"])
    assert result.exit_code == 1
    assert "credentials" in result.output


@patch("liqcast.cli._load_settings")
def test_send_test_rate_limited(mock_load_settings):
    from liqcast.errors import ChannelRateLimited

    mock_load_settings.return_value = Settings()
    notifier = Mock()
    notifier.send = AsyncMock(side_effect=ChannelRateLimited(3000))
    notifier.close = AsyncMock()
    with patch("liqcast.notifiers.create_notifier", return_value=notifier):
        result = CliRunner().invoke(app, ["send-test", "--channel", "telegram"])
    assert result.exit_code == 1
    assert "Rate limited" in result.output
    notifier.close.assert_awaited_once()


@patch("liqcast.runtime.run", new_callable=AsyncMock)
@patch("liqcast.cli._build_container")
@patch("liqcast.cli._load_settings")
def test_run_command(mock_load_settings, mock_build_container, mock_run):
    """Test that run builds the container and starts the runtime."""
    mock_load_settings.return_value = Settings()
    container = Mock()
    container.adapters = {"binance": Mock()}
    container.dispatchers = {}
    mock_build_container.return_value = container

    result = CliRunner().invoke(app, ["run", "--dry-run"])

    assert result.exit_code == 0
    mock_build_container.assert_called_once_with(mock_load_settings.return_value, dry_run=True)
    mock_run.assert_awaited_once_with(container)
