from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from src.cli import app
from src.config.config import Config
from src.exceptions import LeverageError
from src.services.trading_service import TradingService
from tests.fake_exchange import FakeExchange, account, filled, raw_position

runner = CliRunner()


@pytest.fixture
def cli_exchange(monkeypatch):
    monkeypatch.delenv("DISCORD_WEBHOOK_URL", raising=False)
    exchange = FakeExchange()
    config = Config()
    with patch("src.cli.load_config", return_value=config), \
         patch("src.cli.setup_logging"), \
         patch("src.cli.TradingService.from_config", return_value=TradingService(exchange, config)):
        yield exchange


def test_trade_opens_position(cli_exchange):
    cli_exchange.responses = [filled(size="0.4")]

    result = runner.invoke(app, ["trade", "--market", "BTC_USD", "--position", "long", "--leverage", "2"])

    assert result.exit_code == 0, result.output
    assert "BTC/USDC:USDC: OPEN_LONG" in result.output
    assert cli_exchange.calls[0] == "initialize"
    assert cli_exchange.calls[-1] == "close"


def test_trade_failure_exits_nonzero(cli_exchange):
    cli_exchange.leverage_error = LeverageError("BTC/USDC:USDC", "2", "rejected")

    result = runner.invoke(app, ["trade", "--market", "BTC_USD", "--position", "short", "--leverage", "2"])

    assert result.exit_code == 1
    assert cli_exchange.placed == []


def test_positions_lists_holdings(cli_exchange):
    cli_exchange.state = account(positions=[raw_position("ETH", "2", entry="2400")])

    result = runner.invoke(app, ["positions"])

    assert result.exit_code == 0, result.output
    assert "ETH/USDC:USDC: LONG 2 @ $2400.00" in result.output


def test_account_banner(cli_exchange):
    cli_exchange.state = account(value="12000", margin="2000")

    result = runner.invoke(app, ["account"])

    assert result.exit_code == 0, result.output
    assert "Available:        $10000.00" in result.output
    assert "Active Positions: 0" in result.output
