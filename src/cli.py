"""
CLI entrypoint for the Hyperliquid signal executor.

Provides commands to serve the webhook, inspect the account and run a single
reconciliation by hand.
"""
import asyncio
from decimal import Decimal
from pathlib import Path
from typing import Optional

import typer

from src.config.config import DEFAULT_CONFIG_PATH, load_config
from src.config.dotenv_loader import load_dotenv_files
from src.constants import BANNER_WIDTH
from src.domain.models import DesiredPosition, Signal
from src.monitoring.logger import get_logger, setup_logging
from src.services.trading_service import TradingService

app = typer.Typer(
    name="hl-executor",
    help="Hyperliquid webhook signal executor",
    add_completion=False,
)

logger = get_logger(__name__)


@app.callback()
def main():
    # .env / .env.local outside prod
    load_dotenv_files()


ConfigOption = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="Path to config file")


def _load(config_path: Path):
    config = load_config(config_path)
    setup_logging(config.monitoring.log_level, config.monitoring.log_format, config.monitoring.log_file)
    return config


@app.command()
def serve(
    config_path: Path = ConfigOption,
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: Optional[int] = typer.Option(None, "--port", help="Port (default from config)"),
):
    """
    Run the webhook server.

    Example:
        hl-executor serve --port 3000
    """
    import uvicorn
    from src.server import create_app

    config = _load(config_path)
    bind_host = host or config.server.host
    bind_port = port or config.server.port
    logger.info(
        "Server starting",
        host=bind_host,
        port=bind_port,
        network="testnet" if config.exchange.use_testnet else "mainnet",
    )
    uvicorn.run(create_app(config), host=bind_host, port=bind_port, log_config=None)


@app.command()
def account(config_path: Path = ConfigOption):
    """Show account value, margin and open positions."""
    config = _load(config_path)

    async def run():
        service = TradingService.from_config(config)
        await service.start()
        try:
            return await service.account_summary()
        finally:
            await service.stop()

    summary = asyncio.run(run())

    typer.echo("\n" + "=" * BANNER_WIDTH)
    typer.echo("ACCOUNT STATUS")
    typer.echo("=" * BANNER_WIDTH)
    typer.echo(f"Wallet:           {summary['wallet']}")
    typer.echo(f"Account Value:    ${summary['account_value']:.2f}")
    typer.echo(f"Margin Used:      ${summary['margin_used']:.2f}")
    typer.echo(f"Available:        ${summary['available']:.2f}")
    typer.echo(f"\nActive Positions: {len(summary['positions'])}")
    for line in summary["positions"]:
        typer.echo(f"  {line}")
    typer.echo("=" * BANNER_WIDTH + "\n")


@app.command()
def positions(config_path: Path = ConfigOption):
    """List non-zero positions."""
    config = _load(config_path)

    async def run():
        service = TradingService.from_config(config)
        await service.start()
        try:
            return await service.positions()
        finally:
            await service.stop()

    current = asyncio.run(run())
    if not current:
        typer.echo("No open positions")
        return
    for p in current:
        typer.echo(
            f"{p.instrument}: {p.side.value.upper()} {p.size} @ ${p.entry_price:.2f} "
            f"| PnL: ${p.unrealized_pnl:.2f} | {p.leverage}x"
        )


@app.command()
def trade(
    market: str = typer.Option(..., "--market", help="Market code, e.g. BTC_USD"),
    position: DesiredPosition = typer.Option(..., "--position", help="Desired position"),
    leverage: float = typer.Option(..., "--leverage", min=0.0001, help="Leverage multiplier"),
    strategy: str = typer.Option("manual", "--strategy", help="Label for notifications"),
    config_path: Path = ConfigOption,
):
    """
    Reconcile one market to the desired position.

    Example:
        hl-executor trade --market ETH_USD --position long --leverage 2
    """
    config = _load(config_path)
    signal = Signal(
        market=market,
        desired_position=position,
        leverage=Decimal(str(leverage)),
        strategy=strategy,
        exchange=config.exchange.name,
    )

    async def run():
        service = TradingService.from_config(config)
        await service.start()
        try:
            return await service.execute(signal)
        finally:
            await service.stop()

    try:
        result = asyncio.run(run())
    except Exception as e:
        typer.echo(f"Trade failed: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"{result.instrument}: {result.action.value} size={result.size}")


if __name__ == "__main__":
    app()
