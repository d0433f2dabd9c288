"""
Trading service: owns the process-wide exchange client and wires the
reconciliation components around it.

Created once at startup (server lifespan or CLI command), started before the
first signal and stopped on shutdown.
"""
from typing import Any, Dict, List

from src.config.config import Config
from src.data.account_reader import AccountReader
from src.data.hyperliquid_client import HyperliquidClient
from src.domain.models import Position, Signal, TradeResult
from src.execution.executor import OrderExecutor
from src.execution.orchestrator import TradeOrchestrator
from src.monitoring.alerting import DiscordNotifier, NotificationSink
from src.monitoring.logger import get_logger

logger = get_logger("TradingService")


class TradingService:
    """Explicitly owned client handle plus the components built on it."""

    def __init__(self, client: HyperliquidClient, config: Config):
        self.config = config
        self.client = client
        self.reader = AccountReader(client, instrument_suffix=config.exchange.instrument_suffix)
        self.executor = OrderExecutor(client, config.execution, margin_mode=config.exchange.margin_mode)
        notifications = config.notifications
        self.sink = NotificationSink(
            DiscordNotifier(
                notifications.discord_webhook_url,
                max_retries=notifications.max_retries,
                retry_delay=notifications.retry_delay_seconds,
                footer_text=notifications.footer_text,
                strategy_link=notifications.strategy_link,
                token_emojis=notifications.token_emojis,
            ),
            queue_size=notifications.queue_size,
        )
        self.orchestrator = TradeOrchestrator(
            self.reader,
            self.executor,
            self.sink,
            instrument_suffix=config.exchange.instrument_suffix,
        )

    @classmethod
    def from_config(cls, config: Config) -> "TradingService":
        client = HyperliquidClient(
            wallet_address=config.exchange.wallet_address,
            private_key=config.exchange.private_key,
            use_testnet=config.exchange.use_testnet,
            timeout_ms=config.exchange.timeout_ms,
        )
        return cls(client, config)

    async def start(self) -> None:
        logger.info("Trading service starting", network="testnet" if self.config.exchange.use_testnet else "mainnet")
        await self.client.initialize()
        await self.sink.start()

    async def stop(self) -> None:
        await self.sink.stop()
        await self.client.close()
        logger.info("Trading service stopped")

    async def execute(self, signal: Signal) -> TradeResult:
        return await self.orchestrator.execute(signal)

    async def positions(self) -> List[Position]:
        return await self.reader.get_all_positions()

    async def account_summary(self) -> Dict[str, Any]:
        """Account value, margin and open positions for status displays."""
        state = await self.client.get_account_state()
        return {
            "wallet": self.client.wallet_address,
            "account_value": state.account_value,
            "margin_used": state.margin_used,
            "available": state.available_balance,
            "positions": self.client.describe_positions(state),
        }

    async def log_account_status(self) -> None:
        """Startup banner; failures are logged, never raised."""
        try:
            summary = await self.account_summary()
        except Exception as e:
            logger.error("Failed to fetch account info", error=str(e))
            return
        logger.info(
            "ACCOUNT_STATUS",
            account_value=f"{summary['account_value']:.2f}",
            margin_used=f"{summary['margin_used']:.2f}",
            available=f"{summary['available']:.2f}",
            active_positions=len(summary["positions"]),
            positions=summary["positions"],
        )
