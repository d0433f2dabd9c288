"""
Pytest configuration and shared fixtures.
"""
import os

# Tests never read real credentials or dotenv files
os.environ.setdefault("ENVIRONMENT", "prod")

import pytest
from unittest.mock import AsyncMock, patch

from src.config.config import ExecutionConfig
from src.data.account_reader import AccountReader
from src.execution.executor import OrderExecutor
from src.execution.orchestrator import TradeOrchestrator
from tests.fake_exchange import FakeExchange


def pytest_configure(config):
    """Register custom marks. Async tests require pytest-asyncio."""
    config.addinivalue_line("markers", "asyncio: mark test as async (pytest-asyncio).")


@pytest.fixture
def sleeps():
    """Patch the retry combinator's sleep; yields the list of requested waits."""
    waits = []

    async def _record(seconds):
        waits.append(seconds)

    with patch("src.utils.retry.asyncio.sleep", side_effect=_record):
        yield waits


@pytest.fixture
def exchange() -> FakeExchange:
    return FakeExchange()


@pytest.fixture
def executor(exchange) -> OrderExecutor:
    return OrderExecutor(exchange, ExecutionConfig())


@pytest.fixture
def sink():
    """Stand-in NotificationSink recording emitted events."""
    class _Sink:
        def __init__(self):
            self.events = []

        def emit(self, event):
            self.events.append(event)

    return _Sink()


@pytest.fixture
def orchestrator(exchange, executor, sink) -> TradeOrchestrator:
    return TradeOrchestrator(AccountReader(exchange), executor, sink)


@pytest.fixture
def no_network_client():
    """Patch ccxt's hyperliquid constructor so HyperliquidClient never connects."""
    exchange = AsyncMock()
    exchange.set_sandbox_mode = lambda enabled: None
    with patch("src.data.hyperliquid_client.ccxt_async.hyperliquid", return_value=exchange) as ctor:
        yield ctor, exchange
