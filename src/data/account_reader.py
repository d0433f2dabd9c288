"""
Read-side translators over the exchange client.

- Position snapshot: raw account state -> normalized Position (or None when flat)
- Spare balance and reference price for sizing

Stateless; every call goes to the exchange (no caching).
"""
from decimal import Decimal
from typing import List, Optional

from src.data.hyperliquid_client import HyperliquidClient
from src.data.symbol_utils import instrument_to_coin
from src.domain.models import AccountState, Position, Side
from src.monitoring.logger import get_logger

logger = get_logger(__name__)


def _entry_to_position(entry: dict, instrument: str) -> Optional[Position]:
    size = entry["signed_size"]
    if size == 0:
        return None
    return Position(
        instrument=instrument,
        side=Side.LONG if size > 0 else Side.SHORT,
        size=abs(size),
        entry_price=entry["entry_price"],
        unrealized_pnl=entry["unrealized_pnl"],
        leverage=entry["leverage"],
    )


def position_from_account_state(state: AccountState, instrument: str) -> Optional[Position]:
    """
    Current holding on `instrument`, or None when flat.

    A zero-size entry is the same as no entry.
    """
    coin = instrument_to_coin(instrument)
    for entry in state.positions:
        if entry["coin"].upper() == coin:
            return _entry_to_position(entry, instrument)
    return None


class AccountReader:
    """Snapshot, balance and price reads for the configured wallet."""

    def __init__(self, client: HyperliquidClient, instrument_suffix: Optional[str] = None):
        self.client = client
        self.instrument_suffix = instrument_suffix

    async def get_position(self, instrument: str) -> Optional[Position]:
        state = await self.client.get_account_state()
        return position_from_account_state(state, instrument)

    async def get_all_positions(self) -> List[Position]:
        """Every non-zero holding, named by its coin with the instrument suffix when configured."""
        state = await self.client.get_account_state()
        positions = []
        for entry in state.positions:
            instrument = f"{entry['coin']}{self.instrument_suffix}" if self.instrument_suffix else entry["coin"]
            position = _entry_to_position(entry, instrument)
            if position is not None:
                positions.append(position)
        return positions

    async def get_available_balance(self) -> Decimal:
        """Account value minus margin in use."""
        state = await self.client.get_account_state()
        return state.available_balance

    async def get_market_price(self, instrument: str) -> Decimal:
        return await self.client.get_mid_price(instrument)
