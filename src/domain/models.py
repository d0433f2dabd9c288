"""
Domain models for the signal execution service.

These are the core business objects passed between the readers, the
decider, the executor and the orchestrator. All are immutable; money and
quantities use Decimal.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple


class DesiredPosition(str, Enum):
    """Target state carried by an inbound signal."""
    FLAT = "flat"
    LONG = "long"
    SHORT = "short"


class Side(str, Enum):
    """Side of an open position."""
    LONG = "long"
    SHORT = "short"


class OrderDirection(str, Enum):
    """Order direction."""
    BUY = "buy"
    SELL = "sell"


class Action(str, Enum):
    """Reconciliation action derived from (desired, current)."""
    NONE = "NONE"
    OPEN_LONG = "OPEN_LONG"
    OPEN_SHORT = "OPEN_SHORT"
    CLOSE = "CLOSE"
    REVERSE_TO_LONG = "REVERSE_TO_LONG"
    REVERSE_TO_SHORT = "REVERSE_TO_SHORT"

    @property
    def closes_first(self) -> bool:
        return self in (Action.CLOSE, Action.REVERSE_TO_LONG, Action.REVERSE_TO_SHORT)

    @property
    def open_side(self) -> Optional[Side]:
        """Side opened by this action, if any."""
        if self in (Action.OPEN_LONG, Action.REVERSE_TO_LONG):
            return Side.LONG
        if self in (Action.OPEN_SHORT, Action.REVERSE_TO_SHORT):
            return Side.SHORT
        return None


@dataclass(frozen=True)
class Signal:
    """
    Inbound trade signal (validated upstream).

    `reference_price` is informational: shown in notifications, never used
    to price orders.
    """
    market: str  # raw code, e.g. "BTC_USD"
    desired_position: DesiredPosition
    leverage: Decimal
    reference_price: Optional[Decimal] = None
    strategy: str = ""
    exchange: str = "hyperliquid"
    order_hint: Optional[OrderDirection] = None  # not authoritative

    def __post_init__(self):
        if self.leverage <= 0:
            raise ValueError(f"Signal leverage must be positive, got {self.leverage}")


@dataclass(frozen=True)
class Position:
    """
    Snapshot of the caller's holding on one instrument.

    A zero-size holding is never represented; readers return None instead.
    """
    instrument: str
    side: Side
    size: Decimal  # absolute, always > 0
    entry_price: Decimal
    unrealized_pnl: Decimal
    leverage: Decimal

    def __post_init__(self):
        if self.size <= 0:
            raise ValueError(f"Position size must be positive, got {self.size}")

    @property
    def close_direction(self) -> OrderDirection:
        """Direction of the order that flattens this position."""
        return OrderDirection.BUY if self.side == Side.SHORT else OrderDirection.SELL


@dataclass(frozen=True)
class AccountState:
    """Normalized clearinghouse state for one wallet."""
    account_value: Decimal
    margin_used: Decimal
    positions: Tuple[dict, ...] = ()  # raw entries: coin, signed_size, entry_price, unrealized_pnl, leverage

    @property
    def available_balance(self) -> Decimal:
        return self.account_value - self.margin_used


@dataclass(frozen=True)
class OrderRequest:
    """Order sent to the exchange. Always limit + immediate-or-cancel."""
    instrument: str
    direction: OrderDirection
    quantity: Decimal
    limit_price: Decimal
    reduce_only: bool = False
    time_in_force: str = "Ioc"


@dataclass(frozen=True)
class OrderLeg:
    """One status entry of an order acknowledgement."""
    filled: bool
    status: str
    filled_size: Optional[Decimal] = None
    average_price: Optional[Decimal] = None
    order_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class OrderOutcome:
    """
    Result of one placement attempt.

    All-or-nothing: filled only when every leg reports filled. An outcome
    with no legs means the exchange returned no usable status.
    """
    legs: Tuple[OrderLeg, ...] = ()
    attempts: int = 1

    @property
    def readable(self) -> bool:
        return len(self.legs) > 0

    @property
    def filled(self) -> bool:
        return self.readable and all(leg.filled for leg in self.legs)

    @property
    def average_price(self) -> Optional[Decimal]:
        prices = [leg.average_price for leg in self.legs if leg.average_price is not None]
        return prices[0] if len(prices) == 1 else None


@dataclass(frozen=True)
class TradeResult:
    """Outcome of one reconciliation, returned by the orchestrator."""
    instrument: str
    action: Action
    size: Decimal = Decimal("0")
    price: Optional[Decimal] = None
    leverage: Optional[Decimal] = None

    @property
    def executed(self) -> bool:
        return self.action != Action.NONE


@dataclass(frozen=True)
class TradeEvent:
    """Notification: a non-NONE action completed."""
    instrument: str
    market: str
    strategy: str
    desired_position: DesiredPosition
    filled_size: Decimal
    fill_price: Optional[Decimal]
    leverage: Decimal
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class ErrorEvent:
    """Notification: a reconciliation failed."""
    instrument: str
    market: str
    strategy: str
    exchange: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
