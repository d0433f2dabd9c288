"""
Order sizing: spare balance x leverage / price, in base units.
"""
from decimal import ROUND_HALF_UP, Decimal

from src.constants import SIZE_QUANTUM
from src.exceptions import SizingError


def calculate_position_size(
    available_balance: Decimal,
    leverage: Decimal,
    market_price: Decimal,
    quantum: Decimal = SIZE_QUANTUM,
) -> Decimal:
    """
    Quantity to open: (balance * leverage) / price, rounded half-up to `quantum`.

    Raises:
        SizingError: price or balance non-positive, or the result rounds to zero
    """
    available_balance = Decimal(str(available_balance))
    leverage = Decimal(str(leverage))
    market_price = Decimal(str(market_price))

    if market_price <= 0:
        raise SizingError(f"Market price must be positive, got {market_price}")
    if available_balance <= 0:
        raise SizingError(f"Available balance must be positive, got {available_balance}")
    if leverage <= 0:
        raise SizingError(f"Leverage must be positive, got {leverage}")

    size = (available_balance * leverage / market_price).quantize(quantum, rounding=ROUND_HALF_UP)
    if size <= 0:
        raise SizingError(
            f"Position size rounds to zero (balance={available_balance}, leverage={leverage}, price={market_price})"
        )
    return size
