"""
Shared symbol helpers for Hyperliquid perpetuals.

- Signal market codes (BTC_USD) -> ccxt unified perp symbols (BTC/USDC:USDC)
- Unified symbol -> bare coin name used by the info endpoints (BTC)
- Display helpers for notifications (base token, pair formatting)

Import from here rather than writing ad-hoc normalization logic.
"""
from __future__ import annotations

from src.constants import MARKET_SEPARATORS, PERP_SYMBOL_SUFFIX

_QUOTE_SUFFIXES = ("USDC", "USDT", "USD")


def market_to_instrument(market: str, suffix: str = PERP_SYMBOL_SUFFIX) -> str:
    """
    Map a raw signal market code to the exchange instrument.

    BTC_USD -> BTC/USDC:USDC.  eth-usd -> ETH/USDC:USDC.  SOL -> SOL/USDC:USDC.
    """
    if not market or not market.strip():
        raise ValueError("Market code is empty")
    s = market.strip()
    for sep in MARKET_SEPARATORS:
        if sep in s:
            s = s.split(sep)[0]
            break
    return f"{s.upper()}{suffix}"


def instrument_to_coin(instrument: str) -> str:
    """
    Bare coin name for account/mid-price lookups.

    BTC/USDC:USDC -> BTC.  BTC-PERP -> BTC.  BTC -> BTC.
    """
    s = (instrument or "").strip().upper()
    s = s.split(":")[0].split("/")[0]
    if s.endswith("-PERP"):
        s = s[: -len("-PERP")]
    return s


def base_token(market: str) -> str:
    """
    Base token of a raw market code, for display.

    BTC_USD -> BTC.  ETH/USD -> ETH.  SOLUSDC -> SOL.
    """
    for sep in ("/", "-", "_"):
        if sep in market:
            return market.split(sep)[0]
    upper = market.upper()
    for quote in _QUOTE_SUFFIXES:
        if upper.endswith(quote) and len(upper) > len(quote):
            return market[: -len(quote)]
    return market


def format_market_pair(market: str) -> str:
    """BTC_USD -> BTC/USD."""
    return market.replace("_", "/")
