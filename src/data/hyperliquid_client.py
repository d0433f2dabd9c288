"""
Hyperliquid perpetuals client.

Thin async wrapper over ccxt's hyperliquid exchange exposing exactly what the
reconciliation core needs:
- Account state (margin summary + positions) for the configured wallet
- Mid prices
- Leverage updates
- Limit IOC order placement, translated into per-leg fill statuses

One instance is created at startup and shared by every reconciliation.
`initialize()` is idempotent and safe to call from concurrent tasks.
"""
import asyncio
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import ccxt.async_support as ccxt_async
from ccxt.base.errors import BaseError as CCXTBaseError

from src.config.config import missing_credentials
from src.constants import DEFAULT_API_TIMEOUT_MS, DEFAULT_MARGIN_MODE
from src.data.symbol_utils import instrument_to_coin
from src.domain.models import AccountState, OrderLeg, OrderOutcome, OrderRequest
from src.exceptions import ConfigurationError, LeverageError, TransportError
from src.monitoring.logger import get_logger
from src.utils.retry import retry_on_transient_errors

logger = get_logger(__name__)


def _to_decimal(value: Any, default: str = "0") -> Decimal:
    if value is None or value == "":
        return Decimal(default)
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(default)


def parse_account_state(raw: Dict[str, Any]) -> AccountState:
    """
    Normalize a clearinghouseState payload.

    Positions keep their signed size; zero sizes are filtered later by the reader.
    """
    if not isinstance(raw, dict):
        raise TransportError(f"Unexpected account state payload: {type(raw).__name__}")

    summary = raw.get("marginSummary") or {}
    positions = []
    for entry in raw.get("assetPositions") or []:
        pos = (entry or {}).get("position") or {}
        coin = pos.get("coin")
        if not coin:
            continue
        leverage = pos.get("leverage")
        if isinstance(leverage, dict):
            leverage = leverage.get("value")
        positions.append({
            "coin": str(coin),
            "signed_size": _to_decimal(pos.get("szi")),
            "entry_price": _to_decimal(pos.get("entryPx")),
            "unrealized_pnl": _to_decimal(pos.get("unrealizedPnl")),
            "leverage": _to_decimal(leverage, default="1"),
        })

    return AccountState(
        account_value=_to_decimal(summary.get("accountValue")),
        margin_used=_to_decimal(summary.get("totalMarginUsed")),
        positions=tuple(positions),
    )


def _leg_from_status(entry: Any) -> Optional[OrderLeg]:
    """
    Translate one raw exchange status entry into a leg.

    Entries look like {"filled": {...}}, {"resting": {...}} or {"error": "..."}.
    Returns None when nothing usable is present.
    """
    if not isinstance(entry, dict):
        return None
    if isinstance(entry.get("filled"), dict):
        filled = entry["filled"]
        return OrderLeg(
            filled=True,
            status="filled",
            filled_size=_to_decimal(filled.get("totalSz")),
            average_price=_to_decimal(filled.get("avgPx")) if filled.get("avgPx") is not None else None,
            order_id=str(filled["oid"]) if filled.get("oid") is not None else None,
        )
    if "resting" in entry:
        resting = entry.get("resting") or {}
        return OrderLeg(
            filled=False,
            status="resting",
            order_id=str(resting["oid"]) if isinstance(resting, dict) and resting.get("oid") is not None else None,
        )
    if "error" in entry:
        return OrderLeg(filled=False, status="error", error=str(entry.get("error")))
    return None


def _leg_from_order(order: Any) -> Optional[OrderLeg]:
    """
    Translate one ccxt order into a leg.

    ccxt keeps the raw exchange status entry in `info`; the unified `status`
    field is the fallback.
    """
    if not isinstance(order, dict):
        return None

    leg = _leg_from_status(order.get("info"))
    if leg is not None:
        return leg

    status = order.get("status")
    if not status:
        return None
    filled = status == "closed"
    return OrderLeg(
        filled=filled,
        status=str(status),
        filled_size=_to_decimal(order.get("filled")) if order.get("filled") is not None else None,
        average_price=_to_decimal(order.get("average")) if order.get("average") is not None else None,
        order_id=str(order["id"]) if order.get("id") is not None else None,
    )


def parse_order_outcome(response: Any) -> OrderOutcome:
    """Build an OrderOutcome from a ccxt create_order(s) response."""
    orders = response if isinstance(response, list) else [response]
    legs = []
    for order in orders:
        leg = _leg_from_order(order)
        if leg is None:
            # One unreadable leg makes the whole acknowledgement unreadable
            return OrderOutcome(legs=())
        legs.append(leg)
    return OrderOutcome(legs=tuple(legs))


def parse_rejected_order(raw: Any) -> Optional[OrderOutcome]:
    """
    Outcome from the raw exchange reply behind a ccxt order exception.

    ccxt raises whenever any status entry carries an "error" (including an IOC
    order that found nothing to match), even though the exchange answered
    {"status": "ok", "response": {"data": {"statuses": [...]}}}. Returns None
    when the reply holds no status entries, i.e. the call itself failed.
    """
    if not isinstance(raw, dict) or raw.get("status") != "ok":
        return None
    response = raw.get("response")
    data = response.get("data") if isinstance(response, dict) else None
    statuses = data.get("statuses") if isinstance(data, dict) else None
    if not isinstance(statuses, list) or not statuses:
        return None

    legs = []
    for entry in statuses:
        leg = _leg_from_status(entry)
        if leg is None:
            return OrderOutcome(legs=())
        legs.append(leg)
    return OrderOutcome(legs=tuple(legs))


class HyperliquidClient:
    """
    Hyperliquid REST client (via ccxt).
    """

    def __init__(
        self,
        wallet_address: Optional[str],
        private_key: Optional[str],
        use_testnet: bool = False,
        *,
        timeout_ms: int = DEFAULT_API_TIMEOUT_MS,
    ):
        """
        Initialize Hyperliquid client. No network activity until initialize().

        Args:
            wallet_address: Account address (0x...) whose state is read
            private_key: Signing key for order/leverage actions
            use_testnet: Use Hyperliquid testnet
            timeout_ms: Transport timeout per request
        """
        self.wallet_address = (wallet_address or "").strip()
        self.private_key = (private_key or "").strip()
        self.use_testnet = use_testnet
        self.timeout_ms = timeout_ms

        self.exchange = None
        self._init_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """
        Create the ccxt exchange and load markets, once.

        Raises:
            ConfigurationError: credentials missing
        """
        if self.exchange is not None:
            return

        async with self._init_lock:
            if self.exchange is not None:
                return

            missing = missing_credentials(self.wallet_address, self.private_key)
            if missing:
                raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

            exchange = ccxt_async.hyperliquid({
                "walletAddress": self.wallet_address,
                "privateKey": self.private_key,
                "enableRateLimit": True,
                # place_order reads per-leg statuses from rejected replies
                "enableLastJsonResponse": True,
                "timeout": self.timeout_ms,
            })
            if self.use_testnet:
                exchange.set_sandbox_mode(True)

            try:
                await exchange.load_markets()
            except CCXTBaseError as e:
                await exchange.close()
                raise TransportError(f"Failed to load Hyperliquid markets: {e}") from e

            self.exchange = exchange
            logger.info(
                "Hyperliquid client initialized",
                wallet=self.wallet_address,
                network="testnet" if self.use_testnet else "mainnet",
            )

    async def _ready(self):
        if self.exchange is None:
            await self.initialize()
        return self.exchange

    @retry_on_transient_errors(max_retries=3, base_delay=1.0, transient_errors=(TransportError,))
    async def get_account_state(self, address: Optional[str] = None) -> AccountState:
        """
        Fetch margin summary and positions for a wallet.

        Args:
            address: Wallet to inspect; defaults to the configured wallet

        Returns:
            Normalized AccountState
        """
        exchange = await self._ready()
        user = address or self.wallet_address
        try:
            raw = await exchange.public_post_info({"type": "clearinghouseState", "user": user})
        except CCXTBaseError as e:
            logger.error("Failed to fetch account state", wallet=user, error=str(e))
            raise TransportError(f"Account state request failed: {e}") from e
        return parse_account_state(raw)

    async def get_all_mids(self) -> Dict[str, Decimal]:
        """Mid price for every listed coin."""
        exchange = await self._ready()
        try:
            raw = await exchange.public_post_info({"type": "allMids"})
        except CCXTBaseError as e:
            raise TransportError(f"Mid price request failed: {e}") from e
        if not isinstance(raw, dict):
            raise TransportError(f"Unexpected allMids payload: {type(raw).__name__}")
        return {str(coin): _to_decimal(px) for coin, px in raw.items()}

    async def get_mid_price(self, instrument: str) -> Decimal:
        """
        Current mid price for an instrument.

        Raises:
            TransportError: request failed or the coin has no mid
        """
        coin = instrument_to_coin(instrument)
        mids = await self.get_all_mids()
        if coin not in mids:
            raise TransportError(f"No mid price for {coin}")
        price = mids[coin]
        logger.debug("Fetched mid price", instrument=instrument, coin=coin, price=str(price))
        return price

    async def set_leverage(self, instrument: str, leverage: Decimal, mode: str = DEFAULT_MARGIN_MODE) -> None:
        """
        Set leverage for an instrument.

        Raises:
            LeverageError: exchange rejected the update or the call failed
        """
        exchange = await self._ready()
        value = int(leverage) if leverage == leverage.to_integral_value() else float(leverage)
        try:
            await exchange.set_leverage(value, instrument, {"marginMode": mode})
        except CCXTBaseError as e:
            logger.error("Leverage update failed", instrument=instrument, leverage=str(leverage), mode=mode, error=str(e))
            raise LeverageError(instrument, leverage, str(e)) from e
        logger.info("Leverage set", instrument=instrument, leverage=str(leverage), mode=mode)

    async def place_order(self, request: OrderRequest) -> OrderOutcome:
        """
        Submit a limit IOC order.

        Returns:
            OrderOutcome with one leg per status entry (empty if unreadable)

        Raises:
            TransportError: network/API failure with no order status in the reply
        """
        exchange = await self._ready()
        params = {"timeInForce": request.time_in_force, "reduceOnly": request.reduce_only}

        logger.info(
            "Placing order",
            instrument=request.instrument,
            side=request.direction.value,
            size=str(request.quantity),
            limit_price=str(request.limit_price),
            reduce_only=request.reduce_only,
        )
        # Only the reply to this request may explain an exception
        exchange.last_json_response = None
        try:
            response = await exchange.create_order(
                symbol=request.instrument,
                type="limit",
                side=request.direction.value,
                amount=float(request.quantity),
                price=float(request.limit_price),
                params=params,
            )
        except CCXTBaseError as e:
            outcome = parse_rejected_order(exchange.last_json_response)
            if outcome is None:
                logger.error("ORDER_SUBMISSION_FAILED", instrument=request.instrument, error=str(e))
                raise TransportError(f"Order submission failed: {e}") from e
            logger.warning(
                "Order not filled",
                instrument=request.instrument,
                errors=[leg.error for leg in outcome.legs if leg.error],
            )
        else:
            outcome = parse_order_outcome(response)

        logger.info(
            "Order result",
            instrument=request.instrument,
            filled=outcome.filled,
            statuses=[leg.status for leg in outcome.legs],
        )
        return outcome

    async def close(self) -> None:
        """Cleanup resources."""
        if self.exchange is not None:
            await self.exchange.close()
            self.exchange = None

    def describe_positions(self, state: AccountState) -> List[str]:
        """One display line per non-zero position."""
        lines = []
        for p in state.positions:
            size = p["signed_size"]
            if size == 0:
                continue
            side = "LONG" if size > 0 else "SHORT"
            lines.append(
                f"{p['coin']}: {side} {abs(size)} @ ${p['entry_price']:.2f} | PnL: ${p['unrealized_pnl']:.2f}"
            )
        return lines
