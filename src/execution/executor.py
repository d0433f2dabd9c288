"""
Order executor: open/close with bounded retry-until-filled.

Every attempt re-quotes the mid price and submits a fresh limit IOC order.
Attempts are real submissions; an unfilled attempt is not rolled back here.

Flow (open):
    set leverage (fatal on failure)
    -> attempt 1..N: quote -> build request -> submit -> all legs filled? done
    -> waits: unfilled status = unfilled_backoff, error/no status = error_backoff
    -> budget spent: FillTimeoutError
"""
from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional

from src.config.config import ExecutionConfig
from src.constants import DEFAULT_MARGIN_MODE
from src.data.hyperliquid_client import HyperliquidClient
from src.domain.models import OrderDirection, OrderOutcome, OrderRequest, Position
from src.exceptions import FillTimeoutError, RetryExhaustedError, TransportError, UnconfirmedFillError
from src.monitoring.logger import get_logger
from src.utils.retry import bounded_retry

logger = get_logger(__name__)


class OrderExecutor:
    """
    Drives order placement for one reconciliation step.

    Stateless between calls; safe to share across reconciliations.
    """

    def __init__(
        self,
        client: HyperliquidClient,
        config: Optional[ExecutionConfig] = None,
        margin_mode: str = DEFAULT_MARGIN_MODE,
    ):
        self.client = client
        self.config = config or ExecutionConfig()
        self.margin_mode = margin_mode

    async def open_position(
        self,
        instrument: str,
        is_buy: bool,
        quantity: Decimal,
        leverage: Decimal,
    ) -> OrderOutcome:
        """
        Open a position of `quantity` at `leverage`.

        Raises:
            LeverageError: leverage update failed (no order is attempted)
            FillTimeoutError: no full fill within the attempt budget
            UnconfirmedFillError: status unreadable and retry_unreadable_status is off
        """
        side = "LONG" if is_buy else "SHORT"
        logger.info("Opening position", instrument=instrument, side=side, size=str(quantity), leverage=str(leverage))

        # LeverageError propagates: later size math assumes this leverage
        await self.client.set_leverage(instrument, leverage, self.margin_mode)

        quantum = Decimal(1).scaleb(-self.config.open_price_decimals)
        direction = OrderDirection.BUY if is_buy else OrderDirection.SELL

        def build(price: Decimal) -> OrderRequest:
            return OrderRequest(
                instrument=instrument,
                direction=direction,
                quantity=quantity,
                limit_price=price.quantize(quantum, rounding=ROUND_HALF_UP),
                reduce_only=False,
            )

        return await self._submit_until_filled("open", instrument, build)

    async def close_position(self, instrument: str, position: Position) -> OrderOutcome:
        """
        Flatten `position` with a reduce-only order for its full size.

        Raises:
            FillTimeoutError: no full fill within the attempt budget
            UnconfirmedFillError: status unreadable and retry_unreadable_status is off
        """
        logger.info("Closing position", instrument=instrument, side=position.side.value.upper(), size=str(position.size))

        def build(price: Decimal) -> OrderRequest:
            return OrderRequest(
                instrument=instrument,
                direction=position.close_direction,
                quantity=position.size,
                limit_price=price,
                reduce_only=True,
            )

        return await self._submit_until_filled("close", instrument, build)

    def _backoff(self, outcome: Optional[OrderOutcome], error: Optional[BaseException]) -> float:
        if error is not None or outcome is None or not outcome.readable:
            return self.config.error_backoff_seconds
        return self.config.unfilled_backoff_seconds

    async def _submit_until_filled(
        self,
        kind: str,
        instrument: str,
        build: Callable[[Decimal], OrderRequest],
    ) -> OrderOutcome:
        async def attempt(number: int) -> OrderOutcome:
            price = await self.client.get_mid_price(instrument)
            if price <= 0:
                raise TransportError(f"Non-positive mid price for {instrument}: {price}")
            outcome = await self.client.place_order(build(price))
            if not outcome.readable and not self.config.retry_unreadable_status:
                logger.error("ORDER_STATUS_UNREADABLE", kind=kind, instrument=instrument, attempt=number)
                raise UnconfirmedFillError(kind, instrument)
            return replace(outcome, attempts=number)

        try:
            outcome = await bounded_retry(
                attempt,
                max_attempts=self.config.max_attempts,
                is_success=lambda o: o.filled,
                backoff=self._backoff,
                retry_on=(TransportError,),
                label=f"{kind} {instrument}",
            )
        except RetryExhaustedError as e:
            logger.error("FILL_RETRIES_EXHAUSTED", kind=kind, instrument=instrument, attempts=e.attempts)
            raise FillTimeoutError(kind, instrument, e.attempts) from e

        logger.info("Order filled", kind=kind, instrument=instrument, attempts=outcome.attempts)
        return outcome
