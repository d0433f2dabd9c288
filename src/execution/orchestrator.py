"""
Trade orchestrator: one signal -> one reconciliation.

    normalize instrument -> fetch position -> decide -> dispatch
        NONE                 nothing, no notification
        CLOSE                close fetched position
        OPEN_*               balance + price -> size -> open
        REVERSE_TO_*         close (must fill) -> open

Failures after the decision are logged, mirrored to the notification sink as
an ErrorEvent and re-raised. Successes emit a TradeEvent.
"""
from decimal import Decimal
from typing import Optional, Tuple

from src.constants import BANNER_WIDTH, PERP_SYMBOL_SUFFIX
from src.data.account_reader import AccountReader
from src.data.symbol_utils import market_to_instrument
from src.domain.models import (
    Action,
    ErrorEvent,
    OrderOutcome,
    Position,
    Side,
    Signal,
    TradeEvent,
    TradeResult,
)
from src.exceptions import OrderExecutionError
from src.execution.executor import OrderExecutor
from src.execution.sizing import calculate_position_size
from src.monitoring.alerting import NotificationSink
from src.monitoring.logger import get_logger
from src.reconciliation.decider import decide

logger = get_logger(__name__)


class TradeOrchestrator:
    """
    Sequences reader -> decider -> executor for each signal.

    Each exchange call is awaited before the next; there is no internal
    locking, so callers must not run two reconciliations for the same
    instrument at once.
    """

    def __init__(
        self,
        reader: AccountReader,
        executor: OrderExecutor,
        sink: Optional[NotificationSink] = None,
        instrument_suffix: str = PERP_SYMBOL_SUFFIX,
    ):
        self.reader = reader
        self.executor = executor
        self.sink = sink
        self.instrument_suffix = instrument_suffix

    async def execute(self, signal: Signal) -> TradeResult:
        """
        Reconcile the account with `signal`.

        Returns:
            TradeResult; action NONE means nothing was sent

        Raises:
            Whatever failed (SizingError, LeverageError, FillTimeoutError,
            TransportError, ...) after it has been forwarded as an ErrorEvent.
        """
        instrument = market_to_instrument(signal.market, self.instrument_suffix)
        self._log_signal(signal, instrument)

        try:
            current = await self.reader.get_position(instrument)
            self._log_position(instrument, current)

            action = decide(signal.desired_position, current)
            logger.info("Action decided", instrument=instrument, action=action.value)

            result = await self._dispatch(action, signal, instrument, current)
        except Exception as e:
            logger.error(
                "TRADE_EXECUTION_FAILED",
                instrument=instrument,
                strategy=signal.strategy,
                error_type=type(e).__name__,
                error=str(e),
            )
            self._emit(ErrorEvent(
                instrument=instrument,
                market=signal.market,
                strategy=signal.strategy,
                exchange=signal.exchange,
                message=str(e),
            ))
            raise

        if result.executed:
            self._emit(TradeEvent(
                instrument=instrument,
                market=signal.market,
                strategy=signal.strategy,
                desired_position=signal.desired_position,
                filled_size=result.size,
                fill_price=result.price if result.price is not None else signal.reference_price,
                leverage=signal.leverage,
            ))
            logger.info("Trade execution completed", instrument=instrument, action=result.action.value, size=str(result.size))
        else:
            logger.info("No action needed - already in correct position", instrument=instrument)
        return result

    async def _dispatch(
        self,
        action: Action,
        signal: Signal,
        instrument: str,
        current: Optional[Position],
    ) -> TradeResult:
        if action == Action.NONE:
            return TradeResult(instrument=instrument, action=action)

        if action == Action.CLOSE:
            outcome = await self._close(instrument, current)
            return TradeResult(
                instrument=instrument,
                action=action,
                size=current.size,
                price=outcome.average_price,
            )

        if action.closes_first:
            # Reverse: a failed close aborts before any open is sent
            await self._close(instrument, current)

        size, outcome, quoted = await self._open(instrument, action.open_side, signal.leverage)
        return TradeResult(
            instrument=instrument,
            action=action,
            size=size,
            price=outcome.average_price or quoted,
            leverage=signal.leverage,
        )

    async def _close(self, instrument: str, current: Optional[Position]) -> OrderOutcome:
        if current is None:
            raise OrderExecutionError(f"No position to close for {instrument}")
        return await self.executor.close_position(instrument, current)

    async def _open(self, instrument: str, side: Side, leverage: Decimal) -> Tuple[Decimal, OrderOutcome, Decimal]:
        balance = await self.reader.get_available_balance()
        price = await self.reader.get_market_price(instrument)
        size = calculate_position_size(balance, leverage, price)

        logger.info(
            "Position sizing",
            instrument=instrument,
            available_balance=f"{balance:.2f}",
            market_price=f"{price:.2f}",
            size=str(size),
        )

        outcome = await self.executor.open_position(instrument, side == Side.LONG, size, leverage)
        return size, outcome, price

    def _emit(self, event) -> None:
        if self.sink is not None:
            self.sink.emit(event)

    def _log_signal(self, signal: Signal, instrument: str) -> None:
        logger.info(
            "TRADE_SIGNAL_RECEIVED",
            banner="=" * BANNER_WIDTH,
            strategy=signal.strategy,
            market=signal.market,
            instrument=instrument,
            order=signal.order_hint.value.upper() if signal.order_hint else None,
            position=signal.desired_position.value.upper(),
            leverage=f"{signal.leverage}x",
            signal_price=str(signal.reference_price) if signal.reference_price is not None else None,
        )

    def _log_position(self, instrument: str, current: Optional[Position]) -> None:
        if current is None:
            logger.info("Current position: NONE", instrument=instrument)
            return
        logger.info(
            "Current position",
            instrument=instrument,
            side=current.side.value.upper(),
            size=str(current.size),
            entry=f"{current.entry_price:.2f}",
            pnl=f"{current.unrealized_pnl:.2f}",
        )
