"""
Custom exception hierarchy for the signal execution service.

Hierarchy:

    TradingSystemError (base)
    ├── ConfigurationError    : missing/invalid credentials, fatal at startup
    ├── OperationalError      : transient/retryable (exchange, network)
    │   ├── TransportError    : API call failed or returned garbage
    │   └── RetryExhaustedError : bounded retry gave up
    └── DataError             : bad input or rejected business action
        ├── ValidationError   : malformed/unauthorized signal
        ├── SizingError       : non-positive price or balance
        └── OrderExecutionError
            ├── LeverageError        : leverage update failed, no retry
            ├── FillTimeoutError     : attempts exhausted without a full fill
            └── UnconfirmedFillError : order sent, status unreadable

Rules:
    - ConfigurationError: let it crash the process at startup.
    - TransportError: retried inside the executor's attempt budget.
    - DataError subclasses: abort the current reconciliation, surface to the
      caller and mirror to the notification sink.
"""
from typing import Any, Optional


class TradingSystemError(Exception):
    """Base exception for all trading system errors."""
    pass


class ConfigurationError(TradingSystemError):
    """Required configuration (credentials, wallet address) is missing."""
    pass


# ============ OPERATIONAL (transient, retryable) ============

class OperationalError(TradingSystemError):
    """Transient/retryable error: exchange API, network, timeouts."""
    pass


class TransportError(OperationalError):
    """Network/API failure talking to the exchange."""
    pass


class RetryExhaustedError(OperationalError):
    """Raised by bounded_retry when every attempt failed or was unsuccessful."""

    def __init__(
        self,
        attempts: int,
        last_result: Any = None,
        last_error: Optional[BaseException] = None,
    ):
        self.attempts = attempts
        self.last_result = last_result
        self.last_error = last_error
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(f"Gave up after {attempts} attempts{detail}")


# ============ DATA (bad input, abort this signal) ============

class DataError(TradingSystemError):
    """Bad input or rejected action. Abort the reconciliation."""
    pass


class ValidationError(DataError):
    """Raised when an inbound signal fails validation."""
    pass


class SizingError(DataError):
    """Raised when an order size cannot be computed (price or balance <= 0)."""
    pass


class OrderExecutionError(DataError):
    """Raised when an order could not be executed."""
    pass


class LeverageError(OrderExecutionError):
    """Leverage configuration failed. Fatal for the reconciliation."""

    def __init__(self, instrument: str, leverage: Any, reason: str):
        self.instrument = instrument
        self.leverage = leverage
        super().__init__(f"Failed to set {leverage}x leverage for {instrument}: {reason}")


class FillTimeoutError(OrderExecutionError):
    """No full fill after the configured number of attempts."""

    def __init__(self, kind: str, instrument: str, attempts: int):
        self.kind = kind
        self.instrument = instrument
        self.attempts = attempts
        super().__init__(f"Failed to {kind} position for {instrument} after {attempts} attempts")


class UnconfirmedFillError(OrderExecutionError):
    """Order was accepted but the fill status could not be read.

    Not retried by default: resubmitting could double the position.
    """

    def __init__(self, kind: str, instrument: str):
        self.kind = kind
        self.instrument = instrument
        super().__init__(
            f"{kind.capitalize()} order for {instrument} was submitted but its status is unreadable; "
            "check the exchange before retrying"
        )
