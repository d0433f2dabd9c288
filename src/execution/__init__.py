"""
Execution module.

ARCHITECTURE:
    TradeOrchestrator (one signal -> one reconciliation)
        │
        ├── AccountReader (position snapshot, balance, mid price)
        ├── decide() (desired x current -> Action)
        ├── calculate_position_size()
        └── OrderExecutor (leverage + retry-until-filled IOC orders)
                │
                └── HyperliquidClient (shared ccxt handle)
"""

from src.execution.executor import OrderExecutor
from src.execution.orchestrator import TradeOrchestrator
from src.execution.sizing import calculate_position_size

__all__ = [
    "OrderExecutor",
    "TradeOrchestrator",
    "calculate_position_size",
]
