"""
Reconciliation decider: desired position x current holding -> action.

Pure and total. Every (desired, current side) pair has exactly one action.
"""
from typing import Dict, Optional, Tuple

from src.domain.models import Action, DesiredPosition, Position, Side

ACTION_TABLE: Dict[Tuple[DesiredPosition, Optional[Side]], Action] = {
    (DesiredPosition.FLAT, None): Action.NONE,
    (DesiredPosition.FLAT, Side.LONG): Action.CLOSE,
    (DesiredPosition.FLAT, Side.SHORT): Action.CLOSE,
    (DesiredPosition.LONG, None): Action.OPEN_LONG,
    (DesiredPosition.LONG, Side.LONG): Action.NONE,
    (DesiredPosition.LONG, Side.SHORT): Action.REVERSE_TO_LONG,
    (DesiredPosition.SHORT, None): Action.OPEN_SHORT,
    (DesiredPosition.SHORT, Side.LONG): Action.REVERSE_TO_SHORT,
    (DesiredPosition.SHORT, Side.SHORT): Action.NONE,
}


def decide(desired: DesiredPosition, current: Optional[Position]) -> Action:
    """Action that moves `current` to `desired`. None means flat."""
    return ACTION_TABLE[(DesiredPosition(desired), current.side if current else None)]
