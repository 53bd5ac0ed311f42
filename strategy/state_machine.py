# PATH: strategy/state_machine.py
"""
Scan scheduler state machine.

States:
- IDLE: between iterations, or not started
- SCANNING: evaluating a popped cycle
- PAUSED: queue empty after regeneration, waiting to retry
- BACKOFF: sustained provider errors, waiting with a grown delay
- STOPPED: explicit stop requested (terminal until reset)
"""

from enum import Enum, auto
from typing import Optional

from core.logging import get_logger

logger = get_logger(__name__)


class ScanState(Enum):
    """Scheduler states."""
    IDLE = auto()
    SCANNING = auto()
    PAUSED = auto()
    BACKOFF = auto()
    STOPPED = auto()


_VALID_TRANSITIONS = {
    ScanState.IDLE: [ScanState.SCANNING, ScanState.PAUSED, ScanState.BACKOFF, ScanState.STOPPED],
    ScanState.SCANNING: [ScanState.IDLE, ScanState.PAUSED, ScanState.BACKOFF, ScanState.STOPPED],
    ScanState.PAUSED: [ScanState.IDLE, ScanState.SCANNING, ScanState.STOPPED],
    ScanState.BACKOFF: [ScanState.IDLE, ScanState.SCANNING, ScanState.PAUSED, ScanState.STOPPED],
    ScanState.STOPPED: [],
}


class ScanStateMachine:
    """Tracks the scheduler state and rejects invalid transitions."""

    def __init__(self):
        self._state = ScanState.IDLE
        self._error_reason: Optional[str] = None
        self.transitions = 0

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def error_reason(self) -> Optional[str]:
        return self._error_reason

    def can_transition_to(self, target: ScanState) -> bool:
        if target == self._state:
            return True
        return target in _VALID_TRANSITIONS.get(self._state, [])

    def transition_to(self, target: ScanState) -> bool:
        """Attempt state transition. Staying in the same state is always allowed."""
        if not self.can_transition_to(target):
            self._error_reason = f"Invalid transition: {self._state.name} -> {target.name}"
            logger.warning(self._error_reason)
            return False

        if target != self._state:
            logger.debug(f"Scheduler state {self._state.name} -> {target.name}")
            self.transitions += 1
        self._state = target
        self._error_reason = None
        return True

    def reset(self) -> None:
        """Reset to IDLE state."""
        self._state = ScanState.IDLE
        self._error_reason = None
