# PATH: core/backoff.py
"""
Adaptive backoff shared by the scan scheduler and registry refresh.

The delay stays at the base value until more than `error_threshold`
consecutive failures, then grows geometrically up to `max_delay`.
A success resets both the counter and the delay.
"""

from dataclasses import dataclass, field


@dataclass
class BackoffPolicy:
    base_delay: float
    multiplier: float = 1.5
    max_delay: float = 10.0
    error_threshold: int = 3
    consecutive_errors: int = 0
    current_delay: float = field(init=False)

    def __post_init__(self):
        self.current_delay = self.base_delay

    @property
    def in_backoff(self) -> bool:
        return self.consecutive_errors > self.error_threshold

    def record_success(self) -> None:
        self.consecutive_errors = 0
        self.current_delay = self.base_delay

    def record_failure(self) -> float:
        """Count a failure and return the delay to wait before the next attempt."""
        self.consecutive_errors += 1
        if self.in_backoff:
            self.current_delay = min(self.current_delay * self.multiplier, self.max_delay)
        return self.current_delay

    def to_dict(self) -> dict:
        return {
            "consecutive_errors": self.consecutive_errors,
            "current_delay": round(self.current_delay, 3),
            "in_backoff": self.in_backoff,
        }
