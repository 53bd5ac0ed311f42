# PATH: core/time.py
"""
Time utilities for CycleScan.

Timestamps are Unix seconds (float) unless the name says otherwise.
"""

import time
from datetime import datetime, timezone
from typing import Optional


def now_utc() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def now_iso() -> str:
    """Get current UTC datetime as ISO string."""
    return now_utc().isoformat()


def now_timestamp() -> float:
    """Get current Unix timestamp."""
    return time.time()


def file_stamp(timestamp: Optional[float] = None) -> str:
    """
    Filesystem-safe UTC stamp, e.g. 20240101T120000_123.

    Millisecond suffix keeps snapshots written in the same second distinct.
    """
    ts = timestamp if timestamp is not None else time.time()
    dt = datetime.fromtimestamp(ts, tz=timezone.utc)
    return f"{dt.strftime('%Y%m%dT%H%M%S')}_{int((ts % 1) * 1000):03d}"


def age_seconds(timestamp: float, current_time: Optional[float] = None) -> float:
    """Seconds elapsed since timestamp."""
    current = current_time if current_time is not None else time.time()
    return current - timestamp


def is_fresh(
    timestamp: float,
    max_age_seconds: float,
    current_time: Optional[float] = None,
) -> bool:
    """
    Check if a timestamp is fresh (within max_age).

    Args:
        timestamp: Unix timestamp to check
        max_age_seconds: Maximum allowed age
        current_time: Current time (defaults to now)

    Returns:
        True if timestamp is fresh
    """
    return age_seconds(timestamp, current_time) <= max_age_seconds
