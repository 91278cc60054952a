"""
Time utilities for the event relay.
"""

import time
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Get current UTC time (timezone-aware, Python 3.12+ compatible)."""
    return datetime.now(timezone.utc)


def monotonic_ns_after(previous: int) -> int:
    """Wall-clock nanoseconds, bumped past ``previous`` if the clock stalls or steps back."""
    return max(time.time_ns(), previous + 1)
