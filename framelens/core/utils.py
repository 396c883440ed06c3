"""
Framelens Utilities
Common helpers for timestamp conversion and timing of pipeline stages.
"""

import logging
import time
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)

# Naive wall-clock timestamps are measured from this epoch
EPOCH = datetime(1970, 1, 1)


def get_monotonic_ns() -> int:
    """Get monotonic clock time in nanoseconds."""
    return time.monotonic_ns()


def ns_to_ms(ns: int) -> float:
    """Convert nanoseconds to milliseconds."""
    return ns / 1_000_000


def ms_to_ns(ms: float) -> int:
    """Convert milliseconds to nanoseconds."""
    return int(round(ms * 1_000_000))


def datetime_to_ns(dt: datetime) -> int:
    """
    Convert a wall-clock datetime to nanoseconds since EPOCH.

    Aware datetimes are converted to UTC first; naive ones are taken as-is.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    delta = dt - EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1_000


def ns_to_datetime(ns: int) -> datetime:
    """Convert nanoseconds since EPOCH back to a naive datetime (microsecond precision)."""
    return EPOCH + timedelta(microseconds=ns // 1_000)


def format_duration(seconds: float) -> str:
    """Format duration as human-readable string."""
    if seconds < 0.001:
        return f"{seconds * 1_000_000:.1f} µs"
    elif seconds < 1:
        return f"{seconds * 1000:.2f} ms"
    elif seconds < 60:
        return f"{seconds:.2f} s"
    elif seconds < 3600:
        return f"{seconds / 60:.1f} min"
    else:
        return f"{seconds / 3600:.1f} h"


class Timer:
    """Context manager for timing code blocks."""

    def __init__(self, name: str = ""):
        self.name = name
        self.start_ns = 0
        self.end_ns = 0
        self.duration_ns = 0
        self.duration_ms = 0.0

    def __enter__(self) -> "Timer":
        self.start_ns = get_monotonic_ns()
        return self

    def __exit__(self, *args) -> None:
        self.end_ns = get_monotonic_ns()
        self.duration_ns = self.end_ns - self.start_ns
        self.duration_ms = ns_to_ms(self.duration_ns)

        if self.name:
            logger.debug(f"{self.name}: {self.duration_ms:.2f} ms")
