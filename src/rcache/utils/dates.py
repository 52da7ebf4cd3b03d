"""Clock and instant utilities for the request cache.

All cache instants are integer epoch milliseconds.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from datetime import date, datetime, timedelta

Clock = Callable[[], int]

MS_PER_SECOND = 1000
MS_PER_DAY = 24 * 60 * 60 * MS_PER_SECOND


def now_ms() -> int:
    """Get the current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def end_of_day_ms(instant_ms: int) -> int:
    """Get 23:59:59.999 local time of the day containing an instant.

    Args:
        instant_ms: Epoch milliseconds.

    Returns:
        Epoch milliseconds of the last millisecond of that local day.
    """
    local = datetime.fromtimestamp(instant_ms / MS_PER_SECOND)
    end = datetime.combine(local.date(), datetime.max.time()).replace(microsecond=999000)
    return round(end.timestamp() * MS_PER_SECOND)


def to_epoch_ms(value: object) -> int | None:
    """Coerce an instant given in one of several shapes to epoch milliseconds.

    Accepts int/float milliseconds, numeric strings, ISO-8601 strings,
    datetime and date objects. Naive datetimes are read as local time.

    Returns:
        Epoch milliseconds, or None if the value is not a recognisable instant.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, datetime):
        return round(value.timestamp() * MS_PER_SECOND)
    if isinstance(value, date):
        return round(datetime.combine(value, datetime.min.time()).timestamp() * MS_PER_SECOND)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(float(text))
        except (ValueError, OverflowError):
            pass
        try:
            return to_epoch_ms(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def to_duration_ms(value: object) -> int | None:
    """Coerce a relative duration (milliseconds or timedelta) to int milliseconds."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, timedelta):
        return round(value.total_seconds() * MS_PER_SECOND)
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value.strip()))
        except (ValueError, OverflowError):
            return None
    return None


def format_ms(instant_ms: int) -> str:
    """Format epoch milliseconds as a local ISO-8601 timestamp (for display)."""
    return datetime.fromtimestamp(instant_ms / MS_PER_SECOND).isoformat(timespec="milliseconds")
