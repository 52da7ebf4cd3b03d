"""Utility modules for the request cache."""

from rcache.utils.dates import (
    Clock,
    end_of_day_ms,
    format_ms,
    now_ms,
    to_duration_ms,
    to_epoch_ms,
)

__all__ = [
    "Clock",
    "end_of_day_ms",
    "format_ms",
    "now_ms",
    "to_duration_ms",
    "to_epoch_ms",
]
