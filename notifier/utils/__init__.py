"""Utility helpers for reusable functionality."""

from .datetime import (
    ensure_utc,
    ensure_utc_naive,
    parse_time_of_day,
    resolve_timezone,
    utc_now,
)
from .locks import KeyedLock

__all__ = [
    "KeyedLock",
    "ensure_utc",
    "ensure_utc_naive",
    "parse_time_of_day",
    "resolve_timezone",
    "utc_now",
]
