"""Helpers for working with timezone-aware datetimes."""

from __future__ import annotations

import re
from datetime import datetime, time, timedelta, timezone, tzinfo
from functools import lru_cache
from typing import Final

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_TIMEZONE: Final[str] = "America/Mexico_City"
_OFFSET_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?:UTC|GMT)(?P<sign>[+-])(?P<hours>\d{1,2})(?::?(?P<minutes>\d{2}))?$",
    re.IGNORECASE,
)
_TIME_OF_DAY_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?P<hour>[01]\d|2[0-3]):(?P<minute>[0-5]\d)$"
)


def utc_now() -> datetime:
    """Return the current instant as an aware UTC ``datetime``."""

    return datetime.now(tz=timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Normalize ``value`` so it is expressed in UTC.

    Naive values are assumed to already be UTC, which is how the persistence
    layer stores them.
    """

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def ensure_utc_naive(value: datetime | None) -> datetime | None:
    """Return ``value`` converted to UTC but without ``tzinfo``.

    SQLite ``DATETIME`` columns drop the offset; storing the naive UTC
    representation keeps the round trip lossless.
    """

    localized = ensure_utc(value)
    if localized is None:
        return None
    return localized.replace(tzinfo=None)


def parse_time_of_day(value: str) -> time:
    """Parse a ``HH:MM`` string into a :class:`~datetime.time`.

    Raises ``ValueError`` when the value is not a valid 24h time of day.
    """

    match = _TIME_OF_DAY_PATTERN.match(value.strip()) if value else None
    if match is None:
        raise ValueError(f"Invalid time of day '{value}', expected HH:MM")
    return time(hour=int(match.group("hour")), minute=int(match.group("minute")))


@lru_cache(maxsize=128)
def resolve_timezone(tz_name: str | None) -> tzinfo:
    """Resolve ``tz_name`` into a ``tzinfo`` instance.

    IANA names and ``UTC±HH[:MM]`` offsets are accepted. Unknown values fall
    back to :data:`DEFAULT_TIMEZONE`.
    """

    name = (tz_name or "").strip() or DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        match = _OFFSET_PATTERN.match(name)
        if match:
            sign = -1 if match.group("sign") == "-" else 1
            hours = int(match.group("hours"))
            minutes = int(match.group("minutes") or 0)
            offset = timedelta(hours=hours, minutes=minutes)
            return timezone(sign * offset)
    return ZoneInfo(DEFAULT_TIMEZONE)


def is_known_timezone(tz_name: str) -> bool:
    """Return ``True`` when ``tz_name`` resolves without falling back."""

    name = (tz_name or "").strip()
    if not name:
        return False
    if _OFFSET_PATTERN.match(name):
        return True
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


__all__ = [
    "DEFAULT_TIMEZONE",
    "ensure_utc",
    "ensure_utc_naive",
    "is_known_timezone",
    "parse_time_of_day",
    "resolve_timezone",
    "utc_now",
]
