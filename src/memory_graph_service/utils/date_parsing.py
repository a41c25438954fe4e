"""Date parsing utilities for time-window filters."""

import re
import time
from datetime import datetime, timezone

from dateutil import parser as dateutil_parser

RELATIVE_DATE_PATTERN = re.compile(r"^(\d+)([hdwmy])$")

_UNIT_SECONDS = {
    "h": 60 * 60,
    "d": 24 * 60 * 60,
    "w": 7 * 24 * 60 * 60,
    "m": 30 * 24 * 60 * 60,  # Approximate month
    "y": 365 * 24 * 60 * 60,  # Approximate year
}


def parse_date_filter(date_str: str) -> float:
    """
    Parse relative or absolute date to Unix timestamp.

    Supported formats:
    - Relative: "12h" (hours), "7d" (days), "2w" (weeks), "1m" (months ~30d), "1y" (years ~365d)
    - Absolute: ISO8601 "2026-01-15T10:30:00Z" (naive values are read as UTC)

    Args:
        date_str: Date string to parse

    Returns:
        Unix timestamp (float)

    Raises:
        ValueError: If format is invalid
    """
    relative_match = RELATIVE_DATE_PATTERN.match(date_str.strip().lower())
    if relative_match:
        amount = int(relative_match.group(1))
        unit = relative_match.group(2)
        return time.time() - amount * _UNIT_SECONDS[unit]

    try:
        dt = dateutil_parser.isoparse(date_str.strip())
    except (ValueError, OverflowError):
        pass
    else:
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.timestamp()

    raise ValueError(
        f"Invalid date format: {date_str}. Use relative (e.g., '7d', '1m', '1y') or ISO8601 (e.g., '2026-01-15T10:30:00Z')"
    )


def to_utc_datetime(value: datetime | str | float | int | None) -> datetime | None:
    """
    Normalise a time-window bound to an aware UTC datetime.

    Accepts datetimes (naive = UTC), Unix timestamps, and any string
    understood by :func:`parse_date_filter`. ``None`` passes through.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, timezone.utc)
    return datetime.fromtimestamp(parse_date_filter(value), timezone.utc)
