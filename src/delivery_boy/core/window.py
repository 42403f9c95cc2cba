"""
Calendar arithmetic for the weekly digest window.

The window is anchored to the calendar, not to a lookback duration: it starts
at midnight of the most recent Sunday (on or before "now") in the reference
timezone and ends at "now".
"""
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Tuple

# Legacy on-disk format: second precision, no offset, UTC.
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"

SUNDAY = 6  # datetime.weekday() numbering


def utcnow() -> datetime:
    """Server clock. Aware UTC, truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def start_of_week(now: datetime, tz: tzinfo) -> datetime:
    """
    Return 00:00:00 of the most recent Sunday on or before `now`, as seen in
    `tz`, converted to UTC.
    """
    local = now.astimezone(tz)
    days_since_sunday = (local.weekday() - SUNDAY) % 7
    sunday: date = local.date() - timedelta(days=days_since_sunday)
    return datetime.combine(sunday, time.min, tzinfo=tz).astimezone(timezone.utc)


def week_window(now: datetime, tz: tzinfo) -> Tuple[datetime, datetime]:
    """The `[start, now)` window for the digest compiled at `now`."""
    return start_of_week(now, tz), now.astimezone(timezone.utc)


def iso_week(now: datetime, tz: tzinfo) -> int:
    return now.astimezone(tz).isocalendar()[1]


def format_timestamp(value: datetime) -> str:
    """Serialize an aware datetime to the legacy naive-UTC text column."""
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(text: str) -> datetime:
    """Inverse of format_timestamp. Raises ValueError on malformed text."""
    return datetime.strptime(text, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
