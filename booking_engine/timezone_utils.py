# booking_engine/timezone_utils.py
#
# Timezone utilities for consistent datetime handling.
# Every datetime inside the engine is timezone-aware; calendar days are
# always taken in the shop's own timezone.

from datetime import date, datetime, time, timezone
from typing import Optional

import pytz

from config.settings import APP_TIMEZONE

DEFAULT_TIMEZONE = APP_TIMEZONE
_tz = pytz.timezone(DEFAULT_TIMEZONE)


def now() -> datetime:
    """
    Get current timezone-aware datetime in the shop timezone.
    """
    return datetime.now(_tz)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.
    If datetime is naive, assumes it's in the default timezone.
    """
    return make_aware(dt).astimezone(timezone.utc)


def from_utc(dt: datetime) -> datetime:
    """
    Convert a UTC datetime to the default timezone.
    """
    if dt.tzinfo is None:
        # Assume naive datetime is UTC
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(_tz)


def make_aware(dt: datetime, tz: Optional[str] = None) -> datetime:
    """
    Make a naive datetime timezone-aware.

    Args:
        dt: Naive datetime
        tz: Timezone name (default: DEFAULT_TIMEZONE)

    Returns:
        Timezone-aware datetime
    """
    if dt.tzinfo is not None:
        return dt
    tz_obj = pytz.timezone(tz) if tz else _tz
    return tz_obj.localize(dt)


def parse_iso_with_tz(iso_string: str) -> datetime:
    """
    Parse ISO format string and ensure timezone awareness.
    A trailing 'Z' means UTC; no offset at all means shop time.
    """
    dt = datetime.fromisoformat(iso_string.replace('Z', '+00:00'))
    return make_aware(dt)


def local_day(dt: datetime) -> date:
    """Calendar date of an instant, in the shop timezone."""
    return make_aware(dt).astimezone(_tz).date()


def start_of_day(d: date) -> datetime:
    """Midnight (shop time) at the start of the given date."""
    return _tz.localize(datetime.combine(d, time.min))
