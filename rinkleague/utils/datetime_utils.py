"""
Datetime utility functions.
Provides replacements for deprecated datetime functions.
"""

from datetime import datetime, timedelta
from typing import Optional
import pytz

from rinkleague.utils.constants import EVENT_ACTIVE_WINDOW_HOURS


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes.

    SQLite hands timezone-aware columns back without tzinfo; everything we
    store is UTC, so a naive value is interpreted as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value


def parse_iso_datetime(value: str) -> datetime:
    """
    Parse an ISO 8601 string (accepting a trailing 'Z') into a UTC datetime.

    Raises:
        ValueError: If the string is not a valid ISO datetime
    """
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    return ensure_utc(parsed).astimezone(pytz.UTC)


def round_to_nearest_5_minutes(value: datetime) -> datetime:
    """
    Round a datetime to the nearest 5-minute mark.

    Examples:
        6:52 -> 6:50, 6:53 -> 6:55, 6:54 -> 6:55
    """
    value = ensure_utc(value)
    epoch = datetime(1970, 1, 1, tzinfo=pytz.UTC)
    step = 5 * 60
    seconds = (value - epoch).total_seconds()
    # Halves round up, matching Math.round semantics used by the event forms
    rounded = int(seconds // step + (1 if seconds % step >= step / 2 else 0)) * step
    return epoch + timedelta(seconds=rounded)


def is_event_active(start_time: datetime, now: Optional[datetime] = None) -> bool:
    """Events stay active until EVENT_ACTIVE_WINDOW_HOURS after their start time."""
    now = ensure_utc(now) if now is not None else utcnow()
    return now < ensure_utc(start_time) + timedelta(hours=EVENT_ACTIVE_WINDOW_HOURS)


def format_event_start(start_time: datetime) -> str:
    """
    Format an event start for emails, e.g. "Mar 7, 2026 at 7:05 PM" (UTC).
    """
    value = ensure_utc(start_time)
    hour = value.hour % 12 or 12
    return f"{value.strftime('%b')} {value.day}, {value.year} at {hour}:{value.strftime('%M %p')}"
