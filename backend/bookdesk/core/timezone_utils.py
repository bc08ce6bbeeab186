# backend/bookdesk/core/timezone_utils.py
"""
Organization timezone helpers.

Instants are stored in UTC. Business-hours comparisons and the dates used by
slot listing and booking filters are interpreted in the organization's zone.
"""

from datetime import date, datetime, time, timedelta, timezone
import logging

import pytz

logger = logging.getLogger(__name__)


def get_timezone(tz_name: str) -> pytz.BaseTzInfo:
    """Return a pytz timezone, falling back to UTC for unknown names."""
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown organization timezone {tz_name!r}, using UTC")
        return pytz.UTC


def is_valid_timezone(tz_name: str) -> bool:
    return tz_name in pytz.all_timezones_set


def ensure_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_local(value: datetime, tz_name: str) -> datetime:
    """Project an instant into the organization's timezone."""
    return ensure_utc(value).astimezone(get_timezone(tz_name))


def local_to_utc(day: date, at: time, tz_name: str) -> datetime:
    """Build the UTC instant for a wall-clock time on a local date."""
    tz = get_timezone(tz_name)
    local = tz.localize(datetime.combine(day, at))
    return local.astimezone(timezone.utc)


def local_day_bounds(day: date, tz_name: str) -> tuple[datetime, datetime]:
    """Return ``[start, end)`` in UTC covering one calendar day in the zone."""
    start = local_to_utc(day, time.min, tz_name)
    end = local_to_utc(day + timedelta(days=1), time.min, tz_name)
    return start, end
