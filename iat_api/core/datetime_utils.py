"""
Datetime utility functions for handling timezone-aware datetimes.
"""
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Return the current datetime in UTC timezone.

    Using this function instead of datetime.now(timezone.utc) directly
    enables easier testing through mocking.
    """
    return datetime.now(timezone.utc)


def ensure_timezone_aware(dt: Optional[datetime]) -> datetime:
    """
    Ensure a datetime object is timezone-aware (UTC).
    SQLite returns timezone-naive datetimes even when stored as timezone-aware.

    Raises:
        ValueError: If dt is None
    """
    if dt is None:
        raise ValueError("datetime cannot be None")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def start_of_local_day(now: Optional[datetime] = None) -> datetime:
    """
    Return local midnight of the day containing ``now``, expressed in UTC.

    "Today" is the server's local calendar day; the boundary is converted
    to UTC so it compares directly against stored timestamps.
    """
    local_now = (now or utc_now()).astimezone()
    local_midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return local_midnight.astimezone(timezone.utc)
