"""
Date and time helpers.
"""
from datetime import date, datetime, time, timezone
from typing import Optional


def utc_now() -> datetime:
    """Timezone-aware current UTC time; every stored timestamp uses it."""
    return datetime.now(timezone.utc)


def format_datetime(dt: Optional[datetime] = None) -> str:
    """ISO 8601 text of dt (now if omitted), naive values taken as UTC."""
    dt = dt or utc_now()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def hours_between(start: time, end: time) -> float:
    """
    Hours from start to end, both placed on the same reference date.

    Negative or zero when end is not after start.
    """
    reference = date(1970, 1, 1)
    delta = datetime.combine(reference, end) - datetime.combine(reference, start)
    return delta.total_seconds() / 3600
