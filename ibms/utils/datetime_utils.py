"""
Date/time helpers shared by the bed services.

All timestamps are stored as naive UTC datetimes; tz-aware values coming in
through the API are normalised with ``as_naive_utc`` before they reach the
database.
"""

import math
from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(dt: datetime) -> datetime:
    """
    Convert dt to naive UTC.
    A naive dt is treated as UTC already.
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def hours_before(now: datetime, hours: float) -> datetime:
    return now - timedelta(hours=hours)


def whole_days_between(start: datetime, end: datetime) -> int:
    """Elapsed days between two instants, rounded up."""
    elapsed = as_naive_utc(end) - as_naive_utc(start)
    return math.ceil(elapsed / timedelta(days=1))
