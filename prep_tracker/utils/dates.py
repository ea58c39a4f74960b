"""
Calendar-day helpers pinned to the reference timezone.

Datetimes are persisted as naive UTC. A naive datetime handed to any helper
here is therefore read as UTC; a plain ``date`` is already a calendar day in
the reference timezone.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, NamedTuple

import pytz

from prep_tracker.config import REFERENCE_TIMEZONE

REFERENCE_TZ = pytz.timezone(REFERENCE_TIMEZONE)


class DayWindow(NamedTuple):
    """Half-open [start, end) bounds of one reference-timezone day, as naive UTC."""

    day: date
    start: datetime
    end: datetime


def utcnow() -> datetime:
    """Current instant as naive UTC, matching what the models store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(pytz.utc).replace(tzinfo=None)


def to_local_date(value: date | datetime) -> date:
    """Return the reference-timezone calendar day containing ``value``."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = pytz.utc.localize(value)
        return value.astimezone(REFERENCE_TZ).date()
    return value


def local_midnight(day: date) -> datetime:
    """Start of ``day`` in the reference timezone, as naive UTC."""
    local = REFERENCE_TZ.localize(datetime.combine(day, time.min))
    return local.astimezone(pytz.utc).replace(tzinfo=None)


def day_window(value: date | datetime) -> DayWindow:
    """Return the [start, end) window of the day containing ``value``."""
    day = to_local_date(value)
    return DayWindow(day, local_midnight(day), local_midnight(day + timedelta(days=1)))


def days_between(start: date | datetime, target: date | datetime) -> int:
    """Whole calendar days from ``start`` to ``target`` (negative if target is earlier)."""
    return (to_local_date(target) - to_local_date(start)).days


def weekday_number(value: date | datetime) -> int:
    """Weekday as 0=Sunday .. 6=Saturday."""
    return to_local_date(value).isoweekday() % 7


def iter_days(start: date | datetime, end: date | datetime) -> Iterator[date]:
    """Yield every calendar day from ``start`` to ``end`` inclusive."""
    current = to_local_date(start)
    last = to_local_date(end)
    while current <= last:
        yield current
        current += timedelta(days=1)


def parse_date_param(raw: str) -> date | datetime:
    """
    Parse a query-string date.

    ``YYYY-MM-DD`` is a reference-timezone day; anything longer is an ISO
    datetime (a trailing ``Z`` is accepted).

    Raises:
        ValueError: If the value is not a valid ISO date or datetime
    """
    raw = raw.strip()
    if len(raw) == 10:
        return date.fromisoformat(raw)
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))
