"""Local calendar days and the UTC instants that bound them.

A note belongs to a *local* day, but is stored under the UTC instant of that
day's local midnight. Every range below is closed-open: ``[start, end)``.
"""
from __future__ import annotations

import datetime as dt
from typing import Optional


def local_midnight_utc(day: dt.date, tz: Optional[dt.tzinfo] = None) -> dt.datetime:
    """UTC instant of 00:00 on ``day`` in ``tz`` (the system zone when None)."""
    if isinstance(day, dt.datetime):
        day = day.date()
    midnight = dt.datetime.combine(day, dt.time.min)
    if tz is None:
        # naive astimezone() applies the system rules for that date, DST included
        return midnight.astimezone(dt.timezone.utc)
    return midnight.replace(tzinfo=tz).astimezone(dt.timezone.utc)


def day_range_utc(day: dt.date, tz: Optional[dt.tzinfo] = None) -> tuple[dt.datetime, dt.datetime]:
    if isinstance(day, dt.datetime):
        day = day.date()
    start = local_midnight_utc(day, tz)
    end = local_midnight_utc(day + dt.timedelta(days=1), tz)
    return start, end


def first_of_next_month(day: dt.date) -> dt.date:
    if day.month == 12:
        return dt.date(day.year + 1, 1, 1)
    return dt.date(day.year, day.month + 1, 1)


def month_range_utc(month: dt.date, tz: Optional[dt.tzinfo] = None) -> tuple[dt.datetime, dt.datetime]:
    """Range covering every local day of the month containing ``month``.

    Both bounds come from local midnights, so a DST change inside the month
    does not shift the upper bound by an hour.
    """
    first = dt.date(month.year, month.month, 1)
    return local_midnight_utc(first, tz), local_midnight_utc(first_of_next_month(first), tz)


def to_local_date(instant: dt.datetime, tz: Optional[dt.tzinfo] = None) -> dt.date:
    """Local calendar day an instant falls on (inverse of ``local_midnight_utc``)."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=dt.timezone.utc)
    return instant.astimezone(tz).date()
