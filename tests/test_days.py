from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from daynotes.days import (
    day_range_utc, first_of_next_month, local_midnight_utc, month_range_utc, to_local_date,
)

NY = ZoneInfo("America/New_York")
AUCKLAND = ZoneInfo("Pacific/Auckland")
UTC = timezone.utc


def test_local_midnight_is_converted_to_utc():
    assert local_midnight_utc(date(2026, 1, 15), NY) == datetime(2026, 1, 15, 5, tzinfo=UTC)
    # east of UTC the instant falls on the previous UTC day
    assert local_midnight_utc(date(2026, 1, 15), AUCKLAND) == datetime(2026, 1, 14, 11, tzinfo=UTC)


def test_day_range_follows_dst_changes():
    start, end = day_range_utc(date(2026, 3, 8), NY)  # spring forward
    assert end - start == timedelta(hours=23)
    start, end = day_range_utc(date(2026, 11, 1), NY)  # fall back
    assert end - start == timedelta(hours=25)
    start, end = day_range_utc(date(2026, 6, 1), NY)
    assert end - start == timedelta(days=1)


def test_month_range_spans_whole_month():
    start, end = month_range_utc(date(2024, 2, 17), NY)
    assert start == datetime(2024, 2, 1, 5, tzinfo=UTC)
    assert end == datetime(2024, 3, 1, 5, tzinfo=UTC)
    # 29 local days in a leap February
    assert (end - start) == timedelta(days=29)


def test_month_range_uses_local_midnights_across_dst():
    start, end = month_range_utc(date(2026, 3, 1), NY)
    assert start == datetime(2026, 3, 1, 5, tzinfo=UTC)
    assert end == datetime(2026, 4, 1, 4, tzinfo=UTC)


def test_december_rolls_into_next_year():
    assert first_of_next_month(date(2025, 12, 31)) == date(2026, 1, 1)
    start, end = month_range_utc(date(2025, 12, 1), NY)
    assert end == local_midnight_utc(date(2026, 1, 1), NY)


def test_to_local_date_inverts_midnight():
    for d in (date(2026, 1, 1), date(2026, 3, 8), date(2026, 11, 1), date(2026, 12, 31)):
        assert to_local_date(local_midnight_utc(d, AUCKLAND), AUCKLAND) == d
        assert to_local_date(local_midnight_utc(d, NY), NY) == d


def test_system_zone_when_no_tz_given():
    d = date(2026, 7, 4)
    start, end = day_range_utc(d)
    assert start.tzinfo is UTC
    assert to_local_date(start) == d
    assert start < end
