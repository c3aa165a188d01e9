from datetime import date, datetime, timedelta, timezone

import pytest

from prodtrack.weeks import (
    format_date,
    month_bounds,
    parse_date,
    period_bounds,
    period_label,
    shift_anchor,
    start_of_week,
    week_days,
)


def test_start_of_week_is_always_monday():
    day = date(2025, 8, 1)
    for offset in range(21):
        current = day + timedelta(days=offset)
        start = start_of_week(current)
        assert start.weekday() == 0
        assert start <= current < start + timedelta(days=7)


def test_sunday_belongs_to_previous_monday():
    assert start_of_week(date(2025, 8, 24)) == date(2025, 8, 18)
    assert start_of_week(date(2025, 8, 18)) == date(2025, 8, 18)


def test_start_of_week_accepts_datetime():
    assert start_of_week(datetime(2025, 8, 20, 17, 45)) == date(2025, 8, 18)


def test_week_days_are_five_consecutive_days():
    days = week_days(start_of_week(date(2025, 12, 31)))
    assert len(days) == 5
    assert days[0] == date(2025, 12, 29)
    assert [b - a for a, b in zip(days, days[1:])] == [timedelta(days=1)] * 4
    assert days[-1] == date(2026, 1, 2)


def test_format_date_uses_local_calendar_fields():
    late_evening_pacific = datetime(2024, 3, 10, 23, 30, tzinfo=timezone(timedelta(hours=-8)))
    early_morning_tokyo = datetime(2024, 3, 10, 0, 15, tzinfo=timezone(timedelta(hours=9)))
    assert format_date(late_evening_pacific) == "2024-03-10"
    assert format_date(early_morning_tokyo) == "2024-03-10"
    assert format_date(date(987, 1, 2)) == "0987-01-02"


def test_format_and_parse_round_trip():
    assert parse_date(format_date(date(2025, 2, 28))) == date(2025, 2, 28)
    with pytest.raises(ValueError):
        parse_date("2025-02-30")


def test_string_order_matches_date_order():
    days = [date(2025, 1, 9), date(2024, 12, 31), date(2025, 10, 1)]
    assert sorted(days) == [parse_date(s) for s in sorted(format_date(d) for d in days)]


def test_period_bounds():
    anchor = date(2025, 8, 20)
    assert period_bounds("today", anchor) == (anchor, anchor)
    assert period_bounds("week", anchor) == (date(2025, 8, 18), date(2025, 8, 24))
    assert period_bounds("month", anchor) == (date(2025, 8, 1), date(2025, 8, 31))
    assert month_bounds(date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))
    with pytest.raises(ValueError):
        period_bounds("year", anchor)


def test_shift_anchor_clamps_month_end():
    assert shift_anchor("month", date(2025, 1, 31), 1) == date(2025, 2, 28)
    assert shift_anchor("month", date(2025, 1, 15), -1) == date(2024, 12, 15)
    assert shift_anchor("week", date(2025, 8, 20), -1) == date(2025, 8, 13)
    assert shift_anchor("today", date(2025, 8, 20), 1) == date(2025, 8, 21)


def test_period_label():
    assert period_label("month", date(2025, 8, 20)) == "August 2025"
    assert period_label("week", date(2025, 8, 20)) == "Week of 2025-08-18"
