from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Tuple, Union

DateLike = Union[date, datetime]

WORKWEEK_LENGTH = 5
TIMEFRAMES = ("today", "week", "month")


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def start_of_week(value: DateLike) -> date:
    """Monday of the week containing ``value``; Sunday belongs to the previous week."""
    day = _as_date(value)
    return day - timedelta(days=day.weekday())


def week_days(week_start: DateLike) -> Tuple[date, ...]:
    start = _as_date(week_start)
    return tuple(start + timedelta(days=i) for i in range(WORKWEEK_LENGTH))


def format_date(value: DateLike) -> str:
    # Calendar fields of the value as given; never shifted to UTC.
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def parse_date(value: str) -> date:
    return datetime.strptime(value, "%Y-%m-%d").date()


def month_bounds(anchor: DateLike) -> Tuple[date, date]:
    day = _as_date(anchor)
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def period_bounds(timeframe: str, anchor: DateLike) -> Tuple[date, date]:
    day = _as_date(anchor)
    if timeframe == "today":
        return day, day
    if timeframe == "month":
        return month_bounds(day)
    if timeframe == "week":
        start = start_of_week(day)
        return start, start + timedelta(days=6)
    raise ValueError(f"Unknown timeframe: {timeframe!r}")


def shift_anchor(timeframe: str, anchor: DateLike, step: int) -> date:
    day = _as_date(anchor)
    if timeframe == "today":
        return day + timedelta(days=step)
    if timeframe == "week":
        return day + timedelta(days=7 * step)
    if timeframe == "month":
        month_index = day.year * 12 + (day.month - 1) + step
        year, month = divmod(month_index, 12)
        month += 1
        last = calendar.monthrange(year, month)[1]
        return date(year, month, min(day.day, last))
    raise ValueError(f"Unknown timeframe: {timeframe!r}")


def period_label(timeframe: str, anchor: DateLike) -> str:
    start, _ = period_bounds(timeframe, anchor)
    if timeframe == "month":
        return f"{calendar.month_name[start.month]} {start.year}"
    if timeframe == "week":
        return f"Week of {format_date(start)}"
    return format_date(start)
