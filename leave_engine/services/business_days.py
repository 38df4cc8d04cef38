"""
Chargeable day counting for leave requests.

Weekends (Saturday/Sunday) and public holidays are never charged; a half-day
request always costs half a day.
"""
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, Optional

HALF_DAY = 0.5


def as_calendar_date(value) -> date:
    """Reduce a datetime to its calendar date; dates pass through."""
    if isinstance(value, datetime):
        return value.date()
    return value


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def iter_dates(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def count_chargeable_days(
    start_date: date,
    end_date: date,
    holidays: Optional[Iterable[date]] = None,
    is_half_day: bool = False,
) -> float:
    """
    Number of leave days a request for [start_date, end_date] consumes.

    Returns 0 when the range is inverted; callers are expected to reject
    such ranges before getting here.
    """
    if is_half_day:
        return HALF_DAY

    start, end = as_calendar_date(start_date), as_calendar_date(end_date)
    if end < start:
        return 0.0

    excluded = {as_calendar_date(h) for h in (holidays or ())}
    return float(sum(
        1 for day in iter_dates(start, end)
        if not is_weekend(day) and day not in excluded
    ))
