"""Calendar helpers for day-granular date handling."""

from datetime import date, datetime, time, timedelta
from typing import Union

DateLike = Union[date, datetime]

WEEK_STARTS = ("monday", "sunday")


def start_of_day(value: DateLike) -> datetime:
    """Truncate a date or datetime to local midnight.

    Aware datetimes are converted to local time before truncation, so the
    result is always a naive local datetime with a zero time component.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone().replace(tzinfo=None)
        return datetime.combine(value.date(), time.min)
    return datetime.combine(value, time.min)


def start_of_week(value: DateLike, week_start: str = "monday") -> datetime:
    """Get the first day of the week containing ``value``.

    Args:
        value: Reference date
        week_start: 'monday' or 'sunday'

    Returns:
        Midnight of the first day of that week
    """
    if week_start not in WEEK_STARTS:
        raise ValueError(f"Invalid week start: {week_start}")

    day = start_of_day(value)
    offset = day.weekday() if week_start == "monday" else (day.weekday() + 1) % 7
    return day - timedelta(days=offset)


def end_of_week(value: DateLike, week_start: str = "monday") -> datetime:
    """Get the last day (inclusive) of the week containing ``value``."""
    return start_of_week(value, week_start) + timedelta(days=6)


def start_of_month(value: DateLike) -> datetime:
    """Get the first calendar day of the month containing ``value``."""
    return start_of_day(value).replace(day=1)


def end_of_month(value: DateLike) -> datetime:
    """Get the last day of the month: start of next month minus one day."""
    first = start_of_month(value)
    if first.month == 12:
        next_first = first.replace(year=first.year + 1, month=1)
    else:
        next_first = first.replace(month=first.month + 1)
    return next_first - timedelta(days=1)


def start_of_year(value: DateLike) -> datetime:
    """Get January 1st of the year containing ``value``."""
    return start_of_day(value).replace(month=1, day=1)


def end_of_year(value: DateLike) -> datetime:
    """Get December 31st of the year containing ``value``."""
    return start_of_day(value).replace(month=12, day=31)


def days(start: DateLike, end: DateLike) -> list[datetime]:
    """List every day from ``start`` to ``end`` inclusive.

    Returns an empty list when ``end`` is before ``start``.
    """
    current = start_of_day(start)
    last = start_of_day(end)
    result = []
    while current <= last:
        result.append(current)
        current += timedelta(days=1)
    return result


def weekday_ordinal(value: DateLike) -> int:
    """Weekday number with Sunday as 1 through Saturday as 7."""
    return (start_of_day(value).weekday() + 1) % 7 + 1
