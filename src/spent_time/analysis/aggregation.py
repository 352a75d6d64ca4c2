"""Read-only aggregation queries over a snapshot.

All dates are compared at day granularity: inputs are truncated to
midnight before comparing them with entry dates.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence
from uuid import UUID

from spent_time.core.dates import (
    DateLike,
    days,
    end_of_month,
    end_of_week,
    end_of_year,
    start_of_day,
    start_of_month,
    start_of_week,
    start_of_year,
    weekday_ordinal,
)
from spent_time.core.models import AggregationRange, PieSlice, Snapshot, Sphere, TimeEntry


@dataclass
class PeriodComparison:
    """Minutes spent on one sphere in two periods."""

    sphere_id: UUID
    first_minutes: int
    second_minutes: int

    @property
    def difference(self) -> int:
        """Second period minus first period."""
        return self.second_minutes - self.first_minutes


def period_bounds(
    range_: AggregationRange,
    ref_date: DateLike,
    week_start: str = "monday",
) -> tuple[datetime, datetime]:
    """Inclusive first and last day of the period containing ``ref_date``.

    Args:
        range_: Day, Week, Month or Year
        ref_date: Any date inside the period
        week_start: First day of week for Week ranges

    Returns:
        Tuple of (start, end), both truncated to midnight
    """
    range_ = AggregationRange(range_)
    if range_ is AggregationRange.DAY:
        day = start_of_day(ref_date)
        return day, day
    if range_ is AggregationRange.WEEK:
        return start_of_week(ref_date, week_start), end_of_week(ref_date, week_start)
    if range_ is AggregationRange.MONTH:
        return start_of_month(ref_date), end_of_month(ref_date)
    return start_of_year(ref_date), end_of_year(ref_date)


def entries_on(snapshot: Snapshot, day: DateLike) -> list[TimeEntry]:
    """All entries recorded on ``day``."""
    target = start_of_day(day)
    return [e for e in snapshot.time_entries if e.date == target]


def entries_between(snapshot: Snapshot, start: DateLike, end: DateLike) -> list[TimeEntry]:
    """All entries with ``start <= date <= end`` (both inclusive)."""
    first = start_of_day(start)
    last = start_of_day(end)
    return [e for e in snapshot.time_entries if first <= e.date <= last]


def entries_for_range(
    snapshot: Snapshot,
    range_: AggregationRange,
    ref_date: DateLike,
    week_start: str = "monday",
) -> list[TimeEntry]:
    """Entries inside the period of ``range_`` that contains ``ref_date``."""
    start, end = period_bounds(range_, ref_date, week_start)
    return entries_between(snapshot, start, end)


def _sum_by_sphere(entries: Iterable[TimeEntry]) -> dict[UUID, int]:
    # Keys keep the order in which spheres first appear among the entries
    totals: dict[UUID, int] = {}
    for entry in entries:
        totals[entry.sphere_id] = totals.get(entry.sphere_id, 0) + entry.minutes
    return totals


def aggregate_by_sphere(snapshot: Snapshot, day: DateLike) -> dict[UUID, int]:
    """Map of sphere id to total minutes recorded on ``day``."""
    return _sum_by_sphere(entries_on(snapshot, day))


def dominant_sphere(snapshot: Snapshot, day: DateLike) -> Optional[Sphere]:
    """Sphere with the most minutes on ``day``.

    Ties go to the sphere that was created first.

    Returns:
        Sphere, or None if nothing was recorded that day
    """
    totals = aggregate_by_sphere(snapshot, day)
    best: Optional[Sphere] = None
    best_minutes = 0
    for sphere in snapshot.spheres:
        minutes = totals.get(sphere.id, 0)
        if minutes > best_minutes:
            best, best_minutes = sphere, minutes
    return best


def pie_data(
    snapshot: Snapshot,
    range_: AggregationRange,
    ref_date: DateLike,
    week_start: str = "monday",
) -> list[PieSlice]:
    """Per-sphere slices for the period containing ``ref_date``.

    Spheres with a zero total are left out. Slices come in the order their
    spheres first appear among the period's entries; sort them if a stable
    presentation order is needed.
    """
    totals = _sum_by_sphere(entries_for_range(snapshot, range_, ref_date, week_start))
    return [
        PieSlice(sphere_id=sphere_id, total_minutes=minutes)
        for sphere_id, minutes in totals.items()
        if minutes > 0
    ]


def weekday_histogram(
    snapshot: Snapshot,
    ref_date: DateLike,
    week_start: str = "monday",
) -> dict[int, int]:
    """Minutes per day of the week containing ``ref_date``.

    Keys are weekday ordinals with Sunday as 1 and Saturday as 7, regardless
    of ``week_start``. Every day of the week is present, zero if empty.
    """
    start = start_of_week(ref_date, week_start)
    histogram: dict[int, int] = {}
    for day in days(start, start + timedelta(days=6)):
        histogram[weekday_ordinal(day)] = total_minutes_on(snapshot, day)
    return histogram


def percentage(slice_: PieSlice, slices: Sequence[PieSlice]) -> float:
    """Share of ``slice_`` in the total of ``slices``, 0-100.

    Returns 0 when the total is zero.
    """
    total = sum(s.total_minutes for s in slices)
    if total <= 0:
        return 0.0
    return (slice_.total_minutes / total) * 100.0


def total_minutes_on(snapshot: Snapshot, day: DateLike) -> int:
    """Sum of minutes recorded on ``day``."""
    return sum(e.minutes for e in entries_on(snapshot, day))


def total_minutes_between(snapshot: Snapshot, start: DateLike, end: DateLike) -> int:
    """Sum of minutes recorded from ``start`` to ``end`` inclusive."""
    return sum(e.minutes for e in entries_between(snapshot, start, end))


def total_minutes_for_sphere(
    snapshot: Snapshot,
    sphere_id: UUID,
    start: DateLike,
    end: DateLike,
) -> int:
    """Sum of minutes of one sphere from ``start`` to ``end`` inclusive."""
    return sum(e.minutes for e in entries_between(snapshot, start, end) if e.sphere_id == sphere_id)


def sphere_totals(
    snapshot: Snapshot,
    range_: AggregationRange,
    ref_date: DateLike,
    week_start: str = "monday",
) -> list[tuple[Sphere, int]]:
    """Spheres with their totals for a period, largest first.

    Equal totals keep sphere creation order. Spheres without minutes in
    the period are omitted.
    """
    totals = _sum_by_sphere(entries_for_range(snapshot, range_, ref_date, week_start))
    rows = [(s, totals[s.id]) for s in snapshot.spheres if totals.get(s.id, 0) > 0]
    return sorted(rows, key=lambda row: row[1], reverse=True)


def compare_periods(
    snapshot: Snapshot,
    first_start: DateLike,
    first_end: DateLike,
    second_start: DateLike,
    second_end: DateLike,
) -> list[PeriodComparison]:
    """Compare per-sphere totals between two inclusive periods.

    Only spheres with minutes in at least one period are listed, in sphere
    creation order.
    """
    first = _sum_by_sphere(entries_between(snapshot, first_start, first_end))
    second = _sum_by_sphere(entries_between(snapshot, second_start, second_end))
    return [
        PeriodComparison(
            sphere_id=s.id,
            first_minutes=first.get(s.id, 0),
            second_minutes=second.get(s.id, 0),
        )
        for s in snapshot.spheres
        if s.id in first or s.id in second
    ]
