from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, Iterator, Optional, Protocol, Sequence

from ..common.datetime_utils import month_end, month_start, week_start
from ..core.constants import RATE_DECIMALS
from ..core.enums import AttendanceStatus, ReportGrouping
from .model import AggregateStats, PeriodStats

_QUANT = Decimal(1).scaleb(-RATE_DECIMALS)


class _Observation(Protocol):
    student_id: int
    class_id: int
    attendance_date: date
    status: AttendanceStatus


def attendance_rate(present: int, total: int) -> Decimal:
    """present / total * 100, rounded half-up to two decimals; 0 for an empty set.

    Every percentage shown anywhere is produced here so totals and rows agree.
    """

    if total <= 0:
        return Decimal(0).quantize(_QUANT)
    return (Decimal(present) * 100 / Decimal(total)).quantize(_QUANT, rounding=ROUND_HALF_UP)


def _day_periods(start: date, end: date) -> Iterator[tuple[date, date]]:
    day = start
    while day <= end:
        yield day, day
        day += timedelta(days=1)


def _clipped_periods(start: date, end: date, period_end: Callable[[date], date]) -> Iterator[tuple[date, date]]:
    cursor = start
    while cursor <= end:
        last = min(period_end(cursor), end)
        yield cursor, last
        cursor = last + timedelta(days=1)


class AggregationEngine:
    """Rolls attendance records up into counts and rates.

    Grouped results cover every period of the requested range, zero-filled,
    so report consumers see a complete calendar. Weeks start on Monday; week
    and month periods are clipped to the range.
    """

    def summarize(self, records: Iterable[_Observation]) -> AggregateStats:
        counts = {status: 0 for status in AttendanceStatus}
        total = 0
        for r in records:
            counts[AttendanceStatus(r.status)] += 1
            total += 1

        present = counts[AttendanceStatus.PRESENT]
        return AggregateStats(
            present=present,
            absent=counts[AttendanceStatus.ABSENT],
            sick=counts[AttendanceStatus.SICK],
            leave=counts[AttendanceStatus.LEAVE],
            pending=counts[AttendanceStatus.PENDING],
            total=total,
            attendance_rate=attendance_rate(present, total),
        )

    def by_day(self, records: Iterable[_Observation], start: Optional[date] = None, end: Optional[date] = None) -> list[PeriodStats]:
        return self.group(records, ReportGrouping.DAY, start, end)

    def by_week(self, records: Iterable[_Observation], start: Optional[date] = None, end: Optional[date] = None) -> list[PeriodStats]:
        return self.group(records, ReportGrouping.WEEK, start, end)

    def by_month(self, records: Iterable[_Observation], start: Optional[date] = None, end: Optional[date] = None) -> list[PeriodStats]:
        return self.group(records, ReportGrouping.MONTH, start, end)

    def by_range(self, records: Iterable[_Observation], start: date, end: date) -> PeriodStats:
        periods = self.group(records, ReportGrouping.RANGE, start, end)
        return periods[0] if periods else PeriodStats(start, end, self.summarize([]))

    def group(
        self,
        records: Iterable[_Observation],
        grouping: ReportGrouping,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[PeriodStats]:
        items = list(records)
        if start is None or end is None:
            if not items:
                return []
            dates = [r.attendance_date for r in items]
            start = start or min(dates)
            end = end or max(dates)
        if start > end:
            return []

        periods = self._periods(grouping, start, end)
        buckets: dict[date, list[_Observation]] = defaultdict(list)
        for r in items:
            if start <= r.attendance_date <= end:
                buckets[self._period_key(grouping, r.attendance_date, start)].append(r)

        return [PeriodStats(first, last, self.summarize(buckets.get(first, []))) for first, last in periods]

    def by_class(self, records: Iterable[_Observation]) -> dict[int, AggregateStats]:
        return self._by_key(records, lambda r: int(r.class_id))

    def by_student(self, records: Iterable[_Observation]) -> dict[int, AggregateStats]:
        return self._by_key(records, lambda r: int(r.student_id))

    def _by_key(self, records: Iterable[_Observation], key: Callable[[_Observation], int]) -> dict[int, AggregateStats]:
        groups: dict[int, list[_Observation]] = defaultdict(list)
        for r in records:
            groups[key(r)].append(r)
        return {k: self.summarize(groups[k]) for k in sorted(groups)}

    @staticmethod
    def _periods(grouping: ReportGrouping, start: date, end: date) -> Sequence[tuple[date, date]]:
        if grouping == ReportGrouping.DAY:
            return list(_day_periods(start, end))
        if grouping == ReportGrouping.WEEK:
            return list(_clipped_periods(start, end, lambda d: week_start(d) + timedelta(days=6)))
        if grouping == ReportGrouping.MONTH:
            return list(_clipped_periods(start, end, month_end))
        return [(start, end)]

    @staticmethod
    def _period_key(grouping: ReportGrouping, day: date, start: date) -> date:
        if grouping == ReportGrouping.DAY:
            return day
        if grouping == ReportGrouping.WEEK:
            return max(week_start(day), start)
        if grouping == ReportGrouping.MONTH:
            return max(month_start(day), start)
        return start
