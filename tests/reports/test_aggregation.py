from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import pytest

from src.school_attendance.school_attendance.core.enums import AttendanceStatus, ReportGrouping
from src.school_attendance.school_attendance.reports.aggregation import AggregationEngine, attendance_rate


@dataclass(frozen=True)
class Obs:
    attendance_date: date
    status: AttendanceStatus
    student_id: int = 42
    class_id: int = 7


P, A, S, L = AttendanceStatus.PRESENT, AttendanceStatus.ABSENT, AttendanceStatus.SICK, AttendanceStatus.LEAVE


@pytest.fixture
def engine():
    return AggregationEngine()


@pytest.mark.parametrize(
    "present,total,expected",
    [
        (3, 5, Decimal("60.00")),
        (0, 0, Decimal("0.00")),
        (1, 3, Decimal("33.33")),
        (2, 3, Decimal("66.67")),
        (1, 800, Decimal("0.13")),
        (5, 5, Decimal("100.00")),
    ],
)
def test_attendance_rate_rounds_half_up(present, total, expected):
    assert attendance_rate(present, total) == expected


def test_summarize_counts_every_status(engine):
    d = date(2026, 1, 12)
    stats = engine.summarize([Obs(d, P), Obs(d, P), Obs(d, P), Obs(d, A), Obs(d, S), Obs(d, AttendanceStatus.PENDING)])

    assert (stats.present, stats.absent, stats.sick, stats.leave, stats.pending, stats.total) == (3, 1, 1, 0, 1, 6)
    assert stats.attendance_rate == Decimal("50.00")


def test_summarize_empty_is_zero(engine):
    stats = engine.summarize([])
    assert stats.total == 0
    assert stats.attendance_rate == Decimal("0.00")
    assert stats.as_dict()["attendance_rate"] == 0.0


def test_three_of_five_present(engine):
    d = date(2026, 1, 12)
    stats = engine.summarize([Obs(d, P), Obs(d, P), Obs(d, P), Obs(d, A), Obs(d, L)])
    assert stats.attendance_rate == Decimal("60.00")


def test_by_day_zero_fills_the_range(engine):
    records = [Obs(date(2026, 1, 12), P), Obs(date(2026, 1, 14), A)]

    periods = engine.by_day(records, date(2026, 1, 12), date(2026, 1, 15))

    assert [p.period_start for p in periods] == [date(2026, 1, d) for d in (12, 13, 14, 15)]
    assert [p.stats.total for p in periods] == [1, 0, 1, 0]
    assert periods[1].stats.attendance_rate == Decimal("0.00")


def test_by_week_starts_on_monday_and_clips_to_range(engine):
    # 2026-01-07 is a Wednesday, 2026-01-20 a Tuesday.
    records = [
        Obs(date(2026, 1, 7), P),
        Obs(date(2026, 1, 11), A),
        Obs(date(2026, 1, 12), P),
        Obs(date(2026, 1, 20), S),
    ]

    periods = engine.by_week(records, date(2026, 1, 7), date(2026, 1, 20))

    assert [(p.period_start, p.period_end) for p in periods] == [
        (date(2026, 1, 7), date(2026, 1, 11)),
        (date(2026, 1, 12), date(2026, 1, 18)),
        (date(2026, 1, 19), date(2026, 1, 20)),
    ]
    assert [p.stats.total for p in periods] == [2, 1, 1]
    assert periods[0].stats.attendance_rate == Decimal("50.00")


def test_by_month_clips_partial_months(engine):
    records = [Obs(date(2026, 1, 30), P), Obs(date(2026, 2, 2), A), Obs(date(2026, 3, 1), P)]

    periods = engine.by_month(records, date(2026, 1, 20), date(2026, 3, 5))

    assert [(p.period_start, p.period_end) for p in periods] == [
        (date(2026, 1, 20), date(2026, 1, 31)),
        (date(2026, 2, 1), date(2026, 2, 28)),
        (date(2026, 3, 1), date(2026, 3, 5)),
    ]
    assert [p.stats.present for p in periods] == [1, 0, 1]


def test_by_range_ignores_records_outside(engine):
    records = [Obs(date(2026, 1, 1), P), Obs(date(2026, 1, 5), A), Obs(date(2026, 1, 9), P)]

    period = engine.by_range(records, date(2026, 1, 2), date(2026, 1, 8))

    assert period.stats.total == 1
    assert period.label == "2026-01-02..2026-01-08"


def test_group_derives_range_from_records(engine):
    records = [Obs(date(2026, 1, 14), P), Obs(date(2026, 1, 12), A)]

    periods = engine.group(records, ReportGrouping.DAY)

    assert [p.label for p in periods] == ["2026-01-12", "2026-01-13", "2026-01-14"]
    assert engine.group([], ReportGrouping.WEEK) == []


def test_by_class_and_by_student(engine):
    d = date(2026, 1, 12)
    records = [
        Obs(d, P, student_id=42, class_id=7),
        Obs(d, A, student_id=43, class_id=7),
        Obs(d, P, student_id=50, class_id=8),
    ]

    by_class = engine.by_class(records)
    assert list(by_class) == [7, 8]
    assert by_class[7].attendance_rate == Decimal("50.00")
    assert by_class[8].attendance_rate == Decimal("100.00")

    assert list(engine.by_student(records)) == [42, 43, 50]
