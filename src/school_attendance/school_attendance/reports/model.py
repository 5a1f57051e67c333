from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, time
from decimal import Decimal
from typing import Optional

from ..core.enums import ReportGrouping


@dataclass(frozen=True)
class AggregateStats:
    """Counts per status plus the attendance rate. Derived, never stored."""

    present: int = 0
    absent: int = 0
    sick: int = 0
    leave: int = 0
    pending: int = 0
    total: int = 0
    attendance_rate: Decimal = Decimal("0.00")

    def as_dict(self) -> dict:
        data = asdict(self)
        data["attendance_rate"] = float(self.attendance_rate)
        return data


@dataclass(frozen=True)
class PeriodStats:
    period_start: date
    period_end: date
    stats: AggregateStats

    @property
    def label(self) -> str:
        if self.period_start == self.period_end:
            return self.period_start.isoformat()
        return f"{self.period_start.isoformat()}..{self.period_end.isoformat()}"


@dataclass(frozen=True)
class ReportFilter:
    start_date: date
    end_date: date
    class_id: Optional[int] = None
    student_id: Optional[int] = None


@dataclass(frozen=True)
class ReportRow:
    """Read-model for report/export: one student over one period."""

    student_id: int
    student_name: str
    nis_nisn: str
    class_name: str
    period_start: date
    period_end: date
    stats: AggregateStats

    def as_dict(self) -> dict:
        return {
            "student_id": self.student_id,
            "student_name": self.student_name,
            "nis_nisn": self.nis_nisn,
            "class_name": self.class_name,
            "period_start": self.period_start.strftime("%Y-%m-%d"),
            "period_end": self.period_end.strftime("%Y-%m-%d"),
            **self.stats.as_dict(),
        }


@dataclass(frozen=True)
class ReportSummary:
    start_date: date
    end_date: date
    grouping: ReportGrouping
    total_students: int
    stats: AggregateStats

    def as_dict(self) -> dict:
        return {
            "start_date": self.start_date.strftime("%Y-%m-%d"),
            "end_date": self.end_date.strftime("%Y-%m-%d"),
            "grouping": self.grouping.value,
            "total_students": self.total_students,
            **self.stats.as_dict(),
        }


@dataclass(frozen=True)
class ReportData:
    rows: list[ReportRow]
    summary: ReportSummary


@dataclass(frozen=True)
class DailyRow:
    attendance_id: int
    student_id: int
    student_name: str
    nis_nisn: str
    class_name: str
    status: str
    check_in_time: Optional[time]
    check_out_time: Optional[time]
    notes: Optional[str]

    def as_dict(self) -> dict:
        return {
            "attendance_id": self.attendance_id,
            "student_id": self.student_id,
            "student_name": self.student_name,
            "nis_nisn": self.nis_nisn,
            "class_name": self.class_name,
            "status": self.status,
            "check_in": self.check_in_time.strftime("%H:%M") if self.check_in_time else "-",
            "check_out": self.check_out_time.strftime("%H:%M") if self.check_out_time else "-",
            "notes": self.notes or "",
        }


@dataclass(frozen=True)
class DailyReport:
    day: date
    rows: list[DailyRow] = field(default_factory=list)
    stats: AggregateStats = field(default_factory=AggregateStats)
