from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from typing import Callable, Optional

from ..attendance.model import AttendanceFilter, AttendanceRecord
from ..attendance.service import AttendanceService
from ..common.datetime_utils import month_start, now_local
from ..common.validators import require_date_range
from ..core.constants import NOT_CHECKED_IN
from ..core.enums import ReportGrouping, Role
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..roster.model import DisplayInfo
from ..roster.provider import RosterProvider
from .aggregation import AggregationEngine
from .model import DailyReport, DailyRow, ReportData, ReportFilter, ReportRow, ReportSummary

logger = logging.getLogger(__name__)

_UNKNOWN = DisplayInfo(name="-", nis_nisn="-", class_name="-")


class ReportAssembler:
    """Joins aggregation output with roster display fields.

    No business rules live here beyond the join; counts and percentages come
    from ``AggregationEngine`` only.
    """

    def __init__(
        self,
        ledger: AttendanceService,
        roster: RosterProvider,
        *,
        engine: Optional[AggregationEngine] = None,
        clock: Callable = now_local,
    ):
        self._ledger = ledger
        self._roster = roster
        self._engine = engine or AggregationEngine()
        self._clock = clock

    def _display_lookup(self) -> Callable[[int], DisplayInfo]:
        cache: dict[int, DisplayInfo] = {}

        def lookup(student_id: int) -> DisplayInfo:
            if student_id not in cache:
                info = self._roster.display_info_for_student(student_id)
                if info is None:
                    logger.warning("No roster entry for student %s; report row uses placeholders", student_id)
                    info = _UNKNOWN
                cache[student_id] = info
            return cache[student_id]

        return lookup

    def assemble(self, report_filter: ReportFilter, grouping: ReportGrouping | str = ReportGrouping.RANGE) -> ReportData:
        try:
            grouping = ReportGrouping(grouping)
        except ValueError:
            raise ValidationError(f"Unknown report grouping: {grouping!r}")
        start, end = report_filter.start_date, report_filter.end_date
        require_date_range(start, end)

        records = list(
            self._ledger.query(
                AttendanceFilter(
                    class_id=report_filter.class_id,
                    student_id=report_filter.student_id,
                    start_date=start,
                    end_date=end,
                )
            )
        )

        per_student: dict[int, list[AttendanceRecord]] = defaultdict(list)
        for r in records:
            per_student[r.student_id].append(r)

        display = self._display_lookup()
        rows: list[ReportRow] = []
        for student_id, student_records in per_student.items():
            info = display(student_id)
            for period in self._engine.group(student_records, grouping, start, end):
                rows.append(
                    ReportRow(
                        student_id=student_id,
                        student_name=info.name,
                        nis_nisn=info.nis_nisn,
                        class_name=info.class_name,
                        period_start=period.period_start,
                        period_end=period.period_end,
                        stats=period.stats,
                    )
                )

        rows.sort(key=lambda x: (x.period_start, x.class_name, x.student_name, x.student_id))

        summary = ReportSummary(
            start_date=start,
            end_date=end,
            grouping=grouping,
            total_students=len(per_student),
            stats=self._engine.summarize(records),
        )
        return ReportData(rows=rows, summary=summary)

    def daily_report(self, day: date, *, class_id: Optional[int] = None) -> DailyReport:
        records = list(self._ledger.query(AttendanceFilter(class_id=class_id, start_date=day, end_date=day)))

        display = self._display_lookup()
        rows = []
        for r in records:
            info = display(r.student_id)
            rows.append(
                DailyRow(
                    attendance_id=r.attendance_id,
                    student_id=r.student_id,
                    student_name=info.name,
                    nis_nisn=info.nis_nisn,
                    class_name=info.class_name,
                    status=r.status.value,
                    check_in_time=r.check_in_time,
                    check_out_time=r.check_out_time,
                    notes=r.notes,
                )
            )
        rows.sort(key=lambda x: (x.class_name, x.student_name, x.student_id))
        return DailyReport(day=day, rows=rows, stats=self._engine.summarize(records))

    def _period_stats(self, records: list[AttendanceRecord], today: date) -> dict:
        today_records = [r for r in records if r.attendance_date == today]
        return {
            "today": self._engine.summarize(today_records).as_dict(),
            "month_to_date": self._engine.summarize(records).as_dict(),
            "by_class": {cid: s.as_dict() for cid, s in self._engine.by_class(today_records).items()},
        }

    def _month_records(self, today: date, *, class_id: Optional[int] = None) -> list[AttendanceRecord]:
        return list(
            self._ledger.query(AttendanceFilter(class_id=class_id, start_date=month_start(today), end_date=today))
        )

    def dashboard(self, *, today: Optional[date] = None, class_id: Optional[int] = None) -> dict:
        """School-wide roster totals, today's counts per status and the month-to-date rate."""

        today = today or self._clock().date()
        return {
            "date": today.strftime("%Y-%m-%d"),
            "class_id": class_id,
            **self._roster.school_totals().as_dict(),
            **self._period_stats(self._month_records(today, class_id=class_id), today),
        }

    def teacher_dashboard(self, teacher_id: int, *, today: Optional[date] = None) -> dict:
        """Same figures as ``dashboard`` limited to the classes the teacher handles."""

        role = self._roster.role_of(int(teacher_id))
        if role is None:
            raise NotFoundError(f"User {teacher_id} not found")
        if role != Role.TEACHER:
            raise AuthorizationError("Only teachers have a teacher dashboard")

        today = today or self._clock().date()
        class_ids = list(self._roster.classes_for_teacher(int(teacher_id)))
        records: list[AttendanceRecord] = []
        for class_id in class_ids:
            records.extend(self._month_records(today, class_id=class_id))

        return {
            "date": today.strftime("%Y-%m-%d"),
            "teacher_id": int(teacher_id),
            "class_ids": class_ids,
            "total_classes": len(class_ids),
            "total_students": self._roster.count_students(class_ids),
            **self._period_stats(records, today),
        }

    def student_dashboard(self, student_id: int, *, today: Optional[date] = None) -> dict:
        """All-time counts and rate, this month's record count and today's status."""

        if self._roster.get_student(int(student_id)) is None:
            raise NotFoundError(f"Student {student_id} not found")

        today = today or self._clock().date()
        records = list(self._ledger.query(AttendanceFilter(student_id=int(student_id), end_date=today)))
        first_of_month = month_start(today)
        todays = next((r for r in records if r.attendance_date == today), None)

        return {
            "date": today.strftime("%Y-%m-%d"),
            "student_id": int(student_id),
            "all_time": self._engine.summarize(records).as_dict(),
            "month_to_date_count": sum(1 for r in records if r.attendance_date >= first_of_month),
            "today_status": todays.status.value if todays else NOT_CHECKED_IN,
        }
