from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Iterable, Iterator, Optional, Sequence

from ..common.datetime_utils import now_local, wall_clock
from ..common.unset import UNSET, is_set
from ..common.validators import require_date_range, require_time_order
from ..core.constants import DEFAULT_HISTORY_LIMIT
from ..core.enums import AttendanceStatus, Role
from ..core.exceptions import AuthorizationError, ConflictError, DomainError, NotFoundError, ValidationError
from ..roster.model import StudentInfo
from ..roster.provider import RosterProvider
from .model import AttendanceFilter, AttendanceRecord, NewAttendance
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)

_STATUS_LABELS = {
    AttendanceStatus.PRESENT: ("Present", "bg-success"),
    AttendanceStatus.ABSENT: ("Absent", "bg-danger"),
    AttendanceStatus.SICK: ("Sick", "bg-warning text-dark"),
    AttendanceStatus.LEAVE: ("Leave", "bg-info text-dark"),
    AttendanceStatus.PENDING: ("Pending", "bg-secondary"),
}


def _coerce_status(value) -> AttendanceStatus:
    if isinstance(value, AttendanceStatus):
        return value
    try:
        return AttendanceStatus(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown attendance status: {value!r}")


class AttendanceService:
    """Attendance ledger.

    Owns the one-record-per-student-per-day rule. Every write path (manual
    entry, roll-call, self check-in, leave approval) goes through this class
    and ends in a repository insert guarded by the storage unique index; the
    look-up done beforehand only produces a clearer error message.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        roster: RosterProvider,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._attendance = attendance
        self._roster = roster
        self._clock = clock

    # ---- validation ----
    def _require_student_in_class(self, student_id: int, class_id: int) -> StudentInfo:
        student = self._roster.get_student(int(student_id))
        if not student:
            raise NotFoundError(f"Student {student_id} not found")
        if not self._roster.class_exists(int(class_id)):
            raise NotFoundError(f"Class {class_id} not found")
        if not self._roster.student_belongs_to_class(int(student_id), int(class_id)):
            raise ValidationError(f"Student {student_id} does not belong to class {class_id}")
        return student

    def _require_recorder(self, recorded_by: int, class_id: int) -> Role:
        role = self._roster.role_of(int(recorded_by))
        if role is None:
            raise NotFoundError(f"User {recorded_by} not found")
        if role == Role.ADMIN:
            return role
        if role == Role.TEACHER:
            if not self._roster.teacher_assigned_to_class(int(recorded_by), int(class_id)):
                raise AuthorizationError(f"Teacher {recorded_by} is not assigned to class {class_id}")
            return role
        raise AuthorizationError("Only teachers and administrators can record attendance")

    def _validate_entry(self, entry: NewAttendance) -> NewAttendance:
        entry = replace(entry, status=_coerce_status(entry.status))
        require_time_order(entry.check_in_time, entry.check_out_time)
        self._require_student_in_class(entry.student_id, entry.class_id)
        self._require_recorder(entry.recorded_by, entry.class_id)
        return entry

    def _ensure_day_free(self, student_id: int, attendance_date: date) -> None:
        if self._attendance.get_for_student_and_date(int(student_id), attendance_date):
            raise ConflictError(
                f"Attendance for student {student_id} on {attendance_date.isoformat()} is already recorded"
            )

    def _require(self, attendance_id: int) -> AttendanceRecord:
        record = self._attendance.get_by_id(int(attendance_id))
        if not record:
            raise NotFoundError(f"Attendance record {attendance_id} not found")
        return record

    # ---- writes ----
    def record_single(self, entry: NewAttendance) -> AttendanceRecord:
        entry = self._validate_entry(entry)
        self._ensure_day_free(entry.student_id, entry.attendance_date)

        attendance_id = self._attendance.create(entry, created_at=self._clock())
        logger.info(
            "Recorded attendance id=%s student=%s date=%s status=%s by=%s",
            attendance_id, entry.student_id, entry.attendance_date, entry.status.value, entry.recorded_by,
        )
        return self._require(attendance_id)

    def record_bulk(self, entries: Iterable[NewAttendance]) -> list[AttendanceRecord]:
        """Roll-call: validate every item first, then write all of them or none."""

        items = list(entries)
        if not items:
            return []

        validated: list[NewAttendance] = []
        seen: set[tuple[int, date]] = set()
        for index, item in enumerate(items, start=1):
            try:
                entry = self._validate_entry(item)
                key = (int(entry.student_id), entry.attendance_date)
                if key in seen:
                    raise ConflictError(
                        f"Student {entry.student_id} appears twice for {entry.attendance_date.isoformat()}"
                    )
                seen.add(key)
                self._ensure_day_free(entry.student_id, entry.attendance_date)
            except DomainError as e:
                logger.warning("Roll-call rejected at item %d: %s", index, e)
                raise type(e)(f"Item {index}: {e}") from e
            validated.append(entry)

        ids = self._attendance.create_many(validated, created_at=self._clock())
        logger.info("Recorded roll-call of %d attendance records", len(ids))
        return [self._require(attendance_id) for attendance_id in ids]

    def check_in(self, student_id: int, class_id: int, *, now: Optional[datetime] = None) -> AttendanceRecord:
        now = now or self._clock()
        today = now.date()

        student = self._require_student_in_class(student_id, class_id)
        existing = self._attendance.get_for_student_and_date(int(student_id), today)
        if existing:
            raise ConflictError("You have already checked in today")

        entry = NewAttendance(
            student_id=int(student_id),
            class_id=int(class_id),
            attendance_date=today,
            status=AttendanceStatus.PRESENT,
            recorded_by=student.user_id,
            check_in_time=wall_clock(now),
        )
        attendance_id = self._attendance.create(entry, created_at=now)
        logger.info("Student %s checked in (attendance id=%s)", student_id, attendance_id)
        return self._require(attendance_id)

    def check_out(
        self,
        attendance_id: int,
        *,
        student_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> AttendanceRecord:
        """Stamp the departure time; ``student_id`` restricts it to the student's own record."""

        now = now or self._clock()

        record = self._attendance.get_by_id(int(attendance_id))
        if not record or record.attendance_date != now.date():
            raise NotFoundError("No attendance record for today")
        if student_id is not None and record.student_id != int(student_id):
            logger.warning("Student %s refused check-out of attendance id=%s", student_id, record.attendance_id)
            raise AuthorizationError("You can only check out your own attendance")
        if record.check_out_time is not None:
            raise ConflictError("You have already checked out today")

        check_out_time = wall_clock(now)
        require_time_order(record.check_in_time, check_out_time)
        self._attendance.update_fields(record.attendance_id, {"check_out_time": check_out_time})
        logger.info("Student %s checked out (attendance id=%s)", record.student_id, record.attendance_id)
        return self._require(record.attendance_id)

    def correct(
        self,
        attendance_id: int,
        *,
        corrected_by: int,
        status=UNSET,
        check_in_time=UNSET,
        check_out_time=UNSET,
        notes=UNSET,
    ) -> AttendanceRecord:
        """Partial update: only the supplied fields change.

        Passing ``None`` clears a nullable field; omitting it keeps the old value.
        ``corrected_by`` must be allowed to record attendance for the record's class.
        """

        record = self._require(attendance_id)
        self._require_recorder(corrected_by, record.class_id)

        changes: dict = {}
        if is_set(status):
            if status is None:
                raise ValidationError("status cannot be empty")
            changes["status"] = _coerce_status(status)
        if is_set(check_in_time):
            changes["check_in_time"] = check_in_time
        if is_set(check_out_time):
            changes["check_out_time"] = check_out_time
        if is_set(notes):
            changes["notes"] = notes

        require_time_order(
            changes.get("check_in_time", record.check_in_time),
            changes.get("check_out_time", record.check_out_time),
        )

        if changes:
            ok = self._attendance.update_fields(record.attendance_id, changes)
            if not ok:
                raise NotFoundError(f"Attendance record {attendance_id} not found")
            logger.info(
                "Corrected attendance id=%s fields=%s by=%s", record.attendance_id, sorted(changes), corrected_by
            )
        return self._require(record.attendance_id)

    def remove(self, attendance_id: int, *, removed_by: int) -> None:
        """Administrative hard delete. Leave requests are left untouched."""

        if self._roster.role_of(int(removed_by)) != Role.ADMIN:
            raise AuthorizationError("Only administrators can remove attendance records")
        if not self._attendance.delete(int(attendance_id)):
            raise NotFoundError(f"Attendance record {attendance_id} not found")
        logger.warning("Attendance id=%s removed by admin %s", attendance_id, removed_by)

    def materialize_leave(
        self,
        *,
        student_id: int,
        class_id: int,
        days: Iterable[date],
        recorded_by: int,
        notes: str,
    ) -> list[AttendanceRecord]:
        """Write a ``leave`` record for each day that has none yet.

        Existing records win: a day already observed is skipped, never overwritten.
        """

        created_at = self._clock()
        created: list[AttendanceRecord] = []
        for day in days:
            entry = NewAttendance(
                student_id=int(student_id),
                class_id=int(class_id),
                attendance_date=day,
                status=AttendanceStatus.LEAVE,
                recorded_by=int(recorded_by),
                notes=notes,
            )
            attendance_id = self._attendance.create_if_absent(entry, created_at=created_at)
            if attendance_id is None:
                logger.info("Leave for student %s skipped on %s: day already recorded", student_id, day)
                continue
            created.append(self._require(attendance_id))
        return created

    # ---- reads ----
    def get(self, attendance_id: int) -> AttendanceRecord:
        return self._require(attendance_id)

    def query(self, filters: Optional[AttendanceFilter] = None) -> Iterator[AttendanceRecord]:
        filters = filters or AttendanceFilter()
        if filters.start_date is not None and filters.end_date is not None:
            require_date_range(filters.start_date, filters.end_date)
        if filters.status is not None:
            filters = replace(filters, status=_coerce_status(filters.status))
        return self._attendance.iter_filtered(filters)

    def get_today_record(self, student_id: int, *, now: Optional[datetime] = None) -> Optional[AttendanceRecord]:
        now = now or self._clock()
        return self._attendance.get_for_student_and_date(int(student_id), now.date())

    def get_history(self, student_id: int, *, limit: int = DEFAULT_HISTORY_LIMIT) -> Sequence[AttendanceRecord]:
        if int(limit) < 1:
            raise ValidationError("limit must be a positive integer")
        return self._attendance.get_recent_for_student(int(student_id), int(limit))

    def get_history_ui(self, student_id: int, *, limit: int = 15) -> list[dict]:
        return [self._to_ui(r) for r in self.get_history(student_id, limit=limit)]

    def _to_ui(self, r: AttendanceRecord) -> dict:
        label, css = _STATUS_LABELS.get(r.status, (r.status.value, "bg-secondary"))
        return {
            "attendance_id": r.attendance_id,
            "date": r.attendance_date.strftime("%Y-%m-%d"),
            "check_in": r.check_in_time.strftime("%H:%M:%S") if r.check_in_time else "-",
            "check_out": r.check_out_time.strftime("%H:%M:%S") if r.check_out_time else "-",
            "status": label,
            "css_class": css,
            "notes": r.notes or "",
        }
