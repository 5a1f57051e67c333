from __future__ import annotations

from datetime import date, datetime
from typing import Iterator, Optional, Protocol, Sequence

from .model import AttendanceFilter, AttendanceRecord, NewAttendance


class AttendanceRepository(Protocol):
    """Storage for attendance records.

    Implementations must back ``(student_id, attendance_date)`` with a unique
    constraint and raise ``ConflictError`` when an insert violates it.
    """

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def get_for_student_and_date(self, student_id: int, attendance_date: date) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def get_recent_for_student(self, student_id: int, limit: int) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def create(self, entry: NewAttendance, *, created_at: datetime) -> int:
        raise NotImplementedError

    def create_many(self, entries: Sequence[NewAttendance], *, created_at: datetime) -> list[int]:
        """Insert all entries or none of them."""

        raise NotImplementedError

    def create_if_absent(self, entry: NewAttendance, *, created_at: datetime) -> Optional[int]:
        """Insert unless the student already has a record that day; None when skipped."""

        raise NotImplementedError

    def update_fields(self, attendance_id: int, changes: dict) -> bool:
        """Apply a partial update. Keys: status, check_in_time, check_out_time, notes."""

        raise NotImplementedError

    def delete(self, attendance_id: int) -> bool:
        raise NotImplementedError

    def iter_filtered(self, filters: AttendanceFilter) -> Iterator[AttendanceRecord]:
        """Yield matching records ordered by attendance_date, then student_id."""

        raise NotImplementedError
