from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Optional

from src.school_attendance.school_attendance.attendance.model import AttendanceFilter, AttendanceRecord, NewAttendance
from src.school_attendance.school_attendance.core.enums import RequestStatus, Role
from src.school_attendance.school_attendance.core.exceptions import ConflictError
from src.school_attendance.school_attendance.leaves.model import LeaveRequest
from src.school_attendance.school_attendance.roster.model import DisplayInfo, RosterTotals, StudentInfo

ADMIN_ID = 1
TEACHER_ID = 2
OTHER_TEACHER_ID = 3


@dataclass
class InMemoryRoster:
    students: dict[int, StudentInfo] = field(default_factory=dict)
    classes: dict[int, str] = field(default_factory=dict)
    roles: dict[int, Role] = field(default_factory=dict)
    assignments: set[tuple[int, int]] = field(default_factory=set)

    def add_class(self, class_id: int, name: str) -> None:
        self.classes[class_id] = name

    def add_student(self, student_id: int, class_id: int, *, name: str, nis_nisn: str) -> StudentInfo:
        info = StudentInfo(
            student_id=student_id,
            user_id=100 + student_id,
            full_name=name,
            nis_nisn=nis_nisn,
            class_id=class_id,
            class_name=self.classes[class_id],
        )
        self.students[student_id] = info
        self.roles[info.user_id] = Role.STUDENT
        return info

    def get_student(self, student_id: int) -> Optional[StudentInfo]:
        return self.students.get(student_id)

    def class_exists(self, class_id: int) -> bool:
        return class_id in self.classes

    def role_of(self, user_id: int) -> Optional[Role]:
        return self.roles.get(user_id)

    def student_belongs_to_class(self, student_id: int, class_id: int) -> bool:
        s = self.students.get(student_id)
        return bool(s and s.class_id == class_id)

    def teacher_assigned_to_class(self, teacher_id: int, class_id: int) -> bool:
        return (teacher_id, class_id) in self.assignments

    def display_info_for_student(self, student_id: int) -> Optional[DisplayInfo]:
        s = self.students.get(student_id)
        return s.display() if s else None

    def classes_for_teacher(self, teacher_id: int) -> list[int]:
        return sorted(c for t, c in self.assignments if t == teacher_id)

    def count_students(self, class_ids=None) -> int:
        return sum(1 for s in self.students.values() if class_ids is None or s.class_id in class_ids)

    def school_totals(self) -> RosterTotals:
        return RosterTotals(
            students=len(self.students),
            teachers=sum(1 for r in self.roles.values() if r == Role.TEACHER),
            classes=len(self.classes),
        )


def school_roster() -> InMemoryRoster:
    """Class 7 (7A) holds students 42 and 43, class 8 (8B) holds 50.

    Teacher 2 teaches 7A, teacher 3 teaches 8B, user 1 is the admin.
    """

    roster = InMemoryRoster()
    roster.add_class(7, "7A")
    roster.add_class(8, "8B")
    roster.add_student(42, 7, name="Siti Aminah", nis_nisn="0051234567")
    roster.add_student(43, 7, name="Agus Pratama", nis_nisn="0051234568")
    roster.add_student(50, 8, name="Dewi Lestari", nis_nisn="0051234599")
    roster.roles[ADMIN_ID] = Role.ADMIN
    roster.roles[TEACHER_ID] = Role.TEACHER
    roster.roles[OTHER_TEACHER_ID] = Role.TEACHER
    roster.assignments.update({(TEACHER_ID, 7), (OTHER_TEACHER_ID, 8)})
    return roster


class InMemoryAttendance:
    """Behaves like the MySQL table, unique (student_id, attendance_date) index included.

    ``barrier`` makes concurrent callers line up right after the existence
    look-up so both reach the insert.
    """

    def __init__(self, barrier: Optional[threading.Barrier] = None):
        self._by_id: dict[int, AttendanceRecord] = {}
        self._next_id = 1
        self._lock = threading.Lock()
        self.barrier = barrier

    def _insert(self, entry: NewAttendance, created_at: datetime) -> int:
        for r in self._by_id.values():
            if r.student_id == entry.student_id and r.attendance_date == entry.attendance_date:
                raise ConflictError(
                    f"Attendance for student {entry.student_id} on {entry.attendance_date.isoformat()} is already recorded"
                )
        attendance_id = self._next_id
        self._next_id += 1
        self._by_id[attendance_id] = AttendanceRecord(
            attendance_id=attendance_id,
            student_id=entry.student_id,
            class_id=entry.class_id,
            attendance_date=entry.attendance_date,
            status=entry.status,
            check_in_time=entry.check_in_time,
            check_out_time=entry.check_out_time,
            notes=entry.notes,
            recorded_by=entry.recorded_by,
            created_at=created_at,
        )
        return attendance_id

    def all(self) -> list[AttendanceRecord]:
        return sorted(self._by_id.values(), key=lambda r: (r.attendance_date, r.student_id))

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        return self._by_id.get(int(attendance_id))

    def get_for_student_and_date(self, student_id: int, attendance_date: date) -> Optional[AttendanceRecord]:
        found = next(
            (r for r in self._by_id.values() if r.student_id == student_id and r.attendance_date == attendance_date),
            None,
        )
        if self.barrier is not None:
            self.barrier.wait(timeout=5)
        return found

    def get_recent_for_student(self, student_id: int, limit: int):
        items = [r for r in self._by_id.values() if r.student_id == student_id]
        items.sort(key=lambda r: r.attendance_date, reverse=True)
        return items[:limit]

    def create(self, entry: NewAttendance, *, created_at: datetime) -> int:
        with self._lock:
            return self._insert(entry, created_at)

    def create_many(self, entries, *, created_at: datetime) -> list[int]:
        with self._lock:
            saved = (dict(self._by_id), self._next_id)
            try:
                return [self._insert(e, created_at) for e in entries]
            except ConflictError:
                self._by_id, self._next_id = saved
                raise

    def create_if_absent(self, entry: NewAttendance, *, created_at: datetime) -> Optional[int]:
        with self._lock:
            try:
                return self._insert(entry, created_at)
            except ConflictError:
                return None

    def update_fields(self, attendance_id: int, changes: dict) -> bool:
        record = self._by_id.get(int(attendance_id))
        if not record:
            return False
        self._by_id[record.attendance_id] = replace(record, **changes)
        return True

    def delete(self, attendance_id: int) -> bool:
        return self._by_id.pop(int(attendance_id), None) is not None

    def iter_filtered(self, filters: AttendanceFilter):
        for r in self.all():
            if filters.class_id is not None and r.class_id != filters.class_id:
                continue
            if filters.student_id is not None and r.student_id != filters.student_id:
                continue
            if filters.start_date is not None and r.attendance_date < filters.start_date:
                continue
            if filters.end_date is not None and r.attendance_date > filters.end_date:
                continue
            if filters.status is not None and r.status != filters.status:
                continue
            yield r


class InMemoryLeaveRequests:
    def __init__(self):
        self._by_id: dict[int, LeaveRequest] = {}
        self._next_id = 1

    def create(self, *, student_id, start_date, end_date, reason, request_date) -> int:
        request_id = self._next_id
        self._next_id += 1
        self._by_id[request_id] = LeaveRequest(
            request_id=request_id,
            student_id=int(student_id),
            request_date=request_date,
            start_date=start_date,
            end_date=end_date,
            reason=reason,
            status=RequestStatus.PENDING,
        )
        return request_id

    def get(self, request_id: int) -> Optional[LeaveRequest]:
        return self._by_id.get(int(request_id))

    def list_requests(self, *, status=None, student_id=None, limit=500):
        items = [
            r
            for r in self._by_id.values()
            if (status is None or r.status == status) and (student_id is None or r.student_id == student_id)
        ]
        items.sort(key=lambda r: (r.request_date, r.request_id), reverse=True)
        return items[:limit]

    def decide(self, *, request_id, status, decided_by, decided_at) -> bool:
        req = self._by_id.get(int(request_id))
        if not req or req.status != RequestStatus.PENDING:
            return False
        self._by_id[req.request_id] = replace(req, status=status, approved_by=decided_by, approved_at=decided_at)
        return True

    def delete_pending(self, request_id: int) -> bool:
        req = self._by_id.get(int(request_id))
        if not req or req.status != RequestStatus.PENDING:
            return False
        del self._by_id[req.request_id]
        return True


class RecordingTransaction:
    """Stand-in for ``DatabaseConnection.transaction``; counts commits and rollbacks."""

    def __init__(self):
        self.commits = 0
        self.rollbacks = 0

    @contextmanager
    def __call__(self):
        try:
            yield
        except Exception:
            self.rollbacks += 1
            raise
        else:
            self.commits += 1
