from __future__ import annotations

from datetime import date, datetime
from typing import Iterator, Optional, Sequence

from mysql.connector.errors import IntegrityError

from ..core.enums import AttendanceStatus
from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, is_duplicate_key, iter_rows, normalize_mysql_time
from .model import AttendanceFilter, AttendanceRecord, NewAttendance
from .repository import AttendanceRepository

_COLUMNS = """
    attendance_id, student_id, class_id, attendance_date, status,
    check_in_time, check_out_time, notes, recorded_by, created_at
"""

_INSERT = """
    INSERT INTO attendance_records(
        student_id, class_id, attendance_date, status,
        check_in_time, check_out_time, notes, recorded_by, created_at
    )
    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
"""

_UPDATABLE = ("status", "check_in_time", "check_out_time", "notes")


def _to_record(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        attendance_id=int(r["attendance_id"]),
        student_id=int(r["student_id"]),
        class_id=int(r["class_id"]),
        attendance_date=r["attendance_date"],
        status=AttendanceStatus(r["status"]),
        check_in_time=normalize_mysql_time(r.get("check_in_time")),
        check_out_time=normalize_mysql_time(r.get("check_out_time")),
        notes=r.get("notes"),
        recorded_by=int(r["recorded_by"]),
        created_at=r["created_at"],
    )


def _insert_params(entry: NewAttendance, created_at: datetime) -> tuple:
    return (
        int(entry.student_id),
        int(entry.class_id),
        entry.attendance_date,
        entry.status.value,
        entry.check_in_time,
        entry.check_out_time,
        entry.notes,
        int(entry.recorded_by),
        created_at,
    )


def _conflict(entry: NewAttendance) -> ConflictError:
    return ConflictError(
        f"Attendance for student {entry.student_id} on {entry.attendance_date.isoformat()} is already recorded"
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_records WHERE attendance_id=%s", (int(attendance_id),))
            r = fetchone(cur)
            return _to_record(r) if r else None

    def get_for_student_and_date(self, student_id: int, attendance_date: date) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_records WHERE student_id=%s AND attendance_date=%s",
                (int(student_id), attendance_date),
            )
            r = fetchone(cur)
            return _to_record(r) if r else None

    def get_recent_for_student(self, student_id: int, limit: int) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE student_id=%s
                ORDER BY attendance_date DESC
                LIMIT %s
                """,
                (int(student_id), int(limit)),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def create(self, entry: NewAttendance, *, created_at: datetime) -> int:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(_INSERT, _insert_params(entry, created_at))
                return int(cur.lastrowid)
        except IntegrityError as e:
            if is_duplicate_key(e):
                raise _conflict(entry) from e
            raise

    def create_many(self, entries: Sequence[NewAttendance], *, created_at: datetime) -> list[int]:
        ids: list[int] = []
        current: Optional[NewAttendance] = None
        try:
            # One cursor = one transaction: a duplicate anywhere rolls back the batch.
            with db_cursor(self._conn_factory) as (_, cur):
                for entry in entries:
                    current = entry
                    cur.execute(_INSERT, _insert_params(entry, created_at))
                    ids.append(int(cur.lastrowid))
        except IntegrityError as e:
            if is_duplicate_key(e) and current is not None:
                raise _conflict(current) from e
            raise
        return ids

    def create_if_absent(self, entry: NewAttendance, *, created_at: datetime) -> Optional[int]:
        try:
            return self.create(entry, created_at=created_at)
        except ConflictError:
            return None

    def update_fields(self, attendance_id: int, changes: dict) -> bool:
        unknown = set(changes) - set(_UPDATABLE)
        if unknown:
            raise ValueError(f"Unsupported attendance fields: {sorted(unknown)}")
        if not changes:
            return self.get_by_id(attendance_id) is not None

        assignments = []
        params: list[object] = []
        for column in _UPDATABLE:
            if column not in changes:
                continue
            value = changes[column]
            if isinstance(value, AttendanceStatus):
                value = value.value
            assignments.append(f"{column}=%s")
            params.append(value)
        params.append(int(attendance_id))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE attendance_records SET {', '.join(assignments)} WHERE attendance_id=%s",
                tuple(params),
            )
            if cur.rowcount > 0:
                return True
            # MySQL reports 0 affected rows when the new values equal the old ones.
            cur.execute("SELECT 1 AS ok FROM attendance_records WHERE attendance_id=%s", (int(attendance_id),))
            return fetchone(cur) is not None

    def delete(self, attendance_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM attendance_records WHERE attendance_id=%s", (int(attendance_id),))
            return cur.rowcount > 0

    def iter_filtered(self, filters: AttendanceFilter) -> Iterator[AttendanceRecord]:
        clauses = ["1=1"]
        params: list[object] = []

        if filters.class_id is not None:
            clauses.append("class_id=%s")
            params.append(int(filters.class_id))
        if filters.student_id is not None:
            clauses.append("student_id=%s")
            params.append(int(filters.student_id))
        if filters.start_date is not None:
            clauses.append("attendance_date >= %s")
            params.append(filters.start_date)
        if filters.end_date is not None:
            clauses.append("attendance_date <= %s")
            params.append(filters.end_date)
        if filters.status is not None:
            clauses.append("status=%s")
            params.append(filters.status.value)

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE {where}
                ORDER BY attendance_date ASC, student_id ASC
                """,
                tuple(params),
            )
            for r in iter_rows(cur):
                yield _to_record(r)
