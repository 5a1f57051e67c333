from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import DisplayInfo, RosterTotals, StudentInfo
from .provider import RosterProvider


class MySQLRosterProvider(RosterProvider):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_student(self, student_id: int) -> Optional[StudentInfo]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT s.student_id, s.user_id, s.full_name, s.nis_nisn, s.class_id, c.class_name
                FROM students s
                JOIN classes c ON c.class_id = s.class_id
                WHERE s.student_id=%s
                """,
                (int(student_id),),
            )
            r = fetchone(cur)
            if not r:
                return None
            return StudentInfo(
                student_id=int(r["student_id"]),
                user_id=int(r["user_id"]),
                full_name=r["full_name"],
                nis_nisn=r["nis_nisn"],
                class_id=int(r["class_id"]),
                class_name=r["class_name"],
            )

    def class_exists(self, class_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT 1 AS ok FROM classes WHERE class_id=%s", (int(class_id),))
            return fetchone(cur) is not None

    def role_of(self, user_id: int) -> Optional[Role]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT role FROM users WHERE user_id=%s AND is_active=1", (int(user_id),))
            r = fetchone(cur)
            return Role(r["role"]) if r else None

    def student_belongs_to_class(self, student_id: int, class_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT 1 AS ok FROM students WHERE student_id=%s AND class_id=%s",
                (int(student_id), int(class_id)),
            )
            return fetchone(cur) is not None

    def teacher_assigned_to_class(self, teacher_id: int, class_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT (
                    EXISTS(SELECT 1 FROM teacher_class_assignments WHERE teacher_id=%s AND class_id=%s)
                    OR EXISTS(SELECT 1 FROM classes WHERE homeroom_teacher_id=%s AND class_id=%s)
                ) AS ok
                """,
                (int(teacher_id), int(class_id), int(teacher_id), int(class_id)),
            )
            r = fetchone(cur)
            return bool(r and r["ok"])

    def display_info_for_student(self, student_id: int) -> Optional[DisplayInfo]:
        student = self.get_student(student_id)
        return student.display() if student else None

    def classes_for_teacher(self, teacher_id: int) -> Sequence[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT class_id FROM teacher_class_assignments WHERE teacher_id=%s
                UNION
                SELECT class_id FROM classes WHERE homeroom_teacher_id=%s
                ORDER BY class_id
                """,
                (int(teacher_id), int(teacher_id)),
            )
            return [int(r["class_id"]) for r in fetchall(cur)]

    def count_students(self, class_ids: Optional[Sequence[int]] = None) -> int:
        if class_ids is not None and not class_ids:
            return 0
        sql = "SELECT COUNT(*) AS n FROM students"
        params: tuple = ()
        if class_ids is not None:
            sql += f" WHERE class_id IN ({', '.join(['%s'] * len(class_ids))})"
            params = tuple(int(c) for c in class_ids)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            r = fetchone(cur)
            return int(r["n"]) if r else 0

    def school_totals(self) -> RosterTotals:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT
                    (SELECT COUNT(*) FROM students) AS students,
                    (SELECT COUNT(*) FROM users WHERE role='teacher' AND is_active=1) AS teachers,
                    (SELECT COUNT(*) FROM classes) AS classes
                """
            )
            r = fetchone(cur) or {}
            return RosterTotals(
                students=int(r.get("students", 0)),
                teachers=int(r.get("teachers", 0)),
                classes=int(r.get("classes", 0)),
            )
