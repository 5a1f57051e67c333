from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import Role
from .model import DisplayInfo, RosterTotals, StudentInfo


class RosterProvider(Protocol):
    """Read-only view of students, classes and teacher assignments.

    Roster CRUD lives elsewhere; the attendance engine only asks questions.
    """

    def get_student(self, student_id: int) -> Optional[StudentInfo]:
        raise NotImplementedError

    def class_exists(self, class_id: int) -> bool:
        raise NotImplementedError

    def role_of(self, user_id: int) -> Optional[Role]:
        raise NotImplementedError

    def student_belongs_to_class(self, student_id: int, class_id: int) -> bool:
        raise NotImplementedError

    def teacher_assigned_to_class(self, teacher_id: int, class_id: int) -> bool:
        raise NotImplementedError

    def display_info_for_student(self, student_id: int) -> Optional[DisplayInfo]:
        raise NotImplementedError

    def classes_for_teacher(self, teacher_id: int) -> Sequence[int]:
        """Classes the teacher is assigned to or is homeroom teacher of, ascending."""

        raise NotImplementedError

    def count_students(self, class_ids: Optional[Sequence[int]] = None) -> int:
        """Students enrolled in ``class_ids``; the whole school when None."""

        raise NotImplementedError

    def school_totals(self) -> RosterTotals:
        raise NotImplementedError
