from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DisplayInfo:
    """Display fields joined onto report rows."""

    name: str
    nis_nisn: str
    class_name: str


@dataclass(frozen=True)
class StudentInfo:
    student_id: int
    user_id: int
    full_name: str
    nis_nisn: str
    class_id: int
    class_name: str

    def display(self) -> DisplayInfo:
        return DisplayInfo(name=self.full_name, nis_nisn=self.nis_nisn, class_name=self.class_name)


@dataclass(frozen=True)
class RosterTotals:
    students: int
    teachers: int
    classes: int

    def as_dict(self) -> dict:
        return {"total_students": self.students, "total_teachers": self.teachers, "total_classes": self.classes}
