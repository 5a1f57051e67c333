from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Roles known to the roster; used for authorization checks."""

    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class AttendanceStatus(str, Enum):
    """Normalized attendance status stored in the database."""

    PRESENT = "present"
    ABSENT = "absent"
    SICK = "sick"
    LEAVE = "leave"
    # Legacy value kept readable; no workflow produces or resolves it.
    PENDING = "pending"


class RequestStatus(str, Enum):
    """Leave request approval states. APPROVED and REJECTED are terminal."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReportGrouping(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    RANGE = "range"
