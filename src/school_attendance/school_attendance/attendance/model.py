from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional

from ..core.enums import AttendanceStatus


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one student's attendance on one calendar day."""

    attendance_id: int
    student_id: int
    class_id: int
    attendance_date: date
    status: AttendanceStatus
    check_in_time: Optional[time]
    check_out_time: Optional[time]
    notes: Optional[str]
    recorded_by: int
    created_at: datetime


@dataclass(frozen=True)
class NewAttendance:
    """Input DTO for a single ledger write (also one item of a roll-call)."""

    student_id: int
    class_id: int
    attendance_date: date
    status: AttendanceStatus
    recorded_by: int
    check_in_time: Optional[time] = None
    check_out_time: Optional[time] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class AttendanceFilter:
    class_id: Optional[int] = None
    student_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[AttendanceStatus] = None
