from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import RequestStatus


@dataclass(frozen=True)
class LeaveRequest:
    """A student's application to be excused for [start_date, end_date] (inclusive)."""

    request_id: int
    student_id: int
    request_date: datetime
    start_date: date
    end_date: date
    reason: str
    status: RequestStatus
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING

    @property
    def day_count(self) -> int:
        return (self.end_date - self.start_date).days + 1
