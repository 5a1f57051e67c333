from __future__ import annotations

import logging
from contextlib import nullcontext
from datetime import date, datetime
from typing import Callable, ContextManager, Optional, Sequence

from ..attendance.service import AttendanceService
from ..common.datetime_utils import iter_days, now_local
from ..common.validators import require_date_range, require_non_empty
from ..core.constants import DEFAULT_LIST_LIMIT, LEAVE_NOTE_PREFIX
from ..core.enums import RequestStatus, Role
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..roster.model import StudentInfo
from ..roster.provider import RosterProvider
from .model import LeaveRequest
from .repository import LeaveRequestRepository

logger = logging.getLogger(__name__)

_OUTCOMES = {RequestStatus.APPROVED, RequestStatus.REJECTED}


class LeaveRequestService:
    """Leave workflow: PENDING -> APPROVED | REJECTED, both terminal.

    Approval materializes ``leave`` attendance through the ledger inside the
    same transaction as the status change.
    """

    def __init__(
        self,
        requests: LeaveRequestRepository,
        ledger: AttendanceService,
        roster: RosterProvider,
        *,
        transaction: Callable[[], ContextManager] = nullcontext,
        clock: Callable[[], datetime] = now_local,
    ):
        self._requests = requests
        self._ledger = ledger
        self._roster = roster
        self._transaction = transaction
        self._clock = clock

    def _require_student(self, student_id: int) -> StudentInfo:
        student = self._roster.get_student(int(student_id))
        if not student:
            raise NotFoundError(f"Student {student_id} not found")
        return student

    def _require_request(self, request_id: int) -> LeaveRequest:
        req = self._requests.get(int(request_id))
        if not req:
            raise NotFoundError(f"Leave request {request_id} not found")
        return req

    def _require_decider(self, decided_by: int, student: StudentInfo) -> None:
        role = self._roster.role_of(int(decided_by))
        if role is None:
            raise NotFoundError(f"User {decided_by} not found")
        if role == Role.ADMIN:
            return
        if role == Role.TEACHER and self._roster.teacher_assigned_to_class(int(decided_by), student.class_id):
            return
        raise AuthorizationError("Only administrators or the class's teachers can decide leave requests")

    def submit(self, *, student_id: int, start_date: date, end_date: date, reason: str) -> LeaveRequest:
        require_date_range(start_date, end_date)
        reason = require_non_empty(reason, "reason")
        self._require_student(student_id)

        request_id = self._requests.create(
            student_id=int(student_id),
            start_date=start_date,
            end_date=end_date,
            reason=reason,
            request_date=self._clock(),
        )
        logger.info("Leave request id=%s submitted by student %s (%s..%s)", request_id, student_id, start_date, end_date)
        return self._require_request(request_id)

    def decide(self, request_id: int, *, decided_by: int, outcome: RequestStatus | str) -> LeaveRequest:
        try:
            outcome = RequestStatus(outcome)
        except ValueError:
            raise ValidationError(f"Unknown outcome: {outcome!r}")
        if outcome not in _OUTCOMES:
            raise ValidationError("Outcome must be approved or rejected")

        req = self._require_request(request_id)
        if not req.is_pending:
            raise ConflictError("Leave request has already been processed")

        student = self._require_student(req.student_id)
        self._require_decider(decided_by, student)

        with self._transaction():
            decided = self._requests.decide(
                request_id=req.request_id,
                status=outcome,
                decided_by=int(decided_by),
                decided_at=self._clock(),
            )
            if not decided:
                raise ConflictError("Leave request has already been processed")

            if outcome == RequestStatus.APPROVED:
                created = self._ledger.materialize_leave(
                    student_id=req.student_id,
                    class_id=student.class_id,
                    days=iter_days(req.start_date, req.end_date),
                    recorded_by=int(decided_by),
                    notes=LEAVE_NOTE_PREFIX + req.reason,
                )
                logger.info(
                    "Leave request id=%s approved by %s: %d of %d days materialized",
                    req.request_id, decided_by, len(created), req.day_count,
                )
            else:
                logger.info("Leave request id=%s rejected by %s", req.request_id, decided_by)

        return self._require_request(req.request_id)

    def approve(self, request_id: int, *, decided_by: int) -> LeaveRequest:
        return self.decide(request_id, decided_by=decided_by, outcome=RequestStatus.APPROVED)

    def reject(self, request_id: int, *, decided_by: int) -> LeaveRequest:
        return self.decide(request_id, decided_by=decided_by, outcome=RequestStatus.REJECTED)

    def withdraw(self, request_id: int) -> None:
        """Delete a request that is still pending; decided requests are immutable."""

        req = self._require_request(request_id)
        if not req.is_pending or not self._requests.delete_pending(req.request_id):
            raise ConflictError("Only pending leave requests can be withdrawn")
        logger.info("Leave request id=%s withdrawn", req.request_id)

    def get(self, request_id: int) -> LeaveRequest:
        return self._require_request(request_id)

    def list_by_status(self, status: RequestStatus | str, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[LeaveRequest]:
        try:
            status = RequestStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown leave status: {status!r}")
        return self._requests.list_requests(status=status, limit=limit)

    def list_pending(self, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[LeaveRequest]:
        return self._requests.list_requests(status=RequestStatus.PENDING, limit=limit)

    def list_for_student(self, student_id: int, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[LeaveRequest]:
        self._require_student(student_id)
        return self._requests.list_requests(student_id=int(student_id), limit=limit)

    def list_all(self, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[LeaveRequest]:
        return self._requests.list_requests(limit=limit)
