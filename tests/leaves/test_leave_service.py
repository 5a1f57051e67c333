from __future__ import annotations

from datetime import date, datetime

import pytest

from src.school_attendance.school_attendance.attendance.model import NewAttendance
from src.school_attendance.school_attendance.attendance.service import AttendanceService
from src.school_attendance.school_attendance.core.enums import AttendanceStatus, RequestStatus
from src.school_attendance.school_attendance.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from src.school_attendance.school_attendance.leaves.service import LeaveRequestService
from tests.fakes import (
    ADMIN_ID,
    OTHER_TEACHER_ID,
    TEACHER_ID,
    InMemoryAttendance,
    InMemoryLeaveRequests,
    RecordingTransaction,
    school_roster,
)


class Setup:
    def __init__(self, now: datetime):
        roster = school_roster()
        self.attendance = InMemoryAttendance()
        self.requests = InMemoryLeaveRequests()
        self.transaction = RecordingTransaction()
        self.ledger = AttendanceService(self.attendance, roster, clock=lambda: now)
        self.service = LeaveRequestService(
            self.requests,
            self.ledger,
            roster,
            transaction=self.transaction,
            clock=lambda: now,
        )

    def submit(self, start=date(2026, 1, 15), end=date(2026, 1, 17), reason="Family event", student_id=42):
        return self.service.submit(student_id=student_id, start_date=start, end_date=end, reason=reason)


@pytest.fixture
def env(fixed_now):
    return Setup(fixed_now)


def test_submit_creates_pending_request(env, fixed_now):
    req = env.submit(reason="  Family event  ")

    assert req.status == RequestStatus.PENDING
    assert req.reason == "Family event"
    assert req.request_date == fixed_now
    assert req.day_count == 3
    assert req.approved_by is None


def test_submit_single_day_range(env):
    assert env.submit(start=date(2026, 1, 15), end=date(2026, 1, 15)).day_count == 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"start": date(2026, 1, 17), "end": date(2026, 1, 15)},
        {"reason": "   "},
    ],
)
def test_submit_validates_input(env, kwargs):
    with pytest.raises(ValidationError):
        env.submit(**kwargs)


def test_submit_for_unknown_student(env):
    with pytest.raises(NotFoundError):
        env.submit(student_id=999)


def test_approval_materializes_leave_around_existing_day(env, fixed_now):
    env.ledger.record_single(
        NewAttendance(
            student_id=42,
            class_id=7,
            attendance_date=date(2026, 1, 16),
            status=AttendanceStatus.PRESENT,
            recorded_by=TEACHER_ID,
        )
    )
    req = env.submit()

    decided = env.service.approve(req.request_id, decided_by=TEACHER_ID)

    assert decided.status == RequestStatus.APPROVED
    assert decided.approved_by == TEACHER_ID
    assert decided.approved_at == fixed_now

    by_day = {r.attendance_date: r for r in env.attendance.all()}
    assert by_day[date(2026, 1, 15)].status == AttendanceStatus.LEAVE
    assert by_day[date(2026, 1, 15)].notes == "Approved leave: Family event"
    assert by_day[date(2026, 1, 15)].recorded_by == TEACHER_ID
    assert by_day[date(2026, 1, 16)].status == AttendanceStatus.PRESENT
    assert by_day[date(2026, 1, 17)].status == AttendanceStatus.LEAVE
    assert len(by_day) == 3
    assert env.transaction.commits == 1


def test_deciding_twice_conflicts_without_side_effects(env):
    req = env.submit()
    env.service.approve(req.request_id, decided_by=ADMIN_ID)
    before = env.attendance.all()

    with pytest.raises(ConflictError):
        env.service.approve(req.request_id, decided_by=ADMIN_ID)
    with pytest.raises(ConflictError):
        env.service.reject(req.request_id, decided_by=ADMIN_ID)

    assert env.attendance.all() == before
    assert env.service.get(req.request_id).status == RequestStatus.APPROVED


def test_rejection_leaves_ledger_untouched(env):
    req = env.submit()

    decided = env.service.reject(req.request_id, decided_by=TEACHER_ID)

    assert decided.status == RequestStatus.REJECTED
    assert env.attendance.all() == []


def test_decide_rejects_unknown_outcome(env):
    req = env.submit()
    with pytest.raises(ValidationError):
        env.service.decide(req.request_id, decided_by=ADMIN_ID, outcome="maybe")
    with pytest.raises(ValidationError):
        env.service.decide(req.request_id, decided_by=ADMIN_ID, outcome="pending")


def test_decide_accepts_outcome_as_string(env):
    req = env.submit()
    assert env.service.decide(req.request_id, decided_by=ADMIN_ID, outcome="rejected").status == RequestStatus.REJECTED


def test_decide_unknown_request(env):
    with pytest.raises(NotFoundError):
        env.service.approve(404, decided_by=ADMIN_ID)


@pytest.mark.parametrize("decider", [142, OTHER_TEACHER_ID])
def test_only_admin_or_class_teacher_decides(env, decider):
    req = env.submit()

    with pytest.raises(AuthorizationError):
        env.service.approve(req.request_id, decided_by=decider)

    assert env.service.get(req.request_id).is_pending
    assert env.attendance.all() == []


def test_lost_race_on_decision_is_a_conflict(env, monkeypatch):
    req = env.submit()
    monkeypatch.setattr(env.requests, "decide", lambda **kw: False)

    with pytest.raises(ConflictError):
        env.service.approve(req.request_id, decided_by=ADMIN_ID)

    assert env.transaction.rollbacks == 1
    assert env.attendance.all() == []


def test_withdraw_only_while_pending(env):
    first = env.submit()
    env.service.withdraw(first.request_id)
    with pytest.raises(NotFoundError):
        env.service.get(first.request_id)

    second = env.submit()
    env.service.reject(second.request_id, decided_by=ADMIN_ID)
    with pytest.raises(ConflictError):
        env.service.withdraw(second.request_id)


def test_listing(env):
    a = env.submit()
    b = env.submit(student_id=43, reason="Dentist")
    env.service.approve(a.request_id, decided_by=ADMIN_ID)

    assert [r.request_id for r in env.service.list_pending()] == [b.request_id]
    assert [r.request_id for r in env.service.list_by_status("approved")] == [a.request_id]
    assert [r.request_id for r in env.service.list_for_student(43)] == [b.request_id]
    assert len(env.service.list_all()) == 2

    with pytest.raises(ValidationError):
        env.service.list_by_status("archived")
