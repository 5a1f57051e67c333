from __future__ import annotations

from dataclasses import dataclass

from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.service import AttendanceService
from .database.connection import DBConfig, DatabaseConnection
from .leaves.mysql_leave_repository import MySQLLeaveRequestRepository
from .leaves.service import LeaveRequestService
from .reports.aggregation import AggregationEngine
from .reports.service import ReportAssembler
from .roster.mysql_roster_provider import MySQLRosterProvider


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    roster: MySQLRosterProvider
    attendance_repo: MySQLAttendanceRepository
    leave_repo: MySQLLeaveRequestRepository

    attendance_service: AttendanceService
    leave_service: LeaveRequestService
    aggregation_engine: AggregationEngine
    report_assembler: ReportAssembler


def build_container(*, db_config: dict) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
    )
    conn = DatabaseConnection.get_instance(config)

    roster = MySQLRosterProvider(conn)
    attendance_repo = MySQLAttendanceRepository(conn)
    leave_repo = MySQLLeaveRequestRepository(conn)

    attendance_service = AttendanceService(attendance_repo, roster)
    leave_service = LeaveRequestService(leave_repo, attendance_service, roster, transaction=conn.transaction)
    aggregation_engine = AggregationEngine()
    report_assembler = ReportAssembler(attendance_service, roster, engine=aggregation_engine)

    return Container(
        conn=conn,
        roster=roster,
        attendance_repo=attendance_repo,
        leave_repo=leave_repo,
        attendance_service=attendance_service,
        leave_service=leave_service,
        aggregation_engine=aggregation_engine,
        report_assembler=report_assembler,
    )
