from __future__ import annotations

import csv
import io
from datetime import timedelta

from flask import Flask, jsonify, request

from ..common.datetime_utils import now_local
from ..common.web import current_student_id, current_user_id, login_required, optional_date_arg, optional_int_arg
from ..container import Container
from ..core.constants import DEFAULT_REPORT_DAYS
from ..core.enums import ReportGrouping
from .model import ReportFilter

_CSV_FIELDS = [
    "period_start",
    "period_end",
    "student_id",
    "student_name",
    "nis_nisn",
    "class_name",
    "present",
    "absent",
    "sick",
    "leave",
    "pending",
    "total",
    "attendance_rate",
]


def register(app: Flask, container: Container) -> None:
    reports = container.report_assembler

    def _filter_from_args() -> ReportFilter:
        end = optional_date_arg("end_date") or now_local().date()
        start = optional_date_arg("start_date") or end - timedelta(days=DEFAULT_REPORT_DAYS - 1)
        return ReportFilter(
            start_date=start,
            end_date=end,
            class_id=optional_int_arg("class_id"),
            student_id=optional_int_arg("student_id"),
        )

    def _write_report_csv(*, data, filename: str):
        """Plain CSV export; PDF/Excel rendering happens outside this service."""

        out = io.StringIO()
        writer = csv.DictWriter(out, fieldnames=_CSV_FIELDS, extrasaction="ignore")
        writer.writeheader()
        for row in data.rows:
            writer.writerow(row.as_dict())

        csv_bytes = out.getvalue().encode("utf-8-sig")
        return app.response_class(
            csv_bytes,
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @app.route("/api/reports/attendance", methods=["GET"], endpoint="report_attendance")
    @login_required
    def attendance_report():
        report_filter = _filter_from_args()
        data = reports.assemble(report_filter, request.args.get("grouping") or ReportGrouping.RANGE)
        return jsonify(
            {
                "success": True,
                "rows": [row.as_dict() for row in data.rows],
                "summary": data.summary.as_dict(),
            }
        )

    @app.route("/api/reports/attendance.csv", methods=["GET"], endpoint="report_attendance_csv")
    @login_required
    def attendance_report_csv():
        report_filter = _filter_from_args()
        data = reports.assemble(report_filter, request.args.get("grouping") or ReportGrouping.RANGE)
        filename = f"attendance_{report_filter.start_date:%Y%m%d}_{report_filter.end_date:%Y%m%d}.csv"
        return _write_report_csv(data=data, filename=filename)

    @app.route("/api/reports/daily", methods=["GET"], endpoint="report_daily")
    @login_required
    def daily_report():
        day = optional_date_arg("date") or now_local().date()
        report = reports.daily_report(day, class_id=optional_int_arg("class_id"))
        return jsonify(
            {
                "success": True,
                "date": report.day.strftime("%Y-%m-%d"),
                "rows": [row.as_dict() for row in report.rows],
                "summary": report.stats.as_dict(),
            }
        )

    @app.route("/api/reports/dashboard", methods=["GET"], endpoint="report_dashboard")
    @login_required
    def dashboard():
        data = reports.dashboard(today=optional_date_arg("date"), class_id=optional_int_arg("class_id"))
        return jsonify({"success": True, **data})

    @app.route("/api/reports/dashboard/teacher", methods=["GET"], endpoint="report_dashboard_teacher")
    @login_required
    def teacher_dashboard():
        data = reports.teacher_dashboard(current_user_id(), today=optional_date_arg("date"))
        return jsonify({"success": True, **data})

    @app.route("/api/reports/dashboard/student", methods=["GET"], endpoint="report_dashboard_student")
    @login_required
    def student_dashboard():
        data = reports.student_dashboard(current_student_id(), today=optional_date_arg("date"))
        return jsonify({"success": True, **data})
