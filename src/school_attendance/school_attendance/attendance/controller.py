from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.unset import UNSET
from ..common.web import (
    as_date,
    as_int,
    as_time,
    current_student_id,
    current_user_id,
    json_body,
    login_required,
    optional_date_arg,
    optional_int_arg,
    require_field,
)
from ..container import Container
from ..core.exceptions import ValidationError
from .model import AttendanceFilter, AttendanceRecord, NewAttendance


def record_to_json(r: AttendanceRecord) -> dict:
    return {
        "attendance_id": r.attendance_id,
        "student_id": r.student_id,
        "class_id": r.class_id,
        "date": r.attendance_date.strftime("%Y-%m-%d"),
        "status": r.status.value,
        "check_in_time": r.check_in_time.strftime("%H:%M:%S") if r.check_in_time else None,
        "check_out_time": r.check_out_time.strftime("%H:%M:%S") if r.check_out_time else None,
        "notes": r.notes,
        "recorded_by": r.recorded_by,
        "created_at": r.created_at.isoformat(sep=" ", timespec="seconds") if r.created_at else None,
    }


def _entry_from_json(data: dict, *, recorded_by: int) -> NewAttendance:
    return NewAttendance(
        student_id=as_int(require_field(data, "student_id"), "student_id"),
        class_id=as_int(require_field(data, "class_id"), "class_id"),
        attendance_date=as_date(require_field(data, "date"), "date"),
        status=require_field(data, "status"),
        recorded_by=recorded_by,
        check_in_time=as_time(data.get("check_in_time"), "check_in_time"),
        check_out_time=as_time(data.get("check_out_time"), "check_out_time"),
        notes=(data.get("notes") or None),
    )


def register(app: Flask, container: Container) -> None:
    ledger = container.attendance_service

    @app.route("/api/attendance/checkin", methods=["POST"], endpoint="attendance_checkin")
    @login_required
    def checkin():
        data = request.get_json(silent=True) or {}
        record = ledger.check_in(current_student_id(), as_int(require_field(data, "class_id"), "class_id"))
        return jsonify({"success": True, "record": record_to_json(record)}), 201

    @app.route("/api/attendance/<int:attendance_id>/checkout", methods=["POST"], endpoint="attendance_checkout")
    @login_required
    def checkout(attendance_id: int):
        record = ledger.check_out(attendance_id, student_id=current_student_id())
        return jsonify({"success": True, "record": record_to_json(record)})

    @app.route("/api/attendance/today", methods=["GET"], endpoint="attendance_today")
    @login_required
    def today():
        record = ledger.get_today_record(current_student_id())
        return jsonify({"success": True, "record": record_to_json(record) if record else None})

    @app.route("/api/attendance/history", methods=["GET"], endpoint="attendance_history")
    @login_required
    def history():
        limit = optional_int_arg("limit")
        if limit is None:
            limit = 15
        return jsonify({"success": True, "data": ledger.get_history_ui(current_student_id(), limit=limit)})

    @app.route("/api/attendance", methods=["POST"], endpoint="attendance_record")
    @login_required
    def record_single():
        entry = _entry_from_json(json_body(), recorded_by=current_user_id())
        record = ledger.record_single(entry)
        return jsonify({"success": True, "record": record_to_json(record)}), 201

    @app.route("/api/attendance/bulk", methods=["POST"], endpoint="attendance_bulk")
    @login_required
    def record_bulk():
        data = json_body()
        items = data.get("records")
        if not isinstance(items, list):
            raise ValidationError("records must be a list")
        for index, item in enumerate(items, start=1):
            if not isinstance(item, dict):
                raise ValidationError(f"Item {index}: each record must be a JSON object")
        recorder = current_user_id()
        records = ledger.record_bulk([_entry_from_json(item, recorded_by=recorder) for item in items])
        return jsonify({"success": True, "records": [record_to_json(r) for r in records]}), 201

    @app.route("/api/attendance/<int:attendance_id>", methods=["PATCH"], endpoint="attendance_correct")
    @login_required
    def correct(attendance_id: int):
        data = json_body()
        record = ledger.correct(
            attendance_id,
            corrected_by=current_user_id(),
            status=data["status"] if "status" in data else UNSET,
            check_in_time=as_time(data["check_in_time"], "check_in_time") if "check_in_time" in data else UNSET,
            check_out_time=as_time(data["check_out_time"], "check_out_time") if "check_out_time" in data else UNSET,
            notes=data["notes"] if "notes" in data else UNSET,
        )
        return jsonify({"success": True, "record": record_to_json(record)})

    @app.route("/api/attendance/<int:attendance_id>", methods=["DELETE"], endpoint="attendance_remove")
    @login_required
    def remove(attendance_id: int):
        ledger.remove(attendance_id, removed_by=current_user_id())
        return jsonify({"success": True})

    @app.route("/api/attendance", methods=["GET"], endpoint="attendance_query")
    @login_required
    def query():
        filters = AttendanceFilter(
            class_id=optional_int_arg("class_id"),
            student_id=optional_int_arg("student_id"),
            start_date=optional_date_arg("start_date"),
            end_date=optional_date_arg("end_date"),
            status=request.args.get("status") or None,
        )
        return jsonify({"success": True, "records": [record_to_json(r) for r in ledger.query(filters)]})
