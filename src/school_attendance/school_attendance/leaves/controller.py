from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.web import as_date, as_int, current_student_id, current_user_id, json_body, login_required, require_field
from ..container import Container
from .model import LeaveRequest


def leave_to_json(req: LeaveRequest) -> dict:
    return {
        "request_id": req.request_id,
        "student_id": req.student_id,
        "request_date": req.request_date.strftime("%Y-%m-%d %H:%M") if req.request_date else None,
        "start_date": req.start_date.strftime("%Y-%m-%d"),
        "end_date": req.end_date.strftime("%Y-%m-%d"),
        "reason": req.reason,
        "status": req.status.value,
        "approved_by": req.approved_by,
        "approved_at": req.approved_at.strftime("%Y-%m-%d %H:%M") if req.approved_at else None,
    }


def register(app: Flask, container: Container) -> None:
    leaves = container.leave_service

    @app.route("/api/leave-requests", methods=["POST"], endpoint="leave_submit")
    @login_required
    def submit():
        data = json_body()
        req = leaves.submit(
            student_id=current_student_id(),
            start_date=as_date(require_field(data, "start_date"), "start_date"),
            end_date=as_date(require_field(data, "end_date"), "end_date"),
            reason=str(data.get("reason") or ""),
        )
        return jsonify({"success": True, "request": leave_to_json(req)}), 201

    @app.route("/api/leave-requests/mine", methods=["GET"], endpoint="leave_mine")
    @login_required
    def my_requests():
        data = leaves.list_for_student(current_student_id())
        return jsonify({"success": True, "requests": [leave_to_json(r) for r in data]})

    @app.route("/api/leave-requests", methods=["GET"], endpoint="leave_list")
    @login_required
    def list_requests():
        status = request.args.get("status")
        student_id = request.args.get("student_id")
        if student_id:
            data = leaves.list_for_student(as_int(student_id, "student_id"))
        elif status:
            data = leaves.list_by_status(status)
        else:
            data = leaves.list_all()
        return jsonify({"success": True, "requests": [leave_to_json(r) for r in data]})

    @app.route("/api/leave-requests/<int:request_id>", methods=["GET"], endpoint="leave_get")
    @login_required
    def get_request(request_id: int):
        return jsonify({"success": True, "request": leave_to_json(leaves.get(request_id))})

    @app.route("/api/leave-requests/<int:request_id>/decision", methods=["POST"], endpoint="leave_decide")
    @login_required
    def decide(request_id: int):
        data = json_body()
        req = leaves.decide(request_id, decided_by=current_user_id(), outcome=require_field(data, "outcome"))
        return jsonify({"success": True, "request": leave_to_json(req)})

    @app.route("/api/leave-requests/<int:request_id>", methods=["DELETE"], endpoint="leave_withdraw")
    @login_required
    def withdraw(request_id: int):
        leaves.withdraw(request_id)
        return jsonify({"success": True})
