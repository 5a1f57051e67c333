from __future__ import annotations

import logging
from datetime import date
from functools import wraps
from typing import Any, Optional

from flask import Flask, jsonify, request, session
from werkzeug.exceptions import HTTPException

from ..core.exceptions import AuthorizationError, ConflictError, DomainError, NotFoundError, ValidationError
from .datetime_utils import parse_clock_time, parse_iso_date

logger = logging.getLogger(__name__)

_STATUS_CODES = {
    ValidationError: 400,
    AuthorizationError: 403,
    NotFoundError: 404,
    ConflictError: 409,
}


def error_response(code: str, message: str, status: int):
    return jsonify({"success": False, "error": code, "message": message}), status


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(e: DomainError):
        status = next((s for cls, s in _STATUS_CODES.items() if isinstance(e, cls)), 400)
        return error_response(e.code, str(e), status)

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        if isinstance(e, HTTPException):
            return error_response(e.name.lower().replace(" ", "_"), e.description or e.name, e.code or 500)
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return error_response("server_error", "Internal server error", 500)


def login_required(view):
    """The identity provider stores ``user_id`` (and ``student_id`` for students) in the session."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session:
            return error_response("unauthenticated", "Please log in to continue", 401)
        return view(*args, **kwargs)

    return wrapper


def current_user_id() -> int:
    return int(session["user_id"])


def current_student_id() -> int:
    if session.get("student_id") is None:
        raise AuthorizationError("Only students can use self-service attendance")
    return int(session["student_id"])


def json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def require_field(data: dict, name: str) -> Any:
    if data.get(name) in (None, ""):
        raise ValidationError(f"{name} is required")
    return data[name]


def as_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")


def as_date(value: Any, name: str) -> date:
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError(f"{name} must be a date (YYYY-MM-DD)")


def as_time(value: Any, name: str):
    if value in (None, ""):
        return None
    try:
        return parse_clock_time(str(value))
    except ValueError:
        raise ValidationError(f"{name} must be a time (HH:MM)")


def optional_int_arg(name: str) -> Optional[int]:
    value = request.args.get(name)
    return as_int(value, name) if value not in (None, "") else None


def optional_date_arg(name: str) -> Optional[date]:
    value = request.args.get(name)
    return as_date(value, name) if value not in (None, "") else None
