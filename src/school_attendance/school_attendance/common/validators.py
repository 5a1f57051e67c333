from __future__ import annotations

from datetime import date, time
from typing import Optional

from ..core.exceptions import ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field_name} must not be empty")
    return value.strip()


def require_date_range(start: date, end: date) -> None:
    if start > end:
        raise ValidationError("start_date must be on or before end_date")


def require_time_order(check_in: Optional[time], check_out: Optional[time]) -> None:
    if check_in is not None and check_out is not None and check_out < check_in:
        raise ValidationError("check_out_time cannot be earlier than check_in_time")
