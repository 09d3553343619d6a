from datetime import datetime, time
from decimal import Decimal, InvalidOperation

from flask import current_app, jsonify, request

from app.errors import CarWashError, ValidationError
from app.extensions import db


def error_response(error: CarWashError):
    db.session.rollback()
    return jsonify(error.to_dict()), error.status_code


def unexpected_error(error: Exception, context: str):
    db.session.rollback()
    current_app.logger.error(f"Unexpected error during {context}: {error}")
    return jsonify({"success": False, "error": "An unexpected error occurred"}), 500


def get_json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def to_decimal(value, field, default=None):
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")


def to_text(value, field):
    """Trimmed string form of a scalar JSON value; numbers become their text."""
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        raise ValidationError(f"{field} must be text")
    return str(value).strip()


def to_int(value, field, default=None):
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")


def to_bool(value, default=None):
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def money(value) -> float:
    if value is None:
        return 0.0
    return float(Decimal(str(value)).quantize(Decimal("0.01")))


def iso(value):
    return value.isoformat() if value else None


def to_date(value, field, end_of_day=False):
    """Parse ``YYYY-MM-DD`` into the first (or last) moment of that day."""
    if not value:
        return None
    try:
        day = datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a YYYY-MM-DD date")
    return datetime.combine(day, time.max if end_of_day else time.min)
