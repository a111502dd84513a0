"""
JSON serializer utility for converting Python objects to JSON-safe values
"""
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from uuid import UUID
from typing import Any

from pydantic import BaseModel


def sanitize_for_json(obj: Any) -> Any:
    """
    Recursively sanitize Python objects for JSON storage (datetime/date -> isoformat, Enum -> value, etc.).
    Use before saving to any JSON column (audit_logs.meta_json, work_orders.notes, users.active_timer).
    """
    return to_json_safe(obj)


def to_json_safe(value: Any) -> Any:
    """
    Recursively convert Python objects to JSON-safe values

    Args:
        value: Any Python object to convert

    Returns:
        JSON-safe equivalent of the input value
    """
    if value is None:
        return None
    elif isinstance(value, Enum):
        return value.value
    elif isinstance(value, (str, int, float, bool)):
        return value
    elif isinstance(value, (date, datetime, time)):
        return value.isoformat()
    elif isinstance(value, Decimal):
        return float(value)
    elif isinstance(value, UUID):
        return str(value)
    elif isinstance(value, dict):
        return {k: to_json_safe(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple, set)):
        return [to_json_safe(item) for item in value]
    elif isinstance(value, BaseModel):
        return to_json_safe(value.model_dump())
    return str(value)
