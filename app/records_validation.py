"""Submission validation for master records."""

from __future__ import annotations

import json
import re
from datetime import date, datetime
from typing import Any, Iterable

from app.job_cards import serialize_operations
from master_registry import FieldSchema
from masterkit.record_ids import is_blank

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d)?$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_TRUE_VALUES = {"true", "1", "on", "yes"}
_FALSE_VALUES = {"false", "0", "off", "no", ""}


def _to_number(val: Any) -> int | float:
    if isinstance(val, bool):
        raise ValueError("boolean is not a number")
    if isinstance(val, (int, float)):
        return val
    text = str(val).strip().replace(",", "")
    if re.fullmatch(r"[+-]?\d+", text):
        return int(text)
    num = float(text)
    if num != num or num in (float("inf"), float("-inf")):
        raise ValueError("number must be finite")
    return num


def _to_bool(val: Any) -> bool:
    if isinstance(val, bool):
        return val
    text = str(val).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"not a boolean: {val!r}")


def _operations_json(val: Any) -> str:
    items = json.loads(val) if isinstance(val, str) else val
    if not isinstance(items, list) or not all(isinstance(op, dict) for op in items):
        raise ValueError("operations must be a list of objects")
    for op in items:
        if is_blank(op.get("key")) or is_blank(op.get("label")):
            raise ValueError("each operation needs a key and a label")
    return serialize_operations(items)


def validate_submission(fields: Iterable[FieldSchema], data: dict, partial: bool = False) -> tuple[list[dict], dict]:
    """Check a candidate record against its field schema.

    Returns ``(errors, clean)``. ``clean`` carries coerced values with blank
    values dropped; fields not declared in the schema pass through untouched.
    With ``partial`` only the fields present in ``data`` are checked for
    presence.
    """
    errors: list[dict] = []
    if not isinstance(data, dict):
        return [
            {
                "code": "INVALID_PAYLOAD",
                "message": "Record data must be an object",
                "path": None,
                "detail": None,
            }
        ], {}

    def _add_error(code: str, message: str, path: str | None = None, detail: dict | None = None):
        errors.append({"code": code, "message": message, "path": path, "detail": detail})

    field_list = list(fields)
    clean: dict = {}
    for key, val in data.items():
        if not is_blank(val):
            clean[key] = val

    for field in field_list:
        if not field.editable or not field.required:
            continue
        if partial and field.key not in data:
            continue
        if is_blank(data.get(field.key)):
            _add_error("REQUIRED_FIELD", f"{field.label} is required", path=field.key)

    for field in field_list:
        if not field.editable or field.key not in clean:
            continue
        val = clean[field.key]
        key = field.key
        if field.ui == "number" or field.type == "number":
            try:
                clean[key] = _to_number(val)
            except (TypeError, ValueError):
                _add_error("INVALID_NUMBER", f"{field.label} must be a number", path=key, detail={"value": val})
        elif field.ui == "checkbox" or field.type == "boolean":
            try:
                clean[key] = _to_bool(val)
            except ValueError:
                _add_error("TYPE_MISMATCH", f"{field.label} must be a boolean", path=key)
        elif field.ui == "operations_table" or field.type == "json":
            try:
                clean[key] = _operations_json(val)
            except (TypeError, ValueError):
                _add_error("INVALID_OPERATIONS", f"{field.label} must be a list of operations", path=key)
        elif field.ui == "date" or field.type == "date":
            try:
                date.fromisoformat(str(val))
            except ValueError:
                _add_error("INVALID_DATE", f"{field.label} must be YYYY-MM-DD", path=key, detail={"value": val})
        elif field.ui == "datetime" or field.type == "datetime":
            try:
                datetime.fromisoformat(str(val).replace("Z", "+00:00"))
            except ValueError:
                _add_error("INVALID_DATETIME", f"{field.label} must be ISO8601", path=key, detail={"value": val})
        elif field.ui == "time":
            if not isinstance(val, str) or not _TIME_RE.match(val):
                _add_error("INVALID_TIME", f"{field.label} must be HH:MM", path=key, detail={"value": val})
        elif field.ui == "image":
            if not isinstance(val, str):
                _add_error("TYPE_MISMATCH", f"{field.label} must be an image URL", path=key)
        elif not isinstance(val, str):
            _add_error("TYPE_MISMATCH", f"{field.label} must be a string", path=key)
        elif field.ui == "email" and not _EMAIL_RE.match(val):
            _add_error("INVALID_EMAIL", "Invalid email address", path=key, detail={"value": val})
        elif field.ui == "select" and field.options and val not in field.options:
            _add_error(
                "INVALID_OPTION",
                f"{field.label} must be one of {list(field.options)}",
                path=key,
                detail={"value": val},
            )

    return errors, clean
