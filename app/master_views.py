"""Schema-driven render models for master listings, forms and detail views.

The functions here produce plain dicts that the Jinja templates (and the JSON
API) consume; nothing in this module touches HTTP.
"""

from __future__ import annotations

import base64
import logging
import os
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Sequence

from master_registry import FieldSchema
from masterkit.record_ids import is_blank

from app.job_cards import OPERATION_TYPES, operations_from_form, parse_operations, serialize_operations

logger = logging.getLogger("masters.views")

DATE_FORMAT = os.getenv("MASTERS_DATE_FORMAT", "%d/%m/%Y")
DATETIME_FORMAT = os.getenv("MASTERS_DATETIME_FORMAT", "%d/%m/%Y, %H:%M:%S")
EMPTY_DISPLAY = "-"

RecordAction = Callable[[dict], Any]


def display_columns(fields: Sequence[FieldSchema], columns: Sequence[str] | None = None) -> List[FieldSchema]:
    if columns:
        by_key = {f.key: f for f in fields}
        return [by_key[key] for key in columns if key in by_key]
    return [f for f in fields if f.listed]


def _parse_when(value: Any) -> datetime | None:
    try:
        return datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("", "false", "0", "off", "no")
    return bool(value)


def _format_number(value: int | float) -> str:
    if isinstance(value, int):
        return f"{value:,}"
    if value.is_integer():
        return f"{int(value):,}"
    return f"{value:,.3f}".rstrip("0").rstrip(".")


def format_operations_count(value: Any) -> str:
    count = len(parse_operations(value))
    return f"{count} operation{'' if count == 1 else 's'}"


def format_value(
    value: Any,
    field: FieldSchema,
    date_format: str | None = None,
    datetime_format: str | None = None,
) -> str:
    if field.key == "operations" or field.ui == "operations_table":
        return format_operations_count(value)
    if is_blank(value):
        return EMPTY_DISPLAY
    if field.ui == "date":
        parsed = _parse_when(value)
        return parsed.strftime(date_format or DATE_FORMAT) if parsed else str(value)
    if field.ui == "datetime":
        parsed = _parse_when(value)
        return parsed.strftime(datetime_format or DATETIME_FORMAT) if parsed else str(value)
    if field.ui == "checkbox":
        return "Yes" if _truthy(value) else "No"
    if field.ui == "number":
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return _format_number(value)
        return str(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _search_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).lower()


def filter_records(records: Iterable[dict], columns: Sequence[FieldSchema], search: str | None) -> List[dict]:
    records = list(records)
    needle = (search or "").strip().lower()
    if not needle:
        return records
    matched = []
    for record in records:
        for field in columns:
            value = record.get(field.key)
            if value and needle in _search_text(value):
                matched.append(record)
                break
    return matched


def sort_records(records: Iterable[dict], sort_field: str | None, direction: str = "asc") -> List[dict]:
    records = list(records)
    if not sort_field:
        return records

    def _key(record: dict) -> str:
        value = record.get(sort_field)
        return _search_text(value) if value else ""

    return sorted(records, key=_key, reverse=(direction == "desc"))


def render_table(
    fields: Sequence[FieldSchema],
    records: Iterable[dict],
    on_view: RecordAction,
    on_edit: RecordAction,
    on_delete: RecordAction,
    search: str | None = None,
    sort_field: str | None = None,
    sort_direction: str = "asc",
    columns: Sequence[str] | None = None,
) -> dict:
    """Build the listing model.

    Columns come from ``columns`` when given, otherwise every field that is
    not ``auto``, ``image`` or ``computed``. Rows are filtered by ``search``
    across the displayed columns, then sorted by ``sort_field``.
    """
    records = list(records)
    shown_columns = display_columns(fields, columns)
    direction = "desc" if sort_direction == "desc" else "asc"
    if sort_field and sort_field not in {f.key for f in shown_columns}:
        sort_field = None
    visible = sort_records(filter_records(records, shown_columns, search), sort_field, direction)
    rows = []
    for record in visible:
        rows.append(
            {
                "record": record,
                "cells": [
                    {"key": f.key, "text": format_value(record.get(f.key), f)} for f in shown_columns
                ],
                "actions": {
                    "view": on_view(record),
                    "edit": on_edit(record),
                    "delete": on_delete(record),
                },
            }
        )
    return {
        "columns": [
            {
                "key": f.key,
                "label": f.label,
                "sorted": f.key == sort_field,
                "direction": direction if f.key == sort_field else None,
            }
            for f in shown_columns
        ],
        "rows": rows,
        "search": search or "",
        "sort_field": sort_field,
        "sort_direction": direction,
        "total": len(records),
        "shown": len(rows),
    }


def _errors_by_path(errors: Iterable[dict] | None) -> Dict[str, str]:
    by_path: Dict[str, str] = {}
    for err in errors or []:
        path = err.get("path")
        if path and path not in by_path:
            by_path[path] = err.get("message") or err.get("code") or "Invalid value"
    return by_path


def render_form(
    fields: Sequence[FieldSchema],
    initial_data: dict | None = None,
    errors: Iterable[dict] | None = None,
    choices_for: Callable[[str], List[dict]] | None = None,
    mode: str | None = None,
) -> dict:
    values = initial_data or {}
    messages = _errors_by_path(errors)
    controls = []
    for field in fields:
        if not field.editable:
            continue
        value = values.get(field.key)
        control = {
            "key": field.key,
            "label": field.label,
            "ui": field.ui,
            "type": field.type,
            "required": field.required,
            "value": "" if is_blank(value) else value,
            "error": messages.get(field.key),
            "placeholder": f"{'Select' if field.ui == 'select' else 'Enter'} {field.label.lower()}",
        }
        if field.ui == "select":
            if field.options:
                control["choices"] = [{"value": opt, "label": opt} for opt in field.options]
            elif field.relation and choices_for is not None:
                control["choices"] = choices_for(field.relation)
            else:
                control["choices"] = []
            control["value"] = "" if is_blank(value) else str(value)
        elif field.ui == "checkbox":
            control["checked"] = _truthy(value) if not is_blank(value) else False
        elif field.ui == "operations_table":
            control["operations"] = parse_operations(value)
            control["operation_types"] = list(OPERATION_TYPES)
        controls.append(control)
    return {
        "mode": mode or ("edit" if initial_data else "create"),
        "controls": controls,
        "errors": list(errors or []),
    }


def _is_upload(value: Any) -> bool:
    return hasattr(value, "filename") and hasattr(value, "file")


def _image_data_url(upload) -> str | None:
    if not upload.filename:
        return None
    content = upload.file.read()
    if not content:
        return None
    mime = upload.content_type or "application/octet-stream"
    return f"data:{mime};base64,{base64.b64encode(content).decode('ascii')}"


def read_form(fields: Sequence[FieldSchema], form) -> dict:
    """Collect a candidate record from submitted form data.

    ``form`` is a multi-dict exposing ``get`` and ``getlist`` (Starlette's
    ``FormData``). Image fields without an upload are omitted so an edit
    keeps the stored image.
    """
    candidate: dict = {}
    for field in fields:
        if not field.editable:
            continue
        key = field.key
        if field.ui == "checkbox":
            candidate[key] = key in form
        elif field.ui == "operations_table":
            operations = operations_from_form(
                form.getlist(f"{key}__label"),
                form.getlist(f"{key}__type"),
                form.getlist(f"{key}__key"),
            )
            candidate[key] = serialize_operations(operations)
        elif field.ui == "image":
            raw = form.get(key)
            if _is_upload(raw):
                data_url = _image_data_url(raw)
                if data_url:
                    candidate[key] = data_url
            elif isinstance(raw, str) and raw:
                candidate[key] = raw
        else:
            raw = form.get(key)
            if raw is None:
                continue
            candidate[key] = raw.strip() if isinstance(raw, str) else raw
    return candidate


def render_detail(fields: Sequence[FieldSchema], record: dict) -> List[dict]:
    items = []
    for field in fields:
        value = record.get(field.key)
        item = {
            "key": field.key,
            "label": field.label,
            "ui": field.ui,
            "text": format_value(value, field),
        }
        if field.ui == "operations_table":
            item["operations"] = parse_operations(value)
        elif field.ui == "image" and isinstance(value, str) and value:
            item["image"] = value
        items.append(item)
    return items


def relation_choices(registry, store, relation_key: str) -> List[dict]:
    name_field = registry.name_field(relation_key) if registry is not None else None
    label_fields = [f for f in (name_field, f"{relation_key}_name", "name", f"{relation_key}_code") if f]
    choices = []
    for record in store.get_options(relation_key):
        ident = store.identifier_of(relation_key, record)
        if ident is None:
            continue
        label = next((str(record[f]) for f in label_fields if not is_blank(record.get(f))), ident)
        choices.append({"value": ident, "label": label})
    return choices
