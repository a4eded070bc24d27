"""Master type registry: field schemas and per-namespace conventions."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Tuple


Issue = Dict[str, Any]

UI_KINDS = {
    "text",
    "email",
    "url",
    "number",
    "textarea",
    "select",
    "date",
    "time",
    "datetime",
    "checkbox",
    "image",
    "operations_table",
    "auto",
    "computed",
}

VALUE_TYPES = {"string", "number", "date", "datetime", "boolean", "json"}

NON_EDITABLE_UI = {"auto", "computed"}
NON_LISTED_UI = {"auto", "image", "computed"}


def _issue(code: str, message: str, path: str | None = None, detail: dict | None = None) -> Issue:
    return {"code": code, "message": message, "path": path, "detail": detail}


@dataclass(frozen=True)
class FieldSchema:
    key: str
    label: str
    ui: str = "text"
    type: str = "string"
    required: bool = False
    options: Tuple[str, ...] = ()
    relation: str | None = None

    @property
    def editable(self) -> bool:
        return self.ui not in NON_EDITABLE_UI

    @property
    def listed(self) -> bool:
        return self.ui not in NON_LISTED_UI

    @classmethod
    def from_dict(cls, data: dict) -> "FieldSchema":
        return cls(
            key=data["key"],
            label=data.get("label") or data["key"],
            ui=data.get("ui") or "text",
            type=data.get("type") or "string",
            required=bool(data.get("required")),
            options=tuple(data.get("options") or ()),
            relation=data.get("relation"),
        )

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "label": self.label,
            "ui": self.ui,
            "type": self.type,
            "required": self.required,
            "options": list(self.options),
            "relation": self.relation,
        }


@dataclass(frozen=True)
class MasterType:
    key: str
    label: str
    fields: Tuple[FieldSchema, ...]
    id_field: str | None = None
    name_field: str | None = None
    list_columns: Tuple[str, ...] = ()
    group: str = "general"
    description: str | None = None

    def field(self, key: str) -> FieldSchema | None:
        for item in self.fields:
            if item.key == key:
                return item
        return None

    @property
    def primary_id_field(self) -> str:
        return self.id_field or f"{self.key}_id"

    @property
    def record_label(self) -> str:
        label = self.label
        if label.endswith(" Master") and len(label) > len(" Master"):
            label = label[: -len(" Master")]
        return label

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "label": self.label,
            "group": self.group,
            "description": self.description,
            "id_field": self.primary_id_field,
            "name_field": self.name_field,
            "list_columns": list(self.list_columns),
            "fields": [f.to_dict() for f in self.fields],
        }


def make_fields(items: Iterable[dict]) -> Tuple[FieldSchema, ...]:
    return tuple(FieldSchema.from_dict(item) for item in items)


def validate_master_type(master_type: MasterType) -> tuple[List[Issue], List[Issue]]:
    errors: List[Issue] = []
    warnings: List[Issue] = []
    if not isinstance(master_type.key, str) or not master_type.key.strip():
        errors.append(_issue("MASTER_KEY_INVALID", "master key must be a non-empty string", "key"))
    if not master_type.fields:
        errors.append(_issue("MASTER_FIELDS_EMPTY", "master type must declare at least one field", "fields"))

    seen: set[str] = set()
    for idx, item in enumerate(master_type.fields):
        path = f"fields[{idx}]"
        if not item.key:
            errors.append(_issue("FIELD_KEY_INVALID", "field key is required", f"{path}.key"))
            continue
        if item.key in seen:
            errors.append(_issue("FIELD_KEY_DUPLICATE", f"duplicate field key: {item.key}", f"{path}.key"))
        seen.add(item.key)
        if item.ui not in UI_KINDS:
            errors.append(_issue("FIELD_UI_UNKNOWN", f"unknown ui kind: {item.ui}", f"{path}.ui"))
        if item.type not in VALUE_TYPES:
            errors.append(_issue("FIELD_TYPE_UNKNOWN", f"unknown value type: {item.type}", f"{path}.type"))
        if item.ui == "select" and not item.options and not item.relation:
            warnings.append(_issue("SELECT_WITHOUT_CHOICES", f"{item.key} has no options or relation", f"{path}.options"))
        if item.required and not item.editable:
            warnings.append(_issue("REQUIRED_NOT_EDITABLE", f"{item.key} is required but not editable", f"{path}.required"))

    for attr in ("id_field", "name_field"):
        value = getattr(master_type, attr)
        if value and value not in seen:
            errors.append(_issue("FIELD_REFERENCE_UNKNOWN", f"{attr} refers to unknown field: {value}", attr))
    for idx, column in enumerate(master_type.list_columns):
        if column not in seen:
            errors.append(_issue("FIELD_REFERENCE_UNKNOWN", f"list column refers to unknown field: {column}", f"list_columns[{idx}]"))
    return errors, warnings


class MasterRegistry:
    def __init__(self) -> None:
        self._types: Dict[str, MasterType] = {}
        self._order: List[str] = []

    def register(self, master_type: MasterType) -> dict:
        errors, warnings = validate_master_type(master_type)
        if master_type.key in self._types:
            errors.append(_issue("MASTER_ALREADY_REGISTERED", "master type already registered", "key"))
        if errors:
            return {"ok": False, "errors": errors, "warnings": warnings, "master": None}
        self._types[master_type.key] = master_type
        self._order.append(master_type.key)
        return {"ok": True, "errors": [], "warnings": warnings, "master": master_type}

    def get(self, master_key: str) -> MasterType | None:
        return self._types.get(master_key)

    def list(self, group: str | None = None) -> list[MasterType]:
        items = [self._types[key] for key in self._order]
        if group:
            items = [m for m in items if m.group == group]
        return items

    def groups(self) -> list[str]:
        return list(dict.fromkeys(m.group for m in self.list()))

    def id_fields(self) -> Dict[str, str]:
        return {m.key: m.id_field for m in self.list() if m.id_field}

    def name_field(self, master_key: str) -> str | None:
        master = self.get(master_key)
        return master.name_field if master else None

    def snapshot(self) -> list[dict]:
        return [copy.deepcopy(m.to_dict()) for m in self.list()]
