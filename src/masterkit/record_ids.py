"""Identifier conventions for master-data namespaces.

Every master key addresses one stored list under ``master_data_<key>``.
A record's identifier is the first non-blank value among its candidate id
fields: the namespace's declared field (when there is one), then ``id``,
``<key>_id`` and ``<key>Id``. Lookups match a record when any of those
fields holds the requested id.
"""

from __future__ import annotations

import time
import uuid
from typing import Any, List

STORAGE_PREFIX = "master_data_"


def storage_key(master_key: str) -> str:
    return f"{STORAGE_PREFIX}{master_key}"


def master_key_from_storage_key(key: str) -> str | None:
    if not isinstance(key, str) or not key.startswith(STORAGE_PREFIX):
        return None
    return key[len(STORAGE_PREFIX) :] or None


def is_blank(value: Any) -> bool:
    return value is None or value == ""


def id_field_candidates(master_key: str, declared: str | None = None) -> List[str]:
    fields = ["id", f"{master_key}_id", f"{master_key}Id"]
    if declared:
        fields = [declared] + [f for f in fields if f != declared]
    return fields


def primary_id_field(master_key: str, declared: str | None = None) -> str:
    return declared or f"{master_key}_id"


def creation_id_fields(master_key: str, declared: str | None = None) -> List[str]:
    """Fields that, when filled, mean a new record already carries an id."""
    fields = ["id", f"{master_key}_id"]
    if declared and declared not in fields:
        fields.insert(0, declared)
    return fields


def record_identifier(record: dict, master_key: str, declared: str | None = None) -> str | None:
    if not isinstance(record, dict):
        return None
    for field in id_field_candidates(master_key, declared):
        value = record.get(field)
        if not is_blank(value):
            return str(value)
    return None


def record_matches(record: dict, record_id: Any, master_key: str, declared: str | None = None) -> bool:
    """True when any candidate id field of ``record`` equals ``record_id`` as a string."""
    if not isinstance(record, dict):
        return False
    wanted = str(record_id)
    for field in id_field_candidates(master_key, declared):
        value = record.get(field)
        if not is_blank(value) and str(value) == wanted:
            return True
    return False


def generate_record_id(master_key: str, now_ms: int | None = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{master_key}_{now_ms}_{uuid.uuid4().hex[:9]}"
