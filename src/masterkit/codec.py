"""Encoding and decoding of stored master record lists.

A namespace is stored as one JSON array. Writes go through
``canonical_dumps`` so the same list always produces the same text (object
keys sorted, list order kept, no whitespace, non-ASCII kept as-is, NaN and
infinities refused). Reads go through ``decode_record_list``, which never
raises.
"""

from __future__ import annotations

import hashlib
import json
import math
from typing import Any, List, Tuple

ABSENT = "absent"
EMPTY = "empty"
OK = "ok"
UNREADABLE = "unreadable"
NOT_A_LIST = "not_a_list"


class CanonicalJsonTypeError(TypeError):
    """Raised when a value has no JSON representation."""


def _check(value: Any, path: str) -> None:
    if value is None or isinstance(value, (str, bool, int)):
        return
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"Non-finite float at {path}: {value!r}")
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise CanonicalJsonTypeError(f"Unsupported key type at {path}: {type(key).__name__}")
            _check(item, f"{path}.{key}")
        return
    if isinstance(value, (list, tuple)):
        for idx, item in enumerate(value):
            _check(item, f"{path}[{idx}]")
        return
    raise CanonicalJsonTypeError(f"Unsupported type at {path}: {type(value).__name__}")


def canonical_dumps(obj: Any) -> str:
    _check(obj, "$")
    return json.dumps(obj, sort_keys=True, ensure_ascii=False, separators=(",", ":"), allow_nan=False)


def decode_record_list(raw: str | None) -> Tuple[List[dict], str, int]:
    """Decode a stored payload into ``(records, state, dropped)``.

    ``state`` is one of ``absent``, ``empty``, ``ok``, ``unreadable`` or
    ``not_a_list``; the last two decode to no records. ``dropped`` counts
    list entries that were not objects.
    """
    if raw is None:
        return [], ABSENT, 0
    if raw == "":
        return [], EMPTY, 0
    try:
        data = json.loads(raw)
    except ValueError:
        return [], UNREADABLE, 0
    if not isinstance(data, list):
        return [], NOT_A_LIST, 0
    records = [item for item in data if isinstance(item, dict)]
    return records, OK, len(data) - len(records)


def records_digest(records: Any) -> str:
    data = canonical_dumps(records).encode("utf-8")
    return f"sha256:{hashlib.sha256(data).hexdigest()}"
