"""Diagnostics helpers for stored master data."""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List

from masterkit.codec import ABSENT, NOT_A_LIST, UNREADABLE, decode_record_list, records_digest
from masterkit.record_ids import is_blank


Issue = Dict[str, Any]


def _conflicting_ids(id_fields: List[str], records: List[dict]) -> List[dict]:
    conflicts = []
    for idx, record in enumerate(records):
        present = {f: record[f] for f in id_fields if not is_blank(record.get(f))}
        if len({str(v) for v in present.values()}) > 1:
            conflicts.append({"index": idx, **present})
    return conflicts


def build_diagnostics(registry, store) -> dict:
    keys = [m.key for m in registry.list()]
    for key in store.namespaces():
        if key not in keys:
            keys.append(key)
    masters = []
    for key in keys:
        master = registry.get(key)
        raw = store.read_raw(key)
        records, state, dropped = decode_record_list(raw)
        idents = [store.identifier_of(key, record) for record in records]
        counts = Counter(i for i in idents if i is not None)
        warnings: list[Issue] = []
        if state in (UNREADABLE, NOT_A_LIST):
            warnings.append(
                {
                    "code": "PAYLOAD_UNREADABLE",
                    "message": "stored payload is not a JSON list and reads as empty",
                    "path": key,
                    "detail": {"state": state},
                }
            )
        id_fields = store.id_fields_for(key)
        conflicts = _conflicting_ids(id_fields, records)
        if conflicts:
            warnings.append(
                {
                    "code": "ID_FIELDS_DISAGREE",
                    "message": f"records carry different values across {', '.join(id_fields)}",
                    "path": key,
                    "detail": {"records": conflicts},
                }
            )
        masters.append(
            {
                "master_key": key,
                "label": master.label if master else None,
                "registered": master is not None,
                "stored": state != ABSENT,
                "payload": state,
                "count": len(records),
                "dropped_entries": dropped,
                "digest": records_digest(records),
                "missing_ids": sum(1 for i in idents if i is None),
                "duplicate_ids": sorted(ident for ident, n in counts.items() if n > 1),
                "warnings": warnings,
            }
        )
    return {
        "masters": masters,
    }
