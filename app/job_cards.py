"""Job card templates: predefined operation lists and the ``operations`` codec."""

from __future__ import annotations

import copy
import json
import logging
import re
from typing import Any, Dict, List, Sequence

from master_store import RecordNotFound
from masterkit.codec import canonical_dumps

logger = logging.getLogger("masters.seed")

TEMPLATE_MASTER_KEY = "job_card_template"
OPERATION_TYPES = ("text", "number", "textarea")
PLACEHOLDER_KEY_PREFIX = "operation_"

Operation = Dict[str, Any]


def _ops(*items: tuple[str, str]) -> List[Operation]:
    return [{"key": key, "label": label, "type": "text"} for key, label in items]


JOB_CARD_TEMPLATES: List[Dict[str, Any]] = [
    {
        "template_id": "common_job_card",
        "template_name": "Common Job Card",
        "template_code": "CJC",
        "description": "Standard job card with common operations",
        "status": "Active",
        "operations": _ops(
            ("rmCutting", "RM CUTTING"),
            ("vmcSide1", "VMC SIDE 1"),
            ("vmcSide2", "VMC SIDE 2"),
            ("vmcSide3", "VMC SIDE 3"),
            ("vmcSide4", "VMC SIDE 4"),
            ("vmcSide5", "VMC SIDE 5"),
            ("oiling", "OILING"),
            ("outsource", "OUTSOURCE"),
            ("grinding", "GRAINDING"),
            ("manual", "MANUAL"),
            ("assembly", "ASEMBLY"),
            ("wireCutting", "WIRE CUTTING"),
            ("aesthetic", "ASTHETIC"),
            ("packing", "PACKING"),
        ),
    },
    {
        "template_id": "double_body_die_cutting",
        "template_name": "Double Body Die Cutting Job Card",
        "template_code": "DBDC",
        "description": "Job card for double body die cutting operations",
        "status": "Active",
        "operations": _ops(
            ("rawMaterial", "RAW MATERIAL"),
            ("latheR1", "LATHE R1"),
            ("latheR2", "LATHE R2"),
            ("cncSide1", "CNC SIDE 1"),
            ("cncSide2", "CNC SIDE 2"),
            ("vmcSide1", "VMC SIDE 1"),
            ("drillTapping", "DRILL & TAPPING"),
            ("outsource", "OUTSOURCE"),
            ("inductionHardening", "INDUCTION HARDENING"),
            ("cylindricalG1", "CYLINDRICAL G1"),
            ("vmcSide2", "VMC SIDE 2"),
            ("cylindricalG2", "CYLINDRICAL G2"),
            ("carving", "CARVING"),
            ("testing", "TESTING"),
            ("marking", "MARKING"),
        ),
    },
    {
        "template_id": "double_body_die_sealing",
        "template_name": "Double Body Die Sealing Job Card",
        "template_code": "DBDS",
        "description": "Job card for double body die sealing operations",
        "status": "Active",
        "operations": _ops(
            ("rawMaterial", "RAW MATERIAL"),
            ("lathe", "LATHE"),
            ("cncSide1", "CNC SIDE 1"),
            ("cncSide2", "CNC SIDE 2"),
            ("vmcSide1", "VMC SIDE 1"),
            ("drillTapping", "DRILL & TAPPING"),
            ("hardening", "HARDNING"),
            ("grinding", "GRINDING"),
            ("shrinkFit", "SHRINK FIT (SHAFT)"),
            ("cylindricalG1", "CYLINDRICAL G1"),
            ("vmcSide2", "VMC SIDE 2"),
            ("cylindricalG2", "CYLINDRICAL G2"),
            ("carving", "CARVING"),
            ("testing", "TESTING"),
            ("marking", "MARKING"),
        ),
    },
    {
        "template_id": "single_body_die",
        "template_name": "Single Body Die Job Card",
        "template_code": "SBD",
        "description": "Job card for single body die operations",
        "status": "Active",
        "operations": _ops(
            ("rawMaterial", "RAW MATERIAL"),
            ("lathe", "LATHE"),
            ("cncSide1", "CNC SIDE 1"),
            ("cncSide2", "CNC SIDE 2"),
            ("vmcSide1", "VMC SIDE 1"),
            ("drillTapping", "DRILL & TAPPING"),
            ("hardening", "HARDNING"),
            ("grinding", "GRINDING"),
            ("cylindricalG1", "CYLINDRICAL G1"),
            ("vmcSide2", "VMC SIDE 2"),
            ("cylindricalG2", "CYLINDRICAL G2"),
            ("carving", "CARVING"),
            ("testing", "TESTING"),
            ("marking", "MARKING"),
        ),
    },
    {
        "template_id": "coller_single_die",
        "template_name": "Coller Single Die Job Card",
        "template_code": "CSD",
        "description": "Job card for coller single die operations",
        "status": "Active",
        "operations": _ops(
            ("rawMaterial", "RAW MATERIAL"),
            ("lathe", "LATHE"),
            ("cncSide1", "CNC SIDE 1"),
            ("cncSide2", "CNC SIDE 2"),
            ("vmcSide1", "VMC SIDE 1"),
            ("drillTapping", "DRILL & TAPPING"),
            ("hardening", "HARDENING"),
            ("cncSide3", "CNC SIDE 3"),
            ("shrinkFit", "SHRINK FIT"),
            ("packing", "PACKING"),
        ),
    },
]


def operation_key_from_label(label: str) -> str:
    key = re.sub(r"[^a-z0-9]+", "_", (label or "").lower())
    return key.strip("_")


def parse_operations(value: Any) -> List[Operation]:
    """Decode a stored ``operations`` value.

    Stored values are JSON strings; already-decoded lists are accepted as-is.
    Anything unreadable decodes to an empty list.
    """
    if value is None:
        return []
    if isinstance(value, list):
        return [dict(op) for op in value if isinstance(op, dict)]
    if not isinstance(value, str) or not value.strip():
        return []
    try:
        parsed = json.loads(value)
    except ValueError as exc:
        logger.warning("operations_unreadable error=%s", exc)
        return []
    if not isinstance(parsed, list):
        return []
    return [op for op in parsed if isinstance(op, dict)]


def serialize_operations(operations: Sequence[Operation]) -> str:
    cleaned = []
    for op in operations:
        cleaned.append(
            {
                "key": str(op.get("key") or ""),
                "label": str(op.get("label") or ""),
                "type": op.get("type") if op.get("type") in OPERATION_TYPES else "text",
            }
        )
    return canonical_dumps(cleaned)


def operations_from_form(
    labels: Sequence[str],
    types: Sequence[str] | None = None,
    keys: Sequence[str] | None = None,
) -> List[Operation]:
    """Build operation rows from parallel form lists; rows without a label are skipped."""
    types = list(types or [])
    keys = list(keys or [])
    operations: List[Operation] = []
    for idx, raw_label in enumerate(labels):
        label = (raw_label or "").strip()
        if not label:
            continue
        key = (keys[idx] if idx < len(keys) else "") or ""
        key = key.strip()
        if not key or key.startswith(PLACEHOLDER_KEY_PREFIX):
            key = operation_key_from_label(label)
        op_type = types[idx] if idx < len(types) else "text"
        if op_type not in OPERATION_TYPES:
            op_type = "text"
        operations.append({"key": key, "label": label, "type": op_type})
    return operations


def _stored_template(template: Dict[str, Any]) -> Dict[str, Any]:
    stored = copy.deepcopy(template)
    stored["operations"] = serialize_operations(template["operations"])
    return stored


def _expand(store, record: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "template_id": store.identifier_of(TEMPLATE_MASTER_KEY, record),
        "template_name": record.get("template_name") or "",
        "template_code": record.get("template_code") or "",
        "description": record.get("description") or "",
        "operations": parse_operations(record.get("operations")),
        "status": record.get("status") or "Active",
    }


def _predefined(template_id: str) -> Dict[str, Any] | None:
    for template in JOB_CARD_TEMPLATES:
        if template["template_id"] == template_id:
            return copy.deepcopy(template)
    return None


def seed_job_card_templates(store) -> bool:
    wrote = store.seed(TEMPLATE_MASTER_KEY, [_stored_template(t) for t in JOB_CARD_TEMPLATES])
    if wrote:
        logger.info("job_card_templates_seeded count=%s", len(JOB_CARD_TEMPLATES))
    return wrote


def get_job_card_template(store, template_id: str) -> Dict[str, Any] | None:
    if not store.exists(TEMPLATE_MASTER_KEY):
        return _predefined(template_id)
    try:
        record = store.get_by_id(TEMPLATE_MASTER_KEY, template_id)
    except RecordNotFound:
        return _predefined(template_id)
    return _expand(store, record)


def active_job_card_templates(store) -> List[Dict[str, Any]]:
    if not store.exists(TEMPLATE_MASTER_KEY):
        seed_job_card_templates(store)
        return copy.deepcopy(JOB_CARD_TEMPLATES)
    return [
        {**record, "operations": parse_operations(record.get("operations"))}
        for record in store.get_all(TEMPLATE_MASTER_KEY)
        if record.get("status") == "Active"
    ]


def all_job_card_templates(store) -> List[Dict[str, Any]]:
    if not store.exists(TEMPLATE_MASTER_KEY):
        return copy.deepcopy(JOB_CARD_TEMPLATES)
    return [_expand(store, record) for record in store.get_all(TEMPLATE_MASTER_KEY)]
