import json
import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from app.job_cards import (
    JOB_CARD_TEMPLATES,
    active_job_card_templates,
    get_job_card_template,
    operation_key_from_label,
    operations_from_form,
    parse_operations,
    seed_job_card_templates,
    serialize_operations,
)
from app.stores import MemoryKeyValueMedium
from master_store import MasterRecordStore


def _store() -> MasterRecordStore:
    return MasterRecordStore(MemoryKeyValueMedium(), id_fields={"job_card_template": "template_id"})


class TestPredefinedTemplates(unittest.TestCase):
    def test_five_templates(self) -> None:
        codes = [t["template_code"] for t in JOB_CARD_TEMPLATES]
        self.assertEqual(codes, ["CJC", "DBDC", "DBDS", "SBD", "CSD"])

    def test_operation_counts(self) -> None:
        counts = {t["template_code"]: len(t["operations"]) for t in JOB_CARD_TEMPLATES}
        self.assertEqual(counts, {"CJC": 14, "DBDC": 15, "DBDS": 15, "SBD": 14, "CSD": 10})

    def test_keys_unique_within_template(self) -> None:
        for template in JOB_CARD_TEMPLATES:
            keys = [op["key"] for op in template["operations"]]
            self.assertEqual(len(keys), len(set(keys)), template["template_id"])


class TestOperationsCodec(unittest.TestCase):
    def test_key_from_label(self) -> None:
        self.assertEqual(operation_key_from_label("SHRINK FIT (SHAFT)"), "shrink_fit_shaft")
        self.assertEqual(operation_key_from_label("  VMC Side 1 "), "vmc_side_1")
        self.assertEqual(operation_key_from_label("***"), "")

    def test_parse_tolerates_bad_values(self) -> None:
        self.assertEqual(parse_operations(None), [])
        self.assertEqual(parse_operations(""), [])
        self.assertEqual(parse_operations("nope"), [])
        self.assertEqual(parse_operations('{"key": "a"}'), [])
        self.assertEqual(parse_operations([{"key": "a"}, "x"]), [{"key": "a"}])

    def test_serialize_normalizes_types(self) -> None:
        text = serialize_operations([{"key": "a", "label": "A", "type": "dropdown"}])
        self.assertEqual(json.loads(text), [{"key": "a", "label": "A", "type": "text"}])

    def test_form_rows_replace_placeholder_keys(self) -> None:
        ops = operations_from_form(["Oiling", "Packing"], ["text", "textarea"], ["operation_1700000000", "pk"])
        self.assertEqual(ops[0]["key"], "oiling")
        self.assertEqual(ops[1], {"key": "pk", "label": "Packing", "type": "textarea"})


class TestTemplateStorage(unittest.TestCase):
    def test_seed_stores_operations_as_json_strings(self) -> None:
        store = _store()
        self.assertTrue(seed_job_card_templates(store))
        stored = store.get_all("job_card_template")
        self.assertEqual(len(stored), 5)
        self.assertIsInstance(stored[0]["operations"], str)
        self.assertEqual(len(json.loads(stored[0]["operations"])), 14)

    def test_seed_skips_existing_namespace(self) -> None:
        store = _store()
        store.create("job_card_template", {"template_name": "Mine", "status": "Active"})
        self.assertFalse(seed_job_card_templates(store))
        self.assertEqual(len(store.get_all("job_card_template")), 1)

    def test_get_template_without_storage_uses_predefined(self) -> None:
        template = get_job_card_template(_store(), "single_body_die")
        self.assertEqual(template["template_code"], "SBD")
        self.assertIsNone(get_job_card_template(_store(), "nope"))

    def test_get_stored_template_parses_operations(self) -> None:
        store = _store()
        created = store.create(
            "job_card_template",
            {
                "template_name": "Custom",
                "template_code": "CUS",
                "operations": serialize_operations([{"key": "lathe", "label": "LATHE", "type": "text"}]),
            },
        )
        template = get_job_card_template(store, created["template_id"])
        self.assertEqual(template["operations"], [{"key": "lathe", "label": "LATHE", "type": "text"}])
        self.assertEqual(template["status"], "Active")
        self.assertEqual(template["description"], "")

    def test_get_stored_template_by_any_id_field(self) -> None:
        store = _store()
        store.seed(
            "job_card_template",
            [
                {"job_card_templateId": "legacy_tpl", "template_name": "Legacy", "operations": "[]"},
                {"id": "old", "template_id": "new_tpl", "template_name": "Renamed"},
            ],
        )
        legacy = get_job_card_template(store, "legacy_tpl")
        self.assertEqual(legacy["template_name"], "Legacy")
        self.assertEqual(legacy["template_id"], "legacy_tpl")
        self.assertEqual(get_job_card_template(store, "old")["template_id"], "new_tpl")

    def test_get_falls_back_to_predefined_when_not_stored(self) -> None:
        store = _store()
        store.create("job_card_template", {"template_name": "Custom"})
        self.assertEqual(get_job_card_template(store, "coller_single_die")["template_code"], "CSD")

    def test_active_templates_seed_when_empty(self) -> None:
        store = _store()
        active = active_job_card_templates(store)
        self.assertEqual(len(active), 5)
        self.assertTrue(store.exists("job_card_template"))

    def test_active_templates_filter_status(self) -> None:
        store = _store()
        seed_job_card_templates(store)
        store.update("job_card_template", "common_job_card", {"status": "Inactive"})
        active = active_job_card_templates(store)
        self.assertEqual([t["template_code"] for t in active], ["DBDC", "DBDS", "SBD", "CSD"])
        self.assertIsInstance(active[0]["operations"], list)


if __name__ == "__main__":
    unittest.main()
