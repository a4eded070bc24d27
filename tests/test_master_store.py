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

from app.master_catalog import build_registry
from app.stores import MemoryKeyValueMedium
from master_store import MasterRecordStore, RecordNotFound, RecordSerializationError


class _BrokenMedium:
    def get(self, key):
        raise OSError("medium offline")

    def set(self, key, value):
        raise OSError("medium offline")

    def delete(self, key):
        raise OSError("medium offline")

    def keys(self, prefix=""):
        return []


class TestMasterRecordStore(unittest.TestCase):
    def setUp(self) -> None:
        self.medium = MemoryKeyValueMedium()
        self.store = MasterRecordStore(self.medium)

    def test_empty_namespace_reads_as_empty_list(self) -> None:
        self.assertEqual(self.store.get_all("designation"), [])

    def test_create_assigns_namespace_id(self) -> None:
        created = self.store.create("designation", {"name": "Supervisor"})
        records = self.store.get_all("designation")
        self.assertEqual(len(records), 1)
        self.assertTrue(records[0]["designation_id"])
        self.assertTrue(records[0]["designation_id"].startswith("designation_"))
        self.assertEqual(records[0]["name"], "Supervisor")
        self.assertEqual(created, records[0])

    def test_create_then_get_by_id(self) -> None:
        created = self.store.create("grade", {"grade_name": "G1"})
        fetched = self.store.get_by_id("grade", created["grade_id"])
        self.assertEqual(fetched, {"grade_name": "G1", "grade_id": created["grade_id"]})

    def test_create_keeps_supplied_identifier(self) -> None:
        self.store.create("grade", {"id": "g-1", "grade_name": "G1"})
        stored = self.store.get_all("grade")[0]
        self.assertEqual(stored["id"], "g-1")
        self.assertNotIn("grade_id", stored)

    def test_create_does_not_mutate_input(self) -> None:
        data = {"grade_name": "G1"}
        self.store.create("grade", data)
        self.assertEqual(data, {"grade_name": "G1"})

    def test_declared_id_field_used_for_new_records(self) -> None:
        store = MasterRecordStore(self.medium, id_fields={"job_card_template": "template_id"})
        created = store.create("job_card_template", {"template_name": "Custom"})
        self.assertIn("template_id", created)
        self.assertNotIn("job_card_template_id", created)
        self.assertEqual(store.get_by_id("job_card_template", created["template_id"])["template_name"], "Custom")

    def test_update_merges_fields(self) -> None:
        created = self.store.create("shift", {"shift_name": "Day", "start_time": "08:00"})
        updated = self.store.update("shift", created["shift_id"], {"start_time": "09:00", "break_minutes": 30})
        self.assertEqual(updated["shift_name"], "Day")
        self.assertEqual(updated["start_time"], "09:00")
        self.assertEqual(updated["break_minutes"], 30)
        self.assertEqual(self.store.get_by_id("shift", created["shift_id"]), updated)

    def test_update_missing_raises_and_leaves_store_unchanged(self) -> None:
        self.store.create("shift", {"shift_name": "Day"})
        before = self.medium.get("master_data_shift")
        with self.assertRaises(RecordNotFound) as ctx:
            self.store.update("shift", "missing-id", {"shift_name": "Night"})
        self.assertEqual(ctx.exception.record_id, "missing-id")
        self.assertEqual(str(ctx.exception), "Record not found with id: missing-id")
        self.assertEqual(self.medium.get("master_data_shift"), before)

    def test_delete_removes_record(self) -> None:
        first = self.store.create("salutation", {"salutation_name": "Mr."})
        self.store.create("salutation", {"salutation_name": "Ms."})
        self.store.delete("salutation", first["salutation_id"])
        records = self.store.get_all("salutation")
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0]["salutation_name"], "Ms.")
        with self.assertRaises(RecordNotFound):
            self.store.get_by_id("salutation", first["salutation_id"])

    def test_delete_twice_raises(self) -> None:
        created = self.store.create("industry", {"industry_name": "Packaging"})
        self.store.delete("industry", created["industry_id"])
        with self.assertRaises(RecordNotFound):
            self.store.delete("industry", created["industry_id"])

    def test_delete_removes_only_first_duplicate(self) -> None:
        self.medium.set("master_data_territory", json.dumps([{"id": "t"}, {"id": "t", "n": 2}]))
        self.store.delete("territory", "t")
        self.assertEqual(self.store.get_all("territory"), [{"id": "t", "n": 2}])

    def test_get_all_is_stable_without_mutation(self) -> None:
        self.store.create("grade", {"grade_name": "G1"})
        self.store.create("grade", {"grade_name": "G2"})
        self.assertEqual(self.store.get_all("grade"), self.store.get_all("grade"))

    def test_round_trip_through_medium(self) -> None:
        for count in (0, 1, 5):
            key = f"round_{count}"
            for idx in range(count):
                self.store.create(key, {"seq": idx, "label": f"r{idx}"})
            reread = MasterRecordStore(self.medium).get_all(key)
            self.assertEqual([r["seq"] for r in reread], list(range(count)))

    def test_returned_records_are_copies(self) -> None:
        created = self.store.create("grade", {"grade_name": "G1", "tags": ["a"]})
        created["tags"].append("b")
        fetched = self.store.get_all("grade")[0]
        self.assertEqual(fetched["tags"], ["a"])

    def test_identifier_from_generic_id_field(self) -> None:
        self.medium.set("master_data_branch", json.dumps([{"id": "b-1", "branch_name": "Pune"}]))
        self.assertEqual(self.store.get_by_id("branch", "b-1")["branch_name"], "Pune")

    def test_identifier_camel_case_fallback(self) -> None:
        self.medium.set("master_data_branch", json.dumps([{"branchId": "b-9"}]))
        self.assertEqual(self.store.get_by_id("branch", "b-9"), {"branchId": "b-9"})

    def test_conflicting_id_fields_match_either_value(self) -> None:
        self.medium.set("master_data_grade", json.dumps([{"id": "a", "grade_id": "b"}]))
        self.assertEqual(self.store.get_by_id("grade", "a")["grade_id"], "b")
        self.assertEqual(self.store.get_by_id("grade", "b")["id"], "a")

    def test_catalog_id_fields_still_match_generic_id(self) -> None:
        store = MasterRecordStore(self.medium, id_fields=build_registry().id_fields())
        self.medium.set("master_data_grade", json.dumps([{"id": "a", "grade_id": "b", "grade_name": "G1"}]))
        self.assertEqual(store.get_by_id("grade", "a")["grade_name"], "G1")
        self.assertEqual(store.get_by_id("grade", "b")["grade_name"], "G1")
        updated = store.update("grade", "a", {"grade_code": "X"})
        self.assertEqual(updated["grade_code"], "X")
        store.delete("grade", "a")
        self.assertEqual(store.get_all("grade"), [])

    def test_lookup_by_any_field_keeps_first_match(self) -> None:
        self.medium.set("master_data_shift", json.dumps([{"shift_id": "s1", "n": 1}, {"id": "s1", "n": 2}]))
        self.assertEqual(self.store.get_by_id("shift", "s1")["n"], 1)
        self.store.delete("shift", "s1")
        self.assertEqual(self.store.get_all("shift"), [{"id": "s1", "n": 2}])

    def test_numeric_identifier_matches_string(self) -> None:
        self.medium.set("master_data_grade", json.dumps([{"grade_id": 42}]))
        self.assertEqual(self.store.get_by_id("grade", "42"), {"grade_id": 42})

    def test_unparseable_payload_reads_as_empty(self) -> None:
        self.medium.set("master_data_grade", "{broken")
        with self.assertLogs("masters.store", level="WARNING"):
            self.assertEqual(self.store.get_all("grade"), [])

    def test_non_list_payload_reads_as_empty(self) -> None:
        self.medium.set("master_data_grade", json.dumps({"grade_id": "g"}))
        self.assertEqual(self.store.get_all("grade"), [])

    def test_unserializable_record_rejected_before_write(self) -> None:
        self.store.create("grade", {"grade_name": "G1"})
        before = self.medium.get("master_data_grade")
        with self.assertRaises(RecordSerializationError) as ctx:
            self.store.create("grade", {"grade_name": "G2", "bad": {1, 2}})
        self.assertEqual(ctx.exception.master_key, "grade")
        self.assertEqual(self.medium.get("master_data_grade"), before)

    def test_update_with_unserializable_value_rejected(self) -> None:
        created = self.store.create("grade", {"grade_name": "G1"})
        with self.assertRaises(RecordSerializationError):
            self.store.update("grade", created["grade_id"], {"min_salary": float("nan")})
        self.assertNotIn("min_salary", self.store.get_by_id("grade", created["grade_id"]))

    def test_stored_payload_is_canonical_json(self) -> None:
        self.store.create("grade", {"id": "g", "z": 1, "a": 2})
        self.assertEqual(self.medium.get("master_data_grade"), '[{"a":2,"id":"g","z":1}]')

    def test_get_options_swallows_failures(self) -> None:
        store = MasterRecordStore(_BrokenMedium())
        with self.assertLogs("masters.store", level="ERROR"):
            self.assertEqual(store.get_options("company"), [])

    def test_get_options_returns_records(self) -> None:
        self.store.create("company", {"company_name": "Acme"})
        options = self.store.get_options("company")
        self.assertEqual([o["company_name"] for o in options], ["Acme"])

    def test_seed_writes_only_once(self) -> None:
        self.assertTrue(self.store.seed("grade", [{"grade_id": "g1"}]))
        self.assertFalse(self.store.seed("grade", [{"grade_id": "g2"}]))
        self.assertEqual(self.store.get_all("grade"), [{"grade_id": "g1"}])

    def test_namespaces_lists_stored_keys(self) -> None:
        self.store.create("grade", {"grade_name": "G1"})
        self.store.create("shift", {"shift_name": "Day"})
        self.medium.set("unrelated", "x")
        self.assertEqual(self.store.namespaces(), ["grade", "shift"])


if __name__ == "__main__":
    unittest.main()
