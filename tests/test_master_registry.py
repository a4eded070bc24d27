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
from master_registry import FieldSchema, MasterRegistry, MasterType, make_fields


def _master(**overrides) -> MasterType:
    base = dict(
        key="grade",
        label="Grade Master",
        fields=make_fields(
            [
                {"key": "grade_id", "label": "ID", "ui": "auto"},
                {"key": "grade_name", "label": "Grade Name", "required": True},
            ]
        ),
        id_field="grade_id",
        name_field="grade_name",
    )
    base.update(overrides)
    return MasterType(**base)


class TestFieldSchema(unittest.TestCase):
    def test_defaults(self) -> None:
        field = FieldSchema.from_dict({"key": "remarks"})
        self.assertEqual(field.label, "remarks")
        self.assertEqual(field.ui, "text")
        self.assertEqual(field.type, "string")
        self.assertFalse(field.required)
        self.assertTrue(field.editable)
        self.assertTrue(field.listed)

    def test_auto_and_image_flags(self) -> None:
        auto = FieldSchema(key="x_id", label="ID", ui="auto")
        image = FieldSchema(key="logo", label="Logo", ui="image")
        self.assertFalse(auto.editable)
        self.assertFalse(auto.listed)
        self.assertTrue(image.editable)
        self.assertFalse(image.listed)


class TestMasterRegistry(unittest.TestCase):
    def test_register_and_lookup(self) -> None:
        registry = MasterRegistry()
        result = registry.register(_master())
        self.assertTrue(result["ok"])
        self.assertEqual(registry.get("grade").label, "Grade Master")
        self.assertEqual(registry.id_fields(), {"grade": "grade_id"})
        self.assertEqual(registry.name_field("grade"), "grade_name")

    def test_duplicate_registration_rejected(self) -> None:
        registry = MasterRegistry()
        registry.register(_master())
        result = registry.register(_master())
        self.assertFalse(result["ok"])
        self.assertEqual(result["errors"][0]["code"], "MASTER_ALREADY_REGISTERED")

    def test_duplicate_field_keys_rejected(self) -> None:
        fields = make_fields([{"key": "a", "label": "A"}, {"key": "a", "label": "A again"}])
        result = MasterRegistry().register(_master(fields=fields, id_field=None, name_field=None))
        self.assertFalse(result["ok"])
        self.assertIn("FIELD_KEY_DUPLICATE", [e["code"] for e in result["errors"]])

    def test_unknown_ui_rejected(self) -> None:
        fields = make_fields([{"key": "a", "label": "A", "ui": "slider"}])
        result = MasterRegistry().register(_master(fields=fields, id_field=None, name_field=None))
        self.assertIn("FIELD_UI_UNKNOWN", [e["code"] for e in result["errors"]])

    def test_list_columns_must_exist(self) -> None:
        result = MasterRegistry().register(_master(list_columns=("grade_name", "nope")))
        self.assertFalse(result["ok"])
        self.assertEqual(result["errors"][0]["path"], "list_columns[1]")

    def test_select_without_choices_warns(self) -> None:
        fields = make_fields([{"key": "kind", "label": "Kind", "ui": "select"}])
        result = MasterRegistry().register(_master(fields=fields, id_field=None, name_field=None))
        self.assertTrue(result["ok"])
        self.assertEqual(result["warnings"][0]["code"], "SELECT_WITHOUT_CHOICES")

    def test_record_label_strips_master_suffix(self) -> None:
        self.assertEqual(_master().record_label, "Grade")
        self.assertEqual(_master(label="Status").record_label, "Status")


class TestCatalog(unittest.TestCase):
    def setUp(self) -> None:
        self.registry = build_registry()

    def test_groups(self) -> None:
        self.assertEqual(self.registry.groups(), ["hr", "customer", "job_card", "plant"])

    def test_hr_masters(self) -> None:
        keys = [m.key for m in self.registry.list("hr")]
        self.assertEqual(
            keys,
            ["designation", "grade", "leave_type", "shift", "skill_matrix", "salary_structure", "holiday_list"],
        )

    def test_customer_masters(self) -> None:
        keys = [m.key for m in self.registry.list("customer")]
        for key in ("company", "branch", "customer_type", "industry", "territory", "market_segment", "status_master", "state_master", "salutation"):
            self.assertIn(key, keys)

    def test_job_card_template_columns(self) -> None:
        master = self.registry.get("job_card_template")
        self.assertEqual(master.list_columns, ("template_name", "template_code", "status"))
        self.assertEqual(master.primary_id_field, "template_id")
        self.assertEqual(master.field("operations").ui, "operations_table")

    def test_relations_point_at_registered_masters(self) -> None:
        for master in self.registry.list():
            for field in master.fields:
                if field.relation:
                    self.assertIsNotNone(self.registry.get(field.relation), f"{master.key}.{field.key}")

    def test_every_master_declares_auto_id(self) -> None:
        for master in self.registry.list():
            self.assertEqual(master.field(master.primary_id_field).ui, "auto", master.key)

    def test_snapshot_is_plain_data(self) -> None:
        snapshot = self.registry.snapshot()
        designation = next(item for item in snapshot if item["key"] == "designation")
        self.assertEqual(designation["id_field"], "designation_id")
        self.assertIsInstance(designation["fields"], list)


if __name__ == "__main__":
    unittest.main()
