"""Built-in master types for the shop-floor ERP."""

from __future__ import annotations

import logging

from master_registry import MasterRegistry, MasterType, make_fields

logger = logging.getLogger("masters")

STATUS_OPTIONS = ("Active", "Inactive")


def _auto(key: str, label: str = "ID") -> dict:
    return {"key": key, "label": label, "ui": "auto"}


def _status() -> dict:
    return {"key": "status", "label": "Status", "ui": "select", "options": STATUS_OPTIONS}


def _text(key: str, label: str, required: bool = False) -> dict:
    return {"key": key, "label": label, "ui": "text", "required": required}


def _number(key: str, label: str, required: bool = False) -> dict:
    return {"key": key, "label": label, "ui": "number", "type": "number", "required": required}


def _description() -> dict:
    return {"key": "description", "label": "Description", "ui": "textarea"}


def _simple(key: str, label: str, group: str, name_label: str, extra: list[dict] | None = None) -> MasterType:
    name_field = f"{key}_name"
    fields = [_auto(f"{key}_id"), _text(name_field, name_label, required=True)]
    fields.extend(extra or [])
    fields.append(_status())
    return MasterType(
        key=key,
        label=label,
        fields=make_fields(fields),
        id_field=f"{key}_id",
        name_field=name_field,
        group=group,
    )


HR_MASTERS = [
    MasterType(
        key="designation",
        label="Designation Master",
        group="hr",
        id_field="designation_id",
        name_field="designation_name",
        fields=make_fields(
            [
                _auto("designation_id"),
                _text("designation_name", "Designation Name", required=True),
                _text("designation_code", "Designation Code"),
                _text("department", "Department"),
                {"key": "grade_id", "label": "Grade", "ui": "select", "relation": "grade"},
                _description(),
                _status(),
            ]
        ),
    ),
    MasterType(
        key="grade",
        label="Grade / Level Master",
        group="hr",
        id_field="grade_id",
        name_field="grade_name",
        fields=make_fields(
            [
                _auto("grade_id"),
                _text("grade_name", "Grade Name", required=True),
                _text("grade_code", "Grade Code"),
                _number("min_salary", "Minimum Salary"),
                _number("max_salary", "Maximum Salary"),
                _description(),
                _status(),
            ]
        ),
    ),
    MasterType(
        key="leave_type",
        label="Leave Type Master",
        group="hr",
        id_field="leave_type_id",
        name_field="leave_type_name",
        fields=make_fields(
            [
                _auto("leave_type_id"),
                _text("leave_type_name", "Leave Type", required=True),
                _text("leave_code", "Leave Code"),
                _number("days_per_year", "Days per Year"),
                {"key": "carry_forward", "label": "Carry Forward", "ui": "checkbox", "type": "boolean"},
                {"key": "encashable", "label": "Encashable", "ui": "checkbox", "type": "boolean"},
                _description(),
                _status(),
            ]
        ),
    ),
    MasterType(
        key="shift",
        label="Shift Master",
        group="hr",
        id_field="shift_id",
        name_field="shift_name",
        fields=make_fields(
            [
                _auto("shift_id"),
                _text("shift_name", "Shift Name", required=True),
                _text("shift_code", "Shift Code"),
                {"key": "start_time", "label": "Start Time", "ui": "time", "required": True},
                {"key": "end_time", "label": "End Time", "ui": "time", "required": True},
                _number("break_minutes", "Break (minutes)"),
                {"key": "is_night_shift", "label": "Night Shift", "ui": "checkbox", "type": "boolean"},
                _status(),
            ]
        ),
    ),
    MasterType(
        key="skill_matrix",
        label="Skill Matrix Master",
        group="hr",
        id_field="skill_matrix_id",
        name_field="skill_name",
        fields=make_fields(
            [
                _auto("skill_matrix_id"),
                _text("skill_name", "Skill Name", required=True),
                {
                    "key": "skill_category",
                    "label": "Skill Category",
                    "ui": "select",
                    "options": ("Technical", "Machine Operation", "Quality", "Safety", "Soft Skill"),
                },
                {
                    "key": "proficiency_level",
                    "label": "Proficiency Level",
                    "ui": "select",
                    "options": ("Beginner", "Intermediate", "Advanced", "Expert"),
                },
                {"key": "designation_id", "label": "Designation", "ui": "select", "relation": "designation"},
                _description(),
                _status(),
            ]
        ),
    ),
    MasterType(
        key="salary_structure",
        label="Salary Structure Master",
        group="hr",
        id_field="salary_structure_id",
        name_field="structure_name",
        fields=make_fields(
            [
                _auto("salary_structure_id"),
                _text("structure_name", "Structure Name", required=True),
                {"key": "grade_id", "label": "Grade", "ui": "select", "relation": "grade"},
                _number("basic_pay", "Basic Pay", required=True),
                _number("hra", "HRA"),
                _number("da", "DA"),
                _number("other_allowances", "Other Allowances"),
                {"key": "effective_from", "label": "Effective From", "ui": "date", "type": "date"},
                _status(),
            ]
        ),
    ),
    MasterType(
        key="holiday_list",
        label="Holiday List Master",
        group="hr",
        id_field="holiday_list_id",
        name_field="holiday_name",
        fields=make_fields(
            [
                _auto("holiday_list_id"),
                _text("holiday_name", "Holiday Name", required=True),
                {"key": "holiday_date", "label": "Holiday Date", "ui": "date", "type": "date", "required": True},
                {
                    "key": "holiday_type",
                    "label": "Holiday Type",
                    "ui": "select",
                    "options": ("National", "Festival", "Company", "Optional"),
                },
                {"key": "is_optional", "label": "Optional Holiday", "ui": "checkbox", "type": "boolean"},
                _description(),
            ]
        ),
    ),
]

CUSTOMER_MASTERS = [
    MasterType(
        key="company",
        label="Company Master",
        group="customer",
        id_field="company_id",
        name_field="company_name",
        fields=make_fields(
            [
                _auto("company_id"),
                _text("company_name", "Company Name", required=True),
                _text("company_code", "Company Code"),
                _text("gst_number", "GST Number"),
                {"key": "email", "label": "Email", "ui": "email"},
                _text("phone", "Phone"),
                {"key": "website", "label": "Website", "ui": "url"},
                {"key": "address", "label": "Address", "ui": "textarea"},
                {"key": "logo", "label": "Logo", "ui": "image"},
                _status(),
            ]
        ),
    ),
    MasterType(
        key="branch",
        label="Branch Master",
        group="customer",
        id_field="branch_id",
        name_field="branch_name",
        fields=make_fields(
            [
                _auto("branch_id"),
                _text("branch_name", "Branch Name", required=True),
                _text("branch_code", "Branch Code"),
                {"key": "company_id", "label": "Company", "ui": "select", "relation": "company", "required": True},
                _text("city", "City"),
                {"key": "state", "label": "State", "ui": "select", "relation": "state_master"},
                _text("pin_code", "PIN Code"),
                {"key": "address", "label": "Address", "ui": "textarea"},
                _status(),
            ]
        ),
    ),
    MasterType(
        key="customer_type",
        label="Customer Type Master",
        group="customer",
        id_field="customer_type_id",
        name_field="customer_type",
        fields=make_fields(
            [
                _auto("customer_type_id"),
                _text("customer_type", "Customer Type", required=True),
                _description(),
                _status(),
            ]
        ),
    ),
    _simple("industry", "Industry Master", "customer", "Industry Name", [_description()]),
    _simple("territory", "Territory Master", "customer", "Territory Name", [_text("region", "Region")]),
    _simple("market_segment", "Market Segment Master", "customer", "Market Segment", [_description()]),
    MasterType(
        key="status_master",
        label="Status Master",
        group="customer",
        id_field="status_master_id",
        name_field="status_master_name",
        fields=make_fields(
            [
                _auto("status_master_id"),
                _text("status_master_name", "Status Name", required=True),
                {
                    "key": "status_category",
                    "label": "Applies To",
                    "ui": "select",
                    "options": ("Inquiry", "Quotation", "Order", "Customer"),
                },
                _number("sort_order", "Sort Order"),
                {"key": "is_default", "label": "Default Status", "ui": "checkbox", "type": "boolean"},
            ]
        ),
    ),
    _simple(
        "state_master",
        "State Master",
        "customer",
        "State Name",
        [_text("state_code", "State Code"), _text("gst_state_code", "GST State Code"), _text("country", "Country")],
    ),
    _simple("salutation", "Salutation Master", "customer", "Salutation"),
]

JOB_CARD_MASTERS = [
    MasterType(
        key="job_card_template",
        label="Job Card Template Master",
        group="job_card",
        id_field="template_id",
        name_field="template_name",
        list_columns=("template_name", "template_code", "status"),
        fields=make_fields(
            [
                _auto("template_id", "Template ID"),
                _text("template_name", "Template Name", required=True),
                _text("template_code", "Template Code", required=True),
                _description(),
                {"key": "operations", "label": "Operations", "ui": "operations_table", "type": "json"},
                _status(),
            ]
        ),
    ),
]

PLANT_MASTERS = [
    MasterType(
        key="machine",
        label="Machine Master",
        group="plant",
        id_field="machine_id",
        name_field="machine_name",
        fields=make_fields(
            [
                _auto("machine_id"),
                _text("machine_name", "Machine Name", required=True),
                _text("machine_code", "Machine Code"),
                {
                    "key": "machine_type",
                    "label": "Machine Type",
                    "ui": "select",
                    "options": ("CNC", "VMC", "Lathe", "Grinding", "Wire Cut", "Drilling", "Other"),
                },
                _text("make", "Make"),
                _text("model", "Model"),
                {"key": "installation_date", "label": "Installation Date", "ui": "date", "type": "date"},
                {"key": "last_maintenance", "label": "Last Maintenance", "ui": "datetime", "type": "datetime"},
                {"key": "shift_id", "label": "Default Shift", "ui": "select", "relation": "shift"},
                {"key": "is_active", "label": "In Service", "ui": "checkbox", "type": "boolean"},
                {"key": "photo", "label": "Photo", "ui": "image"},
                {"key": "remarks", "label": "Remarks", "ui": "textarea"},
            ]
        ),
    ),
]

GROUP_LABELS = {
    "hr": "HR & Payroll Masters",
    "customer": "Customer Masters",
    "job_card": "Job Card Masters",
    "plant": "Plant Masters",
}


def build_registry() -> MasterRegistry:
    registry = MasterRegistry()
    for master_type in HR_MASTERS + CUSTOMER_MASTERS + JOB_CARD_MASTERS + PLANT_MASTERS:
        result = registry.register(master_type)
        if not result["ok"]:
            raise ValueError(f"invalid master type {master_type.key}: {result['errors']}")
        for warning in result["warnings"]:
            logger.warning("master_schema_warning master_key=%s code=%s", master_type.key, warning["code"])
    return registry
