"""FastAPI app for the shop-floor master-data layer."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from urllib.parse import quote, urlencode

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


_load_env_file(ROOT / "app" / ".env")

import time
import logging

from app.db import get_db_ms
from app.diagnostics import build_diagnostics
from app.job_cards import active_job_card_templates, all_job_card_templates, get_job_card_template, seed_job_card_templates
from app.master_catalog import GROUP_LABELS, build_registry
from app.master_views import (
    display_columns,
    filter_records,
    relation_choices,
    render_detail,
    render_form,
    render_table,
    read_form,
    sort_records,
)
from app.records_validation import validate_submission
from app.stores import FileKeyValueMedium, MemoryKeyValueMedium
from app.stores_db import DbKeyValueMedium
from app.template_render import render_page
from master_registry import MasterType
from master_screen import LISTING, MasterScreen
from master_store import MasterRecordStore, RecordNotFound, RecordSerializationError
from masterkit.codec import records_digest


app = FastAPI(title="Shopfloor Masters")
logger = logging.getLogger("masters")
logging.basicConfig(level=logging.INFO)

USE_DB = os.getenv("USE_DB", "").strip() == "1"
MASTERS_DATA_FILE = os.getenv("MASTERS_DATA_FILE", "").strip()
SEED_TEMPLATES = os.getenv("MASTERS_SEED_TEMPLATES", "1").strip().lower() not in ("0", "false", "no")
APP_ENV = os.getenv("APP_ENV", os.getenv("ENV", "dev")).strip().lower() or "dev"
IS_DEV = APP_ENV == "dev"
REQ_SLOW_MS = float(os.getenv("MASTERS_REQ_SLOW_MS", "250"))


def _build_medium():
    if USE_DB:
        return DbKeyValueMedium()
    if MASTERS_DATA_FILE:
        return FileKeyValueMedium(MASTERS_DATA_FILE)
    return MemoryKeyValueMedium()


registry = build_registry()
store = MasterRecordStore(_build_medium(), id_fields=registry.id_fields())

if SEED_TEMPLATES:
    try:
        seed_job_card_templates(store)
    except Exception as exc:
        logger.warning("job_card_seed_failed error=%s", exc)


@app.middleware("http")
async def request_timing_middleware(request: Request, call_next):
    start = time.perf_counter()
    db_start = get_db_ms()
    response = await call_next(request)
    total_ms = (time.perf_counter() - start) * 1000
    db_ms = get_db_ms() - db_start
    logger.info(
        "%s %s %s total_ms=%.1f db_ms=%.1f",
        request.method,
        request.url.path,
        response.status_code,
        total_ms,
        db_ms,
    )
    if total_ms >= REQ_SLOW_MS:
        logger.warning(
            "slow_request method=%s path=%s total_ms=%.1f db_ms=%.1f status=%s",
            request.method,
            request.url.path,
            total_ms,
            db_ms,
            response.status_code,
        )
    if IS_DEV:
        response.headers["X-Req-MS"] = f"{total_ms:.1f}"
        response.headers["X-DB-MS"] = f"{db_ms:.1f}"
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error path=%s", request.url.path)
    return _error_response("INTERNAL_ERROR", "Unexpected server error", detail={"error": str(exc)}, status=500)


def _error_response(code: str, message: str, path: str | None = None, detail: dict | None = None, status: int = 400) -> JSONResponse:
    body = {
        "ok": False,
        "errors": [{"code": code, "message": message, "path": path, "detail": detail}],
        "warnings": [],
    }
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _ok_response(payload: dict, warnings: list | None = None, status: int = 200) -> JSONResponse:
    body = {"ok": True, **payload, "errors": [], "warnings": warnings or []}
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _validation_response(errors: list, warnings: list, status: int = 400) -> JSONResponse:
    body = {
        "ok": False,
        "errors": errors,
        "warnings": warnings,
        "data": None,
    }
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _log_validation_errors(master_key: str, payload: dict | None, errors: list[dict]) -> None:
    payload = payload if isinstance(payload, dict) else {}
    logger.warning(
        "master_validation_failed master_key=%s missing_required=%s codes=%s payload_keys=%s",
        master_key,
        [err.get("path") for err in errors if err.get("code") == "REQUIRED_FIELD"],
        sorted({err.get("code") for err in errors}),
        sorted(payload.keys()),
    )


async def _safe_json(request: Request) -> dict:
    try:
        return await request.json()
    except Exception:
        return {}


def _master_not_found(master_key: str) -> JSONResponse:
    return _error_response("MASTER_NOT_FOUND", f"Unknown master: {master_key}", "master_key", status=404)


def _record_not_found(exc: RecordNotFound) -> JSONResponse:
    return _error_response("RECORD_NOT_FOUND", exc.message, "record_id", detail={"record_id": exc.record_id}, status=404)


def _body_record(body) -> dict:
    if isinstance(body, dict) and isinstance(body.get("record"), dict):
        return body["record"]
    return body


def _choices_for(relation_key: str) -> list[dict]:
    return relation_choices(registry, store, relation_key)


@app.get("/health")
async def health() -> dict:
    return {"ok": True}


# ---- JSON API ----


@app.get("/masters")
async def list_masters(group: str | None = None) -> dict:
    masters = []
    for master in registry.list(group):
        item = master.to_dict()
        item["count"] = len(store.get_all(master.key))
        masters.append(item)
    groups = [{"key": key, "label": GROUP_LABELS.get(key, key)} for key in registry.groups()]
    return _ok_response({"groups": groups, "masters": masters})


@app.get("/masters/{master_key}/schema")
async def get_master_schema(master_key: str) -> dict:
    master = registry.get(master_key)
    if master is None:
        return _master_not_found(master_key)
    return _ok_response({"master": master.to_dict()})


@app.get("/masters/{master_key}/records")
async def list_master_records(
    master_key: str,
    q: str | None = None,
    sort: str | None = None,
    direction: str = "asc",
) -> dict:
    master = registry.get(master_key)
    if master is None:
        return _master_not_found(master_key)
    records = store.get_all(master_key)
    columns = display_columns(master.fields, master.list_columns)
    visible = sort_records(filter_records(records, columns, q), sort, "desc" if direction == "desc" else "asc")
    return _ok_response(
        {
            "records": visible,
            "total": len(records),
            "shown": len(visible),
            "digest": records_digest(records),
        }
    )


@app.get("/masters/{master_key}/records/{record_id}")
async def get_master_record(master_key: str, record_id: str) -> dict:
    if registry.get(master_key) is None:
        return _master_not_found(master_key)
    try:
        record = store.get_by_id(master_key, record_id)
    except RecordNotFound as exc:
        return _record_not_found(exc)
    return _ok_response({"record_id": record_id, "record": record})


@app.post("/masters/{master_key}/records")
async def create_master_record(request: Request, master_key: str) -> dict:
    master = registry.get(master_key)
    if master is None:
        return _master_not_found(master_key)
    data = _body_record(await _safe_json(request))
    errors, clean = validate_submission(master.fields, data, partial=False)
    if errors:
        _log_validation_errors(master_key, data, errors)
        return _validation_response(errors, [])
    try:
        record = store.create(master_key, clean)
    except RecordSerializationError as exc:
        return _error_response("RECORD_WRITE_FAILED", exc.message, "record", status=400)
    return _ok_response({"record_id": store.identifier_of(master_key, record), "record": record})


@app.put("/masters/{master_key}/records/{record_id}")
async def update_master_record(request: Request, master_key: str, record_id: str) -> dict:
    master = registry.get(master_key)
    if master is None:
        return _master_not_found(master_key)
    data = _body_record(await _safe_json(request))
    errors, clean = validate_submission(master.fields, data, partial=True)
    if errors:
        _log_validation_errors(master_key, data, errors)
        return _validation_response(errors, [])
    try:
        record = store.update(master_key, record_id, clean)
    except RecordNotFound as exc:
        return _record_not_found(exc)
    except RecordSerializationError as exc:
        return _error_response("RECORD_WRITE_FAILED", exc.message, "record", status=400)
    return _ok_response({"record_id": record_id, "record": record})


@app.delete("/masters/{master_key}/records/{record_id}")
async def delete_master_record(master_key: str, record_id: str) -> dict:
    if registry.get(master_key) is None:
        return _master_not_found(master_key)
    try:
        store.delete(master_key, record_id)
    except RecordNotFound as exc:
        return _record_not_found(exc)
    return _ok_response({"record_id": record_id})


@app.get("/masters/{master_key}/options")
async def get_master_options(master_key: str) -> dict:
    if registry.get(master_key) is None:
        return _master_not_found(master_key)
    return _ok_response({"options": _choices_for(master_key)})


@app.get("/job-card-templates")
async def list_job_card_templates(active: int = 1) -> dict:
    templates = active_job_card_templates(store) if active else all_job_card_templates(store)
    return _ok_response({"templates": templates})


@app.get("/job-card-templates/{template_id}")
async def get_job_card_template_route(template_id: str) -> dict:
    template = get_job_card_template(store, template_id)
    if template is None:
        return _error_response("TEMPLATE_NOT_FOUND", f"Job card template not found: {template_id}", "template_id", status=404)
    return _ok_response({"template": template})


@app.get("/ops/diagnostics")
async def ops_diagnostics() -> dict:
    return _ok_response(build_diagnostics(registry, store))


# ---- HTML screens ----


def _listing_url(master_key: str, **params) -> str:
    query = urlencode({k: v for k, v in params.items() if v})
    base = f"/ui/masters/{quote(master_key, safe='')}"
    return f"{base}?{query}" if query else base


def _record_url(master_key: str, record: dict, suffix: str = "") -> str | None:
    record_id = store.identifier_of(master_key, record)
    if record_id is None:
        return None
    return f"/ui/masters/{quote(master_key, safe='')}/records/{quote(record_id, safe='')}{suffix}"


def _nav() -> list[dict]:
    return [
        {
            "key": group,
            "label": GROUP_LABELS.get(group, group),
            "masters": [{"key": m.key, "label": m.label, "url": _listing_url(m.key)} for m in registry.list(group)],
        }
        for group in registry.groups()
    ]


def _page(name: str, context: dict, status: int = 200) -> HTMLResponse:
    return HTMLResponse(render_page(name, {"nav": _nav(), **context}), status_code=status)


def _unknown_master_page(master_key: str) -> HTMLResponse:
    return _page("index.html", {"groups": _nav(), "alert": f"Unknown master: {master_key}"}, status=404)


def _master_context(master: MasterType) -> dict:
    return {
        "key": master.key,
        "label": master.label,
        "record_label": master.record_label,
        "listing_url": _listing_url(master.key),
        "new_url": f"{_listing_url(master.key)}/new",
    }


def _render_listing(
    master: MasterType,
    q: str | None = None,
    sort: str | None = None,
    direction: str = "asc",
    flash: str | None = None,
    alert: str | None = None,
    records: list[dict] | None = None,
    status: int = 200,
) -> HTMLResponse:
    key = master.key
    if records is None:
        records = store.get_all(key)
    table = render_table(
        master.fields,
        records,
        on_view=lambda r: _record_url(key, r),
        on_edit=lambda r: _record_url(key, r, "/edit"),
        on_delete=lambda r: _record_url(key, r, "/delete"),
        search=q,
        sort_field=sort,
        sort_direction=direction,
        columns=master.list_columns,
    )
    for column in table["columns"]:
        next_direction = "desc" if column["sorted"] and table["sort_direction"] == "asc" else "asc"
        column["url"] = _listing_url(key, q=q, sort=column["key"], direction=next_direction)
    return _page(
        "listing.html",
        {"master": _master_context(master), "table": table, "flash": flash, "alert": alert},
        status=status,
    )


def _render_form(master: MasterType, screen: MasterScreen, values: dict | None, action_url: str, status: int = 200) -> HTMLResponse:
    form = render_form(master.fields, values, screen.errors, _choices_for, mode=screen.mode)
    return _page(
        "form.html",
        {"master": _master_context(master), "form": form, "action_url": action_url, "alert": screen.alert},
        status=status,
    )


@app.get("/ui/masters", response_class=HTMLResponse)
async def masters_index() -> HTMLResponse:
    groups = _nav()
    for group in groups:
        for item in group["masters"]:
            item["count"] = len(store.get_all(item["key"]))
    return _page("index.html", {"groups": groups})


@app.get("/ui/masters/{master_key}", response_class=HTMLResponse)
async def masters_listing(
    master_key: str,
    q: str | None = None,
    sort: str | None = None,
    direction: str = "asc",
    flash: str | None = None,
) -> HTMLResponse:
    master = registry.get(master_key)
    if master is None:
        return _unknown_master_page(master_key)
    return _render_listing(master, q=q, sort=sort, direction=direction, flash=flash)


@app.get("/ui/masters/{master_key}/new", response_class=HTMLResponse)
async def masters_new_form(master_key: str) -> HTMLResponse:
    master = registry.get(master_key)
    if master is None:
        return _unknown_master_page(master_key)
    screen = MasterScreen(store, master, validate_submission)
    screen.open_create()
    return _render_form(master, screen, None, f"{_listing_url(master_key)}/new")


@app.post("/ui/masters/{master_key}/new", response_class=HTMLResponse)
async def masters_create(request: Request, master_key: str):
    master = registry.get(master_key)
    if master is None:
        return _unknown_master_page(master_key)
    candidate = read_form(master.fields, await request.form())
    screen = MasterScreen(store, master, validate_submission)
    screen.open_create()
    screen.submit(candidate)
    if screen.state == LISTING:
        return RedirectResponse(_listing_url(master_key, flash=screen.flash), status_code=303)
    return _render_form(master, screen, candidate, f"{_listing_url(master_key)}/new", status=400)


@app.get("/ui/masters/{master_key}/records/{record_id}", response_class=HTMLResponse)
async def masters_detail(master_key: str, record_id: str) -> HTMLResponse:
    master = registry.get(master_key)
    if master is None:
        return _unknown_master_page(master_key)
    try:
        record = store.get_by_id(master_key, record_id)
    except RecordNotFound as exc:
        return _render_listing(master, alert=exc.message, status=404)
    screen = MasterScreen(store, master)
    screen.open_view(record)
    return _page(
        "detail.html",
        {
            "master": _master_context(master),
            "items": render_detail(master.fields, screen.record),
            "edit_url": _record_url(master_key, record, "/edit"),
            "delete_url": _record_url(master_key, record, "/delete"),
        },
    )


@app.get("/ui/masters/{master_key}/records/{record_id}/edit", response_class=HTMLResponse)
async def masters_edit_form(master_key: str, record_id: str) -> HTMLResponse:
    master = registry.get(master_key)
    if master is None:
        return _unknown_master_page(master_key)
    try:
        record = store.get_by_id(master_key, record_id)
    except RecordNotFound as exc:
        return _render_listing(master, alert=exc.message, status=404)
    screen = MasterScreen(store, master, validate_submission)
    screen.open_edit(record)
    return _render_form(master, screen, record, _record_url(master_key, record, "/edit"))


@app.post("/ui/masters/{master_key}/records/{record_id}/edit", response_class=HTMLResponse)
async def masters_update(request: Request, master_key: str, record_id: str):
    master = registry.get(master_key)
    if master is None:
        return _unknown_master_page(master_key)
    try:
        record = store.get_by_id(master_key, record_id)
    except RecordNotFound as exc:
        return _render_listing(master, alert=f"Failed to save record: {exc.message}", status=404)
    candidate = read_form(master.fields, await request.form())
    screen = MasterScreen(store, master, validate_submission)
    screen.open_edit(record)
    screen.submit(candidate)
    if screen.state == LISTING:
        return RedirectResponse(_listing_url(master_key, flash=screen.flash), status_code=303)
    return _render_form(master, screen, {**record, **candidate}, _record_url(master_key, record, "/edit"), status=400)


@app.get("/ui/masters/{master_key}/records/{record_id}/delete", response_class=HTMLResponse)
async def masters_delete_confirm(master_key: str, record_id: str) -> HTMLResponse:
    master = registry.get(master_key)
    if master is None:
        return _unknown_master_page(master_key)
    try:
        record = store.get_by_id(master_key, record_id)
    except RecordNotFound as exc:
        return _render_listing(master, alert=f"Failed to delete record: {exc.message}", status=404)
    screen = MasterScreen(store, master)
    question = screen.request_delete(record)
    return _page(
        "confirm_delete.html",
        {
            "master": _master_context(master),
            "question": question,
            "items": render_detail(master.fields, record),
            "action_url": _record_url(master_key, record, "/delete"),
        },
    )


@app.post("/ui/masters/{master_key}/records/{record_id}/delete", response_class=HTMLResponse)
async def masters_delete(request: Request, master_key: str, record_id: str):
    master = registry.get(master_key)
    if master is None:
        return _unknown_master_page(master_key)
    form = await request.form()
    screen = MasterScreen(store, master)
    screen.request_delete({master.primary_id_field: record_id})
    deleted = screen.confirm_delete(form.get("confirm") == "yes")
    if deleted:
        return RedirectResponse(_listing_url(master_key, flash=screen.flash), status_code=303)
    if screen.alert:
        return _render_listing(master, alert=screen.alert, status=404)
    return RedirectResponse(_listing_url(master_key), status_code=303)
