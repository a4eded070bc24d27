"""Screen state machine for one master type.

States: ``listing`` (default), ``form_open`` (create, or edit when a record
is attached) and ``detail_view``. Deletes are staged from the listing and
run only after confirmation. The record list is re-read from the store after
every successful mutation and never patched in place.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Tuple

from master_registry import MasterType
from master_store import MasterRecordStore, MasterStoreError

LISTING = "listing"
FORM_OPEN = "form_open"
DETAIL_VIEW = "detail_view"

logger = logging.getLogger("masters.screen")

Validator = Callable[..., Tuple[List[Dict[str, Any]], Dict[str, Any]]]


@dataclass
class ScreenTransitionError(Exception):
    message: str
    state: str = ""
    action: str = ""

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return self.message


class MasterScreen:
    def __init__(
        self,
        store: MasterRecordStore,
        master_type: MasterType,
        validate: Validator | None = None,
    ) -> None:
        self.store = store
        self.master_type = master_type
        self._validate = validate
        self.state = LISTING
        self.record: dict | None = None
        self.errors: List[dict] = []
        self.alert: str | None = None
        self.flash: str | None = None
        self.pending_delete: dict | None = None
        self.records: List[dict] = []

    @property
    def mode(self) -> str | None:
        if self.state != FORM_OPEN:
            return None
        return "edit" if self.record is not None else "create"

    def _require(self, action: str, *states: str) -> None:
        if self.state not in states:
            raise ScreenTransitionError(
                message=f"cannot {action} while {self.state}",
                state=self.state,
                action=action,
            )

    def _to_listing(self) -> None:
        self.state = LISTING
        self.record = None
        self.errors = []

    def refresh(self) -> List[dict]:
        self.records = self.store.get_all(self.master_type.key)
        return self.records

    def open_create(self) -> None:
        self._require("open create form", LISTING)
        self.state = FORM_OPEN
        self.record = None
        self.errors = []
        self.alert = None

    def open_edit(self, record: dict) -> None:
        self._require("open edit form", LISTING)
        self.state = FORM_OPEN
        self.record = dict(record)
        self.errors = []
        self.alert = None

    def cancel(self) -> None:
        self._require("cancel", FORM_OPEN)
        self._to_listing()
        self.alert = None

    def open_view(self, record: dict) -> None:
        self._require("view", LISTING)
        self.state = DETAIL_VIEW
        self.record = dict(record)

    def close(self) -> None:
        self._require("close", DETAIL_VIEW)
        self._to_listing()

    def submit(self, candidate: dict) -> dict | None:
        """Validate and persist the open form.

        Returns the stored record on success. On validation failure the
        errors are kept and the store is not touched; on store failure the
        alert is set. Either way the form stays open.
        """
        self._require("submit", FORM_OPEN)
        key = self.master_type.key
        self.alert = None
        self.flash = None
        clean = dict(candidate or {})
        if self._validate is not None:
            errors, clean = self._validate(self.master_type.fields, candidate, partial=False)
            if errors:
                self.errors = errors
                logger.warning(
                    "master_submit_rejected master_key=%s codes=%s",
                    key,
                    sorted({e.get("code") for e in errors}),
                )
                return None
        self.errors = []
        editing = self.record is not None
        try:
            if editing:
                record_id = self.store.identifier_of(key, self.record)
                saved = self.store.update(key, record_id, clean)
            else:
                saved = self.store.create(key, clean)
        except MasterStoreError as exc:
            self.alert = f"Failed to save record: {exc.message}"
            logger.warning("master_submit_failed master_key=%s error=%s", key, exc.message)
            return None
        self._to_listing()
        self.flash = f"{self.master_type.record_label} {'updated' if editing else 'created'} successfully!"
        self.refresh()
        return saved

    def request_delete(self, record: dict) -> str:
        self._require("delete", LISTING)
        self.pending_delete = dict(record)
        return f"Are you sure you want to delete this {self.master_type.record_label.lower()}?"

    def confirm_delete(self, confirmed: bool = True) -> bool:
        self._require("delete", LISTING)
        pending = self.pending_delete
        self.pending_delete = None
        if pending is None or not confirmed:
            return False
        key = self.master_type.key
        self.alert = None
        self.flash = None
        record_id = self.store.identifier_of(key, pending)
        try:
            if record_id is None:
                raise MasterStoreError(message="Record has no identifier")
            self.store.delete(key, record_id)
        except MasterStoreError as exc:
            self.alert = f"Failed to delete record: {exc.message}"
            logger.warning("master_delete_failed master_key=%s record_id=%s error=%s", key, record_id, exc.message)
            return False
        self.flash = f"{self.master_type.record_label} deleted successfully!"
        self.refresh()
        return True
