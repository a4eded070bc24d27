"""Namespaced master-data record store over a flat key-value medium.

The medium is any object exposing ``get(key) -> str | None``,
``set(key, value)``, ``delete(key)`` and ``keys(prefix) -> list[str]``
(see ``app.stores`` and ``app.stores_db``). Each master key owns one JSON
array stored under ``master_data_<key>``; every mutation rewrites that whole
array.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping

from masterkit.codec import NOT_A_LIST, UNREADABLE, CanonicalJsonTypeError, canonical_dumps, decode_record_list
from masterkit.record_ids import (
    creation_id_fields,
    generate_record_id,
    id_field_candidates,
    is_blank,
    master_key_from_storage_key,
    primary_id_field,
    record_identifier,
    record_matches,
    storage_key,
    STORAGE_PREFIX,
)


MasterRecord = Dict[str, Any]

logger = logging.getLogger("masters.store")


@dataclass
class MasterStoreError(Exception):
    message: str

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return self.message


@dataclass
class RecordNotFound(MasterStoreError):
    master_key: str = ""
    record_id: str = ""


@dataclass
class RecordSerializationError(MasterStoreError):
    master_key: str = ""


class MasterRecordStore:
    def __init__(self, medium, id_fields: Mapping[str, str] | None = None) -> None:
        self._medium = medium
        self._id_fields: Dict[str, str] = dict(id_fields or {})

    def id_fields_for(self, master_key: str) -> List[str]:
        return id_field_candidates(master_key, self._id_fields.get(master_key))

    def identifier_of(self, master_key: str, record: dict) -> str | None:
        return record_identifier(record, master_key, self._id_fields.get(master_key))

    def _read(self, master_key: str) -> List[MasterRecord]:
        records, state, dropped = decode_record_list(self._medium.get(storage_key(master_key)))
        if state in (UNREADABLE, NOT_A_LIST):
            logger.warning("master_data_unreadable master_key=%s state=%s", master_key, state)
        if dropped:
            logger.warning("master_data_dropped_entries master_key=%s dropped=%s", master_key, dropped)
        return records

    def _write(self, master_key: str, records: List[MasterRecord]) -> None:
        try:
            payload = canonical_dumps(records)
        except (CanonicalJsonTypeError, ValueError) as exc:
            raise RecordSerializationError(
                message=f"Record cannot be stored: {exc}",
                master_key=master_key,
            ) from exc
        self._medium.set(storage_key(master_key), payload)

    def _index_of(self, master_key: str, records: List[MasterRecord], record_id: str) -> int:
        declared = self._id_fields.get(master_key)
        for idx, record in enumerate(records):
            if record_matches(record, record_id, master_key, declared):
                return idx
        return -1

    def _not_found(self, master_key: str, record_id: str) -> RecordNotFound:
        return RecordNotFound(
            message=f"Record not found with id: {record_id}",
            master_key=master_key,
            record_id=str(record_id),
        )

    def get_all(self, master_key: str) -> List[MasterRecord]:
        records = self._read(master_key)
        logger.debug("master_data_read master_key=%s count=%s", master_key, len(records))
        return records

    def get_by_id(self, master_key: str, record_id: str) -> MasterRecord:
        records = self._read(master_key)
        idx = self._index_of(master_key, records, record_id)
        if idx == -1:
            raise self._not_found(master_key, record_id)
        return records[idx]

    def create(self, master_key: str, data: MasterRecord) -> MasterRecord:
        declared = self._id_fields.get(master_key)
        record = copy.deepcopy(dict(data or {}))
        if all(is_blank(record.get(field)) for field in creation_id_fields(master_key, declared)):
            record[primary_id_field(master_key, declared)] = generate_record_id(master_key)
        records = self._read(master_key)
        records.append(record)
        self._write(master_key, records)
        logger.info("master_record_created master_key=%s record_id=%s", master_key, self.identifier_of(master_key, record))
        return copy.deepcopy(record)

    def update(self, master_key: str, record_id: str, data: MasterRecord) -> MasterRecord:
        records = self._read(master_key)
        idx = self._index_of(master_key, records, record_id)
        if idx == -1:
            raise self._not_found(master_key, record_id)
        merged = {**records[idx], **copy.deepcopy(dict(data or {}))}
        records[idx] = merged
        self._write(master_key, records)
        logger.info("master_record_updated master_key=%s record_id=%s fields=%s", master_key, record_id, sorted((data or {}).keys()))
        return copy.deepcopy(merged)

    def delete(self, master_key: str, record_id: str) -> None:
        records = self._read(master_key)
        idx = self._index_of(master_key, records, record_id)
        if idx == -1:
            raise self._not_found(master_key, record_id)
        del records[idx]
        self._write(master_key, records)
        logger.info("master_record_deleted master_key=%s record_id=%s", master_key, record_id)

    def get_options(self, relation_key: str) -> List[MasterRecord]:
        try:
            return self.get_all(relation_key)
        except Exception as exc:
            logger.error("master_options_failed relation_key=%s error=%s", relation_key, exc)
            return []

    def exists(self, master_key: str) -> bool:
        return self._medium.get(storage_key(master_key)) is not None

    def read_raw(self, master_key: str) -> str | None:
        return self._medium.get(storage_key(master_key))

    def seed(self, master_key: str, records: List[MasterRecord]) -> bool:
        if self.exists(master_key):
            return False
        self._write(master_key, copy.deepcopy(list(records)))
        logger.info("master_data_seeded master_key=%s count=%s", master_key, len(records))
        return True

    def namespaces(self) -> List[str]:
        keys = []
        for key in self._medium.keys(STORAGE_PREFIX):
            master_key = master_key_from_storage_key(key)
            if master_key:
                keys.append(master_key)
        return sorted(keys)
