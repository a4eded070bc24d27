"""DB-backed key-value medium for master data."""

from __future__ import annotations

import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import List

from app.db import execute, fetch_all, fetch_one, get_conn

logger = logging.getLogger("masters.db")

_ORG_ID: ContextVar[str] = ContextVar("org_id", default="default")

_SCHEMA_SQL = """
create table if not exists master_kv (
    tenant_id text not null,
    key text not null,
    value text not null,
    updated_at timestamptz not null default now(),
    primary key (tenant_id, key)
)
"""


def get_org_id() -> str:
    return _ORG_ID.get()


def set_org_id(value: str):
    return _ORG_ID.set(value)


def reset_org_id(token):
    _ORG_ID.reset(token)


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class DbKeyValueMedium:
    """Flat string map in ``master_kv``, scoped per tenant."""

    def __init__(self, ensure_schema: bool = True) -> None:
        self._schema_ready = not ensure_schema

    def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        with get_conn() as conn:
            execute(conn, _SCHEMA_SQL, query_name="master_kv.ensure_schema")
        self._schema_ready = True
        logger.info("master_kv schema ensured")

    def get(self, key: str) -> str | None:
        self._ensure_schema()
        with get_conn() as conn:
            row = fetch_one(
                conn,
                "select value from master_kv where tenant_id=%s and key=%s",
                [get_org_id(), key],
                query_name="master_kv.get",
            )
        return row.get("value") if row else None

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError("medium values must be strings")
        self._ensure_schema()
        with get_conn() as conn:
            execute(
                conn,
                """
                insert into master_kv (tenant_id, key, value, updated_at)
                values (%s, %s, %s, %s)
                on conflict (tenant_id, key)
                do update set value=excluded.value, updated_at=excluded.updated_at
                """,
                [get_org_id(), key, value, _now()],
                query_name="master_kv.set",
            )

    def delete(self, key: str) -> None:
        self._ensure_schema()
        with get_conn() as conn:
            execute(
                conn,
                "delete from master_kv where tenant_id=%s and key=%s",
                [get_org_id(), key],
                query_name="master_kv.delete",
            )

    def keys(self, prefix: str = "") -> List[str]:
        self._ensure_schema()
        with get_conn() as conn:
            rows = fetch_all(
                conn,
                "select key from master_kv where tenant_id=%s and key like %s order by key",
                [get_org_id(), f"{_escape_like(prefix)}%"],
                query_name="master_kv.keys",
            )
        return [row["key"] for row in rows]
