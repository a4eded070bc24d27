"""Postgres access for the master-data medium: pool, timed queries, query log."""

from __future__ import annotations

import logging
import os
import threading
import time
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

import psycopg2
import psycopg2.extras
from psycopg2.pool import SimpleConnectionPool

_logger = logging.getLogger("masters.db")
_query_logger = logging.getLogger("masters.db.query")

QUERY_SLOW_MS = float(os.getenv("MASTERS_QUERY_SLOW_MS", "200"))
QUERY_LOG_ALL = os.getenv("MASTERS_QUERY_LOG", "").strip() == "1"

_pool: SimpleConnectionPool | None = None
_pool_lock = threading.Lock()
_db_ms = 0.0
_db_ms_lock = threading.Lock()


def database_url() -> str:
    url = os.getenv("SUPABASE_DB_URL") or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("USE_DB=1 needs SUPABASE_DB_URL or DATABASE_URL")
    return url


def init_pool(minconn: int | None = None, maxconn: int | None = None) -> SimpleConnectionPool:
    global _pool
    with _pool_lock:
        if _pool is None:
            low = minconn if minconn is not None else int(os.getenv("MASTERS_DB_POOL_MIN", "1"))
            high = maxconn if maxconn is not None else int(os.getenv("MASTERS_DB_POOL_MAX", "10"))
            _pool = SimpleConnectionPool(low, high, dsn=database_url())
            _logger.info("db_pool_ready min=%s max=%s", low, high)
        return _pool


def get_db_ms() -> float:
    """Total time spent in queries since start; the request middleware diffs it."""
    with _db_ms_lock:
        return _db_ms


def _charge(elapsed_ms: float) -> None:
    global _db_ms
    with _db_ms_lock:
        _db_ms += elapsed_ms


def _short(value: Any) -> Any:
    # stored payloads are whole JSON lists
    if isinstance(value, str) and len(value) > 80:
        return f"<str:{len(value)}>"
    return value


def _report(name: str, params: Sequence[Any] | None, elapsed_ms: float, rowcount: int) -> None:
    slow = elapsed_ms >= QUERY_SLOW_MS
    if not (slow or QUERY_LOG_ALL):
        return
    shown = [_short(p) for p in params] if params is not None else None
    level = logging.WARNING if slow else logging.INFO
    _query_logger.log(
        level,
        "db_query name=%s ms=%.2f rowcount=%s slow=%s params=%s",
        name,
        elapsed_ms,
        rowcount,
        slow,
        shown,
    )


@contextmanager
def get_conn() -> Iterator[Any]:
    pool = init_pool()
    conn = pool.getconn()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn)


def _run(conn, sql: str, params: Sequence[Any] | None, query_name: str | None, fetch: str | None):
    started = time.perf_counter()
    factory = psycopg2.extras.RealDictCursor if fetch else None
    with conn.cursor(cursor_factory=factory) as cur:
        cur.execute(sql, params or [])
        if fetch == "one":
            row = cur.fetchone()
            result = dict(row) if row else None
        elif fetch == "all":
            result = [dict(row) for row in cur.fetchall()]
        else:
            result = cur.rowcount
        rowcount = cur.rowcount
    elapsed_ms = (time.perf_counter() - started) * 1000
    _charge(elapsed_ms)
    _report(query_name or "unnamed", params, elapsed_ms, rowcount)
    return result


def fetch_one(conn, sql: str, params: Sequence[Any] | None = None, query_name: str | None = None) -> dict | None:
    return _run(conn, sql, params, query_name, "one")


def fetch_all(conn, sql: str, params: Sequence[Any] | None = None, query_name: str | None = None) -> list[dict]:
    return _run(conn, sql, params, query_name, "all")


def execute(conn, sql: str, params: Sequence[Any] | None = None, query_name: str | None = None) -> int:
    return _run(conn, sql, params, query_name, None)
