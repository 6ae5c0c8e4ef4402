"""SQLite database — schema, connection helpers and the persisted key-value store.

Usage
-----
    conn = db_connect(db_path)
    try:
        conn.execute(...)
        conn.commit()
    finally:
        conn.close()

Services never touch SQL directly; they go through :class:`KeyValueStore`,
which gives each of them a namespace of ``server_id -> JSON value`` rows with
load-on-start / save-on-change semantics.
"""
from __future__ import annotations

import json
import logging
import sqlite3
import time
from typing import Any

logger = logging.getLogger(__name__)

DB_NAME = "xtreamsync.db"


# ---------------------------------------------------------------------------
# Low-level connection helpers
# ---------------------------------------------------------------------------

def db_connect(db_path: str) -> sqlite3.Connection:
    """Return a synchronous :class:`sqlite3.Connection` tuned for performance.

    *Always* called inside a ``try/finally`` or ``with`` block by callers.
    """
    conn = sqlite3.connect(db_path, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA cache_size=-32768")   # 32 MB page cache
    return conn


# ---------------------------------------------------------------------------
# Schema – CREATE TABLE IF NOT EXISTS
# ---------------------------------------------------------------------------

_SCHEMA = """
-- One row per (namespace, key). 'value' holds the JSON-encoded document,
-- e.g. the whole content cache of one server.
CREATE TABLE IF NOT EXISTS kv_store (
    namespace  TEXT NOT NULL,
    key        TEXT NOT NULL,
    value      TEXT NOT NULL DEFAULT 'null',
    updated_at INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (namespace, key)
);

CREATE INDEX IF NOT EXISTS idx_kv_namespace
    ON kv_store (namespace);
"""


def init_db(db_path: str) -> None:
    """Create all tables and indexes. Safe to call on every startup (idempotent)."""
    conn = db_connect(db_path)
    try:
        conn.executescript(_SCHEMA)
        conn.commit()
        logger.info(f"Database initialised at {db_path}")
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Key-value store
# ---------------------------------------------------------------------------

class KeyValueStore:
    """Durable ``key -> JSON`` map scoped to one namespace."""

    def __init__(self, db_path: str, namespace: str):
        self.db_path = db_path
        self.namespace = namespace

    def load(self) -> dict[str, Any]:
        conn = db_connect(self.db_path)
        try:
            rows = conn.execute(
                "SELECT key, value FROM kv_store WHERE namespace = ?",
                (self.namespace,),
            ).fetchall()
        finally:
            conn.close()

        result: dict[str, Any] = {}
        for row in rows:
            try:
                result[row["key"]] = json.loads(row["value"])
            except (json.JSONDecodeError, TypeError):
                logger.warning(f"Dropping unreadable {self.namespace} entry for key {row['key']!r}")
        return result

    def save(self, partial: dict[str, Any]) -> None:
        """Upsert only the given keys."""
        if not partial:
            return
        now = int(time.time())
        rows = [
            (self.namespace, key, json.dumps(value), now)
            for key, value in partial.items()
        ]
        conn = db_connect(self.db_path)
        try:
            conn.executemany(
                "INSERT OR REPLACE INTO kv_store (namespace, key, value, updated_at) "
                "VALUES (?,?,?,?)",
                rows,
            )
            conn.commit()
        finally:
            conn.close()

    def delete(self, key: str) -> None:
        conn = db_connect(self.db_path)
        try:
            conn.execute(
                "DELETE FROM kv_store WHERE namespace = ? AND key = ?",
                (self.namespace, key),
            )
            conn.commit()
        finally:
            conn.close()
