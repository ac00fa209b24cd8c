"""Database schema for repository layer.

Defines SQL for the SQLite document store, the reconciliation run log
and the run lease, plus a helper to create them.
"""
from __future__ import annotations

from typing import Any
import sqlite3


DOCUMENTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    doc_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    data_json TEXT NOT NULL,
    updated_at TEXT,
    PRIMARY KEY (collection, doc_id)
);
"""


RECONCILIATION_RUNS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS reconciliation_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    collection TEXT,
    mode TEXT,
    status TEXT,
    started_at TEXT,
    finished_at TEXT,
    records_loaded INTEGER,
    corrections_planned INTEGER,
    corrections_applied INTEGER,
    chunks_committed INTEGER,
    error TEXT,
    summary_json TEXT
);
"""


RECONCILIATION_CORRECTIONS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS reconciliation_corrections (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id INTEGER NOT NULL,
    unit_id TEXT,
    unit_type TEXT,
    name TEXT,
    from_value TEXT,
    to_value TEXT,
    outcome TEXT
);
"""


RECONCILER_LEASES_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS reconciler_leases (
    lease_key TEXT PRIMARY KEY,
    holder TEXT NOT NULL,
    acquired_at REAL NOT NULL,
    expires_at REAL NOT NULL
);
"""


def create_tables(conn: sqlite3.Connection | Any) -> None:
    """Create required tables on the given SQLite connection.

    The function will execute DDL statements and commit the transaction.
    """
    cur = conn.cursor()
    cur.execute(DOCUMENTS_TABLE_SQL)
    cur.execute(RECONCILIATION_RUNS_TABLE_SQL)
    cur.execute(RECONCILIATION_CORRECTIONS_TABLE_SQL)
    cur.execute(RECONCILER_LEASES_TABLE_SQL)
    conn.commit()


__all__ = [
    "DOCUMENTS_TABLE_SQL",
    "RECONCILIATION_RUNS_TABLE_SQL",
    "RECONCILIATION_CORRECTIONS_TABLE_SQL",
    "RECONCILER_LEASES_TABLE_SQL",
    "create_tables",
]
