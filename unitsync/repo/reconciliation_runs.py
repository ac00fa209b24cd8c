"""Repository helpers for the reconciliation run log.

Provides helpers to save a run with its corrections and to query runs
and their details.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Optional
import sqlite3


_RUN_COLUMNS = (
    "id",
    "collection",
    "mode",
    "status",
    "started_at",
    "finished_at",
    "records_loaded",
    "corrections_planned",
    "corrections_applied",
    "chunks_committed",
    "error",
    "summary_json",
)


def _run_from_row(r: tuple) -> Dict[str, Any]:
    run = dict(zip(_RUN_COLUMNS, r))
    summary = run.pop("summary_json")
    run["summary"] = json.loads(summary) if summary else None
    return run


def save_run(
    conn: sqlite3.Connection,
    collection: str,
    mode: str,
    status: str,
    started_at: str,
    finished_at: str,
    records_loaded: int,
    corrections_planned: int,
    corrections_applied: int,
    chunks_committed: int,
    error: Optional[str] = None,
    summary: Optional[Dict[str, Any]] = None,
) -> int:
    """Insert a run record and return its id."""
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO reconciliation_runs
        (collection, mode, status, started_at, finished_at, records_loaded, corrections_planned,
         corrections_applied, chunks_committed, error, summary_json)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            collection,
            mode,
            status,
            started_at,
            finished_at,
            records_loaded,
            corrections_planned,
            corrections_applied,
            chunks_committed,
            error,
            json.dumps(summary) if summary is not None else None,
        ),
    )
    conn.commit()
    return cur.lastrowid


def save_corrections(conn: sqlite3.Connection, run_id: int, corrections: Iterable[Dict[str, Any]]) -> List[int]:
    """Insert correction records for `run_id`.

    Each dict carries: id, unit_type, name, from, to, outcome.
    """
    cur = conn.cursor()
    ids: List[int] = []
    for c in corrections:
        cur.execute(
            """
            INSERT INTO reconciliation_corrections (run_id, unit_id, unit_type, name, from_value, to_value, outcome)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (run_id, c.get("id"), c.get("unit_type"), c.get("name"), c.get("from"), c.get("to"), c.get("outcome")),
        )
        ids.append(cur.lastrowid)
    conn.commit()
    return ids


def get_run(conn: sqlite3.Connection, run_id: int) -> Optional[Dict[str, Any]]:
    cur = conn.cursor()
    cur.execute(f"SELECT {', '.join(_RUN_COLUMNS)} FROM reconciliation_runs WHERE id = ?", (run_id,))
    r = cur.fetchone()
    return _run_from_row(r) if r else None


def get_corrections_for_run(conn: sqlite3.Connection, run_id: int) -> List[Dict[str, Any]]:
    """Return the corrections recorded for `run_id` in planning order."""
    cur = conn.cursor()
    cur.execute(
        "SELECT unit_id, unit_type, name, from_value, to_value, outcome FROM reconciliation_corrections WHERE run_id = ? ORDER BY id ASC",
        (run_id,),
    )
    return [
        {"id": r[0], "unit_type": r[1], "name": r[2], "from": r[3], "to": r[4], "outcome": r[5]}
        for r in cur.fetchall()
    ]


def list_runs(conn: sqlite3.Connection, limit: int = 50, offset: int = 0) -> dict:
    """Return the most recent runs first, with the total count.

    Returns dict with keys: `runs` (list of dicts) and `total` (int).
    """
    cur = conn.cursor()
    cur.execute("SELECT COUNT(1) FROM reconciliation_runs")
    total = int(cur.fetchone()[0])
    cur.execute(
        f"SELECT {', '.join(_RUN_COLUMNS)} FROM reconciliation_runs ORDER BY id DESC LIMIT ? OFFSET ?",
        (int(limit), int(offset)),
    )
    return {"runs": [_run_from_row(r) for r in cur.fetchall()], "total": total}


__all__ = ["save_run", "save_corrections", "get_run", "get_corrections_for_run", "list_runs"]
