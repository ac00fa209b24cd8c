"""Run lease stored in the local SQLite database.

Prevents two live reconciliations of the same collection from
interleaving when they share a run-log database. A lease expires after
`timeout_seconds` so that a crashed run does not block forever.
"""
from __future__ import annotations

import logging
import os
import socket
import sqlite3
import time
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

from ..core.errors import LeaseHeld


LOG = logging.getLogger(__name__)


def default_holder() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


def acquire_lease(conn: sqlite3.Connection, lease_key: str, holder: str, timeout_seconds: int) -> Tuple[bool, Optional[str]]:
    """Try to take the lease.

    Returns (True, None) when acquired, (False, current_holder) when
    another unexpired lease exists.
    """
    now = time.time()
    cur = conn.cursor()
    # BEGIN IMMEDIATE takes the write lock before the read
    cur.execute("BEGIN IMMEDIATE")
    try:
        cur.execute("SELECT holder, expires_at FROM reconciler_leases WHERE lease_key = ?", (lease_key,))
        row = cur.fetchone()
        if row and row[1] > now and row[0] != holder:
            conn.rollback()
            return False, row[0]
        if row:
            LOG.info("Replacing lease %s held by %s", lease_key, row[0])
        cur.execute(
            "INSERT OR REPLACE INTO reconciler_leases (lease_key, holder, acquired_at, expires_at) VALUES (?, ?, ?, ?)",
            (lease_key, holder, now, now + timeout_seconds),
        )
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        raise
    return True, None


def release_lease(conn: sqlite3.Connection, lease_key: str, holder: str) -> bool:
    """Release the lease if `holder` still owns it."""
    cur = conn.cursor()
    cur.execute("DELETE FROM reconciler_leases WHERE lease_key = ? AND holder = ?", (lease_key, holder))
    conn.commit()
    return cur.rowcount > 0


@contextmanager
def hold_lease(conn: sqlite3.Connection, lease_key: str, timeout_seconds: int, holder: Optional[str] = None) -> Iterator[str]:
    """Context manager that holds the lease or raises LeaseHeld."""
    holder = holder or default_holder()
    acquired, current = acquire_lease(conn, lease_key, holder, timeout_seconds)
    if not acquired:
        raise LeaseHeld(f"Reconciliation of '{lease_key}' is already running ({current})", holder=current)
    try:
        yield holder
    finally:
        if not release_lease(conn, lease_key, holder):
            LOG.warning("Lease %s was no longer held by %s at release", lease_key, holder)


__all__ = ["acquire_lease", "release_lease", "hold_lease", "default_holder"]
