"""Database helpers.

The local SQLite file backs the SQLite document store, the run log and
the run lease. `init_db` also creates the schema so callers can use a
fresh connection right away.
"""
from __future__ import annotations

import sqlite3
from pathlib import Path

from ..repo.schema import create_tables
from .config import settings


def get_connection() -> sqlite3.Connection:
    """Return a new sqlite3 connection using configured DB path."""
    return sqlite3.connect(str(settings.DB_PATH))


def init_db() -> None:
    """Ensure the database file, its parent directories and all tables exist."""
    db_path = Path(settings.DB_PATH)
    db_dir = db_path.parent
    if not db_dir.exists():
        db_dir.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path))
    try:
        create_tables(conn)
    finally:
        conn.close()


__all__ = ["get_connection", "init_db"]
