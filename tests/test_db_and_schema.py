from unitsync.core.config import settings
from unitsync.core.db import init_db, get_connection


def test_init_db_creates_file_and_tables(tmp_path, monkeypatch):
    temp_db = tmp_path / "nested" / "test.db"
    monkeypatch.setattr(settings, "DB_PATH", str(temp_db))

    init_db()
    assert temp_db.exists()

    conn = get_connection()
    try:
        cur = conn.cursor()
        for table in ("documents", "reconciliation_runs", "reconciliation_corrections", "reconciler_leases"):
            cur.execute("SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,))
            assert cur.fetchone() is not None
    finally:
        conn.close()

    # idempotent
    init_db()
