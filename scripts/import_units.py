#!/usr/bin/env python3
"""Load unit documents from a JSON file into the local SQLite store.

Usage:
  python scripts/import_units.py <units.json> [<collection>]

The file holds a list of objects, each with an `id` and the usual unit
fields (`unitType`, `parentId`, `battalionId`, `name`).
"""
import json
import sys
from pathlib import Path

from unitsync.core.config import settings
from unitsync.core.db import get_connection, init_db
from unitsync.repo.sqlite_store import import_documents


def main(path: str, collection: str | None = None) -> int:
    docs = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(docs, list):
        print("Expected a JSON list of unit objects")
        return 1

    init_db()
    conn = get_connection()
    try:
        count = import_documents(conn, collection or settings.COLLECTION, docs)
    finally:
        conn.close()
    print(f"Imported {count} unit(s) into {settings.DB_PATH} ({collection or settings.COLLECTION})")
    return 0


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts/import_units.py <units.json> [<collection>]")
        sys.exit(1)
    sys.exit(main(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else None))
