"""SQLite-backed document store.

Documents live in the `documents` table as JSON blobs, one row per
(collection, doc_id). `position` keeps the order documents were first
imported so that bulk reads are stable.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..core.errors import StoreWriteError
from .document_store import (
    UPDATED_AT_FIELD,
    DocumentStore,
    FieldUpdate,
    check_batch_size,
    check_preconditions,
    utc_now_iso,
)


LOG = logging.getLogger(__name__)


def _decode(doc_id: str, data_json: str, updated_at: Optional[str]) -> Dict[str, Any]:
    data = json.loads(data_json) if data_json else {}
    if updated_at is not None:
        data[UPDATED_AT_FIELD] = updated_at
    data["id"] = doc_id
    return data


def import_documents(conn: sqlite3.Connection, collection: str, docs: Iterable[Dict[str, Any]]) -> int:
    """Insert or replace `docs` in `collection` and return how many were written.

    Every document must carry an `id`. Re-importing an existing id keeps
    its original position.
    """
    cur = conn.cursor()
    cur.execute("SELECT COALESCE(MAX(position), -1) FROM documents WHERE collection = ?", (collection,))
    next_position = int(cur.fetchone()[0]) + 1
    count = 0
    for doc in docs:
        data = dict(doc)
        doc_id = str(data.pop("id"))
        updated_at = data.pop(UPDATED_AT_FIELD, None) or utc_now_iso()
        cur.execute("SELECT position FROM documents WHERE collection = ? AND doc_id = ?", (collection, doc_id))
        row = cur.fetchone()
        position = row[0] if row else next_position
        if not row:
            next_position += 1
        cur.execute(
            "INSERT OR REPLACE INTO documents (collection, doc_id, position, data_json, updated_at) VALUES (?, ?, ?, ?, ?)",
            (collection, doc_id, position, json.dumps(data), str(updated_at)),
        )
        count += 1
    conn.commit()
    return count


class SqliteDocumentStore(DocumentStore):
    """Document store over an open sqlite3 connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def list_all(self, collection: str) -> List[Dict[str, Any]]:
        cur = self.conn.cursor()
        cur.execute(
            "SELECT doc_id, data_json, updated_at FROM documents WHERE collection = ? ORDER BY position ASC",
            (collection,),
        )
        return [_decode(r[0], r[1], r[2]) for r in cur.fetchall()]

    def get_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        cur = self.conn.cursor()
        cur.execute(
            "SELECT doc_id, data_json, updated_at FROM documents WHERE collection = ? AND doc_id = ?",
            (collection, doc_id),
        )
        r = cur.fetchone()
        return _decode(r[0], r[1], r[2]) if r else None

    def commit_batch(self, collection: str, updates: Sequence[FieldUpdate], max_batch_size: int) -> int:
        check_batch_size(updates, max_batch_size)
        written_at = utc_now_iso()
        cur = self.conn.cursor()
        try:
            for u in updates:
                cur.execute(
                    "SELECT data_json FROM documents WHERE collection = ? AND doc_id = ?",
                    (collection, u.doc_id),
                )
                row = cur.fetchone()
                current = json.loads(row[0]) if row else None
                check_preconditions(u.doc_id, current, u.expected)
                current.update(u.fields)
                cur.execute(
                    "UPDATE documents SET data_json = ?, updated_at = ? WHERE collection = ? AND doc_id = ?",
                    (json.dumps(current), written_at, collection, u.doc_id),
                )
            self.conn.commit()
        except StoreWriteError:
            self.conn.rollback()
            raise
        except sqlite3.Error as exc:
            self.conn.rollback()
            LOG.debug("SQLite batch of %d updates failed", len(updates), exc_info=True)
            raise StoreWriteError(str(exc)) from exc
        return len(updates)


__all__ = ["SqliteDocumentStore", "import_documents"]
