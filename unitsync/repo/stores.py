"""Document store selection based on settings."""
from __future__ import annotations

import sqlite3
from typing import Optional

from ..core.config import settings
from .document_store import DocumentStore
from .sqlite_store import SqliteDocumentStore


BACKENDS = ("sqlite", "firestore")


def get_document_store(conn: Optional[sqlite3.Connection] = None, backend: Optional[str] = None) -> DocumentStore:
    """Return the configured document store.

    The SQLite backend needs an open connection; the Firestore backend
    uses `settings.FIRESTORE_PROJECT` (or the ambient project).
    """
    backend = (backend or settings.BACKEND).lower()
    if backend == "sqlite":
        if conn is None:
            raise ValueError("The sqlite backend requires a database connection")
        return SqliteDocumentStore(conn)
    if backend == "firestore":
        # imported lazily so the sqlite backend works without GCP credentials
        from .firestore_store import FirestoreDocumentStore

        return FirestoreDocumentStore(project_id=settings.FIRESTORE_PROJECT)
    raise ValueError(f"Unknown document store backend: {backend!r} (expected one of {', '.join(BACKENDS)})")


__all__ = ["get_document_store", "BACKENDS"]
