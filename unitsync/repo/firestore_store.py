"""Firestore-backed document store.

Writes go through a Firestore transaction so that the existence and
value preconditions of every update are checked against the same reads
the writes commit on. A transaction holds at most 500 writes, the same
limit as a plain write batch.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore

from ..core.errors import StoreWriteError
from .document_store import UPDATED_AT_FIELD, DocumentStore, FieldUpdate, check_batch_size, check_preconditions


logger = logging.getLogger(__name__)


class FirestoreDocumentStore(DocumentStore):
    """Document store over a `google.cloud.firestore.Client`."""

    def __init__(self, client: Optional[Any] = None, project_id: Optional[str] = None) -> None:
        self.db = client if client is not None else firestore.Client(project=project_id)
        logger.info("Initialized FirestoreDocumentStore (project=%s)", project_id or "default")

    def list_all(self, collection: str) -> List[Dict[str, Any]]:
        docs: List[Dict[str, Any]] = []
        for snapshot in self.db.collection(collection).stream():
            data = snapshot.to_dict() or {}
            data["id"] = snapshot.id
            docs.append(data)
        return docs

    def get_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        snapshot = self.db.collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        data = snapshot.to_dict() or {}
        data["id"] = snapshot.id
        return data

    def commit_batch(self, collection: str, updates: Sequence[FieldUpdate], max_batch_size: int) -> int:
        check_batch_size(updates, max_batch_size)
        if not updates:
            return 0
        col = self.db.collection(collection)
        refs = [col.document(u.doc_id) for u in updates]

        @firestore.transactional
        def apply_updates(transaction):
            snapshots = {s.id: s for s in self.db.get_all(refs, transaction=transaction)}
            for u in updates:
                snap = snapshots.get(u.doc_id)
                current = snap.to_dict() if snap is not None and snap.exists else None
                check_preconditions(u.doc_id, current, u.expected)
            for ref, u in zip(refs, updates):
                transaction.update(ref, {**u.fields, UPDATED_AT_FIELD: firestore.SERVER_TIMESTAMP})

        try:
            apply_updates(self.db.transaction())
        except gcp_exceptions.GoogleAPICallError as exc:
            logger.debug("Firestore batch of %d updates failed", len(updates), exc_info=True)
            raise StoreWriteError(str(exc)) from exc
        return len(updates)


__all__ = ["FirestoreDocumentStore"]
