"""Document store interface and the in-memory implementation.

The reconciler only needs a bulk read and a batched conditional write.
`InMemoryDocumentStore` implements the same contract as the SQLite and
Firestore stores and is used for fixtures and tests.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..core.errors import StoreWriteError


UPDATED_AT_FIELD = "updatedAt"


@dataclass(frozen=True)
class FieldUpdate:
    """A field update for one document.

    `expected` maps field names to the values the document must still
    hold for the write to apply. An absent field counts as None.
    """

    doc_id: str
    fields: Dict[str, Any]
    expected: Optional[Dict[str, Any]] = None


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def check_batch_size(updates: Sequence[FieldUpdate], max_batch_size: int) -> None:
    if max_batch_size < 1:
        raise ValueError(f"max_batch_size must be positive, got {max_batch_size}")
    if len(updates) > max_batch_size:
        raise StoreWriteError(f"Batch of {len(updates)} updates exceeds limit of {max_batch_size}")


def check_preconditions(doc_id: str, current: Optional[Dict[str, Any]], expected: Optional[Dict[str, Any]]) -> None:
    """Raise StoreWriteError when `current` is missing or disagrees with `expected`."""
    if current is None:
        raise StoreWriteError(f"Document not found: {doc_id}")
    for name, value in (expected or {}).items():
        if current.get(name) != value:
            raise StoreWriteError(
                f"Precondition failed for {doc_id}: {name} is {current.get(name)!r}, expected {value!r}"
            )


class DocumentStore:
    """Minimal document store contract used by the reconciler."""

    def list_all(self, collection: str) -> List[Dict[str, Any]]:
        """Return every document in `collection`, each with its `id`."""
        raise NotImplementedError

    def get_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def commit_batch(self, collection: str, updates: Sequence[FieldUpdate], max_batch_size: int) -> int:
        """Apply `updates` atomically and return the number of documents written.

        Raises StoreWriteError when nothing could be written.
        """
        raise NotImplementedError


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store. Keeps insertion order like a collection scan would."""

    def __init__(self, collections: Optional[Dict[str, Iterable[Dict[str, Any]]]] = None) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.commits: List[List[str]] = []
        for name, docs in (collections or {}).items():
            for doc in docs:
                self.put(name, doc)

    def put(self, collection: str, doc: Dict[str, Any]) -> None:
        data = copy.deepcopy(doc)
        doc_id = str(data.pop("id"))
        self._collections.setdefault(collection, {})[doc_id] = data

    def list_all(self, collection: str) -> List[Dict[str, Any]]:
        docs = self._collections.get(collection, {})
        return [dict(copy.deepcopy(data), id=doc_id) for doc_id, data in docs.items()]

    def get_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        data = self._collections.get(collection, {}).get(doc_id)
        if data is None:
            return None
        return dict(copy.deepcopy(data), id=doc_id)

    def commit_batch(self, collection: str, updates: Sequence[FieldUpdate], max_batch_size: int) -> int:
        check_batch_size(updates, max_batch_size)
        docs = self._collections.get(collection, {})
        # validate everything before touching any document
        for u in updates:
            check_preconditions(u.doc_id, docs.get(u.doc_id), u.expected)

        written_at = utc_now_iso()
        for u in updates:
            docs[u.doc_id].update(copy.deepcopy(u.fields))
            docs[u.doc_id][UPDATED_AT_FIELD] = written_at
        self.commits.append([u.doc_id for u in updates])
        return len(updates)


__all__ = [
    "FieldUpdate",
    "DocumentStore",
    "InMemoryDocumentStore",
    "UPDATED_AT_FIELD",
    "check_batch_size",
    "check_preconditions",
    "utc_now_iso",
]
