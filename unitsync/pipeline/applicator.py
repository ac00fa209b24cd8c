"""Batch applicator.

Splits the planned corrections into chunks no larger than the store's
batch limit and commits them one after another. Each chunk is atomic;
a failed chunk stops the run and leaves earlier chunks committed. A
re-run re-plans from the stored state, so it picks up exactly the
units that were not written.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, TypeVar

from ..core.errors import CommitFailure
from ..repo.document_store import DocumentStore, FieldUpdate
from .hierarchy import DEFAULT_ANCESTRY_FIELD
from .planner import Correction


LOG = logging.getLogger(__name__)

T = TypeVar("T")

# Result statuses
DRY_RUN = "dry_run"
NOTHING_TO_DO = "nothing_to_do"
COMPLETED = "completed"


@dataclass(frozen=True)
class ChunkProgress:
    chunk_index: int
    total_chunks: int
    chunk_size: int
    applied: int
    planned: int
    collection: Optional[str] = None


@dataclass(frozen=True)
class ApplyResult:
    status: str
    planned: int
    applied: int = 0
    chunks_committed: int = 0
    total_chunks: int = 0


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    """Split `items` into consecutive lists of at most `size` elements."""
    if size < 1:
        raise ValueError(f"Chunk size must be positive, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def count_chunks(total: int, size: int) -> int:
    return math.ceil(total / size) if total else 0


def build_updates(chunk: Sequence[Correction], ancestry_field: str = DEFAULT_ANCESTRY_FIELD) -> List[FieldUpdate]:
    """Turn corrections into conditional updates.

    Each update only applies if the document still holds the value the
    plan was computed from.
    """
    return [
        FieldUpdate(
            doc_id=c.id,
            fields={ancestry_field: c.to_value},
            expected={ancestry_field: c.expected_value},
        )
        for c in chunk
    ]


def apply_corrections(
    store: DocumentStore,
    collection: str,
    corrections: Sequence[Correction],
    dry_run: bool,
    max_batch_size: int,
    ancestry_field: str = DEFAULT_ANCESTRY_FIELD,
    on_progress: Optional[Callable[[ChunkProgress], None]] = None,
) -> ApplyResult:
    """Apply `corrections` to `collection`, or only report them when `dry_run`.

    Raises CommitFailure when a chunk cannot be committed.
    """
    if max_batch_size < 1:
        raise ValueError(f"max_batch_size must be positive, got {max_batch_size}")
    planned = len(corrections)
    total_chunks = count_chunks(planned, max_batch_size)

    if dry_run:
        LOG.info("Dry run: %d correction(s) in %d chunk(s), nothing written", planned, total_chunks)
        return ApplyResult(DRY_RUN, planned, total_chunks=total_chunks)
    if not corrections:
        LOG.info("No corrections needed in %s", collection)
        return ApplyResult(NOTHING_TO_DO, 0)

    applied = 0
    for index, chunk in enumerate(chunked(corrections, max_batch_size), start=1):
        try:
            store.commit_batch(collection, build_updates(chunk, ancestry_field), max_batch_size)
        except Exception as exc:
            LOG.error(
                "%s chunk %d/%d failed after %d applied update(s): %s", collection, index, total_chunks, applied, exc
            )
            raise CommitFailure(
                f"Failed to commit {collection} chunk {index}/{total_chunks}: {exc}", chunk_index=index, applied=applied
            ) from exc
        applied += len(chunk)
        LOG.info("Committed %s chunk %d/%d (%d / %d)", collection, index, total_chunks, applied, planned)
        if on_progress is not None:
            on_progress(ChunkProgress(index, total_chunks, len(chunk), applied, planned, collection))

    return ApplyResult(COMPLETED, planned, applied, total_chunks, total_chunks)


__all__ = [
    "ApplyResult",
    "ChunkProgress",
    "apply_corrections",
    "build_updates",
    "chunked",
    "count_chunks",
    "DRY_RUN",
    "NOTHING_TO_DO",
    "COMPLETED",
]
