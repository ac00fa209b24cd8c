"""Exceptions raised by the reconciler.

Dangling or cyclic parent references are not errors: the resolver folds
them into "no ancestor" and they only surface as report warnings.
"""
from __future__ import annotations

from typing import Any, Optional


class ReconcilerError(Exception):
    """Base class for fatal reconciler failures."""

    stage = "reconcile"


class LoadFailure(ReconcilerError):
    """The bulk read of the unit collection failed. Nothing was written."""

    stage = "load"


class StoreWriteError(Exception):
    """Raised by a document store when a write batch could not be committed."""


class CommitFailure(ReconcilerError):
    """A write chunk failed. Chunks before it stay committed."""

    stage = "commit"

    def __init__(self, message: str, chunk_index: int, applied: int, report: Optional[Any] = None) -> None:
        super().__init__(message)
        self.chunk_index = chunk_index
        self.applied = applied
        self.report = report

    @property
    def last_committed_chunk(self) -> int:
        """1-based index of the last committed chunk, 0 when none was committed."""
        return self.chunk_index - 1


class LeaseHeld(ReconcilerError):
    """Another live run currently holds the reconciliation lease."""

    stage = "lease"

    def __init__(self, message: str, holder: Optional[str] = None) -> None:
        super().__init__(message)
        self.holder = holder


__all__ = ["ReconcilerError", "LoadFailure", "StoreWriteError", "CommitFailure", "LeaseHeld"]
