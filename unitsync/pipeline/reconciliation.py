"""Reconciliation runner.

Ties the pipeline together: one bulk read, an in-memory snapshot,
resolution of every unit, a correction plan and the chunked writes.
Dependent collections, when requested, are read and planned along
with the units and written after them.
`run_and_record` adds the run lease and the run log on top.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..core.config import settings
from ..core.errors import CommitFailure, LoadFailure
from ..repo.document_store import DocumentStore
from ..repo.reconciliation_runs import save_corrections, save_run
from ..repo.run_lease import hold_lease
from .applicator import DRY_RUN, ChunkProgress, apply_corrections, count_chunks
from .dependents import (
    DependentCollection,
    DependentReport,
    LinkResolver,
    index_documents,
    plan_dependent,
    required_collections,
)
from .hierarchy import HierarchySnapshot, build_unit_index
from .planner import Correction, ReferenceWarning, collect_warnings, plan_corrections
from .resolver import AncestorResolver


LOG = logging.getLogger(__name__)

FAILED = "failed"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()



@dataclass
class ReconciliationReport:
    collection: str
    dry_run: bool
    started_at: str
    records_loaded: int = 0
    corrections: List[Correction] = field(default_factory=list)
    warnings: List[ReferenceWarning] = field(default_factory=list)
    dependents: List[DependentReport] = field(default_factory=list)
    status: Optional[str] = None
    applied: int = 0
    chunks_committed: int = 0
    total_chunks: int = 0
    finished_at: Optional[str] = None
    error: Optional[str] = None

    @property
    def mode(self) -> str:
        return "dry-run" if self.dry_run else "live"

    def summary(self) -> Dict[str, Any]:
        return {
            "collection": self.collection,
            "mode": self.mode,
            "status": self.status,
            "records_loaded": self.records_loaded,
            "corrections_planned": len(self.corrections),
            "corrections_applied": self.applied,
            "chunks_committed": self.chunks_committed,
            "total_chunks": self.total_chunks,
            "warnings": len(self.warnings),
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "error": self.error,
        }

    def as_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary(),
            "corrections": [c.as_dict() for c in self.corrections],
            "warnings": [w.as_dict() for w in self.warnings],
            "dependents": [d.as_dict() for d in self.dependents],
        }


def _list_collection(store: DocumentStore, collection: str) -> List[Dict[str, Any]]:
    try:
        records = store.list_all(collection)
    except Exception as exc:
        LOG.error("Failed to load %s: %s", collection, exc)
        raise LoadFailure(f"Failed to load collection '{collection}': {exc}") from exc
    LOG.info("Loaded %d record(s) from %s", len(records), collection)
    return records


def load_snapshot(store: DocumentStore, collection: str, ancestry_field: str) -> HierarchySnapshot:
    """Bulk-read `collection` and index it. Any store error becomes LoadFailure."""
    return build_unit_index(_list_collection(store, collection), ancestry_field)


def plan_dependents(
    store: DocumentStore,
    resolver: AncestorResolver,
    dependents: Sequence[DependentCollection],
    ancestry_field: str,
    max_batch_size: int,
) -> List[DependentReport]:
    """Read every dependent and linked collection once and plan their corrections."""
    loaded = {name: _list_collection(store, name) for name in required_collections(dependents)}
    links = LinkResolver(resolver, {name: index_documents(docs) for name, docs in loaded.items()})
    reports = []
    for dep in dependents:
        dep_report = plan_dependent(dep, loaded[dep.name], links, ancestry_field)
        dep_report.total_chunks = count_chunks(len(dep_report.corrections), max_batch_size)
        reports.append(dep_report)
    return reports


def _fail(report: ReconciliationReport, exc: CommitFailure) -> None:
    report.status = FAILED
    report.error = str(exc)
    report.finished_at = _now()
    exc.report = report


def reconcile_units(
    store: DocumentStore,
    collection: Optional[str] = None,
    dry_run: bool = False,
    max_batch_size: Optional[int] = None,
    distinguished_type: Optional[str] = None,
    ancestry_field: Optional[str] = None,
    on_progress: Optional[Callable[[ChunkProgress], None]] = None,
    on_plan: Optional[Callable[[ReconciliationReport], None]] = None,
    dependents: Sequence[DependentCollection] = (),
) -> ReconciliationReport:
    """Run one reconciliation pass and return its report.

    `on_plan` is called with the report once corrections are planned,
    before anything is written. Each collection in `dependents` is
    written after the units, in order.

    Raises LoadFailure, or CommitFailure with the partial report
    attached as `exc.report`.
    """
    collection = collection or settings.COLLECTION
    max_batch_size = max_batch_size or settings.MAX_BATCH_SIZE
    ancestry_field = ancestry_field or settings.ANCESTRY_FIELD
    report = ReconciliationReport(collection=collection, dry_run=dry_run, started_at=_now())

    snapshot = load_snapshot(store, collection, ancestry_field)
    report.records_loaded = len(snapshot)

    resolver = AncestorResolver(snapshot, distinguished_type or settings.DISTINGUISHED_TYPE)
    report.corrections = plan_corrections(snapshot, resolver)
    report.warnings = collect_warnings(snapshot, resolver)
    report.total_chunks = count_chunks(len(report.corrections), max_batch_size)
    for w in report.warnings:
        LOG.warning("Unit %s has a %s parent reference (%s)", w.id, w.outcome, w.detail)
    if dependents:
        report.dependents = plan_dependents(store, resolver, dependents, ancestry_field, max_batch_size)
    if on_plan is not None:
        on_plan(report)

    try:
        result = apply_corrections(
            store,
            collection,
            report.corrections,
            dry_run=dry_run,
            max_batch_size=max_batch_size,
            ancestry_field=ancestry_field,
            on_progress=on_progress,
        )
    except CommitFailure as exc:
        report.applied = exc.applied
        report.chunks_committed = exc.last_committed_chunk
        _fail(report, exc)
        raise

    report.status = result.status
    report.applied = result.applied
    report.chunks_committed = result.chunks_committed

    for dep in report.dependents:
        try:
            dep_result = apply_corrections(
                store,
                dep.collection,
                dep.corrections,
                dry_run=dry_run,
                max_batch_size=max_batch_size,
                ancestry_field=ancestry_field,
                on_progress=on_progress,
            )
        except CommitFailure as exc:
            dep.status = FAILED
            dep.failed = True
            dep.applied = exc.applied
            dep.chunks_committed = exc.last_committed_chunk
            _fail(report, exc)
            raise
        dep.status = dep_result.status
        dep.applied = dep_result.applied
        dep.chunks_committed = dep_result.chunks_committed
        if dep_result.status != DRY_RUN:
            LOG.info("%s: %s", dep.collection, dep.stats())

    report.finished_at = _now()
    return report


def record_report(conn: sqlite3.Connection, report: ReconciliationReport) -> int:
    """Persist `report` to the run log and return the run id."""
    run_id = save_run(
        conn,
        collection=report.collection,
        mode=report.mode,
        status=report.status or FAILED,
        started_at=report.started_at,
        finished_at=report.finished_at or _now(),
        records_loaded=report.records_loaded,
        corrections_planned=len(report.corrections),
        corrections_applied=report.applied,
        chunks_committed=report.chunks_committed,
        error=report.error,
        summary={
            "warnings": [w.as_dict() for w in report.warnings],
            "total_chunks": report.total_chunks,
            "dependents": [d.stats() for d in report.dependents],
        },
    )
    save_corrections(conn, run_id, (c.as_dict() for c in report.corrections))
    return run_id


def run_and_record(
    conn: sqlite3.Connection,
    store: DocumentStore,
    collection: Optional[str] = None,
    dry_run: bool = False,
    max_batch_size: Optional[int] = None,
    on_progress: Optional[Callable[[ChunkProgress], None]] = None,
    on_plan: Optional[Callable[[ReconciliationReport], None]] = None,
    record: bool = True,
    lease_timeout: Optional[int] = None,
    dependents: Sequence[DependentCollection] = (),
) -> Tuple[Optional[int], ReconciliationReport]:
    """Run a reconciliation under the run lease and log it.

    Dry runs skip the lease. Failed runs are logged before the error
    propagates. Returns (run_id, report); run_id is None when `record`
    is false.
    """
    collection = collection or settings.COLLECTION

    def _run() -> ReconciliationReport:
        return reconcile_units(
            store,
            collection,
            dry_run=dry_run,
            max_batch_size=max_batch_size,
            on_progress=on_progress,
            on_plan=on_plan,
            dependents=dependents,
        )

    try:
        if dry_run:
            report = _run()
        else:
            with hold_lease(conn, collection, lease_timeout or settings.LEASE_TIMEOUT_SECONDS):
                report = _run()
    except CommitFailure as exc:
        if record and exc.report is not None:
            record_report(conn, exc.report)
        raise
    except LoadFailure as exc:
        if record:
            failed = ReconciliationReport(collection=collection, dry_run=dry_run, started_at=_now())
            failed.status = FAILED
            failed.error = str(exc)
            record_report(conn, failed)
        raise

    run_id = record_report(conn, report) if record else None
    if run_id is not None:
        LOG.info("Recorded %s run %d for %s (status=%s)", report.mode, run_id, collection, report.status)
    return run_id, report


__all__ = [
    "ReconciliationReport",
    "load_snapshot",
    "plan_dependents",
    "reconcile_units",
    "record_report",
    "run_and_record",
    "FAILED",
]
