"""Command line entry point for the battalion ancestry reconciler.

Usage:
  unitsync [--dry-run] [--batch-size N] [--backend sqlite|firestore]
           [--collection NAME] [--dependents [NAME ...]] [--report PATH]
           [--no-record]

Exit codes: 0 success (including dry run and nothing to do), 1 load
failure, 2 commit failure, 3 another run holds the lease, 4 invalid
configuration.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from google.api_core import exceptions as gcp_exceptions
from google.auth import exceptions as auth_exceptions

from .core.config import settings
from .core.db import get_connection, init_db
from .core.errors import CommitFailure, LeaseHeld, LoadFailure
from .pipeline.applicator import COMPLETED, NOTHING_TO_DO, ChunkProgress
from .pipeline.dependents import DEFAULT_DEPENDENTS, DependentReport, select_dependents
from .pipeline.exporter import export_report
from .pipeline.reconciliation import ReconciliationReport, run_and_record
from .repo.stores import BACKENDS, get_document_store


LOG = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_LOAD_FAILURE = 1
EXIT_COMMIT_FAILURE = 2
EXIT_LEASE_HELD = 3
EXIT_BAD_CONFIG = 4


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="unitsync",
        description="Repair the battalion ancestry field on every unit document.",
    )
    parser.add_argument("--dry-run", action="store_true", help="Report the corrections without writing anything")
    parser.add_argument("--batch-size", type=int, default=None, help=f"Max updates per write batch (default {settings.MAX_BATCH_SIZE})")
    parser.add_argument("--backend", choices=BACKENDS, default=None, help=f"Document store backend (default {settings.BACKEND})")
    parser.add_argument("--collection", default=None, help=f"Unit collection name (default {settings.COLLECTION})")
    parser.add_argument(
        "--dependents",
        nargs="*",
        choices=[d.name for d in DEFAULT_DEPENDENTS],
        default=None,
        metavar="NAME",
        help="Also repair the dependent collections (all of them when no NAME is given)",
    )
    parser.add_argument("--report", default=None, help="Write the correction report to a .csv or .xlsx file")
    parser.add_argument("--no-record", action="store_true", help="Do not record the run in the local run log")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default WARNING)")
    return parser


def _fmt(value: Optional[str]) -> str:
    return json.dumps(value)


def print_plan(report: ReconciliationReport) -> None:
    print(f"Loaded {report.records_loaded} unit(s).")
    if not report.corrections:
        print(f"\nAll units already have correct {settings.ANCESTRY_FIELD}. Nothing to do.")
    else:
        print(f"\n{len(report.corrections)} unit(s) need patching:\n")
        for c in report.corrections:
            print(f"  [{c.unit_type}] {_fmt(c.name)} ({c.id}): {_fmt(c.from_value)} -> {_fmt(c.to_value)}")

    if report.warnings:
        print(f"\n{len(report.warnings)} unit(s) have broken parent references:")
        for w in report.warnings:
            print(f"  {w.id}: {w.outcome} at {_fmt(w.detail)}")

    for dep in report.dependents:
        print(
            f"\n{dep.collection}: {len(dep.corrections)} to patch, {dep.unchanged} unchanged, "
            f"{dep.skipped} skipped (of {dep.total})"
        )
        for c in dep.corrections:
            print(f"  {c.id}: {_fmt(c.from_value)} -> {_fmt(c.to_value)} (via {c.outcome})")

    if report.dry_run:
        print("\nDry run - no changes written.")
    elif report.corrections or any(dep.corrections for dep in report.dependents):
        print("\nApplying patches...")


def print_progress(progress: ChunkProgress) -> None:
    print(f"  Committed {progress.collection} batch {progress.chunk_index}/{progress.total_chunks} ({progress.applied} / {progress.planned})")


def print_dependent_stats(dependents: List[DependentReport]) -> None:
    for dep in dependents:
        s = dep.stats()
        print(f"  {dep.collection}: {s['updated']} updated, {s['unchanged']} unchanged, {s['skipped']} skipped, {s['errors']} errors")


def _export(report: Optional[ReconciliationReport], path: Optional[str]) -> None:
    if report is None or not path:
        return
    out = export_report(report, path)
    print(f"Report written to: {out}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.batch_size is not None and args.batch_size < 1:
        print(f"Invalid --batch-size {args.batch_size}: must be a positive integer", file=sys.stderr)
        return EXIT_BAD_CONFIG

    print(f"Mode: {'DRY RUN (no writes)' if args.dry_run else 'LIVE'}\n")

    init_db()
    conn = get_connection()
    try:
        try:
            store = get_document_store(conn, args.backend)
        except ValueError as exc:
            print(f"Invalid configuration: {exc}", file=sys.stderr)
            return EXIT_BAD_CONFIG
        except (auth_exceptions.GoogleAuthError, gcp_exceptions.GoogleAPIError) as exc:
            print(f"Reconciliation failed at stage 'configure': cannot open the document store: {exc}", file=sys.stderr)
            return EXIT_BAD_CONFIG

        dependents = () if args.dependents is None else select_dependents(args.dependents or None)

        try:
            run_id, report = run_and_record(
                conn,
                store,
                collection=args.collection,
                dry_run=args.dry_run,
                max_batch_size=args.batch_size,
                on_progress=print_progress,
                on_plan=print_plan,
                record=not args.no_record,
                dependents=dependents,
            )
        except LoadFailure as exc:
            print(f"\nReconciliation failed at stage 'load': {exc}", file=sys.stderr)
            return EXIT_LOAD_FAILURE
        except CommitFailure as exc:
            print(
                f"\nReconciliation failed at stage 'commit': {exc}\n"
                f"Last committed batch: {exc.last_committed_chunk} ({exc.applied} update(s) applied). "
                "Re-run to apply the remaining corrections.",
                file=sys.stderr,
            )
            if exc.report is not None:
                print_dependent_stats(exc.report.dependents)
            _export(exc.report, args.report)
            return EXIT_COMMIT_FAILURE
        except LeaseHeld as exc:
            print(f"\nReconciliation not started: {exc}", file=sys.stderr)
            return EXIT_LEASE_HELD

        _export(report, args.report)
        if report.status == COMPLETED:
            print(f"\nMigration complete. {report.applied} unit(s) updated in {report.chunks_committed} batch(es).")
        elif report.status == NOTHING_TO_DO:
            LOG.info("Nothing to do for %s", report.collection)
        if report.dependents and not report.dry_run:
            print("\nDependent collections:")
            print_dependent_stats(report.dependents)
        if run_id is not None:
            LOG.info("Run recorded with id %s", run_id)
        return EXIT_OK
    finally:
        conn.close()


if __name__ == "__main__":
    sys.exit(main())
