"""API endpoints to plan, run and inspect unit ancestry reconciliations."""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field

from ..core.config import settings
from ..core.db import get_connection, init_db
from ..core.errors import CommitFailure, LeaseHeld, LoadFailure
from ..pipeline.dependents import select_dependents
from ..pipeline.exporter import export_report_xlsx
from ..pipeline.reconciliation import reconcile_units, run_and_record
from ..repo.reconciliation_runs import get_corrections_for_run, get_run, list_runs
from ..repo.stores import get_document_store

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _init_db_conn():
    init_db()
    return get_connection()


def _close(conn) -> None:
    try:
        conn.close()
    except Exception:
        pass


class ReconciliationRunIn(BaseModel):
    dry_run: bool = False
    batch_size: Optional[int] = Field(default=None, gt=0)
    collection: Optional[str] = None
    # dependent collections to repair as well; an empty list means all of them
    dependents: Optional[List[str]] = None


@router.get("/health")
def health_check():
    """Simple health check endpoint."""
    return {"status": "ok"}


@router.get("/units/reconciliation/plan")
def get_reconciliation_plan(collection: Optional[str] = None, with_dependents: bool = False):
    """Return the corrections a live run would apply. Never writes and is not recorded."""
    conn = _init_db_conn()
    try:
        store = get_document_store(conn)
        dependents = select_dependents() if with_dependents else ()
        report = reconcile_units(store, collection=collection, dry_run=True, dependents=dependents)
        return report.as_dict()
    except LoadFailure as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    finally:
        _close(conn)


@router.post("/units/reconciliation/run")
def start_reconciliation_run(payload: ReconciliationRunIn):
    """Run a reconciliation, record it and return the run id with its report.

    Returns 409 when another live run holds the lease, 502 when the unit
    collection cannot be read and 500 (with the partial report) when a
    write batch fails.
    """
    conn = _init_db_conn()
    try:
        store = get_document_store(conn)
        dependents = () if payload.dependents is None else select_dependents(payload.dependents or None)
        run_id, report = run_and_record(
            conn,
            store,
            collection=payload.collection,
            dry_run=payload.dry_run,
            max_batch_size=payload.batch_size,
            dependents=dependents,
        )
        return {"run_id": run_id, **report.as_dict()}
    except LeaseHeld as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except LoadFailure as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except CommitFailure as exc:
        detail = {
            "message": str(exc),
            "last_committed_chunk": exc.last_committed_chunk,
            "applied": exc.applied,
            "report": exc.report.as_dict() if exc.report is not None else None,
        }
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    finally:
        _close(conn)


@router.get("/units/reconciliation/runs")
def list_reconciliation_runs(limit: int = 50, offset: int = 0):
    """List recorded runs, most recent first."""
    conn = _init_db_conn()
    try:
        payload = list_runs(conn, limit=limit, offset=offset)
        return {"runs": payload["runs"], "total": payload["total"], "limit": limit, "offset": offset}
    finally:
        _close(conn)


@router.get("/units/reconciliation/runs/{run_id}")
def get_reconciliation_run(run_id: int):
    """Return a recorded run and its corrections."""
    conn = _init_db_conn()
    try:
        run = get_run(conn, run_id)
        if run is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Run not found")
        return {"run": run, "corrections": get_corrections_for_run(conn, run_id)}
    finally:
        _close(conn)


@router.get("/units/reconciliation/runs/{run_id}/export")
def export_reconciliation_run(run_id: int):
    """Export a recorded run (summary, corrections, warnings) to an Excel file."""
    conn = _init_db_conn()
    try:
        run = get_run(conn, run_id)
        if run is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Run not found")
        corrections = get_corrections_for_run(conn, run_id)
        summary = dict(run)
        details = summary.pop("summary") or {}

        filename = f"unit_reconciliation_run_{run_id}.xlsx"
        export_path = Path(settings.STORAGE_PATH) / "exports" / filename
        export_report_xlsx(
            summary, corrections, export_path, details.get("warnings", []), details.get("dependents", [])
        )
        return FileResponse(str(export_path), filename=filename, media_type=XLSX_MEDIA_TYPE)
    finally:
        _close(conn)


__all__ = ["router"]
