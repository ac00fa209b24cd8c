"""Export helpers: build CSV/XLSX files from a reconciliation report or run.

Reports are flattened into DataFrames (summary, corrections, warnings,
dependent collection stats) and written with pandas.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd

from ..core.config import settings


LOG = logging.getLogger(__name__)

# Constants
CORRECTION_COLUMNS = ["id", "unit_type", "name", "from", "to", "outcome"]
WARNING_COLUMNS = ["id", "name", "outcome", "detail"]
DEPENDENT_COLUMNS = ["collection", "status", "total", "planned", "updated", "unchanged", "skipped", "errors"]


def header_trans(ancestry_field: Optional[str] = None) -> Dict[str, str]:
    """Column headers for exported sheets, named after the ancestry field."""
    ancestry_field = ancestry_field or settings.ANCESTRY_FIELD
    return {
        "id": "Unit ID",
        "unit_type": "Unit Type",
        "name": "Name",
        "from": f"Stored {ancestry_field}",
        "to": f"Resolved {ancestry_field}",
        "outcome": "Resolution",
        "detail": "Reference",
    }


def _frame(rows: Iterable[Dict[str, Any]], columns: List[str]) -> pd.DataFrame:
    df = pd.DataFrame(list(rows), columns=columns)
    return df.rename(columns=header_trans())


def corrections_dataframe(corrections: Iterable[Dict[str, Any]]) -> pd.DataFrame:
    return _frame(corrections, CORRECTION_COLUMNS)


def warnings_dataframe(warnings: Iterable[Dict[str, Any]]) -> pd.DataFrame:
    return _frame(warnings, WARNING_COLUMNS)


def dependents_dataframe(stats: Iterable[Dict[str, Any]]) -> pd.DataFrame:
    return pd.DataFrame(list(stats), columns=DEPENDENT_COLUMNS)


def export_report_xlsx(
    summary: Dict[str, Any],
    corrections: Iterable[Dict[str, Any]],
    path: Union[str, Path],
    warnings: Optional[Iterable[Dict[str, Any]]] = None,
    dependents: Optional[Iterable[Dict[str, Any]]] = None,
) -> str:
    """Write summary, corrections and warnings sheets to `path`.

    A `dependents` sheet is added when dependent collection stats are
    given. Returns the absolute path to the written file.
    """
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    dependents = list(dependents or [])
    with pd.ExcelWriter(file_path) as writer:
        pd.DataFrame([summary]).to_excel(writer, sheet_name="summary", index=False)
        corrections_dataframe(corrections).to_excel(writer, sheet_name="corrections", index=False)
        warnings_dataframe(warnings or []).to_excel(writer, sheet_name="warnings", index=False)
        if dependents:
            dependents_dataframe(dependents).to_excel(writer, sheet_name="dependents", index=False)
    LOG.info("Exported reconciliation report to %s", file_path)
    return str(file_path.resolve())


def export_report(report: Any, path: Union[str, Path]) -> str:
    """Export a ReconciliationReport to `.csv` (unit corrections only) or `.xlsx`."""
    file_path = Path(path)
    data = report.as_dict()
    if file_path.suffix.lower() == ".csv":
        file_path.parent.mkdir(parents=True, exist_ok=True)
        corrections_dataframe(data["corrections"]).to_csv(file_path, index=False)
        return str(file_path.resolve())
    stats = [d.stats() for d in report.dependents]
    return export_report_xlsx(data["summary"], data["corrections"], file_path, data["warnings"], stats)


__all__ = [
    "corrections_dataframe",
    "dependents_dataframe",
    "warnings_dataframe",
    "export_report_xlsx",
    "export_report",
    "header_trans",
]
