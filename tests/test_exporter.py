import pandas as pd

from unitsync.core.config import settings
from unitsync.pipeline.dependents import select_dependents
from unitsync.pipeline.exporter import corrections_dataframe, export_report, export_report_xlsx
from unitsync.pipeline.reconciliation import reconcile_units
from unitsync.repo.document_store import InMemoryDocumentStore


def _report():
    store = InMemoryDocumentStore({"units": [
        {"id": "A", "unitType": "battalion"},
        {"id": "B", "unitType": "company", "parentId": "A", "name": "Alpha"},
        {"id": "C", "unitType": "company", "parentId": "ghost", "battalionId": "A"},
    ]})
    return reconcile_units(store, "units", dry_run=True)


def test_corrections_dataframe_headers():
    df = corrections_dataframe([{"id": "B", "unit_type": "company", "name": "Alpha", "from": None, "to": "A", "outcome": "ancestor"}])
    assert list(df.columns) == ["Unit ID", "Unit Type", "Name", "Stored battalionId", "Resolved battalionId", "Resolution"]
    assert df.iloc[0]["Resolved battalionId"] == "A"


def test_export_report_csv(tmp_path):
    out = export_report(_report(), tmp_path / "out" / "plan.csv")
    df = pd.read_csv(out)
    assert df["Unit ID"].tolist() == ["A", "B", "C"]


def test_export_report_xlsx_sheets(tmp_path):
    out = export_report(_report(), tmp_path / "plan.xlsx")
    sheets = pd.read_excel(out, sheet_name=None)
    assert set(sheets) == {"summary", "corrections", "warnings"}
    assert sheets["summary"].iloc[0]["mode"] == "dry-run"
    assert sheets["warnings"]["Unit ID"].tolist() == ["C"]


def test_export_report_xlsx_with_no_rows(tmp_path):
    out = export_report_xlsx({"status": "nothing_to_do"}, [], tmp_path / "empty.xlsx")
    sheets = pd.read_excel(out, sheet_name=None)
    assert sheets["corrections"].empty


def test_headers_follow_configured_ancestry_field(monkeypatch):
    monkeypatch.setattr(settings, "ANCESTRY_FIELD", "brigadeId")
    df = corrections_dataframe([{"id": "B", "unit_type": "company", "name": None, "from": None, "to": "A", "outcome": "ancestor"}])
    assert "Stored brigadeId" in df.columns
    assert df.iloc[0]["Resolved brigadeId"] == "A"


def test_export_report_xlsx_includes_dependent_stats(tmp_path):
    store = InMemoryDocumentStore({
        "units": [{"id": "A", "unitType": "battalion", "battalionId": "A"}],
        "personnel": [{"id": "P1", "unitId": "A"}, {"id": "P2", "unitId": "ghost"}],
    })
    report = reconcile_units(store, "units", dry_run=True, dependents=select_dependents(["personnel"]))
    out = export_report(report, tmp_path / "plan.xlsx")
    sheets = pd.read_excel(out, sheet_name=None)
    row = sheets["dependents"].iloc[0]
    assert row["collection"] == "personnel"
    assert (row["total"], row["planned"], row["skipped"]) == (2, 1, 1)
