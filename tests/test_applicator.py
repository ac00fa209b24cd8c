import pytest

from unitsync.core.errors import CommitFailure, StoreWriteError
from unitsync.pipeline.applicator import (
    COMPLETED,
    DRY_RUN,
    NOTHING_TO_DO,
    apply_corrections,
    build_updates,
    chunked,
    count_chunks,
)
from unitsync.pipeline.planner import Correction
from unitsync.repo.document_store import InMemoryDocumentStore


class FlakyStore(InMemoryDocumentStore):
    """In-memory store that fails on selected commit calls (1-based)."""

    def __init__(self, collections=None, fail_on_calls=()):
        super().__init__(collections)
        self.fail_on_calls = set(fail_on_calls)
        self.calls = 0

    def commit_batch(self, collection, updates, max_batch_size):
        self.calls += 1
        if self.calls in self.fail_on_calls:
            raise StoreWriteError("simulated outage")
        return super().commit_batch(collection, updates, max_batch_size)


def _companies(n):
    docs = [{"id": "BN", "unitType": "battalion", "battalionId": "BN"}]
    docs += [{"id": f"C{i}", "unitType": "company", "parentId": "BN", "battalionId": None} for i in range(n)]
    return docs


def _corrections(n):
    return [Correction(f"C{i}", "company", None, None, "BN", "ancestor") for i in range(n)]


@pytest.mark.parametrize("n,b,sizes", [(1200, 500, [500, 500, 200]), (500, 500, [500]), (7, 3, [3, 3, 1]), (1, 10, [1])])
def test_chunked_partitions_without_duplicates(n, b, sizes):
    items = list(range(n))
    chunks = chunked(items, b)
    assert [len(c) for c in chunks] == sizes
    assert len(chunks) == count_chunks(n, b)
    assert [x for c in chunks for x in c] == items


def test_chunked_rejects_non_positive_size():
    with pytest.raises(ValueError):
        chunked([1, 2], 0)


def test_build_updates_are_conditional_on_planned_value():
    updates = build_updates([Correction("C1", "company", "Alpha", "OLD", "BN", "ancestor")])
    assert updates[0].doc_id == "C1"
    assert updates[0].fields == {"battalionId": "BN"}
    assert updates[0].expected == {"battalionId": "OLD"}


def test_build_updates_expect_the_raw_stored_value():
    updates = build_updates([Correction("C1", "company", None, "7", "BN", "ancestor", stored_value=7)])
    assert updates[0].expected == {"battalionId": 7}


def test_dry_run_writes_nothing():
    store = InMemoryDocumentStore({"units": _companies(3)})
    before = store.list_all("units")
    result = apply_corrections(store, "units", _corrections(3), dry_run=True, max_batch_size=2)
    assert result.status == DRY_RUN
    assert result.planned == 3 and result.applied == 0
    assert result.total_chunks == 2
    assert store.commits == []
    assert store.list_all("units") == before


def test_no_corrections_is_nothing_to_do():
    store = InMemoryDocumentStore({"units": _companies(0)})
    result = apply_corrections(store, "units", [], dry_run=False, max_batch_size=500)
    assert result.status == NOTHING_TO_DO
    assert store.commits == []


def test_live_run_commits_sequential_chunks_and_reports_progress():
    store = InMemoryDocumentStore({"units": _companies(1200)})
    progress = []
    result = apply_corrections(store, "units", _corrections(1200), dry_run=False, max_batch_size=500, on_progress=progress.append)

    assert result.status == COMPLETED
    assert result.applied == 1200
    assert result.chunks_committed == 3
    assert [len(c) for c in store.commits] == [500, 500, 200]
    assert [(p.chunk_index, p.applied) for p in progress] == [(1, 500), (2, 1000), (3, 1200)]
    doc = store.get_by_id("units", "C1199")
    assert doc["battalionId"] == "BN"
    assert doc["updatedAt"]


def test_failure_on_second_chunk_leaves_first_committed():
    store = FlakyStore({"units": _companies(1200)}, fail_on_calls={2})
    with pytest.raises(CommitFailure) as excinfo:
        apply_corrections(store, "units", _corrections(1200), dry_run=False, max_batch_size=500)

    exc = excinfo.value
    assert exc.chunk_index == 2
    assert exc.last_committed_chunk == 1
    assert exc.applied == 500
    assert store.calls == 2
    fixed = [d for d in store.list_all("units") if d["id"] != "BN" and d["battalionId"] == "BN"]
    assert len(fixed) == 500


def test_precondition_conflict_fails_whole_chunk():
    store = InMemoryDocumentStore({"units": _companies(2)})
    stale = [Correction("C0", "company", None, None, "BN", "ancestor"), Correction("C1", "company", None, "WRONG", "BN", "ancestor")]
    with pytest.raises(CommitFailure):
        apply_corrections(store, "units", stale, dry_run=False, max_batch_size=10)
    assert store.get_by_id("units", "C0")["battalionId"] is None


def test_invalid_batch_size_is_rejected():
    with pytest.raises(ValueError):
        apply_corrections(InMemoryDocumentStore(), "units", _corrections(1), dry_run=False, max_batch_size=0)
