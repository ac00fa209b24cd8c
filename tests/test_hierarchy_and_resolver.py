from unitsync.pipeline.hierarchy import build_unit_index, unit_from_document
from unitsync.pipeline.resolver import (
    ANCESTOR,
    CYCLE,
    DANGLING,
    ROOT,
    SELF,
    UNKNOWN,
    AncestorResolver,
)


def _resolver(records):
    return AncestorResolver(build_unit_index(records))


def test_build_unit_index_keeps_order_and_skips_missing_ids():
    records = [
        {"id": "C", "unitType": "company", "parentId": "A"},
        {"name": "no id", "unitType": "company"},
        {"id": "A", "unitType": "battalion", "battalionId": "A"},
        {"id": "", "unitType": "platoon"},
    ]
    snapshot = build_unit_index(records)
    assert [u.id for u in snapshot] == ["C", "A"]
    assert len(snapshot) == 2
    assert "A" in snapshot and "ghost" not in snapshot


def test_build_unit_index_passes_dangling_and_self_loops_through():
    snapshot = build_unit_index([
        {"id": "X", "unitType": "company", "parentId": "ghost"},
        {"id": "Y", "unitType": "company", "parentId": "Y"},
    ])
    assert snapshot.get("X").parent_id == "ghost"
    assert snapshot.get("Y").parent_id == "Y"


def test_unit_from_document_normalizes_empty_parent_and_ancestry_field():
    unit = unit_from_document({"id": "P", "unitType": "platoon", "parentId": "", "battalionId": "A", "name": "1st"})
    assert unit.parent_id is None
    assert unit.ancestry_id == "A"
    assert unit.name == "1st"

    custom = unit_from_document({"id": "Q", "unitType": "company", "rootUnit": "Z"}, ancestry_field="rootUnit")
    assert custom.ancestry_id == "Z"


def test_battalion_resolves_to_itself():
    resolver = _resolver([{"id": "A", "unitType": "battalion", "parentId": "B"}, {"id": "B", "unitType": "battalion"}])
    trace = resolver.trace("A")
    assert trace.ancestor_id == "A"
    assert trace.outcome == SELF


def test_nearest_battalion_ancestor_wins():
    resolver = _resolver([
        {"id": "BN1", "unitType": "battalion", "parentId": "BN0"},
        {"id": "BN0", "unitType": "battalion"},
        {"id": "CO", "unitType": "company", "parentId": "BN1"},
        {"id": "PL", "unitType": "platoon", "parentId": "CO"},
    ])
    assert resolver.resolve("CO") == "BN1"
    trace = resolver.trace("PL")
    assert trace.ancestor_id == "BN1"
    assert trace.outcome == ANCESTOR
    assert trace.depth == 2


def test_chain_without_battalion_resolves_to_none():
    resolver = _resolver([
        {"id": "CO", "unitType": "company"},
        {"id": "PL", "unitType": "platoon", "parentId": "CO"},
    ])
    trace = resolver.trace("PL")
    assert trace.ancestor_id is None
    assert trace.outcome == ROOT
    assert not trace.malformed


def test_dangling_parent_resolves_to_none():
    resolver = _resolver([{"id": "A", "unitType": "company", "parentId": "ghost"}])
    trace = resolver.trace("A")
    assert trace.ancestor_id is None
    assert trace.outcome == DANGLING
    assert trace.detail == "ghost"
    assert trace.malformed


def test_cycle_terminates_and_resolves_to_none():
    resolver = _resolver([
        {"id": "A", "unitType": "company", "parentId": "B"},
        {"id": "B", "unitType": "company", "parentId": "A"},
        {"id": "C", "unitType": "platoon", "parentId": "A"},
    ])
    for unit_id in ("A", "B", "C"):
        trace = resolver.trace(unit_id)
        assert trace.ancestor_id is None
        assert trace.outcome == CYCLE


def test_self_loop_resolves_to_none():
    resolver = _resolver([{"id": "S", "unitType": "company", "parentId": "S"}])
    trace = resolver.trace("S")
    assert trace.ancestor_id is None
    assert trace.outcome == CYCLE
    assert trace.detail == "S"


def test_battalion_inside_cycle_is_still_found():
    resolver = _resolver([
        {"id": "BN", "unitType": "battalion", "parentId": "CO"},
        {"id": "CO", "unitType": "company", "parentId": "BN"},
    ])
    assert resolver.resolve("CO") == "BN"
    assert resolver.resolve("BN") == "BN"


def test_unknown_unit_and_custom_distinguished_type():
    snapshot = build_unit_index([
        {"id": "BDE", "unitType": "brigade"},
        {"id": "BN", "unitType": "battalion", "parentId": "BDE"},
    ])
    resolver = AncestorResolver(snapshot, distinguished_type="brigade")
    assert resolver.resolve("BN") == "BDE"
    assert resolver.trace("nope").outcome == UNKNOWN
    assert resolver.resolve("nope") is None


def test_resolve_is_repeatable_on_deep_chain():
    records = [{"id": "BN", "unitType": "battalion"}]
    parent = "BN"
    for i in range(2000):
        records.append({"id": f"U{i}", "unitType": "company", "parentId": parent})
        parent = f"U{i}"
    resolver = _resolver(records)
    assert resolver.resolve("U1999") == "BN"
    assert resolver.resolve("U1999") == resolver.resolve("U1999")
