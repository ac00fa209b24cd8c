"""Hierarchy graph builder.

Turns the raw unit documents of one bulk read into an immutable,
id-keyed snapshot. No validation happens here: dangling parents and
self-loops are kept as-is for the resolver to deal with.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional


LOG = logging.getLogger(__name__)

UNIT_TYPE_FIELD = "unitType"
PARENT_FIELD = "parentId"
NAME_FIELD = "name"
UPDATED_AT_FIELD = "updatedAt"
DEFAULT_ANCESTRY_FIELD = "battalionId"


@dataclass(frozen=True)
class Unit:
    id: str
    unit_type: Optional[str]
    parent_id: Optional[str]
    ancestry_id: Optional[str]
    name: Optional[str] = None
    updated_at: Any = None
    # the stored value exactly as read, for write preconditions
    stored_ancestry: Any = None


def _optional_id(value: Any) -> Optional[str]:
    # an empty string is a missing reference
    if value is None or value == "":
        return None
    return str(value)


def unit_from_document(doc: Mapping[str, Any], ancestry_field: str = DEFAULT_ANCESTRY_FIELD) -> Unit:
    """Build a Unit from a store document carrying its `id`."""
    ancestry = doc.get(ancestry_field)
    return Unit(
        id=str(doc["id"]),
        unit_type=doc.get(UNIT_TYPE_FIELD),
        parent_id=_optional_id(doc.get(PARENT_FIELD)),
        ancestry_id=None if ancestry is None else str(ancestry),
        name=doc.get(NAME_FIELD),
        updated_at=doc.get(UPDATED_AT_FIELD),
        stored_ancestry=ancestry,
    )


class HierarchySnapshot:
    """Read-only view of all units keyed by id, in load order."""

    def __init__(self, units: Mapping[str, Unit]) -> None:
        self._units = MappingProxyType(dict(units))

    @property
    def units(self) -> Mapping[str, Unit]:
        return self._units

    def get(self, unit_id: Optional[str]) -> Optional[Unit]:
        if unit_id is None:
            return None
        return self._units.get(unit_id)

    def __contains__(self, unit_id: object) -> bool:
        return unit_id in self._units

    def __iter__(self) -> Iterator[Unit]:
        return iter(self._units.values())

    def __len__(self) -> int:
        return len(self._units)


def build_unit_index(records: Iterable[Mapping[str, Any]], ancestry_field: str = DEFAULT_ANCESTRY_FIELD) -> HierarchySnapshot:
    """Index `records` by id.

    Records without an id are skipped with a warning. A duplicated id
    keeps its first position and the last record's values.
    """
    units: Dict[str, Unit] = {}
    for rec in records:
        if rec.get("id") in (None, ""):
            LOG.warning("Skipping unit record without id: %r", rec.get(NAME_FIELD))
            continue
        unit = unit_from_document(rec, ancestry_field)
        if unit.id in units:
            LOG.warning("Duplicate unit id %s in snapshot", unit.id)
        units[unit.id] = unit
    return HierarchySnapshot(units)


__all__ = ["Unit", "HierarchySnapshot", "build_unit_index", "unit_from_document", "DEFAULT_ANCESTRY_FIELD"]
