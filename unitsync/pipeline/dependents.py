"""Dependent-collection pass.

Personnel, equipment, equipment assignments and assignment requests
carry a copy of their battalion. Each document's battalion is derived
through its links, in order: a `unitId` resolves through the unit
hierarchy, an `equipmentId` or `personnelId` through the linked
document's own `unitId`. The first link that yields a battalion wins.
Documents with no derivable battalion are skipped and left untouched.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .hierarchy import DEFAULT_ANCESTRY_FIELD, NAME_FIELD
from .planner import Correction
from .resolver import AncestorResolver


LOG = logging.getLogger(__name__)

UNIT_ID_FIELD = "unitId"


@dataclass(frozen=True)
class DependentLink:
    field: str
    # collection of the linked document; None when `field` holds a unit id
    collection: Optional[str] = None


@dataclass(frozen=True)
class DependentCollection:
    name: str
    links: Tuple[DependentLink, ...]

    @property
    def linked_collections(self) -> Tuple[str, ...]:
        return tuple(link.collection for link in self.links if link.collection)


DEFAULT_DEPENDENTS: Tuple[DependentCollection, ...] = (
    DependentCollection("personnel", (DependentLink(UNIT_ID_FIELD),)),
    DependentCollection("equipment", (DependentLink(UNIT_ID_FIELD),)),
    DependentCollection(
        "equipmentAssignments",
        (
            DependentLink("equipmentId", "equipment"),
            DependentLink("personnelId", "personnel"),
            DependentLink(UNIT_ID_FIELD),
        ),
    ),
    DependentCollection("assignmentRequests", (DependentLink("equipmentId", "equipment"),)),
)


def select_dependents(names: Optional[Iterable[str]] = None) -> Tuple[DependentCollection, ...]:
    """Return the known dependent collections named in `names` (all when None).

    Raises ValueError for an unknown name.
    """
    if names is None:
        return DEFAULT_DEPENDENTS
    by_name = {d.name: d for d in DEFAULT_DEPENDENTS}
    selected = []
    for name in names:
        if name not in by_name:
            raise ValueError(f"Unknown dependent collection '{name}'. Known: {', '.join(by_name)}")
        selected.append(by_name[name])
    return tuple(selected)


def required_collections(dependents: Sequence[DependentCollection]) -> List[str]:
    """Collections to read for `dependents`: the dependents themselves plus every linked one."""
    names: List[str] = []
    for dep in dependents:
        for name in (dep.name, *dep.linked_collections):
            if name not in names:
                names.append(name)
    return names


def _ref(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def index_documents(docs: Iterable[Mapping[str, Any]]) -> Dict[str, Mapping[str, Any]]:
    return {str(d["id"]): d for d in docs if d.get("id") is not None}


class LinkResolver:
    """Derive a dependent document's battalion from its links."""

    def __init__(self, resolver: AncestorResolver, linked: Mapping[str, Mapping[str, Mapping[str, Any]]]) -> None:
        self.resolver = resolver
        self.linked = linked

    def _unit_for(self, doc: Mapping[str, Any], link: DependentLink) -> Optional[str]:
        ref = _ref(doc.get(link.field))
        if ref is None or link.collection is None:
            return ref
        target = self.linked.get(link.collection, {}).get(ref)
        if target is None:
            return None
        return _ref(target.get(UNIT_ID_FIELD))

    def resolve(self, doc: Mapping[str, Any], links: Sequence[DependentLink]) -> Tuple[Optional[str], Optional[str]]:
        """Return (battalion id, link field used), or (None, None)."""
        for link in links:
            unit_id = self._unit_for(doc, link)
            if unit_id is None:
                continue
            battalion = self.resolver.resolve(unit_id)
            if battalion is not None:
                return battalion, link.field
        return None, None


@dataclass
class DependentReport:
    """Plan and outcome of one dependent collection."""

    collection: str
    total: int = 0
    unchanged: int = 0
    skipped: int = 0
    corrections: List[Correction] = field(default_factory=list)
    status: Optional[str] = None
    applied: int = 0
    chunks_committed: int = 0
    total_chunks: int = 0
    failed: bool = False

    @property
    def errors(self) -> int:
        # planned corrections a failed commit left unwritten
        return len(self.corrections) - self.applied if self.failed else 0

    def stats(self) -> Dict[str, Any]:
        return {
            "collection": self.collection,
            "status": self.status,
            "total": self.total,
            "planned": len(self.corrections),
            "updated": self.applied,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
            "errors": self.errors,
            "chunks_committed": self.chunks_committed,
            "total_chunks": self.total_chunks,
        }

    def as_dict(self) -> Dict[str, Any]:
        return {**self.stats(), "corrections": [c.as_dict() for c in self.corrections]}


def plan_dependent(
    dependent: DependentCollection,
    docs: Sequence[Mapping[str, Any]],
    links: LinkResolver,
    ancestry_field: str = DEFAULT_ANCESTRY_FIELD,
) -> DependentReport:
    """Plan the ancestry corrections for one dependent collection."""
    report = DependentReport(collection=dependent.name, total=len(docs))
    for doc in docs:
        doc_id = doc.get("id")
        if doc_id is None:
            report.skipped += 1
            continue
        battalion, via = links.resolve(doc, dependent.links)
        if battalion is None:
            LOG.warning("%s %s: no battalion found through its links, skipping", dependent.name, doc_id)
            report.skipped += 1
            continue
        stored = doc.get(ancestry_field)
        if stored == battalion:
            report.unchanged += 1
            continue
        report.corrections.append(
            Correction(
                id=str(doc_id),
                unit_type=None,
                name=doc.get(NAME_FIELD),
                from_value=None if stored is None else str(stored),
                to_value=battalion,
                outcome=via,
                stored_value=stored,
            )
        )
    return report


__all__ = [
    "DependentCollection",
    "DependentLink",
    "DependentReport",
    "LinkResolver",
    "DEFAULT_DEPENDENTS",
    "UNIT_ID_FIELD",
    "index_documents",
    "plan_dependent",
    "required_collections",
    "select_dependents",
]
