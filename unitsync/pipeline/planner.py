"""Diff planner: compare stored ancestry with the resolved value."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .hierarchy import HierarchySnapshot
from .resolver import AncestorResolver


@dataclass(frozen=True)
class Correction:
    id: str
    unit_type: Optional[str]
    name: Optional[str]
    from_value: Optional[str]
    to_value: Optional[str]
    outcome: str
    stored_value: Any = None

    @property
    def expected_value(self) -> Any:
        """The value a write expects to find: the raw stored value when one was read."""
        return self.from_value if self.stored_value is None else self.stored_value

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "unit_type": self.unit_type,
            "name": self.name,
            "from": self.from_value,
            "to": self.to_value,
            "outcome": self.outcome,
        }


@dataclass(frozen=True)
class ReferenceWarning:
    """A unit whose parent chain is broken (dangling or cyclic)."""

    id: str
    name: Optional[str]
    outcome: str
    detail: Optional[str]

    def as_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "outcome": self.outcome, "detail": self.detail}


def plan_corrections(snapshot: HierarchySnapshot, resolver: AncestorResolver) -> List[Correction]:
    """Return one Correction per unit whose stored ancestry is wrong, in snapshot order.

    A stored None and an absent field compare equal; both differ from
    any concrete id. The raw stored value is compared, so a non-string
    id such as `7` is corrected to the string id.
    """
    corrections: List[Correction] = []
    for unit in snapshot:
        resolution = resolver.trace(unit.id)
        if unit.stored_ancestry != resolution.ancestor_id:
            corrections.append(
                Correction(
                    id=unit.id,
                    unit_type=unit.unit_type,
                    name=unit.name,
                    from_value=unit.ancestry_id,
                    to_value=resolution.ancestor_id,
                    outcome=resolution.outcome,
                    stored_value=unit.stored_ancestry,
                )
            )
    return corrections


def collect_warnings(snapshot: HierarchySnapshot, resolver: AncestorResolver) -> List[ReferenceWarning]:
    warnings: List[ReferenceWarning] = []
    for unit in snapshot:
        resolution = resolver.trace(unit.id)
        if resolution.malformed:
            warnings.append(ReferenceWarning(unit.id, unit.name, resolution.outcome, resolution.detail))
    return warnings


__all__ = ["Correction", "ReferenceWarning", "plan_corrections", "collect_warnings"]
