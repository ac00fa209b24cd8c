"""Ancestor resolver.

Walks `parentId` links upward from a unit until it meets a unit of the
distinguished type (a battalion). The walk is iterative and keeps its
own visited set, so repeated calls share no state and a cycle in bad
data ends the walk instead of looping.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Set

from .hierarchy import HierarchySnapshot


DEFAULT_DISTINGUISHED_TYPE = "battalion"

# Resolution outcomes
SELF = "self"
ANCESTOR = "ancestor"
ROOT = "root"
DANGLING = "dangling"
CYCLE = "cycle"
UNKNOWN = "unknown"

# outcomes that point at broken parent references
MALFORMED_OUTCOMES = frozenset({DANGLING, CYCLE})


@dataclass(frozen=True)
class Resolution:
    """Result of one upward walk.

    `detail` names the missing parent id for DANGLING and the id that
    closed the loop for CYCLE.
    """

    unit_id: str
    ancestor_id: Optional[str]
    outcome: str
    depth: int = 0
    detail: Optional[str] = None

    @property
    def malformed(self) -> bool:
        return self.outcome in MALFORMED_OUTCOMES


class AncestorResolver:
    def __init__(self, snapshot: HierarchySnapshot, distinguished_type: str = DEFAULT_DISTINGUISHED_TYPE) -> None:
        self.snapshot = snapshot
        self.distinguished_type = distinguished_type

    def resolve(self, unit_id: str) -> Optional[str]:
        """Return the id of the unit's battalion, or None when there is none."""
        return self.trace(unit_id).ancestor_id

    def trace(self, unit_id: str) -> Resolution:
        unit = self.snapshot.get(unit_id)
        if unit is None:
            return Resolution(unit_id, None, UNKNOWN)
        if unit.unit_type == self.distinguished_type:
            return Resolution(unit_id, unit.id, SELF)

        visited: Set[str] = {unit.id}
        current = unit
        depth = 0
        while True:
            parent_id = current.parent_id
            if parent_id is None:
                return Resolution(unit_id, None, ROOT, depth)
            if parent_id in visited:
                return Resolution(unit_id, None, CYCLE, depth, detail=parent_id)
            parent = self.snapshot.get(parent_id)
            if parent is None:
                return Resolution(unit_id, None, DANGLING, depth, detail=parent_id)
            depth += 1
            if parent.unit_type == self.distinguished_type:
                return Resolution(unit_id, parent.id, ANCESTOR, depth)
            visited.add(parent_id)
            current = parent


__all__ = [
    "AncestorResolver",
    "Resolution",
    "DEFAULT_DISTINGUISHED_TYPE",
    "SELF",
    "ANCESTOR",
    "ROOT",
    "DANGLING",
    "CYCLE",
    "UNKNOWN",
    "MALFORMED_OUTCOMES",
]
