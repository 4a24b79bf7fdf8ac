"""
Name: Access Value Objects

Responsibilities:
  - CallerIdentity: who is calling (subject id, email, roles)
  - ActionCheckResult: answer of the permission-check collaborator
  - OrgScope: division/department/location ids assigned to a subject

Collaborators:
  - identity.auth (produces CallerIdentity)
  - identity.permissions (produces ActionCheckResult)
  - infrastructure.repositories.*.org_assignment (produces OrgScope)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional


@dataclass(frozen=True, slots=True)
class CallerIdentity:
    subject_id: str
    email: str = ""
    roles: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ActionCheckResult:
    granted: bool
    source: Optional[str] = None


def _dedupe(values: Iterable[Optional[str]]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for value in values:
        if value:
            seen.setdefault(str(value), None)
    return tuple(seen)


@dataclass(frozen=True, slots=True)
class OrgScope:
    division_ids: tuple[str, ...] = field(default_factory=tuple)
    department_ids: tuple[str, ...] = field(default_factory=tuple)
    location_ids: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_rows(
        cls, rows: Iterable[tuple[Optional[str], Optional[str], Optional[str]]]
    ) -> "OrgScope":
        """(division_id, department_id, location_id) rows -> ids sin duplicados."""
        materialized = list(rows)
        return cls(
            division_ids=_dedupe(r[0] for r in materialized),
            department_ids=_dedupe(r[1] for r in materialized),
            location_ids=_dedupe(r[2] for r in materialized),
        )

    def is_empty(self) -> bool:
        return not (self.division_ids or self.department_ids or self.location_ids)
