# =============================================================================
# FILE: infrastructure/repositories/in_memory/org_assignment.py
# =============================================================================
"""
In-Memory organizational-assignment lookup for testing and development.

NOT FOR PRODUCTION USE - data is lost on restart.
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Tuple

from ....domain.access import OrgScope
from ....domain.predicates import OrgDimension

_Row = Tuple[Optional[str], Optional[str], Optional[str]]

_DIMENSION_INDEX = {
    OrgDimension.DIVISION: 0,
    OrgDimension.DEPARTMENT: 1,
    OrgDimension.LOCATION: 2,
}


class InMemoryOrgAssignmentRepository:
    """user_key -> [(division_id, department_id, location_id), ...]"""

    def __init__(self) -> None:
        self._rows: Dict[str, List[_Row]] = {}
        self._lock = threading.Lock()

    def assign(
        self,
        user_key: str,
        *,
        division_id: Optional[str] = None,
        department_id: Optional[str] = None,
        location_id: Optional[str] = None,
    ) -> None:
        with self._lock:
            self._rows.setdefault(user_key, []).append(
                (division_id, department_id, location_id)
            )

    def get_org_scope(self, subject_id: str) -> OrgScope:
        with self._lock:
            rows = list(self._rows.get(subject_id, []))
        return OrgScope.from_rows(rows)

    def has_assignment(
        self, user_key: Optional[str], dimension: OrgDimension, ids: Iterable[str]
    ) -> bool:
        """Equivalente del EXISTS correlacionado del repo Postgres."""
        if not user_key:
            return False
        wanted = set(ids)
        index = _DIMENSION_INDEX[dimension]
        with self._lock:
            rows = list(self._rows.get(user_key, []))
        return any(row[index] is not None and row[index] in wanted for row in rows)
