# =============================================================================
# FILE: infrastructure/repositories/in_memory/audit_event.py
# =============================================================================
"""
In-Memory EventStore for testing and development.

NOT FOR PRODUCTION USE - data is lost on restart.

Evaluates the same typed predicates the Postgres repository renders to SQL,
so filter semantics can be exercised without a database.
"""

from __future__ import annotations

import dataclasses
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Tuple

from ....domain.audit import AuditEvent, AuditPage
from ....domain.predicates import (
    AllOf,
    AnyOf,
    DetailsNumberRange,
    Eq,
    ILike,
    MatchAll,
    MatchNothing,
    OrgAssignmentExists,
    Predicate,
    Range,
)
from .org_assignment import InMemoryOrgAssignmentRepository


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def _details_number(event: AuditEvent, key: str) -> Optional[float]:
    # Sólo números JSON; igual que el guard jsonb_typeof del adapter SQL.
    raw = (event.details or {}).get(key)
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    return float(raw)


class InMemoryAuditEventRepository:
    """
    In-memory implementation of AuditEventRepository.

    Useful for:
      - Unit testing
      - Local development without database (AUDIT_STORAGE=memory)
    """

    def __init__(
        self, org_assignments: InMemoryOrgAssignmentRepository | None = None
    ) -> None:
        self._events: List[Tuple[int, AuditEvent]] = []
        self._org_assignments = org_assignments or InMemoryOrgAssignmentRepository()
        self._lock = threading.Lock()
        self._seq = 0
        self._last_created_at: Optional[datetime] = None

    @property
    def events(self) -> List[AuditEvent]:
        """Snapshot en orden de inserción."""
        with self._lock:
            return [event for _, event in self._events]

    def insert(self, event: AuditEvent, *, connection: Any = None) -> AuditEvent:
        with self._lock:
            now = datetime.now(timezone.utc)
            # created_at no decreciente por orden de inserción
            if self._last_created_at is not None and now < self._last_created_at:
                now = self._last_created_at
            created_at = event.created_at or now
            self._last_created_at = max(created_at, self._last_created_at or created_at)

            stored = dataclasses.replace(event, created_at=created_at)
            self._seq += 1
            self._events.append((self._seq, stored))
            return stored

    def query(
        self,
        predicate: Predicate,
        *,
        page: int,
        page_size: int,
    ) -> AuditPage:
        with self._lock:
            snapshot = list(self._events)

        matching = [
            (seq, event) for seq, event in snapshot if self.matches(predicate, event)
        ]
        matching.sort(key=lambda item: (item[1].created_at, item[0]), reverse=True)

        offset = (page - 1) * page_size
        items = [event for _, event in matching[offset : offset + page_size]]
        return AuditPage(
            items=items, page=page, page_size=page_size, total=len(matching)
        )

    def matches(self, predicate: Predicate, event: AuditEvent) -> bool:
        if isinstance(predicate, MatchAll):
            return True

        if isinstance(predicate, MatchNothing):
            return False

        if isinstance(predicate, Eq):
            return _as_text(getattr(event, predicate.field.value)) == predicate.value

        if isinstance(predicate, ILike):
            haystack = _as_text(getattr(event, predicate.field.value)) or ""
            return predicate.needle.lower() in haystack.lower()

        if isinstance(predicate, Range):
            value = getattr(event, predicate.field.value)
            if value is None:
                return False
            if predicate.gte is not None and value < predicate.gte:
                return False
            if predicate.lte is not None and value > predicate.lte:
                return False
            return True

        if isinstance(predicate, DetailsNumberRange):
            number = _details_number(event, predicate.key.value)
            if number is None:
                return False
            if predicate.gte is not None and number < predicate.gte:
                return False
            if predicate.lte is not None and number > predicate.lte:
                return False
            if predicate.lt is not None and number >= predicate.lt:
                return False
            return True

        if isinstance(predicate, OrgAssignmentExists):
            return self._org_assignments.has_assignment(
                event.actor_id, predicate.dimension, predicate.ids
            )

        if isinstance(predicate, AllOf):
            return all(self.matches(part, event) for part in predicate.parts)

        if isinstance(predicate, AnyOf):
            return any(self.matches(part, event) for part in predicate.parts)

        raise TypeError(f"Unsupported predicate: {type(predicate).__name__}")
