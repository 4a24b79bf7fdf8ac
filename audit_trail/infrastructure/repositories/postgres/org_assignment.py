"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/org_assignment.py
============================================================
Class: PostgresOrgAssignmentRepository

Responsibilities:
  - Leer las asignaciones org (división / departamento / ubicación) de un
    usuario desde user_org_assignments y devolverlas deduplicadas.

Collaborators:
  - domain.access.OrgScope
  - psycopg_pool.ConnectionPool
  - crosscutting.exceptions.DatabaseError

Constraints / Notes:
  - La tabla pertenece al módulo de organización; acá sólo se lee.
============================================================
"""

from __future__ import annotations

from psycopg_pool import ConnectionPool

from ....crosscutting.exceptions import DatabaseError
from ....crosscutting.logger import logger
from ....domain.access import OrgScope
from .predicate_sql import ORG_ASSIGNMENTS_TABLE

_SELECT_SQL = (
    "SELECT division_id::text, department_id::text, location_id::text "
    f"FROM {ORG_ASSIGNMENTS_TABLE} WHERE user_key = %s"
)


class PostgresOrgAssignmentRepository:
    def __init__(self, pool: ConnectionPool | None = None):
        self._pool = pool

    def _get_pool(self) -> ConnectionPool:
        if self._pool is not None:
            return self._pool

        from ...db.pool import get_pool

        return get_pool()

    def get_org_scope(self, subject_id: str) -> OrgScope:
        try:
            with self._get_pool().connection() as conn:
                rows = conn.execute(_SELECT_SQL, (subject_id,)).fetchall()
        except Exception as exc:
            logger.exception(
                "PostgresOrgAssignmentRepository: Failed to load org scope",
                extra={"subject_id": subject_id, "error": str(exc)},
            )
            raise DatabaseError(f"Failed to load org assignments: {exc}") from exc

        return OrgScope.from_rows(rows)
