"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/audit_event.py
============================================================
Class: PostgresAuditEventRepository

Responsibilities:
  - Insertar eventos en audit_events (append-only), opcionalmente dentro
    de la transacción del caller.
  - Consultar con un Predicate tipado + paginación (count + página).
  - Mantener orden determinístico: created_at DESC, id DESC.

Collaborators:
  - domain.audit (AuditEvent, AuditPage, FieldChange)
  - postgres.predicate_sql.render_predicate
  - psycopg_pool.ConnectionPool / psycopg.types.json.Json
  - crosscutting.exceptions.DatabaseError
  - crosscutting.logger

Constraints / Notes:
  - Queries SIEMPRE parametrizadas.
  - Con `connection` provista NO se abre transacción ni se hace commit:
    el caller controla el ciclo de vida.
  - Columnas enum se castean explícitamente en el INSERT.
============================================================
"""

from __future__ import annotations

import dataclasses
from typing import Any, Iterable

from psycopg.types.json import Json
from psycopg_pool import ConnectionPool

from ....crosscutting.exceptions import DatabaseError
from ....crosscutting.logger import logger
from ....domain.audit import (
    ActorType,
    AuditEvent,
    AuditOutcome,
    AuditPage,
    FieldChange,
)
from ....domain.predicates import Predicate
from .predicate_sql import AUDIT_EVENTS_TABLE, render_predicate

_COLUMNS = (
    "id",
    "entity_kind",
    "entity_id",
    "action",
    "summary",
    "details",
    "changes",
    "event_type",
    "outcome",
    "target_kind",
    "target_id",
    "target_name",
    "session_id",
    "auth_method",
    "mfa_method",
    "error_code",
    "error_message",
    "actor_id",
    "actor_name",
    "actor_type",
    "correlation_id",
    "pack_name",
    "method",
    "path",
    "ip_address",
    "user_agent",
    "created_at",
)

# Placeholders del INSERT (todas las columnas menos created_at).
_INSERT_PLACEHOLDERS = {
    "outcome": "%s::audit_outcome",
    "actor_type": "%s::audit_actor_type",
}

_INSERT_COLUMNS = _COLUMNS[:-1]

_INSERT_SQL = (
    f"INSERT INTO {AUDIT_EVENTS_TABLE} ({', '.join(_INSERT_COLUMNS)}) "
    f"VALUES ({', '.join(_INSERT_PLACEHOLDERS.get(c, '%s') for c in _INSERT_COLUMNS)}) "
    "RETURNING created_at"
)

_SELECT_COLUMNS = ", ".join(f"{AUDIT_EVENTS_TABLE}.{c}" for c in _COLUMNS)


def _insert_params(event: AuditEvent) -> tuple[object, ...]:
    return (
        event.id,
        event.entity_kind,
        event.entity_id,
        event.action,
        event.summary,
        Json(event.details) if event.details is not None else None,
        Json([c.to_dict() for c in event.changes])
        if event.changes is not None
        else None,
        event.event_type,
        event.outcome.value if event.outcome is not None else None,
        event.target_kind,
        event.target_id,
        event.target_name,
        event.session_id,
        event.auth_method,
        event.mfa_method,
        event.error_code,
        event.error_message,
        event.actor_id,
        event.actor_name,
        event.actor_type.value,
        event.correlation_id,
        event.pack_name,
        event.method,
        event.path,
        event.ip_address,
        event.user_agent,
    )


def _row_to_event(row: tuple) -> AuditEvent:
    values = dict(zip(_COLUMNS, row))
    changes = values["changes"]
    outcome = values["outcome"]
    return AuditEvent(
        **{
            **values,
            "changes": [FieldChange.from_dict(c) for c in changes]
            if isinstance(changes, list)
            else None,
            "outcome": AuditOutcome(outcome) if outcome else None,
            "actor_type": ActorType(values["actor_type"] or ActorType.USER.value),
        }
    )


class PostgresAuditEventRepository:
    """Repositorio PostgreSQL para audit_events."""

    def __init__(self, pool: ConnectionPool | None = None):
        # Pool inyectable: tests pueden pasar su pool; prod usa el global.
        self._pool = pool

    def _get_pool(self) -> ConnectionPool:
        if self._pool is not None:
            return self._pool

        from ...db.pool import get_pool

        return get_pool()

    # ------------------------------------------------------------
    # Escritura (append-only)
    # ------------------------------------------------------------
    def insert(self, event: AuditEvent, *, connection: Any = None) -> AuditEvent:
        params = _insert_params(event)
        try:
            if connection is not None:
                row = connection.execute(_INSERT_SQL, params).fetchone()
            else:
                with self._get_pool().connection() as conn:
                    row = conn.execute(_INSERT_SQL, params).fetchone()
        except Exception as exc:
            logger.exception(
                "PostgresAuditEventRepository: Failed to insert audit event",
                extra={
                    "event_id": str(event.id),
                    "entity_kind": event.entity_kind,
                    "action": event.action,
                    "in_caller_transaction": connection is not None,
                    "error": str(exc),
                },
            )
            raise DatabaseError(f"Failed to insert audit event: {exc}") from exc

        created_at = row[0] if row else None
        return dataclasses.replace(event, created_at=created_at)

    # ------------------------------------------------------------
    # Lectura (predicado + paginación)
    # ------------------------------------------------------------
    def query(
        self,
        predicate: Predicate,
        *,
        page: int,
        page_size: int,
    ) -> AuditPage:
        where_sql, where_params = render_predicate(predicate)
        offset = (page - 1) * page_size

        count_sql = f"SELECT count(*) FROM {AUDIT_EVENTS_TABLE} WHERE {where_sql}"
        items_sql = (
            f"SELECT {_SELECT_COLUMNS} FROM {AUDIT_EVENTS_TABLE} "
            f"WHERE {where_sql} "
            f"ORDER BY {AUDIT_EVENTS_TABLE}.created_at DESC, {AUDIT_EVENTS_TABLE}.id DESC "
            "LIMIT %s OFFSET %s"
        )

        try:
            with self._get_pool().connection() as conn:
                total_row = conn.execute(count_sql, tuple(where_params)).fetchone()
                rows: Iterable[tuple] = conn.execute(
                    items_sql, (*where_params, page_size, offset)
                ).fetchall()
        except Exception as exc:
            logger.exception(
                "PostgresAuditEventRepository: Failed to query audit events",
                extra={"page": page, "page_size": page_size, "error": str(exc)},
            )
            raise DatabaseError(f"Failed to query audit events: {exc}") from exc

        return AuditPage(
            items=[_row_to_event(row) for row in rows],
            page=page,
            page_size=page_size,
            total=int(total_row[0]) if total_row else 0,
        )
