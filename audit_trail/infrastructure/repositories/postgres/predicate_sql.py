"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/predicate_sql.py
============================================================
Module: render_predicate

Responsibilities:
  - Renderizar un Predicate tipado a (fragmento SQL, params) para psycopg.
  - Mantener TODO valor de usuario como parámetro %s.

Collaborators:
  - domain.predicates (variantes)
  - PostgresAuditEventRepository (usa el fragmento en WHERE)

Constraints / Notes:
  - Nombres de columna salen de enums del dominio, nunca del request.
  - Columnas enum (actor_type, outcome) se comparan como ::text para que
    un valor desconocido no rompa la query (filtro mal formado = 0 filas).
  - user_org_assignments se consulta con EXISTS correlacionado por actor_id.
============================================================
"""

from __future__ import annotations

from ....domain.predicates import (
    AllOf,
    AnyOf,
    AuditField,
    DetailsNumberRange,
    Eq,
    ILike,
    MatchAll,
    MatchNothing,
    OrgAssignmentExists,
    OrgDimension,
    Predicate,
    Range,
)

AUDIT_EVENTS_TABLE = "audit_events"
ORG_ASSIGNMENTS_TABLE = "user_org_assignments"

_ENUM_COLUMNS = {AuditField.ACTOR_TYPE, AuditField.OUTCOME}

_ORG_COLUMNS = {
    OrgDimension.DIVISION: "division_id",
    OrgDimension.DEPARTMENT: "department_id",
    OrgDimension.LOCATION: "location_id",
}


def _column(field: AuditField) -> str:
    column = f"{AUDIT_EVENTS_TABLE}.{field.value}"
    return f"{column}::text" if field in _ENUM_COLUMNS else column


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def render_predicate(predicate: Predicate) -> tuple[str, list[object]]:
    """Predicate -> ("sql con %s", [params])."""
    if isinstance(predicate, MatchAll):
        return "TRUE", []

    if isinstance(predicate, MatchNothing):
        return "FALSE", []

    if isinstance(predicate, Eq):
        return f"{_column(predicate.field)} = %s", [predicate.value]

    if isinstance(predicate, ILike):
        return (
            f"{_column(predicate.field)} ILIKE %s",
            [f"%{escape_like(predicate.needle)}%"],
        )

    if isinstance(predicate, Range):
        parts: list[str] = []
        params: list[object] = []
        if predicate.gte is not None:
            parts.append(f"{_column(predicate.field)} >= %s")
            params.append(predicate.gte)
        if predicate.lte is not None:
            parts.append(f"{_column(predicate.field)} <= %s")
            params.append(predicate.lte)
        return (" AND ".join(parts) or "TRUE"), params

    if isinstance(predicate, DetailsNumberRange):
        # Sólo números JSON; el resto queda en NULL y no matchea.
        expr = (
            f"CASE WHEN jsonb_typeof({AUDIT_EVENTS_TABLE}.details -> %s) = 'number' "
            f"THEN ({AUDIT_EVENTS_TABLE}.details ->> %s)::numeric END"
        )
        parts = []
        params = []
        for op, bound in (
            (">=", predicate.gte),
            ("<=", predicate.lte),
            ("<", predicate.lt),
        ):
            if bound is None:
                continue
            parts.append(f"{expr} {op} %s")
            params.extend([predicate.key.value, predicate.key.value, bound])
        return (" AND ".join(parts) or "TRUE"), params

    if isinstance(predicate, OrgAssignmentExists):
        column = _ORG_COLUMNS[predicate.dimension]
        return (
            f"EXISTS (SELECT 1 FROM {ORG_ASSIGNMENTS_TABLE} uoa "
            f"WHERE uoa.user_key = {AUDIT_EVENTS_TABLE}.actor_id "
            f"AND uoa.{column}::text = ANY(%s))",
            [list(predicate.ids)],
        )

    if isinstance(predicate, (AllOf, AnyOf)):
        joiner = " AND " if isinstance(predicate, AllOf) else " OR "
        fragments: list[str] = []
        params = []
        for part in predicate.parts:
            sql, part_params = render_predicate(part)
            fragments.append(f"({sql})")
            params.extend(part_params)
        if not fragments:
            return ("TRUE" if isinstance(predicate, AllOf) else "FALSE"), []
        return joiner.join(fragments), params

    raise TypeError(f"Unsupported predicate: {type(predicate).__name__}")
