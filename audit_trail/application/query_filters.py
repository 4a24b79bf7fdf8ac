"""
===============================================================================
TARJETA CRC — application/query_filters.py (QueryFilterBuilder)
===============================================================================

Responsabilidades:
  - Traducir (scope mode + caller + parámetros de query) a UN predicado
    tipado: scope AND filtros de usuario.
  - Normalizar paginación (page >= 1, page_size en [1, 100], default 25).
  - Ignorar en silencio inputs mal formados (fechas, números, status).

Colaboradores:
  - domain.predicates (variantes tipadas + all_of/any_of)
  - domain.scope.ScopeMode
  - domain.access.OrgScope (asignaciones del caller, sólo para LDD)

Reglas:
  - Compilación pura: no hace I/O. El lookup de OrgScope lo hace el caso
    de uso antes de compilar.
  - NONE y OWN sin caller -> MatchNothing (fail closed, sin error).
===============================================================================
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ..domain.access import OrgScope
from ..domain.predicates import (
    AuditField,
    DetailsField,
    DetailsNumberRange,
    Eq,
    ILike,
    MatchAll,
    MatchNothing,
    OrgAssignmentExists,
    OrgDimension,
    Predicate,
    Range,
    all_of,
    any_of,
)
from ..domain.scope import ScopeMode

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100


@dataclass(slots=True)
class AuditQueryParams:
    """Parámetros crudos (strings) tal como llegan por query string."""

    entity_kind: Optional[str] = None
    entity_id: Optional[str] = None
    action: Optional[str] = None
    actor_id: Optional[str] = None
    actor_type: Optional[str] = None
    correlation_id: Optional[str] = None
    pack_name: Optional[str] = None
    method: Optional[str] = None
    event_type: Optional[str] = None
    outcome: Optional[str] = None
    target_kind: Optional[str] = None
    target_id: Optional[str] = None
    session_id: Optional[str] = None
    q: Optional[str] = None
    created_from: Optional[str] = None
    created_to: Optional[str] = None
    status: Optional[str] = None
    min_duration: Optional[str] = None
    max_duration: Optional[str] = None
    page: Optional[str] = None
    page_size: Optional[str] = None


# Filtros de igualdad: atributo de AuditQueryParams -> columna.
_EXACT_FILTERS: tuple[tuple[str, AuditField], ...] = (
    ("entity_kind", AuditField.ENTITY_KIND),
    ("entity_id", AuditField.ENTITY_ID),
    ("action", AuditField.ACTION),
    ("actor_id", AuditField.ACTOR_ID),
    ("actor_type", AuditField.ACTOR_TYPE),
    ("correlation_id", AuditField.CORRELATION_ID),
    ("pack_name", AuditField.PACK_NAME),
    ("method", AuditField.METHOD),
    ("event_type", AuditField.EVENT_TYPE),
    ("outcome", AuditField.OUTCOME),
    ("target_kind", AuditField.TARGET_KIND),
    ("target_id", AuditField.TARGET_ID),
    ("session_id", AuditField.SESSION_ID),
)


# =============================================================================
# Parsing tolerante
# =============================================================================


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def parse_number(value: Optional[str]) -> Optional[float]:
    raw = _clean(value)
    if not raw:
        return None
    try:
        number = float(raw)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """ISO-8601 (acepta sufijo Z); naive se asume UTC; inválido -> None."""
    raw = _clean(value)
    if not raw:
        return None
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_pagination(
    page: Optional[str], page_size: Optional[str]
) -> tuple[int, int]:
    """page >= 1 (default 1); page_size en [1, MAX_PAGE_SIZE] (default 25)."""
    page_number = parse_number(page)
    size_number = parse_number(page_size)

    normalized_page = int(page_number) if page_number else 1
    normalized_size = int(size_number) if size_number else DEFAULT_PAGE_SIZE

    return (
        max(1, normalized_page),
        min(MAX_PAGE_SIZE, max(1, normalized_size)),
    )


# =============================================================================
# Scope
# =============================================================================


def build_scope_predicate(
    mode: ScopeMode,
    caller_id: Optional[str],
    org_scope: Optional[OrgScope] = None,
) -> Predicate:
    if mode is ScopeMode.NONE:
        return MatchNothing()

    if mode is ScopeMode.ANY:
        return MatchAll()

    own: Predicate = (
        Eq(AuditField.ACTOR_ID, caller_id) if caller_id else MatchNothing()
    )
    if mode is ScopeMode.OWN:
        return own

    # LDD: propio OR el actor comparte alguna asignación con el caller.
    scope = org_scope or OrgScope()
    shared: list[Predicate] = []
    for dimension, ids in (
        (OrgDimension.DIVISION, scope.division_ids),
        (OrgDimension.DEPARTMENT, scope.department_ids),
        (OrgDimension.LOCATION, scope.location_ids),
    ):
        if ids:
            shared.append(OrgAssignmentExists(dimension=dimension, ids=tuple(ids)))

    if not shared:
        return own
    return any_of(own, any_of(*shared))


# =============================================================================
# Filtros de usuario
# =============================================================================


def status_predicate(status: Optional[str]) -> Optional[Predicate]:
    raw = _clean(status).lower()
    if not raw:
        return None
    if raw == "4xx":
        return DetailsNumberRange(DetailsField.RESPONSE_STATUS, gte=400, lt=500)
    if raw == "5xx":
        return DetailsNumberRange(DetailsField.RESPONSE_STATUS, gte=500)
    if raw == "error":
        return DetailsNumberRange(DetailsField.RESPONSE_STATUS, gte=400)

    number = parse_number(raw)
    if number is None:
        return None
    return DetailsNumberRange(DetailsField.RESPONSE_STATUS, gte=number, lte=number)


def build_user_filters(params: AuditQueryParams) -> list[Predicate]:
    filters: list[Predicate] = []

    for attr, column in _EXACT_FILTERS:
        value = _clean(getattr(params, attr))
        if not value:
            continue
        if column is AuditField.METHOD:
            value = value.upper()
        filters.append(Eq(column, value))

    q = _clean(params.q)
    if q:
        filters.append(ILike(AuditField.SUMMARY, q))

    created_from = parse_timestamp(params.created_from)
    created_to = parse_timestamp(params.created_to)
    if created_from or created_to:
        filters.append(Range(AuditField.CREATED_AT, gte=created_from, lte=created_to))

    status = status_predicate(params.status)
    if status is not None:
        filters.append(status)

    min_duration = parse_number(params.min_duration)
    max_duration = parse_number(params.max_duration)
    if min_duration is not None or max_duration is not None:
        filters.append(
            DetailsNumberRange(
                DetailsField.DURATION_MS, gte=min_duration, lte=max_duration
            )
        )

    return filters


def compile_audit_predicate(
    mode: ScopeMode,
    caller_id: Optional[str],
    params: AuditQueryParams,
    *,
    org_scope: Optional[OrgScope] = None,
) -> Predicate:
    """Scope AND todos los filtros presentes."""
    return all_of(
        build_scope_predicate(mode, caller_id, org_scope),
        *build_user_filters(params),
    )
