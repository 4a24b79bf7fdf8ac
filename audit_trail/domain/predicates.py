"""
===============================================================================
TARJETA CRC — domain/predicates.py
===============================================================================

Módulo:
    Predicados tipados sobre audit_events

Responsabilidades:
    - Representar filtros como valores (tagged variants) en vez de SQL:
        * Eq                  igualdad exacta sobre una columna
        * ILike               substring case-insensitive
        * Range               rango inclusivo (created_at)
        * DetailsNumberRange  rango numérico sobre un campo de details (JSON)
        * OrgAssignmentExists el actor comparte asignación org (exists)
        * AllOf / AnyOf       composición AND / OR
        * MatchAll / MatchNothing
    - Helpers all_of / any_of que simplifican el árbol.

Colaboradores:
    - application.query_filters (construye el árbol)
    - infrastructure.repositories.postgres.predicate_sql (render %s)
    - infrastructure.repositories.in_memory.audit_event (evalúa en memoria)

Reglas:
    - Nunca contiene SQL; el render es responsabilidad del storage.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union


class AuditField(str, Enum):
    """Columnas filtrables (nombre de atributo == nombre de columna)."""

    ENTITY_KIND = "entity_kind"
    ENTITY_ID = "entity_id"
    ACTION = "action"
    SUMMARY = "summary"
    ACTOR_ID = "actor_id"
    ACTOR_TYPE = "actor_type"
    CORRELATION_ID = "correlation_id"
    PACK_NAME = "pack_name"
    METHOD = "method"
    EVENT_TYPE = "event_type"
    OUTCOME = "outcome"
    TARGET_KIND = "target_kind"
    TARGET_ID = "target_id"
    SESSION_ID = "session_id"
    CREATED_AT = "created_at"


class DetailsField(str, Enum):
    """Claves numéricas dentro de details."""

    RESPONSE_STATUS = "responseStatus"
    DURATION_MS = "durationMs"


class OrgDimension(str, Enum):
    DIVISION = "division"
    DEPARTMENT = "department"
    LOCATION = "location"


@dataclass(frozen=True, slots=True)
class MatchAll:
    pass


@dataclass(frozen=True, slots=True)
class MatchNothing:
    pass


@dataclass(frozen=True, slots=True)
class Eq:
    field: AuditField
    value: str


@dataclass(frozen=True, slots=True)
class ILike:
    field: AuditField
    needle: str


@dataclass(frozen=True, slots=True)
class Range:
    field: AuditField
    gte: Optional[datetime] = None
    lte: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class DetailsNumberRange:
    """gte/lte inclusivos, lt exclusivo; None = sin cota."""

    key: DetailsField
    gte: Optional[float] = None
    lte: Optional[float] = None
    lt: Optional[float] = None


@dataclass(frozen=True, slots=True)
class OrgAssignmentExists:
    """El actor del evento tiene alguna asignación con <dimension>_id en ids."""

    dimension: OrgDimension
    ids: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class AllOf:
    parts: tuple["Predicate", ...]


@dataclass(frozen=True, slots=True)
class AnyOf:
    parts: tuple["Predicate", ...]


Predicate = Union[
    MatchAll,
    MatchNothing,
    Eq,
    ILike,
    Range,
    DetailsNumberRange,
    OrgAssignmentExists,
    AllOf,
    AnyOf,
]


def all_of(*parts: Predicate) -> Predicate:
    """AND simplificado: MatchNothing absorbe, MatchAll es neutro."""
    kept: list[Predicate] = []
    for part in parts:
        if isinstance(part, MatchNothing):
            return MatchNothing()
        if isinstance(part, MatchAll):
            continue
        kept.append(part)
    if not kept:
        return MatchAll()
    if len(kept) == 1:
        return kept[0]
    return AllOf(tuple(kept))


def any_of(*parts: Predicate) -> Predicate:
    """OR simplificado: MatchAll absorbe, MatchNothing es neutro."""
    kept: list[Predicate] = []
    for part in parts:
        if isinstance(part, MatchAll):
            return MatchAll()
        if isinstance(part, MatchNothing):
            continue
        kept.append(part)
    if not kept:
        return MatchNothing()
    if len(kept) == 1:
        return kept[0]
    return AnyOf(tuple(kept))
