"""
===============================================================================
TARJETA CRC — domain/audit.py
===============================================================================

Módulo:
    Entidades de Auditoría (append-only)

Responsabilidades:
    - AuditEvent: una fila inmutable por ocurrencia relevante.
    - AuditEventInput: lo que un handler aporta al escribir explícitamente.
    - AuditPage: resultado paginado de consultas.
    - Enums de dominio: ActorType, AuditOutcome.

Colaboradores:
    - application.write_audit / application.auto_audit (construyen eventos)
    - infrastructure.repositories.* (persisten / leen)
    - interfaces.api.http.schemas.audit (DTOs HTTP)

Invariantes:
    - entity_kind, action y summary nunca vacíos.
    - Las filas no se actualizan ni se borran.
===============================================================================
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID


class ActorType(str, Enum):
    USER = "user"
    SYSTEM = "system"
    API = "api"


class AuditOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    DENIED = "denied"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class FieldChange:
    """Delta de un campo: {field, from, to}."""

    field: str
    from_value: Any = None
    to_value: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "from": self.from_value, "to": self.to_value}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "FieldChange":
        return cls(
            field=str(raw.get("field", "")),
            from_value=raw.get("from"),
            to_value=raw.get("to"),
        )


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """Evento de auditoría tal como se guarda."""

    id: UUID
    entity_kind: str
    action: str
    summary: str
    entity_id: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    changes: Optional[list[FieldChange]] = None
    event_type: Optional[str] = None
    outcome: Optional[AuditOutcome] = None
    target_kind: Optional[str] = None
    target_id: Optional[str] = None
    target_name: Optional[str] = None
    session_id: Optional[str] = None
    auth_method: Optional[str] = None
    mfa_method: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    actor_type: ActorType = ActorType.USER
    correlation_id: Optional[str] = None
    pack_name: Optional[str] = None
    method: Optional[str] = None
    path: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(slots=True)
class AuditEventInput:
    """
    Entrada del camino estricto.

    Requeridos: entity_kind, action, summary, actor_id. El resto es opcional;
    los metadatos de request se completan desde el contexto si faltan.
    """

    entity_kind: str
    action: str
    summary: str
    actor_id: Optional[str]
    entity_id: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    changes: Optional[list[FieldChange]] = None
    event_type: Optional[str] = None
    outcome: Optional[AuditOutcome] = None
    target_kind: Optional[str] = None
    target_id: Optional[str] = None
    target_name: Optional[str] = None
    session_id: Optional[str] = None
    auth_method: Optional[str] = None
    mfa_method: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    actor_name: Optional[str] = None
    actor_type: Optional[ActorType] = None
    correlation_id: Optional[str] = None
    pack_name: Optional[str] = None
    method: Optional[str] = None
    path: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True, slots=True)
class AuditPage:
    """Página de resultados (1-indexed)."""

    items: list[AuditEvent] = field(default_factory=list)
    page: int = 1
    page_size: int = 25
    total: int = 0

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total / self.page_size)
