"""
===============================================================================
TARJETA CRC — schemas/audit.py
===============================================================================

Módulo:
    Schemas HTTP para Auditoría

Responsabilidades:
    - DTOs de response de GET /audit (items + pagination).
    - Contrato camelCase estable para el cliente (entityKind, createdAt, ...).

Colaboradores:
    - domain.audit.AuditEvent / AuditPage
===============================================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .....domain.audit import AuditEvent, AuditPage


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AuditEventRes(_CamelModel):
    """Evento de auditoría serializable."""

    id: UUID
    entity_kind: str
    entity_id: str | None = None
    action: str
    summary: str
    details: dict[str, Any] | None = None
    changes: list[dict[str, Any]] | None = None
    event_type: str | None = None
    outcome: str | None = None
    target_kind: str | None = None
    target_id: str | None = None
    target_name: str | None = None
    session_id: str | None = None
    auth_method: str | None = None
    mfa_method: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    actor_id: str | None = None
    actor_name: str | None = None
    actor_type: str
    correlation_id: str | None = None
    pack_name: str | None = None
    method: str | None = None
    path: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_event(cls, event: AuditEvent) -> "AuditEventRes":
        return cls(
            id=event.id,
            entity_kind=event.entity_kind,
            entity_id=event.entity_id,
            action=event.action,
            summary=event.summary,
            details=event.details,
            changes=(
                None
                if event.changes is None
                else [c.to_dict() for c in event.changes]
            ),
            event_type=event.event_type,
            outcome=event.outcome.value if event.outcome else None,
            target_kind=event.target_kind,
            target_id=event.target_id,
            target_name=event.target_name,
            session_id=event.session_id,
            auth_method=event.auth_method,
            mfa_method=event.mfa_method,
            error_code=event.error_code,
            error_message=event.error_message,
            actor_id=event.actor_id,
            actor_name=event.actor_name,
            actor_type=event.actor_type.value,
            correlation_id=event.correlation_id,
            pack_name=event.pack_name,
            method=event.method,
            path=event.path,
            ip_address=event.ip_address,
            user_agent=event.user_agent,
            created_at=event.created_at,
        )


class PaginationRes(_CamelModel):
    page: int
    page_size: int
    total: int
    total_pages: int


class AuditEventsRes(_CamelModel):
    """Listado paginado (page-based)."""

    items: list[AuditEventRes]
    pagination: PaginationRes

    @classmethod
    def from_page(cls, page: AuditPage) -> "AuditEventsRes":
        return cls(
            items=[AuditEventRes.from_event(e) for e in page.items],
            pagination=PaginationRes(
                page=page.page,
                page_size=page.page_size,
                total=page.total,
                total_pages=page.total_pages,
            ),
        )
