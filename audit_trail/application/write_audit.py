"""
===============================================================================
TARJETA CRC — application/write_audit.py (Escritura estricta de auditoría)
===============================================================================

Responsabilidades:
  - Construir un AuditEvent desde un AuditEventInput del handler.
  - Completar metadatos de request desde el contexto activo cuando el
    caller no los pasó (correlation_id, pack_name, method, path, ip, UA).
  - Persistir vía AuditEventRepository, opcionalmente dentro de la
    transacción del caller (connection).
  - Marcar la escritura en el contexto (evita el auto-audit posterior).

Colaboradores:
  - audit_trail.context (get_audit_context, mark_audit_write)
  - domain.audit.AuditEvent / AuditEventInput
  - domain.repositories.AuditEventRepository

Contrato de errores:
  - Cualquier error del repositorio se propaga SIN modificar; el contador no
    se incrementa. El caller decide abortar su operación.
===============================================================================
"""

from __future__ import annotations

from typing import Any, Optional
from uuid import uuid4

from ..context import AuditRequestContext, get_audit_context, mark_audit_write
from ..domain.audit import ActorType, AuditEvent, AuditEventInput, FieldChange
from ..domain.repositories import AuditEventRepository


def sanitize_payload(value: Any) -> Any:
    """
    Convierte valores a tipos serializables para JSON.
    - primitives -> OK
    - dict/list/tuple -> sanitiza recursivamente
    - otros (UUID, datetime, Decimal...) -> str(value)
    """
    if value is None or isinstance(value, (str, int, float, bool)):
        return value

    if isinstance(value, dict):
        return {str(k): sanitize_payload(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [sanitize_payload(v) for v in value]

    return str(value)


def _from_context(explicit: Optional[str], ctx_value: Optional[str]) -> Optional[str]:
    return explicit if explicit is not None else ctx_value


def build_audit_event(
    event_input: AuditEventInput, ctx: AuditRequestContext | None
) -> AuditEvent:
    """Input del caller + contexto -> evento listo para insertar."""
    event_type = (event_input.event_type or "").strip() or event_input.action

    changes = None
    if event_input.changes is not None:
        changes = [
            FieldChange(
                field=c.field,
                from_value=sanitize_payload(c.from_value),
                to_value=sanitize_payload(c.to_value),
            )
            for c in event_input.changes
        ]

    return AuditEvent(
        id=uuid4(),
        entity_kind=event_input.entity_kind,
        entity_id=event_input.entity_id,
        action=event_input.action,
        summary=event_input.summary,
        details=sanitize_payload(event_input.details)
        if event_input.details is not None
        else None,
        changes=changes,
        event_type=event_type,
        outcome=event_input.outcome,
        target_kind=event_input.target_kind,
        target_id=event_input.target_id,
        target_name=event_input.target_name,
        session_id=event_input.session_id,
        auth_method=event_input.auth_method,
        mfa_method=event_input.mfa_method,
        error_code=event_input.error_code,
        error_message=event_input.error_message,
        actor_id=event_input.actor_id,
        actor_name=event_input.actor_name,
        actor_type=event_input.actor_type or ActorType.USER,
        correlation_id=_from_context(
            event_input.correlation_id, ctx.correlation_id if ctx else None
        ),
        pack_name=_from_context(event_input.pack_name, ctx.pack_name if ctx else None),
        method=_from_context(event_input.method, ctx.method if ctx else None),
        path=_from_context(event_input.path, ctx.path if ctx else None),
        ip_address=_from_context(
            event_input.ip_address, ctx.ip_address if ctx else None
        ),
        user_agent=_from_context(
            event_input.user_agent, ctx.user_agent if ctx else None
        ),
    )


def write_audit_event(
    repository: AuditEventRepository,
    event_input: AuditEventInput,
    *,
    connection: Any = None,
) -> AuditEvent:
    """
    Camino estricto: persiste el evento y marca la escritura.

    Pasar `connection` para que el INSERT viaje en la misma transacción que
    la mutación de negocio; si falla, la excepción aborta ambas.
    """
    event = build_audit_event(event_input, get_audit_context())
    stored = repository.insert(event, connection=connection)
    mark_audit_write()
    return stored
