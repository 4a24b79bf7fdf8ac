"""
===============================================================================
TARJETA CRC — interfaces/api/http/routers/audit.py
===============================================================================

Name:
    Audit Router

Responsibilities:
    - GET /audit: listado paginado, filtrado y acotado por scope.
    - Traducir query params (camelCase) a AuditQueryParams crudos.
    - Mapear errores del caso de uso a RFC7807 (401).

Collaborators:
    - application.usecases.ListAuditEventsUseCase
    - container.get_list_audit_events_use_case / get_identity_extractor
    - schemas.audit

Notes:
    - Los params llegan como strings: parseo y clamps viven en
      application.query_filters (valores inválidos se ignoran, no son 422).
===============================================================================
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from .....application.query_filters import AuditQueryParams
from .....application.usecases import AuditErrorCode, ListAuditEventsUseCase
from .....container import get_identity_extractor, get_list_audit_events_use_case
from .....crosscutting.error_responses import unauthorized
from .....domain.access import CallerIdentity
from .....domain.repositories import IdentityExtractor
from ..schemas.audit import AuditEventsRes

router = APIRouter()


def get_caller(
    request: Request,
    identity: IdentityExtractor = Depends(get_identity_extractor),
) -> Optional[CallerIdentity]:
    """Identidad resuelta por el middleware; si no corrió, se extrae acá."""
    caller = getattr(request.state, "caller", None)
    if isinstance(caller, CallerIdentity):
        return caller
    return identity.extract(request)


@router.get(
    "/audit",
    response_model=AuditEventsRes,
    tags=["audit"],
)
def list_audit_events(
    request: Request,
    entity_kind: str | None = Query(None, alias="entityKind"),
    entity_id: str | None = Query(None, alias="entityId"),
    action: str | None = Query(None),
    actor_id: str | None = Query(None, alias="actorId"),
    actor_type: str | None = Query(None, alias="actorType"),
    correlation_id: str | None = Query(None, alias="correlationId"),
    pack_name: str | None = Query(None, alias="packName"),
    method: str | None = Query(None),
    event_type: str | None = Query(None, alias="eventType"),
    outcome: str | None = Query(None),
    target_kind: str | None = Query(None, alias="targetKind"),
    target_id: str | None = Query(None, alias="targetId"),
    session_id: str | None = Query(None, alias="sessionId"),
    q: str | None = Query(None),
    created_from: str | None = Query(None, alias="from"),
    created_to: str | None = Query(None, alias="to"),
    status: str | None = Query(None),
    min_duration: str | None = Query(None, alias="minDuration"),
    max_duration: str | None = Query(None, alias="maxDuration"),
    page: str | None = Query(None),
    page_size: str | None = Query(None, alias="pageSize"),
    caller: Optional[CallerIdentity] = Depends(get_caller),
    use_case: ListAuditEventsUseCase = Depends(get_list_audit_events_use_case),
):
    params = AuditQueryParams(
        entity_kind=entity_kind,
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        actor_type=actor_type,
        correlation_id=correlation_id,
        pack_name=pack_name,
        method=method,
        event_type=event_type,
        outcome=outcome,
        target_kind=target_kind,
        target_id=target_id,
        session_id=session_id,
        q=q,
        created_from=created_from,
        created_to=created_to,
        status=status,
        min_duration=min_duration,
        max_duration=max_duration,
        page=page,
        page_size=page_size,
    )

    result = use_case.execute(request=request, caller=caller, params=params)

    if result.error is not None:
        if result.error.code == AuditErrorCode.UNAUTHORIZED:
            raise unauthorized(result.error.message)

    return AuditEventsRes.from_page(result.page)
