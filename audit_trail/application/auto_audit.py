"""
===============================================================================
TARJETA CRC — application/auto_audit.py (Auto-audit best-effort)
===============================================================================

Responsabilidades:
  - Decidir si un request terminado merece un evento automático:
      * hay contexto de auditoría,
      * el handler NO escribió uno explícito (contador == 0),
      * es una escritura (POST/PUT/PATCH/DELETE) o la respuesta es >= 400.
  - Derivar el evento sólo desde metadatos: acción por método + status,
    entidad por heurística de path, resumen legible, details acotados.
  - Persistir por el mismo camino que la escritura estricta.
  - Nunca lanzar: cualquier falla se loguea y se reporta como False.

Colaboradores:
  - audit_trail.context (get_audit_context)
  - application.write_audit.write_audit_event (append + marca)
  - domain.repositories.AuditEventRepository
  - crosscutting.timing.SlowStatement
  - crosscutting.logger

Notas:
  - extract_entity_from_path es una HEURÍSTICA best-effort: recursos
    anidados de más de dos niveles pueden clasificarse mal
    (/api/vault/folders/abc/items -> item, sin id). No es fuente de verdad.
  - Las funciones puras se exportan para tests.
===============================================================================
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from ..context import get_audit_context
from ..crosscutting.logger import logger
from ..crosscutting.timing import SlowStatement
from ..domain.audit import ActorType, AuditEventInput, AuditOutcome
from ..domain.repositories import AuditEventRepository
from .write_audit import write_audit_event

DEFAULT_API_PREFIX = "/api"

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

# Límites de details
MAX_PAYLOAD_CHARS = 4_000
MAX_HINT_CHARS = 160
MAX_SLOW_QUERIES = 5
SLOW_REQUEST_MS = 500

FALLBACK_ACTOR_ID = "system"

_UUID_SEGMENT = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE
)
_NUMERIC_SEGMENT = re.compile(r"[0-9]+")

_METHOD_ACTIONS = {
    "POST": "created",
    "PUT": "updated",
    "PATCH": "updated",
    "DELETE": "deleted",
}


@dataclass(frozen=True, slots=True)
class EntityRef:
    kind: str
    id: Optional[str] = None


@dataclass(slots=True)
class AutoAuditOutcome:
    """Lo que el dispatcher sabe del request al terminar."""

    response_status: int
    response_body: Any = None
    request_body: Any = None
    duration_ms: Optional[float] = None
    actor_id: Optional[str] = None
    db_time_ms: Optional[float] = None
    module_time_ms: Optional[float] = None
    slow_queries: Optional[Sequence[SlowStatement]] = None


# =============================================================================
# Funciones puras
# =============================================================================


def method_to_action(method: str) -> str:
    upper = (method or "").upper()
    return _METHOD_ACTIONS.get(upper, upper.lower())


def singularize(word: str) -> str:
    """Singular aproximado (ies->y, ses/xes/zes, s final). No es un inflector."""
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith(("ses", "xes", "zes")):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def _is_id_segment(segment: str) -> bool:
    return bool(_UUID_SEGMENT.fullmatch(segment) or _NUMERIC_SEGMENT.fullmatch(segment))


def extract_entity_from_path(
    path: str, *, api_prefix: str = DEFAULT_API_PREFIX
) -> EntityRef:
    """
    Heurística path -> (kind, id).

    /api/crm/contacts/123        -> contact, "123"
    /api/crm/contacts            -> contact, None
    /api/forms/xyz/entries/456   -> entry, "456"
    /api/vault/folders/abc/items -> item, None
    /api/crm                     -> crm, None
    """
    cleaned = path or ""
    namespace = api_prefix.rstrip("/") + "/" if api_prefix else ""
    if namespace and cleaned.startswith(namespace):
        cleaned = cleaned[len(namespace):]

    segments = [s for s in cleaned.split("/") if s]
    if not segments:
        return EntityRef(kind="unknown")

    pack_name, rest = segments[0], segments[1:]
    if not rest:
        return EntityRef(kind=pack_name)

    last = rest[-1]
    if _is_id_segment(last):
        if len(rest) >= 2:
            return EntityRef(kind=singularize(rest[-2]), id=last)
        return EntityRef(kind=pack_name, id=last)

    return EntityRef(kind=singularize(last))


def build_summary(action: str, entity_kind: str, entity_id: Optional[str]) -> str:
    verb = action[:1].upper() + action[1:]
    if entity_id:
        return f"{verb} {entity_kind} ({entity_id})"
    return f"{verb} {entity_kind}"


def truncate_text(text: str, max_length: int = MAX_HINT_CHARS) -> str:
    trimmed = text.strip()
    if len(trimmed) <= max_length:
        return trimmed
    return trimmed[: max_length - 1] + "…"


def truncate_payload(payload: Any, max_length: int = MAX_PAYLOAD_CHARS) -> Any:
    """
    Payload tal cual si su JSON entra en max_length; si no, marcador
    {_truncated, _originalLength, _preview}. Si no serializa, {_error}.
    """
    if payload is None:
        return None
    try:
        serialized = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError, RecursionError):
        return {"_error": "Could not serialize payload"}

    if len(serialized) <= max_length:
        return payload
    return {
        "_truncated": True,
        "_originalLength": len(serialized),
        "_preview": serialized[:max_length],
    }


def extract_error_hint(body: Any) -> Optional[str]:
    """Mensaje de error más probable dentro del body de respuesta."""
    if body is None:
        return None
    if isinstance(body, str):
        return body.strip() or None
    if not isinstance(body, (Mapping, list, tuple)):
        return str(body)
    if not isinstance(body, Mapping):
        return None

    exception = body.get("exception")
    if not isinstance(exception, Mapping):
        exception = {}

    candidates = (
        body.get("error"),
        body.get("message"),
        body.get("detail"),
        exception.get("message"),
        exception.get("name"),
    )
    for candidate in candidates:
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return None


def outcome_for_status(status: int) -> AuditOutcome:
    if 200 <= status < 300:
        return AuditOutcome.SUCCESS
    if status in (401, 403):
        return AuditOutcome.DENIED
    if status >= 500:
        return AuditOutcome.ERROR
    return AuditOutcome.FAILURE


def action_for(method: str, status: int) -> str:
    action = method_to_action(method)
    if 200 <= status < 300:
        return action
    if 400 <= status < 500:
        return f"{action}_rejected"
    return f"{action}_failed"


def build_details(outcome: AutoAuditOutcome) -> dict[str, Any]:
    status = outcome.response_status
    details: dict[str, Any] = {
        "responseStatus": status,
        "durationMs": outcome.duration_ms,
        "success": 200 <= status < 300,
    }

    if outcome.db_time_ms is not None:
        details["dbTimeMs"] = outcome.db_time_ms
    if outcome.module_time_ms is not None:
        details["moduleTimeMs"] = outcome.module_time_ms

    if outcome.slow_queries:
        slowest = sorted(
            outcome.slow_queries, key=lambda q: q.duration_ms, reverse=True
        )[:MAX_SLOW_QUERIES]
        details["slowQueries"] = [q.to_dict() for q in slowest]

    if outcome.request_body is not None:
        details["requestBody"] = truncate_payload(outcome.request_body)
    if outcome.response_body is not None:
        details["responseBody"] = truncate_payload(outcome.response_body)

    if outcome.duration_ms is not None and outcome.duration_ms > SLOW_REQUEST_MS:
        details["isSlow"] = True

    return details


# =============================================================================
# Escritura best-effort
# =============================================================================


def write_auto_audit_event(
    repository: AuditEventRepository,
    outcome: AutoAuditOutcome,
    *,
    api_prefix: str = DEFAULT_API_PREFIX,
) -> bool:
    """
    Deriva y escribe el evento automático del request actual.

    Returns:
        True si se escribió; False si se omitió o falló (nunca lanza).
    """
    ctx = get_audit_context()
    if ctx is None:
        logger.warning("No audit context available, skipping auto-audit")
        return False

    if ctx.audit_writes > 0:
        return False

    method = (ctx.method or "").upper()
    if not method:
        return False

    status = outcome.response_status
    if method not in WRITE_METHODS and status < 400:
        return False

    try:
        is_success = 200 <= status < 300
        action = action_for(method, status)

        entity = extract_entity_from_path(ctx.path, api_prefix=api_prefix)
        entity_id = entity.id
        if (
            method == "POST"
            and entity_id is None
            and is_success
            and isinstance(outcome.response_body, Mapping)
        ):
            body_id = outcome.response_body.get("id")
            if isinstance(body_id, str) and body_id:
                entity_id = body_id

        summary = build_summary(action, entity.kind, entity_id)
        if not is_success:
            hint = extract_error_hint(outcome.response_body)
            if hint:
                summary = f"{summary} — {truncate_text(hint)}"

        write_audit_event(
            repository,
            AuditEventInput(
                entity_kind=entity.kind,
                entity_id=entity_id,
                action=action,
                summary=summary,
                details=build_details(outcome),
                outcome=outcome_for_status(status),
                actor_id=outcome.actor_id or ctx.actor_id or FALLBACK_ACTOR_ID,
                actor_type=ActorType.USER,
            ),
        )
        return True
    except Exception as exc:
        # Best-effort: nunca altera la respuesta original.
        logger.exception(
            "Failed to write auto-audit event",
            extra={"response_status": status, "error": str(exc)},
        )
        return False
