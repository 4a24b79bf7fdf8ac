"""
===============================================================================
TARJETA CRC — audit_trail/context.py (Contexto de auditoría por request)
===============================================================================

Responsabilidades:
  - Mantener un AuditRequestContext "request-scoped" usando ContextVar.
  - Exponer lectura del contexto, lectura del contador de escrituras y
    marcado de escritura (markAuditWrite).
  - Proveer el dict de correlación que consume el logger.

Colaboradores:
  - crosscutting.middleware.AuditContextMiddleware: establece el contexto.
  - application.write_audit / application.auto_audit: leen y marcan.
  - crosscutting.logger: enriquece logs con get_context_dict().

Patrones aplicados:
  - Ambient Context con ContextVar: cada request (y las tasks asyncio que
    lance) ve su propia instancia; requests concurrentes no se mezclan.
  - El contador vive en el objeto (mutable): las tasks/threads hijos que
    copian el contexto comparten la misma instancia y sus escrituras cuentan.

Restricciones:
  - Un contexto por request. Un establish anidado loguea warning y oculta
    al externo hasta salir (no se mezclan contadores).
===============================================================================
"""

from __future__ import annotations

import inspect
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator, TypeVar, Union

from .crosscutting.logger import logger

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class AuditContextMeta:
    """Metadatos con los que se establece el contexto (sin contador)."""

    correlation_id: str
    pack_name: str
    method: str
    path: str
    actor_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(slots=True)
class AuditRequestContext:
    """Contexto efímero de un request lógico. Nunca se persiste."""

    correlation_id: str
    pack_name: str
    method: str
    path: str
    actor_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    audit_writes: int = 0

    @classmethod
    def from_meta(cls, meta: AuditContextMeta) -> "AuditRequestContext":
        return cls(
            correlation_id=meta.correlation_id,
            pack_name=meta.pack_name,
            method=meta.method,
            path=meta.path,
            actor_id=meta.actor_id,
            ip_address=meta.ip_address,
            user_agent=meta.user_agent,
        )


_audit_context_var: ContextVar[AuditRequestContext | None] = ContextVar(
    "audit_context", default=None
)


# =============================================================================
# Lectura / marcado
# =============================================================================


def get_audit_context() -> AuditRequestContext | None:
    """Contexto activo o None fuera de cualquier establish."""
    return _audit_context_var.get()


def get_audit_writes() -> int:
    ctx = _audit_context_var.get()
    return ctx.audit_writes if ctx is not None else 0


def mark_audit_write() -> None:
    """Incrementa el contador del request actual (no-op sin contexto)."""
    ctx = _audit_context_var.get()
    if ctx is None:
        return
    ctx.audit_writes += 1


# =============================================================================
# Establecimiento
# =============================================================================


@contextmanager
def audit_context(meta: AuditContextMeta) -> Iterator[AuditRequestContext]:
    """
    Establece un contexto nuevo (contador en 0) mientras dure el bloque.

    Todo lo que corra dentro (incluidas tasks asyncio creadas adentro) lo ve.
    """
    outer = _audit_context_var.get()
    if outer is not None:
        logger.warning(
            "audit context already established; nested context shadows it",
            extra={
                "outer_correlation_id": outer.correlation_id,
                "inner_correlation_id": meta.correlation_id,
            },
        )

    ctx = AuditRequestContext.from_meta(meta)
    token = _audit_context_var.set(ctx)
    try:
        yield ctx
    finally:
        _audit_context_var.reset(token)


async def with_audit_context(
    meta: AuditContextMeta,
    fn: Callable[[], Union[T, Awaitable[T]]],
) -> T:
    """
    Ejecuta fn (sync o async) con meta visible en todo su call graph.
    """
    with audit_context(meta):
        result = fn()
        if inspect.isawaitable(result):
            result = await result
        return result


# =============================================================================
# Correlación para logs
# =============================================================================


def get_context_dict() -> dict[str, Any]:
    """
    Contexto actual como dict, omitiendo claves vacías.

    Uso típico: enriquecimiento de logs estructurados.
    """
    ctx = _audit_context_var.get()
    if ctx is None:
        return {}

    out: dict[str, Any] = {}
    if ctx.correlation_id:
        out["correlation_id"] = ctx.correlation_id
    if ctx.method:
        out["method"] = ctx.method
    if ctx.path:
        out["path"] = ctx.path
    if ctx.pack_name:
        out["pack_name"] = ctx.pack_name
    return out
