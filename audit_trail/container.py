"""
===============================================================================
TARJETA CRC — audit_trail/container.py (Composition Root / DI manual)
===============================================================================

Responsabilidades:
  - Componer repositorios, colaboradores de identidad y casos de uso.
  - Exponer factories para FastAPI (Depends) y para el middleware.
  - Mantener singletons con lru_cache.
  - Elegir backend de storage según Settings (postgres | memory).

Colaboradores:
  - crosscutting.config.get_settings
  - domain.repositories.* (puertos)
  - infrastructure.repositories.* (implementaciones)
  - identity.* (extractor de identidad, permission checker)
  - application.usecases.ListAuditEventsUseCase

Notas:
  - Este archivo NO contiene lógica de negocio.
  - Este archivo NO depende de FastAPI.
===============================================================================
"""

from __future__ import annotations

from functools import lru_cache

from .application.usecases import ListAuditEventsUseCase
from .crosscutting.config import get_settings
from .domain.repositories import (
    AuditEventRepository,
    IdentityExtractor,
    OrgAssignmentRepository,
    PermissionChecker,
)
from .identity import RequestIdentityExtractor, RolePermissionChecker
from .infrastructure.repositories import (
    InMemoryAuditEventRepository,
    InMemoryOrgAssignmentRepository,
    PostgresAuditEventRepository,
    PostgresOrgAssignmentRepository,
)

# =============================================================================
# Helpers internos
# =============================================================================


def _uses_memory() -> bool:
    return not get_settings().uses_postgres()


# =============================================================================
# Repositorios (singletons)
# =============================================================================


@lru_cache(maxsize=1)
def get_org_assignment_repository() -> OrgAssignmentRepository:
    """Asignaciones org (in-memory con AUDIT_STORAGE=memory; Postgres si no)."""
    if _uses_memory():
        return InMemoryOrgAssignmentRepository()
    return PostgresOrgAssignmentRepository()


@lru_cache(maxsize=1)
def get_audit_repository() -> AuditEventRepository:
    """EventStore de auditoría."""
    if _uses_memory():
        return InMemoryAuditEventRepository(
            org_assignments=get_org_assignment_repository()
        )
    return PostgresAuditEventRepository()


# =============================================================================
# Identidad
# =============================================================================


@lru_cache(maxsize=1)
def get_identity_extractor() -> IdentityExtractor:
    return RequestIdentityExtractor()


@lru_cache(maxsize=1)
def get_permission_checker() -> PermissionChecker:
    return RolePermissionChecker(identity=get_identity_extractor())


# =============================================================================
# Casos de uso
# =============================================================================


def get_list_audit_events_use_case() -> ListAuditEventsUseCase:
    """Caso de uso: listar eventos de auditoría con scope."""
    return ListAuditEventsUseCase(
        repository=get_audit_repository(),
        org_assignments=get_org_assignment_repository(),
        permissions=get_permission_checker(),
        permission_namespace=get_settings().audit_permission_namespace,
    )


def reset_container() -> None:
    """Limpia singletons (tests / cambio de Settings)."""
    get_audit_repository.cache_clear()
    get_org_assignment_repository.cache_clear()
    get_identity_extractor.cache_clear()
    get_permission_checker.cache_clear()
