"""
===============================================================================
TARJETA CRC — domain/__init__.py
===============================================================================

Módulo:
    Exportaciones de la capa de dominio

Responsabilidades:
    - Centralizar exports para imports limpios en application/interfaces.
    - Mantener estable el "surface area" del dominio.

Reglas:
    - Solo re-exporta contratos/entidades del dominio.
    - No importar infraestructura aquí.
===============================================================================
"""

from .access import ActionCheckResult, CallerIdentity, OrgScope
from .audit import (
    ActorType,
    AuditEvent,
    AuditEventInput,
    AuditOutcome,
    AuditPage,
    FieldChange,
)
from .repositories import (
    AuditEventRepository,
    IdentityExtractor,
    OrgAssignmentRepository,
    PermissionChecker,
)
from .scope import SCOPE_PRECEDENCE, ScopeMode, ScopeVerb

__all__ = [
    # Entities
    "AuditEvent",
    "AuditEventInput",
    "AuditPage",
    "FieldChange",
    "ActorType",
    "AuditOutcome",
    # Access
    "CallerIdentity",
    "ActionCheckResult",
    "OrgScope",
    # Scope
    "ScopeMode",
    "ScopeVerb",
    "SCOPE_PRECEDENCE",
    # Ports
    "AuditEventRepository",
    "OrgAssignmentRepository",
    "PermissionChecker",
    "IdentityExtractor",
]
