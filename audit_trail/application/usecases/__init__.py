"""
Application use cases (orchestration over domain ports).
"""

from .list_audit_events import (
    AuditError,
    AuditErrorCode,
    AuditListResult,
    ListAuditEventsUseCase,
)

__all__ = [
    "AuditError",
    "AuditErrorCode",
    "AuditListResult",
    "ListAuditEventsUseCase",
]
