"""
audit_trail: append-only audit log for multi-module web backends.

Public write surface for request handlers:

    from audit_trail import AuditEventInput, write_audit_event

    write_audit_event(repo, AuditEventInput(
        entity_kind="contact", action="create", summary="Created contact 42",
        actor_id=caller.subject_id, entity_id="42",
    ))

Requests that write explicitly are skipped by the auto-audit.
"""

from .application.auto_audit import AutoAuditOutcome, write_auto_audit_event
from .application.write_audit import write_audit_event
from .context import (
    AuditContextMeta,
    audit_context,
    get_audit_context,
    get_audit_writes,
    mark_audit_write,
    with_audit_context,
)
from .domain.audit import ActorType, AuditEvent, AuditEventInput, AuditOutcome, FieldChange

__version__ = "0.1.0"

__all__ = [
    "ActorType",
    "AuditContextMeta",
    "AuditEvent",
    "AuditEventInput",
    "AuditOutcome",
    "AutoAuditOutcome",
    "FieldChange",
    "audit_context",
    "get_audit_context",
    "get_audit_writes",
    "mark_audit_write",
    "with_audit_context",
    "write_audit_event",
    "write_auto_audit_event",
]
