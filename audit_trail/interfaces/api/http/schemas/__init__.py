"""HTTP DTOs (pydantic)."""

from .audit import AuditEventRes, AuditEventsRes, PaginationRes

__all__ = ["AuditEventRes", "AuditEventsRes", "PaginationRes"]
