"""
PostgreSQL Repository Implementations (raw parameterized SQL over psycopg).
"""

from .audit_event import PostgresAuditEventRepository
from .org_assignment import PostgresOrgAssignmentRepository

__all__ = [
    "PostgresAuditEventRepository",
    "PostgresOrgAssignmentRepository",
]
