"""
============================================================
TARJETA CRC
============================================================
Class: audit_trail.infrastructure.repositories (Package exports)

Responsibilities:
- Exponer implementaciones concretas (Postgres e InMemory) en un único
  punto de importación.

Collaborators:
- Repositorios Postgres (SQL crudo, psycopg)
- Repositorios InMemory (testing / AUDIT_STORAGE=memory)
============================================================
"""

# ---------------------------
# In-memory implementations
# ---------------------------
from .in_memory import InMemoryAuditEventRepository, InMemoryOrgAssignmentRepository

# ---------------------------
# Postgres implementations
# ---------------------------
from .postgres import PostgresAuditEventRepository, PostgresOrgAssignmentRepository

__all__ = [
    "InMemoryAuditEventRepository",
    "InMemoryOrgAssignmentRepository",
    "PostgresAuditEventRepository",
    "PostgresOrgAssignmentRepository",
]
