"""
===============================================================================
MÓDULO: Errores internos del subsistema de auditoría
===============================================================================

Un AuditTrailError lleva un código estable (`error_code`) y un `error_id`
único que aparece tanto en el log como en el problem+json, para poder
encontrar el stacktrace a partir de lo que ve el cliente.

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  AuditTrailError / DatabaseError

Colaboradores:
  - api/exception_handlers.py (los traduce a HTTP)
  - infrastructure/repositories/postgres/* (envuelven errores de psycopg)
  - infrastructure/db/errors.py (errores del pool)
===============================================================================
"""

from __future__ import annotations

from uuid import uuid4


class AuditTrailError(Exception):
    """Raíz de los errores propios; nunca incluye secretos en `message`."""

    error_code: str = "AUDIT_TRAIL_ERROR"

    def __init__(self, message: str, *, error_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.error_id = error_id or uuid4().hex

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, error_id={self.error_id!r})"


class DatabaseError(AuditTrailError):
    """El almacenamiento de eventos no respondió (pool, conexión o SQL)."""

    error_code: str = "DATABASE_ERROR"
