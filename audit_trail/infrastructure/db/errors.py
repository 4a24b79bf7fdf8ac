"""
===============================================================================
CRC CARD — infrastructure/db/errors.py
===============================================================================

Errores del ciclo de vida del pool. Son DatabaseError (el API responde 503
DATABASE_ERROR) y a la vez RuntimeError, que es lo que psycopg_pool levanta
para un pool cerrado.
===============================================================================
"""

from ...crosscutting.exceptions import DatabaseError


class DatabasePoolError(DatabaseError, RuntimeError):
    error_code = "DATABASE_POOL_ERROR"


class PoolAlreadyInitializedError(DatabasePoolError):
    """init_pool() llamado dos veces en el mismo proceso."""


class PoolNotInitializedError(DatabasePoolError):
    """get_pool() antes de init_pool() (p.ej. AUDIT_STORAGE=memory)."""


class DatabaseConnectionError(DatabasePoolError):
    """No se pudo obtener una conexión del pool."""
