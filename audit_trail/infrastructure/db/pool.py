"""
===============================================================================
CRC CARD — infrastructure/db/pool.py
===============================================================================

Componente:
  Pool psycopg compartido por los repositorios de audit_events

Responsabilidades:
  - Crear el pool una sola vez por proceso y exponerlo instrumentado
  - Fijar statement_timeout en cada conexión nueva
  - Cerrarlo en el shutdown del API

Colaboradores:
  - psycopg_pool.ConnectionPool (import diferido)
  - infrastructure/db/instrumentation.InstrumentedConnectionPool
  - crosscutting/config.get_settings (db_statement_timeout_ms)
===============================================================================
"""

from __future__ import annotations

import threading
from typing import Optional

from ...crosscutting.logger import logger
from .errors import PoolAlreadyInitializedError, PoolNotInitializedError
from .instrumentation import InstrumentedConnectionPool

_lock = threading.Lock()
_instance: Optional[InstrumentedConnectionPool] = None


def _apply_statement_timeout(conn) -> None:
    from ...crosscutting.config import get_settings

    timeout_ms = int(get_settings().db_statement_timeout_ms)
    if timeout_ms <= 0:
        return
    conn.execute(f"SET statement_timeout = {timeout_ms}")
    conn.commit()


def init_pool(
    database_url: str,
    min_size: int,
    max_size: int,
    *,
    slow_query_seconds: float = 0.25,
) -> InstrumentedConnectionPool:
    global _instance

    with _lock:
        if _instance is not None:
            raise PoolAlreadyInitializedError("DB pool already initialized")

        from psycopg_pool import ConnectionPool

        raw = ConnectionPool(
            conninfo=database_url,
            min_size=min_size,
            max_size=max_size,
            configure=_apply_statement_timeout,
            open=True,
        )
        _instance = InstrumentedConnectionPool(raw, slow_query_seconds=slow_query_seconds)
        logger.info(
            "audit DB pool ready",
            extra={"min_size": min_size, "max_size": max_size},
        )
        return _instance


def get_pool() -> InstrumentedConnectionPool:
    pool = _instance
    if pool is None:
        raise PoolNotInitializedError(
            "DB pool not initialized; call init_pool() during startup"
        )
    return pool


def close_pool() -> None:
    """Idempotente: sin pool no hace nada."""
    global _instance

    with _lock:
        pool, _instance = _instance, None
    if pool is not None:
        logger.info("closing audit DB pool")
        pool.close()


def reset_pool() -> None:
    """Tests: descarta el singleton sin cerrar el pool subyacente."""
    global _instance
    with _lock:
        _instance = None
