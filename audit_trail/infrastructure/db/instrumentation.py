"""
===============================================================================
CRC CARD — infrastructure/db/instrumentation.py
===============================================================================

Clases:
  - TimedConnection
  - InstrumentedConnectionPool

Responsabilidades:
  - Cronometrar cada conn.execute(...) de los repositorios
  - Sumar el tiempo al RequestTimings del request en curso; de ahí salen
    details.dbTimeMs y details.slowQueries del evento auto-auditado
  - Avisar por log de statements lentos

Colaboradores:
  - crosscutting.timing (current_request_timings)
  - psycopg_pool.ConnectionPool
===============================================================================
"""

from __future__ import annotations

import time
from contextlib import ExitStack, contextmanager
from typing import Any, Iterator

from ...crosscutting.logger import logger
from ...crosscutting.timing import current_request_timings
from .errors import DatabaseConnectionError


def _one_line(sql: Any) -> str:
    return " ".join(str(sql).split())


class TimedConnection:
    """Conexión psycopg con execute() cronometrado; el resto pasa directo."""

    def __init__(self, inner_conn, *, slow_query_seconds: float) -> None:
        self._conn = inner_conn
        self._slow_seconds = slow_query_seconds

    def execute(self, sql, *args, **kwargs):
        started = time.perf_counter()
        try:
            return self._conn.execute(sql, *args, **kwargs)
        finally:
            self._observe(sql, time.perf_counter() - started)

    def _observe(self, sql, seconds: float) -> None:
        is_slow = seconds >= self._slow_seconds
        timings = current_request_timings()
        if timings is not None:
            timings.record_statement(_one_line(sql), round(seconds * 1000, 2), slow=is_slow)
        if is_slow:
            keyword = str(sql).lstrip().split(" ", 1)[0].upper()
            logger.warning(
                "slow audit statement",
                extra={"statement": keyword or "?", "seconds": round(seconds, 4)},
            )

    def __getattr__(self, name: str):
        return getattr(self._conn, name)


class InstrumentedConnectionPool:
    """
    Envoltorio del ConnectionPool real.

    `with pool.connection() as conn:` sigue funcionando igual en los
    repositorios; sólo cambia que `conn` es un TimedConnection.
    """

    def __init__(self, inner_pool, *, slow_query_seconds: float = 0.25) -> None:
        self._pool = inner_pool
        self._slow_seconds = slow_query_seconds

    @contextmanager
    def connection(self, *args, **kwargs) -> Iterator[TimedConnection]:
        with ExitStack() as stack:
            try:
                raw = stack.enter_context(self._pool.connection(*args, **kwargs))
            except Exception as exc:
                raise DatabaseConnectionError(
                    "could not acquire a DB connection"
                ) from exc
            yield TimedConnection(raw, slow_query_seconds=self._slow_seconds)

    def __getattr__(self, name: str):
        return getattr(self._pool, name)
