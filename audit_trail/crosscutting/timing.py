# audit_trail/crosscutting/timing.py
"""
===============================================================================
MÓDULO: Timing utilities (Timer + RequestTimings)
===============================================================================

Objetivo
--------
Medición simple de tiempos por request:
- Timer (context manager)
- RequestTimings: desglose DB / módulos externos + statements lentos,
  acumulado por request vía ContextVar.

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componentes:
  - Timer
  - SlowStatement
  - RequestTimings (+ helpers start/current/reset)

Responsabilidades:
  - Medir elapsed time con perf_counter
  - Acumular tiempo de DB (infrastructure/db/instrumentation.py)
  - Acumular tiempo de llamadas a módulos externos (measure_module)
  - Exponer los datos que el auto-audit guarda en details

Colaboradores:
  - crosscutting/middleware.py (abre y lee las timings del request)
  - infrastructure/db/instrumentation.py (record_statement)
===============================================================================
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import Iterator, Optional

# Cota del texto SQL guardado por statement lento.
MAX_STATEMENT_CHARS = 1_000


@dataclass
class Timer:
    """Mide elapsed time con perf_counter; uso manual o como context manager."""

    _start_time: Optional[float] = field(default=None, repr=False)
    _end_time: Optional[float] = field(default=None, repr=False)

    def start(self) -> "Timer":
        self._start_time = time.perf_counter()
        self._end_time = None
        return self

    def stop(self) -> "Timer":
        if self._start_time is None:
            raise RuntimeError("Timer not started")
        self._end_time = time.perf_counter()
        return self

    @property
    def elapsed_seconds(self) -> float:
        if self._start_time is None:
            return 0.0
        end = self._end_time or time.perf_counter()
        return end - self._start_time

    @property
    def elapsed_ms(self) -> float:
        return round(self.elapsed_seconds * 1000, 2)

    def __enter__(self) -> "Timer":
        return self.start()

    def __exit__(self, *args) -> None:
        self.stop()


@dataclass(frozen=True, slots=True)
class SlowStatement:
    sql: str
    duration_ms: float

    def to_dict(self) -> dict[str, object]:
        return {"sql": self.sql, "durationMs": self.duration_ms}


@dataclass
class RequestTimings:
    """
    Desglose de tiempos de un request.

    db_time_ms / module_time_ms quedan en None hasta que algo se registra.
    """

    db_time_ms: Optional[float] = None
    module_time_ms: Optional[float] = None
    slow_statements: list[SlowStatement] = field(default_factory=list)

    def record_statement(self, sql: str, elapsed_ms: float, *, slow: bool) -> None:
        self.db_time_ms = round((self.db_time_ms or 0.0) + elapsed_ms, 2)
        if slow:
            self.slow_statements.append(
                SlowStatement(sql=sql[:MAX_STATEMENT_CHARS], duration_ms=elapsed_ms)
            )

    def record_module(self, elapsed_ms: float) -> None:
        self.module_time_ms = round((self.module_time_ms or 0.0) + elapsed_ms, 2)

    @contextmanager
    def measure_module(self) -> Iterator[Timer]:
        """Mide una llamada a un módulo externo (HTTP a otro pack, etc.)."""
        timer = Timer().start()
        try:
            yield timer
        finally:
            timer.stop()
            self.record_module(timer.elapsed_ms)


_request_timings_var: ContextVar[Optional[RequestTimings]] = ContextVar(
    "request_timings", default=None
)


def start_request_timings() -> tuple[RequestTimings, Token]:
    timings = RequestTimings()
    return timings, _request_timings_var.set(timings)


def current_request_timings() -> Optional[RequestTimings]:
    return _request_timings_var.get()


def reset_request_timings(token: Token) -> None:
    _request_timings_var.reset(token)
