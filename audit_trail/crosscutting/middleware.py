"""
===============================================================================
MÓDULO: Middleware HTTP (contexto de auditoría + auto-audit)
===============================================================================

Objetivo
--------
AuditContextMiddleware (ASGI puro) es el borde del dispatcher:
   - Generar/propagar correlation id (x-correlation-id / x-request-id)
   - Establecer el AuditContext del request (ContextVar)
   - Abrir el acumulador de tiempos (DB / módulos / queries lentas)
   - Capturar body (JSON o texto) de request y response, status y duración
   - Tras enviar la respuesta, derivar el evento automático (best-effort)

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componentes:
  - AuditContextMiddleware

Responsabilidades:
  - Contexto por request + header X-Correlation-Id
  - Log de finalización por request
  - Disparar application.auto_audit.write_auto_audit_event

Colaboradores:
  - audit_trail/context.py
  - crosscutting/timing.py
  - application/auto_audit.py
  - identity.auth (IdentityExtractor)
===============================================================================
"""

from __future__ import annotations

import contextvars
import json
import threading
import time
import uuid
from typing import Any, Callable, Optional

from starlette.concurrency import run_in_threadpool
from starlette.requests import HTTPConnection

from ..application.auto_audit import (
    DEFAULT_API_PREFIX,
    AutoAuditOutcome,
    write_auto_audit_event,
)
from ..context import AuditContextMeta, audit_context
from ..domain.access import CallerIdentity
from ..domain.repositories import AuditEventRepository, IdentityExtractor
from .logger import logger
from .timing import reset_request_timings, start_request_timings

CORRELATION_HEADER = "X-Correlation-Id"

# R: bodies más grandes no se parsean (el evento igual se escribe sin ellos).
MAX_CAPTURE_BYTES = 1_048_576

_MAX_CORRELATION_ID_LEN = 128


def pack_name_from_path(path: str, api_prefix: str = DEFAULT_API_PREFIX) -> str:
    """Primer segmento después del prefijo de API ("" si no hay)."""
    namespace = api_prefix.rstrip("/") + "/" if api_prefix else "/"
    if not path.startswith(namespace):
        return ""
    segments = [s for s in path[len(namespace):].split("/") if s]
    return segments[0] if segments else ""


def _client_ip(conn: HTTPConnection) -> Optional[str]:
    forwarded = (conn.headers.get("x-forwarded-for") or "").strip()
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return conn.client.host if conn.client else None


def _correlation_id(conn: HTTPConnection) -> str:
    for header in ("x-correlation-id", "x-request-id"):
        incoming = (conn.headers.get(header) or "").strip()
        if incoming and len(incoming) <= _MAX_CORRELATION_ID_LEN:
            return incoming
    return str(uuid.uuid4())


def _decode_body(raw: bytes, content_type: str) -> Any:
    """JSON -> objeto, text/* -> str (UTF-8 tolerante); otros tipos no se guardan."""
    if not raw:
        return None
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if "json" in media_type:
        try:
            return json.loads(raw)
        except (UnicodeDecodeError, ValueError):
            return None
    if media_type.startswith("text/"):
        return raw.decode("utf-8", errors="replace")
    return None


_deferred_lock = threading.Lock()
_deferred_writes: set[threading.Thread] = set()


def _start_deferred(target: Callable[..., Any], *args: Any) -> None:
    ctx = contextvars.copy_context()

    def run() -> None:
        try:
            ctx.run(target, *args)
        finally:
            with _deferred_lock:
                _deferred_writes.discard(thread)

    thread = threading.Thread(target=run, name="auto-audit", daemon=True)
    with _deferred_lock:
        _deferred_writes.add(thread)
    thread.start()


def wait_for_deferred_auto_audits(timeout: Optional[float] = 5.0) -> None:
    """Espera los auto-audits diferidos (requests que terminaron en excepción)."""
    with _deferred_lock:
        pending = list(_deferred_writes)
    for thread in pending:
        thread.join(timeout)


class _BodyCapture:
    """Acumula chunks hasta MAX_CAPTURE_BYTES; pasado eso, descarta."""

    def __init__(self) -> None:
        self._chunks: list[bytes] = []
        self._size = 0
        self.overflow = False

    def add(self, chunk: bytes) -> None:
        if self.overflow or not chunk:
            return
        self._size += len(chunk)
        if self._size > MAX_CAPTURE_BYTES:
            self.overflow = True
            self._chunks.clear()
            return
        self._chunks.append(chunk)

    def value(self) -> bytes:
        return b"" if self.overflow else b"".join(self._chunks)


class AuditContextMiddleware:
    """
    ----------------------------------------------------------------------------
    CRC (Class Card)
    ----------------------------------------------------------------------------
    Clase:
      AuditContextMiddleware

    Responsabilidades:
      - Un AuditContext por request HTTP (nunca compartido)
      - Capturar lo que el AutoAuditDeriver necesita
      - Correr el auto-audit después de la respuesta, en un thread

    Colaboradores:
      - repository_provider: () -> AuditEventRepository
      - identity: IdentityExtractor
    ----------------------------------------------------------------------------
    """

    _QUIET_PATHS = {"/healthz"}

    def __init__(
        self,
        app,
        *,
        repository_provider: Callable[[], AuditEventRepository],
        identity: IdentityExtractor,
        api_prefix: str = DEFAULT_API_PREFIX,
        auto_audit_enabled: bool = True,
    ):
        self.app = app
        self.repository_provider = repository_provider
        self.identity = identity
        self.api_prefix = api_prefix
        self.auto_audit_enabled = auto_audit_enabled

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        conn = HTTPConnection(scope)
        path = scope.get("path", "")
        method = scope.get("method", "").upper()
        correlation_id = _correlation_id(conn)

        caller: Optional[CallerIdentity] = self.identity.extract(conn)

        state = scope.setdefault("state", {})
        state["correlation_id"] = correlation_id
        state["caller"] = caller

        meta = AuditContextMeta(
            correlation_id=correlation_id,
            pack_name=pack_name_from_path(path, self.api_prefix),
            method=method,
            path=path,
            actor_id=caller.subject_id if caller else None,
            ip_address=_client_ip(conn),
            user_agent=conn.headers.get("user-agent"),
        )

        request_body = _BodyCapture()
        response_body = _BodyCapture()
        status_code = 500
        response_content_type = ""

        async def receive_wrapper():
            message = await receive()
            if message["type"] == "http.request":
                request_body.add(message.get("body", b"") or b"")
            return message

        async def send_wrapper(message):
            nonlocal status_code, response_content_type
            if message["type"] == "http.response.start":
                status_code = message["status"]
                headers = list(message.get("headers", []))
                for key, value in headers:
                    if key.lower() == b"content-type":
                        response_content_type = value.decode("latin-1")
                headers.append(
                    (CORRELATION_HEADER.lower().encode(), correlation_id.encode())
                )
                message["headers"] = headers
            elif message["type"] == "http.response.body":
                response_body.add(message.get("body", b"") or b"")
            await send(message)

        with audit_context(meta):
            timings, timings_token = start_request_timings()
            start = time.perf_counter()
            raised = False
            try:
                await self.app(scope, receive_wrapper, send_wrapper)
            except Exception:
                logger.exception("request failed", extra={"status_code": 500})
                status_code = 500
                raised = True
                raise
            finally:
                duration_ms = round((time.perf_counter() - start) * 1000, 2)

                if path not in self._QUIET_PATHS:
                    logger.info(
                        "request completed",
                        extra={"status_code": status_code, "latency_ms": duration_ms},
                    )

                if self.auto_audit_enabled:
                    outcome = AutoAuditOutcome(
                        response_status=status_code,
                        response_body=_decode_body(
                            response_body.value(), response_content_type
                        ),
                        request_body=_decode_body(
                            request_body.value(), conn.headers.get("content-type", "")
                        ),
                        duration_ms=duration_ms,
                        actor_id=meta.actor_id,
                        db_time_ms=timings.db_time_ms,
                        module_time_ms=timings.module_time_ms,
                        slow_queries=list(timings.slow_statements),
                    )
                    if raised:
                        # El 500 todavía no se envió; la escritura corre aparte.
                        _start_deferred(self._write_auto_audit, outcome)
                    else:
                        await self._run_auto_audit(outcome)

                reset_request_timings(timings_token)

    async def _run_auto_audit(self, outcome: AutoAuditOutcome) -> bool:
        # R: el thread corre sobre una copia del contexto actual (mismo AuditContext).
        ctx = contextvars.copy_context()
        return await run_in_threadpool(ctx.run, self._write_auto_audit, outcome)

    def _write_auto_audit(self, outcome: AutoAuditOutcome) -> bool:
        try:
            repository = self.repository_provider()
        except Exception as exc:
            logger.exception(
                "Audit repository unavailable, skipping auto-audit",
                extra={"error": str(exc)},
            )
            return False
        return write_auto_audit_event(
            repository, outcome, api_prefix=self.api_prefix
        )
