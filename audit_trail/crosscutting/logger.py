"""
===============================================================================
MÓDULO: Logging JSON del subsistema de auditoría
===============================================================================

Cada línea de log es un objeto JSON. Cuando hay un request en curso se
adjuntan correlation_id, method, path y pack_name, de modo que un log y la
fila de audit_events del mismo request se pueden cruzar por correlation_id.

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  JSONFormatter + setup_logger()

Responsabilidades:
  - Serializar LogRecord a una única línea
  - Mezclar el contexto de auditoría activo
  - Ocultar credenciales (JWT, cookies, secretos) que lleguen por `extra`

Colaboradores:
  - audit_trail/context.py (get_context_dict)
  - crosscutting/config.py (log_level, log_json)
===============================================================================
"""

from __future__ import annotations

import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any

REDACTED = "***REDACTED***"
TRUNCATED_SUFFIX = "…(truncated)"

# Atributos estándar del LogRecord; el resto se trata como `extra`.
_STANDARD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}

_PLAIN_FORMAT = "%(levelname)s %(name)s %(message)s"


class _Redactor:
    """Limpia valores de `extra`: oculta credenciales y acota tamaño/profundidad."""

    SENSITIVE_KEYS = frozenset(
        {
            "authorization",
            "cookie",
            "set-cookie",
            "hit_token",
            "token",
            "access_token",
            "refresh_token",
            "password",
            "secret",
            "audit_jwt_secret",
            "api_key",
            "x-api-key",
        }
    )

    def __init__(self, max_str: int = 4_000, max_depth: int = 4):
        self._max_str = max_str
        self._max_depth = max_depth

    def is_sensitive(self, key: str | None) -> bool:
        return bool(key) and key.lower() in self.SENSITIVE_KEYS

    def sanitize(self, value: Any, *, depth: int = 0, key: str | None = None) -> Any:
        if self.is_sensitive(key):
            return REDACTED
        if depth > self._max_depth:
            return "***TRUNCATED***"

        if isinstance(value, str):
            return self._clip(value)
        if isinstance(value, (bytes, bytearray)):
            return f"<{len(value)} bytes>"
        if isinstance(value, dict):
            return {
                str(name): self.sanitize(item, depth=depth + 1, key=str(name))
                for name, item in value.items()
            }
        if isinstance(value, (list, tuple, set, frozenset)):
            return [self.sanitize(item, depth=depth + 1, key=key) for item in value]
        if value is None or isinstance(value, (bool, int, float)):
            return value
        return str(value)

    def _clip(self, text: str) -> str:
        if len(text) > self._max_str:
            return text[: self._max_str] + TRUNCATED_SUFFIX
        return text


def _audit_context_fields() -> dict[str, Any]:
    # El logging no puede fallar por el contexto.
    try:
        from ..context import get_context_dict

        return get_context_dict()
    except Exception:
        return {}


def _exception_fields(exc_info) -> dict[str, Any]:
    exc_type, exc, tb = exc_info
    return {
        "type": getattr(exc_type, "__name__", None),
        "message": None if exc is None else str(exc),
        "stacktrace": traceback.format_exception(exc_type, exc, tb),
    }


class JSONFormatter(logging.Formatter):
    """LogRecord -> JSON en una línea, con el contexto de auditoría del request."""

    def __init__(self, redactor: _Redactor | None = None):
        super().__init__()
        self._redactor = redactor or _Redactor()

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "pid": os.getpid(),
        }
        entry.update(_audit_context_fields())

        entry.update(
            (name, self._redactor.sanitize(value, key=name))
            for name, value in vars(record).items()
            if name not in _STANDARD_ATTRS
        )

        if record.exc_info:
            entry["exception"] = _exception_fields(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str, separators=(",", ":"))


def _logging_preferences() -> tuple[int, bool]:
    """(nivel, json?) desde Settings; INFO + JSON si la config aún no carga."""
    try:
        from .config import get_settings

        settings = get_settings()
    except Exception:
        return logging.INFO, True
    level_name = (settings.log_level or "INFO").upper()
    return getattr(logging, level_name, logging.INFO), bool(settings.log_json)


def setup_logger(name: str = "audit-trail") -> logging.Logger:
    """Logger del servicio; idempotente frente a reimports (un solo handler)."""
    log = logging.getLogger(name)
    level, as_json = _logging_preferences()
    log.setLevel(level)

    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter() if as_json else logging.Formatter(_PLAIN_FORMAT))
        log.addHandler(handler)
    return log


logger = setup_logger()
