"""
===============================================================================
TARJETA CRC — api/exception_handlers.py
===============================================================================

Responsabilidades:
  - Convertir AuditTrailError (y derivadas) en problem+json con su error_id
  - Fallback 500 para excepciones no tipadas, sin filtrar detalles en prod
  - Loguear cada error traducido (el correlation_id lo agrega el formatter)

Colaboradores:
  - crosscutting.error_responses (ErrorCode, problem_response)
  - crosscutting.exceptions (AuditTrailError, DatabaseError)
===============================================================================
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..crosscutting.config import get_settings
from ..crosscutting.error_responses import (
    AppHTTPException,
    ErrorCode,
    app_exception_handler,
    problem_response,
)
from ..crosscutting.exceptions import AuditTrailError, DatabaseError
from ..crosscutting.logger import logger

# Más específica primero: se resuelve por isinstance en orden.
_TYPED_ERRORS: tuple[tuple[type[AuditTrailError], ErrorCode, int], ...] = (
    (DatabaseError, ErrorCode.DATABASE_ERROR, 503),
    (AuditTrailError, ErrorCode.INTERNAL_ERROR, 500),
)


def _classify(exc: AuditTrailError) -> tuple[ErrorCode, int]:
    for error_type, code, status_code in _TYPED_ERRORS:
        if isinstance(exc, error_type):
            return code, status_code
    return ErrorCode.INTERNAL_ERROR, 500


async def audit_trail_error_handler(request: Request, exc: AuditTrailError) -> JSONResponse:
    code, status_code = _classify(exc)
    logger.error(
        "audit trail error",
        extra={"code": code.value, "error_id": exc.error_id, "error": exc.message},
    )
    return problem_response(
        request,
        status_code=status_code,
        code=code,
        detail=exc.message,
        errors=[{"error_id": exc.error_id}],
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled exception", exc_info=exc, extra={"error": str(exc)})
    detail = "Internal error." if get_settings().is_production() else str(exc)
    return problem_response(
        request, status_code=500, code=ErrorCode.INTERNAL_ERROR, detail=detail
    )


def register_exception_handlers(app: FastAPI) -> None:
    for error_type, _, _ in _TYPED_ERRORS:
        app.add_exception_handler(error_type, audit_trail_error_handler)
    app.add_exception_handler(AppHTTPException, app_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = ["register_exception_handlers"]
