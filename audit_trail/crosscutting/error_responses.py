"""
===============================================================================
MÓDULO: Problem Details (RFC 7807) del API de auditoría
===============================================================================

Todo error HTTP sale como application/problem+json con un `code` estable y,
cuando hay request en curso, el correlation_id en `errors`. Así el cliente
puede buscar en GET /audit el evento `*_rejected` del mismo request.

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  ErrorCode / ErrorDetail / AppHTTPException / problem_response()

Responsabilidades:
  - Códigos de error expuestos a clientes
  - Construir el cuerpo problem+json
  - Documentar esas respuestas en OpenAPI

Colaboradores:
  - audit_trail/context.py (correlation_id activo)
  - api/exception_handlers.py (traduce AuditTrailError)
===============================================================================
"""

from __future__ import annotations

from enum import Enum
from http import HTTPStatus
from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..context import get_audit_context

PROBLEM_JSON_MEDIA_TYPE = "application/problem+json"


class ErrorCode(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"


class ErrorDetail(BaseModel):
    """Cuerpo problem+json; `errors` lleva correlation_id / error_id."""

    type: str = "about:blank"
    title: str
    status: int
    detail: str
    code: ErrorCode
    instance: str | None = None
    errors: list[dict[str, Any]] | None = None


OPENAPI_ERROR_RESPONSES: dict[str, dict[str, Any]] = {
    key: {
        "description": f"{description} (RFC7807)",
        "model": ErrorDetail,
        "content": {
            PROBLEM_JSON_MEDIA_TYPE: {
                "schema": {"$ref": "#/components/schemas/ErrorDetail"}
            }
        },
    }
    for key, description in (
        ("401", "Unauthorized"),
        ("503", "Service Unavailable"),
        ("default", "Error"),
    )
}


class AppHTTPException(HTTPException):
    """HTTPException que además sabe su ErrorCode."""

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        detail: str,
        errors: list[dict[str, Any]] | None = None,
    ):
        super().__init__(status_code=status_code, detail=detail)
        self.code = code
        self.errors = errors


def unauthorized(detail: str = "Unauthorized") -> AppHTTPException:
    return AppHTTPException(401, ErrorCode.UNAUTHORIZED, detail)


def correlation_id_for(request: Request) -> str | None:
    """correlation_id del request: request.state primero, luego el contexto."""
    state = getattr(request, "state", None)
    from_state = getattr(state, "correlation_id", None)
    if from_state:
        return from_state
    ctx = get_audit_context()
    return ctx.correlation_id if ctx is not None else None


def _title_for(status_code: int, code: ErrorCode) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return code.value.replace("_", " ").title()


def problem_response(
    request: Request,
    *,
    status_code: int,
    code: ErrorCode,
    detail: str,
    errors: list[dict[str, Any]] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Arma la respuesta problem+json, agregando el correlation_id si lo hay."""
    entries = list(errors or [])
    correlation_id = correlation_id_for(request)
    if correlation_id:
        entries.append({"correlation_id": correlation_id})

    body = ErrorDetail(
        type=f"about:blank/{code.value.lower()}",
        title=_title_for(status_code, code),
        status=status_code,
        detail=detail,
        code=code,
        instance=str(request.url),
        errors=entries or None,
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", exclude_none=True),
        headers=headers,
        media_type=PROBLEM_JSON_MEDIA_TYPE,
    )


async def app_exception_handler(request: Request, exc: AppHTTPException) -> JSONResponse:
    return problem_response(
        request,
        status_code=exc.status_code,
        code=exc.code,
        detail=str(exc.detail),
        errors=exc.errors,
        headers=getattr(exc, "headers", None),
    )
