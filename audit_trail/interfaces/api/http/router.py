"""
===============================================================================
TARJETA CRC — router.py (Router raíz / Composición)
===============================================================================

Responsabilidades:
  - Definir el APIRouter raíz que se incluye en FastAPI.
  - Centralizar responses RFC7807 para OpenAPI.

Colaboradores:
  - crosscutting.error_responses.OPENAPI_ERROR_RESPONSES
  - routers.audit

Notas:
  - Se incluye desde api/main.py con prefix=Settings.api_prefix.
===============================================================================
"""

from __future__ import annotations

from fastapi import APIRouter

from ....crosscutting.error_responses import OPENAPI_ERROR_RESPONSES
from .routers.audit import router as audit_router


def build_router() -> APIRouter:
    api_router = APIRouter(responses=OPENAPI_ERROR_RESPONSES)
    api_router.include_router(audit_router)
    return api_router


router = build_router()

__all__ = ["router", "build_router"]
