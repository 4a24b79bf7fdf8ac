"""
Name: FastAPI Application Entry Point

Responsibilities:
  - Build the FastAPI application (create_app factory + module-level app)
  - Configure middleware (CORS, audit context / auto-audit)
  - Mount the audit router under Settings.api_prefix
  - Expose a health check

Collaborators:
  - FastAPI: ASGI web framework
  - CORSMiddleware: Cross-Origin Resource Sharing handler
  - AuditContextMiddleware: per-request audit context + auto-audit
  - interfaces.api.http.router: GET /audit

Constraints:
  - CORS configurable via ALLOWED_ORIGINS env var (comma-separated)
  - The pool is only opened when AUDIT_STORAGE=postgres

Notes:
  - Middleware order matters: CORS wraps AuditContext wraps routes
  - /healthz follows Kubernetes health check convention
"""

from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from ..container import get_audit_repository, get_identity_extractor
from ..crosscutting.config import get_settings
from ..crosscutting.logger import logger
from ..crosscutting.middleware import (
    CORRELATION_HEADER,
    AuditContextMiddleware,
    wait_for_deferred_auto_audits,
)
from ..domain.repositories import AuditEventRepository, IdentityExtractor
from ..infrastructure.db.pool import close_pool, get_pool, init_pool
from ..interfaces.api.http.router import router
from .exception_handlers import register_exception_handlers


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle. Validates settings and opens the pool."""
    settings = get_settings()
    settings.validate_storage_requirements()

    if settings.uses_postgres():
        init_pool(
            database_url=settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            slow_query_seconds=settings.db_slow_query_seconds,
        )

    try:
        logger.info(
            "Audit trail API starting up",
            extra={
                "storage": settings.audit_storage,
                "api_prefix": settings.api_prefix,
                "auto_audit_enabled": settings.auto_audit_enabled,
                "db_pool_min": settings.db_pool_min_size,
                "db_pool_max": settings.db_pool_max_size,
            },
        )
        yield
    finally:
        wait_for_deferred_auto_audits()
        if settings.uses_postgres():
            close_pool()
        logger.info("Audit trail API shutting down")


def _check_db() -> str:
    settings = get_settings()
    if not settings.uses_postgres():
        return "memory"
    try:
        with get_pool().connection() as conn:
            conn.execute("SELECT 1")
        return "connected"
    except Exception as e:
        logger.warning("Health check: DB unavailable", extra={"error": str(e)})
        return "disconnected"


def create_app(
    *,
    repository_provider: Optional[Callable[[], AuditEventRepository]] = None,
    identity: Optional[IdentityExtractor] = None,
) -> FastAPI:
    """
    Construye la app.

    repository_provider / identity permiten inyectar fakes en el middleware
    (dependency_overrides no alcanza a los middlewares).
    """
    settings = get_settings()

    app = FastAPI(
        title="Audit Trail API",
        version="0.1.0",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "audit", "description": "Scoped audit log queries"},
        ],
    )

    # R: Middleware order (bottom = first to execute):
    # 1. CORSMiddleware - handles preflight
    # 2. AuditContextMiddleware - context, timings, auto-audit
    app.add_middleware(
        AuditContextMiddleware,
        repository_provider=repository_provider or get_audit_repository,
        identity=identity or get_identity_extractor(),
        api_prefix=settings.api_prefix,
        auto_audit_enabled=settings.auto_audit_enabled,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins_list(),
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "Authorization",
            "X-Correlation-Id",
            "X-Request-Id",
        ],
        expose_headers=[CORRELATION_HEADER],
    )

    app.include_router(router, prefix=settings.api_prefix)
    register_exception_handlers(app)

    @app.get("/healthz")
    def healthz(request: Request):
        db_status = _check_db()
        return {
            "ok": db_status != "disconnected",
            "db": db_status,
            "correlation_id": getattr(request.state, "correlation_id", None),
        }

    return app


app = create_app()
