"""
Routers Package (HTTP). Solo re-exporta routers.
"""

from .audit import router as audit_router

__all__ = ["audit_router"]
