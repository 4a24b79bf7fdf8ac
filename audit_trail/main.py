"""
Name: ASGI Entrypoint (audit_trail.main)

Responsibilities:
  - Re-export the FastAPI app for ASGI servers (uvicorn audit_trail.main:app)

Notes/Constraints:
  - No configuration or IO should live here; keep it thin
"""

from audit_trail.api.main import app

__all__ = ["app"]
