"""
Name: Pytest Configuration and Shared Fixtures

Responsibilities:
  - Configure test environment (no .env, in-memory storage)
  - Provide reusable fixtures (repositories, audit context metadata)
  - Reset cached singletons between tests

Collaborators:
  - pytest: Test framework
  - audit_trail.crosscutting.config / audit_trail.container
  - audit_trail.infrastructure.repositories.in_memory

Notes:
  - Fixtures are auto-discovered by pytest
  - Env vars are set BEFORE importing the package: the global logger reads
    Settings at import time
"""

import os
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("AUDIT_STORAGE", "memory")
os.environ.setdefault("LOG_JSON", "false")

from audit_trail.crosscutting import config as app_config  # noqa: E402

app_config.Settings.model_config["env_file"] = None

from audit_trail.container import reset_container  # noqa: E402
from audit_trail.context import AuditContextMeta  # noqa: E402
from audit_trail.identity.permissions import clear_permissions_cache  # noqa: E402
from audit_trail.infrastructure.repositories import (  # noqa: E402
    InMemoryAuditEventRepository,
    InMemoryOrgAssignmentRepository,
)


def pytest_configure(config) -> None:
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )


@pytest.fixture(autouse=True)
def _reset_singletons():
    """R: Each test sees fresh Settings, container and permission config."""
    app_config.get_settings.cache_clear()
    reset_container()
    clear_permissions_cache()
    yield
    app_config.get_settings.cache_clear()
    reset_container()
    clear_permissions_cache()


@pytest.fixture
def org_assignments() -> InMemoryOrgAssignmentRepository:
    return InMemoryOrgAssignmentRepository()


@pytest.fixture
def audit_repo(org_assignments) -> InMemoryAuditEventRepository:
    return InMemoryAuditEventRepository(org_assignments=org_assignments)


@pytest.fixture
def audit_meta() -> AuditContextMeta:
    """R: Context of a POST to /api/crm/contacts by user-1."""
    return AuditContextMeta(
        correlation_id="corr-1",
        pack_name="crm",
        method="POST",
        path="/api/crm/contacts",
        actor_id="user-1",
        ip_address="10.0.0.1",
        user_agent="pytest",
    )
