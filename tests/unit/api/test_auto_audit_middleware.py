"""
Name: Auto-Audit Middleware Tests

Responsibilities:
  - Successful writes without an explicit event get one derived event
  - An explicit write suppresses the derived event (exactly one row)
  - Successful reads are not audited, failed reads are
  - Auto-audit failures never change the response
  - Strict write failures surface as 503 problem+json

Notes:
  - Routes are mounted on the real app factory; storage is in-memory
"""

import threading
import time

import pytest
from fastapi import HTTPException
from fastapi.responses import PlainTextResponse
from fastapi.testclient import TestClient

from audit_trail.api.main import create_app
from audit_trail.application.write_audit import write_audit_event
from audit_trail.context import get_audit_context
from audit_trail.crosscutting.config import get_settings
from audit_trail.crosscutting.exceptions import DatabaseError
from audit_trail.crosscutting.middleware import wait_for_deferred_auto_audits
from audit_trail.crosscutting.timing import current_request_timings
from audit_trail.domain.audit import AuditEventInput, AuditOutcome
from audit_trail.identity import RequestIdentityExtractor
from audit_trail.identity.auth import IdentitySettings

pytestmark = pytest.mark.unit

_IDENTITY = RequestIdentityExtractor(
    IdentitySettings(jwt_secret="", token_cookie="hit_token", trust_user_id_header=True)
)


class _FailingRepo:
    def insert(self, event, *, connection=None):
        raise DatabaseError("audit_events unavailable")

    def query(self, predicate, *, page, page_size):
        raise AssertionError("not used")


class _GatedRepo:
    """Holds every insert until `release` is set."""

    def __init__(self, inner):
        self.inner = inner
        self.release = threading.Event()

    def insert(self, event, *, connection=None):
        self.release.wait(5)
        return self.inner.insert(event, connection=connection)

    def query(self, predicate, *, page, page_size):
        return self.inner.query(predicate, page=page, page_size=page_size)


def _build_app(repo):
    app = create_app(repository_provider=lambda: repo, identity=_IDENTITY)

    @app.post("/api/crm/contacts", status_code=201)
    def create_contact(payload: dict):
        return {"id": "c-1", **payload}

    @app.post("/api/crm/imports", status_code=201)
    def import_contacts():
        write_audit_event(
            repo,
            AuditEventInput(
                entity_kind="contact",
                action="imported",
                summary="Imported 3 contacts",
                actor_id=get_audit_context().actor_id,
                details={"count": 3},
            ),
        )
        return {"imported": 3}

    @app.get("/api/crm/contacts/{contact_id}")
    def get_contact(contact_id: str):
        if contact_id == "123":
            raise HTTPException(status_code=404, detail="Contact not found")
        return {"id": contact_id}

    @app.delete("/api/crm/contacts/{contact_id}")
    def delete_contact(contact_id: str):
        raise RuntimeError("boom")

    @app.post("/api/billing/invoices", status_code=201)
    def create_invoice():
        return PlainTextResponse("Quota exceeded for tenant", status_code=429)

    @app.post("/api/crm/reports", status_code=201)
    def create_report():
        with current_request_timings().measure_module():
            time.sleep(0.01)
        return {"id": "r-1"}

    return app


@pytest.fixture
def client(audit_repo):
    return TestClient(_build_app(audit_repo))


def test_write_without_explicit_event_is_auto_audited(client, audit_repo):
    res = client.post(
        "/api/crm/contacts",
        json={"name": "Ada"},
        headers={"x-user-id": "alice", "X-Correlation-Id": "corr-42"},
    )

    assert res.status_code == 201
    [event] = audit_repo.events
    assert event.entity_kind == "contact"
    assert event.entity_id == "c-1"
    assert event.action == "created"
    assert event.summary == "Created contact (c-1)"
    assert event.outcome is AuditOutcome.SUCCESS
    assert event.actor_id == "alice"
    assert event.correlation_id == "corr-42"
    assert event.pack_name == "crm"
    assert event.method == "POST"
    assert event.path == "/api/crm/contacts"
    assert event.details["responseStatus"] == 201
    assert event.details["success"] is True
    assert event.details["requestBody"] == {"name": "Ada"}
    assert event.details["responseBody"] == {"id": "c-1", "name": "Ada"}


def test_explicit_write_suppresses_auto_audit(client, audit_repo):
    res = client.post("/api/crm/imports", headers={"x-user-id": "alice"})

    assert res.status_code == 201
    [event] = audit_repo.events
    assert event.action == "imported"
    assert event.actor_id == "alice"
    assert event.pack_name == "crm"
    assert event.correlation_id == res.headers["x-correlation-id"]


def test_successful_read_is_not_audited(client, audit_repo):
    res = client.get("/api/crm/contacts/9", headers={"x-user-id": "alice"})

    assert res.status_code == 200
    assert audit_repo.events == []


def test_failed_read_is_audited_with_hint(client, audit_repo):
    res = client.get("/api/crm/contacts/123")

    assert res.status_code == 404
    [event] = audit_repo.events
    assert event.action == "get_rejected"
    assert event.outcome is AuditOutcome.FAILURE
    assert event.entity_id == "123"
    assert event.summary == "Get_rejected contact (123) — Contact not found"
    assert event.actor_id == "system"


def test_unhandled_error_is_audited_as_error(audit_repo):
    client = TestClient(_build_app(audit_repo), raise_server_exceptions=False)

    res = client.delete("/api/crm/contacts/7", headers={"x-user-id": "alice"})

    assert res.status_code == 500
    wait_for_deferred_auto_audits()
    [event] = audit_repo.events
    assert event.action == "deleted_failed"
    assert event.outcome is AuditOutcome.ERROR
    assert event.details["success"] is False


def test_auto_audit_failure_does_not_change_response():
    client = TestClient(_build_app(_FailingRepo()))

    res = client.post("/api/crm/contacts", json={"name": "Ada"})

    assert res.status_code == 201
    assert res.json() == {"id": "c-1", "name": "Ada"}


def test_strict_write_failure_surfaces_as_503():
    client = TestClient(_build_app(_FailingRepo()))

    res = client.post("/api/crm/imports", headers={"x-user-id": "alice"})

    assert res.status_code == 503
    assert res.headers["content-type"].startswith("application/problem+json")
    assert res.json()["code"] == "DATABASE_ERROR"


def test_auto_audit_can_be_disabled(monkeypatch, audit_repo):
    monkeypatch.setenv("AUTO_AUDIT_ENABLED", "false")
    get_settings.cache_clear()
    client = TestClient(_build_app(audit_repo))

    client.post("/api/crm/contacts", json={"name": "Ada"})

    assert audit_repo.events == []


def test_forwarded_for_first_hop_is_recorded(client, audit_repo):
    client.post(
        "/api/crm/contacts",
        json={"name": "Ada"},
        headers={"x-forwarded-for": "203.0.113.7, 10.0.0.1", "user-agent": "cli/1.0"},
    )

    [event] = audit_repo.events
    assert event.ip_address == "203.0.113.7"
    assert event.user_agent == "cli/1.0"


def test_unhandled_error_response_is_sent_before_audit_write(audit_repo):
    repo = _GatedRepo(audit_repo)
    client = TestClient(_build_app(repo), raise_server_exceptions=False)

    res = client.delete("/api/crm/contacts/7", headers={"x-user-id": "alice"})

    assert res.status_code == 500
    assert audit_repo.events == []

    repo.release.set()
    wait_for_deferred_auto_audits()

    [event] = audit_repo.events
    assert event.action == "deleted_failed"
    assert event.actor_id == "alice"
    assert event.correlation_id == res.headers["x-correlation-id"]


def test_plain_text_error_body_becomes_hint(client, audit_repo):
    res = client.post("/api/billing/invoices", headers={"x-user-id": "alice"})

    assert res.status_code == 429
    [event] = audit_repo.events
    assert event.pack_name == "billing"
    assert event.action == "created_rejected"
    assert event.outcome is AuditOutcome.FAILURE
    assert event.summary == "Created_rejected invoice — Quota exceeded for tenant"
    assert event.details["responseBody"] == "Quota exceeded for tenant"


def test_module_time_is_recorded(client, audit_repo):
    res = client.post("/api/crm/reports", headers={"x-user-id": "alice"})

    assert res.status_code == 201
    [event] = audit_repo.events
    assert event.entity_kind == "report"
    assert event.details["moduleTimeMs"] >= 10
