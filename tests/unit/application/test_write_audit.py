"""
Name: Strict audit writer tests

Responsibilities:
  - Context defaults fill missing request metadata
  - Explicit fields win over context
  - Storage failures propagate and do not count as writes
  - The connection argument reaches the repository
"""

from datetime import datetime, timezone
from unittest.mock import Mock
from uuid import UUID

import pytest

from audit_trail.application.write_audit import (
    build_audit_event,
    sanitize_payload,
    write_audit_event,
)
from audit_trail.context import audit_context, get_audit_writes
from audit_trail.domain.audit import (
    ActorType,
    AuditEventInput,
    AuditOutcome,
    FieldChange,
)

pytestmark = pytest.mark.unit


def _input(**overrides) -> AuditEventInput:
    base = dict(
        entity_kind="contact",
        action="updated",
        summary="Updated contact 42",
        actor_id="user-1",
        entity_id="42",
    )
    base.update(overrides)
    return AuditEventInput(**base)


def test_write_fills_request_metadata_from_context(audit_repo, audit_meta):
    with audit_context(audit_meta):
        stored = write_audit_event(audit_repo, _input())
        assert get_audit_writes() == 1

    assert stored.correlation_id == "corr-1"
    assert stored.pack_name == "crm"
    assert stored.method == "POST"
    assert stored.path == "/api/crm/contacts"
    assert stored.ip_address == "10.0.0.1"
    assert stored.user_agent == "pytest"
    assert stored.actor_type == ActorType.USER
    assert stored.created_at is not None
    assert audit_repo.events == [stored]


def test_explicit_fields_win_over_context(audit_repo, audit_meta):
    with audit_context(audit_meta):
        stored = write_audit_event(
            audit_repo,
            _input(
                correlation_id="explicit-corr",
                pack_name="forms",
                actor_type=ActorType.API,
                outcome=AuditOutcome.SUCCESS,
                event_type="contact.merged",
            ),
        )

    assert stored.correlation_id == "explicit-corr"
    assert stored.pack_name == "forms"
    assert stored.actor_type == ActorType.API
    assert stored.outcome == AuditOutcome.SUCCESS
    assert stored.event_type == "contact.merged"


def test_write_outside_context_still_persists(audit_repo):
    stored = write_audit_event(audit_repo, _input())

    assert stored.correlation_id is None
    assert stored.method is None
    assert stored.event_type == "updated"
    assert len(audit_repo.events) == 1


def test_write_propagates_storage_failure(audit_meta):
    repo = Mock()
    repo.insert.side_effect = RuntimeError("constraint violated")

    with audit_context(audit_meta):
        with pytest.raises(RuntimeError, match="constraint violated"):
            write_audit_event(repo, _input())
        assert get_audit_writes() == 0


def test_write_passes_caller_connection():
    repo = Mock()
    repo.insert.side_effect = lambda event, connection=None: event
    conn = object()

    write_audit_event(repo, _input(), connection=conn)

    _, kwargs = repo.insert.call_args
    assert kwargs["connection"] is conn


def test_build_event_sanitizes_details_and_changes():
    when = datetime(2024, 5, 1, tzinfo=timezone.utc)
    uid = UUID("3f2504e0-4f89-11d3-9a0c-0305e82c3301")

    event = build_audit_event(
        _input(
            details={"at": when, "ids": (uid,)},
            changes=[FieldChange(field="owner", from_value=uid, to_value=None)],
        ),
        None,
    )

    assert event.details == {"at": str(when), "ids": [str(uid)]}
    assert event.changes[0].to_dict() == {
        "field": "owner",
        "from": str(uid),
        "to": None,
    }


def test_sanitize_payload_primitives_pass_through():
    assert sanitize_payload({"a": 1, "b": [True, None, "x", 1.5]}) == {
        "a": 1,
        "b": [True, None, "x", 1.5],
    }
