"""
Unit tests for the best-effort auto-audit deriver.

Covers the pure helpers (path heuristic, singularize, truncation, details)
and the eligibility rules of write_auto_audit_event.
"""

from unittest.mock import Mock

import pytest

from audit_trail.application.auto_audit import (
    AutoAuditOutcome,
    EntityRef,
    action_for,
    build_details,
    build_summary,
    extract_entity_from_path,
    extract_error_hint,
    method_to_action,
    outcome_for_status,
    singularize,
    truncate_payload,
    truncate_text,
    write_auto_audit_event,
)
from audit_trail.application.write_audit import write_audit_event
from audit_trail.context import AuditContextMeta, audit_context, get_audit_writes
from audit_trail.crosscutting.timing import SlowStatement
from audit_trail.domain.audit import ActorType, AuditEventInput, AuditOutcome

pytestmark = pytest.mark.unit


def _meta(method: str = "POST", path: str = "/api/crm/contacts", actor_id="u-1"):
    return AuditContextMeta(
        correlation_id="corr-42",
        pack_name="crm",
        method=method,
        path=path,
        actor_id=actor_id,
    )


# =============================================================================
# Path heuristic
# =============================================================================


@pytest.mark.parametrize(
    "path, expected",
    [
        ("/api/crm/contacts/123", EntityRef("contact", "123")),
        ("/api/crm/contacts", EntityRef("contact", None)),
        ("/api/forms/xyz/entries/456", EntityRef("entry", "456")),
        ("/api/vault/folders/abc/items", EntityRef("item", None)),
        ("/api/crm", EntityRef("crm", None)),
        ("/api/", EntityRef("unknown", None)),
        ("/api/crm/42", EntityRef("crm", "42")),
        (
            "/api/crm/contacts/3F2504E0-4F89-11D3-9A0C-0305E82C3301",
            EntityRef("contact", "3F2504E0-4F89-11D3-9A0C-0305E82C3301"),
        ),
    ],
)
def test_extract_entity_from_path(path, expected):
    assert extract_entity_from_path(path) == expected


def test_extract_entity_from_path_mixed_segment_is_not_an_id():
    assert extract_entity_from_path("/api/crm/contacts/12ab") == EntityRef("12ab")


def test_extract_entity_from_path_custom_prefix():
    assert extract_entity_from_path(
        "/svc/crm/contacts/7", api_prefix="/svc"
    ) == EntityRef("contact", "7")


@pytest.mark.parametrize(
    "word, expected",
    [
        ("entries", "entry"),
        ("addresses", "address"),
        ("boxes", "box"),
        ("contacts", "contact"),
        ("class", "class"),
        ("data", "data"),
    ],
)
def test_singularize(word, expected):
    assert singularize(word) == expected


# =============================================================================
# Action / outcome / summary
# =============================================================================


def test_method_to_action_mapping():
    assert method_to_action("post") == "created"
    assert method_to_action("PUT") == "updated"
    assert method_to_action("PATCH") == "updated"
    assert method_to_action("DELETE") == "deleted"
    assert method_to_action("GET") == "get"


@pytest.mark.parametrize(
    "method, status, expected",
    [
        ("POST", 201, "created"),
        ("PUT", 422, "updated_rejected"),
        ("DELETE", 500, "deleted_failed"),
        ("GET", 404, "get_rejected"),
        ("POST", 302, "created_failed"),
    ],
)
def test_action_for(method, status, expected):
    assert action_for(method, status) == expected


@pytest.mark.parametrize(
    "status, expected",
    [
        (200, AuditOutcome.SUCCESS),
        (401, AuditOutcome.DENIED),
        (403, AuditOutcome.DENIED),
        (404, AuditOutcome.FAILURE),
        (503, AuditOutcome.ERROR),
    ],
)
def test_outcome_for_status(status, expected):
    assert outcome_for_status(status) == expected


def test_build_summary_with_and_without_id():
    assert build_summary("created", "contact", "123") == "Created contact (123)"
    assert build_summary("deleted", "item", None) == "Deleted item"


# =============================================================================
# Truncation / error hint
# =============================================================================


def test_truncate_text_keeps_short_and_cuts_long():
    assert truncate_text("  boom  ") == "boom"
    long = "x" * 200
    cut = truncate_text(long)
    assert len(cut) == 160
    assert cut.endswith("…")


def test_truncate_payload_small_payload_unchanged():
    payload = {"name": "Ada"}
    assert truncate_payload(payload) is payload


def test_truncate_payload_large_payload_is_marked():
    payload = {"blob": "a" * 5000}
    result = truncate_payload(payload)

    assert result["_truncated"] is True
    assert result["_originalLength"] > 4000
    assert len(result["_preview"]) == 4000


def test_truncate_payload_unserializable():
    assert truncate_payload({"x": object()}) == {
        "_error": "Could not serialize payload"
    }


@pytest.mark.parametrize(
    "body, expected",
    [
        ({"error": "Name is required"}, "Name is required"),
        ({"message": "Nope"}, "Nope"),
        ({"detail": "Missing field"}, "Missing field"),
        ({"exception": {"message": "Boom"}}, "Boom"),
        ({"exception": {"name": "ValueError"}}, "ValueError"),
        ("  plain text  ", "plain text"),
        (42, "42"),
        ({"other": 1}, None),
        (None, None),
    ],
)
def test_extract_error_hint(body, expected):
    assert extract_error_hint(body) == expected


# =============================================================================
# Details
# =============================================================================


def test_build_details_is_slow_only_above_threshold():
    fast = build_details(AutoAuditOutcome(response_status=200, duration_ms=500))
    slow = build_details(AutoAuditOutcome(response_status=200, duration_ms=501))

    assert "isSlow" not in fast
    assert slow["isSlow"] is True


def test_build_details_timings_and_slow_queries_top_five():
    queries = [SlowStatement(sql=f"SELECT {i}", duration_ms=float(i)) for i in range(8)]
    details = build_details(
        AutoAuditOutcome(
            response_status=201,
            duration_ms=12.5,
            db_time_ms=0.0,
            module_time_ms=3.0,
            slow_queries=queries,
        )
    )

    assert details["responseStatus"] == 201
    assert details["success"] is True
    assert details["dbTimeMs"] == 0.0
    assert details["moduleTimeMs"] == 3.0
    assert [q["durationMs"] for q in details["slowQueries"]] == [7.0, 6.0, 5.0, 4.0, 3.0]
    assert details["slowQueries"][0] == {"sql": "SELECT 7", "durationMs": 7.0}


def test_build_details_omits_absent_timings_and_bodies():
    details = build_details(AutoAuditOutcome(response_status=500, duration_ms=1))
    assert "dbTimeMs" not in details
    assert "moduleTimeMs" not in details
    assert "slowQueries" not in details
    assert "requestBody" not in details
    assert "responseBody" not in details
    assert details["success"] is False


def test_build_details_truncates_bodies():
    details = build_details(
        AutoAuditOutcome(
            response_status=201,
            duration_ms=1,
            request_body={"blob": "b" * 4500},
            response_body={"id": "c-1"},
        )
    )
    assert details["requestBody"]["_truncated"] is True
    assert details["responseBody"] == {"id": "c-1"}


# =============================================================================
# write_auto_audit_event
# =============================================================================


def test_auto_audit_writes_for_successful_post(audit_repo):
    with audit_context(_meta()):
        written = write_auto_audit_event(
            audit_repo,
            AutoAuditOutcome(
                response_status=201, response_body={"id": "c-9"}, duration_ms=10
            ),
        )
        assert get_audit_writes() == 1

    assert written is True
    [event] = audit_repo.events
    assert event.entity_kind == "contact"
    assert event.entity_id == "c-9"
    assert event.action == "created"
    assert event.summary == "Created contact (c-9)"
    assert event.outcome == AuditOutcome.SUCCESS
    assert event.actor_id == "u-1"
    assert event.actor_type == ActorType.USER
    assert event.correlation_id == "corr-42"
    assert event.pack_name == "crm"
    assert event.event_type == "created"


def test_auto_audit_skipped_after_explicit_write(audit_repo):
    with audit_context(_meta()):
        write_audit_event(
            audit_repo,
            AuditEventInput(
                entity_kind="contact",
                action="created",
                summary="Created contact Ada",
                actor_id="u-1",
            ),
        )
        written = write_auto_audit_event(
            audit_repo, AutoAuditOutcome(response_status=201, duration_ms=5)
        )

    assert written is False
    assert len(audit_repo.events) == 1


def test_auto_audit_without_context_returns_false(audit_repo, caplog):
    written = write_auto_audit_event(
        audit_repo, AutoAuditOutcome(response_status=201)
    )

    assert written is False
    assert audit_repo.events == []
    assert "No audit context available" in caplog.text


def test_auto_audit_skips_successful_reads(audit_repo):
    with audit_context(_meta(method="GET", path="/api/crm/contacts")):
        written = write_auto_audit_event(
            audit_repo, AutoAuditOutcome(response_status=200)
        )

    assert written is False
    assert audit_repo.events == []


def test_auto_audit_records_failed_read_with_hint(audit_repo):
    with audit_context(_meta(method="GET", path="/api/crm/contacts/123")):
        written = write_auto_audit_event(
            audit_repo,
            AutoAuditOutcome(
                response_status=404, response_body={"error": "Contact not found"}
            ),
        )

    assert written is True
    [event] = audit_repo.events
    assert event.action == "get_rejected"
    assert event.summary == "Get_rejected contact (123) — Contact not found"
    assert event.outcome == AuditOutcome.FAILURE


def test_auto_audit_actor_falls_back_to_system(audit_repo):
    with audit_context(_meta(actor_id=None)):
        write_auto_audit_event(audit_repo, AutoAuditOutcome(response_status=201))

    assert audit_repo.events[0].actor_id == "system"


def test_auto_audit_failed_post_does_not_read_id_from_body(audit_repo):
    with audit_context(_meta()):
        write_auto_audit_event(
            audit_repo,
            AutoAuditOutcome(response_status=400, response_body={"id": "nope"}),
        )

    assert audit_repo.events[0].entity_id is None


def test_auto_audit_swallows_storage_failure(caplog):
    repo = Mock()
    repo.insert.side_effect = RuntimeError("db down")

    with audit_context(_meta()):
        written = write_auto_audit_event(
            repo, AutoAuditOutcome(response_status=201)
        )
        assert get_audit_writes() == 0

    assert written is False
    assert "Failed to write auto-audit event" in caplog.text
