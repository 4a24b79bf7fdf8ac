"""
Unit tests for predicate -> parameterized SQL rendering.

User input must only ever travel as %s parameters.
"""

from datetime import datetime, timezone

import pytest

from audit_trail.domain.predicates import (
    AllOf,
    AnyOf,
    AuditField,
    DetailsField,
    DetailsNumberRange,
    Eq,
    ILike,
    MatchAll,
    MatchNothing,
    OrgAssignmentExists,
    OrgDimension,
    Range,
)
from audit_trail.infrastructure.repositories.postgres.predicate_sql import (
    escape_like,
    render_predicate,
)

pytestmark = pytest.mark.unit


def test_constants():
    assert render_predicate(MatchAll()) == ("TRUE", [])
    assert render_predicate(MatchNothing()) == ("FALSE", [])


def test_eq_is_parameterized():
    sql, params = render_predicate(Eq(AuditField.ENTITY_KIND, "x'; DROP TABLE y; --"))
    assert sql == "audit_events.entity_kind = %s"
    assert params == ["x'; DROP TABLE y; --"]


def test_enum_columns_compare_as_text():
    sql, params = render_predicate(Eq(AuditField.OUTCOME, "denied"))
    assert sql == "audit_events.outcome::text = %s"
    assert params == ["denied"]


def test_ilike_escapes_wildcards():
    sql, params = render_predicate(ILike(AuditField.SUMMARY, "50%_off"))
    assert sql == "audit_events.summary ILIKE %s"
    assert params == ["%50\\%\\_off%"]


def test_escape_like_backslash():
    assert escape_like("a\\b") == "a\\\\b"


def test_range_partial_bounds():
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    sql, params = render_predicate(Range(AuditField.CREATED_AT, gte=start))
    assert sql == "audit_events.created_at >= %s"
    assert params == [start]


def test_details_number_range_key_is_parameterized():
    sql, params = render_predicate(
        DetailsNumberRange(DetailsField.RESPONSE_STATUS, gte=400, lt=500)
    )
    guarded = (
        "CASE WHEN jsonb_typeof(audit_events.details -> %s) = 'number' "
        "THEN (audit_events.details ->> %s)::numeric END"
    )
    assert sql == f"{guarded} >= %s AND {guarded} < %s"
    assert params == [
        "responseStatus",
        "responseStatus",
        400,
        "responseStatus",
        "responseStatus",
        500,
    ]


def test_org_assignment_exists_is_correlated_subquery():
    sql, params = render_predicate(
        OrgAssignmentExists(OrgDimension.LOCATION, ("l1", "l2"))
    )
    assert "EXISTS (SELECT 1 FROM user_org_assignments uoa" in sql
    assert "uoa.user_key = audit_events.actor_id" in sql
    assert "uoa.location_id::text = ANY(%s)" in sql
    assert params == [["l1", "l2"]]


def test_composites_keep_param_order():
    predicate = AllOf(
        (
            AnyOf(
                (
                    Eq(AuditField.ACTOR_ID, "u-1"),
                    OrgAssignmentExists(OrgDimension.DIVISION, ("d1",)),
                )
            ),
            Eq(AuditField.METHOD, "POST"),
        )
    )

    sql, params = render_predicate(predicate)

    assert sql.startswith("((audit_events.actor_id = %s) OR (EXISTS")
    assert sql.endswith(" AND (audit_events.method = %s)")
    assert params == ["u-1", ["d1"], "POST"]


def test_unknown_predicate_raises():
    with pytest.raises(TypeError):
        render_predicate(object())
