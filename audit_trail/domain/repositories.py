"""
CRC — domain/repositories.py

Name
- Domain Ports (Protocols) for the audit trail

Responsibilities
- Define the EventStore contract (append + filtered paginated query).
- Define the collaborator contracts the core consumes: identity extraction,
  permission check, organizational-assignment lookup.

Collaborators
- domain.audit: AuditEvent, AuditPage
- domain.access: CallerIdentity, ActionCheckResult, OrgScope
- domain.predicates: Predicate
- infrastructure.repositories: postgres / in_memory implementations
- identity: concrete identity extractor and permission checker

Constraints
- Pure interfaces only: no side effects, no infrastructure imports, no SQL.
- `request` is whatever the HTTP layer hands over (Starlette Request).

Notes
- typing.Protocol for structural subtyping; fakes in tests need no base class.
"""

from typing import Any, Optional, Protocol

from .access import ActionCheckResult, CallerIdentity, OrgScope
from .audit import AuditEvent, AuditPage
from .predicates import Predicate


class AuditEventRepository(Protocol):
    """R: Append-only EventStore."""

    def insert(self, event: AuditEvent, *, connection: Any = None) -> AuditEvent:
        """
        R: Persist one event and return it with server-assigned fields.

        When `connection` is given the insert joins the caller's transaction;
        no new transaction is opened.
        """
        ...

    def query(
        self,
        predicate: Predicate,
        *,
        page: int,
        page_size: int,
    ) -> AuditPage:
        """R: Events matching predicate, created_at DESC, plus total count."""
        ...


class OrgAssignmentRepository(Protocol):
    """R: Organizational-assignment lookup keyed by subject id."""

    def get_org_scope(self, subject_id: str) -> OrgScope:
        ...


class PermissionChecker(Protocol):
    """R: Answers "is action X granted to this caller"."""

    def check_action(self, request: Any, action_key: str) -> ActionCheckResult:
        ...


class IdentityExtractor(Protocol):
    """R: Raw request -> caller identity (None when unauthenticated)."""

    def extract(self, request: Any) -> Optional[CallerIdentity]:
        ...
