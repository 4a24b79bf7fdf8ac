"""
Name: List Audit Events Use Case

Responsibilities:
  - Require an authenticated caller
  - Resolve the caller's read scope mode
  - Look up org assignments only when the mode needs them (LDD)
  - Compile scope + user filters and run the paginated query

Collaborators:
  - application.scope_mode.resolve_scope_mode
  - application.query_filters
  - domain.repositories: AuditEventRepository, OrgAssignmentRepository,
    PermissionChecker
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ...crosscutting.logger import logger
from ...domain.access import CallerIdentity, OrgScope
from ...domain.audit import AuditPage
from ...domain.repositories import (
    AuditEventRepository,
    OrgAssignmentRepository,
    PermissionChecker,
)
from ...domain.scope import ScopeMode, ScopeVerb
from ..query_filters import (
    AuditQueryParams,
    compile_audit_predicate,
    normalize_pagination,
)
from ..scope_mode import DEFAULT_PERMISSION_NAMESPACE, resolve_scope_mode


class AuditErrorCode(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"


@dataclass(frozen=True)
class AuditError:
    code: AuditErrorCode
    message: str


@dataclass(frozen=True)
class AuditListResult:
    page: Optional[AuditPage] = None
    scope_mode: Optional[ScopeMode] = None
    error: Optional[AuditError] = None


class ListAuditEventsUseCase:
    """R: Scoped, filtered, paginated read over the audit log."""

    def __init__(
        self,
        repository: AuditEventRepository,
        org_assignments: OrgAssignmentRepository,
        permissions: PermissionChecker,
        *,
        permission_namespace: str = DEFAULT_PERMISSION_NAMESPACE,
    ):
        self.repository = repository
        self.org_assignments = org_assignments
        self.permissions = permissions
        self.permission_namespace = permission_namespace

    def execute(
        self,
        *,
        request: Any,
        caller: Optional[CallerIdentity],
        params: AuditQueryParams,
    ) -> AuditListResult:
        if caller is None or not caller.subject_id:
            return AuditListResult(
                error=AuditError(
                    code=AuditErrorCode.UNAUTHORIZED,
                    message="Unauthorized",
                )
            )

        mode = resolve_scope_mode(
            self.permissions,
            request,
            ScopeVerb.READ,
            namespace=self.permission_namespace,
        )

        org_scope: Optional[OrgScope] = None
        if mode is ScopeMode.LDD:
            org_scope = self.org_assignments.get_org_scope(caller.subject_id)

        predicate = compile_audit_predicate(
            mode, caller.subject_id, params, org_scope=org_scope
        )
        page, page_size = normalize_pagination(params.page, params.page_size)

        logger.info(
            "listing audit events",
            extra={"scope_mode": mode.value, "page": page, "page_size": page_size},
        )

        result = self.repository.query(predicate, page=page, page_size=page_size)
        return AuditListResult(page=result, scope_mode=mode)
