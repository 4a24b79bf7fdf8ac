"""
Name: Scope Mode Resolver

Responsibilities:
  - Resolve the single most restrictive read mode granted to a caller
  - Build namespaced action keys: <namespace>.<verb>.scope.<mode>

Collaborators:
  - domain.scope: ScopeMode, ScopeVerb, SCOPE_PRECEDENCE
  - domain.repositories.PermissionChecker

Notes:
  - Modes are probed most restrictive first; the first granted one wins.
  - Nothing granted -> OWN. Never falls back to ANY.
"""

from __future__ import annotations

from typing import Any

from ..crosscutting.logger import logger
from ..domain.repositories import PermissionChecker
from ..domain.scope import DEFAULT_SCOPE_MODE, SCOPE_PRECEDENCE, ScopeMode, ScopeVerb

DEFAULT_PERMISSION_NAMESPACE = "audit-core"


def scope_action_key(
    verb: ScopeVerb,
    mode: ScopeMode,
    *,
    namespace: str = DEFAULT_PERMISSION_NAMESPACE,
) -> str:
    return f"{namespace}.{verb.value}.scope.{mode.value}"


def resolve_scope_mode(
    checker: PermissionChecker,
    request: Any,
    verb: ScopeVerb = ScopeVerb.READ,
    *,
    namespace: str = DEFAULT_PERMISSION_NAMESPACE,
) -> ScopeMode:
    for mode in SCOPE_PRECEDENCE:
        result = checker.check_action(
            request, scope_action_key(verb, mode, namespace=namespace)
        )
        if result.granted:
            logger.debug(
                "audit scope resolved",
                extra={
                    "verb": verb.value,
                    "scope_mode": mode.value,
                    "source": result.source,
                },
            )
            return mode

    return DEFAULT_SCOPE_MODE
