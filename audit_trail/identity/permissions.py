"""
===============================================================================
TARJETA CRC — identity/permissions.py
===============================================================================

Módulo:
    Chequeo de acciones por rol (action keys namespaced)

Responsabilidades:
    - Cargar AUDIT_PERMISSIONS_CONFIG (JSON) y construir el mapa
      rol -> action keys, cacheado.
    - Resolver si una action key está concedida al caller de la request.
    - Soportar wildcards: "*" (todo) y "<prefijo>.*".

Colaboradores:
    - identity.auth.RequestIdentityExtractor: roles del caller.
    - crosscutting.config: AUDIT_PERMISSIONS_CONFIG.
    - crosscutting.logger: logs estructurados.
    - domain.access.ActionCheckResult

Notas:
    - Sin config, rige un default mínimo: "admin" puede leer todo
      (audit-core.read.scope.any); el resto cae en OWN por defecto.
    - Formato:
        {
          "admin": ["audit-core.read.scope.any"],
          "manager": ["audit-core.read.scope.ldd"],
          "auditor": ["audit-core.*"]
        }
===============================================================================
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, Mapping, Optional

from ..crosscutting.logger import logger
from ..domain.access import ActionCheckResult, CallerIdentity
from .auth import RequestIdentityExtractor

WILDCARD: str = "*"

DEFAULT_ROLE_GRANTS: dict[str, list[str]] = {
    "admin": ["audit-core.read.scope.any"],
}


def _validate_config_shape(raw: object) -> dict[str, list[str]]:
    """Valida/normaliza el shape del JSON de permisos."""
    if not isinstance(raw, dict):
        return {}

    cfg: dict[str, list[str]] = {}
    for role, keys in raw.items():
        if not isinstance(role, str) or not role.strip():
            continue
        if not isinstance(keys, list) or not all(isinstance(k, str) for k in keys):
            continue
        cleaned = [k.strip() for k in keys if k.strip()]
        if cleaned:
            cfg[role.strip()] = cleaned
    return cfg


@lru_cache(maxsize=1)
def _parse_permissions_config() -> dict[str, list[str]]:
    """Parsea AUDIT_PERMISSIONS_CONFIG; default si falta o es inválido."""
    from ..crosscutting.config import get_settings

    config_str = (get_settings().audit_permissions_config or "").strip()
    if not config_str:
        return dict(DEFAULT_ROLE_GRANTS)

    try:
        raw = json.loads(config_str)
    except json.JSONDecodeError as exc:
        logger.warning(
            "AUDIT_PERMISSIONS_CONFIG inválido (JSON)", extra={"error": str(exc)}
        )
        return dict(DEFAULT_ROLE_GRANTS)

    cfg = _validate_config_shape(raw)
    if not cfg:
        logger.warning("AUDIT_PERMISSIONS_CONFIG inválido (shape)")
        return dict(DEFAULT_ROLE_GRANTS)
    return cfg


def get_permissions_config() -> dict[str, list[str]]:
    return _parse_permissions_config()


def clear_permissions_cache() -> None:
    """Limpia el cache (tests / hot-reload local)."""
    _parse_permissions_config.cache_clear()


def key_matches(granted: str, action_key: str) -> bool:
    if granted == WILDCARD or granted == action_key:
        return True
    if granted.endswith(".*"):
        return action_key.startswith(granted[:-1])
    return False


class RolePermissionChecker:
    """Implementa domain.repositories.PermissionChecker sobre roles del caller."""

    def __init__(
        self,
        identity: Optional[RequestIdentityExtractor] = None,
        grants: Optional[Mapping[str, list[str]]] = None,
    ):
        self._identity = identity or RequestIdentityExtractor()
        self._grants = grants

    @property
    def grants(self) -> Mapping[str, list[str]]:
        return self._grants if self._grants is not None else get_permissions_config()

    def _caller(self, request: Any) -> Optional[CallerIdentity]:
        # R: el middleware deja la identidad en request.state; si no, la extraemos.
        state = getattr(request, "state", None)
        caller = getattr(state, "caller", None) if state is not None else None
        if isinstance(caller, CallerIdentity):
            return caller
        return self._identity.extract(request)

    def check_action(self, request: Any, action_key: str) -> ActionCheckResult:
        caller = self._caller(request)
        if caller is None:
            return ActionCheckResult(granted=False)

        grants = self.grants
        for role in caller.roles:
            for granted in grants.get(role, ()):
                if key_matches(granted, action_key):
                    return ActionCheckResult(granted=True, source=f"role:{role}")

        return ActionCheckResult(granted=False)
