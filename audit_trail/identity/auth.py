"""
===============================================================================
TARJETA CRC — identity/auth.py
===============================================================================

Módulo:
    Identidad del caller (JWT en cookie/Bearer + header de proxy confiable)

Responsabilidades:
    - Extraer token desde la cookie configurada (default: hit_token) o
      desde `Authorization: Bearer <token>`.
    - Aceptar `x-user-id` de un proxy confiable (si está habilitado).
    - Decodificar el JWT con PyJWT:
        * con AUDIT_JWT_SECRET -> firma verificada (HS256)
        * sin secreto -> el dispatcher upstream ya verificó; sólo leemos claims
      En ambos casos un token expirado o malformado => sin identidad.
    - Nunca loguear tokens.

Colaboradores:
    - crosscutting.config.get_settings: cookie, secreto, flag de proxy.
    - crosscutting.logger: logging estructurado.
    - domain.access.CallerIdentity

Notas:
    - La extracción nunca lanza: "sin identidad" es None y la capa HTTP
      decide si eso es 401.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import jwt
from starlette.requests import HTTPConnection

from ..crosscutting.config import get_settings
from ..crosscutting.logger import logger
from ..domain.access import CallerIdentity

# ---------------------------------------------------------------------------
# Constantes
# ---------------------------------------------------------------------------

JWT_ALGORITHM: str = "HS256"

DEFAULT_TOKEN_COOKIE: str = "hit_token"
TRUSTED_USER_HEADER: str = "x-user-id"

CLAIM_SUB: str = "sub"
CLAIM_EMAIL: str = "email"
CLAIM_ROLES: str = "roles"


@dataclass(frozen=True, slots=True)
class IdentitySettings:
    """Snapshot de settings de identidad."""

    jwt_secret: str
    token_cookie: str
    trust_user_id_header: bool


def get_identity_settings() -> IdentitySettings:
    s = get_settings()
    return IdentitySettings(
        jwt_secret=s.audit_jwt_secret,
        token_cookie=s.audit_token_cookie,
        trust_user_id_header=s.trust_user_id_header,
    )


# ---------------------------------------------------------------------------
# Helpers puros
# ---------------------------------------------------------------------------


def _extract_bearer_token(authorization: str | None) -> str | None:
    """Extrae token desde `Authorization: Bearer <token>`."""
    if not authorization:
        return None
    parts = authorization.strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


def _normalize_roles(raw: Any) -> tuple[str, ...]:
    if not isinstance(raw, (list, tuple)):
        return ()
    return tuple(str(role) for role in raw if isinstance(role, str) and role)


def decode_identity_token(
    token: str, settings: IdentitySettings
) -> Optional[CallerIdentity]:
    """JWT -> CallerIdentity, o None si expiró / es inválido."""
    try:
        if settings.jwt_secret:
            payload = jwt.decode(
                token, settings.jwt_secret, algorithms=[JWT_ALGORITHM]
            )
        else:
            # R: exp se valida igual aunque no verifiquemos firma.
            payload = jwt.decode(
                token,
                options={"verify_signature": False, "verify_exp": True},
                algorithms=[JWT_ALGORITHM, "RS256", "ES256"],
            )
    except jwt.ExpiredSignatureError:
        logger.debug("Expired token ignored")
        return None
    except jwt.InvalidTokenError:
        logger.debug("Invalid token ignored")
        return None

    if not isinstance(payload, dict):
        return None

    email = str(payload.get(CLAIM_EMAIL) or "")
    subject = str(payload.get(CLAIM_SUB) or email)
    return CallerIdentity(
        subject_id=subject,
        email=email,
        roles=_normalize_roles(payload.get(CLAIM_ROLES)),
    )


# ---------------------------------------------------------------------------
# Extractor (implementa domain.repositories.IdentityExtractor)
# ---------------------------------------------------------------------------


class RequestIdentityExtractor:
    """Resuelve CallerIdentity desde una request/scope de Starlette."""

    def __init__(self, settings: IdentitySettings | None = None):
        self._settings = settings

    @property
    def settings(self) -> IdentitySettings:
        return self._settings or get_identity_settings()

    def extract_token(self, request: HTTPConnection) -> str | None:
        cookie_name = (self.settings.token_cookie or "").strip() or DEFAULT_TOKEN_COOKIE
        token = request.cookies.get(cookie_name)
        if token:
            return token
        return _extract_bearer_token(request.headers.get("authorization"))

    def extract(self, request: HTTPConnection) -> Optional[CallerIdentity]:
        settings = self.settings

        # R: el header del proxy gana sobre el token.
        if settings.trust_user_id_header:
            trusted = (request.headers.get(TRUSTED_USER_HEADER) or "").strip()
            if trusted:
                return CallerIdentity(subject_id=trusted)

        token = self.extract_token(request)
        if not token:
            return None
        return decode_identity_token(token, settings)
