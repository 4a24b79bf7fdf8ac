"""
Identity boundary: caller extraction (JWT / trusted proxy header) and
role-based action checks.
"""

from .auth import RequestIdentityExtractor, decode_identity_token
from .permissions import RolePermissionChecker, clear_permissions_cache

__all__ = [
    "RequestIdentityExtractor",
    "RolePermissionChecker",
    "clear_permissions_cache",
    "decode_identity_token",
]
