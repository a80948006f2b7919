"""Authentication module."""
from .jwt_handler import create_access_token, verify_token, TokenError, TokenPayload
from .roles import Role, can_manage_session, require_admin, require_host_or_admin

__all__ = [
    "create_access_token",
    "verify_token",
    "TokenError",
    "TokenPayload",
    "Role",
    "can_manage_session",
    "require_admin",
    "require_host_or_admin",
]
