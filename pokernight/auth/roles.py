"""Role definitions and authorization."""
from enum import Enum

from pokernight.ledger.errors import NotAuthorizedError


class Role(str, Enum):
    """User roles."""
    PLAYER = "player"
    ADMIN = "admin"


def can_manage_session(role: Role, user_id: str, host_id: str) -> bool:
    """Whether a caller may run host actions on a session.

    Args:
        role: The caller's role.
        user_id: The caller's user ID.
        host_id: User ID of the session's host.
    """
    return role == Role.ADMIN or user_id == host_id


def require_host_or_admin(role: Role, user_id: str, host_id: str) -> None:
    """Raise NotAuthorizedError unless the caller hosts the session or is an admin."""
    if not can_manage_session(role, user_id, host_id):
        raise NotAuthorizedError()


def require_admin(role: Role) -> None:
    """Raise NotAuthorizedError unless the caller is an admin."""
    if role != Role.ADMIN:
        raise NotAuthorizedError("Admin access required")
