"""Protocol module: HTTP request schemas."""
from .messages import (
    CreateSessionRequest,
    JoinSessionRequest,
    SpecialHandRequest,
    PlayerAction,
    SessionAction,
    parse_player_action,
    parse_session_action,
)

__all__ = [
    "CreateSessionRequest",
    "JoinSessionRequest",
    "SpecialHandRequest",
    "PlayerAction",
    "SessionAction",
    "parse_player_action",
    "parse_session_action",
]
