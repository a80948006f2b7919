"""Admin module for session management and standings."""
from .session_manager import SessionManager, session_manager
from .standings import calculate_standings, format_standings_table, PlayerStanding

__all__ = [
    "SessionManager",
    "session_manager",
    "calculate_standings",
    "format_standings_table",
    "PlayerStanding",
]
