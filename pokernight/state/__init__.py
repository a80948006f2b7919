"""State module: PostgreSQL repositories and Redis-backed caches."""
from .redis_client import RedisClient, redis_client
from .session_store import SessionStore, session_store
from .special_hand_store import SpecialHandStore, special_hand_store
from .stats_cache import StatsCache, stats_cache
from .user_store import User, UserStore, user_store

__all__ = [
    "RedisClient",
    "redis_client",
    "SessionStore",
    "session_store",
    "SpecialHandStore",
    "special_hand_store",
    "StatsCache",
    "stats_cache",
    "User",
    "UserStore",
    "user_store",
]
