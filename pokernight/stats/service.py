"""Statistics report loading with a Redis cache in front."""
from typing import Optional

from pokernight.state.session_store import session_store
from pokernight.state.special_hand_store import special_hand_store
from pokernight.state.stats_cache import stats_cache
from pokernight.state.user_store import user_store
from pokernight.stats.engine import build_report
from pokernight.utils.logger import get_logger

logger = get_logger(__name__)


class StatsService:
    """Builds yearly reports from the stores and caches them."""

    def __init__(self, sessions=session_store, users=user_store, hands=special_hand_store, cache=stats_cache):
        self.sessions = sessions
        self.users = users
        self.hands = hands
        self.cache = cache

    async def report(self, year: int, use_cache: bool = True) -> dict:
        """Get the statistics report for a year.

        The three reads are independent, so a write landing between them can
        leave the report one change behind. It is a report, not a balance.
        """
        if use_cache:
            cached = await self.cache.get(year)
            if cached is not None:
                return cached

        sessions = await self.sessions.load_closed_for_year(year)
        members = await self.users.list_team_members()
        hands = await self.hands.list_for_year(year)
        report = build_report(year, sessions, members, hands)
        logger.info(f"Built statistics for {year}: {len(sessions)} session(s), {len(members)} team player(s)")

        await self.cache.put(year, report)
        return report

    async def years(self) -> list[int]:
        return await self.sessions.years()

    async def piggy_bank_total(self, year: Optional[int] = None) -> int:
        return await self.sessions.piggy_bank_total(year)


stats_service = StatsService()
