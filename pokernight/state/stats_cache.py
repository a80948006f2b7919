"""Redis cache for yearly statistics reports."""
from typing import Optional

from pokernight.config import config
from pokernight.state.redis_client import redis_client
from pokernight.utils.logger import get_logger

logger = get_logger(__name__)


class StatsCache:
    """Caches a year's statistics report until a session or hand changes."""

    def _key(self, year) -> str:
        """Get Redis key for a year's report."""
        return f"stats:{year}"

    async def get(self, year: int) -> Optional[dict]:
        return await redis_client.get_json(self._key(year))

    async def put(self, year: int, report: dict) -> None:
        await redis_client.set_json(self._key(year), report, ex=config.stats_cache_ttl_seconds)
        logger.debug(f"Cached statistics for {year}")

    async def invalidate(self) -> None:
        """Drop every cached report.

        A date edit can move a session between years, so all years go.
        """
        deleted = await redis_client.delete_matching(self._key("*"))
        if deleted:
            logger.info(f"Invalidated {deleted} cached statistics report(s)")


stats_cache = StatsCache()
