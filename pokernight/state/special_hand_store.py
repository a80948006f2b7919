"""Special hand persistence using PostgreSQL."""
import uuid

import asyncpg

from pokernight.db.connection import db
from pokernight.ledger.errors import SpecialHandNotFoundError
from pokernight.ledger.models import SessionStatus
from pokernight.ledger.special_hands import SpecialHand
from pokernight.state.session_store import year_bounds
from pokernight.utils.logger import get_logger

logger = get_logger(__name__)

HAND_SELECT = """
    SELECT sh.*, u.name AS player_name, s.date AS session_date
    FROM special_hands sh
    JOIN users u ON u.id = sh.player_id
    JOIN game_sessions s ON s.id = sh.session_id
"""


class SpecialHandStore:
    """Records and lists special hands."""

    async def add(self, conn: asyncpg.Connection, hand: SpecialHand) -> None:
        """Insert a special hand inside the caller's transaction."""
        await conn.execute(
            """
            INSERT INTO special_hands (id, session_id, player_id, hand_type, cards, description, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            """,
            uuid.UUID(hand.id), uuid.UUID(hand.session_id), uuid.UUID(hand.player_id),
            hand.hand_type.value, hand.cards, hand.description, hand.created_at,
        )
        logger.info(f"Session {hand.session_id}: recorded {hand.hand_type.label} for {hand.player_id}")

    async def get(self, conn: asyncpg.Connection, session_id: str, hand_id: str) -> SpecialHand:
        """Get a special hand of a session.

        Raises:
            SpecialHandNotFoundError: If the hand is not in that session.
        """
        try:
            hid = uuid.UUID(str(hand_id))
        except ValueError:
            raise SpecialHandNotFoundError(hand_id)
        record = await conn.fetchrow(
            HAND_SELECT + " WHERE sh.id = $1 AND sh.session_id = $2",
            hid, uuid.UUID(session_id)
        )
        if record is None:
            raise SpecialHandNotFoundError(hand_id)
        return SpecialHand.from_record(record)

    async def delete(self, conn: asyncpg.Connection, hand: SpecialHand) -> None:
        await conn.execute("DELETE FROM special_hands WHERE id = $1", uuid.UUID(hand.id))
        logger.info(f"Session {hand.session_id}: deleted {hand.hand_type.label} {hand.id}")

    async def list_for_session(self, session_id: str) -> list[SpecialHand]:
        """Special hands of one session in recording order."""
        records = await db.fetch(
            HAND_SELECT + " WHERE sh.session_id = $1 ORDER BY sh.created_at",
            uuid.UUID(session_id)
        )
        return [SpecialHand.from_record(r) for r in records]

    async def list_for_year(self, year: int) -> list[SpecialHand]:
        """Special hands of closed, non-archived sessions dated in ``year``."""
        start, end = year_bounds(year)
        records = await db.fetch(
            HAND_SELECT + """
            WHERE s.status = $1 AND NOT s.is_archived AND s.date >= $2 AND s.date < $3
            ORDER BY sh.created_at
            """,
            SessionStatus.CLOSED.value, start, end
        )
        return [SpecialHand.from_record(r) for r in records]


special_hand_store = SpecialHandStore()
