"""Session ledger persistence using PostgreSQL."""
import uuid
from datetime import datetime, timezone
from typing import Optional

import asyncpg

from pokernight.db.connection import db
from pokernight.ledger import chips
from pokernight.ledger.errors import ActiveSessionExistsError, SessionNotFoundError
from pokernight.ledger.models import GameSession, PiggyBankAccount, PlayerLedgerEntry, SessionStatus
from pokernight.ledger.session import LedgerChange, SessionLedger
from pokernight.ledger.transactions import BuyInTransfer, TransactionRecord
from pokernight.utils.logger import get_logger

logger = get_logger(__name__)

SESSION_SELECT = """
    SELECT s.*, h.name AS host_name, l.name AS host_location_name
    FROM game_sessions s
    JOIN users h ON h.id = s.host_id
    LEFT JOIN users l ON l.id = s.host_location_id
"""


def parse_id(value: str, not_found: Exception) -> uuid.UUID:
    """Parse an ID from a request, treating malformed IDs as not found."""
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise not_found


def year_bounds(year: int) -> tuple[datetime, datetime]:
    """Start (inclusive) and end (exclusive) of a calendar year in UTC."""
    return (
        datetime(year, 1, 1, tzinfo=timezone.utc),
        datetime(year + 1, 1, 1, tzinfo=timezone.utc),
    )


class SessionStore:
    """Loads and persists session aggregates."""

    async def _assemble(self, conn: asyncpg.Connection, session_records: list) -> list[SessionLedger]:
        """Load entries, log, transfers and piggy bank for session rows."""
        if not session_records:
            return []
        ids = [r["id"] for r in session_records]

        players = await conn.fetch(
            """
            SELECT sp.*, u.name AS player_name
            FROM session_players sp
            JOIN users u ON u.id = sp.user_id
            WHERE sp.session_id = ANY($1::uuid[])
            ORDER BY sp.joined_at
            """,
            ids
        )
        transactions = await conn.fetch(
            """
            SELECT * FROM ledger_transactions
            WHERE session_id = ANY($1::uuid[])
            ORDER BY created_at, seq
            """,
            ids
        )
        transfers = await conn.fetch(
            "SELECT * FROM buy_in_transfers WHERE session_id = ANY($1::uuid[]) ORDER BY created_at",
            ids
        )
        piggy_banks = await conn.fetch(
            "SELECT * FROM piggy_bank_accounts WHERE session_id = ANY($1::uuid[])",
            ids
        )

        def rows_for(records, session_id):
            return [r for r in records if r["session_id"] == session_id]

        ledgers = []
        for record in session_records:
            piggy = rows_for(piggy_banks, record["id"])
            ledgers.append(SessionLedger(
                session=GameSession.from_record(record),
                entries=[PlayerLedgerEntry.from_record(r) for r in rows_for(players, record["id"])],
                piggy_bank=PiggyBankAccount(str(record["id"]), piggy[0]["amount"]) if piggy else None,
                transactions=[TransactionRecord.from_record(r) for r in rows_for(transactions, record["id"])],
                transfers=[BuyInTransfer.from_record(r) for r in rows_for(transfers, record["id"])],
            ))
        return ledgers

    async def load(self, conn: asyncpg.Connection, session_id: str, for_update: bool = True) -> SessionLedger:
        """Load a session aggregate.

        Args:
            conn: Connection, inside a transaction when ``for_update`` is set.
            session_id: The session ID.
            for_update: Lock the session row until the transaction ends.

        Returns:
            The session aggregate.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        sid = parse_id(session_id, SessionNotFoundError(session_id))
        query = SESSION_SELECT + " WHERE s.id = $1"
        if for_update:
            query += " FOR UPDATE OF s"
        record = await conn.fetchrow(query, sid)
        if record is None:
            raise SessionNotFoundError(session_id)
        ledgers = await self._assemble(conn, [record])
        return ledgers[0]

    async def get(self, session_id: str) -> SessionLedger:
        """Load a session aggregate for reading."""
        async with db.pool.acquire() as conn:
            return await self.load(conn, session_id, for_update=False)

    async def get_active(self) -> Optional[SessionLedger]:
        """Get the ACTIVE session, if there is one."""
        async with db.pool.acquire() as conn:
            record = await conn.fetchrow(
                SESSION_SELECT + " WHERE s.status = $1",
                SessionStatus.ACTIVE.value
            )
            if record is None:
                return None
            ledgers = await self._assemble(conn, [record])
            return ledgers[0]

    async def create(
        self,
        conn: asyncpg.Connection,
        host_id: str,
        date: Optional[datetime] = None,
        host_location_id: Optional[str] = None,
    ) -> str:
        """Insert a new ACTIVE session.

        Returns:
            The new session's ID.

        Raises:
            ActiveSessionExistsError: If another session is ACTIVE.
        """
        try:
            session_id = await conn.fetchval(
                """
                INSERT INTO game_sessions (host_id, date, host_location_id, status)
                VALUES ($1, COALESCE($2, NOW()), $3, $4)
                RETURNING id
                """,
                uuid.UUID(host_id),
                date,
                uuid.UUID(host_location_id) if host_location_id else None,
                SessionStatus.ACTIVE.value,
            )
        except asyncpg.UniqueViolationError:
            raise ActiveSessionExistsError()

        logger.info(f"Created session {session_id} (host {host_id})")
        return str(session_id)

    async def apply(self, conn: asyncpg.Connection, change: LedgerChange) -> None:
        """Write a ledger change inside the caller's transaction.

        Args:
            conn: Connection the aggregate was loaded and locked on.
            change: The change produced by a SessionLedger operation.

        Raises:
            ActiveSessionExistsError: If a reopen collides with another ACTIVE session.
        """
        session_id = uuid.UUID(change.session_id)

        if change.session is not None:
            s = change.session
            try:
                await conn.execute(
                    """
                    UPDATE game_sessions
                    SET date = $2, status = $3, host_location_id = $4, is_archived = $5,
                        notes = $6, total_pot = $7, closed_at = $8
                    WHERE id = $1
                    """,
                    session_id, s.date, s.status.value,
                    uuid.UUID(s.host_location_id) if s.host_location_id else None,
                    s.is_archived, s.notes, s.total_pot, s.closed_at,
                )
            except asyncpg.UniqueViolationError:
                raise ActiveSessionExistsError()

        for transfer_id in change.deleted_transfer_ids:
            await conn.execute("DELETE FROM buy_in_transfers WHERE id = $1", uuid.UUID(transfer_id))

        for transaction_id in change.deleted_transaction_ids:
            await conn.execute("DELETE FROM ledger_transactions WHERE id = $1", uuid.UUID(transaction_id))

        for entry_id in change.deleted_entry_ids:
            await conn.execute("DELETE FROM session_players WHERE id = $1", uuid.UUID(entry_id))

        for entry in change.upserted_entries:
            await conn.execute(
                """
                INSERT INTO session_players
                    (id, session_id, user_id, player_type, buy_in_count, chips_sold, cash_out, joined_at, left_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                ON CONFLICT (id) DO UPDATE
                SET buy_in_count = EXCLUDED.buy_in_count,
                    chips_sold = EXCLUDED.chips_sold,
                    cash_out = EXCLUDED.cash_out,
                    left_at = EXCLUDED.left_at
                """,
                uuid.UUID(entry.id), session_id, uuid.UUID(entry.user_id), entry.player_type.value,
                entry.buy_in_count, entry.chips_sold, entry.cash_out, entry.joined_at, entry.left_at,
            )

        for record in change.appended_transactions:
            await conn.execute(
                """
                INSERT INTO ledger_transactions
                    (id, session_id, type, player_id, target_player_id, amount, seq, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                """,
                uuid.UUID(record.id), session_id, record.type.value, uuid.UUID(record.player_id),
                uuid.UUID(record.target_player_id) if record.target_player_id else None,
                record.amount, record.seq, record.created_at,
            )

        for transfer in change.added_transfers:
            await conn.execute(
                """
                INSERT INTO buy_in_transfers
                    (id, session_id, transaction_id, seller_id, buyer_id, amount, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                """,
                uuid.UUID(transfer.id), session_id, uuid.UUID(transfer.transaction_id),
                uuid.UUID(transfer.seller_id), uuid.UUID(transfer.buyer_id),
                transfer.amount, transfer.created_at,
            )

        if change.piggy_bank is not None:
            if change.piggy_bank.amount > 0:
                await conn.execute(
                    """
                    INSERT INTO piggy_bank_accounts (session_id, amount) VALUES ($1, $2)
                    ON CONFLICT (session_id) DO UPDATE SET amount = EXCLUDED.amount
                    """,
                    session_id, change.piggy_bank.amount,
                )
            else:
                await conn.execute("DELETE FROM piggy_bank_accounts WHERE session_id = $1", session_id)

    async def list_sessions(
        self,
        status: Optional[SessionStatus] = None,
        year: Optional[int] = None,
        include_archived: bool = False,
    ) -> list[dict]:
        """List sessions, newest first, with their live pot and player count.

        Args:
            status: Only sessions with this status.
            year: Only sessions dated in this year.
            include_archived: Include archived sessions.

        Returns:
            Session summaries.
        """
        start, end = year_bounds(year) if year else (None, None)
        records = await db.fetch(
            """
            SELECT s.*, h.name AS host_name, l.name AS host_location_name,
                COALESCE(p.buy_in_count, 0) AS buy_in_count,
                COALESCE(p.player_count, 0) AS player_count
            FROM game_sessions s
            JOIN users h ON h.id = s.host_id
            LEFT JOIN users l ON l.id = s.host_location_id
            LEFT JOIN (
                SELECT session_id, SUM(buy_in_count) AS buy_in_count, COUNT(*) AS player_count
                FROM session_players
                GROUP BY session_id
            ) p ON p.session_id = s.id
            WHERE ($1::text IS NULL OR s.status = $1)
              AND ($2::timestamptz IS NULL OR (s.date >= $2 AND s.date < $3))
              AND ($4 OR NOT s.is_archived)
            ORDER BY s.date DESC
            """,
            status.value if status else None, start, end, include_archived
        )

        sessions = []
        for r in records:
            data = GameSession.from_record(r).to_dict()
            data["total_pot"] = chips.buy_in_value(r["buy_in_count"])
            data["player_count"] = r["player_count"]
            sessions.append(data)
        return sessions

    async def load_closed_for_year(self, year: int) -> list[SessionLedger]:
        """Load every closed, non-archived session dated in ``year``."""
        start, end = year_bounds(year)
        async with db.pool.acquire() as conn:
            records = await conn.fetch(
                SESSION_SELECT + """
                WHERE s.status = $1 AND NOT s.is_archived AND s.date >= $2 AND s.date < $3
                ORDER BY s.date
                """,
                SessionStatus.CLOSED.value, start, end
            )
            return await self._assemble(conn, records)

    async def piggy_bank_total(self, year: Optional[int] = None) -> int:
        """Sum of piggy-bank accounts over closed, non-archived sessions.

        Args:
            year: Restrict to sessions dated in this year; all years if None.
        """
        start, end = year_bounds(year) if year else (None, None)
        total = await db.fetchval(
            """
            SELECT COALESCE(SUM(p.amount), 0)
            FROM piggy_bank_accounts p
            JOIN game_sessions s ON s.id = p.session_id
            WHERE s.status = $1 AND NOT s.is_archived
              AND ($2::timestamptz IS NULL OR (s.date >= $2 AND s.date < $3))
            """,
            SessionStatus.CLOSED.value, start, end
        )
        return int(total)

    async def years(self) -> list[int]:
        """Years that have closed sessions, plus the current year, newest first."""
        records = await db.fetch(
            """
            SELECT DISTINCT EXTRACT(YEAR FROM date)::int AS year
            FROM game_sessions
            WHERE status = $1 AND NOT is_archived
            """,
            SessionStatus.CLOSED.value
        )
        years = {r["year"] for r in records}
        years.add(datetime.now(timezone.utc).year)
        return sorted(years, reverse=True)


session_store = SessionStore()
