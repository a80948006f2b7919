"""Session management for hosts and admins.

Every mutating call runs in one database transaction: the session row is
locked, the aggregate loaded, the caller authorized, the ledger operation
applied in memory and the resulting change written before commit. A domain
error raised anywhere in between rolls the transaction back untouched.
"""
from datetime import datetime
from typing import Callable, Optional

from redis.exceptions import RedisError

from pokernight.admin.standings import PlayerStanding, calculate_standings
from pokernight.auth.middleware import AuthenticatedUser
from pokernight.auth.roles import require_admin, require_host_or_admin
from pokernight.db.connection import db
from pokernight.ledger.commands import PlayerCommand
from pokernight.ledger.errors import PlayerNotFoundError
from pokernight.ledger.models import SessionStatus, utcnow
from pokernight.ledger.session import LedgerChange, SessionLedger
from pokernight.ledger.special_hands import SpecialHand, new_special_hand
from pokernight.state.session_store import session_store
from pokernight.state.special_hand_store import special_hand_store
from pokernight.state.stats_cache import stats_cache
from pokernight.state.user_store import user_store
from pokernight.utils.logger import get_logger

logger = get_logger(__name__)

LedgerOperation = Callable[[SessionLedger], LedgerChange]


class SessionManager:
    """Runs ledger operations on behalf of an authenticated caller."""

    def __init__(
        self,
        database=db,
        sessions=session_store,
        users=user_store,
        hands=special_hand_store,
        cache=stats_cache,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize session manager.

        Args:
            database: Database providing ``transaction()``.
            sessions: Session store.
            users: User store.
            hands: Special hand store.
            cache: Statistics cache to invalidate on session transitions.
            clock: Source of timestamps for new records.
        """
        self.database = database
        self.sessions = sessions
        self.users = users
        self.hands = hands
        self.cache = cache
        self.clock = clock

    async def _mutate(
        self,
        session_id: str,
        caller: AuthenticatedUser,
        operation: LedgerOperation,
        admin_only: bool = False,
        affects_stats: bool = False,
    ) -> SessionLedger:
        async with self.database.transaction() as conn:
            ledger = await self.sessions.load(conn, session_id)
            ledger.clock = self.clock
            if admin_only:
                require_admin(caller.role)
            else:
                require_host_or_admin(caller.role, caller.user_id, ledger.session.host_id)
            change = operation(ledger)
            await self.sessions.apply(conn, change)

        if affects_stats:
            await self._invalidate_stats()
        return ledger

    async def _invalidate_stats(self) -> None:
        # Runs after commit; cached reports expire on their own TTL
        try:
            await self.cache.invalidate()
        except (RedisError, RuntimeError) as e:
            logger.warning(f"Stats cache invalidation failed: {e}")

    # ----- sessions -----

    async def create_session(
        self,
        caller: AuthenticatedUser,
        host_location_id: Optional[str] = None,
        date: Optional[datetime] = None,
    ) -> dict:
        """Start a new session hosted by the caller.

        Raises:
            ActiveSessionExistsError: If a session is already ACTIVE.
            UserNotFoundError: If the host location is not a user.
        """
        if host_location_id:
            await self.users.get_user(host_location_id)

        async with self.database.transaction() as conn:
            session_id = await self.sessions.create(conn, caller.user_id, date, host_location_id)
            ledger = await self.sessions.load(conn, session_id, for_update=False)

        logger.info(f"{caller.name} started session {session_id}")
        return ledger.to_dict()

    async def get_session(self, session_id: str) -> dict:
        ledger = await self.sessions.get(session_id)
        return ledger.to_dict()

    async def get_active_session(self) -> Optional[dict]:
        ledger = await self.sessions.get_active()
        return ledger.to_dict() if ledger else None

    async def list_sessions(
        self,
        status: Optional[SessionStatus] = None,
        year: Optional[int] = None,
        include_archived: bool = False,
    ) -> list[dict]:
        return await self.sessions.list_sessions(status, year, include_archived)

    async def close_session(self, caller: AuthenticatedUser, session_id: str) -> dict:
        """Close a session once every chip is accounted for."""
        ledger = await self._mutate(session_id, caller, lambda ledger: ledger.close(), affects_stats=True)
        return ledger.to_dict()

    async def reopen_session(self, caller: AuthenticatedUser, session_id: str) -> dict:
        ledger = await self._mutate(session_id, caller, lambda ledger: ledger.reopen(), affects_stats=True)
        return ledger.to_dict()

    async def set_archived(self, caller: AuthenticatedUser, session_id: str, is_archived: bool) -> dict:
        ledger = await self._mutate(
            session_id, caller, lambda ledger: ledger.set_archived(is_archived), affects_stats=True
        )
        return ledger.to_dict()

    async def set_date(self, caller: AuthenticatedUser, session_id: str, date: datetime) -> dict:
        """Move a session to another date (admins only)."""
        ledger = await self._mutate(
            session_id, caller, lambda ledger: ledger.set_date(date), admin_only=True, affects_stats=True
        )
        return ledger.to_dict()

    async def set_host_location(
        self,
        caller: AuthenticatedUser,
        session_id: str,
        host_location_id: Optional[str],
    ) -> dict:
        """Change where a session was hosted.

        Raises:
            UserNotFoundError: If the host location is not a user.
        """
        name = None
        if host_location_id:
            name = (await self.users.get_user(host_location_id)).name

        def operation(ledger: SessionLedger) -> LedgerChange:
            ledger.session.host_location_name = name
            return ledger.set_host_location(host_location_id)

        ledger = await self._mutate(session_id, caller, operation, affects_stats=True)
        return ledger.to_dict()

    async def set_notes(self, caller: AuthenticatedUser, session_id: str, notes: Optional[str]) -> dict:
        ledger = await self._mutate(session_id, caller, lambda ledger: ledger.set_notes(notes))
        return ledger.to_dict()

    # ----- players -----

    async def join(self, caller: AuthenticatedUser, session_id: str, user_id: str) -> dict:
        """Seat a user in the session with their first buy-in.

        Raises:
            UserNotFoundError: If the user does not exist.
            AlreadyJoinedError: If the user is already seated.
        """
        user = await self.users.get_user(user_id)
        ledger = await self._mutate(
            session_id, caller, lambda ledger: ledger.join(user.id, user.player_type, user.name)
        )
        return ledger.get_player(user.id).to_dict()

    async def execute(
        self,
        caller: AuthenticatedUser,
        session_id: str,
        entry_id: str,
        command: PlayerCommand,
    ) -> dict:
        """Apply a player command to a session entry.

        Args:
            caller: Host or admin issuing the command.
            session_id: The session ID.
            entry_id: The player's ledger entry ID.
            command: The command to apply.

        Returns:
            The player's updated entry.
        """
        user_id = None

        def operation(ledger: SessionLedger) -> LedgerChange:
            nonlocal user_id
            user_id = ledger.get_entry(entry_id).user_id
            return ledger.execute(user_id, command)

        ledger = await self._mutate(session_id, caller, operation)
        return ledger.get_player(user_id).to_dict()

    async def remove_player(self, caller: AuthenticatedUser, session_id: str, entry_id: str) -> dict:
        """Remove a player who has not cashed out."""
        ledger = await self._mutate(
            session_id, caller, lambda ledger: ledger.remove_player(ledger.get_entry(entry_id).user_id)
        )
        return ledger.to_dict()

    # ----- transaction log -----

    async def list_transactions(self, session_id: str) -> list[dict]:
        """The session's transaction log, newest first."""
        ledger = await self.sessions.get(session_id)
        names = {e.user_id: e.player_name for e in ledger.players}
        records = []
        for record in reversed(ledger.transactions):
            data = record.to_dict()
            data["player"] = names.get(record.player_id, "")
            if record.target_player_id:
                data["target_player"] = names.get(record.target_player_id, "")
            records.append(data)
        return records

    async def reverse_transaction(
        self,
        caller: AuthenticatedUser,
        session_id: str,
        transaction_id: str,
    ) -> dict:
        """Undo one transaction and return the updated session."""
        ledger = await self._mutate(session_id, caller, lambda ledger: ledger.reverse(transaction_id))
        return ledger.to_dict()

    async def get_standings(self, session_id: str) -> list[PlayerStanding]:
        ledger = await self.sessions.get(session_id)
        return calculate_standings(ledger)

    # ----- special hands -----

    async def record_special_hand(
        self,
        caller: AuthenticatedUser,
        session_id: str,
        player_id: str,
        hand_type,
        cards: str,
        description: Optional[str] = None,
    ) -> dict:
        """Record a special hand for a current player of the session.

        Raises:
            PlayerNotFoundError: If the user is not a player of the session.
            InvalidHandTypeError: If the hand type is not recognized.
        """
        async with self.database.transaction() as conn:
            ledger = await self.sessions.load(conn, session_id)
            require_host_or_admin(caller.role, caller.user_id, ledger.session.host_id)
            hand = new_special_hand(session_id, player_id, hand_type, cards, description, now=self.clock())
            entry = ledger.entries.get(player_id)
            if entry is None:
                raise PlayerNotFoundError(player_id)
            hand.player_name = entry.player_name
            hand.session_date = ledger.session.date
            await self.hands.add(conn, hand)

        await self._invalidate_stats()
        return hand.to_dict()

    async def delete_special_hand(self, caller: AuthenticatedUser, session_id: str, hand_id: str) -> None:
        """Delete a special hand, whatever the session status."""
        async with self.database.transaction() as conn:
            ledger = await self.sessions.load(conn, session_id)
            require_host_or_admin(caller.role, caller.user_id, ledger.session.host_id)
            hand = await self.hands.get(conn, session_id, hand_id)
            await self.hands.delete(conn, hand)

        await self._invalidate_stats()

    async def list_special_hands(self, session_id: str) -> list[SpecialHand]:
        ledger = await self.sessions.get(session_id)
        return await self.hands.list_for_session(ledger.id)


session_manager = SessionManager()
