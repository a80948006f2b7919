"""Shared fixtures for ledger, manager and API tests."""
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from pokernight.admin.session_manager import SessionManager
from pokernight.auth.middleware import AuthenticatedUser
from pokernight.auth.roles import Role
from pokernight.ledger.models import GameSession, PlayerType
from pokernight.ledger.session import SessionLedger
from pokernight.state.user_store import User

START = datetime(2024, 3, 1, 19, 0, tzinfo=timezone.utc)

HOST_ID = "00000000-0000-0000-0000-0000000000a1"
ADMIN_ID = "00000000-0000-0000-0000-0000000000a2"
OTHER_ID = "00000000-0000-0000-0000-0000000000a3"


class Clock:
    """Deterministic clock that advances a fixed step on every read."""

    def __init__(self, start: datetime = START, step: timedelta = timedelta(minutes=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


class FakeDatabase:
    """Stands in for ``Database.transaction()`` and counts commits and rollbacks."""

    def __init__(self):
        self.conn = MagicMock(name="conn")
        self.commits = 0
        self.rollbacks = 0

    @asynccontextmanager
    async def transaction(self):
        try:
            yield self.conn
        except Exception:
            self.rollbacks += 1
            raise
        self.commits += 1


def make_session(host_id: str = HOST_ID, date: datetime = START, **kwargs) -> GameSession:
    return GameSession(id=str(uuid.uuid4()), date=date, host_id=host_id, host_name="host", **kwargs)


def make_ledger(host_id: str = HOST_ID, date: datetime = START, clock=None, **kwargs) -> SessionLedger:
    return SessionLedger(make_session(host_id, date, **kwargs), clock=clock or Clock(date))


def make_user(user_id: str, name: str, role: Role = Role.PLAYER) -> AuthenticatedUser:
    return AuthenticatedUser(user_id=user_id, name=name, role=role, token="token")


def make_account(user_id: str, name: str, player_type: PlayerType = PlayerType.GUEST) -> User:
    return User(
        id=user_id, name=name, email=None, role=Role.PLAYER,
        player_type=player_type, is_active=True, created_at=START,
    )


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def ledger(clock):
    """An empty ACTIVE session hosted by HOST_ID."""
    return make_ledger(clock=clock)


@pytest.fixture
def host():
    return make_user(HOST_ID, "host")


@pytest.fixture
def admin():
    return make_user(ADMIN_ID, "admin", Role.ADMIN)


@pytest.fixture
def outsider():
    return make_user(OTHER_ID, "outsider")


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def stores(ledger):
    """Mocked stores around a single in-memory session."""
    sessions = MagicMock()
    sessions.load = AsyncMock(return_value=ledger)
    sessions.get = AsyncMock(return_value=ledger)
    sessions.get_active = AsyncMock(return_value=ledger)
    sessions.apply = AsyncMock()
    sessions.create = AsyncMock(return_value=ledger.id)
    sessions.list_sessions = AsyncMock(return_value=[])

    users = MagicMock()
    users.get_user = AsyncMock()

    hands = MagicMock()
    hands.add = AsyncMock()
    hands.get = AsyncMock()
    hands.delete = AsyncMock()
    hands.list_for_session = AsyncMock(return_value=[])

    cache = MagicMock()
    cache.invalidate = AsyncMock()

    return MagicMock(sessions=sessions, users=users, hands=hands, cache=cache)


@pytest.fixture
def manager(fake_db, stores, clock):
    return SessionManager(
        database=fake_db,
        sessions=stores.sessions,
        users=stores.users,
        hands=stores.hands,
        cache=stores.cache,
        clock=clock,
    )
