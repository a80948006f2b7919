"""User persistence store using PostgreSQL."""
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pokernight.auth.roles import Role
from pokernight.db.connection import db
from pokernight.ledger.errors import InvalidInputError, UserNotFoundError
from pokernight.ledger.models import PlayerType
from pokernight.stats.engine import TeamMember
from pokernight.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class User:
    """User model."""
    id: str
    name: str
    email: Optional[str]
    role: Role
    player_type: PlayerType
    is_active: bool
    created_at: datetime

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "player_type": self.player_type.value,
            "is_active": self.is_active,
        }

    @classmethod
    def from_record(cls, record) -> "User":
        """Create from database record."""
        return cls(
            id=str(record["id"]),
            name=record["name"],
            email=record["email"],
            role=Role(record["role"]),
            player_type=PlayerType(record["player_type"]),
            is_active=record["is_active"],
            created_at=record["created_at"],
        )


class UserStore:
    """User lookups and roster administration."""

    async def get_user(self, user_id: str) -> User:
        """Get user by ID.

        Raises:
            UserNotFoundError: If no such user exists.
        """
        try:
            uid = uuid.UUID(str(user_id))
        except ValueError:
            raise UserNotFoundError(user_id)
        record = await db.fetchrow("SELECT * FROM users WHERE id = $1", uid)
        if record is None:
            raise UserNotFoundError(user_id)
        return User.from_record(record)

    async def find_user(self, name_or_email: str) -> User:
        """Find a user by name or email, case-insensitively.

        Raises:
            UserNotFoundError: If no user matches.
        """
        record = await db.fetchrow(
            """
            SELECT * FROM users
            WHERE LOWER(name) = LOWER($1) OR LOWER(email) = LOWER($1)
            ORDER BY created_at
            LIMIT 1
            """,
            name_or_email
        )
        if record is None:
            raise UserNotFoundError(name_or_email)
        return User.from_record(record)

    async def list_users(self) -> list[User]:
        """List all users in creation order."""
        records = await db.fetch("SELECT * FROM users ORDER BY created_at")
        return [User.from_record(r) for r in records]

    async def list_team_members(self) -> list[TeamMember]:
        """Active, non-archived TEAM players, the population of the statistics."""
        records = await db.fetch(
            """
            SELECT id, name FROM users
            WHERE is_active AND NOT is_archived AND player_type = $1
            ORDER BY created_at
            """,
            PlayerType.TEAM.value
        )
        return [TeamMember(id=str(r["id"]), name=r["name"]) for r in records]

    async def create_user(
        self,
        name: str,
        email: Optional[str] = None,
        role: Role = Role.PLAYER,
        player_type: PlayerType = PlayerType.GUEST,
    ) -> User:
        """Create a user.

        Raises:
            InvalidInputError: If the name is empty or the email is taken.
        """
        if not name or not name.strip():
            raise InvalidInputError("Name is required")
        if email:
            existing = await db.fetchrow(
                "SELECT id FROM users WHERE LOWER(email) = LOWER($1)",
                email
            )
            if existing:
                raise InvalidInputError(f"Email '{email}' is already registered")

        record = await db.fetchrow(
            """
            INSERT INTO users (id, name, email, role, player_type)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING *
            """,
            uuid.uuid4(), name.strip(), email.lower() if email else None, role.value, player_type.value
        )
        logger.info(f"Created user {name} (role: {role.value}, type: {player_type.value})")
        return User.from_record(record)

    async def update_role(self, user_id: str, role: Role) -> None:
        """Update a user's role.

        Raises:
            UserNotFoundError: If the user does not exist.
        """
        user = await self.get_user(user_id)
        await db.execute("UPDATE users SET role = $1 WHERE id = $2", role.value, uuid.UUID(user.id))
        logger.info(f"Updated role for {user.name} to {role.value}")

    async def update_player_type(self, user_id: str, player_type: PlayerType) -> None:
        """Update whether a user is a team player or a guest.

        Raises:
            UserNotFoundError: If the user does not exist.
        """
        user = await self.get_user(user_id)
        await db.execute(
            "UPDATE users SET player_type = $1 WHERE id = $2",
            player_type.value, uuid.UUID(user.id)
        )
        logger.info(f"Updated player type for {user.name} to {player_type.value}")


user_store = UserStore()
