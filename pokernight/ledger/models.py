"""Session and player ledger records."""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pokernight.ledger import chips


class SessionStatus(str, Enum):
    """Lifecycle of a poker night."""
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class PlayerType(str, Enum):
    """Team players pay into the piggy bank and appear in statistics."""
    TEAM = "TEAM"
    GUEST = "GUEST"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class GameSession:
    """A poker night."""
    id: str
    date: datetime
    host_id: str
    status: SessionStatus = SessionStatus.ACTIVE
    host_location_id: Optional[str] = None
    is_archived: bool = False
    notes: Optional[str] = None
    total_pot: int = 0
    closed_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    host_name: str = ""  # Denormalized
    host_location_name: Optional[str] = None  # Denormalized

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    def copy(self) -> "GameSession":
        return replace(self)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "status": self.status.value,
            "host_id": self.host_id,
            "host": self.host_name,
            "host_location_id": self.host_location_id,
            "host_location": self.host_location_name,
            "is_archived": self.is_archived,
            "notes": self.notes,
            "total_pot": self.total_pot,
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record) -> "GameSession":
        """Create from database record."""
        return cls(
            id=str(record["id"]),
            date=record["date"],
            host_id=str(record["host_id"]),
            status=SessionStatus(record["status"]),
            host_location_id=str(record["host_location_id"]) if record["host_location_id"] else None,
            is_archived=record["is_archived"],
            notes=record["notes"],
            total_pot=record["total_pot"],
            closed_at=record["closed_at"],
            created_at=record["created_at"],
            host_name=record.get("host_name") or "",
            host_location_name=record.get("host_location_name"),
        )


@dataclass
class PlayerLedgerEntry:
    """One player's chips and cash for one session."""
    id: str
    session_id: str
    user_id: str
    buy_in_count: int = 0
    chips_sold: int = 0
    cash_out: Optional[int] = None
    joined_at: datetime = field(default_factory=utcnow)
    left_at: Optional[datetime] = None
    player_name: str = ""  # Denormalized
    player_type: PlayerType = PlayerType.GUEST  # Denormalized

    @property
    def is_settled(self) -> bool:
        """Whether the player has cashed out."""
        return self.cash_out is not None

    @property
    def buy_in_total(self) -> int:
        return chips.buy_in_value(self.buy_in_count)

    @property
    def net_result(self) -> Optional[int]:
        """Net result, or None while the player is still playing."""
        if self.cash_out is None:
            return None
        return chips.net_result(self.buy_in_count, self.cash_out, self.chips_sold)

    def ledger_state(self) -> tuple[int, int, Optional[int]]:
        """The part of the entry the transaction log must reproduce."""
        return (self.buy_in_count, self.chips_sold, self.cash_out)

    def copy(self) -> "PlayerLedgerEntry":
        return replace(self)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "session_id": self.session_id,
            "user_id": self.user_id,
            "player": self.player_name,
            "player_type": self.player_type.value,
            "buy_in_count": self.buy_in_count,
            "buy_ins": self.buy_in_total,
            "chips_sold": self.chips_sold,
            "cash_out": self.cash_out,
            "net_result": self.net_result,
            "joined_at": self.joined_at.isoformat(),
            "left_at": self.left_at.isoformat() if self.left_at else None,
        }

    @classmethod
    def from_record(cls, record) -> "PlayerLedgerEntry":
        """Create from database record joined with users."""
        return cls(
            id=str(record["id"]),
            session_id=str(record["session_id"]),
            user_id=str(record["user_id"]),
            buy_in_count=record["buy_in_count"],
            chips_sold=record["chips_sold"],
            cash_out=record["cash_out"],
            joined_at=record["joined_at"],
            left_at=record["left_at"],
            player_name=record.get("player_name") or "",
            player_type=PlayerType(record.get("player_type") or PlayerType.GUEST.value),
        )


@dataclass
class PiggyBankAccount:
    """The session's piggy-bank skim, kept apart from the player list."""
    session_id: str
    amount: int = 0

    def to_dict(self) -> dict:
        return {"session_id": self.session_id, "amount": self.amount}
