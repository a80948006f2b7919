"""Append-only transaction log for chip movements.

Every ledger mutation is recorded here in the same database transaction as
the entry update it documents. Replaying a session's records in order from
an empty state reproduces its player entries exactly.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from pokernight.ledger.models import PlayerLedgerEntry


class TransactionType(str, Enum):
    """Types of chip transactions."""
    BUY_IN = "BUY_IN"
    REMOVE_BUY_IN = "REMOVE_BUY_IN"
    SELL_BUY_IN = "SELL_BUY_IN"
    CASH_OUT = "CASH_OUT"


@dataclass
class TransactionRecord:
    """A chip transaction record."""
    id: str
    session_id: str
    type: TransactionType
    player_id: str
    amount: int
    created_at: datetime
    target_player_id: Optional[str] = None  # Buyer, SELL_BUY_IN only
    seq: int = 0  # Tiebreak for equal timestamps

    @property
    def sort_key(self) -> tuple[datetime, int]:
        return (self.created_at, self.seq)

    def involves(self, player_id: str) -> bool:
        return self.player_id == player_id or self.target_player_id == player_id

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "session_id": self.session_id,
            "type": self.type.value,
            "player_id": self.player_id,
            "target_player_id": self.target_player_id,
            "amount": self.amount,
            "timestamp": self.created_at.isoformat(),
        }

    @classmethod
    def new(
        cls,
        session_id: str,
        type: TransactionType,
        player_id: str,
        amount: int,
        created_at: datetime,
        seq: int,
        target_player_id: Optional[str] = None,
    ) -> "TransactionRecord":
        return cls(
            id=str(uuid.uuid4()),
            session_id=session_id,
            type=type,
            player_id=player_id,
            amount=amount,
            created_at=created_at,
            target_player_id=target_player_id,
            seq=seq,
        )

    @classmethod
    def from_record(cls, record) -> "TransactionRecord":
        """Create from database record."""
        return cls(
            id=str(record["id"]),
            session_id=str(record["session_id"]),
            type=TransactionType(record["type"]),
            player_id=str(record["player_id"]),
            amount=record["amount"],
            created_at=record["created_at"],
            target_player_id=str(record["target_player_id"]) if record["target_player_id"] else None,
            seq=record["seq"],
        )


@dataclass
class BuyInTransfer:
    """Denormalized record of a completed chip sale."""
    id: str
    session_id: str
    transaction_id: str
    seller_id: str
    buyer_id: str
    amount: int
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "seller_id": self.seller_id,
            "buyer_id": self.buyer_id,
            "amount": self.amount,
            "timestamp": self.created_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record) -> "BuyInTransfer":
        """Create from database record."""
        return cls(
            id=str(record["id"]),
            session_id=str(record["session_id"]),
            transaction_id=str(record["transaction_id"]),
            seller_id=str(record["seller_id"]),
            buyer_id=str(record["buyer_id"]),
            amount=record["amount"],
            created_at=record["created_at"],
        )


def ordered(records: Iterable[TransactionRecord]) -> list[TransactionRecord]:
    """Records in log order."""
    return sorted(records, key=lambda r: r.sort_key)


def latest_of_type(
    records: Iterable[TransactionRecord],
    player_id: str,
    transaction_type: TransactionType,
) -> Optional[TransactionRecord]:
    """Most recent record of a type for a player, the target of undo shortcuts."""
    matches = [r for r in records if r.player_id == player_id and r.type == transaction_type]
    if not matches:
        return None
    return max(matches, key=lambda r: r.sort_key)


def replay_transactions(
    session_id: str,
    records: Iterable[TransactionRecord],
) -> dict[str, PlayerLedgerEntry]:
    """Rebuild player entries from a session's transaction log.

    Args:
        session_id: The session the records belong to.
        records: The session's transaction records, in any order.

    Returns:
        Player entries keyed by user ID.
    """
    entries: dict[str, PlayerLedgerEntry] = {}

    def entry(user_id: str) -> PlayerLedgerEntry:
        if user_id not in entries:
            entries[user_id] = PlayerLedgerEntry(
                id=f"replay:{user_id}", session_id=session_id, user_id=user_id
            )
        return entries[user_id]

    for record in ordered(records):
        if record.type == TransactionType.BUY_IN:
            entry(record.player_id).buy_in_count += 1
        elif record.type == TransactionType.REMOVE_BUY_IN:
            entry(record.player_id).buy_in_count -= 1
        elif record.type == TransactionType.SELL_BUY_IN:
            entry(record.player_id).chips_sold += record.amount
            entry(record.target_player_id).buy_in_count += 1
        elif record.type == TransactionType.CASH_OUT:
            entry(record.player_id).cash_out = record.amount

    return entries
