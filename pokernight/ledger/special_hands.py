"""Special hands: rare hands recorded during a session, each worth one asterisk."""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from pokernight.ledger.errors import InvalidHandTypeError, InvalidInputError
from pokernight.ledger.models import utcnow


class HandType(str, Enum):
    """Recognized special hands, weakest first."""
    FOUR_OF_A_KIND_JACKS = "FOUR_OF_A_KIND_JACKS"
    FOUR_OF_A_KIND_QUEENS = "FOUR_OF_A_KIND_QUEENS"
    FOUR_OF_A_KIND_KINGS = "FOUR_OF_A_KIND_KINGS"
    FOUR_OF_A_KIND_ACES = "FOUR_OF_A_KIND_ACES"
    STRAIGHT_FLUSH = "STRAIGHT_FLUSH"
    ROYAL_FLUSH = "ROYAL_FLUSH"

    @property
    def strength(self) -> int:
        return HAND_STRENGTH[self]

    @property
    def label(self) -> str:
        return HAND_LABELS[self]

    @classmethod
    def parse(cls, value) -> "HandType":
        """Parse a hand type, raising InvalidHandTypeError for unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidHandTypeError(value)


HAND_STRENGTH = {
    HandType.FOUR_OF_A_KIND_JACKS: 1,
    HandType.FOUR_OF_A_KIND_QUEENS: 2,
    HandType.FOUR_OF_A_KIND_KINGS: 3,
    HandType.FOUR_OF_A_KIND_ACES: 4,
    HandType.STRAIGHT_FLUSH: 5,
    HandType.ROYAL_FLUSH: 6,
}

HAND_LABELS = {
    HandType.FOUR_OF_A_KIND_JACKS: "Four Jacks",
    HandType.FOUR_OF_A_KIND_QUEENS: "Four Queens",
    HandType.FOUR_OF_A_KIND_KINGS: "Four Kings",
    HandType.FOUR_OF_A_KIND_ACES: "Four Aces",
    HandType.STRAIGHT_FLUSH: "Straight Flush",
    HandType.ROYAL_FLUSH: "Royal Flush",
}


@dataclass
class SpecialHand:
    """A recorded special hand."""
    id: str
    session_id: str
    player_id: str
    hand_type: HandType
    cards: str
    description: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    player_name: str = ""  # Denormalized
    session_date: Optional[datetime] = None  # Denormalized

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "session_id": self.session_id,
            "player_id": self.player_id,
            "player": self.player_name,
            "hand_type": self.hand_type.value,
            "hand_label": self.hand_type.label,
            "cards": self.cards,
            "description": self.description,
            "created_at": self.created_at.isoformat(),
            "session_date": self.session_date.isoformat() if self.session_date else None,
        }

    @classmethod
    def from_record(cls, record) -> "SpecialHand":
        """Create from database record."""
        return cls(
            id=str(record["id"]),
            session_id=str(record["session_id"]),
            player_id=str(record["player_id"]),
            hand_type=HandType(record["hand_type"]),
            cards=record["cards"],
            description=record["description"],
            created_at=record["created_at"],
            player_name=record.get("player_name") or "",
            session_date=record.get("session_date"),
        )


def new_special_hand(
    session_id: str,
    player_id: str,
    hand_type,
    cards: str,
    description: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SpecialHand:
    """Validate and build a special hand record.

    Args:
        session_id: Session the hand was played in.
        player_id: User ID of the player who held it.
        hand_type: A HandType or its string value.
        cards: Free-text card listing.
        description: Optional note.
        now: Creation timestamp (defaults to the current time).

    Raises:
        InvalidHandTypeError: If the hand type is not recognized.
        InvalidInputError: If required fields are missing.
    """
    parsed = HandType.parse(hand_type)
    if not player_id:
        raise InvalidInputError("Player ID is required")
    if not cards or not cards.strip():
        raise InvalidInputError("Cards are required")
    return SpecialHand(
        id=str(uuid.uuid4()),
        session_id=session_id,
        player_id=player_id,
        hand_type=parsed,
        cards=cards.strip(),
        description=description.strip() if description and description.strip() else None,
        created_at=now or utcnow(),
    )
