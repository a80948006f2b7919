"""Tests for special hand records."""
import pytest

from pokernight.ledger.errors import InvalidHandTypeError, InvalidInputError
from pokernight.ledger.special_hands import HandType, new_special_hand

from tests.conftest import START


class TestHandType:
    """Test hand type parsing and ranking."""

    def test_strength_order(self):
        """Test hands rank from four jacks up to a royal flush."""
        strengths = [t.strength for t in HandType]
        assert strengths == [1, 2, 3, 4, 5, 6]
        assert HandType.ROYAL_FLUSH.label == "Royal Flush"

    def test_parse(self):
        assert HandType.parse("FOUR_OF_A_KIND_ACES") is HandType.FOUR_OF_A_KIND_ACES
        assert HandType.parse(HandType.FOUR_OF_A_KIND_KINGS) is HandType.FOUR_OF_A_KIND_KINGS

    @pytest.mark.parametrize("value", ["FIVE_ACES", "FOUR_ACES"])
    def test_parse_unknown(self, value):
        with pytest.raises(InvalidHandTypeError):
            HandType.parse(value)

    def test_stored_values(self):
        assert [t.value for t in HandType] == [
            "FOUR_OF_A_KIND_JACKS",
            "FOUR_OF_A_KIND_QUEENS",
            "FOUR_OF_A_KIND_KINGS",
            "FOUR_OF_A_KIND_ACES",
            "STRAIGHT_FLUSH",
            "ROYAL_FLUSH",
        ]


class TestNewSpecialHand:
    """Test building special hand records."""

    def test_new_special_hand(self):
        hand = new_special_hand("s1", "p1", "STRAIGHT_FLUSH", "  5h 6h 7h 8h 9h ", "  river  ", now=START)

        assert hand.hand_type == HandType.STRAIGHT_FLUSH
        assert hand.cards == "5h 6h 7h 8h 9h"
        assert hand.description == "river"
        assert hand.created_at == START

    def test_blank_description_is_dropped(self):
        hand = new_special_hand("s1", "p1", HandType.FOUR_OF_A_KIND_JACKS, "Jc Jd Jh Js", "   ")
        assert hand.description is None

    def test_cards_required(self):
        with pytest.raises(InvalidInputError):
            new_special_hand("s1", "p1", "FOUR_OF_A_KIND_JACKS", "  ")

    def test_invalid_hand_type(self):
        """Test an unknown hand type is rejected before anything else."""
        with pytest.raises(InvalidHandTypeError):
            new_special_hand("s1", "p1", "FULL_HOUSE", "As Ad Ah Ks Kd")

    def test_to_dict(self):
        hand = new_special_hand("s1", "p1", "FOUR_OF_A_KIND_QUEENS", "Qc Qd Qh Qs", now=START)
        hand.player_name = "alice"

        data = hand.to_dict()

        assert data["player"] == "alice"
        assert data["hand_type"] == "FOUR_OF_A_KIND_QUEENS"
        assert data["hand_label"] == "Four Queens"
        assert data["session_date"] is None
