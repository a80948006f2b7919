"""Tests for request parsing."""
import pytest

from pokernight.ledger.commands import CashOut, Sell, UndoCashOut
from pokernight.ledger.errors import InvalidAmountError, InvalidInputError
from pokernight.protocol.messages import (
    CloseAction,
    UpdateDateAction,
    UpdateNotesAction,
    parse_player_action,
    parse_session_action,
)


class TestSessionActions:
    """Test session action parsing."""

    def test_parse_close(self):
        assert isinstance(parse_session_action({"action": "close"}), CloseAction)

    def test_parse_update_date(self):
        action = parse_session_action({"action": "update_date", "date": "2024-06-01T19:00:00Z"})

        assert isinstance(action, UpdateDateAction)
        assert action.date.year == 2024

    def test_parse_update_notes_clear(self):
        action = parse_session_action({"action": "update_notes", "notes": None})
        assert isinstance(action, UpdateNotesAction)
        assert action.notes is None

    def test_update_date_requires_date(self):
        with pytest.raises(InvalidInputError):
            parse_session_action({"action": "update_date"})

    def test_unknown_action(self):
        with pytest.raises(InvalidInputError) as exc_info:
            parse_session_action({"action": "explode"})
        assert "explode" in exc_info.value.message

    def test_missing_action(self):
        with pytest.raises(InvalidInputError):
            parse_session_action({})


class TestPlayerActions:
    """Test player action parsing into ledger commands."""

    def test_sell(self):
        command = parse_player_action({"action": "sell_buy_in", "buyer_id": "u2"}).to_command()
        assert command == Sell(buyer_id="u2")

    def test_cash_out(self):
        command = parse_player_action({"action": "cash_out", "amount": 35}).to_command()
        assert command == CashOut(amount=35)

    def test_undo_cash_out(self):
        command = parse_player_action({"action": "undo_cash_out"}).to_command()
        assert command == UndoCashOut()

    def test_cash_out_without_amount(self):
        """Test a missing cash-out amount is an amount error."""
        with pytest.raises(InvalidAmountError):
            parse_player_action({"action": "cash_out"})

    @pytest.mark.parametrize("amount", ["lots", "15", True, 15.0])
    def test_cash_out_not_a_number(self, amount):
        """Test amounts are never coerced from strings, booleans or floats."""
        with pytest.raises(InvalidAmountError):
            parse_player_action({"action": "cash_out", "amount": amount})

    def test_sell_without_buyer(self):
        with pytest.raises(InvalidInputError):
            parse_player_action({"action": "sell_buy_in"})

    def test_session_action_is_not_a_player_action(self):
        with pytest.raises(InvalidInputError):
            parse_player_action({"action": "close"})
