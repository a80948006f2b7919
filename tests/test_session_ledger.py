"""Tests for the session ledger aggregate."""
import pytest

from pokernight.ledger import chips
from pokernight.ledger.commands import BuyIn, CashOut, RemoveBuyIn, Sell, UndoCashOut
from pokernight.ledger.errors import (
    AlreadyJoinedError,
    AlreadySettledError,
    BuyerUnavailableError,
    CannotReverseError,
    InvalidAmountError,
    NoChipsToRemoveError,
    NotCashedOutError,
    PlayerHasTransfersError,
    PlayerNotFoundError,
    PlayersStillActiveError,
    SessionNotActiveError,
    SessionNotClosedError,
    TransactionNotFoundError,
    UnbalancedError,
)
from pokernight.ledger.models import PlayerType, SessionStatus
from pokernight.ledger.transactions import TransactionType

BUY_IN = chips.BUY_IN_AMOUNT
PIGGY = chips.PIGGY_BANK_CONTRIBUTION


def types(ledger):
    return [r.type for r in ledger.transactions]


class TestJoin:
    """Test seating players."""

    def test_join_records_first_buy_in(self, ledger):
        """Test joining creates an entry with one buy-in and a BUY_IN record."""
        change = ledger.join("a", PlayerType.GUEST, "alice")

        entry = ledger.get_player("a")
        assert entry.buy_in_count == 1
        assert entry.cash_out is None
        assert types(ledger) == [TransactionType.BUY_IN]
        assert change.upserted_entries[0].user_id == "a"
        assert len(change.appended_transactions) == 1
        assert change.piggy_bank is None

    def test_team_player_funds_piggy_bank(self, ledger):
        """Test team players credit the piggy bank, guests do not."""
        ledger.join("a", PlayerType.TEAM)
        change = ledger.join("b", PlayerType.TEAM)
        ledger.join("c", PlayerType.GUEST)

        assert ledger.piggy_bank.amount == 2 * PIGGY
        assert change.piggy_bank.amount == 2 * PIGGY

    def test_join_twice(self, ledger):
        ledger.join("a")
        with pytest.raises(AlreadyJoinedError):
            ledger.join("a")

    def test_join_closed_session(self, ledger):
        """Test a closed session accepts no players."""
        ledger.close()
        with pytest.raises(SessionNotActiveError):
            ledger.join("a")


class TestBuyIns:
    """Test adding and removing buy-ins."""

    def test_buy_in(self, ledger):
        ledger.join("a")
        ledger.execute("a", BuyIn())

        assert ledger.get_player("a").buy_in_count == 2
        assert types(ledger) == [TransactionType.BUY_IN, TransactionType.BUY_IN]

    def test_buy_in_after_cash_out(self, ledger):
        """Test a cashed-out player cannot buy back in without undoing."""
        ledger.join("a")
        ledger.cash_out("a", 5)
        with pytest.raises(AlreadySettledError):
            ledger.buy_in("a")

    def test_buy_in_unknown_player(self, ledger):
        with pytest.raises(PlayerNotFoundError):
            ledger.buy_in("ghost")

    def test_remove_buy_in(self, ledger):
        ledger.join("a")
        ledger.execute("a", RemoveBuyIn())

        assert ledger.get_player("a").buy_in_count == 0
        assert types(ledger)[-1] == TransactionType.REMOVE_BUY_IN

    def test_remove_buy_in_at_zero(self, ledger):
        """Test buy-in count never goes negative."""
        ledger.join("a")
        ledger.remove_buy_in("a")
        before = list(ledger.transactions)

        with pytest.raises(NoChipsToRemoveError):
            ledger.remove_buy_in("a")

        assert ledger.get_player("a").buy_in_count == 0
        assert ledger.transactions == before


class TestSell:
    """Test chip sales between players."""

    def test_sell_moves_value(self, ledger):
        """Test the seller is credited and the buyer gains a buy-in."""
        ledger.join("a")
        ledger.join("b")
        change = ledger.execute("a", Sell(buyer_id="b"))

        seller, buyer = ledger.get_player("a"), ledger.get_player("b")
        assert seller.buy_in_count == 1
        assert seller.chips_sold == BUY_IN
        assert buyer.buy_in_count == 2
        assert ledger.balance().total_buy_ins == 3 * BUY_IN

        record = ledger.transactions[-1]
        assert record.type == TransactionType.SELL_BUY_IN
        assert record.player_id == "a"
        assert record.target_player_id == "b"
        assert len(change.upserted_entries) == 2
        assert change.added_transfers[0].transaction_id == record.id

    def test_sell_to_self(self, ledger):
        ledger.join("a")
        with pytest.raises(BuyerUnavailableError):
            ledger.sell("a", "a")

    def test_sell_to_missing_buyer(self, ledger):
        ledger.join("a")
        with pytest.raises(BuyerUnavailableError):
            ledger.sell("a", "ghost")

    def test_sell_to_settled_buyer(self, ledger):
        """Test a buyer who already cashed out cannot buy."""
        ledger.join("a")
        ledger.join("b")
        ledger.cash_out("b", 0)
        with pytest.raises(BuyerUnavailableError):
            ledger.sell("a", "b")
        assert ledger.get_player("a").chips_sold == 0


class TestCashOut:
    """Test cash-out and its undo."""

    def test_cash_out(self, ledger):
        ledger.join("a")
        ledger.execute("a", CashOut(amount=15))

        entry = ledger.get_player("a")
        assert entry.cash_out == 15
        assert entry.left_at is not None
        assert ledger.transactions[-1].amount == 15

    def test_cash_out_zero(self, ledger):
        """Test a player may leave with nothing."""
        ledger.join("a")
        ledger.cash_out("a", 0)
        assert ledger.get_player("a").is_settled

    def test_cash_out_invalid_amount(self, ledger):
        ledger.join("a")
        for amount in (-5, 2.5, "10"):
            with pytest.raises(InvalidAmountError):
                ledger.cash_out("a", amount)
        assert not ledger.get_player("a").is_settled

    def test_cash_out_twice(self, ledger):
        ledger.join("a")
        ledger.cash_out("a", 5)
        with pytest.raises(AlreadySettledError):
            ledger.cash_out("a", 10)

    def test_undo_cash_out(self, ledger):
        """Test undo clears the cash-out and deletes its record."""
        ledger.join("a")
        ledger.cash_out("a", 15)
        cash_out_id = ledger.transactions[-1].id

        change = ledger.execute("a", UndoCashOut())

        entry = ledger.get_player("a")
        assert entry.cash_out is None
        assert entry.left_at is None
        assert types(ledger) == [TransactionType.BUY_IN]
        assert change.deleted_transaction_ids == [cash_out_id]

    def test_undo_cash_out_not_settled(self, ledger):
        ledger.join("a")
        with pytest.raises(NotCashedOutError):
            ledger.undo_cash_out("a")


class TestRemovePlayer:
    """Test removing players."""

    def test_remove_player_erases_records(self, ledger):
        ledger.join("a")
        ledger.buy_in("a")
        ledger.join("b")

        change = ledger.remove_player("a")

        assert "a" not in ledger.entries
        assert all(r.player_id == "b" for r in ledger.transactions)
        assert len(change.deleted_transaction_ids) == 2
        assert len(change.deleted_entry_ids) == 1

    def test_remove_team_player_refunds_piggy_bank(self, ledger):
        ledger.join("a", PlayerType.TEAM)
        ledger.join("b", PlayerType.TEAM)

        change = ledger.remove_player("a")

        assert ledger.piggy_bank.amount == PIGGY
        assert change.piggy_bank.amount == PIGGY

    def test_remove_settled_player(self, ledger):
        ledger.join("a")
        ledger.cash_out("a", 10)
        with pytest.raises(AlreadySettledError):
            ledger.remove_player("a")

    def test_remove_player_in_sale(self, ledger):
        """Test a buyer or seller cannot be removed while the sale stands."""
        ledger.join("a")
        ledger.join("b")
        ledger.sell("a", "b")
        with pytest.raises(PlayerHasTransfersError):
            ledger.remove_player("a")
        with pytest.raises(PlayerHasTransfersError):
            ledger.remove_player("b")


class TestReverse:
    """Test undoing individual transactions."""

    def test_reverse_buy_in(self, ledger):
        ledger.join("a")
        ledger.buy_in("a")
        record = ledger.transactions[-1]

        ledger.reverse(record.id)

        assert ledger.get_player("a").buy_in_count == 1
        with pytest.raises(TransactionNotFoundError):
            ledger.get_transaction(record.id)

    def test_reverse_buy_in_with_no_chips(self, ledger):
        """Test undoing a BUY_IN never drives the count negative."""
        ledger.join("a")
        first = ledger.transactions[0]
        ledger.remove_buy_in("a")

        with pytest.raises(CannotReverseError):
            ledger.reverse(first.id)
        assert ledger.get_player("a").buy_in_count == 0

    def test_reverse_remove_buy_in(self, ledger):
        ledger.join("a")
        ledger.remove_buy_in("a")
        ledger.reverse(ledger.transactions[-1].id)
        assert ledger.get_player("a").buy_in_count == 1

    def test_reverse_sell_removes_transfer(self, ledger):
        ledger.join("a")
        ledger.join("b")
        ledger.sell("a", "b")
        record = ledger.transactions[-1]

        change = ledger.reverse(record.id)

        assert ledger.get_player("a").chips_sold == 0
        assert ledger.get_player("b").buy_in_count == 1
        assert ledger.transfers == []
        assert len(change.deleted_transfer_ids) == 1

    def test_reverse_sell_when_buyer_has_no_chips(self, ledger):
        ledger.join("a")
        ledger.join("b")
        ledger.sell("a", "b")
        sale = ledger.transactions[-1]
        ledger.remove_buy_in("b")
        ledger.remove_buy_in("b")

        with pytest.raises(CannotReverseError):
            ledger.reverse(sale.id)
        assert ledger.get_player("a").chips_sold == BUY_IN

    def test_reverse_cash_out(self, ledger):
        ledger.join("a")
        ledger.cash_out("a", 10)
        ledger.reverse(ledger.transactions[-1].id)

        entry = ledger.get_player("a")
        assert entry.cash_out is None
        assert entry.left_at is None

    def test_reverse_unknown(self, ledger):
        with pytest.raises(TransactionNotFoundError):
            ledger.reverse("nope")


class TestBalanceAndClose:
    """Test reconciliation and the session lifecycle."""

    def test_minimal_balanced_session(self, ledger):
        """Two guests, $20 pot, cash-outs $15 and $5 close with a $20 pot."""
        ledger.join("a")
        ledger.join("b")
        ledger.cash_out("a", BUY_IN + BUY_IN // 2)
        ledger.cash_out("b", BUY_IN // 2)

        assert ledger.balance().is_balanced
        change = ledger.close()

        assert ledger.session.status == SessionStatus.CLOSED
        assert ledger.session.total_pot == 2 * BUY_IN
        assert ledger.session.closed_at is not None
        assert change.session.status == SessionStatus.CLOSED

    def test_sale_balances(self, ledger):
        """A sells to B, A cashes out $0 and B cashes out $20."""
        ledger.join("a")
        ledger.join("b")
        ledger.sell("a", "b")
        ledger.cash_out("a", 0)
        ledger.cash_out("b", 2 * BUY_IN)

        balance = ledger.balance()
        assert balance.distributable_pot == 3 * BUY_IN
        assert balance.effective_cash_outs == 3 * BUY_IN
        ledger.close()
        assert ledger.session.total_pot == 3 * BUY_IN

    def test_piggy_bank_reduces_distributable_pot(self, ledger):
        ledger.join("a", PlayerType.TEAM)
        ledger.join("b", PlayerType.TEAM)
        ledger.cash_out("a", 2 * BUY_IN - 2 * PIGGY)
        ledger.cash_out("b", 0)

        balance = ledger.balance()
        assert balance.piggy_bank_amount == 2 * PIGGY
        assert balance.is_balanced

    @pytest.mark.parametrize("delta", [1, -1])
    def test_close_off_by_one(self, ledger, delta):
        """Test a single unit of difference blocks closing."""
        ledger.join("a")
        ledger.join("b")
        ledger.cash_out("a", BUY_IN + delta)
        ledger.cash_out("b", BUY_IN)

        with pytest.raises(UnbalancedError) as exc_info:
            ledger.close()

        assert exc_info.value.difference == -delta
        assert ledger.session.status == SessionStatus.ACTIVE

    def test_close_requires_cash_outs(self, ledger):
        """Test a balanced ledger still needs every holder cashed out."""
        ledger.join("a")
        ledger.join("b")
        ledger.cash_out("b", 2 * BUY_IN)

        assert ledger.balance().is_balanced
        with pytest.raises(PlayersStillActiveError) as exc_info:
            ledger.close()
        assert exc_info.value.player_ids == ["a"]

    def test_close_ignores_players_without_chips(self, ledger):
        """Test a player whose buy-ins were all removed need not cash out."""
        ledger.join("a")
        ledger.remove_buy_in("a")
        ledger.join("b")
        ledger.cash_out("b", BUY_IN)

        ledger.close()
        assert ledger.session.status == SessionStatus.CLOSED

    def test_reopen(self, ledger):
        ledger.close()
        ledger.reopen()

        assert ledger.session.status == SessionStatus.ACTIVE
        assert ledger.session.closed_at is None

    def test_reopen_active(self, ledger):
        with pytest.raises(SessionNotClosedError):
            ledger.reopen()

    def test_closed_session_is_frozen(self, ledger):
        ledger.join("a")
        ledger.cash_out("a", BUY_IN)
        ledger.close()

        with pytest.raises(SessionNotActiveError):
            ledger.undo_cash_out("a")
        with pytest.raises(SessionNotActiveError):
            ledger.reverse(ledger.transactions[0].id)

    def test_archive_and_edit_closed_session(self, ledger):
        """Test metadata edits are allowed after closing."""
        ledger.close()
        ledger.set_archived(True)
        change = ledger.set_notes("great night")

        assert change.session.is_archived
        assert change.session.notes == "great night"


class TestPiggyBankConservation:
    """Test the piggy bank always matches the team players seated."""

    def test_join_remove_cycle(self, ledger):
        for i in range(3):
            ledger.join(f"t{i}", PlayerType.TEAM)
        ledger.join("g", PlayerType.GUEST)
        ledger.remove_player("t1")
        ledger.remove_player("g")

        team = [e for e in ledger.entries.values() if e.player_type == PlayerType.TEAM]
        assert ledger.piggy_bank.amount == len(team) * PIGGY

    def test_never_negative(self, ledger):
        ledger.join("a", PlayerType.TEAM)
        ledger.piggy_bank.amount = 0
        change = ledger.remove_player("a")

        assert ledger.piggy_bank.amount == 0
        assert change.piggy_bank is None


class TestSessionView:
    """Test the session dictionary."""

    def test_to_dict(self, ledger):
        ledger.join("a", PlayerType.TEAM, "alice")
        ledger.join("b", PlayerType.GUEST, "bob")
        ledger.sell("a", "b")

        data = ledger.to_dict()

        assert data["status"] == "ACTIVE"
        assert [p["player"] for p in data["players"]] == ["alice", "bob"]
        assert data["player_count"] == 2
        assert data["total_pot"] == 3 * BUY_IN
        assert data["piggy_bank_contribution"] == PIGGY
        assert data["balance"]["distributable_pot"] == 3 * BUY_IN - PIGGY
        assert data["transfers"][0]["buyer_id"] == "b"
