"""Session aggregate: player entries, piggy bank and transaction log for one session.

``SessionLedger`` is loaded fresh for every request. Each operation checks all
of its preconditions before touching any state, then mutates the in-memory
aggregate and returns a ``LedgerChange`` describing exactly what has to be
written. The store writes that change inside the same database transaction
the aggregate was loaded in, so the entry update and the log append commit
together or not at all.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Optional

from pokernight.ledger import chips
from pokernight.ledger.commands import (
    BuyIn,
    CashOut,
    PlayerCommand,
    RemoveBuyIn,
    Sell,
    UndoCashOut,
)
from pokernight.ledger.errors import (
    AlreadyJoinedError,
    AlreadySettledError,
    BuyerUnavailableError,
    CannotReverseError,
    InvalidAmountError,
    InvalidInputError,
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
from pokernight.ledger.models import (
    GameSession,
    PiggyBankAccount,
    PlayerLedgerEntry,
    PlayerType,
    SessionStatus,
    utcnow,
)
from pokernight.ledger.transactions import (
    BuyInTransfer,
    TransactionRecord,
    TransactionType,
    latest_of_type,
    ordered,
)
from pokernight.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class LedgerChange:
    """Everything one ledger operation needs persisted."""
    session_id: str
    session: Optional[GameSession] = None
    upserted_entries: list[PlayerLedgerEntry] = field(default_factory=list)
    deleted_entry_ids: list[str] = field(default_factory=list)
    appended_transactions: list[TransactionRecord] = field(default_factory=list)
    deleted_transaction_ids: list[str] = field(default_factory=list)
    added_transfers: list[BuyInTransfer] = field(default_factory=list)
    deleted_transfer_ids: list[str] = field(default_factory=list)
    piggy_bank: Optional[PiggyBankAccount] = None  # amount 0 removes the account

    def touch(self, entry: PlayerLedgerEntry) -> None:
        """Record the current state of an entry, replacing any earlier snapshot."""
        self.upserted_entries = [e for e in self.upserted_entries if e.id != entry.id]
        self.upserted_entries.append(entry.copy())


@dataclass
class Balance:
    """Reconciliation figures for a session."""
    total_buy_ins: int
    piggy_bank_amount: int
    effective_cash_outs: int

    @property
    def distributable_pot(self) -> int:
        return self.total_buy_ins - self.piggy_bank_amount

    @property
    def difference(self) -> int:
        return self.distributable_pot - self.effective_cash_outs

    @property
    def is_balanced(self) -> bool:
        return self.difference == 0

    def to_dict(self) -> dict:
        return {
            "total_buy_ins": self.total_buy_ins,
            "piggy_bank": self.piggy_bank_amount,
            "distributable_pot": self.distributable_pot,
            "effective_cash_outs": self.effective_cash_outs,
            "difference": self.difference,
        }


class SessionLedger:
    """In-memory session aggregate enforcing the ledger invariants."""

    def __init__(
        self,
        session: GameSession,
        entries: Iterable[PlayerLedgerEntry] = (),
        piggy_bank: Optional[PiggyBankAccount] = None,
        transactions: Iterable[TransactionRecord] = (),
        transfers: Iterable[BuyInTransfer] = (),
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the aggregate.

        Args:
            session: The session row.
            entries: Player entries for the session.
            piggy_bank: The session's piggy-bank account, if one exists.
            transactions: The session's transaction log.
            transfers: Chip sales recorded in the session.
            clock: Source of timestamps for new records.
        """
        self.session = session
        self.entries: dict[str, PlayerLedgerEntry] = {e.user_id: e for e in entries}
        self.piggy_bank = piggy_bank or PiggyBankAccount(session_id=session.id, amount=0)
        self.transactions: list[TransactionRecord] = ordered(transactions)
        self.transfers: list[BuyInTransfer] = list(transfers)
        self.clock = clock

    @property
    def id(self) -> str:
        return self.session.id

    @property
    def players(self) -> list[PlayerLedgerEntry]:
        """Player entries in join order."""
        return sorted(self.entries.values(), key=lambda e: e.joined_at)

    def get_player(self, user_id: str) -> PlayerLedgerEntry:
        """Get a player's entry by user ID.

        Raises:
            PlayerNotFoundError: If the user is not in the session.
        """
        entry = self.entries.get(user_id)
        if entry is None:
            raise PlayerNotFoundError(user_id)
        return entry

    def get_entry(self, entry_id: str) -> PlayerLedgerEntry:
        """Get a player's entry by entry ID.

        Raises:
            PlayerNotFoundError: If no entry of this session has that ID.
        """
        for entry in self.entries.values():
            if entry.id == entry_id:
                return entry
        raise PlayerNotFoundError(entry_id)

    def get_transaction(self, transaction_id: str) -> TransactionRecord:
        for record in self.transactions:
            if record.id == transaction_id:
                return record
        raise TransactionNotFoundError(transaction_id)

    def balance(self) -> Balance:
        """Compute the reconciliation figures."""
        players = self.entries.values()
        return Balance(
            total_buy_ins=sum(e.buy_in_total for e in players),
            piggy_bank_amount=self.piggy_bank.amount,
            effective_cash_outs=sum(chips.effective_cash_out(e.cash_out, e.chips_sold) for e in players),
        )

    # ----- internals -----

    def _require_active(self) -> None:
        if self.session.status != SessionStatus.ACTIVE:
            raise SessionNotActiveError(self.session.id)

    def _change(self) -> LedgerChange:
        return LedgerChange(session_id=self.session.id)

    def _next_seq(self) -> int:
        return max((r.seq for r in self.transactions), default=0) + 1

    def _log(
        self,
        change: LedgerChange,
        transaction_type: TransactionType,
        player_id: str,
        amount: int,
        now: datetime,
        target_player_id: Optional[str] = None,
    ) -> TransactionRecord:
        record = TransactionRecord.new(
            session_id=self.session.id,
            type=transaction_type,
            player_id=player_id,
            amount=amount,
            created_at=now,
            seq=self._next_seq(),
            target_player_id=target_player_id,
        )
        self.transactions.append(record)
        change.appended_transactions.append(record)
        return record

    def _delete_transaction(self, change: LedgerChange, record: TransactionRecord) -> None:
        self.transactions = [r for r in self.transactions if r.id != record.id]
        change.deleted_transaction_ids.append(record.id)
        for transfer in [t for t in self.transfers if t.transaction_id == record.id]:
            self.transfers.remove(transfer)
            change.deleted_transfer_ids.append(transfer.id)

    def _set_piggy_bank(self, change: LedgerChange, amount: int) -> None:
        self.piggy_bank = PiggyBankAccount(session_id=self.session.id, amount=max(amount, 0))
        change.piggy_bank = PiggyBankAccount(session_id=self.session.id, amount=self.piggy_bank.amount)

    def _update_session(self, change: LedgerChange) -> LedgerChange:
        change.session = self.session.copy()
        return change

    # ----- player operations -----

    def join(
        self,
        user_id: str,
        player_type: PlayerType = PlayerType.GUEST,
        player_name: str = "",
    ) -> LedgerChange:
        """Seat a new player with their first buy-in.

        Team players also credit the piggy bank with one contribution.

        Raises:
            SessionNotActiveError: If the session is closed.
            AlreadyJoinedError: If the user is already a player.
        """
        self._require_active()
        if user_id in self.entries:
            raise AlreadyJoinedError(user_id)

        now = self.clock()
        change = self._change()
        entry = PlayerLedgerEntry(
            id=str(uuid.uuid4()),
            session_id=self.session.id,
            user_id=user_id,
            buy_in_count=1,
            joined_at=now,
            player_name=player_name,
            player_type=player_type,
        )
        self.entries[user_id] = entry
        change.touch(entry)
        self._log(change, TransactionType.BUY_IN, user_id, chips.BUY_IN_AMOUNT, now)

        if player_type == PlayerType.TEAM:
            self._set_piggy_bank(change, self.piggy_bank.amount + chips.PIGGY_BANK_CONTRIBUTION)

        logger.info(f"Session {self.id}: {player_name or user_id} joined ({player_type.value})")
        return change

    def buy_in(self, user_id: str) -> LedgerChange:
        """Add one buy-in chip for a player still at the table.

        Raises:
            PlayerNotFoundError: If the user is not a player.
            AlreadySettledError: If the player has cashed out.
        """
        self._require_active()
        entry = self.get_player(user_id)
        if entry.is_settled:
            raise AlreadySettledError(user_id)

        now = self.clock()
        change = self._change()
        entry.buy_in_count += 1
        change.touch(entry)
        self._log(change, TransactionType.BUY_IN, user_id, chips.BUY_IN_AMOUNT, now)
        logger.info(f"Session {self.id}: buy-in for {entry.player_name or user_id} (now {entry.buy_in_count})")
        return change

    def remove_buy_in(self, user_id: str) -> LedgerChange:
        """Take back one buy-in chip.

        Raises:
            PlayerNotFoundError: If the user is not a player.
            NoChipsToRemoveError: If the player holds no buy-ins.
        """
        self._require_active()
        entry = self.get_player(user_id)
        if entry.buy_in_count <= 0:
            raise NoChipsToRemoveError(user_id)

        now = self.clock()
        change = self._change()
        entry.buy_in_count -= 1
        change.touch(entry)
        self._log(change, TransactionType.REMOVE_BUY_IN, user_id, chips.BUY_IN_AMOUNT, now)
        logger.info(f"Session {self.id}: removed buy-in from {entry.player_name or user_id} (now {entry.buy_in_count})")
        return change

    def sell(self, seller_id: str, buyer_id: str) -> LedgerChange:
        """Sell one chip's worth of value from one player to another.

        The seller keeps their buy-ins and is credited the chip's value in
        ``chips_sold``; the buyer gains one buy-in. The pot grows by one chip.

        Raises:
            PlayerNotFoundError: If the seller is not a player.
            BuyerUnavailableError: If the buyer is missing, cashed out, or the seller.
        """
        self._require_active()
        seller = self.get_player(seller_id)
        buyer = self.entries.get(buyer_id)
        if buyer is None or buyer.is_settled or buyer_id == seller_id:
            raise BuyerUnavailableError(buyer_id)

        now = self.clock()
        change = self._change()
        seller.chips_sold += chips.BUY_IN_AMOUNT
        buyer.buy_in_count += 1
        change.touch(seller)
        change.touch(buyer)
        record = self._log(
            change, TransactionType.SELL_BUY_IN, seller_id, chips.BUY_IN_AMOUNT, now,
            target_player_id=buyer_id,
        )
        transfer = BuyInTransfer(
            id=str(uuid.uuid4()),
            session_id=self.session.id,
            transaction_id=record.id,
            seller_id=seller_id,
            buyer_id=buyer_id,
            amount=chips.BUY_IN_AMOUNT,
            created_at=now,
        )
        self.transfers.append(transfer)
        change.added_transfers.append(transfer)
        logger.info(
            f"Session {self.id}: {seller.player_name or seller_id} sold a chip to "
            f"{buyer.player_name or buyer_id}"
        )
        return change

    def cash_out(self, user_id: str, amount: int) -> LedgerChange:
        """Record a player leaving with ``amount``.

        Raises:
            InvalidAmountError: If the amount is not a non-negative integer.
            PlayerNotFoundError: If the user is not a player.
            AlreadySettledError: If the player already cashed out.
        """
        self._require_active()
        if not chips.is_valid_amount(amount):
            raise InvalidAmountError(amount)
        entry = self.get_player(user_id)
        if entry.is_settled:
            raise AlreadySettledError(user_id)

        now = self.clock()
        change = self._change()
        entry.cash_out = amount
        entry.left_at = now
        change.touch(entry)
        self._log(change, TransactionType.CASH_OUT, user_id, amount, now)
        logger.info(f"Session {self.id}: {entry.player_name or user_id} cashed out ${amount}")
        return change

    def undo_cash_out(self, user_id: str) -> LedgerChange:
        """Clear a player's cash-out and drop its latest CASH_OUT record.

        Raises:
            PlayerNotFoundError: If the user is not a player.
            NotCashedOutError: If the player has not cashed out.
        """
        self._require_active()
        entry = self.get_player(user_id)
        if not entry.is_settled:
            raise NotCashedOutError(user_id)

        change = self._change()
        entry.cash_out = None
        entry.left_at = None
        change.touch(entry)
        record = latest_of_type(self.transactions, user_id, TransactionType.CASH_OUT)
        if record is not None:
            self._delete_transaction(change, record)
        logger.info(f"Session {self.id}: undid cash-out for {entry.player_name or user_id}")
        return change

    def remove_player(self, user_id: str) -> LedgerChange:
        """Remove a player who has not cashed out, erasing their records.

        All of the player's transaction records are deleted with the entry,
        and a team player's piggy-bank contribution is taken back.

        Raises:
            PlayerNotFoundError: If the user is not a player.
            AlreadySettledError: If the player has cashed out.
            PlayerHasTransfersError: If the player took part in a chip sale.
        """
        self._require_active()
        entry = self.get_player(user_id)
        if entry.is_settled:
            raise AlreadySettledError(user_id)
        if any(r.type == TransactionType.SELL_BUY_IN and r.involves(user_id) for r in self.transactions):
            raise PlayerHasTransfersError(user_id)

        change = self._change()
        for record in [r for r in self.transactions if r.player_id == user_id]:
            self._delete_transaction(change, record)
        del self.entries[user_id]
        change.deleted_entry_ids.append(entry.id)

        if entry.player_type == PlayerType.TEAM and self.piggy_bank.amount > 0:
            self._set_piggy_bank(change, self.piggy_bank.amount - chips.PIGGY_BANK_CONTRIBUTION)

        logger.info(f"Session {self.id}: removed player {entry.player_name or user_id}")
        return change

    def execute(self, user_id: str, command: PlayerCommand) -> LedgerChange:
        """Apply a player command to the player ``user_id``."""
        if isinstance(command, BuyIn):
            return self.buy_in(user_id)
        if isinstance(command, RemoveBuyIn):
            return self.remove_buy_in(user_id)
        if isinstance(command, Sell):
            return self.sell(user_id, command.buyer_id)
        if isinstance(command, CashOut):
            return self.cash_out(user_id, command.amount)
        if isinstance(command, UndoCashOut):
            return self.undo_cash_out(user_id)
        raise InvalidInputError(f"Unknown player command: {command!r}")

    # ----- transaction log -----

    def reverse(self, transaction_id: str) -> LedgerChange:
        """Undo one transaction record and delete it.

        Raises:
            TransactionNotFoundError: If the record is not in this session.
            PlayerNotFoundError: If a player it refers to is gone.
            CannotReverseError: If the inverse would leave a negative balance.
        """
        self._require_active()
        record = self.get_transaction(transaction_id)
        entry = self.get_player(record.player_id)

        if record.type == TransactionType.BUY_IN:
            if entry.buy_in_count <= 0:
                raise CannotReverseError("Cannot undo: player has no buy-ins")
            entry.buy_in_count -= 1
            touched = [entry]
        elif record.type == TransactionType.REMOVE_BUY_IN:
            entry.buy_in_count += 1
            touched = [entry]
        elif record.type == TransactionType.SELL_BUY_IN:
            buyer = self.get_player(record.target_player_id)
            if buyer.buy_in_count <= 0:
                raise CannotReverseError("Cannot undo: buyer has no buy-ins to return")
            if entry.chips_sold < record.amount:
                raise CannotReverseError("Cannot undo: seller has no sold chips to return")
            entry.chips_sold -= record.amount
            buyer.buy_in_count -= 1
            touched = [entry, buyer]
        elif record.type == TransactionType.CASH_OUT:
            entry.cash_out = None
            entry.left_at = None
            touched = [entry]
        else:
            raise InvalidInputError(f"Unknown transaction type: {record.type!r}")

        change = self._change()
        for player in touched:
            change.touch(player)
        self._delete_transaction(change, record)
        logger.info(f"Session {self.id}: reversed {record.type.value} {record.id} for {record.player_id}")
        return change

    # ----- session lifecycle -----

    def close(self) -> LedgerChange:
        """Close the session once the ledger reconciles.

        Raises:
            UnbalancedError: If the distributable pot differs from cash-outs.
            PlayersStillActiveError: If a player holding buy-ins has not cashed out.
        """
        self._require_active()
        balance = self.balance()
        if not balance.is_balanced:
            raise UnbalancedError(balance.distributable_pot, balance.effective_cash_outs)
        still_playing = [e.user_id for e in self.players if e.buy_in_count > 0 and not e.is_settled]
        if still_playing:
            raise PlayersStillActiveError(still_playing)

        self.session.status = SessionStatus.CLOSED
        self.session.closed_at = self.clock()
        self.session.total_pot = balance.total_buy_ins
        logger.info(f"Session {self.id} closed (pot ${balance.total_buy_ins}, piggy bank ${balance.piggy_bank_amount})")
        return self._update_session(self._change())

    def reopen(self) -> LedgerChange:
        """Return a closed session to ACTIVE.

        Raises:
            SessionNotClosedError: If the session is not closed.
        """
        if self.session.status != SessionStatus.CLOSED:
            raise SessionNotClosedError(self.session.id)
        self.session.status = SessionStatus.ACTIVE
        self.session.closed_at = None
        logger.info(f"Session {self.id} reopened")
        return self._update_session(self._change())

    def set_archived(self, is_archived: bool) -> LedgerChange:
        self.session.is_archived = is_archived
        logger.info(f"Session {self.id} {'archived' if is_archived else 'unarchived'}")
        return self._update_session(self._change())

    def set_date(self, date: datetime) -> LedgerChange:
        self.session.date = date
        logger.info(f"Session {self.id} date set to {date.date().isoformat()}")
        return self._update_session(self._change())

    def set_host_location(self, host_location_id: Optional[str]) -> LedgerChange:
        self.session.host_location_id = host_location_id
        logger.info(f"Session {self.id} host location set to {host_location_id}")
        return self._update_session(self._change())

    def set_notes(self, notes: Optional[str]) -> LedgerChange:
        self.session.notes = notes
        return self._update_session(self._change())

    # ----- views -----

    def to_dict(self) -> dict:
        """Session view: visible players, transfers and the piggy-bank amount."""
        balance = self.balance()
        data = self.session.to_dict()
        data.update({
            "players": [e.to_dict() for e in self.players],
            "player_count": len(self.entries),
            "total_pot": balance.total_buy_ins,
            "piggy_bank_contribution": self.piggy_bank.amount,
            "balance": balance.to_dict(),
            "transfers": [t.to_dict() for t in sorted(self.transfers, key=lambda t: t.created_at)],
        })
        return data
