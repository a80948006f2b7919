"""Ledger module: chip accounting for one poker night."""
from .commands import BuyIn, CashOut, PlayerCommand, RemoveBuyIn, Sell, UndoCashOut
from .models import GameSession, PiggyBankAccount, PlayerLedgerEntry, PlayerType, SessionStatus
from .session import Balance, LedgerChange, SessionLedger
from .special_hands import HandType, SpecialHand
from .transactions import BuyInTransfer, TransactionRecord, TransactionType, replay_transactions

__all__ = [
    "Balance",
    "BuyIn",
    "BuyInTransfer",
    "CashOut",
    "GameSession",
    "HandType",
    "LedgerChange",
    "PiggyBankAccount",
    "PlayerCommand",
    "PlayerLedgerEntry",
    "PlayerType",
    "RemoveBuyIn",
    "Sell",
    "SessionLedger",
    "SessionStatus",
    "SpecialHand",
    "TransactionRecord",
    "TransactionType",
    "UndoCashOut",
    "replay_transactions",
]
