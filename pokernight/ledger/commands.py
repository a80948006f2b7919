"""Player ledger commands.

A command is one of a closed set of variants; ``SessionLedger.execute``
dispatches on the variant type.
"""
from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class BuyIn:
    """Add one buy-in chip."""


@dataclass(frozen=True)
class RemoveBuyIn:
    """Take back one buy-in chip."""


@dataclass(frozen=True)
class Sell:
    """Sell one chip's worth of value to another player."""
    buyer_id: str


@dataclass(frozen=True)
class CashOut:
    """Record the amount a leaving player takes home."""
    amount: int


@dataclass(frozen=True)
class UndoCashOut:
    """Put a cashed-out player back in the game."""


PlayerCommand = Union[BuyIn, RemoveBuyIn, Sell, CashOut, UndoCashOut]
