"""Fixed-denomination chip arithmetic.

Every money-valued field in the ledger is an integer number of base currency
units. A buy-in is exactly one chip of ``BUY_IN_AMOUNT``; team players add
``PIGGY_BANK_CONTRIBUTION`` to the session's piggy bank when they join.
"""
from typing import Optional

from pokernight.config import config

BUY_IN_AMOUNT: int = config.buy_in_amount
PIGGY_BANK_CONTRIBUTION: int = config.piggy_bank_contribution


def buy_in_value(buy_in_count: int) -> int:
    """Currency value of a number of buy-in chips."""
    return buy_in_count * BUY_IN_AMOUNT


def effective_cash_out(cash_out: Optional[int], chips_sold: int) -> int:
    """Cash a player has taken off the table, counting chips sold mid-session."""
    return (cash_out or 0) + chips_sold


def net_result(buy_in_count: int, cash_out: Optional[int], chips_sold: int) -> int:
    """Net win (+) or loss (-) for one player in one session.
    
    An unsettled player (``cash_out`` is None) is counted as having cashed
    out nothing, which is how closed-session statistics treat them.
    """
    return effective_cash_out(cash_out, chips_sold) - buy_in_value(buy_in_count)


def is_valid_amount(amount: object) -> bool:
    """Whether a value is an acceptable non-negative integer money amount."""
    return isinstance(amount, int) and not isinstance(amount, bool) and amount >= 0
