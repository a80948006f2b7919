"""Pydantic request schemas for the HTTP API."""
from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, StrictInt, ValidationError

from pokernight.ledger.commands import BuyIn, CashOut, PlayerCommand, RemoveBuyIn, Sell, UndoCashOut
from pokernight.ledger.errors import InvalidAmountError, InvalidInputError


# ============= Session requests =============

class CreateSessionRequest(BaseModel):
    """Start a new session hosted by the caller."""
    host_location_id: Optional[str] = None
    date: Optional[datetime] = None


class JoinSessionRequest(BaseModel):
    """Seat a user in the session."""
    user_id: str


class SpecialHandRequest(BaseModel):
    """Record a special hand."""
    player_id: str
    hand_type: str
    cards: str
    description: Optional[str] = None


# ============= Session actions (PATCH /api/sessions/{id}) =============

class CloseAction(BaseModel):
    action: Literal["close"] = "close"


class ReopenAction(BaseModel):
    action: Literal["reopen"] = "reopen"


class ArchiveAction(BaseModel):
    action: Literal["archive"] = "archive"


class UnarchiveAction(BaseModel):
    action: Literal["unarchive"] = "unarchive"


class UpdateDateAction(BaseModel):
    """Admin: move the session to another date."""
    action: Literal["update_date"] = "update_date"
    date: datetime


class UpdateHostLocationAction(BaseModel):
    action: Literal["update_host_location"] = "update_host_location"
    host_location_id: Optional[str] = None


class UpdateNotesAction(BaseModel):
    action: Literal["update_notes"] = "update_notes"
    notes: Optional[str] = None


SessionAction = Union[
    CloseAction,
    ReopenAction,
    ArchiveAction,
    UnarchiveAction,
    UpdateDateAction,
    UpdateHostLocationAction,
    UpdateNotesAction,
]


# ============= Player actions (PATCH /api/sessions/{id}/players/{entry_id}) =============

class BuyInAction(BaseModel):
    action: Literal["buy_in"] = "buy_in"

    def to_command(self) -> PlayerCommand:
        return BuyIn()


class RemoveBuyInAction(BaseModel):
    action: Literal["remove_buy_in"] = "remove_buy_in"

    def to_command(self) -> PlayerCommand:
        return RemoveBuyIn()


class SellBuyInAction(BaseModel):
    """Sell one chip's worth of value to another player (by user ID)."""
    action: Literal["sell_buy_in"] = "sell_buy_in"
    buyer_id: str

    def to_command(self) -> PlayerCommand:
        return Sell(buyer_id=self.buyer_id)


class CashOutAction(BaseModel):
    action: Literal["cash_out"] = "cash_out"
    amount: StrictInt

    def to_command(self) -> PlayerCommand:
        return CashOut(amount=self.amount)


class UndoCashOutAction(BaseModel):
    action: Literal["undo_cash_out"] = "undo_cash_out"

    def to_command(self) -> PlayerCommand:
        return UndoCashOut()


PlayerAction = Union[
    BuyInAction,
    RemoveBuyInAction,
    SellBuyInAction,
    CashOutAction,
    UndoCashOutAction,
]


SESSION_ACTIONS = {
    "close": CloseAction,
    "reopen": ReopenAction,
    "archive": ArchiveAction,
    "unarchive": UnarchiveAction,
    "update_date": UpdateDateAction,
    "update_host_location": UpdateHostLocationAction,
    "update_notes": UpdateNotesAction,
}

PLAYER_ACTIONS = {
    "buy_in": BuyInAction,
    "remove_buy_in": RemoveBuyInAction,
    "sell_buy_in": SellBuyInAction,
    "cash_out": CashOutAction,
    "undo_cash_out": UndoCashOutAction,
}


def _parse(data: dict, type_map: dict):
    action = data.get("action") if isinstance(data, dict) else None
    if action not in type_map:
        raise InvalidInputError(f"Invalid action: {action}")
    try:
        return type_map[action](**data)
    except ValidationError as e:
        if action == "cash_out":
            raise InvalidAmountError(data.get("amount"))
        raise InvalidInputError(f"Invalid {action} request: {e.errors()[0]['msg']}")


def parse_session_action(data: dict) -> SessionAction:
    """Parse a session action from a JSON body.
    
    Raises:
        InvalidInputError: If the action is unknown or its fields are invalid.
    """
    return _parse(data, SESSION_ACTIONS)


def parse_player_action(data: dict) -> PlayerAction:
    """Parse a player action from a JSON body.
    
    Raises:
        InvalidAmountError: If a cash-out amount is missing or not an integer.
        InvalidInputError: If the action is unknown or its fields are invalid.
    """
    return _parse(data, PLAYER_ACTIONS)
