"""Ledger error taxonomy.

Every domain failure is detected before anything is written and carries a
stable ``code`` and the HTTP status the API reports it with.
"""


class LedgerError(Exception):
    """Base ledger error."""

    code = "LEDGER_ERROR"
    http_status = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# --- Authorization ---

class NotAuthorizedError(LedgerError):
    code = "NOT_AUTHORIZED"
    http_status = 403

    def __init__(self, message: str = "Only the host or an admin can do that") -> None:
        super().__init__(message)


# --- NotFound ---

class NotFoundError(LedgerError):
    code = "NOT_FOUND"
    http_status = 404


class SessionNotFoundError(NotFoundError):
    code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")


class PlayerNotFoundError(NotFoundError):
    code = "PLAYER_NOT_FOUND"

    def __init__(self, player_id: str) -> None:
        super().__init__(f"Player not found in session: {player_id}")


class TransactionNotFoundError(NotFoundError):
    code = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str) -> None:
        super().__init__(f"Transaction not found: {transaction_id}")


class SpecialHandNotFoundError(NotFoundError):
    code = "SPECIAL_HAND_NOT_FOUND"

    def __init__(self, hand_id: str) -> None:
        super().__init__(f"Special hand not found: {hand_id}")


class UserNotFoundError(NotFoundError):
    code = "USER_NOT_FOUND"

    def __init__(self, user_id: str) -> None:
        super().__init__(f"User not found: {user_id}")


# --- InvalidState ---

class InvalidStateError(LedgerError):
    code = "INVALID_STATE"


class SessionNotActiveError(InvalidStateError):
    code = "SESSION_NOT_ACTIVE"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session is not active: {session_id}")


class SessionNotClosedError(InvalidStateError):
    code = "SESSION_NOT_CLOSED"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session is not closed: {session_id}")


class ActiveSessionExistsError(InvalidStateError):
    code = "ACTIVE_SESSION_EXISTS"

    def __init__(self) -> None:
        super().__init__("An active session already exists")


class AlreadyJoinedError(InvalidStateError):
    code = "ALREADY_JOINED"

    def __init__(self, user_id: str) -> None:
        super().__init__(f"Player already in session: {user_id}")


class AlreadySettledError(InvalidStateError):
    code = "ALREADY_SETTLED"

    def __init__(self, player_id: str) -> None:
        super().__init__(f"Player has already cashed out: {player_id}")


class NoChipsToRemoveError(InvalidStateError):
    code = "NO_CHIPS_TO_REMOVE"

    def __init__(self, player_id: str) -> None:
        super().__init__(f"No buy-ins to remove for player: {player_id}")


class BuyerUnavailableError(InvalidStateError):
    code = "BUYER_UNAVAILABLE"

    def __init__(self, buyer_id: str) -> None:
        super().__init__(f"Buyer not found, already cashed out, or is the seller: {buyer_id}")


class NotCashedOutError(InvalidStateError):
    code = "NOT_CASHED_OUT"

    def __init__(self, player_id: str) -> None:
        super().__init__(f"Player has not cashed out: {player_id}")


class CannotReverseError(InvalidStateError):
    code = "CANNOT_REVERSE"


class PlayerHasTransfersError(InvalidStateError):
    code = "PLAYER_HAS_TRANSFERS"

    def __init__(self, player_id: str) -> None:
        super().__init__(
            f"Player {player_id} is part of a chip sale; undo the sale before removing them"
        )


class PlayersStillActiveError(InvalidStateError):
    code = "PLAYERS_STILL_ACTIVE"

    def __init__(self, player_ids: list[str]) -> None:
        self.player_ids = player_ids
        super().__init__(
            f"All players must cash out before closing ({len(player_ids)} still playing)"
        )


# --- InvalidInput ---

class InvalidInputError(LedgerError):
    code = "INVALID_INPUT"


class InvalidAmountError(InvalidInputError):
    code = "INVALID_AMOUNT"

    def __init__(self, amount: object) -> None:
        super().__init__(f"Valid cash-out amount required, got {amount!r}")


class InvalidHandTypeError(InvalidInputError):
    code = "INVALID_HAND_TYPE"

    def __init__(self, hand_type: object) -> None:
        super().__init__(f"Invalid hand type: {hand_type!r}")


# --- Unbalanced ---

class UnbalancedError(LedgerError):
    code = "UNBALANCED"

    def __init__(self, distributable_pot: int, effective_cash_outs: int) -> None:
        self.distributable_pot = distributable_pot
        self.effective_cash_outs = effective_cash_outs
        self.difference = distributable_pot - effective_cash_outs
        super().__init__(
            f"Cannot close session: distributable pot (${distributable_pot}) does not "
            f"match cash-outs (${effective_cash_outs}), difference ${self.difference}"
        )
