"""Main FastAPI server for the poker night ledger."""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from pokernight.admin.session_manager import SessionManager, session_manager
from pokernight.admin.standings import format_standings_table
from pokernight.auth.middleware import AuthenticatedUser, auth_middleware, get_current_user
from pokernight.config import config
from pokernight.db.connection import db
from pokernight.db.models import init_db
from pokernight.ledger.errors import LedgerError
from pokernight.ledger.models import SessionStatus
from pokernight.protocol.messages import (
    ArchiveAction,
    CloseAction,
    CreateSessionRequest,
    JoinSessionRequest,
    ReopenAction,
    SpecialHandRequest,
    UnarchiveAction,
    UpdateDateAction,
    UpdateHostLocationAction,
    UpdateNotesAction,
    parse_player_action,
    parse_session_action,
)
from pokernight.state.redis_client import redis_client
from pokernight.stats.service import StatsService, stats_service
from pokernight.utils.logger import get_logger

logger = get_logger(__name__)


class StandingItem(BaseModel):
    user_id: str
    player: str
    buy_ins: int
    chips_sold: int
    cash_out: Optional[int]
    net: int


class StandingsResponse(BaseModel):
    session_id: str
    players: list[StandingItem]
    table: str


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    await db.connect()
    await redis_client.connect()
    await init_db()
    logger.info("Poker night server initialized")
    yield
    await redis_client.disconnect()
    await db.disconnect()
    logger.info("Poker night server shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Poker Night Ledger",
    description="Chip ledger, session lifecycle and yearly statistics for a home poker group",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware - allow local development
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"http://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error mapping
@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    logger.info(f"{request.method} {request.url.path} rejected: {exc.code} {exc.message}")
    return JSONResponse(status_code=exc.http_status, content={"detail": exc.message, "code": exc.code})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0]["msg"] if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"detail": message, "code": "INVALID_INPUT"})


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Dependencies, overridden in tests
def get_session_manager() -> SessionManager:
    return session_manager


def get_stats_service() -> StatsService:
    return stats_service


# Health check
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# Auth
@app.post("/api/auth/logout")
async def logout(user: AuthenticatedUser = Depends(get_current_user)):
    """Revoke the caller's access token."""
    await auth_middleware.revoke_token(user.token)
    return {"success": True}


# Sessions
@app.get("/api/sessions")
async def list_sessions(
    status: Optional[SessionStatus] = None,
    year: Optional[int] = None,
    include_archived: bool = False,
    user: AuthenticatedUser = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    """List sessions, newest first."""
    return {"sessions": await manager.list_sessions(status, year, include_archived)}


@app.post("/api/sessions", status_code=201)
async def create_session(
    request: CreateSessionRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    """Start a new session hosted by the caller."""
    return {"session": await manager.create_session(user, request.host_location_id, request.date)}


@app.get("/api/sessions/active")
async def get_active_session(
    user: AuthenticatedUser = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    """Get the ACTIVE session, or null."""
    return {"session": await manager.get_active_session()}


@app.get("/api/sessions/{session_id}")
async def get_session(
    session_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    """Get a session with its players, transfers and piggy-bank amount."""
    return {"session": await manager.get_session(session_id)}


@app.patch("/api/sessions/{session_id}")
async def update_session(
    session_id: str,
    payload: dict = Body(...),
    user: AuthenticatedUser = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    """Apply a session-level action (close, reopen, archive, edits)."""
    action = parse_session_action(payload)

    if isinstance(action, CloseAction):
        session = await manager.close_session(user, session_id)
    elif isinstance(action, ReopenAction):
        session = await manager.reopen_session(user, session_id)
    elif isinstance(action, ArchiveAction):
        session = await manager.set_archived(user, session_id, True)
    elif isinstance(action, UnarchiveAction):
        session = await manager.set_archived(user, session_id, False)
    elif isinstance(action, UpdateDateAction):
        session = await manager.set_date(user, session_id, action.date)
    elif isinstance(action, UpdateHostLocationAction):
        session = await manager.set_host_location(user, session_id, action.host_location_id)
    elif isinstance(action, UpdateNotesAction):
        session = await manager.set_notes(user, session_id, action.notes)
    else:
        raise LedgerError(f"Unhandled action: {action.action}")

    return {"session": session}


# Players
@app.post("/api/sessions/{session_id}/players", status_code=201)
async def join_session(
    session_id: str,
    request: JoinSessionRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    """Seat a user with their first buy-in."""
    return {"player": await manager.join(user, session_id, request.user_id)}


@app.patch("/api/sessions/{session_id}/players/{entry_id}")
async def update_player(
    session_id: str,
    entry_id: str,
    payload: dict = Body(...),
    user: AuthenticatedUser = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    """Apply a player action (buy-in, remove buy-in, sell, cash out, undo cash out)."""
    action = parse_player_action(payload)
    return {"player": await manager.execute(user, session_id, entry_id, action.to_command())}


@app.delete("/api/sessions/{session_id}/players/{entry_id}")
async def remove_player(
    session_id: str,
    entry_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    """Remove a player who has not cashed out."""
    return {"session": await manager.remove_player(user, session_id, entry_id)}


# Transaction log
@app.get("/api/sessions/{session_id}/transactions")
async def list_transactions(
    session_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    """The session's transactions, newest first."""
    return {"transactions": await manager.list_transactions(session_id)}


@app.delete("/api/sessions/{session_id}/transactions/{transaction_id}")
async def undo_transaction(
    session_id: str,
    transaction_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    """Undo a transaction."""
    return {"session": await manager.reverse_transaction(user, session_id, transaction_id)}


@app.get("/api/sessions/{session_id}/standings", response_model=StandingsResponse)
async def get_standings(
    session_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    """Get session standings."""
    standings = await manager.get_standings(session_id)
    return StandingsResponse(
        session_id=session_id,
        players=[StandingItem(**s.to_dict()) for s in standings],
        table=format_standings_table(standings),
    )


# Special hands
@app.get("/api/sessions/{session_id}/special-hands")
async def list_special_hands(
    session_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    hands = await manager.list_special_hands(session_id)
    return {"special_hands": [h.to_dict() for h in hands]}


@app.post("/api/sessions/{session_id}/special-hands", status_code=201)
async def record_special_hand(
    session_id: str,
    request: SpecialHandRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    """Record a special hand for a player of the session."""
    hand = await manager.record_special_hand(
        user, session_id, request.player_id, request.hand_type, request.cards, request.description
    )
    return {"special_hand": hand}


@app.delete("/api/sessions/{session_id}/special-hands/{hand_id}")
async def delete_special_hand(
    session_id: str,
    hand_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    await manager.delete_special_hand(user, session_id, hand_id)
    return {"message": f"Special hand '{hand_id}' deleted"}


# Statistics
@app.get("/api/stats")
async def get_stats(
    year: Optional[int] = None,
    user: AuthenticatedUser = Depends(get_current_user),
    service: StatsService = Depends(get_stats_service),
):
    """Statistics report for a year (defaults to the current year)."""
    return await service.report(year or datetime.now(timezone.utc).year)


@app.get("/api/stats/years")
async def get_stats_years(
    user: AuthenticatedUser = Depends(get_current_user),
    service: StatsService = Depends(get_stats_service),
):
    """Years with statistics, newest first."""
    return {"years": await service.years()}


@app.get("/api/piggy-bank")
async def get_piggy_bank(
    user: AuthenticatedUser = Depends(get_current_user),
    service: StatsService = Depends(get_stats_service),
):
    """Piggy-bank total over all closed, non-archived sessions."""
    return {"total": await service.piggy_bank_total()}


# Entry point
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pokernight.main:app",
        host=config.host,
        port=config.port,
        reload=True,
    )
