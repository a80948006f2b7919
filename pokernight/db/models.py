"""Database schema and initialization."""
from pokernight.db.connection import db
from pokernight.utils.logger import get_logger

logger = get_logger(__name__)

# SQL schema for all tables (for fresh installs)
SCHEMA = """
-- Users, issued identities by the external identity provider
CREATE TABLE IF NOT EXISTS users (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name VARCHAR(100) NOT NULL,
    email VARCHAR(255) UNIQUE,
    role VARCHAR(20) NOT NULL DEFAULT 'player',
    player_type VARCHAR(20) NOT NULL DEFAULT 'GUEST',
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    is_archived BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_users_email ON users(email);

-- Game sessions (a poker night)
CREATE TABLE IF NOT EXISTS game_sessions (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    date TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    status VARCHAR(20) NOT NULL DEFAULT 'ACTIVE',
    host_id UUID NOT NULL REFERENCES users(id),
    host_location_id UUID REFERENCES users(id) ON DELETE SET NULL,
    is_archived BOOLEAN NOT NULL DEFAULT FALSE,
    notes TEXT,
    total_pot INTEGER NOT NULL DEFAULT 0,
    closed_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_sessions_date ON game_sessions(date);

-- At most one session may be ACTIVE at a time
CREATE UNIQUE INDEX IF NOT EXISTS idx_sessions_one_active
    ON game_sessions(status) WHERE status = 'ACTIVE';

-- Player ledger entries (one per player per session)
CREATE TABLE IF NOT EXISTS session_players (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    session_id UUID NOT NULL REFERENCES game_sessions(id) ON DELETE CASCADE,
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    player_type VARCHAR(20) NOT NULL DEFAULT 'GUEST',
    buy_in_count INTEGER NOT NULL DEFAULT 0 CHECK (buy_in_count >= 0),
    chips_sold INTEGER NOT NULL DEFAULT 0 CHECK (chips_sold >= 0),
    cash_out INTEGER CHECK (cash_out >= 0),
    joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    left_at TIMESTAMPTZ,
    UNIQUE (session_id, user_id)
);

CREATE INDEX IF NOT EXISTS idx_session_players_session ON session_players(session_id);

-- Piggy-bank skim, one account per session
CREATE TABLE IF NOT EXISTS piggy_bank_accounts (
    session_id UUID PRIMARY KEY REFERENCES game_sessions(id) ON DELETE CASCADE,
    amount INTEGER NOT NULL CHECK (amount > 0)
);

-- Ledger transactions (BUY_IN, REMOVE_BUY_IN, SELL_BUY_IN, CASH_OUT)
CREATE TABLE IF NOT EXISTS ledger_transactions (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    session_id UUID NOT NULL REFERENCES game_sessions(id) ON DELETE CASCADE,
    type VARCHAR(20) NOT NULL,
    player_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    target_player_id UUID REFERENCES users(id) ON DELETE CASCADE,
    amount INTEGER NOT NULL,
    seq INTEGER NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_ledger_session ON ledger_transactions(session_id, created_at, seq);

-- Completed chip sales, removed with the transaction that produced them
CREATE TABLE IF NOT EXISTS buy_in_transfers (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    session_id UUID NOT NULL REFERENCES game_sessions(id) ON DELETE CASCADE,
    transaction_id UUID NOT NULL REFERENCES ledger_transactions(id) ON DELETE CASCADE,
    seller_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    buyer_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    amount INTEGER NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_transfers_session ON buy_in_transfers(session_id);

-- Special hands (asterisks)
CREATE TABLE IF NOT EXISTS special_hands (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    session_id UUID NOT NULL REFERENCES game_sessions(id) ON DELETE CASCADE,
    player_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    hand_type VARCHAR(30) NOT NULL,
    cards VARCHAR(100) NOT NULL,
    description TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_special_hands_session ON special_hands(session_id);

-- Update trigger for users.updated_at
CREATE OR REPLACE FUNCTION update_updated_at()
RETURNS TRIGGER AS $$
BEGIN
    NEW.updated_at = NOW();
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS users_updated_at ON users;
CREATE TRIGGER users_updated_at
    BEFORE UPDATE ON users
    FOR EACH ROW
    EXECUTE FUNCTION update_updated_at();
"""

# Ordered ALTERs for databases created by an older SCHEMA
MIGRATIONS: list[str] = []


async def init_db() -> None:
    """Initialize database schema and run migrations."""
    logger.info("Initializing database schema...")
    await db.execute(SCHEMA)

    logger.info("Running migrations...")
    for i, migration in enumerate(MIGRATIONS, 1):
        try:
            await db.execute(migration)
            logger.info(f"Migration {i} completed")
        except Exception as e:
            logger.warning(f"Migration {i} skipped or failed: {e}")

    logger.info("Database schema initialized")
