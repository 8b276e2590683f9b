"""Initial schema: players, game days, predictions, winners, page views.

Also enables row-level security for the ``satoshi_client`` role. The API
and the settlement worker connect as the table owner and are not subject
to these policies; direct client access sets ``app.player_id`` per
transaction.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Profiles ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            id VARCHAR(36) PRIMARY KEY,
            email VARCHAR(320) UNIQUE NOT NULL,
            marketing_consent BOOLEAN NOT NULL DEFAULT false,
            consent_timestamp TIMESTAMPTZ,
            current_streak INTEGER NOT NULL DEFAULT 0,
            last_played_date DATE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT profiles_streak_non_negative CHECK (current_streak >= 0)
        )
    """)

    # --- Login tokens ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS login_tokens (
            id BIGSERIAL PRIMARY KEY,
            profile_id VARCHAR(36) NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            token_hash VARCHAR(128) UNIQUE NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            expires_at TIMESTAMPTZ NOT NULL,
            used_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_login_tokens_profile
        ON login_tokens(profile_id)
    """)

    # --- Daily results ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS daily_results (
            game_date DATE PRIMARY KEY,
            target_hour SMALLINT NOT NULL,
            target_minute SMALLINT NOT NULL,
            actual_price NUMERIC(14, 2),
            recorded_at TIMESTAMPTZ,
            price_sources SMALLINT,
            settled_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT daily_results_hour_range CHECK (target_hour BETWEEN 0 AND 23),
            CONSTRAINT daily_results_minute_range CHECK (target_minute BETWEEN 0 AND 59),
            CONSTRAINT daily_results_price_recorded_together
                CHECK ((actual_price IS NULL) = (recorded_at IS NULL)),
            CONSTRAINT daily_results_settled_after_price
                CHECK (settled_at IS NULL OR actual_price IS NOT NULL)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_daily_results_unresolved
        ON daily_results(game_date) WHERE settled_at IS NULL
    """)

    # --- Predictions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS predictions (
            id BIGSERIAL PRIMARY KEY,
            player_id VARCHAR(36) NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            game_date DATE NOT NULL REFERENCES daily_results(game_date),
            predicted_price BIGINT NOT NULL,
            guess_number SMALLINT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT predictions_player_date_guess_key UNIQUE (player_id, game_date, guess_number),
            CONSTRAINT predictions_guess_number_range CHECK (guess_number BETWEEN 1 AND 3),
            CONSTRAINT predictions_price_positive CHECK (predicted_price > 0)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_predictions_game_date ON predictions(game_date)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_predictions_created_at ON predictions(created_at DESC)")

    # --- Bonus unlocks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS bonus_unlocks (
            id BIGSERIAL PRIMARY KEY,
            player_id VARCHAR(36) NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            game_date DATE NOT NULL,
            platform VARCHAR(32) NOT NULL DEFAULT 'x',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT bonus_unlocks_player_date_key UNIQUE (player_id, game_date)
        )
    """)

    # --- Winners ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS winners (
            id BIGSERIAL PRIMARY KEY,
            game_date DATE NOT NULL REFERENCES daily_results(game_date),
            player_id VARCHAR(36) NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            prediction_id BIGINT NOT NULL REFERENCES predictions(id),
            predicted_price BIGINT NOT NULL,
            actual_price NUMERIC(14, 2) NOT NULL,
            difference BIGINT NOT NULL,
            accuracy DOUBLE PRECISION NOT NULL,
            prize_tier VARCHAR(16) NOT NULL,
            prize_share NUMERIC(10, 2) NOT NULL,
            tx_id VARCHAR(128),
            tx_url TEXT,
            paid_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT winners_date_player_key UNIQUE (game_date, player_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_winners_game_date ON winners(game_date)")

    # --- Page views ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS page_views (
            id BIGSERIAL PRIMARY KEY,
            page VARCHAR(128) NOT NULL,
            player_id VARCHAR(36),
            referrer TEXT,
            user_agent VARCHAR(512),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_page_views_created_at ON page_views(created_at)")

    # --- Row-level security for client roles ---
    op.execute("""
        DO $$
        BEGIN
            IF NOT EXISTS (SELECT 1 FROM pg_roles WHERE rolname = 'satoshi_client') THEN
                CREATE ROLE satoshi_client NOLOGIN;
            END IF;
        END
        $$
    """)
    for table in ("profiles", "daily_results", "predictions", "bonus_unlocks", "winners"):
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        op.execute(f"GRANT SELECT ON {table} TO satoshi_client")

    op.execute("""
        CREATE POLICY profiles_own ON profiles FOR SELECT TO satoshi_client
        USING (id = current_setting('app.player_id', true))
    """)
    op.execute("""
        CREATE POLICY daily_results_public ON daily_results FOR SELECT TO satoshi_client
        USING (true)
    """)
    op.execute("""
        CREATE POLICY predictions_own ON predictions FOR SELECT TO satoshi_client
        USING (player_id = current_setting('app.player_id', true))
    """)
    op.execute("""
        CREATE POLICY bonus_unlocks_own ON bonus_unlocks FOR SELECT TO satoshi_client
        USING (player_id = current_setting('app.player_id', true))
    """)
    op.execute("""
        CREATE POLICY winners_resolved ON winners FOR SELECT TO satoshi_client
        USING (EXISTS (
            SELECT 1 FROM daily_results d
            WHERE d.game_date = winners.game_date AND d.actual_price IS NOT NULL
        ))
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS page_views")
    op.execute("DROP TABLE IF EXISTS winners")
    op.execute("DROP TABLE IF EXISTS bonus_unlocks")
    op.execute("DROP TABLE IF EXISTS predictions")
    op.execute("DROP TABLE IF EXISTS daily_results")
    op.execute("DROP TABLE IF EXISTS login_tokens")
    op.execute("DROP TABLE IF EXISTS profiles")
