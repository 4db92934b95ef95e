"""Progression tables.

users, tasks, goals and calendar_events are owned by other services and
already exist; this migration only adds the reward stamp columns to them.
Creates user_progress, streaks, user_inventories, reward_daily,
daily_activity, reward_ledger, user_challenges, shop_stock and
live_integrations.

Revision ID: 001_progression_tables
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_progression_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Source document stamps ---
    for table in ("tasks", "goals"):
        op.execute(f"ALTER TABLE {table} ADD COLUMN IF NOT EXISTS completed_at TIMESTAMPTZ")
        op.execute(f"ALTER TABLE {table} ADD COLUMN IF NOT EXISTS rewarded_at TIMESTAMPTZ")
    op.execute("ALTER TABLE calendar_events ADD COLUMN IF NOT EXISTS rewarded_at TIMESTAMPTZ")
    op.execute("ALTER TABLE users ADD COLUMN IF NOT EXISTS is_premium BOOLEAN NOT NULL DEFAULT false")
    op.execute("ALTER TABLE users ADD COLUMN IF NOT EXISTS is_admin BOOLEAN NOT NULL DEFAULT false")

    # --- User Progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_progress (
            user_id VARCHAR(36) PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            xp INTEGER NOT NULL DEFAULT 0,
            level INTEGER NOT NULL DEFAULT 1,
            coins INTEGER NOT NULL DEFAULT 0,
            achievements JSONB NOT NULL DEFAULT '[]',
            unlocked_titles JSONB NOT NULL DEFAULT '["novice"]',
            active_title VARCHAR(64) NOT NULL DEFAULT 'novice',
            weekly_xp INTEGER NOT NULL DEFAULT 0,
            monthly_xp INTEGER NOT NULL DEFAULT 0,
            is_premium BOOLEAN NOT NULL DEFAULT false,
            premium_expires_at TIMESTAMPTZ,
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_user_progress_weekly ON user_progress(weekly_xp) WHERE weekly_xp <> 0")
    op.execute(
        "CREATE INDEX IF NOT EXISTS idx_user_progress_monthly ON user_progress(monthly_xp) WHERE monthly_xp <> 0"
    )

    # --- Streaks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS streaks (
            user_id VARCHAR(36) PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_checkin TIMESTAMPTZ,
            updated_at TIMESTAMPTZ,
            CHECK (longest_streak >= current_streak)
        )
    """)

    # --- Inventories ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_inventories (
            user_id VARCHAR(36) PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            purchased_item_ids JSONB NOT NULL DEFAULT '[]',
            active_powerups JSONB NOT NULL DEFAULT '{"version": 1, "items": []}',
            updated_at TIMESTAMPTZ
        )
    """)

    # --- Daily counters ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS reward_daily (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            day DATE NOT NULL,
            task_count INTEGER NOT NULL DEFAULT 0,
            goal_count INTEGER NOT NULL DEFAULT 0,
            event_count INTEGER NOT NULL DEFAULT 0,
            xp_total INTEGER NOT NULL DEFAULT 0,
            coins_total INTEGER NOT NULL DEFAULT 0,
            CONSTRAINT reward_daily_user_id_day_key UNIQUE (user_id, day)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS daily_activity (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            day DATE NOT NULL,
            tasks_completed INTEGER NOT NULL DEFAULT 0,
            goals_completed INTEGER NOT NULL DEFAULT 0,
            events_created INTEGER NOT NULL DEFAULT 0,
            xp_earned INTEGER NOT NULL DEFAULT 0,
            coins_earned INTEGER NOT NULL DEFAULT 0,
            CONSTRAINT daily_activity_user_id_day_key UNIQUE (user_id, day)
        )
    """)

    # --- Reward Ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS reward_ledger (
            id VARCHAR(255) PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            source_type VARCHAR(16) NOT NULL,
            source_id VARCHAR(128) NOT NULL,
            xp INTEGER NOT NULL DEFAULT 0,
            coins INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT reward_ledger_source_key UNIQUE (user_id, source_type, source_id)
        )
    """)

    # --- Weekly Challenges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_challenges (
            id VARCHAR(64) PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            week_key VARCHAR(10) NOT NULL,
            start_date DATE NOT NULL,
            end_date DATE NOT NULL,
            challenges JSONB NOT NULL,
            created_at TIMESTAMPTZ,
            updated_at TIMESTAMPTZ,
            CONSTRAINT user_challenges_user_id_week_key_key UNIQUE (user_id, week_key)
        )
    """)

    # --- Shop Stock ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS shop_stock (
            item_id VARCHAR(64) PRIMARY KEY,
            remaining INTEGER NOT NULL
        )
    """)
    op.execute("""
        INSERT INTO shop_stock (item_id, remaining)
        VALUES ('whale_badge', 100), ('og_badge', 50)
        ON CONFLICT (item_id) DO NOTHING
    """)

    # --- Live Integrations ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS live_integrations (
            user_id VARCHAR(36) PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            external_user_id VARCHAR(64),
            login VARCHAR(64),
            display_name VARCHAR(128),
            auto_xp_on_live BOOLEAN NOT NULL DEFAULT true,
            xp_per_hour_live INTEGER NOT NULL DEFAULT 50,
            is_live BOOLEAN NOT NULL DEFAULT false,
            total_views INTEGER NOT NULL DEFAULT 0,
            last_stream_check TIMESTAMPTZ,
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_live_integrations_sweep
        ON live_integrations(user_id)
        WHERE auto_xp_on_live AND external_user_id IS NOT NULL AND external_user_id <> ''
    """)


def downgrade() -> None:
    for table in (
        "live_integrations",
        "shop_stock",
        "user_challenges",
        "reward_ledger",
        "daily_activity",
        "reward_daily",
        "user_inventories",
        "streaks",
        "user_progress",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table}")
