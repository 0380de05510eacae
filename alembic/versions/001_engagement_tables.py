"""Engagement tables.

Creates the XP ledger, achievement catalog, quests, streaks, milestones,
party timeline, flex cards and weekly recaps. Platform tables the engine
reads (events, event_rsvps, user_connections, user_roles, push_tokens) are
created only if the platform has not created them already.

Revision ID: 001_engagement_tables
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_engagement_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- XP ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_xp (
            user_id VARCHAR(64) PRIMARY KEY,
            total_xp BIGINT NOT NULL DEFAULT 0 CHECK (total_xp >= 0),
            current_level INTEGER NOT NULL DEFAULT 0,
            xp_this_week INTEGER NOT NULL DEFAULT 0,
            xp_this_month INTEGER NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_xp_total
        ON user_xp(total_xp DESC)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_events (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            amount INTEGER NOT NULL CHECK (amount >= 0),
            source VARCHAR(32) NOT NULL,
            source_id VARCHAR(128),
            reason VARCHAR(256),
            idempotency_key VARCHAR(256) UNIQUE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_xp_events_user
        ON xp_events(user_id, created_at DESC)
    """)

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id VARCHAR(64) PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            icon VARCHAR(64) NOT NULL,
            xp_reward INTEGER NOT NULL DEFAULT 0 CHECK (xp_reward >= 0),
            category VARCHAR(32) NOT NULL,
            requirement_type VARCHAR(64) NOT NULL,
            requirement_value INTEGER NOT NULL,
            is_secret BOOLEAN NOT NULL DEFAULT false,
            sort_order INTEGER NOT NULL DEFAULT 0
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            achievement_id VARCHAR(64) NOT NULL REFERENCES achievements(id),
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_user_achievements_user_achievement UNIQUE (user_id, achievement_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_achievements_user
        ON user_achievements(user_id)
    """)

    # --- Quests ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS party_quests (
            id VARCHAR(64) PRIMARY KEY,
            title VARCHAR(128) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            xp_reward INTEGER NOT NULL CHECK (xp_reward >= 0),
            quest_type VARCHAR(16) NOT NULL,
            requirement_type VARCHAR(64) NOT NULL,
            requirement_value INTEGER NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            expires_at TIMESTAMPTZ NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_quest_progress (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            quest_id VARCHAR(64) NOT NULL REFERENCES party_quests(id),
            progress INTEGER NOT NULL DEFAULT 0 CHECK (progress >= 0),
            completed_at TIMESTAMPTZ,
            claimed_at TIMESTAMPTZ,
            CONSTRAINT uq_user_quest_progress_user_quest UNIQUE (user_id, quest_id)
        )
    """)

    # --- Streaks & milestones ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_streaks (
            user_id VARCHAR(64) PRIMARY KEY,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_activity_date DATE,
            total_events_attended INTEGER NOT NULL DEFAULT 0,
            events_this_month INTEGER NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CHECK (longest_streak >= current_streak)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_milestones (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            milestone_type VARCHAR(32) NOT NULL,
            milestone_value INTEGER NOT NULL,
            achieved_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            notified BOOLEAN NOT NULL DEFAULT false,
            CONSTRAINT uq_user_milestones_type_value UNIQUE (user_id, milestone_type, milestone_value)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_milestones_unnotified
        ON user_milestones(user_id)
        WHERE notified = false
    """)

    # --- Timeline & flex cards ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS party_timeline (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            event_id VARCHAR(64),
            event_name VARCHAR(200) NOT NULL,
            event_city VARCHAR(100) NOT NULL,
            attended_date DATE NOT NULL,
            duration_hours DOUBLE PRECISION,
            rep_earned INTEGER NOT NULL DEFAULT 0,
            highlight_moment VARCHAR(500),
            is_public BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_party_timeline_user_date
        ON party_timeline(user_id, attended_date DESC)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS flex_cards (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            card_type VARCHAR(32) NOT NULL,
            title VARCHAR(200) NOT NULL,
            subtitle VARCHAR(200),
            stats JSONB NOT NULL DEFAULT '{}',
            share_code VARCHAR(32) UNIQUE NOT NULL,
            is_public BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_flex_cards_user
        ON flex_cards(user_id)
    """)

    # --- Weekly recaps ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS weekly_recaps (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            week_start DATE NOT NULL,
            week_end DATE NOT NULL,
            events_attended INTEGER NOT NULL DEFAULT 0,
            total_rsvps INTEGER NOT NULL DEFAULT 0,
            top_venue_id VARCHAR(64),
            top_event_type VARCHAR(32),
            friends_met INTEGER NOT NULL DEFAULT 0,
            streak_at_week_end INTEGER NOT NULL DEFAULT 0,
            highlights JSONB NOT NULL DEFAULT '[]',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_weekly_recaps_user_week UNIQUE (user_id, week_start)
        )
    """)

    # --- Platform tables (read by the engine) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS events (
            id VARCHAR(64) PRIMARY KEY,
            host_id VARCHAR(64) NOT NULL,
            name VARCHAR(200) NOT NULL,
            type VARCHAR(32) NOT NULL,
            city VARCHAR(100) NOT NULL,
            location_name VARCHAR(200) NOT NULL DEFAULT '',
            venue_id VARCHAR(64),
            start_time TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS event_rsvps (
            id BIGSERIAL PRIMARY KEY,
            event_id VARCHAR(64) NOT NULL REFERENCES events(id) ON DELETE CASCADE,
            user_id VARCHAR(64) NOT NULL,
            status VARCHAR(16),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_event_rsvps_created
        ON event_rsvps(created_at)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_event_rsvps_user
        ON event_rsvps(user_id)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_connections (
            id BIGSERIAL PRIMARY KEY,
            follower_id VARCHAR(64) NOT NULL,
            following_id VARCHAR(64) NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_roles (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            role VARCHAR(32) NOT NULL,
            CONSTRAINT uq_user_roles_user_role UNIQUE (user_id, role)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS push_tokens (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            token VARCHAR(512) UNIQUE NOT NULL,
            platform VARCHAR(16) NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            updated_at TIMESTAMPTZ
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS weekly_recaps CASCADE")
    op.execute("DROP TABLE IF EXISTS flex_cards CASCADE")
    op.execute("DROP TABLE IF EXISTS party_timeline CASCADE")
    op.execute("DROP TABLE IF EXISTS user_milestones CASCADE")
    op.execute("DROP TABLE IF EXISTS user_streaks CASCADE")
    op.execute("DROP TABLE IF EXISTS user_quest_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS party_quests CASCADE")
    op.execute("DROP TABLE IF EXISTS user_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS xp_events CASCADE")
    op.execute("DROP TABLE IF EXISTS user_xp CASCADE")
