"""ORM models for the progression schema.

Users and the source documents (tasks, goals, calendar events) belong to
other subsystems; this service only reads them and stamps ``rewarded_at``.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from streamquest.db.base import Base, JSONDocument, UTCDateTime


# ---------------------------------------------------------------------------
# Users (identity subsystem)
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the 'users' table."""

    __tablename__ = "users"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    display_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    is_premium: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


# ---------------------------------------------------------------------------
# Source documents
# ---------------------------------------------------------------------------


class Task(Base):
    """A checklist task. Rewardable once after completion."""

    __tablename__ = "tasks"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    rewarded_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


class Goal(Base):
    """A long-running goal. Rewardable once after completion."""

    __tablename__ = "goals"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    rewarded_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


class CalendarEvent(Base):
    """A scheduled calendar event. Creating one counts as completing it."""

    __tablename__ = "calendar_events"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    rewarded_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


# ---------------------------------------------------------------------------
# Progression
# ---------------------------------------------------------------------------


class UserProgress(Base):
    """Single progression row per user: xp, level, coins, achievements, titles."""

    __tablename__ = "user_progress"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    coins: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    achievements: Mapped[list[str]] = mapped_column(JSONDocument, nullable=False, default=lambda: [])
    unlocked_titles: Mapped[list[str]] = mapped_column(
        JSONDocument, nullable=False, default=lambda: ["novice"]
    )
    active_title: Mapped[str] = mapped_column(
        String(64), nullable=False, default="novice", server_default="novice"
    )
    weekly_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    monthly_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    is_premium: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    premium_expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


class Streak(Base):
    """Daily check-in continuity."""

    __tablename__ = "streaks"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_checkin: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


class UserInventory(Base):
    """Purchased shop items and the versioned active power-up document."""

    __tablename__ = "user_inventories"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    purchased_item_ids: Mapped[list[str]] = mapped_column(JSONDocument, nullable=False, default=lambda: [])
    active_powerups: Mapped[Any] = mapped_column(
        JSONDocument, nullable=False, default=lambda: {"version": 1, "items": []}
    )
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


class RewardDaily(Base):
    """Per-user, per-day reward counters used for daily limits."""

    __tablename__ = "reward_daily"
    __table_args__ = (
        UniqueConstraint("user_id", "day", name="reward_daily_user_id_day_key"),
        {"extend_existing": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)
    task_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    goal_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    event_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    xp_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    coins_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")


class DailyActivity(Base):
    """Per-user, per-day activity aggregate feeding achievements and challenges."""

    __tablename__ = "daily_activity"
    __table_args__ = (
        UniqueConstraint("user_id", "day", name="daily_activity_user_id_day_key"),
        {"extend_existing": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)
    tasks_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    goals_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    events_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    xp_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    coins_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")


class RewardLedger(Base):
    """Append-only reward ledger. The key makes every grant at-most-once."""

    __tablename__ = "reward_ledger"
    __table_args__ = (
        UniqueConstraint("user_id", "source_type", "source_id", name="reward_ledger_source_key"),
        {"extend_existing": True},
    )

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    source_type: Mapped[str] = mapped_column(String(16), nullable=False)
    source_id: Mapped[str] = mapped_column(String(128), nullable=False)
    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    coins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class UserChallenges(Base):
    """Weekly challenge set, one row per user per week."""

    __tablename__ = "user_challenges"
    __table_args__ = (
        UniqueConstraint("user_id", "week_key", name="user_challenges_user_id_week_key_key"),
        {"extend_existing": True},
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    week_key: Mapped[str] = mapped_column(String(10), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    challenges: Mapped[Any] = mapped_column(JSONDocument, nullable=False)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


# ---------------------------------------------------------------------------
# Shop
# ---------------------------------------------------------------------------


class ShopStock(Base):
    """Remaining stock for limited-edition shop items."""

    __tablename__ = "shop_stock"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    item_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    remaining: Mapped[int] = mapped_column(Integer, nullable=False)


# ---------------------------------------------------------------------------
# Live streaming integration
# ---------------------------------------------------------------------------


class LiveIntegration(Base):
    """Linked streaming account and passive XP settings."""

    __tablename__ = "live_integrations"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    external_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    login: Mapped[str | None] = mapped_column(String(64), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    auto_xp_on_live: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    xp_per_hour_live: Mapped[int] = mapped_column(Integer, nullable=False, default=50, server_default="50")
    is_live: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    total_views: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_stream_check: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
