"""Progress row service: lazy creation, XP application and level-up events."""

from __future__ import annotations

import json
import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from streamquest.db.models import Streak, User, UserInventory, UserProgress
from streamquest.db.upsert import get_or_create
from streamquest.exceptions import UserNotFoundError
from streamquest.gamification.achievements import resolve_titles
from streamquest.gamification.activity_service import activity_totals
from streamquest.gamification.leveling import clamp_progress, level_from_xp, level_info
from streamquest.gamification.outcomes import TITLE_LOCKED, ActionResult

logger = logging.getLogger(__name__)


async def user_exists(db: AsyncSession, user_id: str) -> bool:
    result = await db.execute(select(User.id).where(User.id == user_id))
    return result.scalar_one_or_none() is not None


async def get_or_create_progress(db: AsyncSession, user_id: str, *, lock: bool = True) -> UserProgress:
    """Get or create the progression row for a user.

    Raises UserNotFoundError when the user does not exist.
    """
    result = await db.execute(select(UserProgress).where(UserProgress.user_id == user_id))
    progress = result.scalar_one_or_none()
    if progress is not None and not lock:
        return progress
    if progress is None and not await user_exists(db, user_id):
        raise UserNotFoundError(f"User {user_id} not found")
    return await get_or_create(db, UserProgress, lock=lock, user_id=user_id)


async def get_or_create_inventory(db: AsyncSession, user_id: str, *, lock: bool = True) -> UserInventory:
    return await get_or_create(db, UserInventory, lock=lock, user_id=user_id)


async def get_or_create_streak(db: AsyncSession, user_id: str, *, lock: bool = True) -> Streak:
    return await get_or_create(db, Streak, lock=lock, user_id=user_id)


def apply_xp_gain(progress: UserProgress, xp_gain: int, coins_gain: int, now: datetime) -> bool:
    """Add XP and coins, keep level derived from XP. Returns True on level-up."""
    old_level = progress.level
    progress.xp = clamp_progress(progress.xp + xp_gain)
    progress.level = level_from_xp(progress.xp)
    progress.coins = clamp_progress(progress.coins + coins_gain)
    progress.weekly_xp = clamp_progress(progress.weekly_xp + xp_gain)
    progress.monthly_xp = clamp_progress(progress.monthly_xp + xp_gain)
    progress.updated_at = now
    return progress.level > old_level


def merge_achievements(progress: UserProgress, achievements: list[str]) -> None:
    """Union achievements into the progress row. The set never shrinks."""
    merged = list(dict.fromkeys([*(progress.achievements or []), *achievements]))
    if merged != list(progress.achievements or []):
        progress.achievements = merged


async def sync_unlocked_titles(
    db: AsyncSession,
    progress: UserProgress,
    *,
    longest_streak: int | None = None,
) -> list[str]:
    """Recompute unlocked titles from level, streak, lifetime totals and achievements."""
    if longest_streak is None:
        result = await db.execute(select(Streak.longest_streak).where(Streak.user_id == progress.user_id))
        longest_streak = result.scalar_one_or_none() or 0

    totals = await activity_totals(db, progress.user_id)
    metrics = {
        "level": progress.level,
        "longest_streak": longest_streak,
        "total_tasks": totals["tasks"],
        "total_goals": totals["goals"],
        "achievement_count": len(progress.achievements or []),
    }
    titles = resolve_titles(progress.unlocked_titles or [], metrics)
    if titles != list(progress.unlocked_titles or []):
        progress.unlocked_titles = titles
    return titles


async def set_active_title(db: AsyncSession, user_id: str, title_id: str) -> ActionResult:
    """Select one of the user's unlocked titles for display."""
    progress = await get_or_create_progress(db, user_id)
    if title_id not in (progress.unlocked_titles or []):
        await db.rollback()
        return ActionResult.fail(TITLE_LOCKED)
    progress.active_title = title_id
    await db.commit()
    return ActionResult.ok(active_title=title_id)


async def publish_progress_events(
    redis: object,
    user_id: str,
    *,
    old_level: int,
    new_level: int,
    unlocked: list[str],
) -> None:
    """Broadcast level-up and achievement events after commit. Best effort."""
    if redis is None:
        return
    try:
        if new_level > old_level:
            await redis.publish(  # type: ignore[attr-defined]
                "pubsub:level_up",
                json.dumps({"user_id": user_id, "old_level": old_level, "new_level": new_level}),
            )
        for achievement_id in unlocked:
            await redis.publish(  # type: ignore[attr-defined]
                "pubsub:achievement_unlocked",
                json.dumps({"user_id": user_id, "achievement_id": achievement_id}),
            )
    except Exception:
        logger.warning("Failed to publish progress events for user %s", user_id, exc_info=True)


async def get_progress_summary(db: AsyncSession, user_id: str) -> dict:
    """Read-only view of the user's progression, creating the rows if needed."""
    progress = await get_or_create_progress(db, user_id, lock=False)
    streak = await get_or_create_streak(db, user_id, lock=False)
    await db.commit()
    return {
        "user_id": progress.user_id,
        "xp": progress.xp,
        "level": progress.level,
        "coins": progress.coins,
        "weekly_xp": progress.weekly_xp,
        "monthly_xp": progress.monthly_xp,
        "achievements": list(progress.achievements or []),
        "unlocked_titles": list(progress.unlocked_titles or []),
        "active_title": progress.active_title,
        "is_premium": progress.is_premium,
        "premium_expires_at": progress.premium_expires_at.isoformat() if progress.premium_expires_at else None,
        "current_streak": streak.current_streak,
        "longest_streak": streak.longest_streak,
        "level_info": level_info(progress.xp),
    }
