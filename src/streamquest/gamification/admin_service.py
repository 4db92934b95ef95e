"""Admin overrides for a user's progression.

Authorization is checked by the router; these functions assume an admin
caller. Level is always kept consistent with XP.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Literal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from streamquest.db.models import User, UserProgress
from streamquest.gamification import outcomes
from streamquest.gamification.achievements import DEFAULT_TITLE
from streamquest.gamification.leveling import MAX_LEVEL, clamp_progress, level_from_xp, total_xp_for_level
from streamquest.gamification.outcomes import ActionResult
from streamquest.gamification.xp_service import get_or_create_progress, sync_unlocked_titles, user_exists

logger = logging.getLogger(__name__)

MAX_PREMIUM_DAYS = 3650


def _snapshot(progress: UserProgress) -> dict:
    return {
        "user_id": progress.user_id,
        "xp": progress.xp,
        "level": progress.level,
        "coins": progress.coins,
        "is_premium": progress.is_premium,
        "premium_expires_at": progress.premium_expires_at.isoformat() if progress.premium_expires_at else None,
    }


async def _load(db: AsyncSession, user_id: str) -> UserProgress | None:
    if not await user_exists(db, user_id):
        await db.rollback()
        return None
    return await get_or_create_progress(db, user_id)


async def set_user_xp(db: AsyncSession, target_user_id: str, xp: int) -> ActionResult:
    progress = await _load(db, target_user_id)
    if progress is None:
        return ActionResult.fail(outcomes.USER_NOT_FOUND)
    progress.xp = clamp_progress(xp)
    progress.level = level_from_xp(progress.xp)
    progress.updated_at = datetime.now(timezone.utc)
    await sync_unlocked_titles(db, progress)
    await db.commit()
    logger.info("Admin set xp=%d for %s", progress.xp, target_user_id)
    return ActionResult.ok(**_snapshot(progress))


async def set_user_coins(db: AsyncSession, target_user_id: str, coins: int) -> ActionResult:
    progress = await _load(db, target_user_id)
    if progress is None:
        return ActionResult.fail(outcomes.USER_NOT_FOUND)
    progress.coins = clamp_progress(coins)
    progress.updated_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("Admin set coins=%d for %s", progress.coins, target_user_id)
    return ActionResult.ok(**_snapshot(progress))


async def set_user_level(db: AsyncSession, target_user_id: str, level: int) -> ActionResult:
    """Jump to the start of ``level``; XP is set to that level's threshold.

    Levels past ``MAX_LEVEL`` need more XP than can be stored and are rejected.
    """
    if not 1 <= level <= MAX_LEVEL:
        return ActionResult.fail(outcomes.INVALID_LEVEL)
    progress = await _load(db, target_user_id)
    if progress is None:
        return ActionResult.fail(outcomes.USER_NOT_FOUND)
    progress.xp = total_xp_for_level(level)
    progress.level = level_from_xp(progress.xp)
    progress.updated_at = datetime.now(timezone.utc)
    await sync_unlocked_titles(db, progress)
    await db.commit()
    logger.info("Admin set level=%d for %s", progress.level, target_user_id)
    return ActionResult.ok(**_snapshot(progress))


async def reset_user_progress(db: AsyncSession, target_user_id: str) -> ActionResult:
    """Reset XP, level, coins, achievements and titles to a fresh account."""
    progress = await _load(db, target_user_id)
    if progress is None:
        return ActionResult.fail(outcomes.USER_NOT_FOUND)
    progress.xp = 0
    progress.level = 1
    progress.coins = 0
    progress.achievements = []
    progress.unlocked_titles = [DEFAULT_TITLE]
    progress.active_title = DEFAULT_TITLE
    progress.weekly_xp = 0
    progress.monthly_xp = 0
    progress.updated_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("Admin reset progress for %s", target_user_id)
    return ActionResult.ok(**_snapshot(progress))


async def set_premium_status(
    db: AsyncSession,
    target_user_id: str,
    is_premium: bool,
    duration: int | Literal["lifetime"] | None = None,
    *,
    now: datetime | None = None,
) -> ActionResult:
    """Grant or revoke premium. ``duration`` is days (1..3650) or ``"lifetime"``."""
    now = now or datetime.now(timezone.utc)
    if is_premium and duration != "lifetime":
        if not isinstance(duration, int) or isinstance(duration, bool) or not 1 <= duration <= MAX_PREMIUM_DAYS:
            return ActionResult.fail(outcomes.INVALID_DURATION)

    # Lock order: progress, then the user row. FOR NO KEY UPDATE leaves
    # foreign-key checks from concurrent ledger inserts unblocked.
    progress = await _load(db, target_user_id)
    if progress is None:
        return ActionResult.fail(outcomes.USER_NOT_FOUND)
    result = await db.execute(select(User).where(User.id == target_user_id).with_for_update(key_share=True))
    user = result.scalar_one()

    expires_at = None
    if is_premium and duration != "lifetime":
        expires_at = now + timedelta(days=duration)  # type: ignore[arg-type]

    user.is_premium = is_premium
    progress.is_premium = is_premium
    progress.premium_expires_at = expires_at
    progress.updated_at = now
    await db.commit()

    logger.info("Admin set premium=%s (expires %s) for %s", is_premium, expires_at, target_user_id)
    return ActionResult.ok(**_snapshot(progress))
