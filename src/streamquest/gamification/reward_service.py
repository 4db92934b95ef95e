"""Reward application engine.

``apply_reward`` grants XP and coins for a completed task, goal or calendar
event at most once. Rejections are structured outcomes and leave no trace:
the transaction is rolled back before returning them.

Row locks are always taken in this order: source, progress, inventory,
daily counter, daily activity, streak.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from streamquest.db.models import CalendarEvent, Goal, RewardLedger, Task
from streamquest.gamification import outcomes
from streamquest.gamification.achievements import evaluate
from streamquest.gamification.activity_service import (
    compute_achievement_stats,
    daily_count,
    get_daily_activity,
    get_reward_daily,
    record_reward,
)
from streamquest.gamification.inventory import DOUBLE_COINS, XP_BOOST, PowerupCollection, apply_multiplier
from streamquest.gamification.outcomes import RewardOutcome
from streamquest.gamification.streak_service import check_in, utc_day
from streamquest.gamification.xp_service import (
    apply_xp_gain,
    get_or_create_inventory,
    get_or_create_progress,
    merge_achievements,
    publish_progress_events,
    sync_unlocked_titles,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RewardRule:
    xp: int
    coins: int
    max_per_day: int
    min_age: timedelta


REWARD_RULES: dict[str, RewardRule] = {
    "task": RewardRule(xp=10, coins=2, max_per_day=20, min_age=timedelta(minutes=5)),
    "goal": RewardRule(xp=100, coins=20, max_per_day=5, min_age=timedelta(minutes=5)),
    "event": RewardRule(xp=5, coins=1, max_per_day=15, min_age=timedelta(0)),
}

SOURCE_MODELS = {
    "task": Task,
    "goal": Goal,
    "event": CalendarEvent,
}


def ledger_key(user_id: str, source_type: str, source_id: str) -> str:
    return f"{user_id}:{source_type}:{source_id}"


def _is_completed(source: Task | Goal | CalendarEvent) -> bool:
    # Calendar events have no completion flag; creating one is the action.
    return bool(getattr(source, "completed", True))


async def apply_reward(
    db: AsyncSession,
    user_id: str,
    source_type: str,
    source_id: str,
    *,
    now: datetime | None = None,
    redis: object = None,
) -> RewardOutcome:
    """Grant the reward for one completed source document, exactly once."""
    if source_type not in REWARD_RULES:
        msg = f"Unknown source type: {source_type}"
        raise ValueError(msg)
    if now is None:
        now = datetime.now(timezone.utc)

    try:
        outcome, old_level = await _apply_reward_tx(db, user_id, source_type, source_id, now)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Reward transaction failed for %s %s/%s", user_id, source_type, source_id)
        raise

    if outcome.awarded:
        await publish_progress_events(
            redis,
            user_id,
            old_level=old_level,
            new_level=outcome.level or old_level,
            unlocked=outcome.achievements,
        )
    return outcome


async def _reject(db: AsyncSession, user_id: str, source_type: str, source_id: str, reason: str) -> RewardOutcome:
    await db.rollback()
    logger.debug("Reward rejected for %s %s/%s: %s", user_id, source_type, source_id, reason)
    return RewardOutcome.rejected(reason)


async def _apply_reward_tx(
    db: AsyncSession,
    user_id: str,
    source_type: str,
    source_id: str,
    now: datetime,
) -> tuple[RewardOutcome, int]:
    rule = REWARD_RULES[source_type]
    model = SOURCE_MODELS[source_type]
    today = utc_day(now)

    # 1. Source row
    result = await db.execute(
        select(model).where(model.id == source_id, model.user_id == user_id).with_for_update()
    )
    source = result.scalar_one_or_none()
    if source is None:
        return await _reject(db, user_id, source_type, source_id, outcomes.SOURCE_NOT_FOUND), 0
    if source.rewarded_at is not None:
        return await _reject(db, user_id, source_type, source_id, outcomes.ALREADY_REWARDED), 0
    if not _is_completed(source):
        return await _reject(db, user_id, source_type, source_id, outcomes.NOT_COMPLETED), 0
    if now - source.created_at < rule.min_age:
        return await _reject(db, user_id, source_type, source_id, outcomes.COOLDOWN_NOT_REACHED), 0

    # 2-4. Progress, inventory, daily counter
    progress = await get_or_create_progress(db, user_id)
    inventory = await get_or_create_inventory(db, user_id)
    counter = await get_reward_daily(db, user_id, today)
    if daily_count(counter, source_type) >= rule.max_per_day:
        return await _reject(db, user_id, source_type, source_id, outcomes.DAILY_LIMIT_REACHED), 0

    powerups = PowerupCollection.from_storage(inventory.active_powerups, now)
    awarded_xp = apply_multiplier(rule.xp, powerups.multiplier(XP_BOOST))
    awarded_coins = apply_multiplier(rule.coins, powerups.multiplier(DOUBLE_COINS))

    try:
        async with db.begin_nested():
            db.add(
                RewardLedger(
                    id=ledger_key(user_id, source_type, source_id),
                    user_id=user_id,
                    source_type=source_type,
                    source_id=source_id,
                    xp=awarded_xp,
                    coins=awarded_coins,
                    created_at=now,
                )
            )
    except IntegrityError:
        return await _reject(db, user_id, source_type, source_id, outcomes.ALREADY_REWARDED), 0

    source.rewarded_at = now
    if isinstance(source, (Task, Goal)) and source.completed_at is None:
        source.completed_at = now

    # 5-6. Daily activity, streak
    activity = await get_daily_activity(db, user_id, today)
    record_reward(counter, activity, source_type, awarded_xp, awarded_coins)
    streak = await check_in(db, user_id, now=now, inventory=inventory)

    stats = await compute_achievement_stats(
        db,
        user_id,
        today,
        current_streak=streak.current_streak,
        longest_streak=streak.longest_streak,
    )
    evaluation = evaluate(progress.achievements or [], stats)

    old_level = progress.level
    total_xp = awarded_xp + evaluation.bonus_xp
    leveled_up = apply_xp_gain(progress, total_xp, awarded_coins, now)
    merge_achievements(progress, evaluation.achievements)
    await sync_unlocked_titles(db, progress, longest_streak=streak.longest_streak)

    await db.commit()

    logger.info(
        "Rewarded %s for %s %s: %d xp (+%d bonus), %d coins",
        user_id, source_type, source_id, awarded_xp, evaluation.bonus_xp, awarded_coins,
    )
    return (
        RewardOutcome(
            awarded=True,
            xp=total_xp,
            coins=awarded_coins,
            achievements=evaluation.unlocked,
            streak=streak,
            level=progress.level,
            leveled_up=leveled_up,
        ),
        old_level,
    )
