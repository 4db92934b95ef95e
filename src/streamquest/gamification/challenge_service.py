"""Weekly challenge persistence, live progress and claiming."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from streamquest.db.models import RewardLedger, Streak, UserChallenges
from streamquest.gamification import outcomes
from streamquest.gamification.achievements import evaluate
from streamquest.gamification.activity_service import (
    activity_totals,
    compute_achievement_stats,
    get_daily_activity,
    get_reward_daily,
    record_reward,
)
from streamquest.gamification.challenges import Challenge, ChallengeSet, WeekRange, generate_challenges, week_range
from streamquest.gamification.outcomes import ActionResult
from streamquest.gamification.streak_service import utc_day
from streamquest.gamification.xp_service import (
    apply_xp_gain,
    get_or_create_progress,
    merge_achievements,
    publish_progress_events,
    sync_unlocked_titles,
)

logger = logging.getLogger(__name__)


def challenge_row_id(user_id: str, week_key: str) -> str:
    return f"{user_id}_{week_key}"


def challenge_ledger_key(user_id: str, week_key: str, challenge_id: str) -> str:
    return f"{user_id}:challenge:{week_key}:{challenge_id}"


async def ensure_weekly_set(
    db: AsyncSession,
    user_id: str,
    week: WeekRange,
    *,
    lock: bool = False,
    now: datetime | None = None,
) -> UserChallenges:
    """Fetch the user's set for a week, creating it from the generator if absent.

    Creation is insert-if-absent: on a unique-key race the winner's row is
    fetched once and returned.
    """
    stmt = select(UserChallenges).where(
        UserChallenges.user_id == user_id,
        UserChallenges.week_key == week.key,
    )
    if lock:
        stmt = stmt.with_for_update()

    row = (await db.execute(stmt)).scalar_one_or_none()
    if row is not None:
        return row

    now = now or datetime.now(timezone.utc)
    try:
        async with db.begin_nested():
            row = UserChallenges(
                id=challenge_row_id(user_id, week.key),
                user_id=user_id,
                week_key=week.key,
                start_date=week.start,
                end_date=week.end,
                challenges=generate_challenges(user_id, week.key).to_storage(),
                created_at=now,
                updated_at=now,
            )
            db.add(row)
    except IntegrityError:
        row = (await db.execute(stmt)).scalar_one_or_none()
        if row is None:
            raise
    return row


async def _progress_counts(db: AsyncSession, user_id: str, week: WeekRange) -> dict[str, int]:
    totals = await activity_totals(db, user_id, start=week.start, end=week.end)
    result = await db.execute(select(Streak.current_streak).where(Streak.user_id == user_id))
    return {
        "tasks": totals["tasks"],
        "goals": totals["goals"],
        "events": totals["events"],
        "login": totals["days_active"],
        "streak": result.scalar_one_or_none() or 0,
    }


def _with_progress(challenge: Challenge, counts: dict[str, int]) -> dict[str, Any]:
    current = counts.get(challenge.type, 0)
    return {
        **challenge.to_dict(),
        "current": current,
        "completed": current >= challenge.target,
    }


async def get_weekly_challenges(db: AsyncSession, user_id: str, *, now: datetime | None = None) -> dict[str, Any]:
    """Return this week's challenges with live progress."""
    now = now or datetime.now(timezone.utc)
    week = week_range(utc_day(now))
    row = await ensure_weekly_set(db, user_id, week, now=now)
    challenge_set = ChallengeSet.from_storage(row.challenges)
    counts = await _progress_counts(db, user_id, week)
    await db.commit()

    return {
        "week_key": week.key,
        "start_date": week.start.isoformat(),
        "end_date": week.end.isoformat(),
        "challenges": [_with_progress(c, counts) for c in challenge_set.items],
    }


async def claim_challenge(
    db: AsyncSession,
    user_id: str,
    challenge_id: str,
    *,
    now: datetime | None = None,
    redis: object = None,
) -> ActionResult:
    """Claim the reward of one completed challenge in the current week."""
    now = now or datetime.now(timezone.utc)
    try:
        result, old_level, unlocked = await _claim_tx(db, user_id, challenge_id, now)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Challenge claim failed for %s/%s", user_id, challenge_id)
        raise

    if result.success:
        await publish_progress_events(
            redis,
            user_id,
            old_level=old_level,
            new_level=result.data["level"],
            unlocked=unlocked,
        )
    return result


async def _claim_tx(
    db: AsyncSession,
    user_id: str,
    challenge_id: str,
    now: datetime,
) -> tuple[ActionResult, int, list[str]]:
    today = utc_day(now)
    week = week_range(today)

    row = await ensure_weekly_set(db, user_id, week, lock=True, now=now)
    challenge_set = ChallengeSet.from_storage(row.challenges)
    challenge = challenge_set.get(challenge_id)

    reason = None
    if challenge is None:
        reason = outcomes.INVALID_CHALLENGE
    elif challenge.claimed_at is not None:
        reason = outcomes.ALREADY_CLAIMED
    else:
        counts = await _progress_counts(db, user_id, week)
        if counts.get(challenge.type, 0) < challenge.target:
            reason = outcomes.CHALLENGE_NOT_COMPLETED
    if reason is not None:
        await db.rollback()
        logger.debug("Challenge claim rejected for %s/%s: %s", user_id, challenge_id, reason)
        return ActionResult.fail(reason), 0, []

    progress = await get_or_create_progress(db, user_id)
    counter = await get_reward_daily(db, user_id, today)

    try:
        async with db.begin_nested():
            db.add(
                RewardLedger(
                    id=challenge_ledger_key(user_id, week.key, challenge.id),
                    user_id=user_id,
                    source_type="challenge",
                    source_id=f"{week.key}:{challenge.id}",
                    xp=challenge.xp,
                    coins=challenge.coins,
                    created_at=now,
                )
            )
    except IntegrityError:
        await db.rollback()
        return ActionResult.fail(outcomes.ALREADY_CLAIMED), 0, []

    activity = await get_daily_activity(db, user_id, today)
    record_reward(counter, activity, None, challenge.xp, challenge.coins)

    streak_row = (await db.execute(select(Streak).where(Streak.user_id == user_id))).scalar_one_or_none()
    current_streak = streak_row.current_streak if streak_row else 0
    longest_streak = streak_row.longest_streak if streak_row else 0
    stats = await compute_achievement_stats(
        db, user_id, today, current_streak=current_streak, longest_streak=longest_streak
    )
    evaluation = evaluate(progress.achievements or [], stats)

    old_level = progress.level
    apply_xp_gain(progress, challenge.xp + evaluation.bonus_xp, challenge.coins, now)
    merge_achievements(progress, evaluation.achievements)
    await sync_unlocked_titles(db, progress, longest_streak=longest_streak)

    claimed_set = challenge_set.mark_claimed(challenge.id, now)
    row.challenges = claimed_set.to_storage()
    row.updated_at = now

    await db.commit()
    logger.info("User %s claimed challenge %s for week %s", user_id, challenge.id, week.key)

    return (
        ActionResult.ok(
            challenge=claimed_set.get(challenge.id).to_dict(),  # type: ignore[union-attr]
            achievements=evaluation.unlocked,
            xp=challenge.xp + evaluation.bonus_xp,
            coins=challenge.coins,
            level=progress.level,
        ),
        old_level,
        evaluation.unlocked,
    )
