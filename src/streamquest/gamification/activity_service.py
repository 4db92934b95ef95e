"""Daily reward counters and activity aggregates."""

from __future__ import annotations

from datetime import date, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from streamquest.db.models import DailyActivity, RewardDaily
from streamquest.db.upsert import get_or_create
from streamquest.gamification.achievements import AchievementStats

STATS_WINDOW_DAYS = 364

COUNTER_FIELDS = {
    "task": "task_count",
    "goal": "goal_count",
    "event": "event_count",
}

ACTIVITY_FIELDS = {
    "task": "tasks_completed",
    "goal": "goals_completed",
    "event": "events_created",
}


async def get_reward_daily(db: AsyncSession, user_id: str, day: date, *, lock: bool = True) -> RewardDaily:
    return await get_or_create(db, RewardDaily, lock=lock, user_id=user_id, day=day)


async def get_daily_activity(db: AsyncSession, user_id: str, day: date, *, lock: bool = True) -> DailyActivity:
    return await get_or_create(db, DailyActivity, lock=lock, user_id=user_id, day=day)


def daily_count(counter: RewardDaily, source_type: str) -> int:
    return getattr(counter, COUNTER_FIELDS[source_type])


def record_reward(
    counter: RewardDaily,
    activity: DailyActivity,
    source_type: str | None,
    xp: int,
    coins: int,
) -> None:
    """Add one reward to today's counter and activity rows.

    ``source_type`` is None for rewards that carry no per-type count
    (challenge claims).
    """
    if source_type is not None:
        counter_field = COUNTER_FIELDS[source_type]
        activity_field = ACTIVITY_FIELDS[source_type]
        setattr(counter, counter_field, getattr(counter, counter_field) + 1)
        setattr(activity, activity_field, getattr(activity, activity_field) + 1)
    counter.xp_total += xp
    counter.coins_total += coins
    activity.xp_earned += xp
    activity.coins_earned += coins


async def activity_totals(
    db: AsyncSession,
    user_id: str,
    start: date | None = None,
    end: date | None = None,
) -> dict[str, int]:
    """Sum activity between two days inclusive. Open bounds mean all time."""
    active_day = (
        DailyActivity.tasks_completed + DailyActivity.goals_completed + DailyActivity.events_created
    ) > 0
    stmt = select(
        func.coalesce(func.sum(DailyActivity.tasks_completed), 0),
        func.coalesce(func.sum(DailyActivity.goals_completed), 0),
        func.coalesce(func.sum(DailyActivity.events_created), 0),
        func.count(DailyActivity.id).filter(active_day),
    ).where(DailyActivity.user_id == user_id)
    if start is not None:
        stmt = stmt.where(DailyActivity.day >= start)
    if end is not None:
        stmt = stmt.where(DailyActivity.day <= end)

    tasks, goals, events, days_active = (await db.execute(stmt)).one()
    return {
        "tasks": int(tasks),
        "goals": int(goals),
        "events": int(events),
        "days_active": int(days_active or 0),
    }


async def compute_achievement_stats(
    db: AsyncSession,
    user_id: str,
    today: date,
    *,
    current_streak: int,
    longest_streak: int,
) -> AchievementStats:
    """Lifetime stats over the trailing window ending today."""
    totals = await activity_totals(db, user_id, start=today - timedelta(days=STATS_WINDOW_DAYS))
    return AchievementStats(
        total_goals_completed=totals["goals"],
        total_tasks_completed=totals["tasks"],
        current_streak=current_streak,
        longest_streak=longest_streak,
        total_events_created=totals["events"],
        days_active=totals["days_active"],
    )
