"""Daily streak check-in with streak-freeze consumption."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from streamquest.db.models import UserInventory
from streamquest.gamification.inventory import PowerupCollection
from streamquest.gamification.outcomes import StreakOutcome
from streamquest.gamification.xp_service import get_or_create_inventory, get_or_create_streak

logger = logging.getLogger(__name__)


def utc_day(dt: datetime) -> date:
    """Calendar day of a timestamp on the server (UTC) calendar."""
    if dt.tzinfo is None:
        return dt.date()
    return dt.astimezone(timezone.utc).date()


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole calendar days from ``earlier`` to ``later``."""
    return (utc_day(later) - utc_day(earlier)).days


async def check_in(
    db: AsyncSession,
    user_id: str,
    *,
    now: datetime | None = None,
    inventory: UserInventory | None = None,
) -> StreakOutcome:
    """Register activity for today and update the streak.

    Lock order is inventory then streak. Callers that already hold the
    inventory row pass it in. Nothing is committed here.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    if inventory is None:
        inventory = await get_or_create_inventory(db, user_id)
    streak = await get_or_create_streak(db, user_id)

    powerups = PowerupCollection.from_storage(inventory.active_powerups, now)
    outcome = StreakOutcome(
        current_streak=streak.current_streak,
        longest_streak=streak.longest_streak,
        last_checkin=streak.last_checkin,
        remaining_freeze_uses=powerups.freeze_charges(),
    )

    if streak.last_checkin is not None and days_between(streak.last_checkin, now) <= 0:
        return outcome

    if streak.last_checkin is None:
        current = 1
    else:
        days = days_between(streak.last_checkin, now)
        if days == 1:
            current = streak.current_streak + 1
        else:
            missed = days - 1
            if powerups.freeze_charges() >= missed:
                consumption = powerups.consume_freezes(missed)
                inventory.active_powerups = consumption.collection.to_storage()
                inventory.updated_at = now
                outcome.freeze_used = True
                outcome.consumed_freeze_uses = consumption.consumed
                outcome.remaining_freeze_uses = consumption.remaining
                current = streak.current_streak + 1
                logger.info("User %s bridged %d missed day(s) with streak freezes", user_id, missed)
            else:
                current = 1
                outcome.reset_occurred = True

    streak.current_streak = current
    streak.longest_streak = max(streak.longest_streak, current)
    streak.last_checkin = now
    streak.updated_at = now

    outcome.current_streak = streak.current_streak
    outcome.longest_streak = streak.longest_streak
    outcome.last_checkin = now
    return outcome
