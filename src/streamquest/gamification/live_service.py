"""Passive XP for live streaming.

The provider is always queried before any transaction opens; the award
itself runs in a short transaction that locks the integration row.
``last_stream_check`` advances on every check, so an elapsed window is
never paid twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from streamquest.db.models import LiveIntegration
from streamquest.gamification import outcomes
from streamquest.gamification.outcomes import ActionResult
from streamquest.gamification.xp_service import apply_xp_gain, get_or_create_progress, sync_unlocked_titles
from streamquest.integrations.live_status import LiveStatusClient, StreamInfo

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600
DEFAULT_MAX_HOURS = 6
DEFAULT_XP_PER_HOUR = 50
XP_PER_HOUR_RANGE = (1, 500)


@dataclass
class LiveRewardResult:
    processed: bool
    is_live: bool = False
    xp_awarded: int = 0


def live_xp_for_window(
    last_check: datetime | None,
    now: datetime,
    xp_per_hour: int | None,
    *,
    max_hours: int = DEFAULT_MAX_HOURS,
    default_xp_per_hour: int = DEFAULT_XP_PER_HOUR,
) -> int:
    """XP for whole hours streamed since the last check, capped at ``max_hours``."""
    if last_check is None:
        return 0
    elapsed = max(0.0, (now - last_check).total_seconds())
    capped_hours = min(max_hours, int(elapsed // SECONDS_PER_HOUR))
    if capped_hours <= 0:
        return 0
    return capped_hours * max(1, xp_per_hour or default_xp_per_hour)


async def apply_live_reward(
    db: AsyncSession,
    user_id: str,
    stream: StreamInfo | None,
    *,
    now: datetime | None = None,
    max_hours: int = DEFAULT_MAX_HOURS,
    default_xp_per_hour: int = DEFAULT_XP_PER_HOUR,
) -> LiveRewardResult:
    """Record one live-status observation and pay any passive XP. Commits."""
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        select(LiveIntegration).where(LiveIntegration.user_id == user_id).with_for_update()
    )
    integration = result.scalar_one_or_none()
    if integration is None:
        await db.rollback()
        return LiveRewardResult(processed=False)

    is_live = stream is not None
    xp_awarded = 0
    if is_live and integration.auto_xp_on_live:
        xp_awarded = live_xp_for_window(
            integration.last_stream_check,
            now,
            integration.xp_per_hour_live,
            max_hours=max_hours,
            default_xp_per_hour=default_xp_per_hour,
        )
        if xp_awarded > 0:
            progress = await get_or_create_progress(db, user_id)
            apply_xp_gain(progress, xp_awarded, 0, now)
            await sync_unlocked_titles(db, progress)

    integration.is_live = is_live
    if stream is not None:
        integration.display_name = stream.user_name or integration.display_name
        integration.login = stream.user_login or integration.login
        integration.total_views = stream.viewer_count
    integration.last_stream_check = now
    integration.updated_at = now

    await db.commit()
    if xp_awarded:
        logger.info("Awarded %d live xp to %s", xp_awarded, user_id)
    return LiveRewardResult(processed=True, is_live=is_live, xp_awarded=xp_awarded)


async def check_live_status(
    db: AsyncSession,
    client: LiveStatusClient,
    user_id: str,
    *,
    now: datetime | None = None,
    max_hours: int = DEFAULT_MAX_HOURS,
    default_xp_per_hour: int = DEFAULT_XP_PER_HOUR,
) -> ActionResult:
    """Request-triggered live check for the calling user.

    Raises LiveStatusError when the provider cannot be queried.
    """
    result = await db.execute(
        select(LiveIntegration.external_user_id).where(LiveIntegration.user_id == user_id)
    )
    external_user_id = result.scalar_one_or_none()
    # Release the read transaction before the network call.
    await db.rollback()
    if not external_user_id:
        return ActionResult.fail(outcomes.INTEGRATION_NOT_FOUND)

    stream = await client.get_stream(external_user_id)

    try:
        reward = await apply_live_reward(
            db,
            user_id,
            stream,
            now=now,
            max_hours=max_hours,
            default_xp_per_hour=default_xp_per_hour,
        )
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Live reward failed for %s", user_id)
        raise

    if not reward.processed:
        return ActionResult.fail(outcomes.INTEGRATION_NOT_FOUND)
    return ActionResult.ok(
        is_live=reward.is_live,
        xp_awarded=reward.xp_awarded,
        stream=stream.to_dict() if stream else None,
    )


async def update_live_settings(
    db: AsyncSession,
    user_id: str,
    *,
    auto_xp_on_live: bool | None = None,
    xp_per_hour_live: int | None = None,
) -> ActionResult:
    result = await db.execute(
        select(LiveIntegration).where(LiveIntegration.user_id == user_id).with_for_update()
    )
    integration = result.scalar_one_or_none()
    if integration is None:
        await db.rollback()
        return ActionResult.fail(outcomes.INTEGRATION_NOT_FOUND)

    if auto_xp_on_live is not None:
        integration.auto_xp_on_live = auto_xp_on_live
    if xp_per_hour_live is not None:
        low, high = XP_PER_HOUR_RANGE
        integration.xp_per_hour_live = max(low, min(high, xp_per_hour_live))
    integration.updated_at = datetime.now(timezone.utc)
    await db.commit()
    return ActionResult.ok(
        auto_xp_on_live=integration.auto_xp_on_live,
        xp_per_hour_live=integration.xp_per_hour_live,
    )
