"""Scheduled batch jobs: XP counter resets and the live-activity sweep."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from streamquest.db.models import LiveIntegration, UserProgress
from streamquest.gamification.live_service import apply_live_reward
from streamquest.integrations.live_status import LiveStatusClient, LiveStatusError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def reset_weekly_xp(db: AsyncSession) -> int:
    """Zero weekly XP for every user that has some. Returns rows updated."""
    result = await db.execute(
        update(UserProgress).where(UserProgress.weekly_xp != 0).values(weekly_xp=0)
    )
    await db.commit()
    return result.rowcount or 0


async def reset_monthly_xp(db: AsyncSession) -> int:
    """Zero monthly XP for every user that has some. Returns rows updated."""
    result = await db.execute(
        update(UserProgress).where(UserProgress.monthly_xp != 0).values(monthly_xp=0)
    )
    await db.commit()
    return result.rowcount or 0


@dataclass
class SweepSummary:
    candidates: int = 0
    processed: int = 0
    failures: int = 0
    xp_awarded: int = 0
    skipped: bool = False


class LiveSweep:
    """Pays passive XP to opted-in users who are currently live."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: LiveStatusClient,
        *,
        max_users: int = 200,
        max_hours: int = 6,
        default_xp_per_hour: int = 50,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.session_factory = session_factory
        self.client = client
        self.max_users = max_users
        self.max_hours = max_hours
        self.default_xp_per_hour = default_xp_per_hour
        self.clock = clock
        self._warned_missing_config = False

    async def _candidates(self) -> list[tuple[str, str]]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(LiveIntegration.user_id, LiveIntegration.external_user_id)
                .where(
                    LiveIntegration.auto_xp_on_live.is_(True),
                    LiveIntegration.external_user_id.is_not(None),
                    LiveIntegration.external_user_id != "",
                )
                .order_by(LiveIntegration.user_id)
                .limit(self.max_users)
            )
            return [(row.user_id, row.external_user_id) for row in result]

    async def run(self) -> SweepSummary:
        summary = SweepSummary()
        if not self.client.configured:
            if not self._warned_missing_config:
                self._warned_missing_config = True
                logger.warning("Skipping live sweep: live-status client credentials are not configured")
            summary.skipped = True
            return summary

        candidates = await self._candidates()
        summary.candidates = len(candidates)

        for user_id, external_user_id in candidates:
            try:
                stream = await self.client.get_stream(external_user_id)
                async with self.session_factory() as db:
                    reward = await apply_live_reward(
                        db,
                        user_id,
                        stream,
                        now=self.clock(),
                        max_hours=self.max_hours,
                        default_xp_per_hour=self.default_xp_per_hour,
                    )
            except LiveStatusError as exc:
                summary.failures += 1
                logger.warning("Live status unavailable for user %s: %s", user_id, exc.code)
                continue
            except Exception:
                summary.failures += 1
                logger.exception("Live sweep failed for user %s", user_id)
                continue
            if reward.processed:
                summary.processed += 1
                summary.xp_awarded += reward.xp_awarded

        return summary
