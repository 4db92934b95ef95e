"""Scheduler arq worker: weekly/monthly XP resets and the live-activity sweep.

Run with ``arq streamquest.workers.scheduler_worker.SchedulerWorkerSettings``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from zoneinfo import ZoneInfo

from arq import cron
from arq.connections import RedisSettings
from arq.cron import CronJob
from sqlalchemy.ext.asyncio import AsyncSession

from streamquest.config import Settings, get_settings
from streamquest.database import close_db, get_session_factory, init_db
from streamquest.integrations.live_status import LiveStatusClient
from streamquest.middleware.logging import setup_logging
from streamquest.scheduler.guard import JobGuard
from streamquest.scheduler.jobs import LiveSweep, reset_monthly_xp, reset_weekly_xp

logger = logging.getLogger(__name__)


async def scheduler_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize DB and the live-status client on worker startup."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)

    client = LiveStatusClient.from_settings(settings)
    ctx["live_client"] = client
    ctx["live_sweep"] = LiveSweep(
        get_session_factory(),
        client,
        max_users=settings.live_sweep_max_users,
        max_hours=settings.reward_live_max_hours,
        default_xp_per_hour=settings.reward_live_default_xp_per_hour,
    )
    ctx["guard"] = JobGuard()
    logger.info("Scheduler worker started")


async def scheduler_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Clean up on worker shutdown."""
    client: LiveStatusClient | None = ctx.get("live_client")
    if client:
        await client.aclose()
    await close_db()
    logger.info("Scheduler worker shut down")


def _with_session(job: Callable[[AsyncSession], Awaitable[int]]) -> Callable[[], Awaitable[int]]:
    async def runner() -> int:
        async with get_session_factory()() as db:
            return await job(db)

    return runner


async def weekly_reset(ctx: dict) -> None:  # type: ignore[type-arg]
    """Scheduled arq task: zero weekly XP (Sunday 00:00 by default)."""
    await ctx["guard"].run("weekly_reset", _with_session(reset_weekly_xp))


async def monthly_reset(ctx: dict) -> None:  # type: ignore[type-arg]
    """Scheduled arq task: zero monthly XP (1st of the month by default)."""
    await ctx["guard"].run("monthly_reset", _with_session(reset_monthly_xp))


async def live_sweep(ctx: dict) -> None:  # type: ignore[type-arg]
    """Scheduled arq task: pay passive XP to users who are live."""
    await ctx["guard"].run("live_sweep", ctx["live_sweep"].run)


def build_cron_jobs(settings: Settings) -> list[CronJob]:
    if not settings.scheduler_enabled:
        return []

    run_at_startup = settings.scheduler_run_on_start
    jobs = [
        cron(
            weekly_reset,
            name="weekly_reset",
            weekday=settings.weekly_reset_weekday,
            hour=settings.weekly_reset_hour,
            minute=settings.weekly_reset_minute,
            run_at_startup=run_at_startup,
        ),
        cron(
            monthly_reset,
            name="monthly_reset",
            day=settings.monthly_reset_day,
            hour=settings.monthly_reset_hour,
            minute=0,
            run_at_startup=run_at_startup,
        ),
    ]
    if settings.live_sweep_enabled:
        jobs.append(
            cron(
                live_sweep,
                name="live_sweep",
                minute=set(settings.live_sweep_minutes),
                run_at_startup=run_at_startup,
            )
        )
    return jobs


class SchedulerWorkerSettings:
    """arq worker settings for the progression scheduler."""

    functions = [weekly_reset, monthly_reset, live_sweep]
    cron_jobs = build_cron_jobs(get_settings())
    on_startup = scheduler_startup
    on_shutdown = scheduler_shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    timezone = ZoneInfo(get_settings().scheduler_timezone)
    max_jobs = 4
    job_timeout = 600
    allow_abort_jobs = True
