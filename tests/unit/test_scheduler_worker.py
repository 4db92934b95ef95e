"""Cron wiring for the scheduler worker."""

from unittest.mock import AsyncMock

import pytest

from streamquest.config import Settings
from streamquest.scheduler.guard import JobGuard
from streamquest.workers.scheduler_worker import build_cron_jobs, live_sweep


class TestBuildCronJobs:
    def test_default_schedule(self):
        jobs = {job.name: job for job in build_cron_jobs(Settings())}

        assert set(jobs) == {"weekly_reset", "monthly_reset"}
        assert jobs["weekly_reset"].weekday == 6
        assert jobs["weekly_reset"].hour == 0
        assert jobs["monthly_reset"].day == 1

    def test_live_sweep_opt_in(self):
        jobs = {job.name: job for job in build_cron_jobs(Settings(live_sweep_enabled=True))}

        assert jobs["live_sweep"].minute == {0, 30}

    def test_disabled(self):
        assert build_cron_jobs(Settings(scheduler_enabled=False)) == []

    def test_custom_weekly_slot(self):
        settings = Settings(weekly_reset_weekday=0, weekly_reset_hour=3, weekly_reset_minute=15)
        job = next(j for j in build_cron_jobs(settings) if j.name == "weekly_reset")

        assert (job.weekday, job.hour, job.minute) == (0, 3, 15)


class TestLiveSweepTask:
    @pytest.mark.asyncio
    async def test_runs_through_guard(self):
        sweep = AsyncMock()
        sweep.run.return_value = "summary"
        ctx = {"guard": JobGuard(), "live_sweep": sweep}

        await live_sweep(ctx)

        sweep.run.assert_awaited_once()
