"""Integration tests for request-triggered live checks and live settings."""

from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import create_integration
from sqlalchemy import select

from streamquest.db.models import LiveIntegration, UserProgress
from streamquest.gamification import outcomes
from streamquest.gamification.live_service import check_live_status, update_live_settings
from streamquest.integrations.live_status import TOKEN_ERROR, LiveStatusError, StreamInfo


class StubClient:
    def __init__(self, stream=None, error=None):
        self.stream = stream
        self.error = error
        self.configured = True

    async def get_stream(self, external_user_id):
        if self.error:
            raise self.error
        return self.stream


STREAM = StreamInfo(
    user_id="77",
    user_login="speedy",
    user_name="Speedy",
    viewer_count=150,
    started_at=None,
    title="any%",
)


class TestCheckLiveStatus:
    @pytest.mark.asyncio
    async def test_live_user_earns_xp(self, db, user, now):
        await create_integration(user.id, xp_per_hour_live=80, last_stream_check=now - timedelta(hours=2, minutes=10))

        result = await check_live_status(db, StubClient(STREAM), user.id, now=now)

        assert result.success is True
        assert result.data["is_live"] is True
        assert result.data["xp_awarded"] == 160
        assert result.data["stream"]["user_login"] == "speedy"
        progress = (await db.execute(select(UserProgress).where(UserProgress.user_id == user.id))).scalar_one()
        assert progress.xp == 160

    @pytest.mark.asyncio
    async def test_repeat_check_pays_nothing_more(self, db, user, now):
        await create_integration(user.id, last_stream_check=now - timedelta(hours=2))
        client = StubClient(STREAM)

        first = await check_live_status(db, client, user.id, now=now)
        second = await check_live_status(db, client, user.id, now=now + timedelta(minutes=5))

        assert first.data["xp_awarded"] == 100
        assert second.data["xp_awarded"] == 0

    @pytest.mark.asyncio
    async def test_auto_xp_disabled(self, db, user, now):
        await create_integration(user.id, auto_xp_on_live=False, last_stream_check=now - timedelta(hours=2))

        result = await check_live_status(db, StubClient(STREAM), user.id, now=now)

        assert result.data["is_live"] is True
        assert result.data["xp_awarded"] == 0

    @pytest.mark.asyncio
    async def test_no_integration(self, db, user, now):
        result = await check_live_status(db, StubClient(STREAM), user.id, now=now)
        assert result.reason == outcomes.INTEGRATION_NOT_FOUND

    @pytest.mark.asyncio
    async def test_provider_error_propagates_without_changes(self, db, user, now):
        last_check = now - timedelta(hours=2)
        await create_integration(user.id, last_stream_check=last_check)
        client = StubClient(error=LiveStatusError(TOKEN_ERROR))

        with pytest.raises(LiveStatusError):
            await check_live_status(db, client, user.id, now=now)

        db.expire_all()
        integration = (await db.execute(select(LiveIntegration))).scalar_one()
        assert integration.last_stream_check == last_check


class TestUpdateLiveSettings:
    @pytest.mark.asyncio
    async def test_update(self, db, user):
        await create_integration(user.id)

        result = await update_live_settings(db, user.id, auto_xp_on_live=False, xp_per_hour_live=120)

        assert result.success is True
        assert result.data == {"auto_xp_on_live": False, "xp_per_hour_live": 120}

    @pytest.mark.asyncio
    async def test_rate_is_clamped(self, db, user):
        await create_integration(user.id)

        result = await update_live_settings(db, user.id, xp_per_hour_live=10_000)

        assert result.data["xp_per_hour_live"] == 500
        assert result.data["auto_xp_on_live"] is True

    @pytest.mark.asyncio
    async def test_no_integration(self, db, user):
        result = await update_live_settings(db, user.id, auto_xp_on_live=True)
        assert result.reason == outcomes.INTEGRATION_NOT_FOUND
