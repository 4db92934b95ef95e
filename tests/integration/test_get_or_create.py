"""Create-if-absent helper: plain inserts, lost races and real constraint failures."""

from __future__ import annotations

import pytest
from conftest import lose_first_lookup, seed_row
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from streamquest.db.models import RewardLedger, Streak
from streamquest.db.upsert import get_or_create


class TestGetOrCreate:
    @pytest.mark.asyncio
    async def test_creates_missing_row(self, db, user):
        row = await get_or_create(db, Streak, user_id=user.id)
        await db.commit()

        assert row.user_id == user.id
        assert (await db.execute(select(Streak.user_id))).scalars().all() == [user.id]

    @pytest.mark.asyncio
    async def test_returns_existing_row(self, db, user):
        await seed_row(Streak(user_id=user.id, current_streak=2, longest_streak=3))

        row = await get_or_create(db, Streak, user_id=user.id)

        assert (row.current_streak, row.longest_streak) == (2, 3)

    @pytest.mark.asyncio
    async def test_lost_race_returns_winner(self, db, user, monkeypatch):
        async def other_writer():
            await seed_row(Streak(user_id=user.id, current_streak=4, longest_streak=6))

        lose_first_lookup(monkeypatch, db, other_writer)

        row = await get_or_create(db, Streak, lock=True, user_id=user.id)

        assert (row.current_streak, row.longest_streak) == (4, 6)
        rows = (await db.execute(select(Streak).where(Streak.user_id == user.id))).scalars().all()
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_constraint_failure_without_winner_is_raised(self, db):
        # user_id is NOT NULL, so the insert fails and no row appears.
        with pytest.raises(IntegrityError):
            await get_or_create(db, RewardLedger, id="orphan-ledger-key")
