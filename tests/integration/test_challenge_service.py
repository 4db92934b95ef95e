"""Integration tests for weekly challenges: generation, live progress and claiming."""

from __future__ import annotations

import asyncio
from datetime import date

import pytest
from conftest import lose_first_lookup, seed_row
from sqlalchemy import select

from streamquest.database import get_session_factory
from streamquest.db.models import DailyActivity, RewardLedger, UserChallenges, UserProgress
from streamquest.gamification import outcomes
from streamquest.gamification.challenge_service import (
    challenge_ledger_key,
    challenge_row_id,
    claim_challenge,
    ensure_weekly_set,
    get_weekly_challenges,
)
from streamquest.gamification.challenges import (
    CHALLENGE_POOL,
    Challenge,
    ChallengeSet,
    generate_challenges,
    week_range,
)

WEEK_KEY = "2026-03-08"
TEMPLATES = {t.id: t for t in CHALLENGE_POOL}


async def _seed_set(db, user_id, *challenge_ids):
    challenge_set = ChallengeSet(tuple(Challenge.from_template(TEMPLATES[cid]) for cid in challenge_ids))
    db.add(
        UserChallenges(
            id=challenge_row_id(user_id, WEEK_KEY),
            user_id=user_id,
            week_key=WEEK_KEY,
            start_date=date(2026, 3, 8),
            end_date=date(2026, 3, 14),
            challenges=challenge_set.to_storage(),
        )
    )
    await db.commit()


async def _seed_activity(db, user_id, day, *, tasks=0, goals=0, events=0):
    db.add(
        DailyActivity(
            user_id=user_id,
            day=day,
            tasks_completed=tasks,
            goals_completed=goals,
            events_created=events,
        )
    )
    await db.commit()


class TestGetWeeklyChallenges:
    @pytest.mark.asyncio
    async def test_generates_four_challenges(self, db, user, now):
        data = await get_weekly_challenges(db, user.id, now=now)

        assert data["week_key"] == WEEK_KEY
        assert data["start_date"] == "2026-03-08"
        assert data["end_date"] == "2026-03-14"
        assert [c["difficulty"] for c in data["challenges"]] == ["easy", "medium", "medium", "hard"]
        expected_ids = [c.id for c in generate_challenges(user.id, WEEK_KEY).items]
        assert [c["id"] for c in data["challenges"]] == expected_ids

    @pytest.mark.asyncio
    async def test_set_is_stable_within_week(self, db, user, now):
        first = await get_weekly_challenges(db, user.id, now=now)
        second = await get_weekly_challenges(db, user.id, now=now.replace(day=14))

        assert [c["id"] for c in first["challenges"]] == [c["id"] for c in second["challenges"]]
        rows = (await db.execute(select(UserChallenges).where(UserChallenges.user_id == user.id))).scalars().all()
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_new_week_gets_new_row(self, db, user, now):
        await get_weekly_challenges(db, user.id, now=now)
        data = await get_weekly_challenges(db, user.id, now=now.replace(day=15))

        assert data["week_key"] == "2026-03-15"

    @pytest.mark.asyncio
    async def test_progress_counts_only_this_week(self, db, user, now):
        await _seed_set(db, user.id, "tasks_5", "goals_2")
        await _seed_activity(db, user.id, date(2026, 3, 7), tasks=10)
        await _seed_activity(db, user.id, date(2026, 3, 9), tasks=3)

        data = await get_weekly_challenges(db, user.id, now=now)

        tasks = next(c for c in data["challenges"] if c["id"] == "tasks_5")
        assert tasks["current"] == 3
        assert tasks["completed"] is False
        assert tasks["claimedAt"] is None


class TestClaimChallenge:
    @pytest.mark.asyncio
    async def test_claim_completed_challenge(self, db, user, now):
        await _seed_set(db, user.id, "tasks_5", "goals_2")
        await _seed_activity(db, user.id, date(2026, 3, 9), tasks=5)

        result = await claim_challenge(db, user.id, "tasks_5", now=now)

        assert result.success is True
        assert result.data["coins"] == 10
        # 50 for the challenge plus the first_task bonus
        assert result.data["xp"] == 75
        assert result.data["achievements"] == ["first_task"]
        assert result.data["challenge"]["claimedAt"] == now.isoformat()

        progress = (await db.execute(select(UserProgress).where(UserProgress.user_id == user.id))).scalar_one()
        assert progress.xp == 75
        assert progress.coins == 10

        ledger = (await db.execute(select(RewardLedger).where(RewardLedger.user_id == user.id))).scalar_one()
        assert ledger.source_type == "challenge"
        assert ledger.source_id == f"{WEEK_KEY}:tasks_5"

    @pytest.mark.asyncio
    async def test_claim_twice(self, db, user, now):
        await _seed_set(db, user.id, "tasks_5")
        await _seed_activity(db, user.id, date(2026, 3, 9), tasks=5)

        await claim_challenge(db, user.id, "tasks_5", now=now)
        result = await claim_challenge(db, user.id, "tasks_5", now=now)

        assert result.success is False
        assert result.reason == outcomes.ALREADY_CLAIMED
        progress = (await db.execute(select(UserProgress).where(UserProgress.user_id == user.id))).scalar_one()
        assert progress.coins == 10

    @pytest.mark.asyncio
    async def test_not_completed(self, db, user, now):
        await _seed_set(db, user.id, "tasks_5", "goals_2")
        await _seed_activity(db, user.id, date(2026, 3, 9), tasks=5)

        result = await claim_challenge(db, user.id, "goals_2", now=now)

        assert result.reason == outcomes.CHALLENGE_NOT_COMPLETED

    @pytest.mark.asyncio
    async def test_invalid_challenge(self, db, user, now):
        await _seed_set(db, user.id, "tasks_5")

        result = await claim_challenge(db, user.id, "streak_7", now=now)

        assert result.reason == outcomes.INVALID_CHALLENGE

    @pytest.mark.asyncio
    async def test_claimed_state_persists(self, db, user, now):
        await _seed_set(db, user.id, "tasks_5")
        await _seed_activity(db, user.id, date(2026, 3, 9), tasks=5)

        await claim_challenge(db, user.id, "tasks_5", now=now)
        data = await get_weekly_challenges(db, user.id, now=now)

        assert data["challenges"][0]["claimedAt"] == now.isoformat()
        assert data["challenges"][0]["completed"] is True


class TestEnsureWeeklySet:
    @pytest.mark.asyncio
    async def test_second_call_returns_existing_row(self, db, user, now):
        week = week_range(now)

        first = await ensure_weekly_set(db, user.id, week, now=now)
        await db.commit()
        second = await ensure_weekly_set(db, user.id, week, now=now)

        assert second.id == first.id
        rows = (await db.execute(select(UserChallenges).where(UserChallenges.user_id == user.id))).scalars().all()
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_keeps_seeded_set(self, db, user, now):
        await _seed_set(db, user.id, "tasks_5")

        row = await ensure_weekly_set(db, user.id, week_range(now), now=now)

        assert [item["id"] for item in row.challenges["items"]] == ["tasks_5"]

    @pytest.mark.asyncio
    async def test_lost_race_returns_winner_set(self, db, user, now, monkeypatch):
        week = week_range(now)
        winner = ChallengeSet((Challenge.from_template(TEMPLATES["tasks_5"]),))

        async def other_writer():
            await seed_row(
                UserChallenges(
                    id=challenge_row_id(user.id, week.key),
                    user_id=user.id,
                    week_key=week.key,
                    start_date=week.start,
                    end_date=week.end,
                    challenges=winner.to_storage(),
                )
            )

        lose_first_lookup(monkeypatch, db, other_writer)

        row = await ensure_weekly_set(db, user.id, week, lock=True, now=now)

        assert [item["id"] for item in row.challenges["items"]] == ["tasks_5"]


class TestClaimCollisions:
    @pytest.mark.asyncio
    async def test_existing_ledger_entry_means_already_claimed(self, db, user, now):
        await _seed_set(db, user.id, "tasks_5")
        await _seed_activity(db, user.id, date(2026, 3, 9), tasks=5)
        await seed_row(
            RewardLedger(
                id=challenge_ledger_key(user.id, WEEK_KEY, "tasks_5"),
                user_id=user.id,
                source_type="challenge",
                source_id=f"{WEEK_KEY}:tasks_5",
                xp=50,
                coins=10,
                created_at=now,
            )
        )

        result = await claim_challenge(db, user.id, "tasks_5", now=now)

        assert result.success is False
        assert result.reason == outcomes.ALREADY_CLAIMED
        db.expire_all()
        progress = (await db.execute(select(UserProgress).where(UserProgress.user_id == user.id))).scalar_one_or_none()
        assert progress is None or (progress.xp, progress.coins) == (0, 0)
        row = (await db.execute(select(UserChallenges).where(UserChallenges.user_id == user.id))).scalar_one()
        assert row.challenges["items"][0]["claimedAt"] is None

    @pytest.mark.asyncio
    async def test_concurrent_claims_pay_once(self, db, user, now):
        await _seed_set(db, user.id, "tasks_5")
        await _seed_activity(db, user.id, date(2026, 3, 9), tasks=5)
        factory = get_session_factory()

        async def attempt():
            async with factory() as session:
                return await claim_challenge(session, user.id, "tasks_5", now=now)

        results = await asyncio.gather(attempt(), attempt())

        assert sorted(r.success for r in results) == [False, True]
        assert next(r for r in results if not r.success).reason == outcomes.ALREADY_CLAIMED
        ledger = (await db.execute(select(RewardLedger).where(RewardLedger.user_id == user.id))).scalars().all()
        assert len(ledger) == 1
        progress = (await db.execute(select(UserProgress).where(UserProgress.user_id == user.id))).scalar_one()
        assert progress.coins == 10
