"""Integration tests for shop purchases."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from streamquest.db.models import ShopStock, UserInventory, UserProgress
from streamquest.gamification import outcomes
from streamquest.gamification.inventory import STREAK_FREEZE, XP_BOOST, PowerupCollection
from streamquest.gamification.leveling import MAX_LEVEL, MAX_PROGRESS_INT, level_from_xp, total_xp_for_level
from streamquest.gamification.shop_service import purchase_item


async def _fund(db, user_id, coins, **kwargs):
    db.add(UserProgress(user_id=user_id, coins=coins, **kwargs))
    await db.commit()


async def _progress(db, user_id) -> UserProgress:
    return (await db.execute(select(UserProgress).where(UserProgress.user_id == user_id))).scalar_one()


async def _inventory(db, user_id) -> UserInventory:
    return (await db.execute(select(UserInventory).where(UserInventory.user_id == user_id))).scalar_one()


class TestPurchasePowerups:
    @pytest.mark.asyncio
    async def test_xp_boost_activates(self, db, user, now):
        await _fund(db, user.id, 300)

        result = await purchase_item(db, user.id, "xp_boost_1h", now=now)

        assert result.success is True
        assert result.data["coins"] == 250
        inventory = await _inventory(db, user.id)
        assert inventory.purchased_item_ids == ["xp_boost_1h"]
        powerups = PowerupCollection.from_storage(inventory.active_powerups, now)
        assert powerups.multiplier(XP_BOOST) == 2
        item = next(iter(powerups))
        assert item.expires_at == now + timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_powerups_can_be_bought_again(self, db, user, now):
        await _fund(db, user.id, 500)

        await purchase_item(db, user.id, "streak_freeze_1d", now=now)
        result = await purchase_item(db, user.id, "streak_freeze_3d", now=now)

        assert result.success is True
        inventory = await _inventory(db, user.id)
        powerups = PowerupCollection.from_storage(inventory.active_powerups, now)
        assert powerups.freeze_charges() == 4
        assert all(item.type == STREAK_FREEZE and item.expires_at is None for item in powerups)

    @pytest.mark.asyncio
    async def test_instant_level(self, db, user, now):
        await _fund(db, user.id, 500)

        result = await purchase_item(db, user.id, "instant_level", now=now)

        assert result.success is True
        assert result.data["level"] == 2
        assert result.data["xp"] == 100
        progress = await _progress(db, user.id)
        assert progress.coins == 0

    @pytest.mark.asyncio
    async def test_instant_level_to_highest_level(self, db, user, now):
        xp = total_xp_for_level(MAX_LEVEL - 1)
        await _fund(db, user.id, 500, xp=xp, level=MAX_LEVEL - 1)

        result = await purchase_item(db, user.id, "instant_level", now=now)

        assert result.success is True
        assert result.data["level"] == MAX_LEVEL
        assert level_from_xp(result.data["xp"]) == MAX_LEVEL

    @pytest.mark.asyncio
    async def test_instant_level_at_xp_cap_rejected(self, db, user, now):
        await _fund(db, user.id, 500, xp=MAX_PROGRESS_INT - 10, level=MAX_LEVEL)

        result = await purchase_item(db, user.id, "instant_level", now=now)

        assert result.success is False
        assert result.reason == outcomes.MAX_LEVEL_REACHED
        progress = await _progress(db, user.id)
        assert progress.coins == 500
        assert progress.level == level_from_xp(progress.xp) == MAX_LEVEL


class TestPurchaseRejections:
    @pytest.mark.asyncio
    async def test_unknown_item(self, db, user, now):
        result = await purchase_item(db, user.id, "golden_unicorn", now=now)
        assert result.reason == outcomes.ITEM_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_insufficient_coins(self, db, user, now):
        await _fund(db, user.id, 10)

        result = await purchase_item(db, user.id, "sparkle_effect", now=now)

        assert result.reason == outcomes.COINS_INSUFFICIENT
        assert (await _progress(db, user.id)).coins == 10

    @pytest.mark.asyncio
    async def test_cosmetic_already_owned(self, db, user, now):
        await _fund(db, user.id, 1000)

        await purchase_item(db, user.id, "sparkle_effect", now=now)
        result = await purchase_item(db, user.id, "sparkle_effect", now=now)

        assert result.reason == outcomes.ITEM_ALREADY_OWNED
        assert (await _progress(db, user.id)).coins == 800

    @pytest.mark.asyncio
    async def test_premium_item_requires_premium(self, db, user, now):
        await _fund(db, user.id, 1000)

        result = await purchase_item(db, user.id, "fire_aura", now=now)

        assert result.reason == outcomes.PREMIUM_REQUIRED

    @pytest.mark.asyncio
    async def test_expired_premium(self, db, user, now):
        await _fund(db, user.id, 1000, is_premium=True, premium_expires_at=now - timedelta(days=1))

        result = await purchase_item(db, user.id, "fire_aura", now=now)

        assert result.reason == outcomes.PREMIUM_REQUIRED

    @pytest.mark.asyncio
    async def test_premium_user_can_buy(self, db, user, now):
        await _fund(db, user.id, 1000, is_premium=True)

        result = await purchase_item(db, user.id, "fire_aura", now=now)

        assert result.success is True
        assert result.data["coins"] == 700


class TestLimitedStock:
    @pytest.mark.asyncio
    async def test_stock_row_created_and_decremented(self, db, user, now):
        await _fund(db, user.id, 5000)

        result = await purchase_item(db, user.id, "og_badge", now=now)

        assert result.success is True
        stock = (await db.execute(select(ShopStock).where(ShopStock.item_id == "og_badge"))).scalar_one()
        assert stock.remaining == 49

    @pytest.mark.asyncio
    async def test_sold_out(self, db, user, now):
        await _fund(db, user.id, 5000)
        db.add(ShopStock(item_id="og_badge", remaining=0))
        await db.commit()

        result = await purchase_item(db, user.id, "og_badge", now=now)

        assert result.reason == outcomes.ITEM_SOLD_OUT
        assert (await _progress(db, user.id)).coins == 5000
