"""Shop catalog and purchases: power-ups, avatar effects and badges."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from streamquest.db.models import ShopStock, UserProgress
from streamquest.gamification import outcomes
from streamquest.gamification.inventory import (
    DOUBLE_COINS,
    INSTANT_LEVEL,
    STREAK_FREEZE,
    XP_BOOST,
    ActivePowerup,
    PowerupCollection,
)
from streamquest.gamification.leveling import MAX_LEVEL, clamp_progress, level_from_xp, total_xp_for_level
from streamquest.gamification.outcomes import ActionResult
from streamquest.gamification.xp_service import get_or_create_inventory, get_or_create_progress, sync_unlocked_titles

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShopItem:
    id: str
    category: str
    price: int
    effect_type: str | None = None
    effect_value: float = 0
    duration_hours: int | None = None
    premium_only: bool = False
    limited_stock: int | None = None

    @property
    def is_powerup(self) -> bool:
        return self.category == "powerup"


SHOP_ITEMS: tuple[ShopItem, ...] = (
    # --- Power-ups ---
    ShopItem("xp_boost_1h", "powerup", 50, XP_BOOST, 2, duration_hours=1),
    ShopItem("xp_boost_24h", "powerup", 200, XP_BOOST, 2, duration_hours=24),
    ShopItem("xp_boost_week", "powerup", 1000, XP_BOOST, 3, duration_hours=168),
    ShopItem("streak_freeze_1d", "powerup", 100, STREAK_FREEZE, 1),
    ShopItem("streak_freeze_3d", "powerup", 250, STREAK_FREEZE, 3),
    ShopItem("double_coins_24h", "powerup", 150, DOUBLE_COINS, 2, duration_hours=24),
    ShopItem("instant_level", "powerup", 500, INSTANT_LEVEL, 1),
    # --- Avatar effects ---
    ShopItem("sparkle_effect", "avatar", 200),
    ShopItem("fire_aura", "avatar", 300, premium_only=True),
    ShopItem("rainbow_trail", "avatar", 400, premium_only=True),
    ShopItem("galaxy_aura", "avatar", 1000, premium_only=True),
    # --- Badges ---
    ShopItem("streak_master_badge", "badge", 300),
    ShopItem("whale_badge", "badge", 2000, limited_stock=100),
    ShopItem("og_badge", "badge", 5000, limited_stock=50),
)

SHOP_ITEMS_BY_ID: dict[str, ShopItem] = {item.id: item for item in SHOP_ITEMS}


def _is_premium(progress: UserProgress, now: datetime) -> bool:
    if not progress.is_premium:
        return False
    return progress.premium_expires_at is None or progress.premium_expires_at > now


async def _take_stock(db: AsyncSession, item: ShopItem) -> bool:
    """Decrement the remaining stock of a limited item. False when sold out."""
    result = await db.execute(select(ShopStock).where(ShopStock.item_id == item.id).with_for_update())
    stock = result.scalar_one_or_none()
    if stock is None:
        stock = ShopStock(item_id=item.id, remaining=item.limited_stock or 0)
        db.add(stock)
    if stock.remaining <= 0:
        return False
    stock.remaining -= 1
    return True


async def purchase_item(
    db: AsyncSession,
    user_id: str,
    item_id: str,
    *,
    now: datetime | None = None,
) -> ActionResult:
    """Buy a shop item with coins and apply its effect."""
    now = now or datetime.now(timezone.utc)
    item = SHOP_ITEMS_BY_ID.get(item_id)
    if item is None:
        return ActionResult.fail(outcomes.ITEM_UNAVAILABLE)

    try:
        progress = await get_or_create_progress(db, user_id)
        inventory = await get_or_create_inventory(db, user_id)
        owned = list(inventory.purchased_item_ids or [])

        reason = None
        if not item.is_powerup and item.id in owned:
            reason = outcomes.ITEM_ALREADY_OWNED
        elif item.premium_only and not _is_premium(progress, now):
            reason = outcomes.PREMIUM_REQUIRED
        elif item.effect_type == INSTANT_LEVEL and level_from_xp(progress.xp) + int(item.effect_value) > MAX_LEVEL:
            reason = outcomes.MAX_LEVEL_REACHED
        elif progress.coins < item.price:
            reason = outcomes.COINS_INSUFFICIENT
        elif item.limited_stock is not None and not await _take_stock(db, item):
            reason = outcomes.ITEM_SOLD_OUT
        if reason is not None:
            await db.rollback()
            return ActionResult.fail(reason)

        progress.coins = clamp_progress(progress.coins - item.price)
        progress.updated_at = now
        if item.id not in owned:
            inventory.purchased_item_ids = [*owned, item.id]

        if item.effect_type == INSTANT_LEVEL:
            target_level = level_from_xp(progress.xp) + int(item.effect_value)
            progress.xp = max(progress.xp, total_xp_for_level(target_level))
            progress.level = level_from_xp(progress.xp)
            await sync_unlocked_titles(db, progress)
        elif item.effect_type is not None:
            powerups = PowerupCollection.from_storage(inventory.active_powerups, now)
            expires_at = now + timedelta(hours=item.duration_hours) if item.duration_hours else None
            powerups = powerups.add(
                ActivePowerup(
                    item_id=item.id,
                    type=item.effect_type,
                    value=item.effect_value,
                    activated_at=now,
                    expires_at=expires_at,
                )
            )
            inventory.active_powerups = powerups.to_storage()
        inventory.updated_at = now

        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Purchase of %s failed for %s", item_id, user_id)
        raise

    logger.info("User %s bought %s for %d coins", user_id, item.id, item.price)
    return ActionResult.ok(item_id=item.id, coins=progress.coins, level=progress.level, xp=progress.xp)
