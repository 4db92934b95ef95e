"""Active power-up collection stored on the user's inventory row.

The stored document is versioned::

    {"version": 1, "items": [{"itemId", "type", "value", "activatedAt", "expiresAt"}]}

Version 0 is the legacy bare list of items; ``from_storage`` migrates it.
Expired entries and entries with a non-positive value are dropped on load.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

POWERUP_STORAGE_VERSION = 1

XP_BOOST = "xp_boost"
DOUBLE_COINS = "double_coins"
STREAK_FREEZE = "streak_freeze"
INSTANT_LEVEL = "instant_level"


def _parse_ts(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class ActivePowerup:
    item_id: str
    type: str
    value: float
    activated_at: datetime | None = None
    expires_at: datetime | None = None

    def is_active(self, now: datetime) -> bool:
        if self.value <= 0:
            return False
        return self.expires_at is None or self.expires_at > now

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ActivePowerup | None:
        try:
            value = float(raw.get("value", 0))
        except (TypeError, ValueError):
            return None
        if not raw.get("type"):
            return None
        return cls(
            item_id=str(raw.get("itemId", "")),
            type=str(raw["type"]),
            value=value,
            activated_at=_parse_ts(raw.get("activatedAt")),
            expires_at=_parse_ts(raw.get("expiresAt")),
        )

    def to_dict(self) -> dict[str, Any]:
        value: float | int = int(self.value) if float(self.value).is_integer() else self.value
        return {
            "itemId": self.item_id,
            "type": self.type,
            "value": value,
            "activatedAt": self.activated_at.isoformat() if self.activated_at else None,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
        }


@dataclass(frozen=True)
class FreezeConsumption:
    collection: PowerupCollection
    consumed: int
    remaining: int


class PowerupCollection:
    """Immutable list of currently active power-ups."""

    def __init__(self, items: list[ActivePowerup] | None = None) -> None:
        self.items: tuple[ActivePowerup, ...] = tuple(items or ())

    def __iter__(self):  # type: ignore[no-untyped-def]
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    @classmethod
    def from_storage(cls, raw: Any, now: datetime) -> PowerupCollection:
        """Load and migrate a stored document, pruning inactive entries."""
        if raw is None:
            entries: list[Any] = []
        elif isinstance(raw, list):
            entries = raw
        elif isinstance(raw, dict):
            entries = raw.get("items") or []
        else:
            entries = []

        items = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            powerup = ActivePowerup.from_dict(entry)
            if powerup is not None and powerup.is_active(now):
                items.append(powerup)
        return cls(items)

    def to_storage(self) -> dict[str, Any]:
        return {
            "version": POWERUP_STORAGE_VERSION,
            "items": [item.to_dict() for item in self.items],
        }

    def add(self, powerup: ActivePowerup) -> PowerupCollection:
        return PowerupCollection([*self.items, powerup])

    def multiplier(self, powerup_type: str) -> float:
        """Strongest active boost of a type wins; boosts never stack."""
        best = 1.0
        for item in self.items:
            if item.type == powerup_type and item.value > best:
                best = item.value
        return best

    def freeze_charges(self) -> int:
        return sum(int(item.value) for item in self.items if item.type == STREAK_FREEZE)

    def consume_freezes(self, needed: int) -> FreezeConsumption:
        """Consume up to ``needed`` streak-freeze charges, soonest expiry first.

        Entries without an expiry are used last. A multi-charge entry can be
        partially consumed; an entry left with zero charges is removed.
        """
        freezes = [(idx, item) for idx, item in enumerate(self.items) if item.type == STREAK_FREEZE]
        freezes.sort(key=lambda pair: (pair[1].expires_at is None, pair[1].expires_at or datetime.max))

        remaining_needed = max(0, needed)
        updated: dict[int, ActivePowerup | None] = {}
        for idx, item in freezes:
            if remaining_needed == 0:
                break
            charges = int(item.value)
            if charges <= 0:
                continue
            used = min(charges, remaining_needed)
            remaining_needed -= used
            left = charges - used
            updated[idx] = replace(item, value=left) if left > 0 else None

        items = []
        for idx, item in enumerate(self.items):
            if idx in updated:
                if updated[idx] is not None:
                    items.append(updated[idx])
            else:
                items.append(item)

        collection = PowerupCollection(items)
        consumed = max(0, needed) - remaining_needed
        return FreezeConsumption(
            collection=collection,
            consumed=consumed,
            remaining=collection.freeze_charges(),
        )


def apply_multiplier(base: int, multiplier: float) -> int:
    """Scale a base reward, rounding halves up."""
    return max(0, math.floor(base * multiplier + 0.5))
