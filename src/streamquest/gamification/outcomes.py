"""Structured results returned by progression operations.

Business-rule rejections are values, not exceptions: every result carries a
success flag and, on failure, a stable reason code.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

# --- Reward reasons ---
SOURCE_NOT_FOUND = "source_not_found"
ALREADY_REWARDED = "already_rewarded"
NOT_COMPLETED = "not_completed"
COOLDOWN_NOT_REACHED = "cooldown_not_reached"
DAILY_LIMIT_REACHED = "daily_limit_reached"

# --- Challenge reasons ---
INVALID_CHALLENGE = "invalid_challenge"
ALREADY_CLAIMED = "already_claimed"
CHALLENGE_NOT_COMPLETED = "challenge_not_completed"

# --- Profile / shop / admin reasons ---
USER_NOT_FOUND = "user_not_found"
TITLE_LOCKED = "title_locked"
ITEM_UNAVAILABLE = "item_unavailable"
ITEM_ALREADY_OWNED = "item_already_owned"
PREMIUM_REQUIRED = "premium_required"
COINS_INSUFFICIENT = "coins_insufficient"
ITEM_SOLD_OUT = "item_sold_out"
INVALID_DURATION = "invalid_duration"
INVALID_LEVEL = "invalid_level"
MAX_LEVEL_REACHED = "max_level_reached"
INTEGRATION_NOT_FOUND = "integration_not_found"


@dataclass
class StreakOutcome:
    current_streak: int
    longest_streak: int
    last_checkin: datetime | None
    freeze_used: bool = False
    consumed_freeze_uses: int = 0
    remaining_freeze_uses: int = 0
    reset_occurred: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["last_checkin"] = self.last_checkin.isoformat() if self.last_checkin else None
        return data


@dataclass
class RewardOutcome:
    awarded: bool
    reason: str | None = None
    xp: int = 0
    coins: int = 0
    achievements: list[str] = field(default_factory=list)
    streak: StreakOutcome | None = None
    level: int | None = None
    leveled_up: bool = False

    @classmethod
    def rejected(cls, reason: str) -> RewardOutcome:
        return cls(awarded=False, reason=reason)

    def to_dict(self) -> dict[str, Any]:
        return {
            "awarded": self.awarded,
            "reason": self.reason,
            "xp": self.xp,
            "coins": self.coins,
            "achievements": list(self.achievements),
            "streak": self.streak.to_dict() if self.streak else None,
            "level": self.level,
            "leveled_up": self.leveled_up,
        }


@dataclass
class ActionResult:
    """Generic success/failure result for claim, shop, profile and admin operations."""

    success: bool
    reason: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, **data: Any) -> ActionResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, reason: str) -> ActionResult:
        return cls(success=False, reason=reason)

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "reason": self.reason, **self.data}
