"""Pydantic request/response schemas for the progression API."""

from __future__ import annotations

import uuid
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from streamquest.gamification.leveling import MAX_LEVEL, MAX_PROGRESS_INT


# --- Rewards ---


class ApplyRewardRequest(BaseModel):
    source_type: Literal["task", "goal", "event"]
    source_id: uuid.UUID


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int
    last_checkin: str | None
    freeze_used: bool
    consumed_freeze_uses: int
    remaining_freeze_uses: int
    reset_occurred: bool


class RewardResponse(BaseModel):
    awarded: bool
    reason: str | None = None
    xp: int = 0
    coins: int = 0
    achievements: list[str] = []
    streak: StreakResponse | None = None
    level: int | None = None
    leveled_up: bool = False


# --- Weekly challenges ---


class ChallengeReward(BaseModel):
    xp: int
    coins: int


class ChallengeResponse(BaseModel):
    id: str
    type: str
    title: str
    description: str
    target: int
    reward: ChallengeReward
    difficulty: str
    claimedAt: str | None = None  # noqa: N815
    current: int = 0
    completed: bool = False


class WeeklyChallengesResponse(BaseModel):
    week_key: str
    start_date: str
    end_date: str
    challenges: list[ChallengeResponse]


class ClaimChallengeRequest(BaseModel):
    challenge_id: str = Field(min_length=1, max_length=64)


class ActionResponse(BaseModel):
    """Generic result: success flag, reason code on failure, plus payload fields."""

    model_config = {"extra": "allow"}

    success: bool
    reason: str | None = None


# --- Progress / profile ---


class LevelInfoResponse(BaseModel):
    level: int
    xp_into_level: int
    xp_for_level: int
    next_level: int
    next_level_total_xp: int
    progress_percent: float


class ProgressResponse(BaseModel):
    user_id: str
    xp: int
    level: int
    coins: int
    weekly_xp: int
    monthly_xp: int
    achievements: list[str]
    unlocked_titles: list[str]
    active_title: str
    is_premium: bool
    premium_expires_at: str | None
    current_streak: int
    longest_streak: int
    level_info: LevelInfoResponse


class SetTitleRequest(BaseModel):
    title_id: str = Field(min_length=1, max_length=64)


# --- Shop ---


class PurchaseRequest(BaseModel):
    item_id: str = Field(min_length=1, max_length=64)


# --- Live streaming ---


class LiveSettingsRequest(BaseModel):
    auto_xp_on_live: bool | None = None
    xp_per_hour_live: int | None = Field(default=None, ge=1, le=500)


# --- Admin ---


class SetValueRequest(BaseModel):
    value: int = Field(ge=0, le=MAX_PROGRESS_INT)


class SetLevelRequest(BaseModel):
    level: int = Field(ge=1, le=MAX_LEVEL)


class SetPremiumRequest(BaseModel):
    is_premium: bool
    duration: int | Literal["lifetime"] | None = None

    @field_validator("duration")
    @classmethod
    def check_duration(cls, v: int | str | None) -> int | str | None:
        if isinstance(v, int) and not 1 <= v <= 3650:
            msg = "duration must be between 1 and 3650 days"
            raise ValueError(msg)
        return v
