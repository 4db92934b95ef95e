"""Progression API endpoints: rewards, weekly challenges, profile, shop and live XP."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from streamquest.auth.dependencies import CurrentUser, get_current_user
from streamquest.config import get_settings
from streamquest.dependencies import get_db, get_live_status_client, get_redis_dep
from streamquest.gamification.challenge_service import claim_challenge, get_weekly_challenges
from streamquest.gamification.live_service import check_live_status, update_live_settings
from streamquest.gamification.reward_service import apply_reward
from streamquest.gamification.schemas import (
    ActionResponse,
    ApplyRewardRequest,
    ClaimChallengeRequest,
    LiveSettingsRequest,
    ProgressResponse,
    PurchaseRequest,
    RewardResponse,
    SetTitleRequest,
    WeeklyChallengesResponse,
)
from streamquest.gamification.shop_service import purchase_item
from streamquest.gamification.xp_service import get_progress_summary, set_active_title
from streamquest.integrations.live_status import LiveStatusClient

router = APIRouter(prefix="/api/v1", tags=["Progression"])


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------


@router.post("/rewards/apply", response_model=RewardResponse)
async def apply_reward_endpoint(
    body: ApplyRewardRequest,
    user: CurrentUser = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
    redis: object = Depends(get_redis_dep),  # noqa: B008
) -> RewardResponse:
    """Grant the reward for a completed task, goal or event. Idempotent."""
    outcome = await apply_reward(db, user.id, body.source_type, str(body.source_id), redis=redis)
    return RewardResponse(**outcome.to_dict())


# ---------------------------------------------------------------------------
# Weekly challenges
# ---------------------------------------------------------------------------


@router.get("/challenges/weekly", response_model=WeeklyChallengesResponse)
async def weekly_challenges(
    user: CurrentUser = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> WeeklyChallengesResponse:
    data = await get_weekly_challenges(db, user.id)
    return WeeklyChallengesResponse(**data)


@router.post("/challenges/weekly/claim", response_model=ActionResponse)
async def claim_weekly_challenge(
    body: ClaimChallengeRequest,
    user: CurrentUser = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
    redis: object = Depends(get_redis_dep),  # noqa: B008
) -> ActionResponse:
    result = await claim_challenge(db, user.id, body.challenge_id, redis=redis)
    return ActionResponse(**result.to_dict())


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@router.get("/progress", response_model=ProgressResponse)
async def progress_summary(
    user: CurrentUser = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> ProgressResponse:
    data = await get_progress_summary(db, user.id)
    return ProgressResponse(**data)


@router.put("/progress/title", response_model=ActionResponse)
async def choose_title(
    body: SetTitleRequest,
    user: CurrentUser = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> ActionResponse:
    result = await set_active_title(db, user.id, body.title_id)
    return ActionResponse(**result.to_dict())


# ---------------------------------------------------------------------------
# Shop
# ---------------------------------------------------------------------------


@router.post("/shop/purchase", response_model=ActionResponse)
async def purchase(
    body: PurchaseRequest,
    user: CurrentUser = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> ActionResponse:
    result = await purchase_item(db, user.id, body.item_id)
    return ActionResponse(**result.to_dict())


# ---------------------------------------------------------------------------
# Live streaming
# ---------------------------------------------------------------------------


@router.post("/live/check", response_model=ActionResponse)
async def live_check(
    user: CurrentUser = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
    client: LiveStatusClient = Depends(get_live_status_client),  # noqa: B008
) -> ActionResponse:
    """Check the caller's live status now and pay any passive XP owed."""
    settings = get_settings()
    result = await check_live_status(
        db,
        client,
        user.id,
        max_hours=settings.reward_live_max_hours,
        default_xp_per_hour=settings.reward_live_default_xp_per_hour,
    )
    return ActionResponse(**result.to_dict())


@router.put("/live/settings", response_model=ActionResponse)
async def live_settings(
    body: LiveSettingsRequest,
    user: CurrentUser = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> ActionResponse:
    result = await update_live_settings(
        db,
        user.id,
        auto_xp_on_live=body.auto_xp_on_live,
        xp_per_hour_live=body.xp_per_hour_live,
    )
    return ActionResponse(**result.to_dict())
