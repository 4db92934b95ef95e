"""Admin-only progression overrides."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from streamquest.auth.dependencies import CurrentUser, require_admin
from streamquest.dependencies import get_db
from streamquest.gamification import admin_service
from streamquest.gamification.schemas import ActionResponse, SetLevelRequest, SetPremiumRequest, SetValueRequest

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


@router.put("/users/{user_id}/xp", response_model=ActionResponse)
async def set_xp(
    user_id: str,
    body: SetValueRequest,
    _admin: CurrentUser = Depends(require_admin),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> ActionResponse:
    result = await admin_service.set_user_xp(db, user_id, body.value)
    return ActionResponse(**result.to_dict())


@router.put("/users/{user_id}/coins", response_model=ActionResponse)
async def set_coins(
    user_id: str,
    body: SetValueRequest,
    _admin: CurrentUser = Depends(require_admin),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> ActionResponse:
    result = await admin_service.set_user_coins(db, user_id, body.value)
    return ActionResponse(**result.to_dict())


@router.put("/users/{user_id}/level", response_model=ActionResponse)
async def set_level(
    user_id: str,
    body: SetLevelRequest,
    _admin: CurrentUser = Depends(require_admin),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> ActionResponse:
    result = await admin_service.set_user_level(db, user_id, body.level)
    return ActionResponse(**result.to_dict())


@router.post("/users/{user_id}/reset", response_model=ActionResponse)
async def reset_progress(
    user_id: str,
    _admin: CurrentUser = Depends(require_admin),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> ActionResponse:
    result = await admin_service.reset_user_progress(db, user_id)
    return ActionResponse(**result.to_dict())


@router.put("/users/{user_id}/premium", response_model=ActionResponse)
async def set_premium(
    user_id: str,
    body: SetPremiumRequest,
    _admin: CurrentUser = Depends(require_admin),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> ActionResponse:
    result = await admin_service.set_premium_status(db, user_id, body.is_premium, body.duration)
    return ActionResponse(**result.to_dict())
