"""Liveness, readiness and version endpoints.

Only the database gates readiness. Redis carries best-effort level-up and
achievement notifications, and the live-status provider is used on demand,
so both are reported without failing the probe.
"""

from fastapi import APIRouter, Depends, Response, status
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from streamquest.config import get_settings
from streamquest.database import get_session
from streamquest.dependencies import get_live_status_client
from streamquest.integrations.live_status import LiveStatusClient
from streamquest.redis_client import get_optional_redis

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: returns 200 if the process is alive."""
    return {"status": "healthy"}


async def _redis_check() -> str:
    redis = get_optional_redis()
    if redis is None:
        return "disabled"
    try:
        await redis.ping()
    except (RedisError, OSError) as exc:
        return f"unavailable: {exc}"
    return "ok"


@router.get("/ready")
async def readiness(
    response: Response,
    db: AsyncSession = Depends(get_session),  # noqa: B008
    live_client: LiveStatusClient = Depends(get_live_status_client),  # noqa: B008
) -> dict[str, object]:
    try:
        await db.execute(text("SELECT 1"))
        database = "ok"
    except (SQLAlchemyError, OSError) as exc:
        database = f"error: {exc}"

    ready = database == "ok"
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {
        "status": "ready" if ready else "unavailable",
        "checks": {
            "database": database,
            "redis": await _redis_check(),
            "live_status": "configured" if live_client.configured else "not_configured",
        },
    }


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
