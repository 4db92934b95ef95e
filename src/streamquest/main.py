"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from streamquest.config import get_settings
from streamquest.database import close_db, init_db
from streamquest.gamification.admin_router import router as admin_router
from streamquest.gamification.router import router as progression_router
from streamquest.health.router import router as health_router
from streamquest.integrations.live_status import LiveStatusClient
from streamquest.middleware import setup_middleware
from streamquest.redis_client import close_redis, init_redis


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)
    app.state.live_status_client = LiveStatusClient.from_settings(settings)

    yield

    await app.state.live_status_client.aclose()
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="StreamQuest Progression API",
        description="Rewards, streaks, levels and weekly challenges for StreamQuest",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(progression_router)
    app.include_router(admin_router)

    return app


app = create_app()
