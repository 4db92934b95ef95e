"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from fastapi import Request

from streamquest.database import get_session as _get_session
from streamquest.integrations.live_status import LiveStatusClient
from streamquest.redis_client import get_optional_redis

get_db = _get_session


async def get_redis_dep() -> AsyncGenerator[object, None]:
    """Yield the Redis client, or None when it is not configured."""
    yield get_optional_redis()


def get_live_status_client(request: Request) -> LiveStatusClient:
    """Return the live-status client created at startup."""
    return request.app.state.live_status_client
