"""FastAPI authentication dependencies."""

from __future__ import annotations

from dataclasses import dataclass

import jwt
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from streamquest.auth.jwt import verify_token
from streamquest.exceptions import ForbiddenError, UnauthorizedError

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    id: str
    is_admin: bool = False


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),  # noqa: B008
) -> CurrentUser:
    """Verify the bearer token and return the caller. Raises 401 on failure."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Missing bearer token")
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise UnauthorizedError(str(e)) from e
    return CurrentUser(id=str(payload["sub"]), is_admin=bool(payload.get("is_admin", False)))


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:  # noqa: B008
    """Same as get_current_user but additionally requires the admin claim."""
    if not user.is_admin:
        raise ForbiddenError("Admin privileges required")
    return user
