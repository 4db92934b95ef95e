"""Bearer token verification.

Tokens are issued by the identity service and signed with a shared secret
(HS256 by default). Claims used here: ``sub`` (user id) and ``is_admin``.
"""

from __future__ import annotations

from typing import Any

import jwt

from streamquest.config import get_settings


def verify_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a bearer token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or has no subject.
    """
    settings = get_settings()
    options = {"require": ["sub"]}
    payload: dict[str, Any] = jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
        options=options if settings.jwt_audience else {**options, "verify_aud": False},
    )
    if not str(payload.get("sub") or "").strip():
        msg = "Token has no subject"
        raise jwt.InvalidTokenError(msg)
    return payload
