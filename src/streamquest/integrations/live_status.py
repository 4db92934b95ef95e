"""Live-status client for the Twitch Helix API.

Uses an app access token (client-credentials grant) cached in a
``TokenCache`` owned by the client. The cache takes an injectable clock so
expiry can be tested without sleeping.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx
import structlog

from streamquest.config import Settings

logger = structlog.get_logger()

TOKEN_SAFETY_WINDOW_SECONDS = 60

NOT_CONFIGURED = "live_status_not_configured"
TOKEN_ERROR = "live_status_token_error"
REQUEST_ERROR = "live_status_request_error"


class LiveStatusError(Exception):
    """The live-status provider could not be queried."""

    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(message or code)
        self.code = code


@dataclass(frozen=True)
class StreamInfo:
    user_id: str
    user_login: str
    user_name: str
    viewer_count: int
    started_at: datetime | None
    title: str = ""

    @classmethod
    def from_helix(cls, raw: dict[str, Any]) -> StreamInfo:
        started = raw.get("started_at")
        return cls(
            user_id=str(raw.get("user_id", "")),
            user_login=str(raw.get("user_login", "")),
            user_name=str(raw.get("user_name", "")),
            viewer_count=int(raw.get("viewer_count") or 0),
            started_at=datetime.fromisoformat(started.replace("Z", "+00:00")) if started else None,
            title=str(raw.get("title", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_login": self.user_login,
            "user_name": self.user_name,
            "viewer_count": self.viewer_count,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "title": self.title,
        }


class TokenCache:
    """Single cached access token with an expiry on an injectable clock."""

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        safety_window: float = TOKEN_SAFETY_WINDOW_SECONDS,
    ) -> None:
        self._clock = clock
        self._safety_window = safety_window
        self._token: str | None = None
        self._expires_at = 0.0

    def get(self) -> str | None:
        if self._token and self._expires_at - self._safety_window > self._clock():
            return self._token
        return None

    def set(self, token: str, expires_in: float) -> None:
        self._token = token
        self._expires_at = self._clock() + max(0.0, expires_in)

    def clear(self) -> None:
        self._token = None
        self._expires_at = 0.0


class LiveStatusClient:
    """Query whether an external streaming account is currently live."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        token_url: str = "https://id.twitch.tv/oauth2/token",
        api_base_url: str = "https://api.twitch.tv/helix",
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
        token_cache: TokenCache | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.api_base_url = api_base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None
        self.token_cache = token_cache or TokenCache()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> LiveStatusClient:
        return cls(
            settings.twitch_client_id,
            settings.twitch_client_secret,
            token_url=settings.twitch_token_url,
            api_base_url=settings.twitch_api_base_url,
            timeout=settings.twitch_timeout_seconds,
            **kwargs,
        )

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def get_app_token(self) -> str:
        if not self.configured:
            raise LiveStatusError(NOT_CONFIGURED)

        cached = self.token_cache.get()
        if cached:
            return cached

        try:
            response = await self._http.post(
                self.token_url,
                params={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "client_credentials",
                },
            )
            body = response.json() if response.content else {}
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("live_status_token_failed", error=str(exc))
            raise LiveStatusError(TOKEN_ERROR, str(exc)) from exc

        if response.status_code >= 400 or not body.get("access_token"):
            logger.warning("live_status_token_rejected", status=response.status_code)
            raise LiveStatusError(TOKEN_ERROR, f"HTTP {response.status_code}")

        self.token_cache.set(str(body["access_token"]), float(body.get("expires_in") or 0))
        return str(body["access_token"])

    async def get_stream(self, external_user_id: str) -> StreamInfo | None:
        """Return the live stream of an account, or None when offline."""
        token = await self.get_app_token()
        try:
            response = await self._http.get(
                f"{self.api_base_url}/streams",
                params={"user_id": external_user_id},
                headers={"Client-Id": self.client_id, "Authorization": f"Bearer {token}"},
            )
            body = response.json() if response.content else {}
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("live_status_request_failed", external_user_id=external_user_id, error=str(exc))
            raise LiveStatusError(REQUEST_ERROR, str(exc)) from exc

        if response.status_code == 401:
            self.token_cache.clear()
        if response.status_code >= 400:
            raise LiveStatusError(REQUEST_ERROR, f"HTTP {response.status_code}")

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list) or not data:
            return None
        stream = data[0]
        if stream.get("type", "live") != "live":
            return None
        return StreamInfo.from_helix(stream)
