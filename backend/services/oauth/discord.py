"""Discord OAuth2 client.

Each network step returns a small result value instead of raising so the
callback flow can route failures without exception handling.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx

from core import settings

logger = logging.getLogger(__name__)

DISCORD_SCOPES = ("identify", "email")


@dataclass(frozen=True)
class DiscordProfile:
    id: str
    username: str
    avatar: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class TokenExchangeResult:
    access_token: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return bool(self.access_token)


@dataclass(frozen=True)
class ProfileFetchResult:
    profile: DiscordProfile | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.profile is not None


def parse_discord_profile(payload: Any) -> DiscordProfile | None:
    """Build a profile from the ``/users/@me`` payload, or None without an id.

    An email Discord reports as unverified is ignored so it can never be
    used to take over a local account.
    """
    if not isinstance(payload, dict):
        return None
    discord_id = payload.get("id")
    if not discord_id:
        return None
    email = payload.get("email")
    if payload.get("verified") is False or not isinstance(email, str) or not email.strip():
        email = None
    avatar = payload.get("avatar")
    return DiscordProfile(
        id=str(discord_id),
        username=str(payload.get("username") or ""),
        avatar=avatar if isinstance(avatar, str) else None,
        email=email.strip() if email else None,
    )


class DiscordOAuthClient:
    """Minimal authorization-code client for Discord."""

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        api_base_url: str | None = None,
        authorize_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.api_base_url = (api_base_url or settings.discord_api_base_url).rstrip("/")
        self.authorize_endpoint = authorize_url or settings.discord_authorize_url
        self.timeout = timeout if timeout is not None else settings.discord_timeout_seconds
        self.transport = transport

    def authorize_url(self) -> str:
        query = urlencode(
            {
                "client_id": self.client_id,
                "redirect_uri": self.redirect_uri,
                "response_type": "code",
                "scope": " ".join(DISCORD_SCOPES),
            }
        )
        return f"{self.authorize_endpoint}?{query}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def exchange_code(self, code: str) -> TokenExchangeResult:
        form = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
        }
        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.api_base_url}/oauth2/token",
                    data=form,
                    headers={"Accept": "application/json"},
                )
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Discord token exchange failed: %s", exc)
            return TokenExchangeResult(error=str(exc))

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            error = payload.get("error") if isinstance(payload, dict) else None
            logger.warning(
                "Discord token exchange returned no access token (status=%s, error=%s)",
                response.status_code,
                error,
            )
            return TokenExchangeResult(error=str(error or "missing_access_token"))
        return TokenExchangeResult(access_token=str(access_token))

    async def fetch_profile(self, access_token: str) -> ProfileFetchResult:
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.api_base_url}/users/@me",
                    headers={"Authorization": f"Bearer {access_token}"},
                )
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Discord profile fetch failed: %s", exc)
            return ProfileFetchResult(error=str(exc))

        profile = parse_discord_profile(payload)
        if profile is None:
            logger.warning(
                "Discord profile response had no user id (status=%s)",
                response.status_code,
            )
            return ProfileFetchResult(error="missing_user_id")
        return ProfileFetchResult(profile=profile)


_cached_discord_client: DiscordOAuthClient | None = None


def get_discord_client() -> DiscordOAuthClient:
    """Singleton accessor for the configured Discord client."""
    global _cached_discord_client
    if _cached_discord_client is None:
        _cached_discord_client = DiscordOAuthClient(
            client_id=settings.discord_client_id,
            client_secret=settings.discord_client_secret,
            redirect_uri=settings.discord_redirect_uri,
        )
    return _cached_discord_client


def set_discord_client(client: DiscordOAuthClient | None) -> None:
    """Override the cached Discord client (primarily for tests)."""
    global _cached_discord_client
    _cached_discord_client = client
