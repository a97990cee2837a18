"""External identity providers."""

from .discord import (
    DiscordOAuthClient,
    DiscordProfile,
    ProfileFetchResult,
    TokenExchangeResult,
    get_discord_client,
    parse_discord_profile,
    set_discord_client,
)
from .linking import (
    CallbackResult,
    LinkOutcome,
    OAuthError,
    ResolveUserResult,
    available_username,
    callback_redirect_url,
    complete_discord_login,
    resolve_discord_user,
)

__all__ = [
    "DiscordOAuthClient",
    "DiscordProfile",
    "ProfileFetchResult",
    "TokenExchangeResult",
    "get_discord_client",
    "parse_discord_profile",
    "set_discord_client",
    "CallbackResult",
    "LinkOutcome",
    "OAuthError",
    "ResolveUserResult",
    "available_username",
    "callback_redirect_url",
    "complete_discord_login",
    "resolve_discord_user",
]
