"""Discord OAuth2 client.

Covers the authorization-code flow used for browser login: build the
authorize URL, exchange the callback code, fetch the Discord user.
"""

from urllib.parse import urlencode

import httpx

from medreminder.config import Settings
from medreminder.logging_config import get_logger

logger = get_logger(__name__)

DISCORD_API_BASE = "https://discord.com/api"
DISCORD_SCOPE = "identify"
REQUEST_TIMEOUT = 10.0


class DiscordOAuthError(Exception):
    """Error talking to the Discord OAuth or user API.

    ``reason`` is a short machine-readable slug surfaced to the frontend.
    """

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason


def build_authorize_url(settings: Settings) -> str:
    query = urlencode(
        {
            "client_id": settings.discord_client_id,
            "redirect_uri": settings.discord_redirect_uri,
            "response_type": "code",
            "scope": DISCORD_SCOPE,
        }
    )
    return f"{DISCORD_API_BASE}/oauth2/authorize?{query}"


async def exchange_code(settings: Settings, code: str) -> str:
    """Trade an authorization code for an access token.

    Raises:
        DiscordOAuthError: With reason ``token_exchange_failed``.
    """
    try:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            response = await client.post(
                f"{DISCORD_API_BASE}/oauth2/token",
                data={
                    "client_id": settings.discord_client_id,
                    "client_secret": settings.discord_client_secret,
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": settings.discord_redirect_uri,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
    except httpx.HTTPError as e:
        raise DiscordOAuthError("token_exchange_failed", f"Token request failed: {e}")

    if response.status_code != 200:
        raise DiscordOAuthError(
            "token_exchange_failed",
            f"Discord token endpoint returned {response.status_code}",
        )

    access_token = response.json().get("access_token")
    if not access_token:
        raise DiscordOAuthError("token_exchange_failed", "No access token in response")
    return access_token


async def fetch_discord_user(access_token: str) -> dict:
    """Return the ``/users/@me`` payload for an access token.

    Raises:
        DiscordOAuthError: With reason ``user_fetch_failed``.
    """
    try:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            response = await client.get(
                f"{DISCORD_API_BASE}/users/@me",
                headers={"Authorization": f"Bearer {access_token}"},
            )
    except httpx.HTTPError as e:
        raise DiscordOAuthError("user_fetch_failed", f"User request failed: {e}")

    if response.status_code != 200:
        raise DiscordOAuthError(
            "user_fetch_failed",
            f"Discord user endpoint returned {response.status_code}",
        )

    data = response.json()
    if not data.get("id"):
        raise DiscordOAuthError("user_fetch_failed", "Discord user has no id")
    return data
