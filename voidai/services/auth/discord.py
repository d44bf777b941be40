import logging
from traceback import format_exc
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests
from sqlalchemy import select

from config import DISCORD_CLIENT_ID, DISCORD_CLIENT_SECRET
from voidai.models.database import User
from voidai.services.auth.users import create_user, get_user_by_email
from voidai.services.database import DatabaseService
from voidai.services.errors import InvalidInput, ProviderUnavailable

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class DiscordOAuthClient:
    """Discord OAuth2 authorization-code exchange."""

    AUTHORIZE_URL = "https://discord.com/oauth2/authorize"
    TOKEN_URL = "https://discord.com/api/oauth2/token"
    USER_URL = "https://discord.com/api/users/@me"
    AVATAR_URL = "https://cdn.discordapp.com/avatars/{user_id}/{avatar}.png"
    SCOPE = "identify email"

    def __init__(
        self,
        client_id: Optional[str] = DISCORD_CLIENT_ID,
        client_secret: Optional[str] = DISCORD_CLIENT_SECRET,
        timeout: int = 30,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _require_configured(self) -> None:
        if not self.configured:
            raise ProviderUnavailable("Discord login is not configured")

    def authorize_url(self, redirect_uri: str, state: str) -> str:
        self._require_configured()
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": self.SCOPE,
            "state": state,
        }
        return f"{self.AUTHORIZE_URL}?{urlencode(params)}"

    def exchange_code(self, code: str, redirect_uri: str) -> str:
        """
        Exchange an authorization code for an access token.

        Args:
            code: Code from the OAuth redirect
            redirect_uri: Redirect URI used for the authorization request

        Returns:
            Discord access token
        """
        self._require_configured()
        try:
            response = requests.post(
                self.TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": redirect_uri,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Discord token exchange failed: {str(e)}\n{format_exc()}")
            raise ProviderUnavailable("Discord is unavailable")

        if not response.ok:
            logger.warning(f"Discord token exchange rejected: {response.text}")
            raise InvalidInput("Discord authorization failed")
        return response.json()["access_token"]

    def fetch_user(self, access_token: str) -> Dict[str, Any]:
        try:
            response = requests.get(
                self.USER_URL,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to get Discord user: {str(e)}\n{format_exc()}")
            raise ProviderUnavailable("Failed to get Discord user")
        return response.json()

    def avatar_url(self, discord_user: Dict[str, Any]) -> Optional[str]:
        if not discord_user.get("avatar"):
            return None
        return self.AVATAR_URL.format(
            user_id=discord_user["id"], avatar=discord_user["avatar"]
        )


def find_or_create_discord_user(
    database_service: DatabaseService,
    discord_user: Dict[str, Any],
    avatar_url: Optional[str] = None,
) -> User:
    """
    Resolve a Discord identity to an account.

    A known Discord id logs into its account; an email matching an existing
    account links Discord to it; anything else creates a new account.
    """
    discord_id = str(discord_user["id"])
    with database_service.session() as session:
        user = session.execute(
            select(User).where(User.discord_id == discord_id)
        ).scalar_one_or_none()
        if user is not None:
            return user

    email = discord_user.get("email")
    if not email:
        raise InvalidInput("Discord account has no email address")

    existing = get_user_by_email(database_service, email)
    if existing is not None:
        with database_service.session() as session:
            user = session.get(User, existing.id)
            user.discord_id = discord_id
        logger.info(f"Linked Discord account {discord_id} to user {existing.id}")
        return user

    return create_user(
        database_service,
        email=email,
        display_name=discord_user.get("global_name") or discord_user.get("username"),
        avatar_url=avatar_url,
        discord_id=discord_id,
    )
