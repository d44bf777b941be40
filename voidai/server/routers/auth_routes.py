import logging
from datetime import datetime, timedelta, timezone
from traceback import format_exc
from typing import Annotated, Optional

import jwt
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jwt.exceptions import InvalidTokenError

from config import AUTH_JWT_KEY, CALLBACK_BASE_URL
from voidai.models.database import User
from voidai.models.users import (
    DiscordAuthUrlResponse,
    SignupRequest,
    Token,
    TokenData,
    UserRecord,
)
from voidai.server.dependencies import Database, get_discord_client
from voidai.services.auth.discord import (
    DiscordOAuthClient,
    find_or_create_discord_user,
)
from voidai.services.auth.users import (
    create_user,
    get_user,
    get_user_by_email,
    password_verified,
)
from voidai.services.errors import Forbidden, InvalidInput, VoidAIError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create a router for authentication operations
auth_router = APIRouter()

# JWT configuration
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60
DISCORD_STATE_EXPIRE_MINUTES = 10
DISCORD_STATE_PURPOSE = "discord_oauth_state"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")
optional_oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/auth/token", auto_error=False
)


def create_access_token(data: dict, expires_delta: timedelta | None = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=15)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, AUTH_JWT_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def issue_token(user: User) -> Token:
    access_token_expires = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": user.id}, expires_delta=access_token_expires
    )
    return Token(access_token=access_token, token_type="bearer")


def _decode_token(token: str) -> TokenData:
    payload = jwt.decode(token, AUTH_JWT_KEY, algorithms=[ALGORITHM])
    return TokenData(user_id=payload.get("sub"))


async def _get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)], database_service: Database
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        token_data = _decode_token(token)
        if token_data.user_id is None:
            logger.error("No user id found in token")
            raise credentials_exception
    except InvalidTokenError:
        logger.error(f"Invalid token error\n{format_exc()}")
        raise credentials_exception
    user = get_user(database_service, token_data.user_id)
    if user is None:
        logger.error(f"User not found: {token_data.user_id}")
        raise credentials_exception
    return user


async def get_current_user(
    current_user: Annotated[User, Depends(_get_current_user)],
) -> User:
    if current_user.is_banned:
        logger.warning(f"Banned user attempted access: {current_user.id}")
        raise Forbidden("This account has been banned")
    return current_user


async def get_optional_user(
    token: Annotated[Optional[str], Depends(optional_oauth2_scheme)],
    database_service: Database,
) -> Optional[User]:
    """The caller if a valid token was sent, otherwise None."""
    if not token:
        return None
    try:
        token_data = _decode_token(token)
    except InvalidTokenError:
        return None
    if token_data.user_id is None:
        return None
    user = get_user(database_service, token_data.user_id)
    if user is None or user.is_banned:
        return None
    return user


async def get_current_owner(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    if not current_user.is_owner:
        raise Forbidden("Administrator access required")
    return current_user


@auth_router.post("/signup", response_model=Token)
async def signup(request: SignupRequest, database_service: Database) -> Token:
    """Create a free-plan account and log it in."""
    user = create_user(database_service, email=request.email, password=request.password)
    return issue_token(user)


@auth_router.post("/token")
async def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    database_service: Database,
) -> Token:
    # The OAuth2 form's username field carries the account email
    user = get_user_by_email(database_service, form_data.username)
    if not user or not password_verified(form_data.password, user.password_hash):
        logger.error(f"Failed login attempt for user: {form_data.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if user.is_banned:
        raise Forbidden("This account has been banned")

    logger.info(f"User logged in: {user.id}")
    return issue_token(user)


@auth_router.post("/token/refresh", response_model=Token)
async def refresh_access_token(
    current_user: Annotated[User, Depends(get_current_user)],
) -> Token:
    """
    Refresh an existing valid JWT token with a new expiration time.

    Args:
        current_user: User from the validated JWT token

    Returns:
        Token: New JWT token with fresh expiration time
    """
    try:
        token = issue_token(current_user)
        logger.info(f"Token refreshed successfully for user: {current_user.id}")
        return token

    except Exception as e:
        logger.error(
            f"Error refreshing token for user {current_user.id}: {str(e)}\n{format_exc()}"
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to refresh token",
        )


@auth_router.get("/users/me", response_model=UserRecord)
async def get_users_me(
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Get current user information."""
    return UserRecord.model_validate(current_user)


def _discord_redirect_uri() -> str:
    return f"{CALLBACK_BASE_URL}/api/auth/discord/callback"


@auth_router.get("/discord", response_model=DiscordAuthUrlResponse)
async def discord_login(
    discord: Annotated[DiscordOAuthClient, Depends(get_discord_client)],
) -> DiscordAuthUrlResponse:
    """Authorize URL for Discord login, carrying a signed state token."""
    state = create_access_token(
        {"purpose": DISCORD_STATE_PURPOSE},
        expires_delta=timedelta(minutes=DISCORD_STATE_EXPIRE_MINUTES),
    )
    return DiscordAuthUrlResponse(
        url=discord.authorize_url(_discord_redirect_uri(), state)
    )


@auth_router.get("/discord/callback", response_model=Token)
async def discord_callback(
    code: str,
    state: str,
    database_service: Database,
    discord: Annotated[DiscordOAuthClient, Depends(get_discord_client)],
) -> Token:
    """Complete Discord login and issue a JWT for the linked account."""
    try:
        payload = jwt.decode(state, AUTH_JWT_KEY, algorithms=[ALGORITHM])
    except InvalidTokenError:
        raise InvalidInput("Invalid or expired login state")
    if payload.get("purpose") != DISCORD_STATE_PURPOSE:
        raise InvalidInput("Invalid or expired login state")

    try:
        access_token = discord.exchange_code(code, _discord_redirect_uri())
        discord_user = discord.fetch_user(access_token)
        user = find_or_create_discord_user(
            database_service, discord_user, discord.avatar_url(discord_user)
        )
    except VoidAIError:
        raise
    except Exception as e:
        logger.error(f"Discord login failed: {str(e)}\n{format_exc()}")
        raise HTTPException(status_code=500, detail="Discord login failed")

    if user.is_banned:
        raise Forbidden("This account has been banned")
    logger.info(f"User logged in with Discord: {user.id}")
    return issue_token(user)
