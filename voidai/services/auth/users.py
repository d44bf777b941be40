"""
User Accounts

Creation and lookup of user accounts for password signup and Discord login.
"""

import logging
import random
from typing import Optional

from passlib.context import CryptContext
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from voidai.models.database import User
from voidai.models.shared import PlanType
from voidai.services.database import DatabaseService
from voidai.services.errors import InvalidInput
from voidai.services.payments.plans import daily_credits

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

DEFAULT_AVATAR = "https://cdn-icons-png.flaticon.com/512/2977/2977485.png"

USERNAME_ADJECTIVES = ["void", "cosmic", "stellar", "neon", "cyber", "digital"]
USERNAME_NOUNS = ["panda", "artist", "creator", "maker", "dreamer", "star"]


def get_password_hash(password):
    return pwd_context.hash(password)


def password_verified(plain_password, hashed_password):
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def generate_username() -> str:
    adjective = random.choice(USERNAME_ADJECTIVES)
    noun = random.choice(USERNAME_NOUNS)
    return f"{adjective}_{noun}_{random.randint(0, 9999)}"


def get_user_by_email(database_service: DatabaseService, email: str) -> Optional[User]:
    with database_service.session() as session:
        return session.execute(
            select(User).where(func.lower(User.email) == email.strip().lower())
        ).scalar_one_or_none()


def get_user(database_service: DatabaseService, user_id: str) -> Optional[User]:
    with database_service.session() as session:
        return session.get(User, user_id)


def create_user(
    database_service: DatabaseService,
    email: str,
    password: Optional[str] = None,
    display_name: Optional[str] = None,
    avatar_url: Optional[str] = None,
    discord_id: Optional[str] = None,
    attempts: int = 5,
) -> User:
    """
    Create a free-plan account with a generated username.

    Args:
        database_service: Database to write to
        email: Account email, stored lower-case
        password: Plain password, None for Discord-only accounts
        display_name: Display name, defaults to the username
        avatar_url: Avatar, defaults to the stock avatar
        discord_id: Linked Discord account id
        attempts: Retries when the generated username is taken

    Returns:
        The created User row
    """
    email = email.strip().lower()
    if get_user_by_email(database_service, email) is not None:
        raise InvalidInput("Email already registered")

    password_hash = get_password_hash(password) if password else None
    for _ in range(attempts):
        username = generate_username()
        try:
            with database_service.session() as session:
                user = User(
                    email=email,
                    username=username,
                    password_hash=password_hash,
                    display_name=display_name or username,
                    avatar_url=avatar_url or DEFAULT_AVATAR,
                    plan_type=PlanType.FREE.value,
                    credits=daily_credits(PlanType.FREE),
                    discord_id=discord_id,
                )
                session.add(user)
                session.flush()
            logger.info(f"Created user {user.id} ({username})")
            return user
        except IntegrityError:
            if get_user_by_email(database_service, email) is not None:
                raise InvalidInput("Email already registered")
            logger.warning(f"Username {username} taken, retrying")

    raise InvalidInput("Could not allocate a username, please try again")
