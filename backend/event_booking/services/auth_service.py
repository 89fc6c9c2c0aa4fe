"""
Authentication service handling user registration and login.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from event_booking.core.exceptions import AuthenticationError, ConflictError
from event_booking.core.logging import get_logger
from event_booking.core.security import hash_password, verify_password, create_token_for
from event_booking.db.base import utcnow
from event_booking.models.user import User
from event_booking.schemas.user import UserCreate, UserLogin

logger = get_logger(__name__)


async def _email_taken(db: AsyncSession, email: str) -> bool:
    result = await db.execute(select(User.id).where(User.email == email))
    return result.first() is not None


async def register_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Register a new user with hashed password.
    Raises ConflictError if the email already exists.
    """
    email = user_data.email.lower()
    if await _email_taken(db, email):
        logger.warning("registration_failed", reason="email_exists", email=email)
        raise ConflictError("User with this email already exists")

    user = User(
        email=email,
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        hashed_password=hash_password(user_data.password),
        role=user_data.role,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        # a concurrent registration won the unique index on email
        logger.warning("registration_failed", reason="email_race", email=email)
        raise ConflictError("User with this email already exists") from exc

    logger.info("user_registered", user_id=user.id, email=user.email, role=user.role)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> tuple[User, str]:
    """
    Authenticate user and return it with a fresh JWT access token.
    Unknown email, wrong password and deactivated accounts all look the same.
    """
    result = await db.execute(select(User).where(User.email == login_data.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not user.is_active or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise AuthenticationError("Invalid email or password")

    user.last_login = utcnow()
    await db.flush()

    token = create_token_for(user)
    logger.info("user_logged_in", user_id=user.id)
    return user, token
