"""
Admin-facing user management.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from event_booking.core.exceptions import InvalidRequestError, NotFoundError
from event_booking.core.logging import get_logger
from event_booking.models.user import User

logger = get_logger(__name__)


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
    return list(result.scalars().all())


async def get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found")
    return user


async def toggle_user_status(db: AsyncSession, user_id: int, acting_admin_id: int) -> User:
    """Flip is_active. Deactivated users can no longer log in or use their tokens."""
    if user_id == acting_admin_id:
        raise InvalidRequestError("Admins cannot deactivate their own account")

    user = await get_user(db, user_id)
    user.is_active = not user.is_active
    await db.flush()

    logger.info("user_status_toggled", user_id=user.id, is_active=user.is_active, by=acting_admin_id)
    return user
