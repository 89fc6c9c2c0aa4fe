"""
User administration endpoints. Admin only.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from event_booking.db.session import get_db
from event_booking.core.security import Principal, require_admin
from event_booking.schemas.user import UserResponse, UserDetailResponse
from event_booking.services.booking_service import BookingService
from event_booking.services.user_service import list_users, get_user, toggle_user_status

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/", response_model=list[UserResponse])
async def list_users_endpoint(
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await list_users(db)


@router.get("/{user_id}", response_model=UserDetailResponse)
async def get_user_endpoint(
    user_id: int,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """A user together with all of their bookings."""
    user = await get_user(db, user_id)
    bookings, _ = await BookingService(db).list_bookings(admin, user_id=user.id)
    return UserDetailResponse(**UserResponse.model_validate(user).model_dump(), bookings=bookings)


@router.patch("/{user_id}/toggle-status", response_model=UserResponse)
async def toggle_user_status_endpoint(
    user_id: int,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await toggle_user_status(db, user_id, admin.id)
