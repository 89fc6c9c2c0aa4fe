"""
Booking endpoints with concurrency-safe seat reservation.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from event_booking.db.session import get_db
from event_booking.core.security import Principal, get_current_principal
from event_booking.schemas.booking import BookingCreate, BookingResponse, BookingListResponse
from event_booking.services.booking_service import BookingService

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_booking_service(db: AsyncSession = Depends(get_db)) -> BookingService:
    return BookingService(db)


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    """
    Reserve seats for an event.

    The event row is locked for the duration of the transaction, so concurrent
    requests for the same event are applied one after another and can never
    oversell. Returns 400 with the remaining seat count when there are not
    enough seats, 409 if the caller already holds a booking for the event.
    """
    return await service.reserve(principal, booking_data)


@router.get("/", response_model=BookingListResponse)
async def list_bookings(
    status_filter: Optional[Literal["pending", "confirmed", "cancelled"]] = Query(None, alias="status"),
    user_id: Optional[int] = Query(None, description="Admins only: bookings of a given user"),
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    """Bookings of the authenticated user (admins: all bookings), newest first."""
    bookings, total = await service.list_bookings(principal, status=status_filter, user_id=user_id)
    return BookingListResponse(bookings=bookings, total=total)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    return await service.get_booking(principal, booking_id)


@router.patch("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: int,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    """Cancel a booking and release its seats back to the event."""
    return await service.cancel(principal, booking_id)
