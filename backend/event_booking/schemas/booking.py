"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from event_booking.models.booking import MAX_SEATS_PER_BOOKING


class BookingCreate(BaseModel):
    event_id: int = Field(..., gt=0)
    number_of_seats: int = Field(default=1, ge=1, le=MAX_SEATS_PER_BOOKING)
    notes: Optional[str] = Field(None, max_length=500)


class EventSummary(BaseModel):
    id: int
    title: str
    starts_at: datetime
    location: Optional[str]
    price: Decimal

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: int
    user_id: int
    event_id: int
    number_of_seats: int
    total_amount: Decimal
    status: str
    notes: Optional[str]
    created_at: datetime
    cancelled_at: Optional[datetime]
    event: EventSummary

    model_config = {"from_attributes": True}

    @classmethod
    def from_row(cls, booking, event) -> "BookingResponse":
        return cls(
            id=booking.id,
            user_id=booking.user_id,
            event_id=booking.event_id,
            number_of_seats=booking.number_of_seats,
            total_amount=booking.total_amount,
            status=booking.status,
            notes=booking.notes,
            created_at=booking.created_at,
            cancelled_at=booking.cancelled_at,
            event=EventSummary.model_validate(event),
        )


class BookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    total: int
