"""
Pure precondition checks for the inventory ledger.

Nothing here touches the session. The ledger loads (and locks) the rows,
then calls these in order; the first failing check raises and the caller's
transaction rolls back without having written anything.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from event_booking.core.exceptions import (
    ConflictError,
    InvalidRequestError,
    NotFoundError,
    UnavailableError,
)
from event_booking.db.base import as_utc
from event_booking.models.booking import Booking, BookingStatus
from event_booking.models.event import Event

CENTS = Decimal("0.01")


def ensure_event_reservable(event: Optional[Event], event_id: int, now: datetime) -> Event:
    if event is None:
        raise NotFoundError(f"Event {event_id} not found")
    if not event.is_active or as_utc(event.starts_at) <= now:
        raise UnavailableError("Event not found or not available for booking")
    return event


def ensure_no_active_booking(existing: Optional[Booking]) -> None:
    if existing is not None and existing.is_active:
        raise ConflictError("You already have a booking for this event")


def ensure_seats_available(event: Event, requested: int) -> None:
    if requested > event.available_seats:
        raise InvalidRequestError(f"Only {event.available_seats} seats available")


def ensure_cancellable(booking: Booking, event: Event, now: datetime) -> None:
    if booking.status == BookingStatus.CANCELLED.value:
        raise InvalidRequestError("Booking is already cancelled")
    # already-started events count as past: the comparison is against starts_at
    if as_utc(event.starts_at) < now:
        raise InvalidRequestError("Cannot cancel booking for past events")


def total_amount(price: Decimal, number_of_seats: int) -> Decimal:
    return (Decimal(price) * number_of_seats).quantize(CENTS, rounding=ROUND_HALF_UP)


def check_seat_invariant(event: Event, delta: int) -> int:
    """Return the seat count after applying delta, or raise if it leaves 0..total."""
    updated = event.available_seats + delta
    if updated < 0:
        raise InvalidRequestError(f"Only {event.available_seats} seats available")
    if updated > event.total_seats:
        # more seats released than were ever booked: the ledger's books are off
        raise InvalidRequestError(
            f"Releasing {delta} seats would exceed the {event.total_seats} seat capacity"
        )
    return updated
