"""
Inventory ledger: seat accounting for reservations and cancellations.

CONCURRENCY STRATEGY: Pessimistic row lock
==========================================

Problem:
  Two users try to book the last seat simultaneously.
  Both read available_seats=1, both decrement to 0, both succeed.
  Result: Overbooking.

Solution:
  Every ledger operation starts by locking the event row:

    SELECT ... FROM events WHERE id = :event_id FOR UPDATE

  A second transaction for the same event blocks on that SELECT until the
  first commits or rolls back, then reads the committed seat count. The seat
  checks and the decrement therefore always work from the value that will be
  overwritten; there is no window for a lost update.

  populate_existing=True forces the locked row's values into the identity
  map; without it a session that already holds the Event would hand back its
  stale in-memory copy.

  On SQLite FOR UPDATE is a no-op; the session module opens every SQLite
  transaction with BEGIN IMMEDIATE instead, which gives the same ordering.

The ledger never commits and never retries. It must run inside a
transaction owned by the caller (BookingService), so any raised error rolls
back both the booking row and the seat change together.
"""

from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from event_booking.core.config import get_settings
from event_booking.core.exceptions import NotFoundError, translate_store_errors
from event_booking.core.logging import get_logger
from event_booking.db.base import utcnow
from event_booking.models.booking import Booking, BookingStatus
from event_booking.models.event import Event
from event_booking.services import seat_rules

logger = get_logger(__name__)
settings = get_settings()


class InventoryLedger:
    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    async def reserve(
        self,
        event_id: int,
        user_id: int,
        number_of_seats: int,
        notes: Optional[str] = None,
    ) -> tuple[Booking, Event]:
        """Create a confirmed booking and take its seats from the event."""
        with translate_store_errors():
            await self._set_lock_timeout()
            event = await self._lock_event(event_id)
            now = self.clock()
            seat_rules.ensure_event_reservable(event, event_id, now)

            existing = await self.db.execute(
                select(Booking).where(
                    Booking.user_id == user_id,
                    Booking.event_id == event_id,
                    Booking.status != BookingStatus.CANCELLED.value,
                )
            )
            seat_rules.ensure_no_active_booking(existing.scalars().first())
            seat_rules.ensure_seats_available(event, number_of_seats)

            booking = Booking(
                user_id=user_id,
                event_id=event_id,
                number_of_seats=number_of_seats,
                total_amount=seat_rules.total_amount(event.price, number_of_seats),
                status=BookingStatus.CONFIRMED.value,
                notes=notes,
            )
            event.available_seats = seat_rules.check_seat_invariant(event, -number_of_seats)
            self.db.add(booking)
            await self.db.flush()

        logger.info(
            "seats_reserved",
            booking_id=booking.id,
            user_id=user_id,
            event_id=event_id,
            seats=number_of_seats,
            available_seats=event.available_seats,
        )
        return booking, event

    async def cancel(self, booking_id: int, user_id: Optional[int]) -> tuple[Booking, Event]:
        """
        Cancel a booking and return its seats to the event.
        user_id=None skips the ownership check (admin cancellation).
        """
        with translate_store_errors():
            await self._set_lock_timeout()
            query = select(Booking).where(Booking.id == booking_id)
            if user_id is not None:
                query = query.where(Booking.user_id == user_id)
            result = await self.db.execute(query.execution_options(populate_existing=True))
            booking = result.scalar_one_or_none()
            if booking is None:
                raise NotFoundError("Booking not found")

            event = await self._lock_event(booking.event_id)
            if event is None:
                raise NotFoundError(f"Event {booking.event_id} not found")
            # re-read the booking now that the event lock serialises us with
            # any concurrent cancel of the same booking
            await self.db.refresh(booking)
            seat_rules.ensure_cancellable(booking, event, self.clock())

            booking.status = BookingStatus.CANCELLED.value
            booking.cancelled_at = self.clock()
            event.available_seats = seat_rules.check_seat_invariant(event, booking.number_of_seats)
            await self.db.flush()

        logger.info(
            "seats_released",
            booking_id=booking.id,
            user_id=booking.user_id,
            event_id=event.id,
            seats=booking.number_of_seats,
            available_seats=event.available_seats,
        )
        return booking, event

    async def _lock_event(self, event_id: int) -> Optional[Event]:
        result = await self.db.execute(
            select(Event)
            .where(Event.id == event_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _set_lock_timeout(self) -> None:
        # bounded wait on the event row lock; SQLite uses the driver busy timeout
        if self.db.get_bind().dialect.name == "postgresql":
            await self.db.execute(
                text(f"SET LOCAL lock_timeout = {int(settings.BOOKING_LOCK_TIMEOUT_MS)}")
            )
