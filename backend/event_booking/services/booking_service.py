"""
Booking service: transaction ownership around the inventory ledger.

Each reserve/cancel is one unit of work:

  BEGIN
    ledger locks the event row, checks the seat rules, writes booking + seats
  COMMIT  (or ROLLBACK on any error)

Only TransactionFailureError (the store aborted us: lock timeout, serialization
failure, "database is locked") is retried, from scratch with a fresh read, up
to BOOKING_TX_MAX_ATTEMPTS in total. Business rejections such as insufficient
seats or duplicate bookings are returned to the caller immediately.
"""

import asyncio
import random
import time
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from event_booking.core.config import get_settings
from event_booking.core.exceptions import BookingAPIError, NotFoundError, TransactionFailureError, translate_store_errors
from event_booking.core.logging import get_logger
from event_booking.core.metrics import booking_latency, record_booking_operation, record_tx_retry
from event_booking.core.security import Principal
from event_booking.models.booking import Booking
from event_booking.models.event import Event
from event_booking.schemas.booking import BookingCreate, BookingResponse
from event_booking.services.cache_service import invalidate_event_cache
from event_booking.services.inventory_ledger import InventoryLedger

logger = get_logger(__name__)
settings = get_settings()

T = TypeVar("T")


class BookingService:
    def __init__(self, db: AsyncSession, ledger: Optional[InventoryLedger] = None):
        self.db = db
        self.ledger = ledger or InventoryLedger(db)

    async def reserve(self, principal: Principal, payload: BookingCreate) -> BookingResponse:
        booking, event = await self._run_unit_of_work(
            "reserve",
            lambda: self.ledger.reserve(
                event_id=payload.event_id,
                user_id=principal.id,
                number_of_seats=payload.number_of_seats,
                notes=payload.notes,
            ),
        )
        logger.info(
            "booking_created",
            booking_id=booking.id,
            user_id=principal.id,
            event_id=event.id,
            seats=booking.number_of_seats,
            total_amount=str(booking.total_amount),
        )
        await invalidate_event_cache()
        return BookingResponse.from_row(booking, event)

    async def cancel(self, principal: Principal, booking_id: int) -> BookingResponse:
        owner_id = None if principal.is_admin else principal.id
        booking, event = await self._run_unit_of_work(
            "cancel",
            lambda: self.ledger.cancel(booking_id=booking_id, user_id=owner_id),
        )
        logger.info(
            "booking_cancelled",
            booking_id=booking.id,
            user_id=booking.user_id,
            cancelled_by=principal.id,
            event_id=event.id,
            seats_restored=booking.number_of_seats,
        )
        await invalidate_event_cache()
        return BookingResponse.from_row(booking, event)

    async def list_bookings(
        self,
        principal: Principal,
        status: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> tuple[list[BookingResponse], int]:
        """Non-admins only ever see their own bookings; admins may filter by user."""
        query = select(Booking, Event).join(Event, Booking.event_id == Event.id)
        if not principal.is_admin:
            query = query.where(Booking.user_id == principal.id)
        elif user_id is not None:
            query = query.where(Booking.user_id == user_id)
        if status is not None:
            query = query.where(Booking.status == status)

        total = (await self.db.execute(select(func.count()).select_from(query.subquery()))).scalar()
        result = await self.db.execute(query.order_by(Booking.created_at.desc(), Booking.id.desc()))
        bookings = [BookingResponse.from_row(booking, event) for booking, event in result.all()]
        return bookings, total

    async def get_booking(self, principal: Principal, booking_id: int) -> BookingResponse:
        query = (
            select(Booking, Event)
            .join(Event, Booking.event_id == Event.id)
            .where(Booking.id == booking_id)
        )
        if not principal.is_admin:
            query = query.where(Booking.user_id == principal.id)

        row = (await self.db.execute(query)).first()
        if row is None:
            raise NotFoundError("Booking not found")
        return BookingResponse.from_row(*row)

    async def _run_unit_of_work(self, operation: str, work: Callable[[], Awaitable[T]]) -> T:
        started = time.perf_counter()
        attempts = max(1, settings.BOOKING_TX_MAX_ATTEMPTS)
        try:
            for attempt in range(1, attempts + 1):
                try:
                    result = await self._in_transaction(work)
                except TransactionFailureError:
                    if attempt == attempts:
                        raise
                    record_tx_retry(operation)
                    logger.info("booking_tx_retry", operation=operation, attempt=attempt)
                    await asyncio.sleep(
                        settings.BOOKING_RETRY_BACKOFF_SECONDS * (2 ** (attempt - 1))
                        + random.uniform(0, settings.BOOKING_RETRY_BACKOFF_SECONDS)
                    )
                    continue
                record_booking_operation(operation, "success")
                return result
        except BookingAPIError as exc:
            record_booking_operation(operation, exc.code)
            logger.info("booking_rejected", operation=operation, code=exc.code, reason=exc.message)
            raise
        finally:
            booking_latency.labels(operation=operation).observe(time.perf_counter() - started)
        raise TransactionFailureError("The booking could not be completed, please retry")

    async def _in_transaction(self, work: Callable[[], Awaitable[T]]) -> T:
        # resolving the caller may have left a read-only transaction open
        if self.db.in_transaction():
            await self.db.commit()
        with translate_store_errors():
            async with self.db.begin():
                return await work()
