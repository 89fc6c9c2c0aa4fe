"""
Booking model representing a user's reservation for an event.

Key design decisions:
- Partial unique index on (user_id, event_id) WHERE status != 'cancelled':
  one active booking per user per event, rebooking allowed after cancelling
- Status field allows cancellation without deleting records
- total_amount is frozen at creation; later price changes do not touch it
- No ORM relationships: user_id/event_id are plain owned ids and the query
  layer joins explicitly, so nothing cascades behind the ledger's back
"""

import enum

from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text, ForeignKey, Index, CheckConstraint, text

from event_booking.db.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


MAX_SEATS_PER_BOOKING = 10

_ACTIVE = text("status != 'cancelled'")


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    number_of_seats = Column(Integer, nullable=False, default=1)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value)
    notes = Column(Text, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "uq_active_booking_per_user_event",
            "user_id",
            "event_id",
            unique=True,
            postgresql_where=_ACTIVE,
            sqlite_where=_ACTIVE,
        ),
        Index("ix_bookings_status", "status"),
        CheckConstraint(
            f"number_of_seats BETWEEN 1 AND {MAX_SEATS_PER_BOOKING}",
            name="check_booking_number_of_seats",
        ),
        CheckConstraint("total_amount >= 0", name="check_booking_total_amount"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled')", name="check_booking_status"
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status != BookingStatus.CANCELLED.value

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, event={self.event_id}, status={self.status})>"
