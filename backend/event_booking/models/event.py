"""
Event model with seat inventory tracking.

Key design decisions:
- `available_seats` is denormalized (avoids a SUM over bookings on every read)
  and is only ever changed by the inventory ledger under a row lock
- CHECK constraints keep 0 <= available_seats <= total_seats at the DB level
- Index on `starts_at` for upcoming-event listings
- `is_active` is a soft-delete flag; events are never physically removed
"""

from sqlalchemy import Boolean, Column, Integer, Numeric, String, Text, DateTime, ForeignKey, Index, CheckConstraint

from event_booking.db.base import Base, TimestampMixin


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(200), nullable=True)
    category = Column(String(50), nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    total_seats = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    __table_args__ = (
        CheckConstraint("available_seats >= 0", name="check_available_seats_non_negative"),
        CheckConstraint("total_seats > 0", name="check_total_seats_positive"),
        CheckConstraint("available_seats <= total_seats", name="check_available_lte_total"),
        CheckConstraint("price >= 0", name="check_price_non_negative"),
        Index("ix_events_starts_at", "starts_at"),
        Index("ix_events_category", "category"),
        Index("ix_events_active_starts_at", "is_active", "starts_at"),
    )

    @property
    def booked_seats(self) -> int:
        return self.total_seats - self.available_seats

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, available={self.available_seats}/{self.total_seats})>"
