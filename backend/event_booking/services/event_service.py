"""
Event service handling CRUD operations.

Seat counts are set once here (available_seats = total_seats) and afterwards
only the inventory ledger changes them.
"""

import math

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from event_booking.core.exceptions import InvalidRequestError, NotFoundError, translate_store_errors
from event_booking.core.logging import get_logger
from event_booking.db.base import as_utc, utcnow
from event_booking.models.event import Event
from event_booking.schemas.event import EventCreate, EventQuery, EventUpdate

logger = get_logger(__name__)

_SORT_COLUMNS = {
    "starts_at": Event.starts_at,
    "title": Event.title,
    "price": Event.price,
    "created_at": Event.created_at,
}


async def create_event(db: AsyncSession, event_data: EventCreate, organizer_id: int) -> Event:
    """Create a new event with full seat availability."""
    if as_utc(event_data.starts_at) <= utcnow():
        raise InvalidRequestError("Event start time must be in the future")

    event = Event(
        title=event_data.title,
        description=event_data.description,
        starts_at=as_utc(event_data.starts_at),
        location=event_data.location,
        category=event_data.category,
        price=event_data.price,
        total_seats=event_data.total_seats,
        available_seats=event_data.total_seats,
        is_active=True,
        organizer_id=organizer_id,
    )
    db.add(event)
    with translate_store_errors():
        await db.flush()

    logger.info("event_created", event_id=event.id, title=event.title, seats=event.total_seats)
    return event


async def get_event(db: AsyncSession, event_id: int, include_inactive: bool = False) -> Event:
    """Get a single event by ID. Soft-deleted events are hidden unless asked for."""
    query = select(Event).where(Event.id == event_id)
    if not include_inactive:
        query = query.where(Event.is_active.is_(True))
    result = await db.execute(query)
    event = result.scalar_one_or_none()

    if not event:
        raise NotFoundError(f"Event {event_id} not found")
    return event


async def list_events(db: AsyncSession, params: EventQuery) -> tuple[list[Event], int, int]:
    """
    List active upcoming events with optional search/category filters.
    Returns (events, total, total_pages).
    """
    query = select(Event).where(Event.is_active.is_(True), Event.starts_at >= utcnow())

    if params.search:
        pattern = f"%{params.search.lower()}%"
        query = query.where(
            or_(func.lower(Event.title).like(pattern), func.lower(Event.description).like(pattern))
        )
    if params.category:
        query = query.where(Event.category == params.category)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    column = _SORT_COLUMNS[params.sort_by]
    order = column.desc() if params.sort_order == "desc" else column.asc()
    events_query = (
        query
        .order_by(order, Event.id.asc())
        .offset((params.page - 1) * params.page_size)
        .limit(params.page_size)
    )
    result = await db.execute(events_query)
    events = list(result.scalars().all())

    return events, total, math.ceil(total / params.page_size)


async def update_event(db: AsyncSession, event_id: int, event_data: EventUpdate) -> Event:
    event = await get_event(db, event_id, include_inactive=True)

    changes = event_data.model_dump(exclude_unset=True)
    if "starts_at" in changes:
        changes["starts_at"] = as_utc(changes["starts_at"])
        if changes["starts_at"] <= utcnow():
            raise InvalidRequestError("Event start time must be in the future")
    for field, value in changes.items():
        setattr(event, field, value)
    with translate_store_errors():
        await db.flush()

    logger.info("event_updated", event_id=event.id, fields=sorted(changes))
    return event


async def deactivate_event(db: AsyncSession, event_id: int) -> Event:
    """Soft delete: the row and its bookings stay, the event stops being bookable."""
    event = await get_event(db, event_id, include_inactive=True)
    event.is_active = False
    await db.flush()

    logger.info("event_deactivated", event_id=event.id)
    return event
