"""
Event endpoints. Writes are admin-only and invalidate the listing cache.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from event_booking.core.exceptions import translate_store_errors
from event_booking.core.security import Principal, require_admin
from event_booking.db.session import get_db
from event_booking.schemas.event import EventCreate, EventUpdate, EventQuery, EventResponse, EventListResponse
from event_booking.services.cache_service import get_cached_events, set_cached_events, invalidate_event_cache
from event_booking.services.event_service import create_event, get_event, list_events, update_event, deactivate_event

router = APIRouter(prefix="/events", tags=["Events"])


async def _commit_and_invalidate(db: AsyncSession) -> None:
    # the new generation must only ever cache committed rows
    with translate_store_errors():
        await db.commit()
    await invalidate_event_cache()


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create a new event. Admin only."""
    event = await create_event(db, event_data, admin.id)
    await _commit_and_invalidate(db)
    return event


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    params: Annotated[EventQuery, Query()],
    db: AsyncSession = Depends(get_db),
):
    """
    Active upcoming events, paginated, with optional search and category.

    Pages are served from the Redis listing cache when present. Seat counts in
    a cached page may lag by one invalidation; bookings never read them.
    """
    cache_key_params = params.model_dump()
    page = await get_cached_events(cache_key_params)
    if page is not None:
        return EventListResponse(**{**page, "cached": True})

    events, total, total_pages = await list_events(db, params)
    response = EventListResponse(
        events=[EventResponse.model_validate(e) for e in events],
        total=total,
        page=params.page,
        page_size=params.page_size,
        total_pages=total_pages,
    )
    await set_cached_events(cache_key_params, response.model_dump(mode="json"))
    return response


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a single event by ID. Not cached (needs real-time seat counts)."""
    return await get_event(db, event_id)


@router.put("/{event_id}", response_model=EventResponse)
async def update_event_endpoint(
    event_id: int,
    event_data: EventUpdate,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Update event details. Admin only; seat totals cannot be changed."""
    event = await update_event(db, event_id, event_data)
    await _commit_and_invalidate(db)
    return event


@router.delete("/{event_id}", response_model=EventResponse)
async def delete_event_endpoint(
    event_id: int,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete: the event stops being listed and bookable. Admin only."""
    event = await deactivate_event(db, event_id)
    await _commit_and_invalidate(db)
    return event
