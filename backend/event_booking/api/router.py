"""
Versioned API router: /api/v1/{auth,events,bookings,users}.
"""

from fastapi import APIRouter

from event_booking.api.routes import auth, bookings, events, users

API_PREFIX = "/api/v1"

api_router = APIRouter(prefix=API_PREFIX)
for module in (auth, events, bookings, users):
    api_router.include_router(module.router)
