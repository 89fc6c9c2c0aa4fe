from event_booking.schemas.user import (
    UserCreate, UserResponse, UserDetailResponse, UserLogin, Token, LoginResponse,
)
from event_booking.schemas.event import (
    EventCreate, EventUpdate, EventQuery, EventResponse, EventListResponse,
)
from event_booking.schemas.booking import (
    BookingCreate, BookingResponse, BookingListResponse, EventSummary,
)

__all__ = [
    "UserCreate", "UserResponse", "UserDetailResponse", "UserLogin", "Token", "LoginResponse",
    "EventCreate", "EventUpdate", "EventQuery", "EventResponse", "EventListResponse",
    "BookingCreate", "BookingResponse", "BookingListResponse", "EventSummary",
]
