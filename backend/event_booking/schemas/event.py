"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator


class EventCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    starts_at: datetime
    location: Optional[str] = Field(None, max_length=200)
    category: Optional[str] = Field(None, max_length=50)
    total_seats: int = Field(..., gt=0, le=100000)
    price: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=10, decimal_places=2)


class EventUpdate(BaseModel):
    """Seat totals are fixed at creation, so they are not editable here."""

    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    starts_at: Optional[datetime] = None
    location: Optional[str] = Field(None, max_length=200)
    category: Optional[str] = Field(None, max_length=50)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)

    model_config = {"extra": "forbid"}

    @field_validator("title", "starts_at", "price")
    @classmethod
    def omit_rather_than_null(cls, value):
        # these columns are NOT NULL: leave the key out to keep the current value
        if value is None:
            raise ValueError("may be omitted but not set to null")
        return value


class EventQuery(BaseModel):
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)
    search: Optional[str] = Field(None, max_length=100)
    category: Optional[str] = Field(None, max_length=50)
    sort_by: Literal["starts_at", "title", "price", "created_at"] = "starts_at"
    sort_order: Literal["asc", "desc"] = "asc"


class EventResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    starts_at: datetime
    location: Optional[str]
    category: Optional[str]
    price: Decimal
    total_seats: int
    available_seats: int
    is_active: bool
    organizer_id: int
    created_at: datetime

    model_config = {"from_attributes": True}


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    cached: bool = False
