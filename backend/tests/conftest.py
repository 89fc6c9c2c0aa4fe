"""
Pytest fixtures for test database, client, and authentication.

Each test gets a fresh schema. By default that is a file-backed SQLite
database under tmp_path (file-backed so concurrent sessions share it); set
TEST_DATABASE_URL to run the same suite against PostgreSQL.

Every HTTP request gets its own session, exactly like production, so the
tests exercise the real transaction boundaries.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./event_booking_dev.db")
os.environ["REDIS_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import func, select

from event_booking.main import app
from event_booking.db.base import Base
from event_booking.db.session import build_engine, build_session_factory, get_db
from event_booking.core.security import create_token_for, hash_password
from event_booking.models.booking import Booking, BookingStatus
from event_booking.models.user import User, ROLE_ADMIN, ROLE_USER
from event_booking.models.event import Event

TEST_PASSWORD = "testpassword123"


@pytest_asyncio.fixture
async def engine(tmp_path):
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    test_engine = build_engine(url)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests each run on a fresh session from the test engine."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def make_user(session_factory):
    """Factory for users. Password hashing is skipped unless a password is given."""
    counter = 0

    async def _make_user(role: str = ROLE_USER, password: str = None, **overrides) -> User:
        nonlocal counter
        counter += 1
        if password is not None:
            hashed = hash_password(password)
        else:
            hashed = "not-a-real-hash"
        user = User(
            email=overrides.pop("email", f"user{counter}@example.com"),
            first_name=overrides.pop("first_name", "Test"),
            last_name=overrides.pop("last_name", f"User{counter}"),
            hashed_password=hashed,
            role=role,
            is_active=overrides.pop("is_active", True),
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _make_user


@pytest_asyncio.fixture
async def make_event(session_factory, admin_user):
    """Factory for events; available_seats defaults to total_seats."""

    async def _make_event(
        total_seats: int = 100,
        price: str = "25.00",
        starts_in: timedelta = timedelta(days=30),
        **overrides,
    ) -> Event:
        event = Event(
            title=overrides.pop("title", "Test Concert"),
            description=overrides.pop("description", "A test event"),
            starts_at=datetime.now(timezone.utc) + starts_in,
            location=overrides.pop("location", "Test Venue"),
            category=overrides.pop("category", None),
            price=Decimal(price),
            total_seats=total_seats,
            available_seats=overrides.pop("available_seats", total_seats),
            is_active=overrides.pop("is_active", True),
            organizer_id=admin_user.id,
        )
        async with session_factory() as session:
            session.add(event)
            await session.commit()
        return event

    return _make_event


@pytest_asyncio.fixture
async def fetch_event(session_factory):
    """Read an event's committed state on a fresh session."""

    async def _fetch(event_id: int) -> Event:
        async with session_factory() as session:
            return await session.get(Event, event_id)

    return _fetch


@pytest_asyncio.fixture
async def assert_seat_invariant(session_factory):
    """total_seats - available_seats must equal the seats held by active bookings."""

    async def _check(event_id: int) -> None:
        async with session_factory() as session:
            event = await session.get(Event, event_id)
            held = (
                await session.execute(
                    select(func.coalesce(func.sum(Booking.number_of_seats), 0)).where(
                        Booking.event_id == event_id,
                        Booking.status != BookingStatus.CANCELLED.value,
                    )
                )
            ).scalar()
        assert 0 <= event.available_seats <= event.total_seats
        assert event.total_seats - event.available_seats == held

    return _check


@pytest_asyncio.fixture
async def test_user(make_user) -> User:
    return await make_user(email="test@example.com", password=TEST_PASSWORD)


@pytest_asyncio.fixture
async def other_user(make_user) -> User:
    return await make_user(email="other@example.com")


@pytest_asyncio.fixture
async def admin_user(make_user) -> User:
    return await make_user(role=ROLE_ADMIN, email="admin@example.com")


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    return {"Authorization": f"Bearer {create_token_for(test_user)}"}


@pytest_asyncio.fixture
async def other_headers(other_user: User) -> dict:
    return {"Authorization": f"Bearer {create_token_for(other_user)}"}


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict:
    return {"Authorization": f"Bearer {create_token_for(admin_user)}"}


@pytest_asyncio.fixture
async def test_event(make_event) -> Event:
    """An upcoming event with 100 seats at 25.00."""
    return await make_event()


@pytest_asyncio.fixture
async def sold_out_event(make_event) -> Event:
    return await make_event(title="Sold Out Show", total_seats=50, available_seats=0)
