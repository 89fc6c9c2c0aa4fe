"""
Seat accounting tests at the service/ledger level, including concurrency.

Every concurrent caller gets its own session (its own connection), the same
way concurrent requests do in production.
"""

import asyncio
from datetime import datetime, timezone, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from event_booking.core.config import get_settings
from event_booking.core.exceptions import (
    ConflictError,
    InvalidRequestError,
    NotFoundError,
    TransactionFailureError,
    UnavailableError,
)
from event_booking.core.security import Principal
from event_booking.models.booking import Booking, BookingStatus
from event_booking.schemas.booking import BookingCreate
from event_booking.services.booking_service import BookingService
from event_booking.services.inventory_ledger import InventoryLedger


def principal(user) -> Principal:
    return Principal(id=user.id, role=user.role)


@pytest.fixture
def reserve(session_factory):
    async def _reserve(user, event_id: int, seats: int, notes: str = None):
        async with session_factory() as session:
            payload = BookingCreate(event_id=event_id, number_of_seats=seats, notes=notes)
            return await BookingService(session).reserve(principal(user), payload)

    return _reserve


@pytest.fixture
def cancel(session_factory):
    async def _cancel(user, booking_id: int):
        async with session_factory() as session:
            return await BookingService(session).cancel(principal(user), booking_id)

    return _cancel


@pytest.fixture
def no_backoff(monkeypatch):
    monkeypatch.setattr(get_settings(), "BOOKING_RETRY_BACKOFF_SECONDS", 0)


@pytest.mark.asyncio
async def test_reserve_cancel_scenario(make_event, make_user, reserve, cancel, fetch_event, assert_seat_invariant):
    """10 seats at 50.00: A books 4, B asks for 7 and is refused, A cancels."""
    event = await make_event(total_seats=10, price="50.00")
    user_a = await make_user()
    user_b = await make_user()

    booking = await reserve(user_a, event.id, 4)
    assert booking.total_amount == Decimal("200.00")
    assert booking.status == BookingStatus.CONFIRMED.value
    assert booking.event.id == event.id
    assert booking.event.price == Decimal("50.00")
    assert (await fetch_event(event.id)).available_seats == 6

    with pytest.raises(InvalidRequestError, match="6 seats available"):
        await reserve(user_b, event.id, 7)
    assert (await fetch_event(event.id)).available_seats == 6

    cancelled = await cancel(user_a, booking.id)
    assert cancelled.status == BookingStatus.CANCELLED.value
    assert cancelled.cancelled_at is not None
    assert (await fetch_event(event.id)).available_seats == 10
    await assert_seat_invariant(event.id)


@pytest.mark.asyncio
async def test_cancellation_restores_exactly(make_event, make_user, reserve, cancel, fetch_event, assert_seat_invariant):
    event = await make_event(total_seats=20)
    user = await make_user()
    bystander = await make_user()
    await reserve(bystander, event.id, 2)

    booking = await reserve(user, event.id, 3)
    assert (await fetch_event(event.id)).available_seats == 15
    await cancel(user, booking.id)
    assert (await fetch_event(event.id)).available_seats == 18
    await assert_seat_invariant(event.id)


@pytest.mark.asyncio
async def test_boundary_exact_and_one_over(make_event, make_user, reserve, fetch_event, session_factory):
    event = await make_event(total_seats=10, available_seats=4)
    first = await make_user()
    second = await make_user()

    with pytest.raises(InvalidRequestError, match="Only 4 seats available"):
        await reserve(first, event.id, 5)
    assert (await fetch_event(event.id)).available_seats == 4
    async with session_factory() as session:
        rows = (await session.execute(select(Booking).where(Booking.event_id == event.id))).all()
    assert rows == []

    await reserve(second, event.id, 4)
    assert (await fetch_event(event.id)).available_seats == 0


@pytest.mark.asyncio
async def test_duplicate_booking_conflicts_regardless_of_seats(make_event, make_user, reserve, cancel, fetch_event):
    event = await make_event(total_seats=100)
    user = await make_user()

    booking = await reserve(user, event.id, 1)
    with pytest.raises(ConflictError):
        await reserve(user, event.id, 1)
    assert (await fetch_event(event.id)).available_seats == 99

    # a cancelled booking no longer blocks a new one
    await cancel(user, booking.id)
    rebooked = await reserve(user, event.id, 2)
    assert rebooked.id != booking.id
    assert (await fetch_event(event.id)).available_seats == 98


@pytest.mark.asyncio
async def test_duplicate_check_runs_before_seat_check(make_event, make_user, reserve):
    event = await make_event(total_seats=2)
    user = await make_user()
    await reserve(user, event.id, 2)

    with pytest.raises(ConflictError):
        await reserve(user, event.id, 5)


@pytest.mark.asyncio
async def test_double_cancel_fails_without_side_effects(make_event, make_user, reserve, cancel, fetch_event, assert_seat_invariant):
    event = await make_event(total_seats=10)
    user = await make_user()
    booking = await reserve(user, event.id, 3)
    await cancel(user, booking.id)

    with pytest.raises(InvalidRequestError, match="already cancelled"):
        await cancel(user, booking.id)
    assert (await fetch_event(event.id)).available_seats == 10
    await assert_seat_invariant(event.id)


@pytest.mark.asyncio
async def test_unknown_inactive_and_started_events(make_event, make_user, reserve):
    user = await make_user()
    inactive = await make_event(is_active=False)
    started = await make_event(starts_in=timedelta(minutes=-1))

    with pytest.raises(NotFoundError):
        await reserve(user, 999_999, 1)
    with pytest.raises(UnavailableError):
        await reserve(user, inactive.id, 1)
    with pytest.raises(UnavailableError):
        await reserve(user, started.id, 1)


@pytest.mark.asyncio
async def test_cancel_is_scoped_to_owner(make_event, make_user, admin_user, reserve, cancel, fetch_event):
    event = await make_event(total_seats=10)
    owner = await make_user()
    stranger = await make_user()
    booking = await reserve(owner, event.id, 2)

    with pytest.raises(NotFoundError):
        await cancel(stranger, booking.id)
    assert (await fetch_event(event.id)).available_seats == 8

    cancelled = await cancel(admin_user, booking.id)
    assert cancelled.status == BookingStatus.CANCELLED.value
    assert (await fetch_event(event.id)).available_seats == 10


@pytest.mark.asyncio
async def test_cannot_cancel_after_event_started(make_event, make_user, reserve, session_factory, fetch_event):
    event = await make_event(total_seats=10, starts_in=timedelta(hours=1))
    user = await make_user()
    booking = await reserve(user, event.id, 2)

    later = datetime.now(timezone.utc) + timedelta(hours=2)
    async with session_factory() as session:
        service = BookingService(session, ledger=InventoryLedger(session, clock=lambda: later))
        with pytest.raises(InvalidRequestError, match="past events"):
            await service.cancel(principal(user), booking.id)

    assert (await fetch_event(event.id)).available_seats == 8


@pytest.mark.asyncio
async def test_concurrent_single_seat_reserves_never_oversell(make_event, make_user, reserve, fetch_event, assert_seat_invariant):
    """N concurrent one-seat requests against S < N seats: exactly S succeed."""
    seats, contenders = 5, 12
    event = await make_event(total_seats=seats)
    users = [await make_user() for _ in range(contenders)]

    async def attempt(user):
        try:
            await reserve(user, event.id, 1)
            return "booked"
        except InvalidRequestError:
            return "sold_out"

    outcomes = await asyncio.gather(*(attempt(u) for u in users))

    assert outcomes.count("booked") == seats
    assert outcomes.count("sold_out") == contenders - seats
    assert (await fetch_event(event.id)).available_seats == 0
    await assert_seat_invariant(event.id)


@pytest.mark.asyncio
async def test_concurrent_multi_seat_reserves_keep_invariant(make_event, make_user, reserve, fetch_event, assert_seat_invariant):
    event = await make_event(total_seats=10)
    users = [await make_user() for _ in range(6)]

    results = await asyncio.gather(*(reserve(u, event.id, 3) for u in users), return_exceptions=True)

    booked = [r for r in results if not isinstance(r, Exception)]
    refused = [r for r in results if isinstance(r, InvalidRequestError)]
    assert len(booked) == 3
    assert len(refused) == 3
    assert (await fetch_event(event.id)).available_seats == 1
    await assert_seat_invariant(event.id)


@pytest.mark.asyncio
async def test_second_reserve_waits_for_first_and_sees_its_decrement(make_event, make_user, session_factory, fetch_event):
    """While one transaction holds the event row, another cannot read a stale seat count."""
    event = await make_event(total_seats=3)
    first = await make_user()
    second = await make_user()

    async with session_factory() as holder, session_factory() as contender:
        async with holder.begin():
            await InventoryLedger(holder).reserve(event.id, first.id, 2)

            blocked = asyncio.create_task(
                BookingService(contender).reserve(
                    principal(second), BookingCreate(event_id=event.id, number_of_seats=2)
                )
            )
            await asyncio.sleep(0.3)
            assert not blocked.done()

        with pytest.raises(InvalidRequestError, match="Only 1 seats available"):
            await blocked

    assert (await fetch_event(event.id)).available_seats == 1


class FlakyLedger(InventoryLedger):
    """Does the real work, then reports a store abort for the first `failures` calls."""

    def __init__(self, db, failures: int):
        super().__init__(db)
        self.failures = failures
        self.calls = 0

    async def reserve(self, *args, **kwargs):
        self.calls += 1
        result = await super().reserve(*args, **kwargs)
        if self.calls <= self.failures:
            raise TransactionFailureError("could not serialize access")
        return result


@pytest.mark.asyncio
async def test_transaction_failure_is_retried_from_scratch(make_event, make_user, session_factory, fetch_event, assert_seat_invariant, no_backoff):
    event = await make_event(total_seats=10)
    user = await make_user()

    async with session_factory() as session:
        ledger = FlakyLedger(session, failures=2)
        booking = await BookingService(session, ledger=ledger).reserve(
            principal(user), BookingCreate(event_id=event.id, number_of_seats=4)
        )

    assert ledger.calls == 3
    # the two aborted attempts were rolled back; only one decrement stuck
    assert (await fetch_event(event.id)).available_seats == 6
    async with session_factory() as session:
        rows = (await session.execute(select(Booking).where(Booking.event_id == event.id))).scalars().all()
    assert [r.id for r in rows] == [booking.id]
    await assert_seat_invariant(event.id)


@pytest.mark.asyncio
async def test_retries_are_bounded(make_event, make_user, session_factory, fetch_event, monkeypatch, no_backoff):
    monkeypatch.setattr(get_settings(), "BOOKING_TX_MAX_ATTEMPTS", 2)
    event = await make_event(total_seats=10)
    user = await make_user()

    async with session_factory() as session:
        ledger = FlakyLedger(session, failures=5)
        with pytest.raises(TransactionFailureError):
            await BookingService(session, ledger=ledger).reserve(
                principal(user), BookingCreate(event_id=event.id, number_of_seats=1)
            )

    assert ledger.calls == 2
    assert (await fetch_event(event.id)).available_seats == 10


@pytest.mark.asyncio
async def test_business_rejections_are_not_retried(make_event, make_user, session_factory, no_backoff):
    event = await make_event(total_seats=1)
    user = await make_user()

    async with session_factory() as session:
        ledger = FlakyLedger(session, failures=0)
        with pytest.raises(InvalidRequestError):
            await BookingService(session, ledger=ledger).reserve(
                principal(user), BookingCreate(event_id=event.id, number_of_seats=2)
            )
    assert ledger.calls == 1


@pytest.mark.asyncio
async def test_listing_is_scoped_to_principal(make_event, make_user, admin_user, reserve, session_factory):
    event_one = await make_event(title="First")
    event_two = await make_event(title="Second")
    alice = await make_user()
    bob = await make_user()
    await reserve(alice, event_one.id, 1)
    await reserve(alice, event_two.id, 2)
    bobs = await reserve(bob, event_one.id, 1)

    async with session_factory() as session:
        service = BookingService(session)
        alice_view, alice_total = await service.list_bookings(principal(alice))
        # user_id filter is ignored for non-admins
        snoop, _ = await service.list_bookings(principal(alice), user_id=bob.id)
        admin_view, admin_total = await service.list_bookings(principal(admin_user))
        admin_bob, _ = await service.list_bookings(principal(admin_user), user_id=bob.id)

        with pytest.raises(NotFoundError):
            await service.get_booking(principal(alice), bobs.id)
        seen_by_admin = await service.get_booking(principal(admin_user), bobs.id)

    assert alice_total == 2
    assert {b.user_id for b in alice_view} == {alice.id}
    assert {b.event.title for b in alice_view} == {"First", "Second"}
    assert {b.user_id for b in snoop} == {alice.id}
    assert admin_total == 3
    assert [b.id for b in admin_bob] == [bobs.id]
    assert seen_by_admin.user_id == bob.id
