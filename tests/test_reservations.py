import asyncio
import json
from datetime import date, datetime

import pytest
from sqlalchemy import text

from booking_service.availability import court_availability
from booking_service.errors import (
    ConflictError,
    InvalidRangeError,
    InvalidStateTransitionError,
    NotFoundError,
)
from booking_service.ledger import BookingLedger
from booking_service.models import Booking
from booking_service.rbac import Actor
from booking_service.reservations import ReservationCoordinator

from .conftest import COURT_ID

DAY = date(2024, 6, 1)


@pytest.mark.asyncio
async def test_reserve_confirms_and_publishes(coordinator, publisher, stub_cache):
    booking = await coordinator.reserve(COURT_ID, 7, DAY, 600, 660)

    assert booking.id is not None
    assert booking.status == "confirmed"

    assert stub_cache.invalidated == [(COURT_ID, DAY)]
    assert len(publisher.published) == 1
    routing_key, body = publisher.published[0]
    event = json.loads(body)
    assert routing_key == "booking.created"
    assert event["event_type"] == "booking.created"
    assert event["data"] == {
        "booking_id": booking.id,
        "court_id": COURT_ID,
        "user_id": 7,
        "date": "2024-06-01",
        "start_time": "10:00",
        "end_time": "11:00",
        "status": "confirmed",
    }


@pytest.mark.asyncio
async def test_reserved_slot_shows_unavailable(coordinator, session_factory, clock):
    await coordinator.reserve(COURT_ID, 7, DAY, 600, 660)

    async with session_factory() as db:
        slots = await court_availability(db, COURT_ID, DAY, 60, now=clock())

    assert [s.available for s in slots if s.start == 600] == [False]


@pytest.mark.asyncio
async def test_overlapping_request_conflicts(coordinator, publisher):
    await coordinator.reserve(COURT_ID, 7, DAY, 600, 660)

    with pytest.raises(ConflictError):
        await coordinator.reserve(COURT_ID, 8, DAY, 630, 690)

    assert [key for key, _ in publisher.published] == ["booking.created"]


@pytest.mark.asyncio
async def test_touching_ranges_both_succeed(coordinator):
    first = await coordinator.reserve(COURT_ID, 7, DAY, 600, 660)
    second = await coordinator.reserve(COURT_ID, 8, DAY, 660, 720)

    assert first.id != second.id


@pytest.mark.asyncio
async def test_concurrent_requests_only_one_wins(coordinator, session_factory, publisher):
    results = await asyncio.gather(
        *[coordinator.reserve(COURT_ID, user_id, DAY, 600, 660) for user_id in range(1, 9)],
        return_exceptions=True,
    )

    winners = [r for r in results if isinstance(r, Booking)]
    losers = [r for r in results if isinstance(r, ConflictError)]
    assert len(winners) == 1
    assert len(losers) == 7
    assert len(publisher.published) == 1

    async with session_factory() as db:
        active = await BookingLedger(db).list_active(COURT_ID, DAY)
    assert [b.id for b in active] == [winners[0].id]


@pytest.mark.asyncio
async def test_concurrent_mixed_ranges_never_overlap(coordinator, session_factory):
    requests = [(600, 660), (630, 690), (660, 720), (570, 630), (690, 750)]
    await asyncio.gather(
        *[coordinator.reserve(COURT_ID, i, DAY, s, e) for i, (s, e) in enumerate(requests, start=1)],
        return_exceptions=True,
    )

    async with session_factory() as db:
        active = await BookingLedger(db).list_active(COURT_ID, DAY)

    for a in active:
        for b in active:
            if a.id != b.id:
                assert not (a.start_minute < b.end_minute and b.start_minute < a.end_minute)


@pytest.mark.asyncio
async def test_different_dates_do_not_conflict(coordinator):
    await coordinator.reserve(COURT_ID, 7, DAY, 600, 660)
    other = await coordinator.reserve(COURT_ID, 8, date(2024, 6, 2), 600, 660)
    assert other.status == "confirmed"


@pytest.mark.asyncio
async def test_out_of_hours_and_unknown_court(coordinator, publisher):
    with pytest.raises(InvalidRangeError):
        await coordinator.reserve(COURT_ID, 7, DAY, 420, 480)
    with pytest.raises(NotFoundError):
        await coordinator.reserve(999, 7, DAY, 600, 660)

    assert publisher.published == []


@pytest.mark.asyncio
async def test_past_start_is_rejected(coordinator, clock):
    clock.now = datetime(2024, 6, 1, 10, 30)
    with pytest.raises(InvalidRangeError):
        await coordinator.reserve(COURT_ID, 7, DAY, 600, 660)


@pytest.mark.asyncio
async def test_cancel_frees_slot(coordinator, publisher, stub_cache):
    booking = await coordinator.reserve(COURT_ID, 7, DAY, 600, 660)

    cancelled = await coordinator.cancel(booking.id, Actor(7))
    assert cancelled.status == "cancelled"
    assert [key for key, _ in publisher.published] == ["booking.created", "booking.cancelled"]
    assert stub_cache.invalidated == [(COURT_ID, DAY), (COURT_ID, DAY)]

    again = await coordinator.reserve(COURT_ID, 8, DAY, 600, 660)
    assert again.id != booking.id


@pytest.mark.asyncio
async def test_cancel_twice_publishes_once(coordinator, publisher):
    booking = await coordinator.reserve(COURT_ID, 7, DAY, 600, 660)
    await coordinator.cancel(booking.id, Actor(7))

    with pytest.raises(InvalidStateTransitionError):
        await coordinator.cancel(booking.id, Actor(7))

    assert [key for key, _ in publisher.published].count("booking.cancelled") == 1


@pytest.mark.asyncio
async def test_cancel_unknown_booking(coordinator):
    with pytest.raises(NotFoundError):
        await coordinator.cancel(4242, Actor(7))


@pytest.mark.asyncio
async def test_cache_failure_does_not_undo_booking(session_factory, publisher, clock):
    class BrokenCache:
        async def invalidate(self, court_id, day):
            raise ConnectionError("redis down")

    coordinator = ReservationCoordinator(session_factory, publisher=publisher, cache=BrokenCache(), clock=clock)
    booking = await coordinator.reserve(COURT_ID, 7, DAY, 600, 660)

    assert booking.status == "confirmed"
    assert len(publisher.published) == 1


@pytest.mark.asyncio
async def test_afternoon_scenario(coordinator, session_factory, clock):
    await coordinator.reserve(COURT_ID, 7, DAY, 840, 960)

    async with session_factory() as db:
        slots = await court_availability(db, COURT_ID, DAY, 60, now=clock())
    assert len(slots) == 14
    assert [(s.start, s.end) for s in slots if not s.available] == [(840, 900), (900, 960)]

    with pytest.raises(ConflictError):
        await coordinator.reserve(COURT_ID, 8, DAY, 840, 900)

    later = await coordinator.reserve(COURT_ID, 8, DAY, 960, 1020)

    async with session_factory() as db:
        slots = await court_availability(db, COURT_ID, DAY, 60, now=clock())
        on_day = await BookingLedger(db).list_by_court_and_date(COURT_ID, DAY)
    assert [s.available for s in slots if s.start == 960] == [False]

    stored = [b for b in on_day if b.id == later.id][0]
    assert (stored.booking_date, stored.start_minute, stored.end_minute, stored.status) == (
        DAY, 960, 1020, "confirmed",
    )


@pytest.mark.asyncio
async def test_constraint_violation_becomes_conflict(session_factory, coordinator, publisher, monkeypatch):
    async with session_factory() as db:
        await db.execute(
            text("CREATE UNIQUE INDEX ux_bookings_slot ON bookings (court_id, booking_date, start_minute)")
        )
        await db.commit()

    first = await coordinator.reserve(COURT_ID, 7, DAY, 600, 660)

    async def nothing_overlapping(self, court_id, booking_date, requested):
        return []

    monkeypatch.setattr(BookingLedger, "find_overlapping", nothing_overlapping)

    with pytest.raises(ConflictError):
        await coordinator.reserve(COURT_ID, 8, DAY, 600, 660)

    assert [key for key, _ in publisher.published] == ["booking.created"]
    async with session_factory() as db:
        active = await BookingLedger(db).list_active(COURT_ID, DAY)
    assert [b.id for b in active] == [first.id]
