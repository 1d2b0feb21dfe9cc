"""
Booking ledger.

The only code that writes booking rows. Every method works inside the
caller's session; ``create`` and ``cancel`` expect to run in a transaction
owned by the ReservationCoordinator so nothing becomes visible before commit.
"""

import logging
from datetime import date, datetime, timezone
from typing import Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .clock import at_minute, venue_now
from .errors import (
    ConflictError,
    ForbiddenError,
    InvalidRangeError,
    InvalidStateTransitionError,
    NotFoundError,
)
from .lifecycle import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    BookingStatus,
    effective_status,
    transition,
)
from .models import Booking, Court, Venue
from .rbac import Actor, can_manage_venue
from .timeslots import TimeRange

logger = logging.getLogger(__name__)

_ACTIVE_VALUES = [s.value for s in ACTIVE_STATUSES]


class BookingLedger:
    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = venue_now):
        self.db = db
        self.clock = clock

    # ---- reads ----

    async def get_court(self, court_id: int) -> Court:
        court = await self.db.get(Court, court_id)
        if not court:
            raise NotFoundError(f"Court {court_id} not found")
        return court

    async def get_bookable_court(self, court_id: int) -> Court:
        """Court whose venue has been approved; others look missing."""
        court = await self.get_court(court_id)
        venue = await self.db.get(Venue, court.venue_id)
        if not venue or not venue.approved:
            raise NotFoundError(f"Court {court_id} not found")
        return court

    async def get(self, booking_id: int, lock: bool = False) -> Booking:
        stmt = select(Booking).where(Booking.id == booking_id)
        if lock:
            stmt = stmt.with_for_update()
        res = await self.db.execute(stmt)
        booking = res.scalar_one_or_none()
        if not booking:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    async def find_overlapping(self, court_id: int, booking_date: date, requested: TimeRange) -> list[Booking]:
        res = await self.db.execute(
            select(Booking).where(
                Booking.court_id == court_id,
                Booking.booking_date == booking_date,
                Booking.status.in_(_ACTIVE_VALUES),
                Booking.start_minute < requested.end,
                Booking.end_minute > requested.start,
            )
        )
        return list(res.scalars().all())

    async def list_active(self, court_id: int, booking_date: date) -> list[Booking]:
        res = await self.db.execute(
            select(Booking)
            .where(
                Booking.court_id == court_id,
                Booking.booking_date == booking_date,
                Booking.status.in_(_ACTIVE_VALUES),
            )
            .order_by(Booking.start_minute)
        )
        return list(res.scalars().all())

    async def list_by_court_and_date(self, court_id: int, booking_date: date) -> list[Booking]:
        res = await self.db.execute(
            select(Booking)
            .where(Booking.court_id == court_id, Booking.booking_date == booking_date)
            .order_by(Booking.start_minute, Booking.id)
        )
        return list(res.scalars().all())

    async def list_by_user(self, user_id: int) -> list[Booking]:
        res = await self.db.execute(
            select(Booking)
            .where(Booking.user_id == user_id)
            .order_by(Booking.booking_date, Booking.start_minute, Booking.id)
        )
        return list(res.scalars().all())

    async def list_by_venue(self, venue_id: int) -> list[Booking]:
        res = await self.db.execute(
            select(Booking)
            .join(Court, Court.id == Booking.court_id)
            .where(Court.venue_id == venue_id)
            .order_by(Booking.booking_date, Booking.start_minute, Booking.id)
        )
        return list(res.scalars().all())

    async def venue_owner_id(self, court_id: int) -> int | None:
        res = await self.db.execute(
            select(Venue.owner_id)
            .join(Court, Court.venue_id == Venue.id)
            .where(Court.id == court_id)
        )
        return res.scalar_one_or_none()

    async def ensure_can_manage(self, actor: Actor, booking: Booking):
        """Booking user, an admin, or the owner of the court's venue."""
        if actor.user_id == booking.user_id or actor.is_admin:
            return
        if actor.has_role("owner") and can_manage_venue(actor, await self.venue_owner_id(booking.court_id)):
            return
        raise ForbiddenError(f"Not authorized to manage booking {booking.id}")

    def status_of(self, booking: Booking) -> BookingStatus:
        return effective_status(booking.status, booking.booking_date, booking.end_minute, self.clock())

    # ---- writes ----

    async def create(self, court_id: int, user_id: int, booking_date: date, start: int, end: int) -> Booking:
        court = await self.get_bookable_court(court_id)
        requested = TimeRange(start, end)

        hours = TimeRange(court.opening_minute, court.closing_minute)
        if not hours.contains(requested):
            raise InvalidRangeError(
                f"Requested time {requested} is outside court operating hours {hours}"
            )

        if at_minute(booking_date, requested.start) <= self.clock():
            raise InvalidRangeError(f"Cannot book {booking_date} {requested}: start time has passed")

        overlapping = await self.find_overlapping(court_id, booking_date, requested)
        if overlapping:
            raise ConflictError(
                f"Slot {booking_date} {requested} on court {court_id} is no longer available"
            )

        booking = Booking(
            court_id=court_id,
            user_id=user_id,
            booking_date=booking_date,
            start_minute=requested.start,
            end_minute=requested.end,
            status=BookingStatus.PENDING.value,
        )
        self.db.add(booking)
        await self.db.flush()

        # no payment step: confirm inside the same transaction
        booking.status = transition(BookingStatus.PENDING, BookingStatus.CONFIRMED).value
        await self.db.flush()
        return booking

    async def cancel(self, booking_id: int, actor: Actor) -> Booking:
        booking = await self.get(booking_id, lock=True)
        await self.ensure_can_manage(actor, booking)

        now = self.clock()
        current = effective_status(booking.status, booking.booking_date, booking.end_minute, now)
        if current in TERMINAL_STATUSES:
            raise InvalidStateTransitionError(f"Booking {booking.id} is already {current.value}")
        if at_minute(booking.booking_date, booking.start_minute) <= now:
            raise InvalidStateTransitionError(f"Booking {booking.id} has already started")

        booking.status = transition(current, BookingStatus.CANCELLED).value
        booking.cancelled_at = datetime.now(timezone.utc)
        booking.cancelled_by = actor.user_id
        await self.db.flush()

        logger.info("booking %s cancelled by user %s", booking.id, actor.user_id)
        return booking
