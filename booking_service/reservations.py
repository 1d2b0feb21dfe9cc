"""
Reservation coordinator.

Serializes writes per (court, date) so that of N concurrent requests for
overlapping ranges exactly one commits and the rest get ConflictError:

  1. in-process asyncio.Lock per (court, date)
  2. transaction-scoped advisory lock per (court, date) on PostgreSQL,
     covering every worker process sharing the database
  3. overlap check re-run inside the transaction (fresh read, no cache)
  4. the bookings exclusion constraint, translated to ConflictError

Cache invalidation and event publishing happen only after commit and are
best effort.
"""

import asyncio
import logging
import weakref
from datetime import date, datetime
from typing import Callable

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .cache import AvailabilityCache
from .clock import venue_now
from .errors import ConflictError
from .events import booking_event_data, build_event, to_json
from .ledger import BookingLedger
from .models import Booking
from .publisher import RabbitPublisher
from .rbac import Actor

logger = logging.getLogger(__name__)


async def acquire_slot_lock(db: AsyncSession, court_id: int, booking_date: date):
    conn = await db.connection()
    if conn.dialect.name == "postgresql":
        await db.execute(select(func.pg_advisory_xact_lock(court_id, booking_date.toordinal())))


class ReservationCoordinator:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        publisher: RabbitPublisher | None = None,
        cache: AvailabilityCache | None = None,
        clock: Callable[[], datetime] = venue_now,
    ):
        self._session_factory = session_factory
        self._publisher = publisher
        self._cache = cache
        self._clock = clock
        self._locks: "weakref.WeakValueDictionary[tuple[int, date], asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, court_id: int, booking_date: date) -> asyncio.Lock:
        key = (court_id, booking_date)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def reserve(self, court_id: int, user_id: int, booking_date: date, start: int, end: int) -> Booking:
        """
        Create a confirmed booking or raise.

        Raises NotFoundError, InvalidRangeError or ConflictError. A conflict is
        never retried here; the caller re-reads availability and picks again.
        """
        try:
            async with self._lock_for(court_id, booking_date):
                async with self._session_factory() as db:
                    async with db.begin():
                        await acquire_slot_lock(db, court_id, booking_date)
                        ledger = BookingLedger(db, clock=self._clock)
                        booking = await ledger.create(court_id, user_id, booking_date, start, end)
        except IntegrityError as e:
            logger.warning(
                "booking constraint rejected court %s on %s: %s", court_id, booking_date, e.orig
            )
            raise ConflictError(
                f"Slot on court {court_id} for {booking_date} is no longer available"
            ) from e
        except ConflictError:
            logger.info("slot conflict for court %s on %s, user %s", court_id, booking_date, user_id)
            raise

        logger.info(
            "booking %s confirmed: court %s %s %s-%s user %s",
            booking.id, court_id, booking_date, start, end, user_id,
        )
        await self._after_commit("booking.created", booking)
        return booking

    async def cancel(self, booking_id: int, actor: Actor) -> Booking:
        """
        Cancel under the same (court, date) serialization as reserve.

        Cancelling an already cancelled or completed booking raises
        InvalidStateTransitionError and publishes nothing.
        """
        async with self._session_factory() as db:
            found = await BookingLedger(db).get(booking_id)
            court_id, booking_date = found.court_id, found.booking_date

        async with self._lock_for(court_id, booking_date):
            async with self._session_factory() as db:
                async with db.begin():
                    await acquire_slot_lock(db, court_id, booking_date)
                    ledger = BookingLedger(db, clock=self._clock)
                    booking = await ledger.cancel(booking_id, actor)

        await self._after_commit("booking.cancelled", booking)
        return booking

    async def _after_commit(self, event_type: str, booking: Booking):
        if self._cache is not None:
            try:
                await self._cache.invalidate(booking.court_id, booking.booking_date)
            except Exception:
                logger.warning(
                    "availability cache invalidation failed for court %s on %s",
                    booking.court_id, booking.booking_date, exc_info=True,
                )

        if self._publisher is not None:
            event = build_event(event_type, booking_event_data(booking))
            await self._publisher.publish(event_type, to_json(event))
