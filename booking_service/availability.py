from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from .config import DEFAULT_SLOT_MINUTES
from .ledger import BookingLedger
from .timeslots import MINUTES_PER_DAY, TimeRange, to_slots


@dataclass(frozen=True)
class Slot:
    start: int
    end: int
    available: bool


def past_cutoff(day: date, now: datetime) -> int:
    """
    Minute of ``day`` at or before which slots count as past.
    -1 for a future day, the whole day for a past one.
    """
    today = now.date()
    if day < today:
        return MINUTES_PER_DAY
    if day > today:
        return -1
    return now.hour * 60 + now.minute


def mark_slots(candidates: list[TimeRange], booked: list[TimeRange], cutoff: int = -1) -> list[Slot]:
    slots = []
    for candidate in sorted(candidates):
        taken = any(candidate.overlaps_with(b) for b in booked)
        slots.append(Slot(candidate.start, candidate.end, not taken and candidate.start > cutoff))
    return slots


async def court_availability(
    db: AsyncSession,
    court_id: int,
    day: date,
    slot_minutes: int = DEFAULT_SLOT_MINUTES,
    now: datetime | None = None,
) -> list[Slot]:
    """
    Free/occupied slots for a court on one date.

    Read-only. Slots overlapping an active (pending/confirmed) booking are
    unavailable, and so are slots that already started in venue-local time.
    Courts of venues still awaiting approval raise NotFoundError.
    """
    ledger = BookingLedger(db)
    court = await ledger.get_bookable_court(court_id)
    candidates = to_slots(court.opening_minute, court.closing_minute, slot_minutes)

    bookings = await ledger.list_active(court_id, day)
    booked = [TimeRange(b.start_minute, b.end_minute) for b in bookings]

    now = now or ledger.clock()
    return mark_slots(candidates, booked, past_cutoff(day, now))
