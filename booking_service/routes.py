import datetime as dt

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from .availability import court_availability
from .cache import AvailabilityCache, availability_cache
from .clock import venue_now
from .config import DEFAULT_SLOT_MINUTES
from .db import SessionLocal, get_db
from .ledger import BookingLedger
from .models import Booking, Venue
from .publisher import publisher
from .rbac import Actor, require_role
from .reservations import ReservationCoordinator
from .schemas import (
    AvailabilityResponse,
    BookingDetailResponse,
    BookingResponse,
    CourtSummary,
    CreateBookingRequest,
    SlotOut,
    VenueSummary,
)
from .security import get_current_actor
from .timeslots import TimeRange, format_hhmm
from .venue_routes import get_managed_venue

router = APIRouter()

coordinator = ReservationCoordinator(SessionLocal, publisher=publisher, cache=availability_cache)


def get_coordinator() -> ReservationCoordinator:
    return coordinator


def get_cache() -> AvailabilityCache:
    return availability_cache


def get_clock():
    return venue_now


def booking_response(booking: Booking, ledger: BookingLedger) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        court_id=booking.court_id,
        user_id=booking.user_id,
        date=booking.booking_date,
        start_time=format_hhmm(booking.start_minute),
        end_time=format_hhmm(booking.end_minute),
        status=ledger.status_of(booking).value,
        cancelled_at=booking.cancelled_at,
    )


async def booking_detail(booking: Booking, ledger: BookingLedger) -> BookingDetailResponse:
    court = await ledger.get_court(booking.court_id)
    venue = await ledger.db.get(Venue, court.venue_id)
    minutes = booking.end_minute - booking.start_minute

    return BookingDetailResponse(
        **booking_response(booking, ledger).model_dump(),
        court=CourtSummary(
            id=court.id,
            name=court.name,
            sport_type=court.sport_type,
            price_per_hour=court.price_per_hour,
        ),
        venue=VenueSummary(id=venue.id, name=venue.name, address=venue.address),
        calculated_price=round(court.price_per_hour * minutes / 60, 2),
    )


# ================= AVAILABILITY =================

@router.get("/availability/court/{court_id}/date/{day}", response_model=AvailabilityResponse, tags=["Availability"])
async def get_court_availability(
    court_id: int,
    day: dt.date,
    slot_minutes: int = Query(DEFAULT_SLOT_MINUTES, ge=5, le=1440),
    db: AsyncSession = Depends(get_db),
    cache: AvailabilityCache = Depends(get_cache),
    clock=Depends(get_clock),
):
    cached = await cache.get(court_id, day, slot_minutes)
    if cached is not None:
        return cached

    generation = await cache.generation(court_id, day)
    slots = await court_availability(db, court_id, day, slot_minutes, now=clock())
    body = AvailabilityResponse(
        court_id=court_id,
        date=day,
        slot_minutes=slot_minutes,
        slots=[
            SlotOut(start_time=format_hhmm(s.start), end_time=format_hhmm(s.end), available=s.available)
            for s in slots
        ],
    )
    await cache.set(court_id, day, slot_minutes, body.model_dump(mode="json"), generation)
    return body


# ================= BOOKINGS =================

@router.post("/bookings", response_model=BookingDetailResponse, status_code=201, tags=["Bookings"])
async def create_booking(
    data: CreateBookingRequest,
    actor: Actor = Depends(get_current_actor),
    reservations: ReservationCoordinator = Depends(get_coordinator),
    db: AsyncSession = Depends(get_db),
    clock=Depends(get_clock),
):
    requested = TimeRange.parse(data.start_time, data.end_time)
    booking = await reservations.reserve(
        data.court_id, actor.user_id, data.date, requested.start, requested.end
    )
    return await booking_detail(booking, BookingLedger(db, clock=clock))


@router.get("/bookings/user", response_model=list[BookingResponse], tags=["Bookings"])
async def list_my_bookings(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    clock=Depends(get_clock),
):
    ledger = BookingLedger(db, clock=clock)
    return [booking_response(b, ledger) for b in await ledger.list_by_user(actor.user_id)]


@router.get("/bookings/{booking_id}", response_model=BookingDetailResponse, tags=["Bookings"])
async def get_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    clock=Depends(get_clock),
):
    ledger = BookingLedger(db, clock=clock)
    booking = await ledger.get(booking_id)
    await ledger.ensure_can_manage(actor, booking)
    return await booking_detail(booking, ledger)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingResponse, tags=["Bookings"])
async def cancel_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    reservations: ReservationCoordinator = Depends(get_coordinator),
    db: AsyncSession = Depends(get_db),
    clock=Depends(get_clock),
):
    booking = await reservations.cancel(booking_id, actor)
    return booking_response(booking, BookingLedger(db, clock=clock))


@router.get("/owner/venues/{venue_id}/bookings", response_model=list[BookingResponse], tags=["Owner"])
async def list_venue_bookings(
    venue_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    clock=Depends(get_clock),
):
    require_role(actor, ["owner", "admin"])
    venue = await get_managed_venue(db, venue_id, actor)
    ledger = BookingLedger(db, clock=clock)
    return [booking_response(b, ledger) for b in await ledger.list_by_venue(venue.id)]
