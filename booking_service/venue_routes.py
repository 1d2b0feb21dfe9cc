import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_db
from .errors import ForbiddenError, NotFoundError
from .models import Court, Venue
from .rbac import Actor, can_manage_venue, require_role
from .schemas import (
    CourtResponse,
    CreateCourt,
    CreateVenue,
    VenueDetailResponse,
    VenueResponse,
)
from .security import get_current_actor
from .timeslots import TimeRange, format_hhmm

logger = logging.getLogger(__name__)

router = APIRouter()


def court_response(court: Court) -> CourtResponse:
    return CourtResponse(
        id=court.id,
        venue_id=court.venue_id,
        name=court.name,
        sport_type=court.sport_type,
        price_per_hour=court.price_per_hour,
        opening_time=format_hhmm(court.opening_minute),
        closing_time=format_hhmm(court.closing_minute),
    )


def venue_response(venue: Venue) -> VenueResponse:
    return VenueResponse(
        id=venue.id,
        owner_id=venue.owner_id,
        name=venue.name,
        address=venue.address,
        location=venue.location,
        description=venue.description,
        approved=venue.approved,
    )


async def get_venue_or_404(db: AsyncSession, venue_id: int) -> Venue:
    venue = await db.get(Venue, venue_id)
    if not venue:
        raise NotFoundError(f"Venue {venue_id} not found")
    return venue


async def get_managed_venue(db: AsyncSession, venue_id: int, actor: Actor) -> Venue:
    venue = await get_venue_or_404(db, venue_id)
    if not can_manage_venue(actor, venue.owner_id):
        raise ForbiddenError(f"You don't have access to venue {venue_id}")
    return venue


# ================= PUBLIC =================

@router.get("/venues", response_model=list[VenueResponse], tags=["Venues"])
async def list_venues(db: AsyncSession = Depends(get_db)):
    res = await db.execute(select(Venue).where(Venue.approved.is_(True)).order_by(Venue.id))
    return [venue_response(v) for v in res.scalars().all()]


@router.get("/venues/{venue_id}", response_model=VenueDetailResponse, tags=["Venues"])
async def get_venue(venue_id: int, db: AsyncSession = Depends(get_db)):
    venue = await get_venue_or_404(db, venue_id)
    res = await db.execute(select(Court).where(Court.venue_id == venue.id).order_by(Court.id))
    return VenueDetailResponse(
        **venue_response(venue).model_dump(),
        courts=[court_response(c) for c in res.scalars().all()],
    )


@router.get("/courts/{court_id}", response_model=CourtResponse, tags=["Venues"])
async def get_court(court_id: int, db: AsyncSession = Depends(get_db)):
    court = await db.get(Court, court_id)
    if not court:
        raise NotFoundError(f"Court {court_id} not found")
    return court_response(court)


# ================= OWNER =================

@router.get("/owner/venues", response_model=list[VenueResponse], tags=["Owner"])
async def list_owner_venues(actor: Actor = Depends(get_current_actor), db: AsyncSession = Depends(get_db)):
    require_role(actor, ["owner", "admin"])
    res = await db.execute(select(Venue).where(Venue.owner_id == actor.user_id).order_by(Venue.id))
    return [venue_response(v) for v in res.scalars().all()]


@router.post("/owner/venues", response_model=VenueResponse, status_code=201, tags=["Owner"])
async def create_venue(data: CreateVenue, actor: Actor = Depends(get_current_actor), db: AsyncSession = Depends(get_db)):
    require_role(actor, ["owner", "admin"])

    venue = Venue(
        owner_id=actor.user_id,
        name=data.name,
        address=data.address,
        location=data.location,
        description=data.description,
        approved=False,
    )
    db.add(venue)
    await db.commit()
    return venue_response(venue)


@router.post("/owner/venues/{venue_id}/courts", response_model=CourtResponse, status_code=201, tags=["Owner"])
async def create_court(
    venue_id: int,
    data: CreateCourt,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    require_role(actor, ["owner", "admin"])
    venue = await get_managed_venue(db, venue_id, actor)

    hours = TimeRange.parse(data.opening_time, data.closing_time)

    court = Court(
        venue_id=venue.id,
        name=data.name,
        sport_type=data.sport_type,
        price_per_hour=data.price_per_hour,
        opening_minute=hours.start,
        closing_minute=hours.end,
    )
    db.add(court)
    await db.commit()
    return court_response(court)


# ================= ADMIN =================

@router.get("/admin/venues/pending", response_model=list[VenueResponse], tags=["Admin"])
async def list_pending_venues(actor: Actor = Depends(get_current_actor), db: AsyncSession = Depends(get_db)):
    require_role(actor, ["admin"])
    res = await db.execute(select(Venue).where(Venue.approved.is_(False)).order_by(Venue.id))
    return [venue_response(v) for v in res.scalars().all()]


@router.post("/admin/venues/{venue_id}/approve", response_model=VenueResponse, tags=["Admin"])
async def approve_venue(venue_id: int, actor: Actor = Depends(get_current_actor), db: AsyncSession = Depends(get_db)):
    require_role(actor, ["admin"])
    venue = await get_venue_or_404(db, venue_id)

    if not venue.approved:
        venue.approved = True
        await db.commit()
        logger.info("venue %s approved by user %s", venue.id, actor.user_id)
    return venue_response(venue)
