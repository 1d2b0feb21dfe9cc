import datetime as dt
from typing import List

from pydantic import BaseModel, Field

_HHMM = r"^\d{2}:\d{2}$"


# ---- Availability ----

class SlotOut(BaseModel):
    start_time: str
    end_time: str
    available: bool


class AvailabilityResponse(BaseModel):
    court_id: int
    date: dt.date
    slot_minutes: int
    slots: List[SlotOut]


# ---- Bookings ----

class CreateBookingRequest(BaseModel):
    court_id: int
    date: dt.date
    start_time: str = Field(pattern=_HHMM, examples=["16:00"])
    end_time: str = Field(pattern=_HHMM, examples=["17:00"])


class BookingResponse(BaseModel):
    id: int
    court_id: int
    user_id: int
    date: dt.date
    start_time: str
    end_time: str
    status: str
    cancelled_at: dt.datetime | None = None


class CourtSummary(BaseModel):
    id: int
    name: str
    sport_type: str
    price_per_hour: int


class VenueSummary(BaseModel):
    id: int
    name: str
    address: str


class BookingDetailResponse(BookingResponse):
    court: CourtSummary
    venue: VenueSummary
    calculated_price: float


# ---- Venues & courts ----

class CreateVenue(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    address: str = Field(min_length=1)
    location: str | None = None
    description: str | None = None


class CreateCourt(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    sport_type: str = Field(min_length=1, max_length=100)
    price_per_hour: int = Field(gt=0)
    opening_time: str = Field(pattern=_HHMM, examples=["08:00"])
    closing_time: str = Field(pattern=_HHMM, examples=["22:00"])


class CourtResponse(BaseModel):
    id: int
    venue_id: int
    name: str
    sport_type: str
    price_per_hour: int
    opening_time: str
    closing_time: str


class VenueResponse(BaseModel):
    id: int
    owner_id: int
    name: str
    address: str
    location: str | None = None
    description: str | None = None
    approved: bool


class VenueDetailResponse(VenueResponse):
    courts: List[CourtResponse] = Field(default_factory=list)
