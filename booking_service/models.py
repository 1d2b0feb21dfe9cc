from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    false,
    func,
)

from .db import Base
from .lifecycle import BookingStatus


class Venue(Base):
    __tablename__ = "venues"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, nullable=False, index=True)

    name = Column(String(255), nullable=False)
    address = Column(Text, nullable=False)
    location = Column(Text, nullable=True)
    description = Column(Text, nullable=True)

    # only approved venues are listed and bookable
    approved = Column(Boolean, nullable=False, default=False, server_default=false(), index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Court(Base):
    __tablename__ = "courts"

    id = Column(Integer, primary_key=True)
    venue_id = Column(Integer, ForeignKey("venues.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    sport_type = Column(String(100), nullable=False)
    price_per_hour = Column(Integer, nullable=False)

    # minutes since midnight, venue-local
    opening_minute = Column(Integer, nullable=False)
    closing_minute = Column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("closing_minute > opening_minute", name="ck_courts_hours"),
        CheckConstraint("price_per_hour > 0", name="ck_courts_price_positive"),
    )


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True)
    court_id = Column(Integer, ForeignKey("courts.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, nullable=False, index=True)

    booking_date = Column(Date, nullable=False)
    start_minute = Column(Integer, nullable=False)
    end_minute = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint("end_minute > start_minute", name="ck_bookings_range"),
        Index("ix_bookings_court_date", "court_id", "booking_date"),
    )
