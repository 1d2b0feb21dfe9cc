"""
Booking status state machine.

    pending   -> confirmed   (immediately, when the reservation commits)
    pending   -> cancelled
    confirmed -> cancelled   (booking user, venue owner or admin)
    confirmed -> completed   (derived once date + end time has passed)

cancelled and completed are terminal.
"""

import enum
from datetime import date, datetime

from .clock import at_minute
from .errors import InvalidStateTransitionError


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)
TERMINAL_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED})

_TRANSITIONS = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return BookingStatus(target) in _TRANSITIONS[BookingStatus(current)]


def transition(current: BookingStatus, target: BookingStatus) -> BookingStatus:
    current = BookingStatus(current)
    target = BookingStatus(target)

    if current in TERMINAL_STATUSES:
        raise InvalidStateTransitionError(
            f"Booking is already {current.value}; it cannot become {target.value}"
        )
    if not can_transition(current, target):
        raise InvalidStateTransitionError(
            f"Cannot move booking from {current.value} to {target.value}"
        )
    return target


def effective_status(
    status: BookingStatus,
    booking_date: date,
    end_minute: int,
    now: datetime,
) -> BookingStatus:
    """
    Stored status with the lazy completion rule applied.

    A confirmed booking whose end has passed reads as completed. Nothing is
    written back; the row keeps its stored status.
    """
    status = BookingStatus(status)
    if status == BookingStatus.CONFIRMED and at_minute(booking_date, end_minute) <= now:
        return BookingStatus.COMPLETED
    return status
