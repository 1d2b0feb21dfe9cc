"""
Time model for court bookings.

Times of day are plain integers counting minutes since midnight, dates are
``datetime.date`` values. Intervals are half-open: ``[start, end)``.
"""

import re
from dataclasses import dataclass

from .errors import InvalidRangeError

MINUTES_PER_DAY = 24 * 60

_HHMM_RE = re.compile(r"(\d{2}):(\d{2})(?::(\d{2}))?", re.ASCII)


def parse_hhmm(value: str) -> int:
    """
    Parse ``HH:MM`` (or ``HH:MM:SS``, seconds must be zero) into minutes.

    ``24:00`` is accepted and maps to the end of the day.
    """
    match = _HHMM_RE.fullmatch((value or "").strip())
    if not match:
        raise InvalidRangeError(f"Invalid time of day: {value!r}")

    hours, minutes = int(match.group(1)), int(match.group(2))
    seconds = int(match.group(3) or 0)
    if minutes >= 60 or seconds != 0:
        raise InvalidRangeError(f"Invalid time of day: {value!r}")

    total = hours * 60 + minutes
    if total > MINUTES_PER_DAY:
        raise InvalidRangeError(f"Invalid time of day: {value!r}")
    return total


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass(frozen=True, order=True)
class TimeRange:
    """
    Half-open interval of minutes within one day.

    Ordering compares ``start`` first, so sorting a list of ranges sorts it
    chronologically.
    """

    start: int
    end: int

    def __post_init__(self):
        if not (0 <= self.start < MINUTES_PER_DAY) or not (0 < self.end <= MINUTES_PER_DAY):
            raise InvalidRangeError(
                f"Time range {self.start}-{self.end} is outside of a single day"
            )
        if self.end <= self.start:
            raise InvalidRangeError(
                f"End time ({format_hhmm(self.end)}) must be after start time ({format_hhmm(self.start)})"
            )

    @classmethod
    def parse(cls, start: str, end: str) -> "TimeRange":
        return cls(parse_hhmm(start), parse_hhmm(end))

    def overlaps_with(self, other: "TimeRange") -> bool:
        """
        True if the ranges share at least one minute.

        Touching ranges do not overlap: 09:00-10:00 and 10:00-11:00 -> False.
        """
        return self.start < other.end and other.start < self.end

    def contains(self, other: "TimeRange") -> bool:
        return self.start <= other.start and other.end <= self.end

    @property
    def minutes(self) -> int:
        return self.end - self.start

    def __str__(self):
        return f"{format_hhmm(self.start)}-{format_hhmm(self.end)}"


def overlaps(a: TimeRange, b: TimeRange) -> bool:
    return a.overlaps_with(b)


def to_slots(opening: int, closing: int, slot_minutes: int) -> list[TimeRange]:
    """
    Split operating hours into consecutive bookable slots.

    Raises InvalidRangeError when the hours are empty or when ``slot_minutes``
    does not divide them evenly; a short trailing slot is never produced.
    """
    if closing <= opening:
        raise InvalidRangeError(
            f"Closing time ({format_hhmm(closing)}) must be after opening time ({format_hhmm(opening)})"
        )
    if slot_minutes <= 0:
        raise InvalidRangeError("Slot duration must be positive")
    if (closing - opening) % slot_minutes:
        raise InvalidRangeError(
            f"Slot duration of {slot_minutes} minutes does not evenly divide "
            f"{format_hhmm(opening)}-{format_hhmm(closing)}"
        )

    return [
        TimeRange(start, start + slot_minutes)
        for start in range(opening, closing, slot_minutes)
    ]
