from datetime import date, datetime, timedelta

from dateutil import tz

from .config import VENUE_TIMEZONE

_venue_tz = tz.gettz(VENUE_TIMEZONE)
if _venue_tz is None:
    raise RuntimeError(f"Unknown VENUE_TIMEZONE: {VENUE_TIMEZONE}")


def venue_now() -> datetime:
    """Current wall-clock time at the venue, as a naive datetime."""
    return datetime.now(_venue_tz).replace(tzinfo=None)


def at_minute(day: date, minute: int) -> datetime:
    # minute 1440 rolls over to the next day's midnight
    return datetime(day.year, day.month, day.day) + timedelta(minutes=minute)
