import os

BOOKING_DB = os.getenv("BOOKING_DB")
SQL_ECHO = (os.getenv("SQL_ECHO") or "false").lower() == "true"

REDIS_URL = os.getenv("REDIS_URL")  # optional, availability cache is off without it
RABBIT_URL = os.getenv("RABBIT_URL")  # optional, events are off without it

JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM") or "HS256"

# Court hours are wall-clock times in the venue's zone.
VENUE_TIMEZONE = os.getenv("VENUE_TIMEZONE") or "UTC"

DEFAULT_SLOT_MINUTES = int(os.getenv("DEFAULT_SLOT_MINUTES") or "60")
AVAILABILITY_CACHE_TTL = int(os.getenv("AVAILABILITY_CACHE_TTL") or "5")

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").upper()
