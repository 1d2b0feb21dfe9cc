import json
import uuid
from datetime import datetime, timezone

from .timeslots import format_hhmm


def build_event(event_type: str, data: dict) -> dict:
    return {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }


def to_json(event: dict) -> str:
    return json.dumps(event, separators=(",", ":"), ensure_ascii=False)


def booking_event_data(booking) -> dict:
    return {
        "booking_id": booking.id,
        "court_id": booking.court_id,
        "user_id": booking.user_id,
        "date": booking.booking_date.isoformat(),
        "start_time": format_hhmm(booking.start_minute),
        "end_time": format_hhmm(booking.end_minute),
        "status": booking.status,
    }
