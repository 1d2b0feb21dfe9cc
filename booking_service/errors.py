class BookingServiceError(Exception):
    """
    Base for caller-visible booking outcomes.

    Each subclass carries a stable machine code and the HTTP status the API
    renders it with. None of them are retried inside the service.
    """

    code = "booking_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(BookingServiceError):
    code = "not_found"
    status_code = 404


class InvalidRangeError(BookingServiceError):
    code = "invalid_range"
    status_code = 400


class ConflictError(BookingServiceError):
    """Slot taken at commit time. The caller should pick another slot."""

    code = "slot_unavailable"
    status_code = 409


class ForbiddenError(BookingServiceError):
    code = "forbidden"
    status_code = 403


class InvalidStateTransitionError(BookingServiceError):
    code = "invalid_state_transition"
    status_code = 409
