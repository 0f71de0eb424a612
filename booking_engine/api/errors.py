# booking_engine/api/errors.py
#
# Exceptions raised by the scheduling engine.
# Only infrastructure failures and unknown ids are exceptions; conflicts,
# "no availability" and stale commits are returned as data.


class SchedulingError(Exception):
    """Base class for scheduling engine errors."""


class UpstreamUnavailable(SchedulingError):
    """
    The availability source or the booking store could not be reached.
    Never treated as "no results".
    """

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source} unavailable: {message}")


class BookingNotFound(SchedulingError, LookupError):
    """No booking exists with the requested id."""

    def __init__(self, booking_id):
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} not found")
