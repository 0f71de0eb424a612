# booking_engine/api/reschedule.py
#
# Builds reschedule plans:
# 1. Moves the target booking to the requested start, keeping its duration
# 2. With cascade ("domino effect"), shifts every later booking the same
#    barber has that day by the same delta, each keeping its own duration
# 3. Validates every proposed window against the rest of the barber's schedule
# 4. Offers extra start times inside the booking's own current window
#
# Planning never writes; the workflow module decides whether to persist.

import logging
from datetime import datetime, timedelta
from typing import List

from config.settings import RESCHEDULE_GRANULARITY_MINUTES
from booking_engine import db, timezone_utils
from booking_engine.api.conflicts import find_conflicts
from booking_engine.api.errors import BookingNotFound
from booking_engine.api.models import (
    Booking,
    BookingMove,
    Conflict,
    ConflictCode,
    ReschedulePlan,
    RescheduleRequest,
    Window,
)

logger = logging.getLogger(__name__)


def reschedule_options(booking: Booking, now: datetime,
                       granularity_minutes: int = RESCHEDULE_GRANULARITY_MINUTES) -> List[datetime]:
    """
    Start times strictly inside the booking's current window, every
    `granularity_minutes` after its start. The moved booking keeps its
    duration, so an option can still run into the next booking; options are
    suggestions and go through the usual conflict check when previewed.
    Times already in the past are left out.
    """
    if granularity_minutes <= 0:
        raise ValueError(f"granularity_minutes must be positive, got {granularity_minutes}")
    step = timedelta(minutes=granularity_minutes)
    options = []
    candidate = booking.start + step
    while candidate < booking.end:
        if candidate >= now:
            options.append(candidate)
        candidate += step
    return options


def cascade_dependents(booking: Booking, schedule: List[Booking]) -> List[Booking]:
    """
    Other active bookings for the same barber that start later on the same day,
    ordered by start.
    """
    return sorted(
        (
            other for other in schedule
            if other.id != booking.id
            and other.is_active
            and other.resource_id == booking.resource_id
            and other.day == booking.day
            and other.start > booking.start
        ),
        key=lambda b: b.start,
    )


def plan_reschedule(request: RescheduleRequest, now: datetime = None, conn=None,
                    granularity_minutes: int = RESCHEDULE_GRANULARITY_MINUTES) -> ReschedulePlan:
    """
    Compute (but do not apply) a reschedule.
    Args:
        request: booking id, new start, whether to cascade
        now: current instant (default: current shop time)
        conn: open store connection; pass the commit transaction's connection
              so planning reads the same state that will be written
        granularity_minutes: spacing of the within-own-window options
    Returns:
        ReschedulePlan in DRAFT state; plan.is_valid tells whether it can be applied
    Raises:
        BookingNotFound: unknown booking id
        UpstreamUnavailable: booking store failure
    """
    now = now or timezone_utils.now()
    booking = db.get_booking(request.booking_id, conn)
    if booking is None:
        raise BookingNotFound(request.booking_id)

    proposed = Window(request.new_start, request.new_start + booking.duration)
    target = BookingMove(booking=booking, proposed=proposed)

    if not booking.is_active:
        return ReschedulePlan(
            request=request,
            target=target,
            conflicts=(Conflict(
                booking_id=booking.id,
                booking_reference=booking.reference,
                code=ConflictCode.NOT_ACTIVE,
                reason=f"Booking {booking.label} is {booking.status} and cannot be rescheduled",
                attempted_start=proposed.start,
                attempted_end=proposed.end,
            ),),
        )

    delta = target.delta
    first_day = min(booking.day, timezone_utils.local_day(proposed.start))
    schedule = db.get_active_bookings(booking.resource_id, timezone_utils.start_of_day(first_day), conn)

    dependents = ()
    if request.apply_cascade:
        dependents = tuple(
            BookingMove(booking=other, proposed=other.window.shifted(delta))
            for other in cascade_dependents(booking, schedule)
        )

    moves = (target,) + dependents
    conflicts = find_conflicts(moves, schedule, now)

    plan = ReschedulePlan(
        request=request,
        target=target,
        dependents=dependents,
        conflicts=tuple(conflicts),
        reschedule_options=tuple(reschedule_options(booking, now, granularity_minutes)),
    )
    logger.debug(
        f"Planned move of booking {booking.id} by {target.delta_minutes} min "
        f"({len(dependents)} dependents, {len(conflicts)} conflicts)"
    )
    return plan
