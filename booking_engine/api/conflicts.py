# booking_engine/api/conflicts.py
#
# Conflict detection for proposed booking moves.
# Pure: no store access, no clock access; the caller passes "now".

from datetime import datetime
from typing import Iterable, List, Sequence

from booking_engine.api.models import Booking, BookingMove, Conflict, ConflictCode, format_time
from booking_engine.timezone_utils import local_day


def _overlap_reason(move: BookingMove, other_label: str, other_start: datetime, other_end: datetime) -> str:
    return (
        f"New time {format_time(move.proposed.start)}-{format_time(move.proposed.end)} "
        f"overlaps booking {other_label} at {format_time(other_start)}-{format_time(other_end)}"
    )


def find_conflicts(moves: Sequence[BookingMove], schedule: Iterable[Booking], now: datetime) -> List[Conflict]:
    """
    Check a set of proposed moves against each other and against a barber's schedule.

    Args:
        moves: bookings with the windows they would move to
        schedule: bookings already on the calendar; moved bookings in here are
                  ignored, since they will no longer occupy their old window
        now: current instant; nothing may be moved into the past
    Returns:
        list of Conflict, every problem found, in move order (empty = valid)
    """
    moving_ids = {move.booking.id for move in moves}
    fixed = [b for b in schedule if b.is_active and b.id not in moving_ids]

    conflicts = []
    for i, move in enumerate(moves):
        booking = move.booking

        if move.delta and move.proposed.start < now:
            conflicts.append(Conflict(
                booking_id=booking.id,
                booking_reference=booking.reference,
                code=ConflictCode.IN_PAST,
                reason=f"New time {format_time(move.proposed.start)} on "
                       f"{local_day(move.proposed.start).isoformat()} is in the past",
                attempted_start=move.proposed.start,
                attempted_end=move.proposed.end,
            ))

        for other in fixed:
            if other.resource_id != booking.resource_id:
                continue
            if move.proposed.overlaps(other.window):
                conflicts.append(Conflict(
                    booking_id=booking.id,
                    booking_reference=booking.reference,
                    code=ConflictCode.OVERLAP,
                    reason=_overlap_reason(move, other.label, other.start, other.end),
                    attempted_start=move.proposed.start,
                    attempted_end=move.proposed.end,
                    conflicting_booking_id=other.id,
                ))

        # moves against each other, each pair reported once
        for other_move in moves[:i]:
            if other_move.booking.resource_id != booking.resource_id:
                continue
            if move.proposed.overlaps(other_move.proposed):
                conflicts.append(Conflict(
                    booking_id=booking.id,
                    booking_reference=booking.reference,
                    code=ConflictCode.OVERLAP,
                    reason=_overlap_reason(move, other_move.booking.label,
                                           other_move.proposed.start, other_move.proposed.end),
                    attempted_start=move.proposed.start,
                    attempted_end=move.proposed.end,
                    conflicting_booking_id=other_move.booking.id,
                ))

    return conflicts
