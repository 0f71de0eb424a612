# booking_engine/api/workflow.py
#
# Two-phase reschedule: preview (dry run) then commit (atomic write).
#
#   DRAFT --preview--> PREVIEWED --commit--> COMMITTED
#                                 \--------> ABANDONED (conflicts, or caller walks away)
#
# Nothing is kept between the two calls. Commit rebuilds the plan from the
# store inside the same transaction that writes it, so a slot taken by
# someone else after the preview is caught and reported as a conflict.

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime

from booking_engine import db
from booking_engine.api.errors import BookingNotFound
from booking_engine.api.models import (
    BookingMove,
    CommitResult,
    Conflict,
    ConflictCode,
    ReschedulePlan,
    RescheduleRequest,
    WorkflowState,
)
from booking_engine.api.reschedule import plan_reschedule

logger = logging.getLogger(__name__)

# fixed pool; unrelated (barber, day) keys may share a stripe
LOCK_STRIPES = 64
_locks = tuple(threading.Lock() for _ in range(LOCK_STRIPES))


def _lock_for(resource_id: str, day: date) -> threading.Lock:
    return _locks[hash((str(resource_id), day)) % LOCK_STRIPES]


@contextmanager
def _resource_day_lock(resource_id: str, day: date):
    """Serialize commits in this process touching the same barber and day."""
    with _lock_for(resource_id, day):
        yield


class _ChangedDuringCommit(Exception):
    def __init__(self, move: BookingMove):
        self.move = move
        super().__init__(f"Booking {move.booking.id} changed during commit")


def preview_reschedule(booking_id, new_start: datetime, apply_cascade: bool = False,
                       now: datetime = None) -> ReschedulePlan:
    """
    Dry run of a reschedule. Persists nothing; safe to call any number of times.
    Returns: ReschedulePlan in PREVIEWED state with its validation results.
    """
    request = RescheduleRequest(booking_id=str(booking_id), new_start=new_start, apply_cascade=apply_cascade)
    plan = plan_reschedule(request, now=now)
    return replace(plan, state=WorkflowState.PREVIEWED)


def commit_reschedule(booking_id, new_start: datetime, apply_cascade: bool = False,
                      now: datetime = None, previewed_valid: bool = None) -> CommitResult:
    """
    Re-plan against the current store and, if still valid, move the target and
    every cascaded booking in one transaction.
    Args:
        booking_id: booking to move
        new_start: requested start (timezone-aware)
        apply_cascade: shift the barber's later bookings that day too
        now: current instant (default: current shop time)
        previewed_valid: what the caller's preview said, if it ran one; used only
                         to flag conflicts that appeared after the preview as stale
    Returns:
        CommitResult: COMMITTED with affected ids, or ABANDONED with conflicts
    Raises:
        BookingNotFound: unknown booking id
        UpstreamUnavailable: store failure; nothing from the batch is kept
    """
    request = RescheduleRequest(booking_id=str(booking_id), new_start=new_start, apply_cascade=apply_cascade)
    booking = db.get_booking(request.booking_id)
    if booking is None:
        raise BookingNotFound(request.booking_id)

    with _resource_day_lock(booking.resource_id, booking.day):
        try:
            with db.transaction() as conn:
                plan = plan_reschedule(request, now=now, conn=conn)
                if not plan.is_valid:
                    logger.info(
                        f"Reschedule of booking {booking.id} refused: "
                        f"{len(plan.conflicts)} conflict(s)"
                    )
                    return CommitResult(
                        success=False,
                        state=WorkflowState.ABANDONED,
                        conflicts=plan.conflicts,
                        stale=bool(previewed_valid),
                    )

                for move in plan.moves:
                    updated = db.update_booking_window(
                        move.booking.id, move.proposed.start, move.proposed.end, conn
                    )
                    if not updated:
                        raise _ChangedDuringCommit(move)
        except _ChangedDuringCommit as e:
            logger.warning(f"Reschedule of booking {booking.id} rolled back: {e}")
            move = e.move
            return CommitResult(
                success=False,
                state=WorkflowState.ABANDONED,
                conflicts=(Conflict(
                    booking_id=move.booking.id,
                    booking_reference=move.booking.reference,
                    code=ConflictCode.CHANGED_DURING_COMMIT,
                    reason=f"Booking {move.booking.label} was changed or cancelled while saving",
                    attempted_start=move.proposed.start,
                    attempted_end=move.proposed.end,
                ),),
                stale=True,
            )

    logger.info(
        f"Rescheduled booking {booking.id} by {plan.target.delta_minutes} min; "
        f"{len(plan.dependents)} later booking(s) shifted"
    )
    return CommitResult(
        success=True,
        state=WorkflowState.COMMITTED,
        affected_booking_ids=plan.affected_booking_ids,
    )
