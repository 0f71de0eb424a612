# booking_engine/api/models.py
#
# Value objects shared by the search, conflict, reschedule and workflow layers.
# Everything here is immutable; plans are rebuilt, never edited in place.

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Tuple

from booking_engine.timezone_utils import from_utc, local_day

# resource status
RESOURCE_ACTIVE = "ACTIVE"
RESOURCE_INACTIVE = "INACTIVE"

# booking status
BOOKING_ACTIVE = "active"
BOOKING_CANCELLED = "cancelled"
BOOKING_COMPLETED = "completed"
BOOKING_STATUSES = (BOOKING_ACTIVE, BOOKING_CANCELLED, BOOKING_COMPLETED)


class WorkflowState(str, Enum):
    DRAFT = "draft"
    PREVIEWED = "previewed"
    COMMITTED = "committed"
    ABANDONED = "abandoned"


class ConflictCode(str, Enum):
    OVERLAP = "overlap"
    IN_PAST = "in_past"
    NOT_ACTIVE = "not_active"
    CHANGED_DURING_COMMIT = "changed_during_commit"


def format_time(dt: datetime) -> str:
    """Shop-local clock time, e.g. '9:15 AM'."""
    return from_utc(dt).strftime("%I:%M %p").lstrip("0")


@dataclass(frozen=True)
class Resource:
    """A barber. `external_id` is the id used by the upstream calendar."""

    id: str
    name: str = ""
    external_id: Optional[str] = None
    status: str = RESOURCE_ACTIVE
    pooled: bool = True

    @property
    def is_active(self) -> bool:
        return self.status == RESOURCE_ACTIVE

    def matches(self, ref: str) -> bool:
        """True if an upstream reference points at this resource by either id."""
        ref = str(ref)
        return ref == str(self.id) or (self.external_id is not None and ref == str(self.external_id))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "external_id": self.external_id,
            "status": self.status,
            "pooled": self.pooled,
        }


@dataclass(frozen=True)
class ServiceRequirement:
    id: str
    name: str
    duration_minutes: int

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise ValueError(f"Service {self.id} must have a positive duration")

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.duration_minutes)


@dataclass(frozen=True)
class Slot:
    """An open appointment window as reported by the availability source."""

    start: datetime
    duration_minutes: int
    resource_ref: str
    resource_id: Optional[str] = None

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    @property
    def day(self) -> date:
        return local_day(self.start)

    def to_dict(self) -> dict:
        return {
            "start_at": self.start.isoformat(),
            "end_at": self.end.isoformat(),
            "duration_minutes": self.duration_minutes,
            "resource_ref": self.resource_ref,
            "resource_id": self.resource_id,
            "formatted_time": format_time(self.start),
        }


@dataclass(frozen=True)
class Window:
    """Half-open time interval [start, end)."""

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end <= self.start:
            raise ValueError(f"Window end {self.end} must be after start {self.start}")

    def overlaps(self, other: "Window") -> bool:
        # touching endpoints do not overlap
        return self.start < other.end and other.start < self.end

    def shifted(self, delta: timedelta) -> "Window":
        return Window(self.start + delta, self.end + delta)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass(frozen=True)
class Booking:
    id: str
    resource_id: str
    start: datetime
    end: datetime
    status: str = BOOKING_ACTIVE
    reference: str = ""
    customer_name: Optional[str] = None

    @property
    def window(self) -> Window:
        return Window(self.start, self.end)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def day(self) -> date:
        return local_day(self.start)

    @property
    def is_active(self) -> bool:
        return self.status == BOOKING_ACTIVE

    @property
    def label(self) -> str:
        return self.reference or str(self.id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "booking_reference": self.reference,
            "resource_id": self.resource_id,
            "customer_name": self.customer_name,
            "start_at": self.start.isoformat(),
            "end_at": self.end.isoformat(),
            "date": self.day.isoformat(),
            "status": self.status,
        }


@dataclass(frozen=True)
class BookingMove:
    """One booking in a plan, with the window it has and the one it would get."""

    booking: Booking
    proposed: Window

    @property
    def original(self) -> Window:
        return self.booking.window

    @property
    def delta(self) -> timedelta:
        return self.proposed.start - self.original.start

    @property
    def delta_minutes(self) -> int:
        return int(self.delta.total_seconds() // 60)

    def to_dict(self) -> dict:
        return {
            "id": self.booking.id,
            "booking_reference": self.booking.reference,
            "customer_name": self.booking.customer_name,
            "old_start": self.original.start.isoformat(),
            "new_start": self.proposed.start.isoformat(),
            "old_end": self.original.end.isoformat(),
            "new_end": self.proposed.end.isoformat(),
            "delta_minutes": self.delta_minutes,
            "old_time": format_time(self.original.start),
            "new_time": format_time(self.proposed.start),
        }


@dataclass(frozen=True)
class Conflict:
    """Why a proposed window cannot be applied to a booking."""

    booking_id: str
    booking_reference: str
    code: ConflictCode
    reason: str
    attempted_start: Optional[datetime] = None
    attempted_end: Optional[datetime] = None
    conflicting_booking_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "booking_id": self.booking_id,
            "booking_reference": self.booking_reference,
            "code": self.code.value,
            "reason": self.reason,
            "attempted_new_time": self.attempted_start.isoformat() if self.attempted_start else None,
            "attempted_new_end": self.attempted_end.isoformat() if self.attempted_end else None,
            "conflicting_booking_id": self.conflicting_booking_id,
        }


@dataclass(frozen=True)
class RescheduleRequest:
    """What the caller asked for; passed unchanged through preview and commit."""

    booking_id: str
    new_start: datetime
    apply_cascade: bool = False

    def __post_init__(self):
        if self.new_start.tzinfo is None:
            raise ValueError("new_start must be timezone-aware")


@dataclass(frozen=True)
class ReschedulePlan:
    request: RescheduleRequest
    target: BookingMove
    dependents: Tuple[BookingMove, ...] = ()
    conflicts: Tuple[Conflict, ...] = ()
    reschedule_options: Tuple[datetime, ...] = ()
    state: WorkflowState = WorkflowState.DRAFT

    @property
    def delta(self) -> timedelta:
        return self.target.delta

    @property
    def is_valid(self) -> bool:
        return not self.conflicts

    @property
    def moves(self) -> Tuple[BookingMove, ...]:
        return (self.target,) + tuple(self.dependents)

    @property
    def affected_booking_ids(self) -> Tuple[str, ...]:
        return tuple(move.booking.id for move in self.moves)

    def to_dict(self) -> dict:
        return {
            "preview": self.state == WorkflowState.PREVIEWED,
            "state": self.state.value,
            "apply_domino_effect": self.request.apply_cascade,
            "delta_minutes": self.target.delta_minutes,
            "original_booking": self.target.to_dict(),
            "affected_bookings": [move.to_dict() for move in self.dependents],
            "validation_results": {
                "all_valid": self.is_valid,
                "conflicts": [conflict.to_dict() for conflict in self.conflicts],
            },
            "reschedule_options": [start.isoformat() for start in self.reschedule_options],
        }


@dataclass(frozen=True)
class SlotFound:
    slot: Slot
    resource: Resource
    status: str = field(default="found", init=False)

    def to_dict(self) -> dict:
        return {"status": self.status, "slot": self.slot.to_dict(), "resource": self.resource.to_dict()}


@dataclass(frozen=True)
class DegradedResourceOnly:
    """Search failed upstream; a resource was picked but the time is left to the user."""

    resource: Resource
    reason: str
    status: str = field(default="degraded", init=False)

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "slot": None,
            "resource": self.resource.to_dict(),
            "reason": self.reason,
        }


@dataclass(frozen=True)
class NotFound:
    horizon_days: int
    status: str = field(default="not_found", init=False)

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "slot": None,
            "message": f"No availability in the next {self.horizon_days} days",
        }


@dataclass(frozen=True)
class CommitResult:
    success: bool
    state: WorkflowState
    affected_booking_ids: Tuple[str, ...] = ()
    conflicts: Tuple[Conflict, ...] = ()
    stale: bool = False

    def to_dict(self) -> dict:
        if self.success:
            return {
                "success": True,
                "state": self.state.value,
                "affected_booking_ids": list(self.affected_booking_ids),
            }
        return {
            "success": False,
            "state": self.state.value,
            "stale": self.stale,
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
        }
