# booking_engine/api/slot_catalog.py
#
# Turns whatever the availability source hands back into Slot objects
# ordered by day, then start time.
#
# Accepted raw shapes:
#   - {"YYYY-MM-DD": [raw_slot, ...]}      (availabilities_by_date)
#   - {"availabilities_by_date": {...}}    (full availability response)
#   - [raw_slot, ...] or [Slot, ...]
# where raw_slot is
#   {"start_at": "...", "team_member_id": "...", "duration_minutes": 30}
# or the segment form
#   {"start_at": "...", "appointment_segments": [{"team_member_id": "...", "duration_minutes": 30}]}

import logging
from datetime import date, datetime
from typing import Iterable, Iterator, Optional, Protocol, Sequence

from booking_engine.api.models import Slot
from booking_engine.timezone_utils import make_aware, parse_iso_with_tz

logger = logging.getLogger(__name__)


class AvailabilitySource(Protocol):
    def list_open_slots(self, resource_ids: Sequence[str], start_date: date,
                        end_date: date, duration_minutes: int):
        """Raw open slots for [start_date, end_date). Raises UpstreamUnavailable on transport failure."""
        ...


def _parse_start(value) -> datetime:
    if isinstance(value, datetime):
        return make_aware(value)
    return parse_iso_with_tz(str(value))


def normalize_slot(raw, default_duration: int) -> Optional[Slot]:
    """
    Build a Slot from one raw availability record.
    Returns None for records without a start time or a resource reference,
    and for records that cannot be parsed.
    """
    if isinstance(raw, Slot):
        return raw
    if not isinstance(raw, dict):
        logger.warning(f"Skipping availability record that is not a mapping: {raw!r}")
        return None

    start_value = raw.get("start_at") or raw.get("start")
    if not start_value:
        logger.warning(f"Skipping availability record without a start time: {raw}")
        return None

    segment = {}
    segments = raw.get("appointment_segments") or []
    if isinstance(segments, list) and segments and isinstance(segments[0], dict):
        segment = segments[0]

    resource_ref = (
        raw.get("team_member_id")
        or raw.get("resource_id")
        or segment.get("team_member_id")
        or segment.get("resource_id")
    )
    if resource_ref is None:
        logger.warning(f"Skipping availability record without a barber reference: {raw}")
        return None

    duration = raw.get("duration_minutes") or segment.get("duration_minutes") or default_duration
    try:
        start = _parse_start(start_value)
        duration = int(duration)
    except (TypeError, ValueError) as e:
        logger.warning(f"Skipping malformed availability record ({e}): {raw}")
        return None
    return Slot(start=start, duration_minutes=duration, resource_ref=str(resource_ref))


def _iter_raw(raw_data) -> Iterable:
    if raw_data is None:
        return []
    if isinstance(raw_data, dict):
        if "availabilities_by_date" in raw_data:
            raw_data = raw_data["availabilities_by_date"] or {}
        # keyed by date; the keys only group records, each record carries its own start
        return [record for records in raw_data.values() for record in (records or [])]
    return raw_data


def open_slots(source: AvailabilitySource, resource_ids: Sequence[str], start_date: date,
               end_date: date, duration_minutes: int) -> Iterator[Slot]:
    """
    Every open slot for the given barbers in [start_date, end_date) that fits
    the required duration.

    Args:
        source: availability source (see AvailabilitySource)
        resource_ids: barbers to ask about (non-empty)
        start_date: first day, inclusive
        end_date: last day, exclusive
        duration_minutes: required length of the appointment
    Returns:
        iterator of Slot ordered by day, start time, then resource reference.
        The source is queried before this returns, so its errors surface here.
    """
    resource_ids = list(resource_ids)
    if not resource_ids:
        raise ValueError("At least one resource id is required")
    if duration_minutes <= 0:
        raise ValueError(f"duration_minutes must be positive, got {duration_minutes}")
    if end_date <= start_date:
        return iter(())

    raw_data = source.list_open_slots(resource_ids, start_date, end_date, duration_minutes)

    seen = set()
    by_day = {}
    for raw in _iter_raw(raw_data):
        slot = normalize_slot(raw, duration_minutes)
        if slot is None:
            continue
        if not (start_date <= slot.day < end_date):
            continue
        if slot.duration_minutes < duration_minutes:
            continue
        key = (slot.start, slot.resource_ref)
        if key in seen:
            continue
        seen.add(key)
        by_day.setdefault(slot.day, []).append(slot)

    logger.debug(f"Availability source returned {len(seen)} usable slots over {len(by_day)} days")
    return _ordered(by_day)


def _ordered(by_day: dict) -> Iterator[Slot]:
    for day in sorted(by_day):
        yield from sorted(by_day[day], key=lambda s: (s.start, s.resource_ref))
