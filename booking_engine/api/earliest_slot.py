# booking_engine/api/earliest_slot.py
#
# Earliest open slot across a pool of barbers:
# - Asks the slot catalog for the whole pool over the search horizon
# - Walks days in order, slots in order within a day
# - First slot owned by an eligible barber wins (earliest, not "best")
# - If the availability source is down, either picks a random eligible
#   barber without a time (degraded mode) or raises, depending on policy

import logging
import random
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from config.settings import SEARCH_FAILURE_POLICY, SEARCH_HORIZON_DAYS
from booking_engine import timezone_utils
from booking_engine.api.errors import UpstreamUnavailable
from booking_engine.api.models import (
    DegradedResourceOnly,
    NotFound,
    Resource,
    ServiceRequirement,
    SlotFound,
)
from booking_engine.api.slot_catalog import AvailabilitySource, open_slots

logger = logging.getLogger(__name__)

RANDOM_RESOURCE = "random_resource"
RAISE = "raise"


def eligible_pool(resources: Iterable[Resource], eligible_resource_ids: Optional[Sequence[str]]) -> list:
    """
    Barbers a search may return.
    With explicit ids: those barbers, if active.
    Without ids ("any barber"): every active barber that takes part in pooled search.
    """
    if eligible_resource_ids is None:
        return [r for r in resources if r.is_active and r.pooled]
    wanted = {str(rid) for rid in eligible_resource_ids}
    return [r for r in resources if r.is_active and str(r.id) in wanted]


def resolve_resource(resource_ref: str, pool: Sequence[Resource]) -> Optional[Resource]:
    """
    Map an upstream slot reference back to a barber.
    Upstream data uses either our internal id or the calendar's external id,
    so both lookups are tried, internal id first.
    """
    ref = str(resource_ref)
    for resource in pool:
        if str(resource.id) == ref:
            return resource
    for resource in pool:
        if resource.external_id is not None and str(resource.external_id) == ref:
            return resource
    return None


def _query_ids(pool: Sequence[Resource]) -> list:
    # ask upstream with the calendar's own ids where we have them
    return [r.external_id or r.id for r in pool]


def find_earliest_slot(requirement: ServiceRequirement,
                       eligible_resource_ids: Optional[Sequence[str]],
                       resources: Iterable[Resource],
                       source: AvailabilitySource,
                       now: datetime = None,
                       horizon_days: int = SEARCH_HORIZON_DAYS,
                       on_source_failure: str = SEARCH_FAILURE_POLICY,
                       rng: random.Random = None):
    """
    Find the first open slot for a service among the eligible barbers.
    Args:
        requirement: service being booked (gives the duration)
        eligible_resource_ids: barbers allowed to take it, or None for "any barber"
        resources: every known barber
        source: availability source
        now: search start (default: current shop time)
        horizon_days: how many days ahead to look, today included
        on_source_failure: "random_resource" (degraded mode) or "raise"
        rng: random generator for the degraded pick (default: module random)
    Returns:
        SlotFound: earliest slot and its barber
        DegradedResourceOnly: source failed, random barber chosen, no time
        NotFound: nothing open within the horizon
    Raises:
        UpstreamUnavailable: source failed and policy is "raise"
    """
    if horizon_days < 1:
        raise ValueError(f"horizon_days must be at least 1, got {horizon_days}")
    if on_source_failure not in (RANDOM_RESOURCE, RAISE):
        raise ValueError(f"Unknown source failure policy: {on_source_failure!r}")

    now = now or timezone_utils.now()
    pool = eligible_pool(resources, eligible_resource_ids)
    if not pool:
        logger.info(f"No eligible barbers for service {requirement.id}")
        return NotFound(horizon_days=horizon_days)

    first_day = timezone_utils.local_day(now)
    last_day = first_day + timedelta(days=horizon_days)  # exclusive

    try:
        slots = open_slots(source, _query_ids(pool), first_day, last_day, requirement.duration_minutes)
    except UpstreamUnavailable as e:
        if on_source_failure == RAISE:
            raise
        resource = (rng or random).choice(pool)
        logger.warning(
            f"Availability search failed ({e}); falling back to random barber {resource.id} "
            f"for service {requirement.id}"
        )
        return DegradedResourceOnly(resource=resource, reason=str(e))

    for slot in slots:
        if slot.start < now:
            continue
        resource = resolve_resource(slot.resource_ref, pool)
        if resource is None:
            continue
        logger.info(f"Earliest slot for service {requirement.id}: {slot.start.isoformat()} with {resource.id}")
        return SlotFound(
            slot=replace(slot, resource_id=resource.id),
            resource=resource,
        )

    logger.info(f"No availability for service {requirement.id} in the next {horizon_days} days")
    return NotFound(horizon_days=horizon_days)
