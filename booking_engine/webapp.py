from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from booking_engine import db, timezone_utils
from booking_engine.api.availability_client import AvailabilityClient
from booking_engine.api.earliest_slot import find_earliest_slot
from booking_engine.api.errors import BookingNotFound, UpstreamUnavailable
from booking_engine.api.workflow import commit_reschedule, preview_reschedule
from booking_engine.logging_config import setup_logging

setup_logging()
db.init_db()

# -------------------
# CONFIG / GLOBALS
# -------------------
app = FastAPI(title="Barber booking scheduling engine")


def get_availability_source():
    """Availability source for one request; overridden in tests."""
    client = AvailabilityClient()
    try:
        yield client
    finally:
        client.close()


def get_now() -> datetime:
    return timezone_utils.now()


# -------------------
# REQUEST BODIES
# -------------------
class EarliestSlotRequest(BaseModel):
    service_id: str
    resource_ids: Optional[List[str]] = None  # None = any barber


class RescheduleCascadeRequest(BaseModel):
    start_at: datetime
    apply_domino_effect: bool = False
    preview_only: bool = True
    previewed_valid: Optional[bool] = None


# -------------------
# ERROR MAPPING
# -------------------
@app.exception_handler(BookingNotFound)
async def booking_not_found_handler(request: Request, exc: BookingNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(UpstreamUnavailable)
async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailable):
    return JSONResponse(status_code=503, content={"detail": str(exc), "source": exc.source})


# -------------------
# ENDPOINTS
# -------------------
@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/earliest-slot")
def earliest_slot_endpoint(body: EarliestSlotRequest, source=Depends(get_availability_source),
                           now: datetime = Depends(get_now)):
    """
    First open slot for a service.
    Payload example:
    {"service_id": "haircut", "resource_ids": ["b1", "b2"]}
    Response "status" is one of: found, degraded (barber only, pick a time manually), not_found
    """
    service = db.get_service(body.service_id)
    if service is None:
        raise HTTPException(status_code=404, detail=f"Service {body.service_id} not found")

    result = find_earliest_slot(service, body.resource_ids, db.get_resources(), source, now=now)
    payload = result.to_dict()
    payload["service"] = {"id": service.id, "name": service.name, "duration_minutes": service.duration_minutes}
    return payload


@app.patch("/bookings/{booking_id}/reschedule-cascade")
def reschedule_cascade_endpoint(booking_id: str, body: RescheduleCascadeRequest,
                                now: datetime = Depends(get_now)):
    """
    Preview or commit a reschedule, optionally shifting the barber's later
    bookings that day by the same amount.
    Payload example:
    {"start_at": "2025-03-18T10:15:00+11:00", "apply_domino_effect": true, "preview_only": true}
    Commit answers 409 with the conflict list when the move is no longer valid.
    """
    new_start = timezone_utils.make_aware(body.start_at)

    if body.preview_only:
        plan = preview_reschedule(booking_id, new_start, body.apply_domino_effect, now=now)
        return plan.to_dict()

    result = commit_reschedule(booking_id, new_start, body.apply_domino_effect, now=now,
                               previewed_valid=body.previewed_valid)
    if not result.success:
        return JSONResponse(status_code=409, content=result.to_dict())
    return result.to_dict()
