# booking_engine/api/availability_client.py
#
#   reads open slots from the shop's availability API (Square-style
#   availability search). Returns the raw availabilities_by_date mapping;
#   slot_catalog does the normalizing.

import logging
from datetime import date
from typing import Sequence

import httpx

from config.settings import AVAILABILITY_API_BASE, AVAILABILITY_API_TOKEN, AVAILABILITY_TIMEOUT
from booking_engine.api.errors import UpstreamUnavailable
from booking_engine.api.retry import retry_sync

logger = logging.getLogger(__name__)


class AvailabilityClient:
    """
    Availability source backed by HTTP.

    GET {base_url}/availability
        ?team_member_ids=a,b&start_date=YYYY-MM-DD&end_date=YYYY-MM-DD&duration_minutes=30
    -> {"availabilities_by_date": {"YYYY-MM-DD": [...]}, "errors": []}

    end_date is exclusive.
    """

    def __init__(self, base_url: str = AVAILABILITY_API_BASE, token: str = AVAILABILITY_API_TOKEN,
                 timeout: float = AVAILABILITY_TIMEOUT, transport: httpx.BaseTransport = None):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(base_url=self.base_url, headers=headers, timeout=timeout,
                                    transport=transport)

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    @retry_sync(max_retries=2, initial_delay=0.5, max_delay=4.0, exceptions=(httpx.TransportError,))
    def _get(self, params: dict) -> httpx.Response:
        return self._client.get("/availability", params=params)

    def list_open_slots(self, resource_ids: Sequence[str], start_date: date, end_date: date,
                        duration_minutes: int) -> dict:
        """
        Raw open slots for the given barbers over [start_date, end_date).
        Raises:
            UpstreamUnavailable: transport failure after retries, non-2xx status,
                                 unreadable body, or errors reported by the API
        """
        params = {
            "team_member_ids": ",".join(str(rid) for rid in resource_ids),
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "duration_minutes": duration_minutes,
        }
        try:
            response = self._get(params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamUnavailable("availability source", f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailable("availability source", str(e) or e.__class__.__name__) from e
        except ValueError as e:
            raise UpstreamUnavailable("availability source", f"invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise UpstreamUnavailable("availability source", "unexpected response shape")
        errors = data.get("errors") or []
        if errors:
            raise UpstreamUnavailable("availability source", f"reported errors: {errors}")

        availabilities = data.get("availabilities_by_date") or {}
        logger.debug(f"Fetched availability for {len(availabilities)} days from {self.base_url}")
        return availabilities
