"""
Google Directions API client: transit steps between two coordinates and walking durations.
"""
import logging
from typing import Any

import httpx

from catchtrain.data.geo import Coordinate
from catchtrain.data.upstream import REQUEST_TIMEOUT_SECONDS, RETRY_ATTEMPTS, UpstreamClient, TTLCache
from catchtrain.errors import NetworkFailure

logger = logging.getLogger(__name__)

DIRECTIONS_BASE = "https://maps.googleapis.com/maps/api/directions"
WALKING_CACHE_TTL_SECONDS = 600


def _coord_param(coord: Coordinate) -> str:
    return f"{coord.lat},{coord.lng}"


def _first_leg(raw: Any) -> dict[str, Any] | None:
    routes = raw.get("routes") if isinstance(raw, dict) else None
    if not routes or not isinstance(routes[0], dict):
        return None
    legs = routes[0].get("legs") or []
    if not legs or not isinstance(legs[0], dict):
        return None
    return legs[0]


class DirectionsClient(UpstreamClient):
    """Async Google Directions client. Raises NetworkFailure after retries."""

    service = "directions"

    def __init__(
        self,
        api_key: str,
        base_url: str = DIRECTIONS_BASE,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        retry_attempts: int = RETRY_ATTEMPTS,
        retry_base_delay: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(base_url, timeout, retry_attempts, retry_base_delay, transport)
        self._api_key = api_key
        self._walking_cache = TTLCache(ttl_seconds=WALKING_CACHE_TTL_SECONDS)

    async def get_transit_steps(self, origin: Coordinate, destination: Coordinate) -> list[dict[str, Any]]:
        """
        Raw steps of the first transit route (subway or train), walk and transit interleaved.
        Raises NetworkFailure when the service is unreachable or returns no route.
        """
        params = {
            "origin": _coord_param(origin),
            "destination": _coord_param(destination),
            "mode": "transit",
            "transit_mode": "subway|train",
            "region": "uk",
            "key": self._api_key,
        }
        raw = await self._get_json("json", params, event="transit")
        leg = _first_leg(raw)
        if leg is None:
            status = raw.get("status") if isinstance(raw, dict) else None
            raise NetworkFailure(f"directions returned no route (status={status})")
        steps = [s for s in leg.get("steps") or [] if isinstance(s, dict)]
        logger.info(
            "telemetry directions_transit_fetched steps=%s",
            len(steps),
            extra={"steps": len(steps)},
        )
        return steps

    async def get_walking_seconds(self, origin: Coordinate, destination: Coordinate) -> float | None:
        """Walking duration in seconds, or None when the response has no duration."""
        ckey = f"{_coord_param(origin)}->{_coord_param(destination)}"
        cached = self._walking_cache.get(ckey)
        if cached is not None:
            return cached
        params = {
            "origin": _coord_param(origin),
            "destination": _coord_param(destination),
            "mode": "walking",
            "key": self._api_key,
        }
        raw = await self._get_json("json", params, event="walking")
        leg = _first_leg(raw)
        value = ((leg or {}).get("duration") or {}).get("value")
        if not isinstance(value, (int, float)):
            return None
        self._walking_cache.set(ckey, float(value))
        return float(value)
