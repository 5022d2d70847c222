"""
TfL Unified API client: tube station registry, station search, lines per station,
live arrivals, journey planner and line status.
"""
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from catchtrain.data.geo import Coordinate
from catchtrain.data.upstream import REQUEST_TIMEOUT_SECONDS, RETRY_ATTEMPTS, UpstreamClient, TTLCache
from catchtrain.tfl.models import ArrivalPrediction, LineStatus, LineStatusResponse, StationRecord

logger = logging.getLogger(__name__)

TFL_BASE = "https://api.tfl.gov.uk"
STATIONS_CACHE_TTL_SECONDS = 24 * 3600
LINES_CACHE_TTL_SECONDS = 3600
JOURNEY_CACHE_TTL_SECONDS = 300
STATUS_CACHE_TTL_SECONDS = 60


def _coord_param(coord: Coordinate) -> str:
    return f"{coord.lat},{coord.lng}"


def _parse_stations(raw: Any) -> list[StationRecord]:
    stop_points = raw.get("stopPoints") if isinstance(raw, dict) else None
    result: list[StationRecord] = []
    for stop in stop_points or []:
        if not isinstance(stop, dict):
            continue
        name = stop.get("commonName")
        naptan = stop.get("naptanId")
        lat, lng = stop.get("lat"), stop.get("lon")
        if not name or not naptan or lat is None or lng is None:
            continue
        try:
            result.append(StationRecord(name=name, station_id=naptan, lat=float(lat), lng=float(lng)))
        except (TypeError, ValueError):
            continue
    return result


def _parse_arrivals(raw: Any) -> list[ArrivalPrediction]:
    result: list[ArrivalPrediction] = []
    for item in raw if isinstance(raw, list) else []:
        try:
            result.append(ArrivalPrediction.model_validate(item))
        except ValidationError:
            logger.debug("telemetry tfl_arrival_skipped reason=invalid")
    return result


def _journey_legs(raw: Any) -> list[dict[str, Any]]:
    journeys = raw.get("journeys") if isinstance(raw, dict) else None
    if not journeys or not isinstance(journeys[0], dict):
        return []
    legs = journeys[0].get("legs") or []
    return [leg for leg in legs if isinstance(leg, dict)]


def _tube_stop_names(raw: Any) -> list[str]:
    """Stop names along the tube legs of the first planned journey, in order."""
    names: list[str] = []
    for leg in _journey_legs(raw):
        if (leg.get("mode") or {}).get("id") != "tube":
            continue
        path = leg.get("path") or {}
        for stop in path.get("stopPoints") or []:
            name = stop.get("name") if isinstance(stop, dict) else None
            if name:
                names.append(name)
    return names


def _parse_line_status(raw: Any) -> LineStatusResponse | None:
    lines = raw if isinstance(raw, list) else [raw]
    if not lines or not isinstance(lines[0], dict):
        return None
    line = lines[0]
    statuses = []
    for s in line.get("lineStatuses") or []:
        if not isinstance(s, dict):
            continue
        statuses.append(LineStatus(
            line_id=line.get("id") or "",
            name=line.get("name") or "",
            status_severity=int(s.get("statusSeverity") or 0),
            status_description=s.get("statusSeverityDescription") or "",
            reason=s.get("reason"),
        ))
    return LineStatusResponse(line_id=line.get("id") or "", name=line.get("name") or "", statuses=statuses)


class TfLClient(UpstreamClient):
    """Async client for the TfL Unified API. Raises NetworkFailure after retries."""

    service = "tfl"

    def __init__(
        self,
        app_key: str = "",
        base_url: str = TFL_BASE,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        retry_attempts: int = RETRY_ATTEMPTS,
        retry_base_delay: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(base_url, timeout, retry_attempts, retry_base_delay, transport)
        self._app_key = app_key
        self._stations_cache = TTLCache(ttl_seconds=STATIONS_CACHE_TTL_SECONDS)
        self._lines_cache = TTLCache(ttl_seconds=LINES_CACHE_TTL_SECONDS)
        self._journey_cache = TTLCache(ttl_seconds=JOURNEY_CACHE_TTL_SECONDS)
        self._status_cache = TTLCache(ttl_seconds=STATUS_CACHE_TTL_SECONDS)

    def _params(self, **extra: Any) -> dict[str, Any]:
        params = {k: v for k, v in extra.items() if v is not None}
        if self._app_key:
            params["app_key"] = self._app_key
        return params

    async def get_tube_stations(self) -> list[StationRecord]:
        """All tube stop points with coordinates. Cached for a day."""
        cached = self._stations_cache.get("tube")
        if cached is not None:
            return cached
        raw = await self._get_json("StopPoint/Mode/tube", self._params(), event="stations")
        stations = _parse_stations(raw)
        if stations:
            self._stations_cache.set("tube", stations)
        logger.info(
            "telemetry tfl_stations_fetched count=%s",
            len(stations),
            extra={"count": len(stations)},
        )
        return stations

    async def search_station_id(self, query: str) -> str | None:
        """First tube match for a free-text query, or None when TfL knows nothing."""
        raw = await self._get_json("StopPoint/Search", self._params(query=query, modes="tube"), event="search")
        matches = raw.get("matches") if isinstance(raw, dict) else None
        if not matches or not isinstance(matches[0], dict):
            return None
        first = matches[0]
        return first.get("naptanId") or first.get("id")

    async def get_station_lines(self, station_id: str) -> list[str]:
        cached = self._lines_cache.get(station_id)
        if cached is not None:
            return cached
        raw = await self._get_json(f"StopPoint/{station_id}", self._params(), event="station_lines")
        lines = raw.get("lines") if isinstance(raw, dict) else None
        ids = [line["id"] for line in lines or [] if isinstance(line, dict) and line.get("id")]
        self._lines_cache.set(station_id, ids)
        return ids

    async def get_arrivals(self, line_id: str, station_id: str) -> list[ArrivalPrediction]:
        """Live predictions; never cached."""
        raw = await self._get_json(f"Line/{line_id}/Arrivals/{station_id}", self._params(), event="arrivals")
        arrivals = _parse_arrivals(raw)
        logger.info(
            "telemetry tfl_arrivals_fetched line_id=%s station_id=%s count=%s",
            line_id,
            station_id,
            len(arrivals),
            extra={"line_id": line_id, "station_id": station_id, "count": len(arrivals)},
        )
        return arrivals

    async def get_journey(self, origin: str, destination: str) -> dict[str, Any]:
        """Raw planner response; origin/destination are naptan ids or "lat,lng"."""
        ckey = f"{origin}->{destination}"
        cached = self._journey_cache.get(ckey)
        if cached is not None:
            return cached
        raw = await self._get_json(
            f"Journey/JourneyResults/{origin}/to/{destination}",
            self._params(mode="tube"),
            event="journey",
        )
        if not isinstance(raw, dict):
            raw = {}
        self._journey_cache.set(ckey, raw)
        return raw

    async def get_journey_stop_names(self, from_coord: Coordinate, to_coord: Coordinate) -> list[str]:
        raw = await self.get_journey(_coord_param(from_coord), _coord_param(to_coord))
        return _tube_stop_names(raw)

    async def get_first_leg_minutes(self, from_station_id: str, to_station_id: str) -> float | None:
        legs = _journey_legs(await self.get_journey(from_station_id, to_station_id))
        if not legs:
            return None
        duration = legs[0].get("duration")
        return float(duration) if isinstance(duration, (int, float)) else None

    async def get_line_status(self, line_id: str) -> LineStatusResponse | None:
        cached = self._status_cache.get(line_id)
        if cached is not None:
            return cached
        raw = await self._get_json(f"Line/{line_id}/Status", self._params(), event="line_status")
        status = _parse_line_status(raw)
        if status is not None:
            self._status_cache.set(line_id, status)
        return status
