"""
Transit data aggregator: merges Google Directions, the TfL journey planner and TfL live data
into route legs and arrival predictions.

Nothing here raises across the public methods: upstream NetworkFailure becomes None or [].
Concurrent sub-fetches are joined with asyncio.gather before a result is produced.
"""
import asyncio
import logging
import re
from typing import Any, NamedTuple

from catchtrain.data.geo import Coordinate, distance_m
from catchtrain.directions.client import DirectionsClient
from catchtrain.errors import NetworkFailure
from catchtrain.pacing.weather import WeatherClient
from catchtrain.tfl.client import TfLClient
from catchtrain.tfl.lines import line_color_hex, tfl_line_id
from catchtrain.tfl.models import ArrivalPrediction, LineStatusResponse, StationRecord
from catchtrain.tfl.names import normalize_station_name, same_station
from catchtrain.transit.models import RouteLeg, RouteResult, WalkStep

logger = logging.getLogger(__name__)

_HTML_TAG = re.compile(r"<[^>]+>")


def strip_html(text: str | None) -> str:
    return " ".join(_HTML_TAG.sub(" ", text or "").split())


def _coord(raw: Any) -> Coordinate | None:
    if not isinstance(raw, dict):
        return None
    lat, lng = raw.get("lat"), raw.get("lng")
    if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
        return None
    # 6 decimals is ~10 cm; keeps planner cache keys stable
    return Coordinate(round(lat, 6), round(lng, 6))


def _duration_value(raw: Any) -> float:
    value = (raw or {}).get("value") if isinstance(raw, dict) else None
    return float(value) if isinstance(value, (int, float)) else 0.0


class SplitSteps(NamedTuple):
    walk_minutes: float
    transit_minutes: float
    walk_steps: list[WalkStep]
    legs: list[RouteLeg]


def _walk_step(raw: dict[str, Any]) -> WalkStep | None:
    duration = raw.get("duration") or {}
    distance = raw.get("distance") or {}
    if not isinstance(duration, dict) or "value" not in duration:
        return None
    return WalkStep(
        instruction=strip_html(raw.get("html_instructions")),
        distance_text=str(distance.get("text") or ""),
        duration_text=str(duration.get("text") or ""),
        duration_sec=_duration_value(duration),
    )


def _transit_leg(step: dict[str, Any]) -> RouteLeg | None:
    td = step.get("transit_details") or {}
    line = td.get("line") or {}
    dep = td.get("departure_stop") or {}
    arr = td.get("arrival_stop") or {}
    name = line.get("short_name") or line.get("name")
    if not name or not dep or not arr:
        return None
    line_id = tfl_line_id(name) or tfl_line_id(line.get("name"))
    return RouteLeg(
        line_name=name,
        line_id=line_id,
        vehicle_type=(line.get("vehicle") or {}).get("type"),
        departure_station=dep.get("name") or "-",
        arrival_station=arr.get("name") or "-",
        departure_coord=_coord(step.get("start_location")) or _coord(dep.get("location")),
        arrival_coord=_coord(step.get("end_location")) or _coord(arr.get("location")),
        duration_sec=_duration_value(step.get("duration")),
        departure_time_text=(td.get("departure_time") or {}).get("text"),
        arrival_time_text=(td.get("arrival_time") or {}).get("text"),
        platform=td.get("departure_platform"),
        num_stops=td.get("num_stops"),
        line_color_hex=line.get("color") or (line_color_hex(line_id) if line_id else None),
    )


def split_steps(steps: list[dict[str, Any]]) -> SplitSteps:
    """Split Google Directions steps into walk steps and transit legs, summing minutes per mode."""
    walk_min = 0.0
    transit_min = 0.0
    walk_steps: list[WalkStep] = []
    legs: list[RouteLeg] = []
    for step in steps:
        mode = step.get("travel_mode")
        if mode == "WALKING":
            for sub in step.get("steps") or [step]:
                ws = _walk_step(sub) if isinstance(sub, dict) else None
                if ws is not None:
                    walk_steps.append(ws)
                    walk_min += ws.duration_sec / 60.0
        elif mode == "TRANSIT":
            transit_min += _duration_value(step.get("duration")) / 60.0
            leg = _transit_leg(step)
            if leg is not None:
                legs.append(leg)
    return SplitSteps(walk_min, transit_min, walk_steps, legs)


def splice_stops(leg: RouteLeg, planner_stops: list[str], boarding_station: str) -> RouteLeg:
    """
    Set leg.stop_names from the planner so they start at the true boarding stop.
    Bus sequences and empty answers fall back to [boarding, arrival].
    """
    stops = list(planner_stops)
    if leg.is_bus or any("bus" in s.lower() for s in stops):
        stops = []
    if not stops:
        names = [boarding_station, leg.arrival_station]
    else:
        names = stops
        if not same_station(names[0], boarding_station):
            names.insert(0, boarding_station)
    return leg.model_copy(update={
        "stop_names": names,
        "departure_station": names[0],
        "arrival_station": names[-1],
        "num_stops": max(0, len(names) - 1),
    })


async def _no_stops() -> list[str]:
    return []


class TransitDataAggregator:
    def __init__(
        self,
        tfl: TfLClient,
        directions: DirectionsClient | None = None,
        weather: WeatherClient | None = None,
    ):
        self._tfl = tfl
        self._directions = directions
        self._weather = weather
        self._stations: list[StationRecord] = []
        # normalized station name -> naptan id; only successful lookups are stored
        self._station_ids: dict[str, str] = {}
        self._stations_lock = asyncio.Lock()

    async def load_stations(self) -> list[StationRecord]:
        async with self._stations_lock:
            if self._stations:
                return self._stations
            try:
                stations = await self._tfl.get_tube_stations()
            except NetworkFailure as e:
                logger.warning("telemetry station_registry_unavailable error=%s", str(e))
                return []
            self._stations = stations
            for s in stations:
                self._station_ids.setdefault(normalize_station_name(s.name), s.station_id)
            return stations

    def nearest_station(self, coord: Coordinate) -> StationRecord | None:
        if not self._stations:
            return None
        return min(self._stations, key=lambda s: distance_m(coord, s.coordinate))

    async def resolve_station_id(self, name: str) -> str | None:
        """Exact normalized hit, then substring match in the registry, then TfL search."""
        cleaned = normalize_station_name(name)
        if not cleaned:
            return None
        await self.load_stations()
        station_id = self._station_ids.get(cleaned)
        if station_id:
            return station_id
        for key, value in self._station_ids.items():
            if cleaned in key:
                logger.info("telemetry station_resolved source=fuzzy name=%s", cleaned)
                return value
        try:
            station_id = await self._tfl.search_station_id(name)
        except NetworkFailure as e:
            logger.warning("telemetry station_search_failed name=%s error=%s", cleaned, str(e))
            return None
        if station_id:
            self._station_ids[cleaned] = station_id
            logger.info("telemetry station_resolved source=search name=%s", cleaned)
        else:
            logger.info("telemetry station_unresolved name=%s", cleaned, extra={"station": cleaned})
        return station_id

    async def fetch_available_lines(self, station_id: str) -> list[str]:
        try:
            return await self._tfl.get_station_lines(station_id)
        except NetworkFailure as e:
            logger.warning("telemetry station_lines_failed station_id=%s error=%s", station_id, str(e))
            return []

    async def _line_arrivals(self, line_id: str, station_id: str) -> list[ArrivalPrediction]:
        try:
            return await self._tfl.get_arrivals(line_id, station_id)
        except NetworkFailure as e:
            logger.warning(
                "telemetry line_arrivals_dropped line_id=%s station_id=%s error=%s",
                line_id,
                station_id,
                str(e),
                extra={"line_id": line_id, "station_id": station_id},
            )
            return []

    async def fetch_all_arrivals(self, station_id: str, line_ids: list[str] | None = None) -> list[ArrivalPrediction]:
        """One request per line, merged and sorted by expected arrival."""
        if line_ids is None:
            line_ids = await self.fetch_available_lines(station_id)
        if not line_ids:
            return []
        per_line = await asyncio.gather(*(self._line_arrivals(line_id, station_id) for line_id in line_ids))
        merged = [a for arrivals in per_line for a in arrivals]
        merged.sort(key=lambda a: a.expected_arrival)
        return merged

    async def fetch_common_line_ids(self, station_names: list[str]) -> list[str]:
        """Lines serving every named station; empty when any of them is unresolvable."""
        ids = await asyncio.gather(*(self.resolve_station_id(n) for n in station_names))
        if not ids or any(i is None for i in ids):
            return []
        line_sets = await asyncio.gather(*(self.fetch_available_lines(i) for i in ids))
        common = set(line_sets[0])
        for s in line_sets[1:]:
            common &= set(s)
        return sorted(common)

    async def fetch_transfer_time(self, from_station: str, to_station: str) -> float | None:
        """Seconds between two stations; 0 for the same station, None when unknown."""
        if same_station(from_station, to_station):
            return 0.0
        from_id, to_id = await asyncio.gather(
            self.resolve_station_id(from_station),
            self.resolve_station_id(to_station),
        )
        if not from_id or not to_id:
            return None
        try:
            minutes = await self._tfl.get_first_leg_minutes(from_id, to_id)
        except NetworkFailure as e:
            logger.warning("telemetry transfer_time_failed error=%s", str(e))
            return None
        return minutes * 60.0 if minutes is not None else None

    async def fetch_segment_stops(self, from_coord: Coordinate, to_coord: Coordinate) -> list[str]:
        try:
            return await self._tfl.get_journey_stop_names(from_coord, to_coord)
        except NetworkFailure as e:
            logger.warning("telemetry segment_stops_failed error=%s", str(e))
            return []

    async def fetch_line_status(self, line_id: str) -> LineStatusResponse | None:
        try:
            return await self._tfl.get_line_status(line_id)
        except NetworkFailure as e:
            logger.warning("telemetry line_status_failed line_id=%s error=%s", line_id, str(e))
            return None

    async def fetch_walking_seconds(self, origin: Coordinate, destination: Coordinate) -> float | None:
        if self._directions is None:
            return None
        try:
            return await self._directions.get_walking_seconds(origin, destination)
        except NetworkFailure as e:
            logger.warning("telemetry walking_time_failed error=%s", str(e))
            return None

    async def _weather_factor(self, coord: Coordinate) -> float:
        if self._weather is None:
            return 1.0
        return await self._weather.speed_factor(coord)

    async def fetch_route(self, origin: Coordinate, destination: Coordinate) -> RouteResult | None:
        if self._directions is None:
            return None
        await self.load_stations()
        origin_station = self.nearest_station(origin)
        if origin_station is None:
            logger.warning("telemetry route_failed reason=no_stations")
            return None
        try:
            steps = await self._directions.get_transit_steps(origin, destination)
        except NetworkFailure as e:
            logger.warning("telemetry route_failed reason=directions error=%s", str(e))
            return None

        split = split_steps(steps)
        legs = split.legs
        exit_from = legs[-1].arrival_coord if legs and legs[-1].arrival_coord else destination
        stop_fetches = [
            self.fetch_segment_stops(leg.departure_coord, leg.arrival_coord)
            if leg.departure_coord and leg.arrival_coord
            else _no_stops()
            for leg in legs
        ]
        weather_factor, entry_sec, exit_sec, *planner_stops = await asyncio.gather(
            self._weather_factor(origin),
            self.fetch_walking_seconds(origin, origin_station.coordinate),
            self.fetch_walking_seconds(exit_from, destination),
            *stop_fetches,
        )

        spliced: list[RouteLeg] = []
        for index, (leg, stops) in enumerate(zip(legs, planner_stops)):
            boarding = leg.departure_station if index == 0 else spliced[index - 1].arrival_station
            spliced.append(splice_stops(leg, stops, boarding))

        transfers = await asyncio.gather(*(
            self.fetch_transfer_time(a.arrival_station, b.departure_station)
            for a, b in zip(spliced, spliced[1:])
        ))
        legs = [
            leg.model_copy(update={"transfer_time_sec": transfers[i]}) if i < len(transfers) else leg
            for i, leg in enumerate(spliced)
        ]

        factor = weather_factor if weather_factor > 0 else 1.0
        entry_walk = (entry_sec or 0.0) / factor
        exit_walk = (exit_sec or 0.0) / factor
        total_minutes = (entry_walk + exit_walk) / 60.0 + split.transit_minutes
        logger.info(
            "telemetry route_built legs=%s total_minutes=%.1f station=%s",
            len(legs),
            total_minutes,
            origin_station.name,
            extra={"legs": len(legs), "total_minutes": total_minutes},
        )
        return RouteResult(
            origin=origin,
            destination=destination,
            origin_station=origin_station,
            walk_steps=split.walk_steps,
            legs=legs,
            entry_walk_sec=entry_walk,
            exit_walk_sec=exit_walk,
            walking_minutes=split.walk_minutes,
            transit_minutes=split.transit_minutes,
            total_minutes=total_minutes,
            weather_factor=factor,
        )
