"""Route records produced by the aggregator and returned by POST /route."""
from pydantic import BaseModel, ConfigDict, Field

from catchtrain.data.geo import Coordinate
from catchtrain.tfl.models import StationRecord


class WalkStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    instruction: str
    distance_text: str
    duration_text: str
    duration_sec: float = 0.0


class RouteLeg(BaseModel):
    """
    One transit ride. Once stops are resolved, stop_names[0] is the departure station and
    stop_names[-1] the arrival station.
    """
    model_config = ConfigDict(frozen=True)

    line_name: str
    line_id: str | None = None
    vehicle_type: str | None = None  # Google vehicle type: SUBWAY, HEAVY_RAIL, BUS, ...
    departure_station: str
    arrival_station: str
    departure_coord: Coordinate | None = None
    arrival_coord: Coordinate | None = None
    stop_names: list[str] = Field(default_factory=list)
    duration_sec: float = 0.0
    departure_time_text: str | None = None
    arrival_time_text: str | None = None
    platform: str | None = None
    num_stops: int | None = None
    line_color_hex: str | None = None
    transfer_time_sec: float | None = None  # to the next leg; None when unknown

    @property
    def is_bus(self) -> bool:
        return (self.vehicle_type or "").upper() == "BUS"


class RouteResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    origin: Coordinate
    destination: Coordinate
    origin_station: StationRecord
    walk_steps: list[WalkStep] = Field(default_factory=list)
    legs: list[RouteLeg] = Field(default_factory=list)
    entry_walk_sec: float = 0.0
    exit_walk_sec: float = 0.0
    walking_minutes: float = 0.0
    transit_minutes: float = 0.0
    total_minutes: float = 0.0
    weather_factor: float = 1.0
