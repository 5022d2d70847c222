"""
Journey phases and the planned durations behind them.

Phases are totally ordered:
walk_to_station < station_to_platform < on_train(0) < transfer_walk(0) < on_train(1) < ...
< walk_to_destination < finished
"""
from enum import Enum
from typing import NamedTuple

from catchtrain.data.geo import Coordinate
from catchtrain.transit.models import RouteResult


class PhaseKind(Enum):
    WALK_TO_STATION = "walk_to_station"
    STATION_TO_PLATFORM = "station_to_platform"
    ON_TRAIN = "on_train"
    TRANSFER_WALK = "transfer_walk"
    WALK_TO_DESTINATION = "walk_to_destination"
    FINISHED = "finished"


_WALKING = {PhaseKind.WALK_TO_STATION, PhaseKind.TRANSFER_WALK, PhaseKind.WALK_TO_DESTINATION}


class ProgressPhase(NamedTuple):
    kind: PhaseKind
    index: int = 0  # leg index for on_train, preceding leg index for transfer_walk

    @property
    def sort_key(self) -> tuple[int, int, int]:
        if self.kind is PhaseKind.WALK_TO_STATION:
            return (0, 0, 0)
        if self.kind is PhaseKind.STATION_TO_PLATFORM:
            return (1, 0, 0)
        if self.kind is PhaseKind.ON_TRAIN:
            return (2, self.index, 0)
        if self.kind is PhaseKind.TRANSFER_WALK:
            return (2, self.index, 1)
        if self.kind is PhaseKind.WALK_TO_DESTINATION:
            return (3, 0, 0)
        return (4, 0, 0)

    def __lt__(self, other):
        return self.sort_key < other.sort_key

    def __le__(self, other):
        return self.sort_key <= other.sort_key

    def __gt__(self, other):
        return self.sort_key > other.sort_key

    def __ge__(self, other):
        return self.sort_key >= other.sort_key

    @property
    def is_walking(self) -> bool:
        return self.kind in _WALKING

    def __str__(self) -> str:
        if self.kind in (PhaseKind.ON_TRAIN, PhaseKind.TRANSFER_WALK):
            return f"{self.kind.value}({self.index})"
        return self.kind.value


WALK_TO_STATION = ProgressPhase(PhaseKind.WALK_TO_STATION)
STATION_TO_PLATFORM = ProgressPhase(PhaseKind.STATION_TO_PLATFORM)
WALK_TO_DESTINATION = ProgressPhase(PhaseKind.WALK_TO_DESTINATION)
FINISHED = ProgressPhase(PhaseKind.FINISHED)


def on_train(leg_index: int) -> ProgressPhase:
    return ProgressPhase(PhaseKind.ON_TRAIN, leg_index)


def transfer_walk(after_leg_index: int) -> ProgressPhase:
    return ProgressPhase(PhaseKind.TRANSFER_WALK, after_leg_index)


class PlannedPhase(NamedTuple):
    phase: ProgressPhase
    duration: float
    target: Coordinate | None = None  # walking phases end here
    start: Coordinate | None = None


class JourneyPlan(NamedTuple):
    entry_walk_sec: float
    station_to_platform_sec: float
    ride_secs: tuple[float, ...]
    transfer_secs: tuple[float, ...]  # one per gap between rides; missing ones count as 0
    exit_walk_sec: float
    origin: Coordinate | None = None
    station: Coordinate | None = None
    transfer_targets: tuple[Coordinate | None, ...] = ()
    destination: Coordinate | None = None
    line_names: tuple[str, ...] = ()

    @classmethod
    def from_route(cls, route: RouteResult, station_to_platform_sec: float = 120.0) -> "JourneyPlan":
        legs = route.legs
        station = route.origin_station.coordinate if route.origin_station else None
        if legs and legs[0].departure_coord is not None:
            station = legs[0].departure_coord
        return cls(
            entry_walk_sec=route.entry_walk_sec,
            station_to_platform_sec=station_to_platform_sec,
            ride_secs=tuple(leg.duration_sec for leg in legs),
            transfer_secs=tuple(leg.transfer_time_sec or 0.0 for leg in legs[:-1]),
            exit_walk_sec=route.exit_walk_sec,
            origin=route.origin,
            station=station,
            transfer_targets=tuple(leg.departure_coord for leg in legs[1:]),
            destination=route.destination,
            line_names=tuple(leg.line_name for leg in legs),
        )

    def planned_phases(self) -> list[PlannedPhase]:
        phases = [
            PlannedPhase(WALK_TO_STATION, max(0.0, self.entry_walk_sec), self.station, self.origin),
            PlannedPhase(STATION_TO_PLATFORM, max(0.0, self.station_to_platform_sec)),
        ]
        for i, ride in enumerate(self.ride_secs):
            phases.append(PlannedPhase(on_train(i), max(0.0, ride)))
            if i < len(self.ride_secs) - 1:
                transfer = self.transfer_secs[i] if i < len(self.transfer_secs) else 0.0
                target = self.transfer_targets[i] if i < len(self.transfer_targets) else None
                phases.append(PlannedPhase(transfer_walk(i), max(0.0, transfer), target))
        phases.append(PlannedPhase(WALK_TO_DESTINATION, max(0.0, self.exit_walk_sec), self.destination))
        phases.append(PlannedPhase(FINISHED, 0.0))
        return phases

    @property
    def total_duration(self) -> float:
        return sum(p.duration for p in self.planned_phases())
