"""
Bounded, arrival-ordered window of catchable trains for one leg.

Windows are immutable: every operation returns a new window. Entries leave only from the
head once missed, and each departure is replaced by at most one newly fetched train.
"""
from collections.abc import Iterable, Iterator
from typing import NamedTuple

from catchtrain.catch.models import MIN_CATCHABLE_BUFFER_SEC, CatchInfo, build_catch_info
from catchtrain.tfl.models import ArrivalPrediction
from catchtrain.tfl.names import normalize_station_name

DEFAULT_WINDOW_SIZE = 5


class StopOrdering(NamedTuple):
    """Normalized stop list of the rider's segment plus the boarding and alighting stops."""
    stops: tuple[str, ...]
    departure: str
    target: str

    @classmethod
    def from_names(cls, stop_names: Iterable[str], departure: str, target: str) -> "StopOrdering":
        stops = [normalize_station_name(s) for s in stop_names]
        dep = normalize_station_name(departure)
        if not stops or stops[0] != dep:
            stops.insert(0, dep)
        return cls(tuple(stops), dep, normalize_station_name(target))

    def allows(self, destination_name: str | None) -> bool:
        """
        True when a train bound for destination_name serves departure then target.
        A destination outside the list (beyond the segment) only needs departure <= target.
        """
        if self.departure not in self.stops or self.target not in self.stops:
            return False
        dep_idx = self.stops.index(self.departure)
        target_idx = self.stops.index(self.target)
        dest = normalize_station_name(destination_name)
        if dest in self.stops:
            return dep_idx <= target_idx <= self.stops.index(dest)
        return dep_idx <= target_idx


def catch_candidates(
    predictions: Iterable[ArrivalPrediction],
    now: float,
    travel_to_station_sec: float,
    station_to_platform_sec: float,
    ordering: StopOrdering | None = None,
    from_station: str | None = None,
) -> list[CatchInfo]:
    """Predictions the rider could still board, as CatchInfos sorted by arrival."""
    infos = []
    for prediction in predictions:
        if ordering is not None and not ordering.allows(prediction.destination_name):
            continue
        info = build_catch_info(prediction, now, travel_to_station_sec, station_to_platform_sec, from_station)
        if info.time_left_to_catch >= MIN_CATCHABLE_BUFFER_SEC:
            infos.append(info)
    infos.sort(key=lambda i: i.expected_arrival_ts)
    return infos


class CatchWindow:
    def __init__(self, entries: Iterable[CatchInfo] = (), size: int = DEFAULT_WINDOW_SIZE):
        self.size = size
        ordered = sorted(entries, key=lambda i: i.expected_arrival_ts)
        self._entries: tuple[CatchInfo, ...] = tuple(ordered[:size])

    @classmethod
    def build(
        cls,
        predictions: Iterable[ArrivalPrediction],
        now: float,
        travel_to_station_sec: float,
        station_to_platform_sec: float,
        ordering: StopOrdering | None = None,
        size: int = DEFAULT_WINDOW_SIZE,
        from_station: str | None = None,
    ) -> "CatchWindow":
        candidates = catch_candidates(
            predictions, now, travel_to_station_sec, station_to_platform_sec, ordering, from_station
        )
        return cls(candidates, size)

    @property
    def entries(self) -> tuple[CatchInfo, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CatchInfo]:
        return iter(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    @property
    def head(self) -> CatchInfo | None:
        return self._entries[0] if self._entries else None

    def next_catchable(self) -> CatchInfo | None:
        """First train not yet missed, else the head."""
        for info in self._entries:
            if not info.is_missed:
                return info
        return self.head

    def reclassify(self, now: float, time_to_platform: float | None = None) -> "CatchWindow":
        return CatchWindow((i.reclassified(now, time_to_platform) for i in self._entries), self.size)

    def missed_head_count(self) -> int:
        count = 0
        for info in self._entries:
            if not info.is_missed:
                break
            count += 1
        return count

    def drop_missed_head(self) -> tuple["CatchWindow", int]:
        k = self.missed_head_count()
        if k == 0:
            return self, 0
        return CatchWindow(self._entries[k:], self.size), k

    def replenish(self, candidates: Iterable[CatchInfo], count: int) -> "CatchWindow":
        """Add up to `count` candidates whose arrival is not already in the window."""
        if count <= 0:
            return self
        seen = {i.expected_arrival_ts for i in self._entries}
        added: list[CatchInfo] = []
        for info in sorted(candidates, key=lambda i: i.expected_arrival_ts):
            if info.expected_arrival_ts in seen:
                continue
            added.append(info)
            seen.add(info.expected_arrival_ts)
            if len(added) == count:
                break
        return CatchWindow(self._entries + tuple(added), self.size)
