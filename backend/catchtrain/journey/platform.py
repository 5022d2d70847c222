"""Measures how long the rider takes from station entry to the platform."""
import logging
import time
from collections.abc import Callable

from catchtrain.tfl.names import normalize_station_name

logger = logging.getLogger(__name__)

DEFAULT_STATION_TO_PLATFORM_SEC = 120.0


class PlatformTimer:
    def __init__(self, default_sec: float = DEFAULT_STATION_TO_PLATFORM_SEC, clock: Callable[[], float] = time.time):
        self.default_sec = default_sec
        self._clock = clock
        self._station: str | None = None
        self._started_at: float | None = None
        # normalized station name -> last measured seconds
        self._measured: dict[str, float] = {}

    @property
    def running(self) -> bool:
        return self._started_at is not None

    def start(self, station: str, now: float | None = None) -> None:
        self._station = normalize_station_name(station)
        self._started_at = self._clock() if now is None else now

    def stop(self, now: float | None = None) -> float:
        """Seconds since start(); the default when the timer was never started."""
        if self._started_at is None:
            return self.default_sec
        ended = self._clock() if now is None else now
        seconds = max(0.0, ended - self._started_at)
        if self._station:
            self._measured[self._station] = seconds
        logger.info("telemetry platform_time_measured station=%s seconds=%.0f", self._station, seconds)
        self._started_at = None
        self._station = None
        return seconds

    def estimate(self, station: str | None) -> float:
        return self._measured.get(normalize_station_name(station), self.default_sec)
