"""
Adaptive pace estimator.

Blends the directions service's walking ETA with the rider's own measured speed, reports the
target speed needed to reach the station, and runs a pacing cue while the rider is more than
10% off that target.
"""
import logging
import time
from collections.abc import Callable
from enum import Enum
from typing import NamedTuple

from catchtrain.data.geo import Coordinate, Location, distance_m
from catchtrain.data.ticker import Ticker
from catchtrain.motion.sampler import MotionSampler
from catchtrain.pacing.profile import UserSpeedProfile

logger = logging.getLogger(__name__)

MIN_LOCATION_CHANGE_M = 10.0
MIN_SPEED_MPS = 0.5
SPEED_DEVIATION_THRESHOLD = 0.10
GOOGLE_WEIGHT = 0.3
USER_WEIGHT = 0.7
ETA_LOWER_FACTOR = 0.8
ETA_UPPER_FACTOR = 1.2
TOO_FAST_CUE_INTERVAL_SEC = 1.0
TOO_SLOW_CUE_INTERVAL_SEC = 0.5


class PacingDirection(Enum):
    TOO_FAST = "too_fast"
    TOO_SLOW = "too_slow"

    @property
    def cue_interval(self) -> float:
        return TOO_FAST_CUE_INTERVAL_SEC if self is PacingDirection.TOO_FAST else TOO_SLOW_CUE_INTERVAL_SEC


class WalkingStats(NamedTuple):
    average_speed: float
    max_speed: float
    min_speed: float
    distance: float
    duration: float


class PaceUpdate(NamedTuple):
    current_speed: float
    target_speed: float
    adaptive_eta: float
    arrival_seconds: float
    speed_ratio: float


class PaceListener:
    """Receives estimator events. Override what you need; the defaults do nothing."""

    def on_speed_update(self, current_speed: float, target_speed: float) -> None:
        pass

    def on_arrival_time_update(self, seconds: float) -> None:
        pass

    def on_pacing_tick(self, direction: PacingDirection) -> None:
        pass


def adaptive_eta(distance: float, google_eta: float, user_speed: float) -> float:
    """
    0.3 * google_eta + 0.7 * user_eta, clamped to
    [0.8 * min(google_eta, user_eta), 1.2 * max(google_eta, user_eta)].
    """
    user_eta = distance / user_speed
    blended = GOOGLE_WEIGHT * google_eta + USER_WEIGHT * user_eta
    lower = ETA_LOWER_FACTOR * min(google_eta, user_eta)
    upper = ETA_UPPER_FACTOR * max(google_eta, user_eta)
    return min(max(blended, lower), upper)


class AdaptivePaceEstimator:
    def __init__(
        self,
        listener: PaceListener | None = None,
        motion: MotionSampler | None = None,
        profile: UserSpeedProfile | None = None,
        clock: Callable[[], float] = time.time,
        ticker_factory: Callable[..., Ticker] = Ticker,
    ):
        self._listener = listener or PaceListener()
        self._motion = motion
        self.profile = profile or UserSpeedProfile()
        self._clock = clock
        self._ticker_factory = ticker_factory

        self.distance_to_station = 0.0
        self.time_to_departure = 0.0
        self.google_eta = 0.0
        self._station: Coordinate | None = None

        self.current_speed: float | None = None
        self.last_update: PaceUpdate | None = None
        self._last_location: Location | None = None

        self._cue: Ticker | None = None
        self.pacing_direction: PacingDirection | None = None

        self._tracking_started_at: float | None = None
        self._tracking_speeds: list[float] = []
        self._tracking_distance = 0.0

    @property
    def is_pacing(self) -> bool:
        return self.pacing_direction is not None

    def set_target(
        self,
        distance_to_station: float,
        time_to_departure: float,
        google_eta: float | None = None,
        station: Coordinate | None = None,
    ) -> None:
        """
        Distance (m) and seconds left before the target departure. google_eta defaults to the
        time left. With a station coordinate the distance is recomputed from every accepted fix.
        """
        self.distance_to_station = max(0.0, distance_to_station)
        self.time_to_departure = time_to_departure
        self.google_eta = google_eta if google_eta and google_eta > 0 else max(time_to_departure, 0.0)
        self._station = station

    def update_weather_factor(self, factor: float) -> None:
        self.profile.update_weather_factor(factor)

    def update_with_new_location(self, location: Location) -> PaceUpdate | None:
        """Feed a GPS fix. Returns the computed update, or None when throttled or skipped."""
        if self._last_location is not None:
            moved = distance_m(self._last_location, location)
            if moved < MIN_LOCATION_CHANGE_M:
                return None
            if self._tracking_started_at is not None:
                self._tracking_distance += moved
        self._last_location = location
        if self._station is not None:
            self.distance_to_station = distance_m(location, self._station)

        motion_speed = self._motion.latest_speed if self._motion is not None else None
        if motion_speed is not None and motion_speed > 0:
            current = motion_speed
        else:
            current = max(location.speed, MIN_SPEED_MPS)
        self.current_speed = current
        self.profile.update_speed(current)
        if self._tracking_started_at is not None:
            self._tracking_speeds.append(current)

        if self.time_to_departure <= 0 or self.distance_to_station <= 0:
            return None

        user_speed = self.profile.effective_speed if not self.profile.is_empty else current
        eta = adaptive_eta(self.distance_to_station, self.google_eta, user_speed)
        target = self.distance_to_station / eta
        arrival = self.distance_to_station / current
        ratio = current / target
        update = PaceUpdate(current, target, eta, arrival, ratio)
        self.last_update = update

        self._listener.on_speed_update(current, target)
        self._listener.on_arrival_time_update(arrival)
        logger.debug(
            "telemetry pace_update current=%.2f target=%.2f ratio=%.2f eta=%.1f",
            current,
            target,
            ratio,
            eta,
        )
        self._check_deviation(ratio)
        return update

    def _check_deviation(self, ratio: float) -> None:
        if abs(1.0 - ratio) >= SPEED_DEVIATION_THRESHOLD:
            direction = PacingDirection.TOO_FAST if ratio > 1 else PacingDirection.TOO_SLOW
            if direction is not self.pacing_direction:
                self._start_cue(direction)
        elif self.is_pacing:
            logger.info("telemetry pacing_stopped reason=back_in_range")
            self.stop_pacing()

    def _start_cue(self, direction: PacingDirection) -> None:
        self.stop_pacing()
        self.pacing_direction = direction
        self._cue = self._ticker_factory(
            direction.cue_interval,
            lambda: self._listener.on_pacing_tick(direction),
            name=f"pacing-{direction.value}",
        )
        self._cue.start()
        logger.info(
            "telemetry pacing_started direction=%s interval=%s",
            direction.value,
            direction.cue_interval,
            extra={"direction": direction.value, "interval": direction.cue_interval},
        )

    def stop_pacing(self) -> None:
        if self._cue is not None:
            self._cue.stop()
            self._cue = None
        self.pacing_direction = None

    def start_walking_tracking(self) -> None:
        self._tracking_started_at = self._clock()
        self._tracking_speeds = []
        self._tracking_distance = 0.0

    def stop_walking_tracking(self) -> WalkingStats | None:
        if self._tracking_started_at is None:
            return None
        started = self._tracking_started_at
        ended = self._clock()
        self._tracking_started_at = None
        duration = max(0.0, ended - started)
        speeds = self._tracking_speeds

        average = self._motion.average_speed(started, ended) if self._motion is not None else None
        if average is None and speeds:
            average = sum(speeds) / len(speeds)
        if average is None:
            average = self._tracking_distance / duration if duration > 0 else 0.0

        stats = WalkingStats(
            average_speed=average,
            max_speed=max(speeds) if speeds else 0.0,
            min_speed=min(speeds) if speeds else 0.0,
            distance=self._tracking_distance,
            duration=duration,
        )
        logger.info(
            "telemetry walking_stats avg=%.2f distance=%.0f duration=%.0f",
            stats.average_speed,
            stats.distance,
            stats.duration,
        )
        return stats

    def stop(self) -> None:
        self.stop_pacing()
