"""
Motion/speed sampler: turns pedometer readings into smoothed walking-speed samples.

Samples below the minimum valid speed are never emitted; a run of them is reported once
as a stationary stretch. No sensor (or an unavailable one) means no samples at all.
"""
import logging
from collections import deque
from collections.abc import Callable
from typing import NamedTuple, Protocol

from catchtrain.errors import SensorUnavailable

logger = logging.getLogger(__name__)

MIN_VALID_SPEED_MPS = 0.5
SMOOTHING_WINDOW = 5
# Average adult stride; used only when the pedometer gives cadence but no pace
DEFAULT_STRIDE_LENGTH_M = 0.75
MAX_RECORDED_SAMPLES = 3600


class PedometerReading(NamedTuple):
    timestamp: float
    current_pace: float | None = None  # seconds per meter
    cadence: float | None = None  # steps per second
    distance: float | None = None  # meters since updates started


class MotionSensor(Protocol):
    def is_available(self) -> bool: ...

    def start_updates(self, handler: Callable[[PedometerReading], None]) -> None: ...

    def stop_updates(self) -> None: ...


class MotionListener:
    """Receives sampler events. Override what you need; the defaults do nothing."""

    def on_speed_sample(self, speed: float) -> None:
        pass

    def on_stationary_enter(self) -> None:
        pass

    def on_stationary_exit(self) -> None:
        pass


def instantaneous_speed(reading: PedometerReading, stride_length: float = DEFAULT_STRIDE_LENGTH_M) -> float | None:
    """m/s from a single reading: 1 / pace when pace is known, else cadence * stride."""
    if reading.current_pace is not None and reading.current_pace > 0:
        return 1.0 / reading.current_pace
    if reading.cadence is not None and reading.cadence >= 0:
        return reading.cadence * stride_length
    return None


class MotionSampler:
    def __init__(
        self,
        sensor: MotionSensor | None,
        listener: MotionListener | None = None,
        min_valid_speed: float = MIN_VALID_SPEED_MPS,
        smoothing_window: int = SMOOTHING_WINDOW,
        stride_length: float = DEFAULT_STRIDE_LENGTH_M,
    ):
        self._sensor = sensor
        self._listener = listener or MotionListener()
        self._min_valid_speed = min_valid_speed
        self._stride_length = stride_length
        self._window: deque[float] = deque(maxlen=max(1, smoothing_window))
        self._samples: deque[tuple[float, float]] = deque(maxlen=MAX_RECORDED_SAMPLES)
        self._running = False
        self._stationary = False
        self._unavailable_logged = False
        self.latest_speed: float | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def stationary(self) -> bool:
        return self._stationary

    def _report_unavailable(self, reason: str) -> None:
        if self._unavailable_logged:
            return
        self._unavailable_logged = True
        logger.warning(
            "telemetry motion_sensor_unavailable reason=%s",
            reason,
            extra={"reason": reason},
        )

    def start(self) -> None:
        if self._running:
            return
        if self._sensor is None:
            self._report_unavailable("absent")
            return
        try:
            if not self._sensor.is_available():
                raise SensorUnavailable("pedometer reports unavailable")
            self._sensor.start_updates(self.handle_reading)
        except SensorUnavailable as e:
            self._report_unavailable(str(e))
            return
        self._running = True
        logger.info("telemetry motion_sampler_started")

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._sensor is not None:
            self._sensor.stop_updates()
        self._window.clear()
        logger.info("telemetry motion_sampler_stopped")

    def handle_reading(self, reading: PedometerReading) -> None:
        """Sensor callback. Also usable directly to feed recorded readings."""
        if not self._running:
            return
        speed = instantaneous_speed(reading, self._stride_length)
        if speed is None:
            return
        self._window.append(speed)
        smoothed = sum(self._window) / len(self._window)

        if smoothed < self._min_valid_speed:
            self.latest_speed = None
            if not self._stationary:
                self._stationary = True
                self._listener.on_stationary_enter()
            return

        if self._stationary:
            self._stationary = False
            self._listener.on_stationary_exit()
        self.latest_speed = smoothed
        self._samples.append((reading.timestamp, smoothed))
        self._listener.on_speed_sample(smoothed)

    def average_speed(self, start: float, end: float) -> float | None:
        """
        Mean speed over [start, end] (epoch seconds). Uses the sensor's distance query when it
        has one, else the samples recorded in the interval. None when nothing is known.
        """
        if end <= start:
            return None
        query = getattr(self._sensor, "query_distance", None)
        if callable(query):
            distance = query(start, end)
            if distance is not None:
                return distance / (end - start)
        in_range = [s for ts, s in self._samples if start <= ts <= end]
        if not in_range:
            return None
        return sum(in_range) / len(in_range)
