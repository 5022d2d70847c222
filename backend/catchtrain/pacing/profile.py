"""Rolling walking-speed profile of the current user."""
from collections import deque

MAX_SPEED_SAMPLES = 100


class UserSpeedProfile:
    """Last 100 speed samples, their mean, and a weather multiplier applied on read."""

    def __init__(self, max_samples: int = MAX_SPEED_SAMPLES, weather_factor: float = 1.0):
        self._history: deque[float] = deque(maxlen=max_samples)
        self.weather_factor = weather_factor
        self.average_speed = 0.0

    def __len__(self) -> int:
        return len(self._history)

    @property
    def is_empty(self) -> bool:
        return not self._history

    def update_speed(self, speed: float) -> None:
        if speed <= 0:
            return
        self._history.append(speed)
        self.average_speed = sum(self._history) / len(self._history)

    def update_weather_factor(self, factor: float) -> None:
        if factor > 0:
            self.weather_factor = factor

    @property
    def effective_speed(self) -> float:
        return self.average_speed * self.weather_factor

    def reset(self) -> None:
        self._history.clear()
        self.average_speed = 0.0
