"""
Walking speed factor from current weather (OpenWeather condition ids).
"""
import logging
from enum import Enum

import httpx

from catchtrain.data.geo import Coordinate
from catchtrain.data.upstream import REQUEST_TIMEOUT_SECONDS, RETRY_ATTEMPTS, UpstreamClient, TTLCache
from catchtrain.errors import NetworkFailure

logger = logging.getLogger(__name__)

OPENWEATHER_BASE = "https://api.openweathermap.org/data/2.5"
WEATHER_CACHE_TTL_SECONDS = 600


class WeatherCondition(Enum):
    CLEAR = "clear"
    CLOUDS = "clouds"
    DRIZZLE = "drizzle"
    RAIN = "rain"
    SNOW = "snow"
    THUNDERSTORM = "thunderstorm"
    MIST = "mist"
    FOG = "fog"
    HAZE = "haze"

    @property
    def speed_factor(self) -> float:
        return _SPEED_FACTORS[self]

    @classmethod
    def from_weather_id(cls, weather_id: int) -> "WeatherCondition":
        if 200 <= weather_id <= 232:
            return cls.THUNDERSTORM
        if 300 <= weather_id <= 321:
            return cls.DRIZZLE
        if 500 <= weather_id <= 531:
            return cls.RAIN
        if 600 <= weather_id <= 622:
            return cls.SNOW
        if weather_id == 701:
            return cls.MIST
        if weather_id == 721:
            return cls.HAZE
        if 701 <= weather_id <= 781:
            return cls.FOG
        if 801 <= weather_id <= 804:
            return cls.CLOUDS
        return cls.CLEAR


_SPEED_FACTORS = {
    WeatherCondition.CLEAR: 1.0,
    WeatherCondition.CLOUDS: 0.95,
    WeatherCondition.DRIZZLE: 0.8,
    WeatherCondition.RAIN: 0.8,
    WeatherCondition.SNOW: 0.7,
    WeatherCondition.THUNDERSTORM: 0.6,
    WeatherCondition.MIST: 0.9,
    WeatherCondition.FOG: 0.9,
    WeatherCondition.HAZE: 0.9,
}


class WeatherClient(UpstreamClient):
    """OpenWeather current conditions. speed_factor never raises."""

    service = "weather"

    def __init__(
        self,
        api_key: str,
        base_url: str = OPENWEATHER_BASE,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        retry_attempts: int = RETRY_ATTEMPTS,
        retry_base_delay: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(base_url, timeout, retry_attempts, retry_base_delay, transport)
        self._api_key = api_key
        self._cache = TTLCache(ttl_seconds=WEATHER_CACHE_TTL_SECONDS)

    async def get_condition(self, coord: Coordinate) -> WeatherCondition | None:
        # ~1 km grid is plenty for weather
        ckey = f"{coord.lat:.2f},{coord.lng:.2f}"
        cached = self._cache.get(ckey)
        if cached is not None:
            return cached
        params = {"lat": coord.lat, "lon": coord.lng, "appid": self._api_key, "units": "metric"}
        raw = await self._get_json("weather", params, event="current")
        weather = raw.get("weather") if isinstance(raw, dict) else None
        if not weather or not isinstance(weather[0], dict) or not isinstance(weather[0].get("id"), int):
            return None
        condition = WeatherCondition.from_weather_id(weather[0]["id"])
        self._cache.set(ckey, condition)
        return condition

    async def speed_factor(self, coord: Coordinate) -> float:
        """Walking speed multiplier for the weather at coord; 1.0 when unknown."""
        if not self._api_key:
            return 1.0
        try:
            condition = await self.get_condition(coord)
        except NetworkFailure as e:
            logger.warning("telemetry weather_unavailable error=%s", str(e))
            return 1.0
        if condition is None:
            return 1.0
        logger.info(
            "telemetry weather_factor condition=%s factor=%s",
            condition.value,
            condition.speed_factor,
            extra={"condition": condition.value, "factor": condition.speed_factor},
        )
        return condition.speed_factor
