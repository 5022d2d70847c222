"""Unit tests for the upstream clients: caching, retries, parsing. Network is stubbed with MockTransport."""
import asyncio
import time

import httpx
import pytest

from catchtrain.data.geo import Coordinate
from catchtrain.data.upstream import TTLCache
from catchtrain.directions.client import DirectionsClient
from catchtrain.errors import NetworkFailure
from catchtrain.monitoring.metrics import get_metrics, reset_metrics
from catchtrain.pacing.weather import WeatherClient, WeatherCondition
from catchtrain.tfl.client import TfLClient, _tube_stop_names


class Recorder:
    """MockTransport handler: routes by path suffix and records every request."""

    def __init__(self, routes, status_code=200):
        self.routes = routes
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for suffix, payload in self.routes.items():
            if request.url.path.endswith(suffix):
                return httpx.Response(self.status_code, json=payload)
        return httpx.Response(404, json={"message": "not found"})


def _tfl(recorder, **kwargs):
    return TfLClient(app_key="k", transport=httpx.MockTransport(recorder), retry_attempts=1, **kwargs)


STATIONS = {
    "stopPoints": [
        {"commonName": "Oxford Circus Underground Station", "naptanId": "940GZZLUOXC", "lat": 51.5152, "lon": -0.1418},
        {"commonName": "Green Park Underground Station", "naptanId": "940GZZLUGPK", "lat": 51.5067, "lon": -0.1428},
        {"commonName": "Broken", "naptanId": "X"},
    ]
}

ARRIVALS = [
    {
        "id": "1",
        "naptanId": "940GZZLUOXC",
        "stationName": "Oxford Circus Underground Station",
        "lineId": "victoria",
        "lineName": "Victoria",
        "platformName": "Southbound - Platform 5",
        "destinationName": "Brixton Underground Station",
        "expectedArrival": "2025-07-01T12:03:00Z",
        "timeToStation": 180,
    },
    {"id": "2", "lineId": "victoria"},
]

JOURNEY = {
    "journeys": [
        {
            "legs": [
                {"duration": 4, "mode": {"id": "walking"}, "path": {"stopPoints": [{"name": "Street"}]}},
                {
                    "duration": 6,
                    "mode": {"id": "tube"},
                    "path": {"stopPoints": [{"name": "Oxford Circus"}, {"name": "Green Park"}, {"name": "Victoria"}]},
                },
            ]
        }
    ]
}


# --- Cache tests ---


def test_ttl_cache_miss_then_hit():
    cache = TTLCache(ttl_seconds=60)
    assert cache.get("k1") is None
    cache.set("k1", "v1")
    assert cache.get("k1") == "v1"
    cache.clear()
    assert cache.get("k1") is None


def test_ttl_cache_expiry():
    cache = TTLCache(ttl_seconds=1)
    cache.set("k1", "v1")
    assert cache.get("k1") == "v1"
    time.sleep(1.1)
    assert cache.get("k1") is None


def test_stations_cached_and_parsed():
    recorder = Recorder({"StopPoint/Mode/tube": STATIONS})
    client = _tfl(recorder)

    async def run():
        first = await client.get_tube_stations()
        second = await client.get_tube_stations()
        return first, second

    first, second = asyncio.run(run())
    assert [s.station_id for s in first] == ["940GZZLUOXC", "940GZZLUGPK"]
    assert second == first
    assert len(recorder.requests) == 1
    assert recorder.requests[0].url.params["app_key"] == "k"


def test_arrivals_skip_invalid_entries():
    recorder = Recorder({"Line/victoria/Arrivals/940GZZLUOXC": ARRIVALS})
    arrivals = asyncio.run(_tfl(recorder).get_arrivals("victoria", "940GZZLUOXC"))
    assert len(arrivals) == 1
    assert arrivals[0].destination_name == "Brixton Underground Station"
    assert arrivals[0].expected_arrival.tzinfo is not None


def test_search_and_station_lines():
    recorder = Recorder({
        "StopPoint/Search": {"matches": [{"id": "940GZZLUOXC", "name": "Oxford Circus"}]},
        "StopPoint/940GZZLUOXC": {"lines": [{"id": "bakerloo"}, {"id": "central"}, {"id": "victoria"}]},
    })
    client = _tfl(recorder)
    assert asyncio.run(client.search_station_id("Oxford Circus")) == "940GZZLUOXC"
    assert recorder.requests[0].url.params["modes"] == "tube"
    assert asyncio.run(client.get_station_lines("940GZZLUOXC")) == ["bakerloo", "central", "victoria"]


def test_journey_stop_names_and_first_leg():
    recorder = Recorder({"/to/940GZZLUVIC": JOURNEY, "/to/51.4965,-0.1447": JOURNEY})
    client = _tfl(recorder)
    stops = asyncio.run(client.get_journey_stop_names(Coordinate(51.5152, -0.1418), Coordinate(51.4965, -0.1447)))
    assert stops == ["Oxford Circus", "Green Park", "Victoria"]
    assert asyncio.run(client.get_first_leg_minutes("940GZZLUOXC", "940GZZLUVIC")) == 4.0
    assert _tube_stop_names({}) == []


def test_line_status():
    recorder = Recorder({
        "Line/victoria/Status": [
            {
                "id": "victoria",
                "name": "Victoria",
                "lineStatuses": [{"statusSeverity": 10, "statusSeverityDescription": "Good Service"}],
            }
        ]
    })
    status = asyncio.run(_tfl(recorder).get_line_status("victoria"))
    assert status.line_id == "victoria"
    assert status.statuses[0].status_description == "Good Service"


def test_failure_after_retries_raises_network_failure():
    reset_metrics()
    recorder = Recorder({}, status_code=500)
    client = TfLClient(transport=httpx.MockTransport(recorder), retry_attempts=2, retry_base_delay=0.01)
    with pytest.raises(NetworkFailure):
        asyncio.run(client.get_arrivals("victoria", "940GZZLUOXC"))
    assert len(recorder.requests) == 2
    assert get_metrics()["upstream"]["tfl"] == {"ok": 0, "failed": 1}


def test_timeout_raises_network_failure():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    client = TfLClient(transport=httpx.MockTransport(handler), retry_attempts=1)
    with pytest.raises(NetworkFailure):
        asyncio.run(client.get_tube_stations())


# --- Directions ---


def test_directions_walking_seconds_cached():
    recorder = Recorder({"json": {"status": "OK", "routes": [{"legs": [{"duration": {"value": 240, "text": "4 mins"}}]}]}})
    client = DirectionsClient("gkey", transport=httpx.MockTransport(recorder), retry_attempts=1)
    a, b = Coordinate(51.5, -0.14), Coordinate(51.501, -0.14)

    async def run():
        return await client.get_walking_seconds(a, b), await client.get_walking_seconds(a, b)

    assert asyncio.run(run()) == (240.0, 240.0)
    assert len(recorder.requests) == 1
    assert recorder.requests[0].url.params["mode"] == "walking"


def test_directions_no_route_is_network_failure():
    recorder = Recorder({"json": {"status": "ZERO_RESULTS", "routes": []}})
    client = DirectionsClient("gkey", transport=httpx.MockTransport(recorder), retry_attempts=1)
    with pytest.raises(NetworkFailure):
        asyncio.run(client.get_transit_steps(Coordinate(51.5, -0.14), Coordinate(51.6, -0.1)))


# --- Weather ---


@pytest.mark.parametrize(
    "weather_id,condition,factor",
    [
        (800, WeatherCondition.CLEAR, 1.0),
        (803, WeatherCondition.CLOUDS, 0.95),
        (501, WeatherCondition.RAIN, 0.8),
        (601, WeatherCondition.SNOW, 0.7),
        (211, WeatherCondition.THUNDERSTORM, 0.6),
        (741, WeatherCondition.FOG, 0.9),
    ],
)
def test_weather_condition_factors(weather_id, condition, factor):
    assert WeatherCondition.from_weather_id(weather_id) is condition
    assert condition.speed_factor == factor


def test_weather_speed_factor_from_api():
    recorder = Recorder({"weather": {"weather": [{"id": 502, "main": "Rain"}]}})
    client = WeatherClient("wkey", transport=httpx.MockTransport(recorder), retry_attempts=1)
    assert asyncio.run(client.speed_factor(Coordinate(51.5, -0.14))) == 0.8


def test_weather_failure_defaults_to_one():
    recorder = Recorder({}, status_code=503)
    client = WeatherClient("wkey", transport=httpx.MockTransport(recorder), retry_attempts=1)
    assert asyncio.run(client.speed_factor(Coordinate(51.5, -0.14))) == 1.0
    assert asyncio.run(WeatherClient("").speed_factor(Coordinate(51.5, -0.14))) == 1.0
