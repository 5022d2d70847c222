"""API tests with a fake aggregator on app.state."""
import time

import pytest
from fastapi.testclient import TestClient

from catchtrain.tfl.models import LineStatus, LineStatusResponse
from helpers import prediction
from main import app, build_journey_session, run, settings


class FakeAggregator:
    def __init__(self):
        self.route = None
        self.status = None

    async def resolve_station_id(self, name):
        return "940GZZLUOXC" if "oxford" in name.lower() else None

    async def fetch_all_arrivals(self, station_id, line_ids=None):
        now = time.time()
        return [prediction(now + 400), prediction(now + 200), prediction(now + 30)]

    async def fetch_route(self, origin, destination):
        return self.route

    async def fetch_line_status(self, line_id):
        return self.status


@pytest.fixture
def client():
    app.state.aggregator = FakeAggregator()
    app.state.directions_enabled = False
    yield TestClient(app)
    app.state.aggregator = None


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_metrics_include_upstream(client):
    client.get("/health")
    body = client.get("/metrics").json()
    assert body["requests_total"] >= 1
    assert "upstream" in body


def test_resolve_station(client):
    r = client.get("/stations/resolve", params={"name": "Oxford Circus Underground Station"})
    assert r.status_code == 200
    assert r.json()["station_id"] == "940GZZLUOXC"
    assert client.get("/stations/resolve", params={"name": "Nowhere"}).status_code == 404
    assert client.get("/stations/resolve", params={"name": " "}).status_code == 400


def test_arrivals(client):
    r = client.get("/stations/940GZZLUOXC/arrivals", params={"line_id": "victoria"})
    assert r.status_code == 200
    body = r.json()
    assert body["station_id"] == "940GZZLUOXC"
    assert len(body["arrivals"]) == 3


def test_invalid_station_id(client):
    assert client.get("/stations/bad id!/arrivals").status_code == 400


def test_catch_classifies_trains(client):
    r = client.get(
        "/stations/940GZZLUOXC/catch",
        params={"travel_to_station_sec": 60, "station_to_platform_sec": 120},
    )
    assert r.status_code == 200
    trains = r.json()["trains"]
    # The 30 s train is long gone (30 - 180 < -30) and never offered
    assert len(trains) == 2
    assert [t["status"] for t in trains] == ["tough", "easy"]
    assert trains[-1]["status_text"] == "EASY"
    assert trains[-1]["line_color_hex"] == "#0098D4"


def test_catch_rejects_negative_travel(client):
    r = client.get("/stations/940GZZLUOXC/catch", params={"travel_to_station_sec": -5})
    assert r.status_code == 400


def test_route_requires_directions_key(client):
    body = {"origin_lat": 51.52, "origin_lng": -0.14, "destination_lat": 51.50, "destination_lng": -0.14}
    assert client.post("/route", json=body).status_code == 503


def test_route_upstream_failure_is_502(client):
    app.state.directions_enabled = True
    body = {"origin_lat": 51.52, "origin_lng": -0.14, "destination_lat": 51.50, "destination_lng": -0.14}
    assert client.post("/route", json=body).status_code == 502


def test_route_validates_coordinates(client):
    app.state.directions_enabled = True
    body = {"origin_lat": 151.0, "origin_lng": -0.14, "destination_lat": 51.50, "destination_lng": -0.14}
    assert client.post("/route", json=body).status_code == 422


def test_line_status(client):
    assert client.get("/lines/victoria/status").status_code == 502
    app.state.aggregator.status = LineStatusResponse(
        line_id="victoria",
        name="Victoria",
        statuses=[LineStatus(line_id="victoria", name="Victoria", status_severity=10, status_description="Good Service")],
    )
    r = client.get("/lines/victoria/status")
    assert r.status_code == 200
    assert r.json()["statuses"][0]["status_description"] == "Good Service"


def test_journey_session_uses_configured_intervals():
    session = build_journey_session(FakeAggregator())
    assert session._refresh_interval == settings.arrivals_refresh_seconds
    assert session._tick_interval == settings.progress_tick_seconds
    assert session._window_size == settings.catch_window_size
    assert session.window(0).size == settings.catch_window_size


def test_run_serves_app_on_configured_address(monkeypatch):
    import uvicorn

    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda app, host, port: calls.append((app, host, port)))
    run()
    assert calls == [(app, settings.host, settings.port)]
