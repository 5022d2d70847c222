"""Shared builders and fakes for the journey tests."""
from datetime import datetime, timezone

from catchtrain.tfl.models import ArrivalPrediction

T0 = datetime(2025, 7, 1, 12, 0, 0, tzinfo=timezone.utc).timestamp()


def prediction(
    arrival_ts: float,
    destination: str = "Brixton Underground Station",
    line_id: str = "victoria",
    station: str = "Warren Street Underground Station",
) -> ArrivalPrediction:
    return ArrivalPrediction.model_validate(
        {
            "id": f"{line_id}-{arrival_ts}",
            "naptanId": "940GZZLUWRR",
            "stationName": station,
            "lineId": line_id,
            "lineName": line_id.title(),
            "platformName": "Southbound - Platform 2",
            "destinationName": destination,
            "expectedArrival": datetime.fromtimestamp(arrival_ts, tz=timezone.utc),
            "timeToStation": 0,
        }
    )


class FakeClock:
    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTicker:
    """Records its callback; tests fire it by hand."""

    created: list["FakeTicker"] = []

    def __init__(self, interval, callback, name="ticker"):
        self.interval = interval
        self.callback = callback
        self.name = name
        self.started = False
        self.stopped = False
        FakeTicker.created.append(self)

    @property
    def running(self) -> bool:
        return self.started and not self.stopped

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def fire(self):
        return self.callback()
