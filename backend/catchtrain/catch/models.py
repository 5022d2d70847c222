"""CatchInfo: one live train as seen from the rider's position."""
from datetime import datetime, timezone
from typing import NamedTuple
from zoneinfo import ZoneInfo

from catchtrain.catch.status import CatchStatus, classify_catch_status
from catchtrain.tfl.lines import line_color_hex
from catchtrain.tfl.models import ArrivalPrediction
from catchtrain.tfl.names import normalize_station_name

LONDON_TZ = ZoneInfo("Europe/London")
# Trains further gone than this are never offered
MIN_CATCHABLE_BUFFER_SEC = -30.0


def format_arrival_time(ts: float) -> str:
    """Epoch seconds -> "HH:MM" in London time."""
    return datetime.fromtimestamp(ts, tz=timezone.utc).astimezone(LONDON_TZ).strftime("%H:%M")


class CatchInfo(NamedTuple):
    line_id: str
    line_name: str
    line_color_hex: str
    from_station: str
    to_station: str
    time_to_platform: float  # travel to station + station to platform, seconds
    expected_arrival_ts: float
    expected_arrival: str  # "HH:MM"
    time_left_to_catch: float
    status: CatchStatus

    def seconds_until_arrival(self, now: float) -> float:
        return self.expected_arrival_ts - now

    def reclassified(self, now: float, time_to_platform: float | None = None) -> "CatchInfo":
        travel = self.time_to_platform if time_to_platform is None else time_to_platform
        left = self.seconds_until_arrival(now) - travel
        return self._replace(time_to_platform=travel, time_left_to_catch=left, status=classify_catch_status(left))

    @property
    def is_missed(self) -> bool:
        return self.status is CatchStatus.MISSED


def build_catch_info(
    prediction: ArrivalPrediction,
    now: float,
    travel_to_station_sec: float,
    station_to_platform_sec: float,
    from_station: str | None = None,
) -> CatchInfo:
    """time_left_to_catch = seconds until arrival - (travel to station + station to platform)."""
    time_to_platform = travel_to_station_sec + station_to_platform_sec
    arrival_ts = prediction.expected_arrival_ts
    left = (arrival_ts - now) - time_to_platform
    line_id = prediction.line_id or ""
    return CatchInfo(
        line_id=line_id,
        line_name=prediction.line_name or line_id,
        line_color_hex=line_color_hex(line_id),
        from_station=normalize_station_name(from_station or prediction.station_name),
        to_station=normalize_station_name(prediction.destination_name),
        time_to_platform=time_to_platform,
        expected_arrival_ts=arrival_ts,
        expected_arrival=format_arrival_time(arrival_ts),
        time_left_to_catch=left,
        status=classify_catch_status(left),
    )
