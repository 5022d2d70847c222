"""Pydantic models for TfL Unified API responses, plus the station registry record."""
from datetime import datetime, timezone
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from catchtrain.data.geo import Coordinate


class StationRecord(NamedTuple):
    name: str
    station_id: str  # naptanId
    lat: float
    lng: float

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.lat, self.lng)


class ArrivalPrediction(BaseModel):
    """One live arrival from Line/{line}/Arrivals/{station}. Optional fields are often missing upstream."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    prediction_id: str | None = Field(default=None, alias="id")
    station_id: str | None = Field(default=None, alias="naptanId")
    station_name: str | None = Field(default=None, alias="stationName")
    line_id: str | None = Field(default=None, alias="lineId")
    line_name: str | None = Field(default=None, alias="lineName")
    platform_name: str | None = Field(default=None, alias="platformName")
    destination_name: str | None = Field(default=None, alias="destinationName")
    expected_arrival: datetime = Field(alias="expectedArrival")
    time_to_station: float = Field(default=0.0, alias="timeToStation")

    @field_validator("expected_arrival")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # TfL timestamps are UTC; some payloads drop the trailing Z
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def expected_arrival_ts(self) -> float:
        return self.expected_arrival.timestamp()


class LineStatus(BaseModel):
    line_id: str
    name: str
    status_severity: int
    status_description: str
    reason: str | None = None


class LineStatusResponse(BaseModel):
    line_id: str
    name: str
    statuses: list[LineStatus]
