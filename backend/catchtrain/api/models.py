"""Pydantic request/response models for the HTTP API."""
from pydantic import BaseModel, Field, model_validator

from catchtrain.catch.models import CatchInfo


class RouteRequest(BaseModel):
    origin_lat: float
    origin_lng: float
    destination_lat: float
    destination_lng: float

    @model_validator(mode="after")
    def check_coordinates(self):
        for name in ("origin_lat", "destination_lat"):
            if not (-90 <= getattr(self, name) <= 90):
                raise ValueError(f"{name} must be between -90 and 90")
        for name in ("origin_lng", "destination_lng"):
            if not (-180 <= getattr(self, name) <= 180):
                raise ValueError(f"{name} must be between -180 and 180")
        return self


class StationResolveResponse(BaseModel):
    name: str
    station_id: str


class ArrivalItem(BaseModel):
    line_id: str | None
    line_name: str | None
    platform_name: str | None
    destination_name: str | None
    expected_arrival_iso: str
    seconds_until_arrival: float


class ArrivalsResponse(BaseModel):
    station_id: str
    arrivals: list[ArrivalItem]


class CatchItem(BaseModel):
    line_id: str
    line_name: str
    line_color_hex: str
    from_station: str
    to_station: str
    time_to_platform: float
    expected_arrival: str  # "HH:MM" London time
    time_left_to_catch: float
    status: str
    status_text: str

    @classmethod
    def from_info(cls, info: CatchInfo) -> "CatchItem":
        return cls(
            line_id=info.line_id,
            line_name=info.line_name,
            line_color_hex=info.line_color_hex,
            from_station=info.from_station,
            to_station=info.to_station,
            time_to_platform=info.time_to_platform,
            expected_arrival=info.expected_arrival,
            time_left_to_catch=info.time_left_to_catch,
            status=info.status.value,
            status_text=info.status.display_text,
        )


class CatchResponse(BaseModel):
    station_id: str
    travel_to_station_sec: float
    station_to_platform_sec: float
    trains: list[CatchItem] = Field(default_factory=list)
