import logging
import re
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from settings import get_settings
from catchtrain.api.models import (
    ArrivalItem,
    ArrivalsResponse,
    CatchItem,
    CatchResponse,
    RouteRequest,
    StationResolveResponse,
)
from catchtrain.catch.window import CatchWindow
from catchtrain.data.geo import Coordinate
from catchtrain.directions.client import DirectionsClient
from catchtrain.journey.listeners import JourneyProgressListener
from catchtrain.journey.session import JourneySession
from catchtrain.middleware import RequestLoggingMiddleware
from catchtrain.monitoring.metrics import get_metrics
from catchtrain.motion.sampler import MotionSampler, MotionSensor
from catchtrain.pacing.estimator import AdaptivePaceEstimator, PaceListener
from catchtrain.pacing.weather import WeatherClient
from catchtrain.tfl.client import TfLClient
from catchtrain.tfl.models import LineStatusResponse
from catchtrain.transit.aggregator import TransitDataAggregator
from catchtrain.transit.models import RouteResult

settings = get_settings()

# Structured logging: include module and level; handlers can add JSON later
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])

ID_MAX_LEN = 64
ID_PATTERN = re.compile(r"^[a-zA-Z0-9_\-]+$")
NAME_MAX_LEN = 120
TRAVEL_SEC_MAX = 3 * 3600


def _validate_id(value: str, kind: str) -> None:
    if not value or len(value) > ID_MAX_LEN or not ID_PATTERN.match(value):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {kind} (alphanumeric, underscore, hyphen only; max {ID_MAX_LEN} chars).",
        )


def build_aggregator() -> TransitDataAggregator:
    client_kwargs = {"timeout": settings.http_timeout_seconds, "retry_attempts": settings.http_retry_attempts}
    tfl = TfLClient(app_key=settings.tfl_app_key, **client_kwargs)
    directions = DirectionsClient(settings.google_maps_api_key, **client_kwargs) if settings.google_maps_api_key else None
    weather = WeatherClient(settings.openweather_api_key, **client_kwargs) if settings.openweather_api_key else None
    return TransitDataAggregator(tfl, directions=directions, weather=weather)


def build_journey_session(
    aggregator: TransitDataAggregator,
    listener: JourneyProgressListener | None = None,
    pace_listener: PaceListener | None = None,
    sensor: MotionSensor | None = None,
) -> JourneySession:
    """Session wired with the configured intervals. sensor is the device pedometer, if there is one."""
    motion = MotionSampler(sensor, min_valid_speed=settings.min_valid_speed_mps)
    motion.start()
    return JourneySession(
        aggregator,
        listener=listener,
        pace=AdaptivePaceEstimator(pace_listener, motion=motion),
        station_to_platform_sec=settings.station_to_platform_seconds,
        window_size=settings.catch_window_size,
        refresh_interval=settings.arrivals_refresh_seconds,
        tick_interval=settings.progress_tick_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.aggregator = build_aggregator()
    app.state.directions_enabled = bool(settings.google_maps_api_key)
    yield
    app.state.aggregator = None


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception):
    """Return consistent JSON error for unhandled exceptions (500). Skip validation/HTTP errors."""
    from fastapi.exceptions import RequestValidationError
    if isinstance(exc, (HTTPException, RequestValidationError)):
        raise exc
    logger.exception("telemetry unhandled_exception path=%s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred. Please try again later."},
    )


# Order: last added = innermost. So RequestLogging runs first (outermost), then CORS.
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _aggregator(request: Request) -> TransitDataAggregator:
    aggregator: TransitDataAggregator | None = getattr(request.app.state, "aggregator", None)
    if aggregator is None:
        raise HTTPException(status_code=503, detail="Transit data is not available yet. Please try again.")
    return aggregator


@app.get("/favicon.ico", include_in_schema=False)
@limiter.exempt
def favicon(request: Request):
    """Return 204 so browser favicon requests don't log 404."""
    return Response(status_code=204)


@app.get("/health")
@limiter.exempt
def health(request: Request):
    logger.info("telemetry route=health")
    return {"status": "ok"}


@app.get("/metrics")
@limiter.exempt
def metrics(request: Request):
    """Request counts by status bucket, upstream call outcomes per service, uptime."""
    return get_metrics()


@app.post("/route", response_model=RouteResult)
async def post_route(request: Request, body: RouteRequest):
    if not getattr(request.app.state, "directions_enabled", False):
        raise HTTPException(
            status_code=503,
            detail="Directions API key not configured. Set GOOGLE_MAPS_API_KEY in the environment.",
        )
    aggregator = _aggregator(request)
    origin = Coordinate(body.origin_lat, body.origin_lng)
    destination = Coordinate(body.destination_lat, body.destination_lng)
    logger.info("telemetry route=route")
    route = await aggregator.fetch_route(origin, destination)
    if route is None:
        raise HTTPException(status_code=502, detail="No transit route could be built. Please try again.")
    return route


@app.get("/stations/resolve", response_model=StationResolveResponse)
async def resolve_station(request: Request, name: str = ""):
    query = (name or "").strip()
    if not query or len(query) > NAME_MAX_LEN:
        raise HTTPException(status_code=400, detail=f"Provide a station name (max {NAME_MAX_LEN} chars).")
    logger.info("telemetry route=stations_resolve")
    station_id = await _aggregator(request).resolve_station_id(query)
    if not station_id:
        raise HTTPException(status_code=404, detail=f"Could not resolve station '{query[:80]}'.")
    return StationResolveResponse(name=query, station_id=station_id)


@app.get("/stations/{station_id}/arrivals", response_model=ArrivalsResponse)
async def station_arrivals(request: Request, station_id: str, line_id: str = ""):
    _validate_id(station_id, "station_id")
    if line_id:
        _validate_id(line_id, "line_id")
    logger.info("telemetry route=arrivals station_id=%s line_id=%s", station_id, line_id or "all")
    arrivals = await _aggregator(request).fetch_all_arrivals(station_id, [line_id] if line_id else None)
    now = time.time()
    return ArrivalsResponse(
        station_id=station_id,
        arrivals=[
            ArrivalItem(
                line_id=a.line_id,
                line_name=a.line_name,
                platform_name=a.platform_name,
                destination_name=a.destination_name,
                expected_arrival_iso=a.expected_arrival.isoformat(),
                seconds_until_arrival=a.expected_arrival_ts - now,
            )
            for a in arrivals
        ],
    )


@app.get("/stations/{station_id}/catch", response_model=CatchResponse)
async def station_catch(
    request: Request,
    station_id: str,
    travel_to_station_sec: float = 0.0,
    station_to_platform_sec: float | None = None,
    line_id: str = "",
):
    """Catchable trains at a station given the rider's travel time, classified EASY/HURRY/TOUGH/MISSED."""
    _validate_id(station_id, "station_id")
    if line_id:
        _validate_id(line_id, "line_id")
    platform_sec = settings.station_to_platform_seconds if station_to_platform_sec is None else station_to_platform_sec
    for label, value in (("travel_to_station_sec", travel_to_station_sec), ("station_to_platform_sec", platform_sec)):
        if not (0 <= value <= TRAVEL_SEC_MAX):
            raise HTTPException(status_code=400, detail=f"{label} must be between 0 and {TRAVEL_SEC_MAX}")
    logger.info("telemetry route=catch station_id=%s travel_sec=%.0f", station_id, travel_to_station_sec)
    arrivals = await _aggregator(request).fetch_all_arrivals(station_id, [line_id] if line_id else None)
    window = CatchWindow.build(
        arrivals,
        time.time(),
        travel_to_station_sec,
        platform_sec,
        size=settings.catch_window_size,
    )
    return CatchResponse(
        station_id=station_id,
        travel_to_station_sec=travel_to_station_sec,
        station_to_platform_sec=platform_sec,
        trains=[CatchItem.from_info(info) for info in window],
    )


@app.get("/lines/{line_id}/status", response_model=LineStatusResponse)
async def line_status(request: Request, line_id: str):
    _validate_id(line_id, "line_id")
    logger.info("telemetry route=line_status line_id=%s", line_id)
    status = await _aggregator(request).fetch_line_status(line_id)
    if status is None:
        raise HTTPException(status_code=502, detail="Failed to fetch line status from TfL. Please try again.")
    return status


def run() -> None:
    """Serve the API with uvicorn on the configured host and port."""
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
