"""
JourneySession wires the aggregator, pace estimator and progress machine together and keeps
one catch window per leg fresh.

Arrivals are refreshed every few seconds on their own ticker. A refresh that is still running
swallows the next tick, and every start()/stop() bumps a generation counter so a fetch that
completes late is dropped instead of applied.
"""
import asyncio
import logging
import time
from collections.abc import Callable
from typing import NamedTuple

from catchtrain.catch.models import CatchInfo
from catchtrain.catch.window import DEFAULT_WINDOW_SIZE, CatchWindow, StopOrdering, catch_candidates
from catchtrain.data.geo import Coordinate, Location, distance_m
from catchtrain.data.ticker import Ticker
from catchtrain.errors import MissingRouteData, UnresolvableStation
from catchtrain.journey.feedback import Feedback
from catchtrain.journey.listeners import JourneyProgressListener
from catchtrain.journey.phases import STATION_TO_PLATFORM, WALK_TO_STATION, JourneyPlan, PhaseKind, ProgressPhase
from catchtrain.journey.platform import DEFAULT_STATION_TO_PLATFORM_SEC, PlatformTimer
from catchtrain.journey.progress import JourneyProgressMachine
from catchtrain.pacing.estimator import AdaptivePaceEstimator
from catchtrain.tfl.names import best_matching_station_name
from catchtrain.transit.aggregator import TransitDataAggregator
from catchtrain.transit.models import RouteLeg, RouteResult

logger = logging.getLogger(__name__)

NO_TRAINS_ON_FIRST_LEG = "No catchable trains on the first leg"


class LegCatch(NamedTuple):
    leg_index: int
    station_name: str
    station_id: str | None  # None: station unresolved, leg has no live data
    ordering: StopOrdering | None
    line_ids: tuple[str, ...]
    window: CatchWindow


class JourneySession(JourneyProgressListener):
    def __init__(
        self,
        aggregator: TransitDataAggregator,
        listener: JourneyProgressListener | None = None,
        pace: AdaptivePaceEstimator | None = None,
        station_to_platform_sec: float = DEFAULT_STATION_TO_PLATFORM_SEC,
        window_size: int = DEFAULT_WINDOW_SIZE,
        refresh_interval: float = 3.0,
        tick_interval: float = 1.0,
        clock: Callable[[], float] = time.time,
        ticker_factory: Callable[..., Ticker] = Ticker,
        platform_timer: PlatformTimer | None = None,
    ):
        self._aggregator = aggregator
        self._listener = listener or JourneyProgressListener()
        self._pace = pace
        self._window_size = window_size
        self._refresh_interval = refresh_interval
        self._tick_interval = tick_interval
        self._clock = clock
        self._ticker_factory = ticker_factory
        self._platform_timer = platform_timer or PlatformTimer(station_to_platform_sec, clock=clock)

        self.origin: Coordinate | None = None
        self.destination: Coordinate | None = None
        self.route: RouteResult | None = None
        self.machine: JourneyProgressMachine | None = None
        self.legs: list[LegCatch] = []

        self._generation = 0
        self._refreshing = False
        self._refresh_ticker: Ticker | None = None
        self._refresh_task: asyncio.Task | None = None
        self._reported_first_leg_empty = False
        self._last_location: Location | None = None
        self._stopped = False

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def stopped(self) -> bool:
        return self._stopped

    def set_route(self, origin: Coordinate, destination: Coordinate, route: RouteResult | None) -> None:
        self.origin = origin
        self.destination = destination
        self.route = route

    async def plan_route(self, origin: Coordinate, destination: Coordinate) -> RouteResult | None:
        route = await self._aggregator.fetch_route(origin, destination)
        self.set_route(origin, destination, route)
        return route

    def window(self, leg_index: int) -> CatchWindow:
        if 0 <= leg_index < len(self.legs):
            return self.legs[leg_index].window
        return CatchWindow(size=self._window_size)

    def target_train(self) -> CatchInfo | None:
        if self.machine is None:
            return None
        leg_index = self.machine.next_boarding_leg()
        if leg_index is None or leg_index >= len(self.legs):
            return None
        return self.legs[leg_index].window.next_catchable()

    async def start(self) -> None:
        if self.origin is None or self.destination is None or self.route is None:
            raise MissingRouteData("origin, destination and route must be set before start()")
        if self.machine is not None and not self._stopped:
            return
        self._generation += 1
        generation = self._generation
        self._stopped = False
        self._reported_first_leg_empty = False

        route = self.route
        first_station = route.legs[0].departure_station if route.legs else route.origin_station.name
        plan = JourneyPlan.from_route(route, self._platform_timer.estimate(first_station))
        self.machine = JourneyProgressMachine(
            plan,
            listener=self,
            clock=self._clock,
            tick_interval=self._tick_interval,
            ticker_factory=self._ticker_factory,
        )
        self.machine.start()
        if self._pace is not None:
            self._pace.update_weather_factor(route.weather_factor)
            self._pace.start_walking_tracking()

        now = self._clock()
        legs = await asyncio.gather(*(self._load_leg(i, leg, now) for i, leg in enumerate(route.legs)))
        if generation != self._generation:
            logger.info("telemetry session_load_discarded generation=%s", generation)
            return
        self.legs = list(legs)
        logger.info(
            "telemetry session_started legs=%s windows=%s",
            len(self.legs),
            [len(leg.window) for leg in self.legs],
            extra={"legs": len(self.legs)},
        )
        self._check_first_leg()
        self._retarget(now)

        self._refresh_ticker = self._ticker_factory(self._refresh_interval, self._on_refresh_tick, name="arrivals-refresh")
        self._refresh_ticker.start()

    async def _resolve(self, station_name: str) -> str:
        station_id = await self._aggregator.resolve_station_id(station_name)
        if not station_id:
            raise UnresolvableStation(station_name)
        return station_id

    async def _load_leg(self, index: int, leg: RouteLeg, now: float) -> LegCatch:
        boarding = leg.departure_station
        try:
            station_id = await self._resolve(boarding)
        except UnresolvableStation as e:
            logger.warning("telemetry leg_degraded leg=%s reason=unresolved_station station=%s", index, e.name)
            return LegCatch(index, boarding, None, None, (), CatchWindow(size=self._window_size))

        stops = leg.stop_names or [leg.departure_station, leg.arrival_station]
        target = best_matching_station_name(stops, leg.arrival_station) or leg.arrival_station
        ordering = StopOrdering.from_names(stops, boarding, target)
        if leg.line_id:
            line_ids = [leg.line_id]
        else:
            line_ids = await self._aggregator.fetch_common_line_ids([boarding, leg.arrival_station])
        predictions = await self._aggregator.fetch_all_arrivals(station_id, line_ids or None)
        time_to_platform = self._time_to_platform(index, now) or 0.0
        window = CatchWindow.build(
            predictions,
            now,
            time_to_platform,
            0.0,
            ordering=ordering,
            size=self._window_size,
            from_station=boarding,
        )
        return LegCatch(index, boarding, station_id, ordering, tuple(line_ids), window)

    def _time_to_platform(self, leg_index: int, now: float) -> float | None:
        """Seconds until the rider is on leg_index's platform; None once that leg is boarded."""
        machine = self.machine
        if machine is None:
            return None
        if leg_index == 0 and machine.phase == WALK_TO_STATION and self._pace is not None:
            update = self._pace.last_update
            if update is not None:
                return update.adaptive_eta + machine.plan.station_to_platform_sec
        return machine.seconds_until_boarding(leg_index, now)

    def _on_refresh_tick(self) -> None:
        if self._refreshing or self._stopped:
            return
        self._refreshing = True
        self._refresh_task = asyncio.get_running_loop().create_task(self._run_refresh(), name="arrivals-refresh-run")

    async def _run_refresh(self) -> None:
        try:
            await self.refresh()
        except Exception:
            logger.exception("telemetry arrivals_refresh_failed generation=%s", self._generation)
        finally:
            self._refreshing = False

    async def refresh(self) -> None:
        """Reclassify every window, drop missed heads and refill each pruned leg with one fetch."""
        if self.machine is None or self._stopped:
            return
        generation = self._generation
        now = self._clock()

        pruned: list[tuple[int, int, float]] = []
        updated: list[LegCatch] = []
        for leg in self.legs:
            time_to_platform = self._time_to_platform(leg.leg_index, now)
            if leg.station_id is None or time_to_platform is None:
                updated.append(leg)
                continue
            window, dropped = leg.window.reclassify(now, time_to_platform).drop_missed_head()
            updated.append(leg._replace(window=window))
            if dropped:
                pruned.append((leg.leg_index, dropped, time_to_platform))
        self.legs = updated

        if pruned:
            fetched = await asyncio.gather(*(
                self._aggregator.fetch_all_arrivals(self.legs[i].station_id, list(self.legs[i].line_ids) or None)
                for i, _, _ in pruned
            ))
            if generation != self._generation:
                logger.info("telemetry arrivals_refresh_discarded generation=%s", generation)
                return
            for (i, dropped, time_to_platform), predictions in zip(pruned, fetched):
                leg = self.legs[i]
                candidates = catch_candidates(
                    predictions, now, time_to_platform, 0.0, leg.ordering, leg.station_name
                )
                fresh = [c for c in candidates if not c.is_missed]
                self.legs[i] = leg._replace(window=leg.window.replenish(fresh, dropped))
                logger.info(
                    "telemetry window_replenished leg=%s dropped=%s size=%s",
                    i,
                    dropped,
                    len(self.legs[i].window),
                )

        self._check_first_leg()
        self._retarget(now)

    def _check_first_leg(self) -> None:
        if self._reported_first_leg_empty or not self.legs or self.legs[0].window:
            return
        if self.machine is not None and self.machine.phase.kind is PhaseKind.ON_TRAIN:
            return
        self._reported_first_leg_empty = True
        logger.warning("telemetry first_leg_empty station=%s", self.legs[0].station_name)
        self._listener.on_journey_error(NO_TRAINS_ON_FIRST_LEG)

    def _retarget(self, now: float) -> None:
        machine = self.machine
        if machine is None:
            return
        target = self.target_train()
        machine.set_target_train(target.expected_arrival_ts if target is not None else None)
        if self._pace is None or target is None or machine.phase != WALK_TO_STATION:
            return
        plan = machine.plan
        here = self._last_location or plan.origin
        distance = distance_m(here, plan.station) if here is not None and plan.station is not None else 0.0
        self._pace.set_target(
            distance,
            target.expected_arrival_ts - now - plan.station_to_platform_sec,
            google_eta=plan.entry_walk_sec,
            station=plan.station,
        )

    def update_location(self, location: Location) -> None:
        if self._stopped or self.machine is None:
            return
        self._last_location = location
        self.machine.update_progress_with_location(location)
        if self._pace is not None and self.machine.phase == WALK_TO_STATION:
            self._pace.update_with_new_location(location)

    # JourneyProgressListener: the machine reports here, the session forwards

    def on_progress(self, overall_progress, phase_progress, catch_status, delta, uncertainty, phase) -> None:
        self._listener.on_progress(overall_progress, phase_progress, catch_status, delta, uncertainty, phase)
        # The machine stops itself once finished; nothing is left to refresh or pace
        if phase.kind is PhaseKind.FINISHED:
            self.stop()

    def on_phase_change(self, phase: ProgressPhase) -> None:
        if phase == STATION_TO_PLATFORM:
            if self._pace is not None:
                self._pace.stop_pacing()
                self._pace.stop_walking_tracking()
            station = self.legs[0].station_name if self.legs else None
            if station:
                self._platform_timer.start(station)
        elif self._platform_timer.running:
            self._platform_timer.stop()
        if phase.kind is PhaseKind.ON_TRAIN:
            self._retarget(self._clock())
        self._listener.on_phase_change(phase)

    def on_feedback(self, feedback: Feedback) -> None:
        self._listener.on_feedback(feedback)

    def on_journey_error(self, message: str) -> None:
        self._listener.on_journey_error(message)

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        self._generation += 1
        if self._refresh_ticker is not None:
            self._refresh_ticker.stop()
            self._refresh_ticker = None
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
        self._refresh_task = None
        self._refreshing = False
        if self.machine is not None:
            self.machine.stop()
        if self._pace is not None:
            self._pace.stop()
        self._listener = JourneyProgressListener()
        logger.info("telemetry session_stopped generation=%s", self._generation)
