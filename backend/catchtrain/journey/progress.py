"""
Journey progress state machine.

Owns the current phase and recomputes progress, catch delta and uncertainty on every tick.
Phases only move forward; the one same-phase adjustment is retargeting the train.
"""
import logging
import math
import statistics
import time
from collections.abc import Callable
from typing import NamedTuple

from catchtrain.catch.status import CatchStatus, classify_catch_status
from catchtrain.data.geo import Coordinate, Location, distance_m
from catchtrain.data.ticker import Ticker
from catchtrain.journey import feedback
from catchtrain.journey.listeners import JourneyProgressListener
from catchtrain.journey.phases import JourneyPlan, PhaseKind, PlannedPhase, ProgressPhase

logger = logging.getLogger(__name__)

ARRIVAL_RADIUS_M = 10.0
MIN_SIGMA_TIME_SEC = 20.0
MIN_SPEED_FOR_SIGMA_MPS = 0.5


class JourneyProgressState(NamedTuple):
    phase: ProgressPhase
    overall_progress: float
    phase_progress: float
    delta: float
    uncertainty: float
    catch_status: CatchStatus | None
    previous_phase: ProgressPhase | None = None  # set only on the snapshot carrying a transition


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(max(value, low), high)


def combined_uncertainty(overruns: list[float], location: Location | None) -> float:
    """
    sqrt(sigma_time^2 + sigma_gps^2): sigma_time is the spread of (actual - planned) phase
    durations, never below 20 s; sigma_gps is fix accuracy over walking speed (floor 0.5 m/s).
    """
    sigma_time = MIN_SIGMA_TIME_SEC
    if len(overruns) >= 2:
        sigma_time = max(MIN_SIGMA_TIME_SEC, statistics.pstdev(overruns))
    sigma_gps = 0.0
    if location is not None and location.horizontal_accuracy > 0:
        sigma_gps = location.horizontal_accuracy / max(location.speed, MIN_SPEED_FOR_SIGMA_MPS)
    return math.sqrt(sigma_time**2 + sigma_gps**2)


class JourneyProgressMachine:
    def __init__(
        self,
        plan: JourneyPlan,
        listener: JourneyProgressListener | None = None,
        clock: Callable[[], float] = time.time,
        tick_interval: float = 1.0,
        ticker_factory: Callable[..., Ticker] = Ticker,
        target_arrival_ts: float | None = None,
    ):
        self.plan = plan
        self._phases: list[PlannedPhase] = plan.planned_phases()
        self._total = sum(p.duration for p in self._phases)
        self._listener = listener or JourneyProgressListener()
        self._clock = clock
        self._tick_interval = tick_interval
        self._ticker_factory = ticker_factory
        self._ticker: Ticker | None = None

        self._index = 0
        self._started_at: float | None = None
        self._phase_started_at = 0.0
        self._stopped = False

        self._location: Location | None = None
        self._location_in_phase: Location | None = None
        self._phase_origin: Coordinate | None = None
        self._gps_phase_progress: float | None = None
        self._overruns: list[float] = []
        self._pending_previous: ProgressPhase | None = None

        self.target_arrival_ts = target_arrival_ts
        self.state: JourneyProgressState | None = None

        self._last_status: CatchStatus | None = None
        self._missed_announced_for: float | None = None
        self._arriving_announced_for: float | None = None
        self._transfers_announced: set[int] = set()

    @property
    def phase(self) -> ProgressPhase:
        return self._phases[self._index].phase

    @property
    def degraded(self) -> bool:
        """True while the current walking phase has no coordinate to measure against: time only."""
        planned = self._phases[self._index]
        return planned.phase.is_walking and planned.target is None

    @property
    def running(self) -> bool:
        return self._started_at is not None and not self._stopped

    @property
    def stopped(self) -> bool:
        return self._stopped

    def start(self, now: float | None = None) -> None:
        if self._started_at is not None or self._stopped:
            return
        t0 = self._clock() if now is None else now
        self._started_at = t0
        self._phase_started_at = t0
        self._phase_origin = self.plan.origin
        if self.degraded:
            logger.warning("telemetry journey_degraded phase=%s reason=no_target_coordinate mode=time_only", self.phase)
        logger.info(
            "telemetry journey_started phases=%s total_sec=%.0f",
            len(self._phases),
            self._total,
            extra={"phases": len(self._phases), "total_sec": self._total},
        )
        self._ticker = self._ticker_factory(self._tick_interval, self.tick, name="journey-progress")
        self._ticker.start()

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self._ticker is not None:
            self._ticker.stop()
            self._ticker = None
        self._listener = JourneyProgressListener()
        logger.info("telemetry journey_stopped phase=%s", self.phase)

    def set_target_train(self, arrival_ts: float | None) -> None:
        if arrival_ts == self.target_arrival_ts:
            return
        logger.info("telemetry target_train_changed phase=%s arrival_ts=%s", self.phase, arrival_ts)
        self.target_arrival_ts = arrival_ts

    def update_progress_with_location(self, location: Location) -> None:
        """In a walking phase, distance to the phase target overrides elapsed time."""
        if self._stopped:
            return
        self._location = location
        planned = self._phases[self._index]
        if not planned.phase.is_walking or planned.target is None:
            return
        self._location_in_phase = location
        origin = planned.start or self._phase_origin or location.coordinate
        if self._phase_origin is None:
            self._phase_origin = origin
        total = distance_m(origin, planned.target)
        left = distance_m(location, planned.target)
        self._gps_phase_progress = 1.0 if total <= 0 else _clamp(1.0 - left / total)

    def _reached_target(self, planned: PlannedPhase) -> bool:
        if planned.target is None or self._location_in_phase is None:
            return False
        return distance_m(self._location_in_phase, planned.target) <= ARRIVAL_RADIUS_M

    def _advance(self, at: float) -> None:
        planned = self._phases[self._index]
        if planned.duration > 0:
            self._overruns.append((at - self._phase_started_at) - planned.duration)
        previous = planned.phase
        self._index += 1
        self._phase_started_at = at
        self._location_in_phase = None
        self._gps_phase_progress = None
        self._phase_origin = self._location.coordinate if self._location is not None else None
        self._pending_previous = previous
        new_phase = self.phase
        if new_phase.kind is PhaseKind.ON_TRAIN:
            # Boarded: whatever train was targeted is the one we're on
            self.target_arrival_ts = None
            self._last_status = None
        logger.info(
            "telemetry phase_changed from=%s to=%s",
            previous,
            new_phase,
            extra={"from_phase": str(previous), "to_phase": str(new_phase)},
        )
        if self.degraded:
            logger.warning("telemetry journey_degraded phase=%s reason=no_target_coordinate mode=time_only", new_phase)
        self._listener.on_phase_change(new_phase)

    def _phase_progress(self, planned: PlannedPhase, now: float) -> float:
        if planned.phase.kind is PhaseKind.FINISHED:
            return 1.0
        if planned.phase.is_walking and self._gps_phase_progress is not None:
            return self._gps_phase_progress
        if planned.duration <= 0:
            return 1.0
        return _clamp((now - self._phase_started_at) / planned.duration)

    def _boarding_phase_index(self) -> int | None:
        for i in range(self._index + 1, len(self._phases)):
            if self._phases[i].phase.kind is PhaseKind.ON_TRAIN:
                return i
        return None

    def next_boarding_leg(self) -> int | None:
        """Leg index of the next train the rider still has to board."""
        i = self._boarding_phase_index()
        return self._phases[i].phase.index if i is not None else None

    def seconds_until_boarding(self, leg_index: int, now: float | None = None) -> float | None:
        """Planned seconds until on_train(leg_index) starts; 0 while aboard, None once past it."""
        now = self._clock() if now is None else now
        target = None
        for i, p in enumerate(self._phases):
            if p.phase.kind is PhaseKind.ON_TRAIN and p.phase.index == leg_index:
                target = i
                break
        if target is None or target < self._index:
            return None
        if target == self._index:
            return 0.0
        planned = self._phases[self._index]
        if self._started_at is None:
            remaining = planned.duration
        else:
            remaining = (1.0 - self._phase_progress(planned, now)) * planned.duration
        return remaining + sum(p.duration for p in self._phases[self._index + 1:target])

    def _catch_delta(self, now: float) -> tuple[float, CatchStatus | None]:
        if self.target_arrival_ts is None:
            return 0.0, None
        leg = self.next_boarding_leg()
        if leg is None:
            return 0.0, None
        until_boarding = self.seconds_until_boarding(leg, now) or 0.0
        delta = (self.target_arrival_ts - now) - until_boarding
        return delta, classify_catch_status(delta)

    def tick(self, now: float | None = None) -> JourneyProgressState | None:
        if not self.running:
            return None
        now = self._clock() if now is None else now

        while self.phase.kind is not PhaseKind.FINISHED:
            planned = self._phases[self._index]
            phase_end = self._phase_started_at + planned.duration
            if now >= phase_end:
                self._advance(phase_end)
            elif self._reached_target(planned):
                self._advance(now)
            else:
                break
            if self._stopped:
                return None

        planned = self._phases[self._index]
        phase_progress = self._phase_progress(planned, now)
        completed = sum(p.duration for p in self._phases[: self._index])
        if planned.phase.kind is PhaseKind.FINISHED or self._total <= 0:
            overall = 1.0 if planned.phase.kind is PhaseKind.FINISHED else 0.0
        else:
            overall = _clamp((completed + phase_progress * planned.duration) / self._total)
        delta, status = self._catch_delta(now)
        uncertainty = combined_uncertainty(self._overruns, self._location)

        state = JourneyProgressState(
            phase=planned.phase,
            overall_progress=overall,
            phase_progress=phase_progress,
            delta=delta,
            uncertainty=uncertainty,
            catch_status=status,
            previous_phase=self._pending_previous,
        )
        self._pending_previous = None
        self.state = state
        self._listener.on_progress(overall, phase_progress, status, delta, uncertainty, planned.phase)
        self._emit_feedback(state, now)

        if planned.phase.kind is PhaseKind.FINISHED:
            self.stop()
        return state

    def _emit_feedback(self, state: JourneyProgressState, now: float) -> None:
        status = state.catch_status
        previous = self._last_status
        target = self.target_arrival_ts
        if status is not None and previous is not None and status is not previous:
            if status is CatchStatus.MISSED:
                if self._missed_announced_for != target:
                    self._missed_announced_for = target
                    self._listener.on_feedback(feedback.likely_missed())
            elif status.is_better_than(previous):
                self._listener.on_feedback(feedback.on_time())
            else:
                self._listener.on_feedback(feedback.speed_up())
        self._last_status = status

        leg = self.next_boarding_leg()
        if target is not None and leg is not None and self._arriving_announced_for != target:
            if 0 <= target - now <= feedback.ARRIVING_NOW_WITHIN_SEC:
                self._arriving_announced_for = target
                line = self.plan.line_names[leg] if leg < len(self.plan.line_names) else None
                self._listener.on_feedback(feedback.train_arriving_now(line))

        phase = state.phase
        if (
            phase.kind is PhaseKind.ON_TRAIN
            and phase.index + 1 < len(self.plan.ride_secs)
            and phase.index not in self._transfers_announced
            and state.phase_progress >= feedback.TRANSFER_SOON_AT_PROGRESS
        ):
            self._transfers_announced.add(phase.index)
            names = self.plan.line_names
            next_line = names[phase.index + 1] if phase.index + 1 < len(names) else "next line"
            self._listener.on_feedback(feedback.transfer_soon(next_line))
