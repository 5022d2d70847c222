"""Tests for the adaptive pace estimator and the user speed profile."""
import pytest

from catchtrain.data.geo import Coordinate, Location
from catchtrain.motion.sampler import MotionSampler, PedometerReading
from catchtrain.pacing.estimator import AdaptivePaceEstimator, PaceListener, PacingDirection, adaptive_eta
from catchtrain.pacing.profile import UserSpeedProfile
from helpers import T0, FakeClock, FakeTicker


class RecordingPaceListener(PaceListener):
    def __init__(self):
        self.speeds = []
        self.arrivals = []
        self.ticks = []

    def on_speed_update(self, current_speed, target_speed):
        self.speeds.append((current_speed, target_speed))

    def on_arrival_time_update(self, seconds):
        self.arrivals.append(seconds)

    def on_pacing_tick(self, direction):
        self.ticks.append(direction)


class PedometerStub:
    def is_available(self):
        return True

    def start_updates(self, handler):
        pass

    def stop_updates(self):
        pass


def _estimator(listener=None, clock=None):
    FakeTicker.created.clear()
    return AdaptivePaceEstimator(listener, clock=clock or FakeClock(), ticker_factory=FakeTicker)


@pytest.mark.parametrize(
    "distance,google_eta,speed",
    [(200, 180, 1.4), (200, 30, 1.4), (50, 600, 2.0), (1000, 700, 0.6)],
)
def test_adaptive_eta_bounds(distance, google_eta, speed):
    user_eta = distance / speed
    eta = adaptive_eta(distance, google_eta, speed)
    assert 0.8 * min(google_eta, user_eta) <= eta <= 1.2 * max(google_eta, user_eta)


def test_two_hundred_meters_on_schedule():
    # 200 m to go, 180 s left, walking at 1.4 m/s
    listener = RecordingPaceListener()
    estimator = _estimator(listener)
    estimator.set_target(200, 180)
    update = estimator.update_with_new_location(Location(51.5, -0.14, speed=1.4))

    assert update is not None
    assert update.arrival_seconds == pytest.approx(200 / 1.4, abs=0.5)
    assert listener.arrivals == [pytest.approx(142.9, abs=0.5)]
    assert update.adaptive_eta == pytest.approx(0.3 * 180 + 0.7 * 200 / 1.4, abs=0.5)
    assert abs(1 - update.speed_ratio) < 0.10
    assert not estimator.is_pacing
    assert listener.ticks == []


def test_cue_direction_flips():
    listener = RecordingPaceListener()
    estimator = _estimator(listener)
    estimator.set_target(200, 60)
    estimator.update_with_new_location(Location(51.5, -0.14, speed=1.4))
    assert estimator.pacing_direction is PacingDirection.TOO_SLOW
    slow_cue = FakeTicker.created[-1]
    assert slow_cue.interval == 0.5
    slow_cue.fire()
    assert listener.ticks == [PacingDirection.TOO_SLOW]

    estimator.set_target(200, 300)
    estimator.update_with_new_location(Location(51.5001, -0.14, speed=3.0))
    assert estimator.pacing_direction is PacingDirection.TOO_FAST
    assert slow_cue.stopped
    assert FakeTicker.created[-1].interval == 1.0

    estimator.stop()
    assert not estimator.is_pacing
    assert FakeTicker.created[-1].stopped


def test_small_moves_are_throttled():
    estimator = _estimator()
    estimator.set_target(200, 180)
    assert estimator.update_with_new_location(Location(51.5, -0.14, speed=1.4)) is not None
    # ~5 m north
    assert estimator.update_with_new_location(Location(51.500045, -0.14, speed=1.4)) is None


def test_no_time_left_skips_update():
    listener = RecordingPaceListener()
    estimator = _estimator(listener)
    estimator.set_target(200, 0)
    assert estimator.update_with_new_location(Location(51.5, -0.14, speed=1.4)) is None
    assert listener.speeds == []
    # Speed still feeds the profile
    assert len(estimator.profile) == 1


def test_gps_speed_floor():
    estimator = _estimator()
    estimator.set_target(200, 180)
    update = estimator.update_with_new_location(Location(51.5, -0.14, speed=-1))
    assert update.current_speed == 0.5


def test_distance_recomputed_from_station():
    estimator = _estimator()
    station = Coordinate(51.5018, -0.14)
    estimator.set_target(999, 180, station=station)
    estimator.update_with_new_location(Location(51.5, -0.14, speed=1.4))
    assert 190 < estimator.distance_to_station < 210


def test_walking_stats():
    clock = FakeClock()
    estimator = _estimator(clock=clock)
    assert estimator.stop_walking_tracking() is None
    estimator.set_target(500, 400)
    estimator.start_walking_tracking()
    estimator.update_with_new_location(Location(51.5, -0.14, speed=1.0))
    estimator.update_with_new_location(Location(51.5009, -0.14, speed=2.0))
    clock.advance(100)
    stats = estimator.stop_walking_tracking()
    assert stats.duration == 100
    assert stats.max_speed == 2.0
    assert stats.min_speed == 1.0
    assert stats.average_speed == 1.5
    assert 90 < stats.distance < 110


def test_profile_weather_factor():
    profile = UserSpeedProfile(max_samples=2)
    assert profile.is_empty
    for s in (1.0, 2.0, 3.0, 0.0):
        profile.update_speed(s)
    assert len(profile) == 2
    assert profile.average_speed == 2.5
    profile.update_weather_factor(0.8)
    assert profile.effective_speed == pytest.approx(2.0)
    profile.update_weather_factor(0)
    assert profile.weather_factor == 0.8


def test_stationary_pedometer_falls_back_to_gps_speed():
    sampler = MotionSampler(PedometerStub(), smoothing_window=1)
    sampler.start()
    sampler.handle_reading(PedometerReading(T0, current_pace=1 / 1.6))
    assert sampler.latest_speed == pytest.approx(1.6)
    sampler.handle_reading(PedometerReading(T0 + 1, current_pace=10.0))
    assert sampler.stationary
    assert sampler.latest_speed is None

    FakeTicker.created.clear()
    estimator = AdaptivePaceEstimator(None, motion=sampler, clock=FakeClock(), ticker_factory=FakeTicker)
    estimator.set_target(200, 180)
    estimator.update_with_new_location(Location(51.5, -0.14, speed=0.6))
    assert estimator.current_speed == pytest.approx(0.6)
