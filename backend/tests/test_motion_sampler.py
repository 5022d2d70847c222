"""Tests for the motion sampler: smoothing, stationary stretches, sensor fallback."""
from catchtrain.errors import SensorUnavailable
from catchtrain.motion.sampler import MotionListener, MotionSampler, PedometerReading, instantaneous_speed


class FakeSensor:
    def __init__(self, available=True, distance=None):
        self.available = available
        self.handler = None
        self.stopped = False
        self._distance = distance

    def is_available(self):
        return self.available

    def start_updates(self, handler):
        self.handler = handler

    def stop_updates(self):
        self.stopped = True


class DistanceSensor(FakeSensor):
    def query_distance(self, start, end):
        return self._distance


class RefusingSensor(FakeSensor):
    def start_updates(self, handler):
        raise SensorUnavailable("motion permission denied")


class RecordingListener(MotionListener):
    def __init__(self):
        self.samples = []
        self.events = []

    def on_speed_sample(self, speed):
        self.samples.append(speed)

    def on_stationary_enter(self):
        self.events.append("enter")

    def on_stationary_exit(self):
        self.events.append("exit")


def test_instantaneous_speed_prefers_pace():
    assert instantaneous_speed(PedometerReading(0, current_pace=0.5, cadence=2.0)) == 2.0
    assert instantaneous_speed(PedometerReading(0, cadence=2.0), stride_length=0.7) == 1.4
    assert instantaneous_speed(PedometerReading(0)) is None


def test_smoothed_samples_emitted():
    sensor = FakeSensor()
    listener = RecordingListener()
    sampler = MotionSampler(sensor, listener, smoothing_window=2)
    sampler.start()
    sensor.handler(PedometerReading(1.0, current_pace=1 / 1.2))
    sensor.handler(PedometerReading(2.0, current_pace=1 / 1.6))
    assert len(listener.samples) == 2
    assert abs(listener.samples[1] - 1.4) < 1e-9
    assert abs(sampler.latest_speed - 1.4) < 1e-9


def test_slow_readings_reported_once_as_stationary():
    sensor = FakeSensor()
    listener = RecordingListener()
    sampler = MotionSampler(sensor, listener, smoothing_window=1)
    sampler.start()
    for ts in range(3):
        sensor.handler(PedometerReading(float(ts), cadence=0.1))
    assert listener.samples == []
    assert listener.events == ["enter"]
    assert sampler.stationary
    sensor.handler(PedometerReading(4.0, cadence=2.0))
    assert listener.events == ["enter", "exit"]
    assert len(listener.samples) == 1


def test_no_sensor_means_no_samples():
    listener = RecordingListener()
    sampler = MotionSampler(None, listener)
    sampler.start()
    assert not sampler.running
    sampler.handle_reading(PedometerReading(0, current_pace=0.5))
    assert listener.samples == []


def test_unavailable_sensor_degrades_quietly():
    sampler = MotionSampler(FakeSensor(available=False))
    sampler.start()
    assert not sampler.running
    refusing = MotionSampler(RefusingSensor())
    refusing.start()
    assert not refusing.running


def test_stop_is_idempotent():
    sensor = FakeSensor()
    sampler = MotionSampler(sensor)
    sampler.start()
    sampler.stop()
    sampler.stop()
    assert sensor.stopped
    assert not sampler.running


def test_average_speed_from_sensor_distance():
    sampler = MotionSampler(DistanceSensor(distance=140.0))
    sampler.start()
    assert sampler.average_speed(0.0, 100.0) == 1.4
    assert sampler.average_speed(100.0, 100.0) is None


def test_average_speed_from_recorded_samples():
    sensor = FakeSensor()
    sampler = MotionSampler(sensor, smoothing_window=1)
    sampler.start()
    sensor.handler(PedometerReading(10.0, current_pace=1.0))
    sensor.handler(PedometerReading(20.0, current_pace=0.5))
    assert sampler.average_speed(0.0, 30.0) == 1.5
    assert sampler.average_speed(40.0, 50.0) is None
