"""test_session.py

Tests for the cadence controller, the broadcaster and full sessions.
Sessions are driven by a fake clock and manual ticks; the threaded tests use short intervals.
"""

import threading
import unittest
from unittest import mock

import numpy as np

from lab_telemetry.broadcaster import TelemetryBroadcaster
from lab_telemetry.config import Config
from lab_telemetry.errors import ConfigurationError, SourceUnavailable, TransientFrameError
from lab_telemetry.sampling_controller import AdaptiveSamplingController, CadenceTier
from lab_telemetry.session import TelemetrySession
from lab_telemetry.ticker import Ticker
from lab_telemetry.video.frame_sources import StaticFrameSource


class FakeClock:
    def __init__(self, now=0):
        self.now = now

    def __call__(self):
        return self.now


class FakeAudioSource:
    def __init__(self, bins=None, error=None):
        self.bins = bins
        self.error = error
        self.closed = False

    def read_bins(self):
        if self.error is not None:
            raise self.error
        return self.bins

    def close(self):
        self.closed = True


class UnavailableFrameSource:
    def read_frame(self):
        raise SourceUnavailable("camera unplugged")


class BrokenCloseFrameSource(StaticFrameSource):
    def close(self):
        raise OSError("device already gone")


def _make_solid_frame(rgb, w=320, h=240):
    img = np.zeros((h, w, 3), dtype=np.uint8)
    img[:, :, :] = np.array(rgb, dtype=np.uint8)
    return img


def _ticker_threads():
    return [t for t in threading.enumerate() if t.name == 'telemetry-ticker' and t.is_alive()]


class TestAdaptiveSamplingController(unittest.TestCase):
    def setUp(self):
        self.ctrl = AdaptiveSamplingController()
        self.ctrl.reset(0)

    def test_initial_state_is_fast(self):
        self.assertEqual(self.ctrl.tier, CadenceTier.FAST)
        self.assertEqual(self.ctrl.interval_ms, 200)

    def test_low_power_overrides_activity(self):
        self.ctrl.low_power = True
        for now, intensity in ((200, 90), (400, 0), (20000, 100), (40000, None)):
            self.assertEqual(self.ctrl.update(now, intensity), 1000)
            self.assertEqual(self.ctrl.tier, CadenceTier.LOW_POWER)

    def test_idle_after_threshold_without_activity(self):
        self.assertEqual(self.ctrl.update(10000, 0), 200)
        self.assertEqual(self.ctrl.update(10001, 0), 500)
        self.assertEqual(self.ctrl.tier, CadenceTier.IDLE)

    def test_activity_returns_to_fast(self):
        self.ctrl.update(12000, 0)
        self.assertEqual(self.ctrl.tier, CadenceTier.IDLE)
        self.assertEqual(self.ctrl.update(12200, 6), 200)
        self.assertEqual(self.ctrl.last_activity_ms, 12200)
        # Grace window after the last activity
        self.assertEqual(self.ctrl.update(20000, 0), 200)
        self.assertEqual(self.ctrl.update(22201, 0), 500)

    def test_threshold_intensity_is_not_activity(self):
        self.ctrl.update(5000, 5)
        self.assertEqual(self.ctrl.last_activity_ms, 0)

    def test_low_power_off_resumes_adaptive_cadence(self):
        self.ctrl.low_power = True
        self.ctrl.update(3000, 50)
        self.ctrl.low_power = False
        self.assertEqual(self.ctrl.update(12000, 0), 200)
        self.assertEqual(self.ctrl.update(13001, 0), 500)

    def test_low_power_flag_applies_before_next_update(self):
        self.ctrl.low_power = True
        self.assertEqual(self.ctrl.tier, CadenceTier.LOW_POWER)
        self.assertEqual(self.ctrl.interval_ms, 1000)
        self.ctrl.low_power = False
        self.assertEqual(self.ctrl.tier, CadenceTier.FAST)
        self.assertEqual(AdaptiveSamplingController(low_power=True).interval_ms, 1000)

    def test_invalid_intervals_rejected(self):
        with self.assertRaises(ConfigurationError):
            AdaptiveSamplingController(fast_interval_ms=-5)
        with self.assertRaises(ConfigurationError):
            AdaptiveSamplingController(activity_threshold=150)


class TestTelemetryBroadcaster(unittest.TestCase):
    def setUp(self):
        self.bus = TelemetryBroadcaster()

    def test_every_subscriber_gets_every_point_in_order(self):
        got_a, got_b = [], []
        self.bus.subscribe(got_a.append)
        self.bus.subscribe(got_b.append)
        for i in range(5):
            self.bus.publish(i)
        self.assertEqual(got_a, [0, 1, 2, 3, 4])
        self.assertEqual(got_b, [0, 1, 2, 3, 4])

    def test_self_unsubscribe_during_publish(self):
        got_self, got_other = [], []
        handle = {}

        def once(point):
            got_self.append(point)
            self.bus.unsubscribe(handle['sub'])

        handle['sub'] = self.bus.subscribe(once)
        self.bus.subscribe(got_other.append)
        self.bus.publish('a')
        self.bus.publish('b')
        self.assertEqual(got_self, ['a'])
        self.assertEqual(got_other, ['a', 'b'])

    def test_unsubscribing_another_prevents_current_and_future_delivery(self):
        got_victim, got_last = [], []
        handles = {}

        def killer(point):
            self.bus.unsubscribe(handles['victim'])

        self.bus.subscribe(killer)
        handles['victim'] = self.bus.subscribe(got_victim.append)
        self.bus.subscribe(got_last.append)
        self.bus.publish(1)
        self.bus.publish(2)
        self.assertEqual(got_victim, [])
        self.assertEqual(got_last, [1, 2])

    def test_subscribe_during_publish_starts_with_next_point(self):
        late = []

        def adder(point):
            if point == 1:
                self.bus.subscribe(late.append)

        self.bus.subscribe(adder)
        self.bus.publish(1)
        self.bus.publish(2)
        self.assertEqual(late, [2])

    def test_failing_subscriber_does_not_block_others(self):
        got = []

        def broken(point):
            raise RuntimeError("chart widget exploded")

        self.bus.subscribe(broken)
        self.bus.subscribe(got.append)
        self.bus.publish(7)
        self.assertEqual(got, [7])

    def test_unsubscribe_rejects_foreign_handles(self):
        other = TelemetryBroadcaster()
        foreign = other.subscribe(lambda p: None)
        self.assertFalse(self.bus.unsubscribe(None))
        self.assertFalse(self.bus.unsubscribe(object()))
        self.assertFalse(self.bus.unsubscribe(foreign))
        self.assertTrue(foreign.active)
        self.assertEqual(len(other), 1)

    def test_publish_stops_once_no_longer_current(self):
        got = []
        state = {'current': True}

        def first(point):
            got.append(('first', point))
            state['current'] = False

        self.bus.subscribe(first)
        self.bus.subscribe(lambda p: got.append(('second', p)))
        self.bus.publish(1, is_current=lambda: state['current'])
        self.assertEqual(got, [('first', 1)])

    def test_unsubscribe_unknown_and_clear(self):
        sub = self.bus.subscribe(lambda p: None)
        self.assertTrue(self.bus.unsubscribe(sub))
        self.assertFalse(self.bus.unsubscribe(sub))
        self.bus.subscribe(lambda p: None)
        self.bus.clear()
        self.assertEqual(len(self.bus), 0)


class TestTelemetrySessionManual(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock(0)
        self.session = TelemetrySession(Config(), clock=self.clock)
        self.points = []
        self.session.subscribe(self.points.append)

    def tearDown(self):
        self.session.close()

    def test_static_scene_goes_idle_after_ten_seconds(self):
        source = StaticFrameSource([_make_solid_frame([30, 120, 60])])
        self.session.start(source, run_loop=False)
        cadence = []
        while self.clock.now <= 12000:
            point = self.session.tick()
            self.assertIsNotNone(point)
            cadence.append((self.clock.now, self.session.tier))
            self.clock.now += self.session.interval_ms
        self.assertGreaterEqual(len(self.points), 10)
        self.assertTrue(all(p.intensity == 0 for p in self.points))
        for now, tier in cadence:
            expected = CadenceTier.FAST if now <= 10000 else CadenceTier.IDLE
            self.assertEqual(tier, expected, msg=f"t={now}")
        self.assertEqual(cadence[-1][1], CadenceTier.IDLE)
        timestamps = [p.timestamp for p in self.points]
        self.assertEqual(timestamps, sorted(timestamps))
        self.assertEqual(self.points[0].time_str, "00:00")

    def test_motion_between_frames_is_measured(self):
        source = StaticFrameSource([_make_solid_frame([0, 0, 0]), _make_solid_frame([200, 200, 200])])
        self.session.start(source, FakeAudioSource(bins=[100] * 128), run_loop=False)
        first = self.session.tick()
        self.clock.now += 200
        second = self.session.tick()
        self.assertEqual(first.intensity, 0)
        self.assertEqual(second.intensity, 100)
        self.assertEqual(second.audio_level, 100)
        self.assertEqual(second.timestamp, 200)
        self.assertEqual((second.color_r, second.color_g, second.color_b), (200, 200, 200))

    def test_transient_frame_skips_emission(self):
        frame = _make_solid_frame([50, 50, 50])
        source = StaticFrameSource([frame, None, frame])
        self.session.start(source, run_loop=False)
        results = [self.session.tick() for _ in range(3)]
        self.assertIsNotNone(results[0])
        self.assertIsNone(results[1])
        self.assertIsNotNone(results[2])
        self.assertEqual(len(self.points), 2)

    def test_unavailable_video_degrades_to_zero(self):
        self.session.start(UnavailableFrameSource(), FakeAudioSource(bins=[40, 60]), run_loop=False)
        point = self.session.tick()
        self.assertIsNotNone(point)
        self.assertEqual(point.intensity, 0)
        self.assertEqual(point.color_r, 0)
        self.assertEqual(point.audio_level, 50)

    def test_audio_failures_degrade_to_zero(self):
        frame = _make_solid_frame([10, 10, 10])
        for error in (TransientFrameError("not ready"), SourceUnavailable("mic gone")):
            self.session.start(StaticFrameSource([frame]), FakeAudioSource(error=error), run_loop=False)
            point = self.session.tick()
            self.assertEqual(point.audio_level, 0)

    def test_low_power_can_change_mid_session(self):
        self.session.start(StaticFrameSource([_make_solid_frame([5, 5, 5])]), run_loop=False)
        self.session.tick()
        self.assertEqual(self.session.interval_ms, 200)
        self.session.low_power = True
        self.clock.now += 200
        self.session.tick()
        self.assertEqual(self.session.tier, CadenceTier.LOW_POWER)
        self.assertEqual(self.session.interval_ms, 1000)
        self.session.low_power = False
        self.clock.now += 1000
        self.session.tick()
        self.assertEqual(self.session.interval_ms, 200)

    def test_stop_is_idempotent_and_releases_sources(self):
        fresh = TelemetrySession()
        fresh.stop()
        fresh.stop()
        audio = FakeAudioSource(bins=[0])
        source = StaticFrameSource([_make_solid_frame([1, 2, 3])])
        self.session.start(source, audio, run_loop=False)
        self.session.stop()
        self.session.stop()
        self.assertTrue(source.closed)
        self.assertTrue(audio.closed)
        self.assertIsNone(self.session.tick())

    def test_failing_close_still_releases_other_sources(self):
        audio = FakeAudioSource(bins=[0])
        source = BrokenCloseFrameSource([_make_solid_frame([1, 2, 3])])
        self.session.start(source, audio, run_loop=False)
        with mock.patch('builtins.print') as printed:
            self.session.stop()
        self.assertTrue(audio.closed)
        self.assertFalse(self.session.active)
        self.assertTrue(any('Closing source failed' in str(c) for c in printed.call_args_list))
        # The session can be reused afterwards.
        self.session.start_virtual(run_loop=False)
        self.assertIsNotNone(self.session.tick())

    def test_restart_during_delivery_drops_stale_point(self):
        late = []
        restarts = []

        def restarter(point):
            if not restarts:
                restarts.append(point)
                self.session.start(StaticFrameSource([_make_solid_frame([9, 9, 9])]), run_loop=False)

        self.session.close()
        self.session.subscribe(restarter)
        self.session.subscribe(late.append)
        self.session.start(StaticFrameSource([_make_solid_frame([1, 1, 1])]), run_loop=False)
        self.session.tick()
        self.assertEqual(late, [])
        self.clock.now += 200
        point = self.session.tick()
        self.assertEqual(late, [point])
        self.assertEqual(point.color_r, 9)

    def test_low_power_config_reported_at_start(self):
        session = TelemetrySession(Config(low_power=True), clock=self.clock)
        session.start(StaticFrameSource([_make_solid_frame([5, 5, 5])]), run_loop=False)
        self.assertEqual(session.tier, CadenceTier.LOW_POWER)
        self.assertEqual(session.interval_ms, 1000)
        session.close()

    def test_restart_resets_analyzer_state(self):
        self.session.start(StaticFrameSource([_make_solid_frame([0, 0, 0])]), run_loop=False)
        self.session.tick()
        self.session.start(StaticFrameSource([_make_solid_frame([255, 255, 255])]), run_loop=False)
        point = self.session.tick()
        self.assertEqual(point.intensity, 0)

    def test_virtual_ticks_follow_the_generator(self):
        self.clock.now = 1000
        self.session.start_virtual(run_loop=False)
        self.clock.now = 16000
        point = self.session.tick()
        self.assertEqual(point, self.session.generator.generate(15000))
        self.assertEqual(point.intensity, 100)
        self.assertEqual(self.session.interval_ms, 500)

    def test_unsubscribed_session_listener_stops_receiving(self):
        got = []
        sub = self.session.subscribe(got.append)
        self.session.start_virtual(run_loop=False)
        self.session.tick()
        self.session.unsubscribe(sub)
        self.session.tick()
        self.assertEqual(len(got), 1)
        self.assertEqual(len(self.points), 2)

    def test_bad_config_rejected_at_setup(self):
        cfg = Config()
        cfg.idle_interval_ms = -500
        with self.assertRaises(ConfigurationError):
            TelemetrySession(cfg)


class TestTelemetrySessionThreaded(unittest.TestCase):
    def setUp(self):
        cfg = Config(fast_interval_ms=10, idle_interval_ms=20, low_power_interval_ms=40, virtual_interval_ms=10)
        self.session = TelemetrySession(cfg)

    def tearDown(self):
        self.session.close()

    def test_virtual_loop_emits_points(self):
        got = []
        done = threading.Event()

        def collect(point):
            got.append(point)
            if len(got) >= 3:
                done.set()

        self.session.subscribe(collect)
        self.session.start_virtual()
        self.assertTrue(done.wait(5.0))
        self.session.stop()
        self.assertFalse(self.session.running)
        timestamps = [p.timestamp for p in got]
        self.assertEqual(timestamps, sorted(timestamps))

    def test_restart_leaves_a_single_loop(self):
        frame = _make_solid_frame([20, 20, 20])
        self.session.start(StaticFrameSource([frame]))
        self.session.start(StaticFrameSource([frame]))
        self.assertEqual(len(_ticker_threads()), 1)
        self.session.stop()
        self.assertEqual(len(_ticker_threads()), 0)

    def test_stop_from_inside_a_subscriber(self):
        stopped = threading.Event()

        def stop_now(point):
            self.session.stop()
            stopped.set()

        self.session.subscribe(stop_now)
        self.session.start_virtual()
        self.assertTrue(stopped.wait(5.0))
        self.session.stop()
        self.assertFalse(self.session.running)


class TestTicker(unittest.TestCase):
    def test_errors_do_not_end_the_loop(self):
        calls = []
        done = threading.Event()

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first tick fails")
            done.set()
            return 5

        ticker = Ticker(flaky, fallback_interval_ms=5)
        with mock.patch('builtins.print'):
            ticker.start()
            self.assertTrue(done.wait(5.0))
        ticker.stop()
        ticker.stop()
        self.assertFalse(ticker.running)
        self.assertGreaterEqual(len(calls), 2)


if __name__ == '__main__':
    unittest.main()
