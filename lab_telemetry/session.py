"""
session.py
One experiment run: owns the analyzer snapshot, the sampling state and the
subscriber list, and drives the capture loop on its own ticker thread.

Per tick: frame -> MotionAnalyzer, audio bins -> AudioLevelAnalyzer, combine into
a DataPoint, publish, then let the controller pick the next interval.
"""

import threading
import time

from lab_telemetry.audio.audio_level import AudioLevelAnalyzer
from lab_telemetry.broadcaster import TelemetryBroadcaster
from lab_telemetry.config import Config
from lab_telemetry.data_point import DataPoint
from lab_telemetry.errors import SourceUnavailable, TransientFrameError
from lab_telemetry.sampling_controller import AdaptiveSamplingController
from lab_telemetry.synthetic import SyntheticGenerator
from lab_telemetry.ticker import Ticker
from lab_telemetry.video.motion_analyzer import MotionAnalyzer, RawFrameMetrics


def monotonic_ms():
    return int(time.monotonic() * 1000)


class TelemetrySession:
    def __init__(self, config=None, clock=None):
        self.config = (config if config is not None else Config()).validate()
        self.clock = clock if clock is not None else monotonic_ms
        self.broadcaster = TelemetryBroadcaster()
        self.analyzer = MotionAnalyzer.from_config(self.config)
        self.audio_analyzer = AudioLevelAnalyzer()
        self.controller = AdaptiveSamplingController.from_config(self.config)
        self.generator = SyntheticGenerator.from_config(self.config)

        self.frame_source = None
        self.audio_source = None
        self.virtual = False
        self.session_start_ms = 0
        self._ticker = None
        self._generation = 0
        # start/stop are serialised by _lifecycle_lock; the ticker thread only takes _state_lock.
        self._lifecycle_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._last_warning = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # Collaborator-facing settings

    @property
    def low_power(self):
        return self.controller.low_power

    @low_power.setter
    def low_power(self, enabled):
        self.controller.low_power = bool(enabled)

    @property
    def interval_ms(self):
        if self.virtual:
            return self.config.virtual_interval_ms
        return self.controller.interval_ms

    @property
    def tier(self):
        return self.controller.tier

    @property
    def running(self):
        ticker = self._ticker
        return ticker is not None and ticker.running

    @property
    def active(self):
        return self.virtual or self.frame_source is not None

    def subscribe(self, callback):
        return self.broadcaster.subscribe(callback)

    def unsubscribe(self, subscription):
        return self.broadcaster.unsubscribe(subscription)

    # Lifecycle

    def start(self, frame_source, audio_source=None, run_loop=True):
        """
        Start a capture session. Any previously running loop is fully cancelled first.
        Args:
            frame_source: Object with read_frame() (and optionally close()).
            audio_source: Optional object with read_bins() (and optionally close()).
            run_loop: False prepares the session for manual tick() calls only.
        """
        with self._lifecycle_lock:
            self._stop_locked()
            with self._state_lock:
                self.frame_source = frame_source
                self.audio_source = audio_source
                self.virtual = False
                generation = self._begin()
            if run_loop:
                self._start_ticker(generation)
        print(f"[SESSION] Capture session started (interval={self.interval_ms}ms, low_power={self.low_power}).")

    def start_virtual(self, run_loop=True):
        """Start a virtual-mode session driven by the synthetic generator."""
        with self._lifecycle_lock:
            self._stop_locked()
            with self._state_lock:
                self.virtual = True
                generation = self._begin()
            if run_loop:
                self._start_ticker(generation)
        print(f"[SESSION] Virtual session started (interval={self.config.virtual_interval_ms}ms).")

    def _begin(self):
        self._generation += 1
        self.session_start_ms = self.clock()
        self.analyzer.reset()
        self.controller.reset(self.session_start_ms)
        self._last_warning = {}
        return self._generation

    def _start_ticker(self, generation):
        def run_tick():
            self._tick(generation)
            return self.interval_ms

        self._ticker = Ticker(run_tick, fallback_interval_ms=self.config.fast_interval_ms)
        self._ticker.start()

    def stop(self):
        """
        Idempotent. Cancels the loop and releases source handles. Safe if never started.
        A tick still delivering after the ticker join times out reaches no further subscribers.
        """
        with self._lifecycle_lock:
            self._stop_locked()

    def _stop_locked(self):
        ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.stop()
        with self._state_lock:
            # Any tick still in flight from the old loop becomes a no-op.
            self._generation += 1
            was_active = ticker is not None or self.active
            sources = (self.frame_source, self.audio_source)
            self.frame_source = None
            self.audio_source = None
            self.virtual = False
            self.analyzer.reset()
        for source in sources:
            close = getattr(source, 'close', None)
            if close is None:
                continue
            try:
                close()
            except Exception as e:
                print(f"[SESSION] Closing source failed: {e!r}")
        if was_active:
            print("[SESSION] Session stopped.")

    def close(self):
        """Stop and drop every subscription."""
        self.stop()
        self.broadcaster.clear()

    # Ticks

    def tick(self):
        """
        Run one sampling cycle.
        Returns:
            DataPoint or None when the tick was skipped (or no session is active).
        """
        return self._tick(self._generation)

    def _tick(self, generation):
        with self._state_lock:
            if generation != self._generation or not self.active:
                return None
            now = self.clock()
            virtual = self.virtual
            if virtual:
                point = self.generator.generate(now - self.session_start_ms)
            else:
                point = self._sample(now)
                if point is None:
                    self.controller.update(now, None)
                    return None
        # A stop or restart during delivery cuts off the remaining subscribers.
        self.broadcaster.publish(point, is_current=lambda: generation == self._generation)
        if not virtual:
            with self._state_lock:
                if generation == self._generation:
                    self.controller.update(now, point.intensity)
        return point

    def _sample(self, now):
        metrics = self._read_video()
        if metrics.skipped:
            return None
        return DataPoint.at(
            now - self.session_start_ms,
            intensity=metrics.intensity,
            foam_height=metrics.foam_height,
            bubble_count=metrics.bubble_count,
            color_r=metrics.color_r,
            color_g=metrics.color_g,
            color_b=metrics.color_b,
            audio_level=self.audio_analyzer.analyze_audio(self._read_audio()),
        )

    def _read_video(self):
        try:
            frame = self.frame_source.read_frame()
        except TransientFrameError as e:
            self._warn('video', f"[VIDEO] Frame not ready, skipping tick: {e}")
            return RawFrameMetrics.skipped_tick()
        except SourceUnavailable as e:
            self._warn('video', f"[VIDEO] Source unavailable, reporting zero motion: {e}")
            return RawFrameMetrics.unavailable()
        metrics = self.analyzer.analyze(frame)
        if metrics.skipped:
            self._warn('video', "[VIDEO] Unreadable frame, skipping tick.")
        return metrics

    def _read_audio(self):
        if self.audio_source is None:
            return None
        try:
            return self.audio_source.read_bins()
        except (TransientFrameError, SourceUnavailable) as e:
            self._warn('audio', f"[AUDIO] No audio this tick: {e}")
            return None

    def _warn(self, channel, message):
        # One line per channel per second.
        now = time.time()
        if now - self._last_warning.get(channel, 0.0) > 1.0:
            print(message)
            self._last_warning[channel] = now
