"""
ticker.py
Self-rescheduling loop on its own thread. The callback runs one tick and returns
how long to wait (ms) before the next one.
"""

import threading
import time


class Ticker:
    def __init__(self, callback, name='telemetry-ticker', fallback_interval_ms=200):
        self.callback = callback
        self.name = name
        self.fallback_interval_ms = fallback_interval_ms
        self._stop_event = threading.Event()
        self._thread = None
        self._last_error_print = 0.0

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def start(self):
        if self.running:
            return
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(self._stop_event,), name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout=2.0):
        """Idempotent. Safe to call from inside the callback."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def _run(self, stop_event):
        delay_ms = self.fallback_interval_ms
        while not stop_event.is_set():
            try:
                next_ms = self.callback()
                if next_ms is not None:
                    delay_ms = next_ms
            except Exception as e:
                # Per-tick failures never end the loop.
                now = time.time()
                if now - self._last_error_print > 1.0:
                    print(f"[SESSION] Tick failed: {e!r}")
                    self._last_error_print = now
            if stop_event.wait(max(delay_ms, 1) / 1000.0):
                break
