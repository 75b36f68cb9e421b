"""soak_test_synthetic_session.py

Long-run synthetic stress test for a full threaded telemetry session.
- Generates deterministic synthetic frames (no real camera)
- Simulates microphone bins (no real audio device)
- Validates every emitted DataPoint and the cadence tier chosen for it

Usage:
  python tools/soak_test_synthetic_session.py --seconds 120
  python tools/soak_test_synthetic_session.py --seconds 60 --low-power --json-out logs/soak.json
"""

from __future__ import annotations

import argparse
import json
import threading
import time
from pathlib import Path

import numpy as np

from lab_telemetry.config import Config
from lab_telemetry.errors import TransientFrameError
from lab_telemetry.sampling_controller import CadenceTier
from lab_telemetry.session import TelemetrySession


def make_frame_pattern(t: float, w: int = 320, h: int = 240) -> np.ndarray:
    """Cycle through static, bubbling and noisy scenes."""
    phase = int(t) % 30

    if phase < 12:
        # Static bench: should settle into the idle cadence
        img = np.zeros((h, w, 3), dtype=np.uint8)
        img[:, :, :] = np.array([40, 80, 120], dtype=np.uint8)
        return img

    if phase < 20:
        # Foam rising from the bottom with a flickering surface
        img = np.zeros((h, w, 3), dtype=np.uint8)
        img[:, :, :] = np.array([40, 80, 120], dtype=np.uint8)
        top = int(h * (1.0 - 0.08 * (phase - 11)))
        flicker = int(t * 10) % 2
        img[top:, :, :] = np.array([230, 230, 230] if flicker else [120, 160, 200], dtype=np.uint8)
        return img

    # Random-but-deterministic noise block
    rng = np.random.default_rng(int(t * 1000) & 0xFFFF)
    return rng.integers(0, 256, size=(h, w, 3), dtype=np.uint8)


class SyntheticCamera:
    def __init__(self, drop_every=0):
        self.started = time.time()
        self.reads = 0
        self.drop_every = drop_every

    def read_frame(self):
        self.reads += 1
        if self.drop_every and self.reads % self.drop_every == 0:
            raise TransientFrameError("synthetic dropped frame")
        return make_frame_pattern(time.time() - self.started)


class SyntheticMicrophone:
    def __init__(self):
        self.started = time.time()

    def read_bins(self):
        t = time.time() - self.started
        level = 120.0 * abs(np.sin(2 * np.pi * t / 2.5))
        return np.full(128, level, dtype=np.float32)


def validate_point(p) -> None:
    if not 0 <= p.intensity <= 100:
        raise AssertionError(f"intensity out of range: {p}")
    for value in (p.color_r, p.color_g, p.color_b, p.audio_level):
        if not 0 <= value <= 255:
            raise AssertionError(f"channel out of range: {p}")
    if p.foam_height < 0 or p.bubble_count < 0:
        raise AssertionError(f"negative measurement: {p}")


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument('--seconds', type=float, default=120.0)
    ap.add_argument('--low-power', action='store_true')
    ap.add_argument('--drop-every', type=int, default=7, help="Drop every Nth frame (0 disables).")
    ap.add_argument('--json-out', type=str, default=None)
    args = ap.parse_args()

    session = TelemetrySession(Config(low_power=args.low_power))

    lock = threading.Lock()
    stats = {'points': 0, 'peak_intensity': 0, 'tiers': {tier.value: 0 for tier in CadenceTier}}
    last_timestamp = [-1]
    failures = []

    def check(point):
        try:
            validate_point(point)
            if point.timestamp < last_timestamp[0]:
                raise AssertionError(f"timestamp went backwards: {point.timestamp} < {last_timestamp[0]}")
            if args.low_power and session.tier not in (CadenceTier.LOW_POWER, CadenceTier.FAST):
                raise AssertionError(f"low power session used {session.tier}")
        except AssertionError as e:
            failures.append(str(e))
        last_timestamp[0] = point.timestamp
        with lock:
            stats['points'] += 1
            stats['peak_intensity'] = max(stats['peak_intensity'], point.intensity)

    session.subscribe(check)
    session.start(SyntheticCamera(drop_every=args.drop_every), SyntheticMicrophone())

    end = time.time() + args.seconds
    last_print = time.time()
    while time.time() < end:
        time.sleep(0.05)
        with lock:
            stats['tiers'][session.tier.value] += 1
        if time.time() - last_print > 5.0:
            print(f"points={stats['points']} tier={session.tier.value} interval={session.interval_ms}ms "
                  f"peak={stats['peak_intensity']} failures={len(failures)}")
            last_print = time.time()

    session.close()

    stats['failures'] = failures[:20]
    print(f"DONE. seconds={args.seconds} points={stats['points']} failures={len(failures)}")
    if args.json_out:
        out = Path(args.json_out)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(stats, indent=2), encoding="utf-8")
        print(f"Wrote summary: {out}")
    return 1 if failures else 0


if __name__ == '__main__':
    raise SystemExit(main())
