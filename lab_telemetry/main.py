"""
main.py
Command line entry point: runs one telemetry session and prints every sample.

Usage:
  lab-telemetry --source virtual --seconds 30
  lab-telemetry --source camera --device 0 --audio --low-power
"""

import argparse
import sys
import threading
import time

from lab_telemetry.config import Config
from lab_telemetry.data_point import summarize
from lab_telemetry.downsample import downsample
from lab_telemetry.session import TelemetrySession


def build_sources(args, config):
    from lab_telemetry.video.frame_sources import CameraFrameSource, ScreenFrameSource

    if args.source == 'camera':
        frame_source = CameraFrameSource(args.device)
    else:
        frame_source = ScreenFrameSource(args.device if args.device else 1)
    audio_source = None
    if args.audio:
        from lab_telemetry.audio.microphone import MicrophoneSource

        audio_source = MicrophoneSource.from_config(config, device=args.audio_device)
    return frame_source, audio_source


def format_point(point):
    return (
        f"{point.time_str} intensity={point.intensity:3d} foam={point.foam_height:4.1f}cm "
        f"bubbles={point.bubble_count:4d} rgb=({point.color_r},{point.color_g},{point.color_b}) "
        f"audio={point.audio_level:3d}"
    )


def main(argv=None):
    ap = argparse.ArgumentParser(description="Stream experiment telemetry from a camera, the screen or the virtual lab.")
    ap.add_argument('--source', choices=('camera', 'screen', 'virtual'), default='virtual')
    ap.add_argument('--device', type=int, default=0, help="Camera index, or monitor index for --source screen.")
    ap.add_argument('--audio', action='store_true', help="Also measure the microphone level.")
    ap.add_argument('--audio-device', type=int, default=None)
    ap.add_argument('--low-power', action='store_true')
    ap.add_argument('--seconds', type=float, default=30.0)
    ap.add_argument('--budget', type=int, default=None, help="Chart points in the final summary.")
    args = ap.parse_args(argv)

    config = Config(low_power=args.low_power)
    if args.budget is not None:
        config.display_budget = args.budget
    session = TelemetrySession(config)

    history = []
    history_lock = threading.Lock()

    def record(point):
        with history_lock:
            history.append(point)
        print(format_point(point))

    session.subscribe(record)
    if args.source == 'virtual':
        session.start_virtual()
    else:
        frame_source, audio_source = build_sources(args, config)
        session.start(frame_source, audio_source)

    try:
        time.sleep(max(args.seconds, 0.0))
    except KeyboardInterrupt:
        print("Exiting...")
    finally:
        session.close()

    with history_lock:
        recorded = list(history)
    summary = summarize(recorded)
    print(
        f"Samples: {summary.sample_count} | Peak intensity: {summary.peak_intensity} | "
        f"Duration: {summary.duration_ms / 1000.0:.1f}s | Mean intensity: {summary.mean_intensity:.1f}"
    )
    chart = downsample([p.intensity for p in recorded], config.display_budget)
    print(f"Intensity ({len(chart)} pts): {list(chart)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
