r"""Debug tool: probe the microphone adapter.

Run with the project installed:
    python tools/probe_audio_bins.py --device 2

It prints the audio level and the loudest bin per read so you can check that
samples are arriving and the dB range suits the room.
"""

import argparse
import time

import numpy as np

from lab_telemetry.audio.audio_level import AudioLevelAnalyzer
from lab_telemetry.audio.microphone import MicrophoneSource
from lab_telemetry.config import Config
from lab_telemetry.errors import SourceUnavailable, TransientFrameError


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument('--device', type=int, default=None)
    ap.add_argument('--reads', type=int, default=20)
    args = ap.parse_args()

    import sounddevice as sd

    print("Input devices:")
    for idx, dev in enumerate(sd.query_devices()):
        if dev.get('max_input_channels', 0) > 0:
            print(f"  [{idx}] {dev['name']} (in:{dev['max_input_channels']})")

    mic = MicrophoneSource.from_config(Config(), device=args.device)
    analyzer = AudioLevelAnalyzer()
    print("Reading... (make some noise while this runs)")
    try:
        for i in range(args.reads):
            time.sleep(0.2)
            try:
                bins = mic.read_bins()
            except (TransientFrameError, SourceUnavailable) as e:
                print(f"{i:02d} no audio: {e}")
                continue
            peak_bin = int(np.argmax(bins))
            peak_hz = peak_bin * mic.sample_rate / mic.fft_size
            print(f"{i:02d} level={analyzer.analyze_audio(bins):3d} peak_bin={peak_bin} (~{peak_hz:.0f} Hz) max={int(bins.max())}")
    finally:
        mic.close()


if __name__ == "__main__":
    main()
