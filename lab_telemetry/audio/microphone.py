"""microphone.py

Microphone adapter producing byte frequency bins for the audio level analyzer.

Key behaviors:
- Non-fatal init: if no input device can be opened, the adapter stays in an
  unavailable state and the session reports an audio level of 0.
- Bins follow the browser analyser-node recipe (Blackman window, FFT magnitude,
  temporal smoothing, dB range mapped onto 0-255), so levels match what the
  web lab showed for the same microphone.
"""

import time

import numpy as np
import scipy.fftpack
import sounddevice as sd

from lab_telemetry.errors import SourceUnavailable, TransientFrameError


class MicrophoneSource:
    def __init__(self, sample_rate=44100, fft_size=256, smoothing=0.8,
                 min_db=-100.0, max_db=-30.0, device=None, stale_after_s=0.5):
        self.sample_rate = float(sample_rate)
        self.fft_size = int(fft_size)
        self.smoothing = float(smoothing)
        self.min_db = float(min_db)
        self.max_db = float(max_db)
        self.device = device
        self.stale_after_s = float(stale_after_s)

        self.stream = None
        self._window = np.blackman(self.fft_size).astype(np.float32)
        self._ring = np.zeros(self.fft_size, dtype=np.float32)
        self._smoothed = np.zeros(self.fft_size // 2, dtype=np.float64)
        self._latest_audio_time = 0.0
        self._have_audio = False

        try:
            self._init_stream()
        except (sd.PortAudioError, ValueError) as e:
            print(f"[AUDIO] Microphone unavailable: {e}")
            self.stream = None

    @classmethod
    def from_config(cls, config, device=None):
        return cls(
            sample_rate=config.audio_sample_rate,
            fft_size=config.audio_fft_size,
            smoothing=config.audio_smoothing,
            min_db=config.audio_min_db,
            max_db=config.audio_max_db,
            device=device,
        )

    def _init_stream(self):
        self.stream = sd.InputStream(
            samplerate=self.sample_rate,
            channels=1,
            dtype="float32",
            device=self.device,
            callback=self._audio_callback,
        )
        self.stream.start()
        print(f"[AUDIO] Audio stream started (sr={self.sample_rate:.0f}, fft_size={self.fft_size}).")

    def _audio_callback(self, indata, frames, time_info, status):
        mono = np.asarray(indata, dtype=np.float32)
        if mono.ndim > 1:
            mono = mono.mean(axis=1)
        n = self.fft_size
        if mono.shape[0] >= n:
            self._ring = mono[-n:].copy()
        else:
            self._ring = np.concatenate((self._ring[mono.shape[0]:], mono))
        self._latest_audio_time = time.time()
        self._have_audio = True

    def byte_frequency_bins(self, samples):
        """
        Convert fft_size time-domain samples into byte frequency bins.
        Updates the smoothing state.
        Returns:
            np.ndarray: uint8 array of fft_size // 2 bins.
        """
        n = self.fft_size
        block = np.zeros(n, dtype=np.float32)
        samples = np.asarray(samples, dtype=np.float32)[-n:]
        block[n - samples.shape[0]:] = samples
        spectrum = np.abs(scipy.fftpack.fft(block * self._window))[: n // 2] / n
        self._smoothed = self.smoothing * self._smoothed + (1.0 - self.smoothing) * spectrum
        with np.errstate(divide="ignore"):
            db = 20.0 * np.log10(self._smoothed)
        scaled = (db - self.min_db) * (255.0 / (self.max_db - self.min_db))
        return np.clip(np.floor(np.nan_to_num(scaled, neginf=0.0)), 0, 255).astype(np.uint8)

    def read_bins(self):
        if self.stream is None:
            raise SourceUnavailable("no microphone stream")
        if not self._have_audio:
            raise TransientFrameError("no audio captured yet")
        if time.time() - self._latest_audio_time > self.stale_after_s:
            raise TransientFrameError("audio data is stale")
        return self.byte_frequency_bins(self._ring)

    def close(self):
        try:
            if self.stream is not None:
                if getattr(self.stream, "active", False):
                    self.stream.stop()
                self.stream.close()
                print("[AUDIO] Audio stream closed.")
        except sd.PortAudioError as e:
            print(f"[AUDIO] Closing audio stream failed: {e}")
        finally:
            self.stream = None
            self._have_audio = False
