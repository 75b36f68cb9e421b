"""audio_level.py

Aggregate loudness for one tick: the mean of byte-range frequency bin magnitudes.
"""

import numpy as np

from lab_telemetry.utils import clamp, round_half_up


class AudioLevelAnalyzer:
    def analyze_audio(self, frequency_bins):
        """
        Args:
            frequency_bins: Bin magnitudes in 0-255, or None when no audio source is attached.
        Returns:
            int: Audio level 0-255 (0 without a source).
        """
        if frequency_bins is None:
            return 0
        bins = np.asarray(frequency_bins, dtype=np.float64).ravel()
        if bins.size == 0:
            return 0
        return int(clamp(round_half_up(float(np.mean(bins))), 0, 255))
