"""
synthetic.py
Deterministic virtual-mode data source: same DataPoint shape, no camera or microphone.
"""
import math

from lab_telemetry.data_point import DataPoint
from lab_telemetry.errors import ConfigurationError
from lab_telemetry.utils import clamp, round_half_up


class SyntheticGenerator:
    def __init__(self, peak_s=15.0, spread_s=5.0, height_cap_cm=15.0, height_rate_cm_per_s=0.5):
        if spread_s <= 0:
            raise ConfigurationError(f"spread_s must be positive, got {spread_s}")
        self.peak_s = float(peak_s)
        self.spread_s = float(spread_s)
        self.height_cap_cm = float(height_cap_cm)
        self.height_rate_cm_per_s = float(height_rate_cm_per_s)

    @classmethod
    def from_config(cls, config):
        return cls(
            peak_s=config.synthetic_peak_s,
            spread_s=config.synthetic_spread_s,
            height_cap_cm=config.synthetic_height_cap_cm,
            height_rate_cm_per_s=config.synthetic_height_rate_cm_per_s,
        )

    def reaction_curve(self, t):
        """Bell-shaped reaction profile in [0, 100] peaking at peak_s."""
        return 100.0 * math.exp(-((t - self.peak_s) ** 2) / (2.0 * self.spread_s ** 2))

    def generate(self, elapsed_ms):
        """Pure function of elapsed_ms; equal inputs give equal DataPoints."""
        elapsed_ms = max(int(elapsed_ms), 0)
        t = elapsed_ms / 1000.0
        intensity = int(clamp(round_half_up(self.reaction_curve(t)), 0, 100))
        return DataPoint.at(
            elapsed_ms,
            intensity=intensity,
            foam_height=min(self.height_cap_cm, t * self.height_rate_cm_per_s),
            bubble_count=round_half_up(intensity * 0.8),
            color_r=round_half_up(100 + 50 * math.sin(t)),
            color_g=round_half_up(100 + 50 * math.cos(t)),
            color_b=round_half_up(200 + 50 * math.sin(t + 2 * math.pi / 3)),
            audio_level=round_half_up(intensity * 0.5),
        )
