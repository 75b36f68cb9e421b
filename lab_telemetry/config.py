"""
config.py
Configuration for the lab experiment telemetry engine.

The calibration constants below are empirically tuned values; keep their
meaning stable and override them per experiment instead of re-deriving them.
"""

from lab_telemetry.errors import ConfigurationError


class Config:
    def __init__(self, **overrides):
        # Motion & color analysis
        self.frame_size = (320, 240)  # processing resolution (width, height)
        self.pixel_stride = 4  # sample every 4th pixel
        self.motion_threshold = 30  # summed |dR|+|dG|+|dB| for a "moving" pixel
        self.bubble_threshold = 100  # stricter threshold for high-contrast change
        # 20% of sampled pixels in motion saturates intensity at 100.
        self.reference_fraction = 0.20
        self.bubble_scale_divisor = 10
        self.height_scale_cm = 20.0

        # Adaptive sampling cadence (ms)
        self.fast_interval_ms = 200
        self.idle_interval_ms = 500
        self.low_power_interval_ms = 1000
        self.activity_threshold = 5  # intensity above this counts as activity
        self.idle_threshold_ms = 10000
        self.low_power = False

        # Virtual mode
        self.virtual_interval_ms = 500
        self.synthetic_peak_s = 15.0
        self.synthetic_spread_s = 5.0  # 2 * spread^2 == 50
        self.synthetic_height_cap_cm = 15.0
        self.synthetic_height_rate_cm_per_s = 0.5

        # Display
        self.display_budget = 50  # max chart points

        # Audio (browser analyser defaults: fftSize 256, smoothing 0.8)
        self.audio_sample_rate = 44100
        self.audio_fft_size = 256
        self.audio_smoothing = 0.8
        self.audio_min_db = -100.0
        self.audio_max_db = -30.0

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise ConfigurationError(f"Unknown configuration key: {key}")
            setattr(self, key, value)

    def validate(self):
        """Reject out-of-range settings eagerly. Returns self."""
        width, height = self.frame_size
        if int(width) <= 0 or int(height) <= 0:
            raise ConfigurationError(f"frame_size must be positive, got {self.frame_size}")
        if int(self.pixel_stride) < 1:
            raise ConfigurationError("pixel_stride must be >= 1")
        if not 0 <= self.motion_threshold <= 765:
            raise ConfigurationError("motion_threshold must be within [0, 765]")
        if not self.motion_threshold <= self.bubble_threshold <= 765:
            raise ConfigurationError("bubble_threshold must be within [motion_threshold, 765]")
        if not 0 < self.reference_fraction <= 1:
            raise ConfigurationError("reference_fraction must be within (0, 1]")
        if self.bubble_scale_divisor <= 0:
            raise ConfigurationError("bubble_scale_divisor must be positive")
        if self.height_scale_cm < 0:
            raise ConfigurationError("height_scale_cm must be non-negative")
        for name in ('fast_interval_ms', 'idle_interval_ms', 'low_power_interval_ms', 'virtual_interval_ms'):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        if not 0 <= self.activity_threshold <= 100:
            raise ConfigurationError("activity_threshold must be within [0, 100]")
        if self.idle_threshold_ms < 0:
            raise ConfigurationError("idle_threshold_ms must be non-negative")
        if self.synthetic_spread_s <= 0:
            raise ConfigurationError("synthetic_spread_s must be positive")
        if self.synthetic_height_cap_cm < 0 or self.synthetic_height_rate_cm_per_s < 0:
            raise ConfigurationError("synthetic height settings must be non-negative")
        if int(self.display_budget) < 1:
            raise ConfigurationError("display_budget must be >= 1")
        if self.audio_sample_rate <= 0:
            raise ConfigurationError("audio_sample_rate must be positive")
        if int(self.audio_fft_size) < 32:
            raise ConfigurationError("audio_fft_size must be >= 32")
        if not 0 <= self.audio_smoothing < 1:
            raise ConfigurationError("audio_smoothing must be within [0, 1)")
        if self.audio_min_db >= self.audio_max_db:
            raise ConfigurationError("audio_min_db must be below audio_max_db")
        return self
