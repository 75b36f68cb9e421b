"""
sampling_controller.py
Chooses the polling interval for the next tick from recent activity and the low-power flag.
"""

import enum

from lab_telemetry.errors import ConfigurationError


class CadenceTier(enum.Enum):
    FAST = 'fast'
    IDLE = 'idle'
    LOW_POWER = 'low_power'


class AdaptiveSamplingController:
    def __init__(self, fast_interval_ms=200, idle_interval_ms=500, low_power_interval_ms=1000,
                 activity_threshold=5, idle_threshold_ms=10000, low_power=False):
        for name, value in (('fast_interval_ms', fast_interval_ms),
                            ('idle_interval_ms', idle_interval_ms),
                            ('low_power_interval_ms', low_power_interval_ms)):
            if value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")
        if not 0 <= activity_threshold <= 100:
            raise ConfigurationError(f"activity_threshold must be within [0, 100], got {activity_threshold}")
        if idle_threshold_ms < 0:
            raise ConfigurationError(f"idle_threshold_ms must be non-negative, got {idle_threshold_ms}")
        self.intervals = {
            CadenceTier.FAST: fast_interval_ms,
            CadenceTier.IDLE: idle_interval_ms,
            CadenceTier.LOW_POWER: low_power_interval_ms,
        }
        self.activity_threshold = activity_threshold
        self.idle_threshold_ms = idle_threshold_ms
        # Settable from any thread at any time.
        self.low_power = bool(low_power)
        self.last_activity_ms = 0
        self._activity_tier = CadenceTier.FAST

    @classmethod
    def from_config(cls, config):
        return cls(
            fast_interval_ms=config.fast_interval_ms,
            idle_interval_ms=config.idle_interval_ms,
            low_power_interval_ms=config.low_power_interval_ms,
            activity_threshold=config.activity_threshold,
            idle_threshold_ms=config.idle_threshold_ms,
            low_power=config.low_power,
        )

    @property
    def tier(self):
        # The low-power flag wins as soon as it is set, not at the next update.
        if self.low_power:
            return CadenceTier.LOW_POWER
        return self._activity_tier

    @property
    def interval_ms(self):
        return self.intervals[self.tier]

    def reset(self, now_ms):
        """Session start: FAST cadence, activity timer starts now. Keeps the low-power flag."""
        self.last_activity_ms = now_ms
        self._activity_tier = CadenceTier.FAST

    def update(self, now_ms, intensity=None):
        """
        Evaluate the cadence once per tick, after the tick's intensity is known.
        Args:
            now_ms: Current session clock in ms.
            intensity: This tick's intensity, or None for a skipped tick.
        Returns:
            int: Interval in ms to wait before the next tick.
        """
        # Activity is recorded in every tier, low power included.
        if intensity is not None and intensity > self.activity_threshold:
            self.last_activity_ms = now_ms
        if now_ms - self.last_activity_ms > self.idle_threshold_ms:
            self._activity_tier = CadenceTier.IDLE
        else:
            self._activity_tier = CadenceTier.FAST
        return self.interval_ms
