"""
data_point.py
The DataPoint value emitted once per tick, plus a summary over a recorded history.
"""

from dataclasses import asdict, dataclass

from lab_telemetry.utils import clamp, format_elapsed


@dataclass(frozen=True)
class DataPoint:
    """One telemetry sample. Bounded fields are clamped at construction time."""

    timestamp: int
    time_str: str
    intensity: int
    foam_height: float
    bubble_count: int
    color_r: int
    color_g: int
    color_b: int
    audio_level: int

    def __post_init__(self):
        # Frozen: normalise through object.__setattr__ before anyone can see the value.
        object.__setattr__(self, 'timestamp', max(int(self.timestamp), 0))
        object.__setattr__(self, 'intensity', int(clamp(int(self.intensity), 0, 100)))
        object.__setattr__(self, 'foam_height', max(float(self.foam_height), 0.0))
        object.__setattr__(self, 'bubble_count', max(int(self.bubble_count), 0))
        object.__setattr__(self, 'color_r', int(clamp(int(self.color_r), 0, 255)))
        object.__setattr__(self, 'color_g', int(clamp(int(self.color_g), 0, 255)))
        object.__setattr__(self, 'color_b', int(clamp(int(self.color_b), 0, 255)))
        object.__setattr__(self, 'audio_level', int(clamp(int(self.audio_level), 0, 255)))

    @classmethod
    def at(cls, elapsed_ms, **fields):
        """Build a point stamped with elapsed_ms and its MM:SS label."""
        return cls(timestamp=elapsed_ms, time_str=format_elapsed(elapsed_ms), **fields)

    def as_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class SessionSummary:
    sample_count: int
    peak_intensity: int
    duration_ms: int
    mean_intensity: float


def summarize(history):
    """Summarise a recorded history of DataPoints (empty history -> zeros)."""
    points = list(history)
    if not points:
        return SessionSummary(sample_count=0, peak_intensity=0, duration_ms=0, mean_intensity=0.0)
    intensities = [p.intensity for p in points]
    return SessionSummary(
        sample_count=len(points),
        peak_intensity=max(intensities),
        duration_ms=points[-1].timestamp - points[0].timestamp,
        mean_intensity=sum(intensities) / len(intensities),
    )
