"""Real-time experiment telemetry: motion, color and audio samples from a live lab feed."""

from lab_telemetry.broadcaster import Subscription, TelemetryBroadcaster
from lab_telemetry.config import Config
from lab_telemetry.data_point import DataPoint, SessionSummary, summarize
from lab_telemetry.downsample import downsample
from lab_telemetry.errors import ConfigurationError, SourceUnavailable, TelemetryError, TransientFrameError
from lab_telemetry.sampling_controller import AdaptiveSamplingController, CadenceTier
from lab_telemetry.session import TelemetrySession
from lab_telemetry.synthetic import SyntheticGenerator

__all__ = [
    'AdaptiveSamplingController',
    'CadenceTier',
    'Config',
    'ConfigurationError',
    'DataPoint',
    'SessionSummary',
    'SourceUnavailable',
    'Subscription',
    'SyntheticGenerator',
    'TelemetryBroadcaster',
    'TelemetryError',
    'TelemetrySession',
    'TransientFrameError',
    'downsample',
    'summarize',
]
