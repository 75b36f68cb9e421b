"""
errors.py
Error taxonomy for the experiment telemetry engine.

SourceUnavailable and TransientFrameError are raised by the source adapters and
absorbed per tick by the session. ConfigurationError is raised at setup only.
"""


class TelemetryError(Exception):
    pass


class SourceUnavailable(TelemetryError):
    """Device missing or closed; the affected channel degrades to zero."""


class TransientFrameError(TelemetryError):
    """Frame or audio block not ready this tick; the tick is skipped."""


class ConfigurationError(TelemetryError, ValueError):
    """Invalid interval or threshold passed at setup."""
