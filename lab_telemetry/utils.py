"""
utils.py
General utility functions for the experiment telemetry engine.
"""
import math


def clamp(x, min_val, max_val):
    return max(min(x, max_val), min_val)


def round_half_up(x):
    # Python's round() is banker's rounding; sample values round .5 upward.
    return int(math.floor(x + 0.5))


def format_elapsed(elapsed_ms):
    """Format elapsed milliseconds as MM:SS (minutes wrap at 60)."""
    total_s = max(int(elapsed_ms), 0) // 1000
    minutes = (total_s // 60) % 60
    seconds = total_s % 60
    return f"{minutes:02d}:{seconds:02d}"
