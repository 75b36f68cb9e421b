"""
downsample.py
Reduces a long raw series to a render-friendly view for charts.
"""
import math


def downsample(series, budget):
    """
    Keep every stride-th element, starting at index 0, so at most `budget` remain.
    The raw series is never modified; the final element is not forced into the result.
    Args:
        series: Any sliceable sequence (list, tuple, np.ndarray).
        budget: Maximum number of points to keep (>= 1).
    Returns:
        The series itself when it already fits, otherwise series[::stride].
    """
    budget = int(budget)
    if budget < 1:
        raise ValueError(f"budget must be >= 1, got {budget}")
    n = len(series)
    if n <= budget:
        return series
    stride = math.ceil(n / budget)
    return series[::stride]
