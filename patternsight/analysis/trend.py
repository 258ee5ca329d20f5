"""
Trend and volume context helpers shared by the pattern matchers.

Both helpers read plain numpy arrays by position; matchers call them
through MatchContext, which holds the arrays for one series.
"""

from typing import Optional

import numpy as np


def _at(values: Optional[np.ndarray], index: int) -> Optional[float]:
    if values is None or index < 0 or index >= len(values):
        return None
    value = values[index]
    if np.isnan(value):
        return None
    return float(value)


def calculate_trend(close: np.ndarray, sma: Optional[np.ndarray], index: int) -> Optional[float]:
    """
    Relative distance of close from its 20-bar SMA: (close - sma) / sma.

    Positive means price trades above its short-term mean. Returns None
    while the SMA is undefined.
    """
    mean = _at(sma, index)
    if not mean:
        return None
    return (float(close[index]) - mean) / mean


def trailing_volume_ratio(volume: np.ndarray, volume_ma: Optional[np.ndarray], index: int) -> Optional[float]:
    """
    Volume of bar ``index`` relative to the average of the bars before it.

    Uses the volume MA ending at index - 1 so the bar does not count
    towards its own baseline. None when the baseline is undefined or zero.
    """
    baseline = _at(volume_ma, index - 1)
    if not baseline:
        return None
    return float(volume[index]) / baseline
