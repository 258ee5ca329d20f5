"""
Moving Average Indicators Module

Implements trend-following averages:
- SMA (Simple Moving Average)
- EMA (Exponential Moving Average, seeded with the SMA of the first window)

All functions return pandas Series aligned to the input index. Indices
before the first full window are NaN; a window longer than the series
gives an all-NaN result rather than an error.
"""

import numpy as np
import pandas as pd
import logging

from patternsight.indicators.validation_utils import require_columns

logger = logging.getLogger(__name__)


def _require_period(period: int) -> None:
    if period < 1:
        raise ValueError(f"Period must be >= 1, got {period}")


def sma_of_series(values: pd.Series, period: int) -> pd.Series:
    """Rolling mean of any series; NaN until the window is full."""
    _require_period(period)
    return values.rolling(window=period, min_periods=period).mean()


def ema_of_series(values: pd.Series, period: int) -> pd.Series:
    """
    Exponential moving average of any series.

    The seed is the simple mean of the first ``period`` defined values,
    placed at the last index of that window; smoothing factor is
    2 / (period + 1). Leading NaN in the input (e.g. the MACD line during
    its own warm-up) shift the seed window instead of poisoning it.
    """
    _require_period(period)
    data = values.to_numpy(dtype=float)
    out = np.full(len(data), np.nan)

    defined = np.flatnonzero(~np.isnan(data))
    if len(defined) == 0:
        return pd.Series(out, index=values.index)

    first = defined[0]
    seed_end = first + period - 1
    if seed_end >= len(data):
        return pd.Series(out, index=values.index)

    alpha = 2.0 / (period + 1)
    out[seed_end] = data[first:seed_end + 1].mean()
    for i in range(seed_end + 1, len(data)):
        out[i] = (data[i] - out[i - 1]) * alpha + out[i - 1]

    return pd.Series(out, index=values.index)


def compute_sma(df: pd.DataFrame, period: int = 20, column: str = 'close') -> pd.Series:
    """
    Compute Simple Moving Average.

    Args:
        df: DataFrame with the source column
        period: Window length (default 20)
        column: Source column (default 'close')

    Returns:
        pd.Series: SMA values, NaN for the first period-1 indices

    Raises:
        ValueError: If the column is missing or period < 1
    """
    require_columns(df, column)
    return sma_of_series(df[column].astype(float), period)


def compute_ema(df: pd.DataFrame, period: int = 20, column: str = 'close') -> pd.Series:
    """
    Compute Exponential Moving Average seeded with the first window's SMA.

    Args:
        df: DataFrame with the source column
        period: Window length (default 20)
        column: Source column (default 'close')

    Returns:
        pd.Series: EMA values, NaN for the first period-1 indices

    Raises:
        ValueError: If the column is missing or period < 1
    """
    require_columns(df, column)
    return ema_of_series(df[column].astype(float), period)
