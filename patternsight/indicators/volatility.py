"""
Volatility Indicators Module

Implements volatility measurement indicators:
- True Range
- ATR (Average True Range, Wilder smoothing)
- Bollinger Bands

All functions return pandas Series with proper index alignment.
"""

from typing import Optional
import numpy as np
import pandas as pd
import logging

from patternsight.indicators.moving_averages import sma_of_series
from patternsight.indicators.validation_utils import require_columns

logger = logging.getLogger(__name__)


def compute_true_range(df: pd.DataFrame) -> pd.Series:
    """
    Compute True Range per bar.

    True Range is the greatest of:
    - Current High - Current Low
    - |Current High - Previous Close|
    - |Current Low - Previous Close|

    The first bar has no previous close, so its true range is high - low.

    Raises:
        ValueError: If required columns are missing
    """
    require_columns(df, 'high', 'low', 'close')

    high_low = df['high'] - df['low']
    high_close = (df['high'] - df['close'].shift()).abs()
    low_close = (df['low'] - df['close'].shift()).abs()
    return pd.concat([high_low, high_close, low_close], axis=1).max(axis=1).astype(float)


def compute_atr(df: pd.DataFrame, period: int = 14) -> pd.Series:
    """
    Compute Average True Range (ATR) with Wilder's smoothing.

    The first ATR (index ``period``) is the mean of true ranges 1..period;
    afterwards atr = (prev * (period - 1) + tr) / period.

    Args:
        df: DataFrame with 'high', 'low', 'close' columns
        period: ATR period (default 14)

    Returns:
        pd.Series: ATR values, NaN for indices 0..period-1

    Raises:
        ValueError: If required columns are missing
    """
    true_range = compute_true_range(df).to_numpy(dtype=float)
    atr = np.full(len(true_range), np.nan)

    if len(true_range) < period + 1:
        logger.debug("Series too short for ATR(%d): %d bars", period, len(true_range))
        return pd.Series(atr, index=df.index)

    atr[period] = true_range[1:period + 1].mean()
    for i in range(period + 1, len(true_range)):
        atr[i] = (atr[i - 1] * (period - 1) + true_range[i]) / period

    return pd.Series(atr, index=df.index)


def rolling_true_range(df: pd.DataFrame, period: int = 14) -> pd.Series:
    """
    Mean true range of up to ``period`` bars ending at each bar.

    Defined from the first bar (the window shrinks at the start of the
    series), so ``rolling_true_range(df)[i] == recent_true_range(df, i)``.
    """
    return compute_true_range(df).rolling(window=period, min_periods=1).mean()


def recent_true_range(df: pd.DataFrame, index: int, period: int = 14) -> Optional[float]:
    """
    Mean true range of up to ``period`` bars ending at ``index``.

    Works from the very first bar, which makes it the risk unit for short
    candle windows where ATR is still undefined.

    Returns:
        Mean true range, or None if the index is outside the series
    """
    if index < 0 or index >= len(df):
        return None
    start = max(0, index - period + 1)
    window = df.iloc[max(0, start - 1):index + 1]
    true_range = compute_true_range(window)
    if start > 0:
        true_range = true_range.iloc[1:]
    return float(true_range.mean())


def compute_bollinger_bands(
    df: pd.DataFrame,
    period: int = 20,
    std_dev: float = 2.0
) -> tuple[pd.Series, pd.Series, pd.Series]:
    """
    Compute Bollinger Bands.

    Middle band is the SMA of close; the outer bands sit ``std_dev``
    population standard deviations away.

    Args:
        df: DataFrame with 'close' column
        period: SMA period (default 20)
        std_dev: Number of standard deviations (default 2.0)

    Returns:
        tuple[pd.Series, pd.Series, pd.Series]: (upper_band, middle_band, lower_band)

    Raises:
        ValueError: If the 'close' column is missing
    """
    require_columns(df, 'close')

    close = df['close'].astype(float)
    middle_band = sma_of_series(close, period)
    std = close.rolling(window=period, min_periods=period).std(ddof=0)

    upper_band = middle_band + (std * std_dev)
    lower_band = middle_band - (std * std_dev)

    return upper_band, middle_band, lower_band
