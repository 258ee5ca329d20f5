"""
Volume Indicators Module

Implements volume-based indicators:
- Volume moving average and relative volume
- OBV (On-Balance Volume)
- Volume-Weighted Average Price (VWAP)

All functions return pandas Series with proper index alignment.
"""

import numpy as np
import pandas as pd
import logging

from patternsight.indicators.moving_averages import sma_of_series
from patternsight.indicators.validation_utils import require_columns
from patternsight.shared.config.defaults import VWAP_RESET_SERIES, VWAP_RESET_SESSION

logger = logging.getLogger(__name__)


def compute_volume_ma(df: pd.DataFrame, period: int = 20) -> pd.Series:
    """
    Compute the rolling average volume.

    Args:
        df: DataFrame with 'volume' column
        period: Rolling window (default 20)

    Returns:
        pd.Series: Average volume, NaN until the window is full

    Raises:
        ValueError: If the 'volume' column is missing
    """
    require_columns(df, 'volume')
    return sma_of_series(df['volume'].astype(float), period)


def compute_relative_volume(df: pd.DataFrame, period: int = 20) -> pd.Series:
    """
    Compute Relative Volume (RVOL) against the trailing average.

    The average for bar i covers bars i-period..i-1, so a spike does not
    dilute its own baseline. Zero baseline gives NaN.

    Args:
        df: DataFrame with 'volume' column
        period: Rolling window for average volume (default 20)

    Returns:
        pd.Series: Relative volume ratio (current / trailing average)
    """
    trailing = compute_volume_ma(df, period).shift(1)
    return df['volume'] / trailing.where(trailing > 0)


def compute_obv(df: pd.DataFrame) -> pd.Series:
    """
    Compute On-Balance Volume (OBV).

    OBV is a cumulative indicator that starts at 0, adds volume on up
    closes and subtracts volume on down closes; equal closes leave it
    unchanged.

    Args:
        df: DataFrame with 'close' and 'volume' columns

    Returns:
        pd.Series: Cumulative OBV values

    Raises:
        ValueError: If df is missing required columns
    """
    require_columns(df, 'close', 'volume')

    # Up day: +volume, Down day: -volume, No change (and first bar): 0
    direction = np.sign(df['close'].diff().fillna(0.0))
    signed_volume = direction * df['volume'].astype(float)

    return signed_volume.cumsum().astype(float)


def compute_vwap(df: pd.DataFrame, reset: str = VWAP_RESET_SERIES) -> pd.Series:
    """
    Compute Volume-Weighted Average Price (VWAP).

    VWAP is cumulative sum(typical price * volume) / cumulative volume,
    with typical price (high + low + close) / 3.

    Args:
        df: DataFrame with 'high', 'low', 'close', 'volume' columns and,
            for session resets, a datetime 'timestamp' column
        reset: 'series' for one cumulative VWAP over the whole series,
               'session' to restart at every calendar-day change

    Returns:
        pd.Series: VWAP values, NaN while cumulative volume is zero

    Raises:
        ValueError: If df is missing required columns or the reset policy is unknown
    """
    require_columns(df, 'high', 'low', 'close', 'volume')

    typical_price = (df['high'] + df['low'] + df['close']) / 3
    pv = typical_price * df['volume']

    if reset == VWAP_RESET_SERIES:
        cum_pv = pv.cumsum()
        cum_volume = df['volume'].cumsum()
    elif reset == VWAP_RESET_SESSION:
        if 'timestamp' not in df.columns:
            raise ValueError("DataFrame must have a 'timestamp' column for session VWAP")
        sessions = session_ids(df)
        cum_pv = pv.groupby(sessions).cumsum()
        cum_volume = df['volume'].groupby(sessions).cumsum()
    else:
        raise ValueError(f"Unknown VWAP reset policy '{reset}'")

    vwap = cum_pv / cum_volume.where(cum_volume > 0)
    return vwap.astype(float)


def session_ids(df: pd.DataFrame) -> pd.Series:
    """Number each calendar day of the 'timestamp' column 0, 1, 2, ..."""
    days = pd.to_datetime(df['timestamp']).dt.normalize()
    return (days != days.shift()).cumsum() - 1
