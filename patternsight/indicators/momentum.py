"""
Momentum Indicators Module

Implements technical momentum indicators:
- RSI (Relative Strength Index, Wilder smoothing)
- MACD (Moving Average Convergence Divergence)
- Stochastic Oscillator (%K / %D)

All functions return pandas Series with proper index alignment. Short
series produce NaN for the warm-up window, never an exception.
"""

from typing import Tuple
import numpy as np
import pandas as pd
import logging

from patternsight.indicators.moving_averages import ema_of_series, sma_of_series
from patternsight.indicators.validation_utils import require_columns

logger = logging.getLogger(__name__)


def compute_rsi(df: pd.DataFrame, period: int = 14) -> pd.Series:
    """
    Compute Relative Strength Index (RSI) with Wilder's smoothing.

    The first average gain/loss is the simple mean of the first ``period``
    price changes; later values use avg = (prev * (period - 1) + current) / period.

    Args:
        df: DataFrame with 'close' column
        period: RSI period (default 14)

    Returns:
        pd.Series: RSI values (0-100). Indices 0..period-1 are NaN. When the
        average loss is zero (no down moves) RSI is 100.

    Raises:
        ValueError: If the 'close' column is missing or period < 1
    """
    require_columns(df, 'close')
    if period < 1:
        raise ValueError(f"RSI period must be >= 1, got {period}")

    close = df['close'].to_numpy(dtype=float)
    rsi = np.full(len(close), np.nan)

    if len(close) < period + 1:
        logger.debug("Series too short for RSI(%d): %d bars", period, len(close))
        return pd.Series(rsi, index=df.index)

    delta = np.diff(close)
    gains = np.where(delta > 0, delta, 0.0)
    losses = np.where(delta < 0, -delta, 0.0)

    avg_gain = gains[:period].mean()
    avg_loss = losses[:period].mean()
    rsi[period] = _rsi_value(avg_gain, avg_loss)

    for i in range(period + 1, len(close)):
        avg_gain = (avg_gain * (period - 1) + gains[i - 1]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i - 1]) / period
        rsi[i] = _rsi_value(avg_gain, avg_loss)

    return pd.Series(rsi, index=df.index)


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return float(min(100.0, max(0.0, 100.0 - 100.0 / (1.0 + rs))))


def compute_macd(
    df: pd.DataFrame,
    fast: int = 12,
    slow: int = 26,
    signal: int = 9
) -> Tuple[pd.Series, pd.Series, pd.Series]:
    """
    Compute MACD (Moving Average Convergence Divergence).

    Returns MACD line, signal line, and histogram.

    Args:
        df: DataFrame with 'close' column
        fast: Fast EMA period (default 12)
        slow: Slow EMA period (default 26)
        signal: Signal EMA period (default 9)

    Returns:
        Tuple[pd.Series, pd.Series, pd.Series]: (macd_line, signal_line, histogram).
        The line is defined from index slow-1, signal and histogram from
        index slow+signal-2.

    Raises:
        ValueError: If the 'close' column is missing or fast >= slow
    """
    require_columns(df, 'close')
    if fast >= slow:
        raise ValueError(f"MACD fast period ({fast}) must be shorter than slow period ({slow})")

    close = df['close'].astype(float)
    ema_fast = ema_of_series(close, fast)
    ema_slow = ema_of_series(close, slow)
    macd_line = ema_fast - ema_slow
    signal_line = ema_of_series(macd_line, signal)
    histogram = macd_line - signal_line

    return macd_line, signal_line, histogram


def compute_stochastic(
    df: pd.DataFrame,
    k_period: int = 14,
    d_period: int = 3
) -> Tuple[pd.Series, pd.Series]:
    """
    Compute the Stochastic Oscillator.

    %K = (close - lowest low) / (highest high - lowest low) * 100 over
    ``k_period`` bars; a zero range (flat window) gives %K = 50.
    %D is the ``d_period`` SMA of %K.

    Args:
        df: DataFrame with 'high', 'low', 'close' columns
        k_period: Look-back for highest high / lowest low (default 14)
        d_period: Smoothing period for %D (default 3)

    Returns:
        Tuple[pd.Series, pd.Series]: (%K, %D) both clamped to 0-100

    Raises:
        ValueError: If required columns are missing
    """
    require_columns(df, 'high', 'low', 'close')

    highest_high = df['high'].rolling(window=k_period, min_periods=k_period).max()
    lowest_low = df['low'].rolling(window=k_period, min_periods=k_period).min()
    price_range = highest_high - lowest_low

    stoch_k = ((df['close'] - lowest_low) / price_range.where(price_range > 0)) * 100
    stoch_k = stoch_k.mask(price_range == 0, 50.0)
    stoch_k = stoch_k.clip(lower=0.0, upper=100.0)

    stoch_d = sma_of_series(stoch_k, d_period).clip(lower=0.0, upper=100.0)

    return stoch_k.astype(float), stoch_d.astype(float)
