"""
Divergence Detection Module

Detects regular divergences between price and an oscillator:
- Regular Bullish: price makes a lower low, indicator makes a higher low
- Regular Bearish: price makes a higher high, indicator makes a lower high

Pivots are found on price; the indicator is read at the same bars, so the
two swings are compared like for like.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional

import numpy as np
import pandas as pd
from loguru import logger


@dataclass(frozen=True)
class DivergenceResult:
    """Two price pivots and the indicator readings taken at the same bars."""

    divergence_type: Literal['regular_bullish', 'regular_bearish']
    indicator: str
    pivot_1: int
    pivot_2: int  # Most recent pivot
    price_value_1: float
    price_value_2: float
    indicator_value_1: float
    indicator_value_2: float
    strength: float  # 0-100

    def is_bullish(self) -> bool:
        return self.divergence_type == 'regular_bullish'

    def is_bearish(self) -> bool:
        return self.divergence_type == 'regular_bearish'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.divergence_type,
            'indicator': self.indicator,
            'pivots': [self.pivot_1, self.pivot_2],
            'priceValues': [self.price_value_1, self.price_value_2],
            'indicatorValues': [self.indicator_value_1, self.indicator_value_2],
            'strength': self.strength,
        }


def find_swing_highs(series: pd.Series, lookback: int = 5) -> List[int]:
    """
    Find swing highs (local peaks) in a series.

    Args:
        series: Price or indicator series
        lookback: Number of bars to look left/right for peak detection

    Returns:
        List of positional indices where swing highs occur
    """
    values = series.to_numpy(dtype=float)
    swing_highs = []

    for i in range(lookback, len(values) - lookback):
        current_value = values[i]
        if np.isnan(current_value):
            continue

        neighbours = np.concatenate([values[i - lookback:i], values[i + 1:i + lookback + 1]])
        if np.isnan(neighbours).any():
            continue

        # Strictly higher than every neighbour on both sides
        if (neighbours < current_value).all():
            swing_highs.append(i)

    return swing_highs


def find_swing_lows(series: pd.Series, lookback: int = 5) -> List[int]:
    """
    Find swing lows (local troughs) in a series.

    Args:
        series: Price or indicator series
        lookback: Number of bars to look left/right for trough detection

    Returns:
        List of positional indices where swing lows occur
    """
    values = series.to_numpy(dtype=float)
    swing_lows = []

    for i in range(lookback, len(values) - lookback):
        current_value = values[i]
        if np.isnan(current_value):
            continue

        neighbours = np.concatenate([values[i - lookback:i], values[i + 1:i + lookback + 1]])
        if np.isnan(neighbours).any():
            continue

        if (neighbours > current_value).all():
            swing_lows.append(i)

    return swing_lows


def _strength(price_1: float, price_2: float, ind_1: float, ind_2: float) -> float:
    price_change_pct = abs((price_2 - price_1) / price_1) * 100 if price_1 else 0.0
    indicator_change_pct = abs((ind_2 - ind_1) / max(abs(ind_1), 1)) * 100
    return min(100.0, (price_change_pct + indicator_change_pct) * 5)


def detect_regular_bullish_divergence(
    df: pd.DataFrame,
    indicator_series: pd.Series,
    indicator_name: str,
    lookback: int = 3,
    max_lookback_bars: int = 20,
    end_index: Optional[int] = None,
) -> Optional[DivergenceResult]:
    """
    Detect regular bullish divergence: price lower low, indicator higher low.

    Args:
        df: DataFrame with 'low' column for price
        indicator_series: Indicator series aligned with df (RSI, MACD histogram, ...)
        indicator_name: Name of the indicator
        lookback: Bars each side for swing detection
        max_lookback_bars: Window (ending at end_index) searched for pivots
        end_index: Last bar of the window (default: last bar of df)

    Returns:
        DivergenceResult for the two most recent swing lows, None otherwise
    """
    end = len(df) - 1 if end_index is None else end_index
    start = max(0, end - max_lookback_bars + 1)
    lows = df['low'].iloc[start:end + 1]

    pivots = [start + i for i in find_swing_lows(lows, lookback)]
    if len(pivots) < 2:
        return None

    pivot_1, pivot_2 = pivots[-2], pivots[-1]
    price_1 = float(df['low'].iloc[pivot_1])
    price_2 = float(df['low'].iloc[pivot_2])
    ind_1 = indicator_series.iloc[pivot_1]
    ind_2 = indicator_series.iloc[pivot_2]
    if pd.isna(ind_1) or pd.isna(ind_2):
        return None

    if price_2 < price_1 and ind_2 > ind_1:
        logger.debug(f"Bullish {indicator_name} divergence between bars {pivot_1} and {pivot_2}")
        return DivergenceResult(
            divergence_type='regular_bullish',
            indicator=indicator_name,
            pivot_1=pivot_1,
            pivot_2=pivot_2,
            price_value_1=price_1,
            price_value_2=price_2,
            indicator_value_1=float(ind_1),
            indicator_value_2=float(ind_2),
            strength=_strength(price_1, price_2, float(ind_1), float(ind_2))
        )

    return None


def detect_regular_bearish_divergence(
    df: pd.DataFrame,
    indicator_series: pd.Series,
    indicator_name: str,
    lookback: int = 3,
    max_lookback_bars: int = 20,
    end_index: Optional[int] = None,
) -> Optional[DivergenceResult]:
    """
    Detect regular bearish divergence: price higher high, indicator lower high.

    Args:
        df: DataFrame with 'high' column for price
        indicator_series: Indicator series aligned with df
        indicator_name: Name of the indicator
        lookback: Bars each side for swing detection
        max_lookback_bars: Window (ending at end_index) searched for pivots
        end_index: Last bar of the window (default: last bar of df)

    Returns:
        DivergenceResult for the two most recent swing highs, None otherwise
    """
    end = len(df) - 1 if end_index is None else end_index
    start = max(0, end - max_lookback_bars + 1)
    highs = df['high'].iloc[start:end + 1]

    pivots = [start + i for i in find_swing_highs(highs, lookback)]
    if len(pivots) < 2:
        return None

    pivot_1, pivot_2 = pivots[-2], pivots[-1]
    price_1 = float(df['high'].iloc[pivot_1])
    price_2 = float(df['high'].iloc[pivot_2])
    ind_1 = indicator_series.iloc[pivot_1]
    ind_2 = indicator_series.iloc[pivot_2]
    if pd.isna(ind_1) or pd.isna(ind_2):
        return None

    if price_2 > price_1 and ind_2 < ind_1:
        logger.debug(f"Bearish {indicator_name} divergence between bars {pivot_1} and {pivot_2}")
        return DivergenceResult(
            divergence_type='regular_bearish',
            indicator=indicator_name,
            pivot_1=pivot_1,
            pivot_2=pivot_2,
            price_value_1=price_1,
            price_value_2=price_2,
            indicator_value_1=float(ind_1),
            indicator_value_2=float(ind_2),
            strength=_strength(price_1, price_2, float(ind_1), float(ind_2))
        )

    return None
