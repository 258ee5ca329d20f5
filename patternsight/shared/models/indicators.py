"""
Technical indicators data models.

An IndicatorSet holds one pandas Series per indicator, each aligned 1:1
with the normalized series index. Leading values are NaN ("undefined")
until the indicator's look-back window is filled; indicators that were not
requested are simply absent (None).
"""

from dataclasses import dataclass, fields
from typing import Dict, List, Optional

import pandas as pd

from patternsight.shared.utils.error_policy import enforce_aligned_indicators


@dataclass
class IndicatorSet:
    """
    Complete indicator arrays for one series.

    Trend:
        sma_20, sma_50, sma_200: Simple moving averages of close
        ema_12, ema_26: MACD component EMAs
        ema_20, ema_50: Pullback EMAs

    Momentum:
        rsi: Wilder RSI (0-100)
        macd_line, macd_signal, macd_histogram: MACD(12, 26, 9)
        stoch_k, stoch_d: Stochastic %K/%D (0-100)

    Mean Reversion:
        bb_upper, bb_middle, bb_lower: Bollinger Bands (20, 2σ)

    Volatility:
        atr: Wilder ATR

    Volume:
        obv: On-Balance Volume
        vwap: Volume-Weighted Average Price
        volume_ma: Rolling average volume
    """
    length: int

    sma_20: Optional[pd.Series] = None
    sma_50: Optional[pd.Series] = None
    sma_200: Optional[pd.Series] = None
    ema_12: Optional[pd.Series] = None
    ema_26: Optional[pd.Series] = None
    ema_20: Optional[pd.Series] = None
    ema_50: Optional[pd.Series] = None

    rsi: Optional[pd.Series] = None
    macd_line: Optional[pd.Series] = None
    macd_signal: Optional[pd.Series] = None
    macd_histogram: Optional[pd.Series] = None
    stoch_k: Optional[pd.Series] = None
    stoch_d: Optional[pd.Series] = None

    bb_upper: Optional[pd.Series] = None
    bb_middle: Optional[pd.Series] = None
    bb_lower: Optional[pd.Series] = None

    atr: Optional[pd.Series] = None

    obv: Optional[pd.Series] = None
    vwap: Optional[pd.Series] = None
    volume_ma: Optional[pd.Series] = None

    def __post_init__(self):
        """Validate that every computed array covers the whole series."""
        if self.length < 0:
            raise ValueError(f"IndicatorSet length must be >= 0, got {self.length}")
        enforce_aligned_indicators(self.arrays(), self.length)

    def arrays(self) -> Dict[str, pd.Series]:
        """Computed arrays by name, in declaration order."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "length" and getattr(self, f.name) is not None
        }

    def has(self, name: str) -> bool:
        return getattr(self, name, None) is not None

    def value(self, name: str, index: int) -> Optional[float]:
        """
        Get one indicator value.

        Returns None for undefined values, absent indicators and
        out-of-range indices, so matchers can treat all three as
        "insufficient data, skip".
        """
        series = getattr(self, name, None)
        if series is None or index < 0 or index >= self.length:
            return None
        value = series.iloc[index]
        if pd.isna(value):
            return None
        return float(value)

    def to_dict(self) -> Dict[str, List[Optional[float]]]:
        """Convert to plain lists with None for undefined values."""
        return {
            name: [None if pd.isna(v) else float(v) for v in series.tolist()]
            for name, series in self.arrays().items()
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IndicatorSet):
            return NotImplemented
        return self.length == other.length and self.to_dict() == other.to_dict()
