"""
Shared plumbing for pattern matchers.

Every matcher is constructed with the read-only pattern table and the
engine configuration, then called with a MatchContext describing one
series. Matchers never mutate the context.

MatchContext snapshots the price columns and indicator arrays as numpy
arrays when it is built; per-bar scans read those rather than the
DataFrame. Build a new context after changing the frame.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from patternsight.analysis.trend import calculate_trend, trailing_volume_ratio
from patternsight.indicators.volatility import rolling_true_range
from patternsight.shared.config.defaults import CONFIDENCE_TIERS, EngineConfig
from patternsight.shared.config.pattern_table import DEFAULT_PATTERN_TABLE, PatternStats, PatternTable
from patternsight.shared.models.indicators import IndicatorSet
from patternsight.shared.models.patterns import CandlestickPattern, DetectedPattern, Level


class Candles(NamedTuple):
    """Column arrays of a series, for fast positional access."""
    open: np.ndarray
    high: np.ndarray
    low: np.ndarray
    close: np.ndarray

    @classmethod
    def from_frame(cls, df) -> "Candles":
        return cls(
            df['open'].to_numpy(dtype=float),
            df['high'].to_numpy(dtype=float),
            df['low'].to_numpy(dtype=float),
            df['close'].to_numpy(dtype=float),
        )

    def body(self, i: int) -> float:
        return abs(self.close[i] - self.open[i])

    def range(self, i: int) -> float:
        return self.high[i] - self.low[i]

    def upper_shadow(self, i: int) -> float:
        return self.high[i] - max(self.open[i], self.close[i])

    def lower_shadow(self, i: int) -> float:
        return min(self.open[i], self.close[i]) - self.low[i]

    def is_bullish(self, i: int) -> bool:
        return self.close[i] > self.open[i]

    def is_bearish(self, i: int) -> bool:
        return self.close[i] < self.open[i]


@dataclass
class MatchContext:
    """Inputs shared by all matchers for one analysis call."""
    df: pd.DataFrame
    indicators: IndicatorSet
    levels: List[Level] = field(default_factory=list)
    candlesticks: List[CandlestickPattern] = field(default_factory=list)

    candles: Candles = field(init=False, repr=False, compare=False)
    volume: np.ndarray = field(init=False, repr=False, compare=False)
    _arrays: Dict[str, Optional[np.ndarray]] = field(
        init=False, repr=False, compare=False, default_factory=dict
    )
    _true_range: Dict[int, np.ndarray] = field(
        init=False, repr=False, compare=False, default_factory=dict
    )

    def __post_init__(self):
        self.candles = Candles.from_frame(self.df)
        self.volume = self.df['volume'].to_numpy(dtype=float)

    @property
    def last_index(self) -> int:
        return len(self.df) - 1

    def close(self, index: int) -> float:
        return float(self.candles.close[index])

    def array(self, name: str) -> Optional[np.ndarray]:
        """Indicator as a float array (NaN = undefined), None when absent."""
        if name not in self._arrays:
            series = getattr(self.indicators, name, None)
            self._arrays[name] = None if series is None else series.to_numpy(dtype=float)
        return self._arrays[name]

    def value(self, name: str, index: int) -> Optional[float]:
        """Same contract as IndicatorSet.value, read from the cached array."""
        values = self.array(name)
        if values is None or index < 0 or index >= len(values):
            return None
        value = values[index]
        if np.isnan(value):
            return None
        return float(value)

    def values(self, name: str, *indices: int) -> Optional[List[float]]:
        """Indicator values at the given bars, or None if any is undefined."""
        found = [self.value(name, k) for k in indices]
        return None if any(v is None for v in found) else found

    def trend(self, index: int) -> Optional[float]:
        return calculate_trend(self.candles.close, self.array('sma_20'), index)

    def volume_ratio(self, index: int) -> Optional[float]:
        return trailing_volume_ratio(self.volume, self.array('volume_ma'), index)

    def mean_true_range(self, index: int, period: int) -> Optional[float]:
        """Mean true range of up to ``period`` bars ending at ``index``."""
        if index < 0 or index >= len(self.df):
            return None
        if period not in self._true_range:
            self._true_range[period] = rolling_true_range(self.df, period).to_numpy(dtype=float)
        return float(self._true_range[period][index])


class PatternMatcher(ABC):
    """Base class for all matcher categories."""

    category: ClassVar[str] = ''

    def __init__(
        self,
        table: Optional[PatternTable] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.table = table or DEFAULT_PATTERN_TABLE
        self.config = config or EngineConfig()
        self.thresholds = self.config.thresholds

    @abstractmethod
    def match(self, ctx: MatchContext) -> Sequence[DetectedPattern]:
        """Return every pattern this matcher finds in the context."""

    def stats(self, name: str) -> PatternStats:
        return self.table[name]

    def risk_unit(self, ctx: MatchContext, index: int) -> Optional[float]:
        """ATR at the bar when defined, else the recent mean true range."""
        atr = ctx.value('atr', index)
        if atr:
            return atr
        tr = ctx.mean_true_range(index, self.thresholds.true_range_period)
        return tr if tr else None


def promote_confidence(confidence: str) -> str:
    """One tier up; the top tier stays where it is."""
    position = CONFIDENCE_TIERS.index(confidence)
    return CONFIDENCE_TIERS[min(position + 1, len(CONFIDENCE_TIERS) - 1)]


def target_from_stop(signal: str, entry: float, stop: float, multiple: float) -> float:
    """Target placed ``multiple`` risk distances beyond the entry."""
    risk = abs(entry - stop)
    if signal == 'Bearish':
        return entry - risk * multiple
    return entry + risk * multiple


def risk_bracket(
    signal: str,
    entry: float,
    risk: float,
    stop_multiple: float,
    reward_multiple: float,
) -> Tuple[float, float]:
    """(stop, target) around an entry, in units of ``risk``."""
    if signal == 'Bearish':
        stop = entry + risk * stop_multiple
    else:
        stop = entry - risk * stop_multiple
    return stop, target_from_stop(signal, entry, stop, reward_multiple)


def levels_are_valid(signal: str, entry: float, stop: float, target: float) -> bool:
    """True when the trade levels are positive and on the correct sides."""
    if min(entry, stop, target) <= 0:
        return False
    if signal == 'Bearish':
        return target < entry < stop
    return stop < entry < target
