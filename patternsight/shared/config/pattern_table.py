"""Pattern probability table.

Static win-rate and confidence figures per pattern, curated domain content
rather than anything computed from live data. Matchers receive a
``PatternTable`` at construction and look entries up by pattern name; the
table itself is read-only.

Candlestick entries also carry the risk multiples used to place the stop
and target around the entry (in units of recent true range).
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional

from patternsight.shared.utils.error_policy import ConfigError


@dataclass(frozen=True)
class PatternStats:
    """Curated statistics for one pattern."""
    code: str
    probability: float  # Historical win rate, 0-100
    confidence: str  # 'Low', 'Medium', 'High'
    stop_multiple: float = 1.0  # Stop distance in risk units
    reward_multiple: float = 2.0  # Target distance in stop distances

    def __post_init__(self):
        if not 0 <= self.probability <= 100:
            raise ConfigError(f"Probability for {self.code} must be 0-100, got {self.probability}")
        if self.confidence not in ("Low", "Medium", "High"):
            raise ConfigError(f"Unknown confidence tier '{self.confidence}' for {self.code}")
        if self.stop_multiple <= 0 or self.reward_multiple <= 0:
            raise ConfigError(f"Risk multiples for {self.code} must be positive")


class PatternTable:
    """Read-only lookup of PatternStats keyed by pattern name."""

    def __init__(self, entries: Mapping[str, PatternStats]):
        self._entries = MappingProxyType(dict(entries))

    def __getitem__(self, name: str) -> PatternStats:
        try:
            return self._entries[name]
        except KeyError:
            raise ConfigError(f"Pattern '{name}' has no entry in the pattern table") from None

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, name: str) -> Optional[PatternStats]:
        return self._entries.get(name)

    @property
    def entries(self) -> Mapping[str, PatternStats]:
        return self._entries

    def with_overrides(self, overrides: Mapping[str, PatternStats]) -> "PatternTable":
        """Return a new table with some entries replaced or added."""
        merged: Dict[str, PatternStats] = dict(self._entries)
        merged.update(overrides)
        return PatternTable(merged)


_DEFAULT_ENTRIES: Dict[str, PatternStats] = {
    # Candlestick shapes
    "Doji": PatternStats("D", 50.0, "Low", stop_multiple=1.0, reward_multiple=1.0),
    "Hammer": PatternStats("H", 59.0, "Medium", stop_multiple=1.0, reward_multiple=1.5),
    "Shooting Star": PatternStats("SS", 56.0, "Medium", stop_multiple=1.0, reward_multiple=1.5),
    "Bullish Engulfing": PatternStats("BE", 68.0, "High", stop_multiple=1.0, reward_multiple=1.5),
    "Bearish Engulfing": PatternStats("BR", 65.0, "High", stop_multiple=1.0, reward_multiple=1.5),
    "Morning Star": PatternStats("MS", 75.0, "High", stop_multiple=1.0, reward_multiple=2.0),
    "Evening Star": PatternStats("ES", 74.0, "High", stop_multiple=1.0, reward_multiple=2.0),
    "Inside Bar": PatternStats("IB", 65.0, "Medium", stop_multiple=1.0, reward_multiple=2.0),
    "Bullish Marubozu": PatternStats("MB+", 70.0, "High", stop_multiple=1.0, reward_multiple=2.0),
    "Bearish Marubozu": PatternStats("MB-", 70.0, "High", stop_multiple=1.0, reward_multiple=2.0),

    # Indicator divergences and crosses
    "RSI Bullish Divergence": PatternStats("RD+", 78.0, "High"),
    "RSI Bearish Divergence": PatternStats("RD-", 78.0, "High"),
    "MACD Bullish Divergence": PatternStats("MD+", 74.0, "High"),
    "MACD Bearish Divergence": PatternStats("MD-", 74.0, "High"),
    "MACD Bullish Cross": PatternStats("MX+", 66.0, "Medium"),
    "MACD Bearish Cross": PatternStats("MX-", 66.0, "Medium"),
    "MACD Bullish Acceleration": PatternStats("MA+", 72.0, "High"),
    "MACD Bearish Acceleration": PatternStats("MA-", 72.0, "High"),
    "Stochastic Bullish Cross": PatternStats("SC+", 70.0, "Medium"),
    "Stochastic Bearish Cross": PatternStats("SC-", 70.0, "Medium"),
    "VWAP Bullish Reclaim": PatternStats("VW+", 75.0, "Medium"),
    "VWAP Bearish Rejection": PatternStats("VW-", 75.0, "Medium"),

    # Moving average crosses
    "Golden Cross": PatternStats("GC", 73.0, "High"),
    "Death Cross": PatternStats("DC", 71.0, "High"),
    "Golden Cross + Pullback to 50 MA": PatternStats("GCP", 76.0, "High", reward_multiple=1.5),
    "Death Cross + Failed Rally to 50 MA": PatternStats("DCF", 74.0, "High", reward_multiple=1.5),
    "EMA 20/50 Pullback": PatternStats("EP", 72.8, "Medium"),

    # Level interactions
    "Breakout above Resistance + Volume Surge": PatternStats("BRV", 79.0, "High", reward_multiple=2.3),
    "Breakdown below Support + Volume Spike": PatternStats("BSV", 77.0, "High", reward_multiple=2.3),
    "Bullish Engulfing + Support Zone": PatternStats("BES", 82.0, "High", reward_multiple=2.1),
    "Bearish Engulfing + Resistance Zone": PatternStats("BER", 81.0, "High", reward_multiple=2.1),
    "RSI Divergence + Support": PatternStats("RS+", 78.0, "High", reward_multiple=2.5),
    "Liquidity Sweep": PatternStats("LS", 68.9, "Medium"),

    # Multi-bar structures
    "Cup & Handle Breakout": PatternStats("CH", 76.1, "High", reward_multiple=1.2),
    "Triple Top": PatternStats("TT", 70.0, "High"),
    "Ascending Triangle": PatternStats("AT", 72.0, "High"),
    "Inside Bar Volume Breakout": PatternStats("IBV", 74.5, "High"),

    # Opening range, VWAP mean reversion and end-of-day drop setups
    "Opening Range Bullish Breakout": PatternStats("ORB+", 78.0, "High"),
    "Opening Range Bearish Breakout": PatternStats("ORB-", 78.0, "High"),
    "VWAP Bounce": PatternStats("VWB+", 70.5, "Medium"),
    "VWAP Reject": PatternStats("VWB-", 70.5, "Medium"),
    "EOD Sharp Drop Bounce": PatternStats("SDB+", 73.0, "Medium", reward_multiple=1.5),
    "EOD Sharp Drop Continuation": PatternStats("SDC-", 73.0, "Medium", reward_multiple=1.5),

    # Composite strategies
    "Triple Confirmation Bounce": PatternStats("TCB", 72.0, "High"),
    "2-3 Day Swing Trade": PatternStats("ST", 75.0, "Medium"),
    "Intraday Gap-Up Breakout": PatternStats("GUB", 72.0, "High", reward_multiple=2.0),
}

DEFAULT_PATTERN_TABLE = PatternTable(_DEFAULT_ENTRIES)
