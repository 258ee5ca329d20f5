"""
Data models for OHLCV market data.

A Bar is immutable once ingested and is identified by its position in the
normalized series; that integer index is the coordinate system every
indicator, level, pattern and overlay refers to.
"""

import math
import numbers
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Union

from patternsight.shared.utils.error_policy import InputError


Timestamp = Union[datetime, int, float, str]


@dataclass(frozen=True)
class OHLCV:
    """
    Single OHLCV (Open, High, Low, Close, Volume) candlestick data point.

    Attributes:
        timestamp: Candle open time (datetime, ISO string or Unix epoch)
        open: Opening price
        high: Highest price during period
        low: Lowest price during period
        close: Closing price
        volume: Trading volume
    """
    timestamp: Timestamp
    open: float
    high: float
    low: float
    close: float
    volume: float

    def __post_init__(self):
        """Validate OHLCV relationships."""
        for name in ("open", "high", "low", "close", "volume"):
            value = getattr(self, name)
            if not isinstance(value, numbers.Real) or not math.isfinite(value):
                raise InputError(f"{name.capitalize()} must be a finite number, got {value!r}")
        if self.volume < 0:
            raise InputError(f"Volume cannot be negative, got {self.volume}")
        if self.high < self.low:
            raise InputError(f"High ({self.high}) cannot be less than Low ({self.low})")
        if self.high < self.close or self.high < self.open:
            raise InputError(f"High ({self.high}) must be >= Open ({self.open}) and Close ({self.close})")
        if self.low > self.close or self.low > self.open:
            raise InputError(f"Low ({self.low}) must be <= Open ({self.open}) and Close ({self.close})")

    @property
    def body(self) -> float:
        return abs(self.close - self.open)

    @property
    def range(self) -> float:
        return self.high - self.low

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
