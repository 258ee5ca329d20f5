"""
Error policy enforcement - Zero Silent Failures principle.

Malformed input and invalid configuration fail fast, before any computation.
Insufficient history is not an error: indicators come back undefined (NaN)
and matchers return empty lists.
"""

import math
from typing import Optional

import pandas as pd


class InputError(ValueError):
    """Raised when an OHLCV series is malformed."""


class ConfigError(ValueError):
    """Raised when analysis options or engine configuration are invalid."""


class InvalidPatternError(ValueError):
    """Raised when a detected pattern carries inconsistent trade levels."""


class IncompleteIndicatorError(Exception):
    """Raised when an indicator array is not aligned with its series."""


def enforce_valid_trade_levels(
    signal: str,
    entry_price: float,
    target_price: float,
    stop_loss: float,
    name: Optional[str] = None,
) -> float:
    """
    Validate entry/target/stop and return the risk/reward ratio.

    Bullish and Neutral setups need stop < entry < target, Bearish setups
    the mirror image.

    Raises:
        InvalidPatternError: If a level is non-finite, the stop equals the
            entry or the target sits on the wrong side of the entry
    """
    label = name or "pattern"
    for field_name, value in (("entry", entry_price), ("target", target_price), ("stop", stop_loss)):
        if value is None or not math.isfinite(value):
            raise InvalidPatternError(f"{label}: {field_name} price is not finite ({value})")

    risk = abs(entry_price - stop_loss)
    reward = abs(target_price - entry_price)
    if risk == 0:
        raise InvalidPatternError(f"{label}: stop loss equals entry price ({entry_price})")
    if reward == 0:
        raise InvalidPatternError(f"{label}: target equals entry price ({entry_price})")

    if signal == "Bearish":
        if not (target_price < entry_price < stop_loss):
            raise InvalidPatternError(
                f"{label}: bearish levels must satisfy target ({target_price}) < "
                f"entry ({entry_price}) < stop ({stop_loss})"
            )
    elif not (stop_loss < entry_price < target_price):
        raise InvalidPatternError(
            f"{label}: {signal.lower()} levels must satisfy stop ({stop_loss}) < "
            f"entry ({entry_price}) < target ({target_price})"
        )

    return reward / risk


def enforce_aligned_indicators(arrays: dict, expected_length: int) -> None:
    """
    Ensure every computed indicator array has exactly one value per bar.

    Raises:
        IncompleteIndicatorError: If an array is missing or misaligned
    """
    for name, values in arrays.items():
        if values is None:
            continue
        if not isinstance(values, pd.Series):
            raise IncompleteIndicatorError(f"Indicator '{name}' must be a pandas Series, got {type(values)}")
        if len(values) != expected_length:
            raise IncompleteIndicatorError(
                f"Indicator '{name}' has {len(values)} values for a series of {expected_length} bars"
            )
