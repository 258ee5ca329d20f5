"""
OHLCV Data Validation Utilities

Centralized input checks run once per series, before any indicator is
computed. Each check returns its error messages; ``validate_ohlcv`` collects
them into a ValidationReport and raises InputError when any check
fails.
"""

from dataclasses import dataclass, field
from typing import List, Optional
import numpy as np
import pandas as pd
import logging

from patternsight.shared.utils.error_policy import InputError

logger = logging.getLogger(__name__)

PRICE_COLUMNS = ["open", "high", "low", "close"]
OHLCV_COLUMNS = PRICE_COLUMNS + ["volume"]
ZERO_VOLUME_WARN_PCT = 10.0


@dataclass
class ValidationReport:
    """Outcome of validate_ohlcv."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def _non_finite(df: pd.DataFrame, columns: List[str]) -> List[str]:
    messages = []
    for col in columns:
        bad = int((~np.isfinite(df[col].to_numpy(dtype=float))).sum())
        if bad:
            messages.append(f"Column '{col}' has {bad} NaN or infinite values")
    return messages


def _candle_shape(df: pd.DataFrame) -> List[str]:
    messages = []
    inverted = int((df["high"] < df["low"]).sum())
    if inverted:
        messages.append(f"Found {inverted} inverted candles (high < low)")

    body_high = df[["open", "close"]].max(axis=1)
    body_low = df[["open", "close"]].min(axis=1)
    outside = int(((df["high"] < body_high) | (df["low"] > body_low)).sum())
    if outside:
        messages.append(f"Found {outside} candles whose high/low do not bracket open/close")
    return messages


def _timestamp_order(timestamps: pd.Series) -> List[str]:
    deltas = timestamps.diff().iloc[1:]
    messages = []
    duplicates = int((deltas == pd.Timedelta(0)).sum())
    if duplicates:
        messages.append(f"Found {duplicates} duplicate timestamps")
    backwards = int((deltas < pd.Timedelta(0)).sum())
    if backwards:
        messages.append(f"Found {backwards} timestamps out of ascending order")
    return messages


def validate_ohlcv(
    df: pd.DataFrame,
    min_rows: Optional[int] = None,
    check_timestamps: bool = True,
    raise_on_error: bool = True,
) -> ValidationReport:
    """
    Validate a numeric OHLCV DataFrame.

    Column presence and dtypes are the caller's job (the normalizer coerces
    them first); this checks values.

    Args:
        df: DataFrame with open/high/low/close/volume and optionally 'timestamp'
        min_rows: Minimum required rows (None = no minimum)
        check_timestamps: Require strictly increasing timestamps when a
            'timestamp' column exists
        raise_on_error: Raise InputError instead of returning a failed report

    Returns:
        ValidationReport with errors and warnings

    Raises:
        InputError: If any check fails and raise_on_error=True
    """
    report = ValidationReport()

    missing = [col for col in OHLCV_COLUMNS if col not in df.columns]
    if missing:
        report.errors.append(f"Missing required columns: {missing}")
    else:
        if min_rows is not None and len(df) < min_rows:
            report.errors.append(f"DataFrame too short: need {min_rows} rows, got {len(df)}")

        report.errors.extend(_non_finite(df, OHLCV_COLUMNS))
        report.errors.extend(_candle_shape(df))

        negative_volume = int((df["volume"] < 0).sum())
        if negative_volume:
            report.errors.append(f"Found {negative_volume} negative volume values")

        zero_volume = int((df["volume"] == 0).sum())
        if len(df) and zero_volume / len(df) * 100 > ZERO_VOLUME_WARN_PCT:
            report.warnings.append(
                f"Found {zero_volume} zero volume bars ({zero_volume / len(df) * 100:.1f}%)"
            )

        if check_timestamps and "timestamp" in df.columns and len(df) > 1:
            report.errors.extend(_timestamp_order(df["timestamp"]))

    for warning in report.warnings:
        logger.debug("OHLCV validation warning: %s", warning)

    if raise_on_error and not report.valid:
        raise InputError("; ".join(report.errors))

    return report


def require_columns(df: pd.DataFrame, *columns: str) -> None:
    """Raise ValueError naming every column an indicator needs but df lacks."""
    missing = [col for col in columns if col not in df.columns]
    if missing:
        raise ValueError(f"DataFrame missing required columns: {missing}")


def validate_series(series: pd.Series, name: str = "series", allow_nan: bool = True) -> bool:
    """
    Validate an indicator output series.

    Leading NaN from warm-up windows are normal, so NaN is allowed unless
    ``allow_nan`` is False. Infinite values never are.

    Raises:
        InputError: If the series contains infinite values or forbidden NaN
    """
    values = series.to_numpy(dtype=float)
    if np.isinf(values).any():
        raise InputError(f"{name} contains infinite values")
    if not allow_nan and np.isnan(values).any():
        raise InputError(f"{name} contains NaN values")
    return True
