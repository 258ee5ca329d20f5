"""
Series Normalizer

Turns caller-supplied bars into the canonical series DataFrame every other
component reads: columns [timestamp, open, high, low, close, volume] and a
RangeIndex 0..n-1. The integer index is the coordinate system for levels,
patterns and overlays and is never renumbered afterwards.

Unlike an ingestion pipeline, the normalizer never repairs data: any
malformed bar rejects the whole series with InputError.
"""

from dataclasses import fields, is_dataclass
from typing import Any, Iterable, Mapping, Union

import pandas as pd
from loguru import logger

from patternsight.indicators.validation_utils import validate_ohlcv
from patternsight.shared.models.data import OHLCV
from patternsight.shared.utils.error_policy import InputError


SERIES_COLUMNS = ['timestamp', 'open', 'high', 'low', 'close', 'volume']

BarsInput = Union[pd.DataFrame, Iterable[Union[OHLCV, Mapping[str, Any]]]]


def normalize_series(bars: BarsInput, timestamp_unit: str = 's') -> pd.DataFrame:
    """
    Validate and index an OHLCV sequence.

    Args:
        bars: DataFrame (with a 'timestamp' column or a DatetimeIndex), or an
            iterable of OHLCV objects / mappings with the six OHLCV keys
        timestamp_unit: Unit for numeric timestamps (Unix epoch), default seconds

    Returns:
        DataFrame with SERIES_COLUMNS and a RangeIndex; an empty input gives
        an empty frame with the same columns

    Raises:
        InputError: If a column is missing, a value is non-finite, volume is
            negative, a candle is inconsistent or timestamps are not strictly
            increasing
    """
    df = _to_frame(bars)

    missing_cols = [col for col in SERIES_COLUMNS if col not in df.columns]
    if missing_cols:
        raise InputError(f"Series missing required columns: {missing_cols}")

    df = df[SERIES_COLUMNS].copy()

    for col in ['open', 'high', 'low', 'close', 'volume']:
        try:
            df[col] = pd.to_numeric(df[col], errors='raise').astype(float)
        except (TypeError, ValueError) as e:
            raise InputError(f"Column '{col}' is not numeric: {e}") from e

    df['timestamp'] = _to_timestamps(df['timestamp'], timestamp_unit)
    df = df.reset_index(drop=True)

    validate_ohlcv(df, raise_on_error=True)

    logger.debug(f"Normalized series of {len(df)} bars")
    return df


def _to_frame(bars: BarsInput) -> pd.DataFrame:
    """Build a raw DataFrame from any supported bar container."""
    if isinstance(bars, pd.DataFrame):
        df = bars
        if 'timestamp' not in df.columns:
            if not isinstance(df.index, pd.DatetimeIndex):
                raise InputError("DataFrame needs a 'timestamp' column or a DatetimeIndex")
            df = df.rename_axis('timestamp').reset_index()
        return df

    if isinstance(bars, (str, bytes)) or not hasattr(bars, '__iter__'):
        raise InputError(f"Unsupported series container: {type(bars).__name__}")

    records = []
    for position, bar in enumerate(bars):
        if isinstance(bar, OHLCV):
            records.append(bar.to_dict())
        elif is_dataclass(bar):
            records.append({f.name: getattr(bar, f.name) for f in fields(bar)})
        elif isinstance(bar, Mapping):
            records.append(dict(bar))
        else:
            raise InputError(f"Bar {position} has unsupported type {type(bar).__name__}")

    if not records:
        return pd.DataFrame({col: pd.Series(dtype=float) for col in SERIES_COLUMNS})
    return pd.DataFrame.from_records(records)


def _to_timestamps(values: pd.Series, unit: str) -> pd.Series:
    """Convert timestamps to datetime64, reading numbers as Unix epoch."""
    if pd.api.types.is_datetime64_any_dtype(values):
        converted = values
    else:
        try:
            if pd.api.types.is_numeric_dtype(values):
                converted = pd.to_datetime(values, unit=unit)
            else:
                converted = pd.to_datetime(values)
        except (TypeError, ValueError, OverflowError) as e:
            raise InputError(f"Unparseable timestamps: {e}") from e

    if converted.isna().any():
        raise InputError(f"Found {int(converted.isna().sum())} missing timestamps")
    return converted
