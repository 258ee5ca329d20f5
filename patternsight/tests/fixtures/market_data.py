"""
Reusable market data fixtures for testing.

Provides seeded random walks and hand-built scenarios whose patterns are
known in advance.
"""

from typing import List, Sequence

import numpy as np
import pandas as pd

from patternsight.shared.models.data import OHLCV


def make_ohlcv_df(
    n: int = 120,
    base_price: float = 100.0,
    volatility: float = 0.02,
    base_volume: float = 1000.0,
    freq: str = '1h',
    seed: int = 42,
) -> pd.DataFrame:
    """Generate a seeded random-walk OHLCV frame with a timestamp column."""
    np.random.seed(seed)

    timestamps = pd.date_range(start='2024-01-01', periods=n, freq=freq)

    returns = np.random.normal(0, volatility, n)
    close = base_price * np.exp(np.cumsum(returns))
    open_price = np.roll(close, 1)
    open_price[0] = base_price

    # Wicks around the body so every candle is consistent
    high = np.maximum(open_price, close) * (1 + np.abs(np.random.normal(0, volatility / 2, n)))
    low = np.minimum(open_price, close) * (1 - np.abs(np.random.normal(0, volatility / 2, n)))

    volume = base_volume * np.abs(np.random.normal(1, 0.3, n))

    return pd.DataFrame({
        'timestamp': timestamps,
        'open': open_price,
        'high': high,
        'low': low,
        'close': close,
        'volume': volume,
    })


def frame_from_rows(rows: Sequence[Sequence[float]], freq: str = '1D', volume: float = 1000.0) -> pd.DataFrame:
    """Build a frame from (open, high, low, close) rows with constant volume."""
    opens, highs, lows, closes = zip(*rows)
    return pd.DataFrame({
        'timestamp': pd.date_range(start='2024-01-01', periods=len(rows), freq=freq),
        'open': opens,
        'high': highs,
        'low': lows,
        'close': closes,
        'volume': [volume] * len(rows),
    })


def frame_from_closes(closes: Sequence[float], wick: float = 0.3, freq: str = '1D',
                      volume: float = 1000.0) -> pd.DataFrame:
    """
    Candles that move from close to close.

    Each bar opens halfway between the previous close and its own close
    (the first bar opens at its close), with ``wick`` above and below the
    body.
    """
    rows = []
    previous = closes[0]
    for close in closes:
        open_price = (previous + close) / 2
        rows.append((open_price, max(open_price, close) + wick, min(open_price, close) - wick, close))
        previous = close
    return frame_from_rows(rows, freq=freq, volume=volume)


def make_flat_df(n: int = 60, price: float = 100.0, volume: float = 1000.0) -> pd.DataFrame:
    """Constant series: every bar opens, closes and ranges at one price."""
    return frame_from_rows([(price, price, price, price)] * n, volume=volume)


def make_morning_star_df() -> pd.DataFrame:
    """
    30 bars: a slow decline into 100, a Morning Star on bars 26-28, one
    quiet bar.

    The star bars are 100 -> 95, an indecision bar inside 93-94 and
    96 -> 102. Decline bars have bodies of half their range and step down
    without overlapping, so no other shape fires anywhere in the series.
    """
    rows = []
    for k in range(26):
        open_price = 113.5 - 0.5 * k
        close = open_price - 0.25
        rows.append((open_price, open_price + 0.125, close - 0.125, close))

    rows += [
        (100.0, 100.3, 94.7, 95.0),   # long bearish candle
        (93.3, 94.0, 93.0, 93.6),     # small indecision candle, body 30% of range
        (96.0, 102.3, 95.7, 102.0),   # long bullish candle closing above the first midpoint
        (102.0, 102.6, 101.7, 102.3),
    ]
    return frame_from_rows(rows)


MORNING_STAR_INDEX = 28


def make_support_hammer_df() -> pd.DataFrame:
    """
    Sawtooth with three lows at 95.0 (bars 6, 18, 30) and a Hammer
    closing at 95.2 on the last bar (36).
    """
    closes = [95.3 + 0.8 * abs((k % 12) - 6) for k in range(31)]
    closes += [96.1, 96.9, 97.7, 96.9, 96.1]
    df = frame_from_closes(closes)

    hammer = pd.DataFrame({
        'timestamp': [df['timestamp'].iloc[-1] + pd.Timedelta(days=1)],
        'open': [95.10],
        'high': [95.205],
        'low': [94.85],
        'close': [95.20],
        'volume': [1000.0],
    })
    return pd.concat([df, hammer], ignore_index=True)


SUPPORT_TOUCH_INDICES = (6, 18, 30)
HAMMER_INDEX = 36


def make_golden_cross_df(n: int = 300) -> pd.DataFrame:
    """200 declining bars followed by a steep advance: SMA50 crosses above SMA200."""
    closes = [150.0 - 0.25 * k if k < 200 else 100.0 + 1.5 * (k - 200) for k in range(n)]
    rows = []
    previous = closes[0]
    for close in closes:
        rows.append((previous, max(previous, close) + 0.5, min(previous, close) - 0.5, close))
        previous = close
    return frame_from_rows(rows)


def make_gap_session_df() -> pd.DataFrame:
    """
    Hourly bars over two days, with the first bar of day two gapping up on
    heavy volume.

    Day one drifts up gently so RSI sits in the middle of its range and
    close stays above its 20-bar average.
    """
    timestamps = list(pd.date_range(start='2024-03-01 00:00', periods=24, freq='1h'))
    timestamps += list(pd.date_range(start='2024-03-02 00:00', periods=3, freq='1h'))

    steps = (0.3, -0.25, 0.25, -0.2)
    closes = []
    price = 100.0
    for k in range(24):
        price += steps[k % 4]
        closes.append(price)

    rows = []
    previous = 100.0
    for close in closes:
        rows.append((previous, max(previous, close) + 0.1, min(previous, close) - 0.1, close))
        previous = close

    gap_open = previous * 1.01
    rows.append((gap_open, gap_open + 0.8, gap_open - 0.1, gap_open + 0.6))
    rows.append((gap_open + 0.6, gap_open + 0.9, gap_open + 0.4, gap_open + 0.7))
    rows.append((gap_open + 0.7, gap_open + 1.0, gap_open + 0.5, gap_open + 0.8))

    opens, highs, lows, closes = zip(*rows)
    volume = [1000.0] * 24 + [3000.0, 1000.0, 1000.0]
    return pd.DataFrame({
        'timestamp': timestamps,
        'open': opens,
        'high': highs,
        'low': lows,
        'close': closes,
        'volume': volume,
    })


GAP_INDEX = 24


def df_to_bars(df: pd.DataFrame) -> List[OHLCV]:
    """Convert a frame into OHLCV objects."""
    return [
        OHLCV(
            timestamp=row.timestamp,
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        )
        for row in df.itertuples(index=False)
    ]
