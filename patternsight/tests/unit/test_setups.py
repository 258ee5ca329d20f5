"""
Unit tests for the opening range, VWAP and sharp-drop setups.

Scenarios use a quiet 60-bar series (open 100, high 100.3, low 99.7,
close 100) with a hand-built last bar and hand-set indicator arrays.
"""

import numpy as np
import pandas as pd
import pytest

from patternsight.data.normalizer import normalize_series
from patternsight.services.indicator_service import IndicatorService
from patternsight.shared.models.indicators import IndicatorSet
from patternsight.strategy.patterns.base import MatchContext
from patternsight.strategy.patterns.setups import SetupMatcher
from patternsight.tests.fixtures.market_data import frame_from_rows, make_ohlcv_df


N = 60
QUIET = (100.0, 100.3, 99.7, 100.0)


def _tail(values, n=N):
    return pd.Series([np.nan] * (n - len(values)) + list(values), dtype=float)


def _frame(last, volume=1000.0, last_volume=None, rows=None):
    df = frame_from_rows(rows or [QUIET] * (N - 1) + [last], volume=volume)
    if last_volume is not None:
        df.loc[N - 1, 'volume'] = last_volume
    return df


def _context(df, **arrays):
    df = normalize_series(df)
    indicators = IndicatorSet(length=len(df), **{name: _tail(v, len(df)) for name, v in arrays.items()})
    return MatchContext(df=df, indicators=indicators)


def _named(ctx, name):
    return [p for p in SetupMatcher().match(ctx) if p.name == name]


class TestMinimumHistory:
    """Tests for the minimum bar count."""

    def test_short_series_returns_nothing(self):
        df = normalize_series(make_ohlcv_df(n=40))
        ctx = MatchContext(df=df, indicators=IndicatorService().compute(df))

        assert SetupMatcher().match(ctx) == []


class TestOpeningRangeBreakout:
    """Tests for breakouts of the opening range (bars N-15 to N-12)."""

    def test_bullish_breakout(self):
        ctx = _context(_frame((100.0, 101.0, 99.9, 100.8), last_volume=2000.0), volume_ma=[1000.0] * N)
        found = _named(ctx, "Opening Range Bullish Breakout")

        assert len(found) == 1
        orb = found[0]
        assert orb.code == "ORB+"
        assert orb.signal == 'Bullish'
        assert (orb.start_index, orb.end_index) == (N - 15, N - 1)
        assert orb.entry_price == pytest.approx(100.8)
        assert orb.stop_loss == pytest.approx(99.7 - 0.06)
        assert orb.target_price == pytest.approx(100.8 + 0.9)
        assert orb.probability == 78.0
        assert orb.confidence == 'High'

    def test_bearish_breakout(self):
        ctx = _context(_frame((100.0, 100.1, 98.9, 99.2), last_volume=2000.0), volume_ma=[1000.0] * N)
        orb = _named(ctx, "Opening Range Bearish Breakout")[0]

        assert orb.signal == 'Bearish'
        assert (orb.start_index, orb.end_index) == (N - 15, N - 1)
        assert orb.stop_loss == pytest.approx(100.3 + 0.06)
        assert orb.target_price == pytest.approx(99.2 - 0.9)
        assert orb.target_price < orb.entry_price < orb.stop_loss

    def test_breakout_needs_volume(self):
        ctx = _context(_frame((100.0, 101.0, 99.9, 100.8), last_volume=1200.0), volume_ma=[1000.0] * N)

        assert _named(ctx, "Opening Range Bullish Breakout") == []

    def test_close_inside_range(self):
        ctx = _context(_frame((100.0, 100.4, 99.8, 100.2), last_volume=2000.0), volume_ma=[1000.0] * N)

        assert SetupMatcher().match(ctx) == []


class TestVWAPBounce:
    """Tests for VWAP bounce / reject with the close-slope filter."""

    def test_bounce_without_volume(self):
        ctx = _context(_frame((100.0, 100.6, 99.9, 100.5)), vwap=[100.1], atr=[0.5])
        found = _named(ctx, "VWAP Bounce")

        assert len(found) == 1
        bounce = found[0]
        assert bounce.code == "VWB+"
        assert bounce.signal == 'Bullish'
        assert (bounce.start_index, bounce.end_index) == (N - 2, N - 1)
        assert bounce.stop_loss == pytest.approx(100.1 * 0.998)
        assert bounce.target_price == pytest.approx(100.5 + 0.75)
        assert bounce.probability == pytest.approx(70.5)
        assert bounce.confidence == 'Low'

    def test_bounce_with_volume(self):
        df = _frame((100.0, 100.6, 99.9, 100.5), last_volume=1300.0)
        ctx = _context(df, vwap=[100.1], atr=[0.5], volume_ma=[1000.0] * N)
        bounce = _named(ctx, "VWAP Bounce")[0]

        assert bounce.probability == pytest.approx(70.5 + 8)
        assert bounce.confidence == 'Medium'

    def test_reject(self):
        ctx = _context(_frame((100.0, 100.1, 99.4, 99.5)), vwap=[99.9], atr=[0.5])
        reject = _named(ctx, "VWAP Reject")[0]

        assert reject.code == "VWB-"
        assert reject.signal == 'Bearish'
        assert (reject.start_index, reject.end_index) == (N - 2, N - 1)
        assert reject.stop_loss == pytest.approx(99.9 * 1.002)
        assert reject.target_price == pytest.approx(99.5 - 0.75)

    def test_falling_slope_blocks_bounce(self):
        """Close ten bars back is higher than the current close."""
        rows = [QUIET] * (N - 11) + [(100.5, 101.2, 100.4, 101.0)] + [QUIET] * 9 + [(100.0, 100.6, 99.9, 100.5)]
        ctx = _context(_frame(None, rows=rows), vwap=[100.1], atr=[0.5])

        assert _named(ctx, "VWAP Bounce") == []
        assert _named(ctx, "VWAP Reject") == []


class TestSharpDrop:
    """Tests for the end-of-day sharp-drop bounce and continuation scores."""

    def test_bounce(self):
        """Oversold shock, capitulation volume and a low at the 50 SMA."""
        df = _frame((100.0, 100.2, 95.5, 96.0), volume=1_000_000.0, last_volume=2_000_000.0)
        ctx = _context(df, rsi=[55.0, 52.0, 33.0], volume_ma=[1_100_000.0], sma_50=[95.6])
        found = _named(ctx, "EOD Sharp Drop Bounce")

        assert len(found) == 1
        bounce = found[0]
        assert bounce.code == "SDB+"
        assert bounce.signal == 'Bullish'
        assert (bounce.start_index, bounce.end_index) == (N - 2, N - 1)
        assert bounce.probability == 90.0
        assert bounce.confidence == 'High'
        assert bounce.stop_loss == pytest.approx(95.5 * 0.98)
        assert bounce.target_price == pytest.approx(96.0 + 1.5 * (96.0 - 95.5 * 0.98))
        assert _named(ctx, "EOD Sharp Drop Continuation") == []

    def test_continuation(self):
        """Deep oversold, light volume, weak close and a falling histogram."""
        df = _frame((100.0, 100.1, 96.0, 96.2), volume=1_000_000.0, last_volume=800_000.0)
        ctx = _context(
            df,
            rsi=[35.0, 31.0, 28.0],
            volume_ma=[1_100_000.0],
            macd_histogram=[-0.1, -0.2, -0.3],
        )
        found = _named(ctx, "EOD Sharp Drop Continuation")

        assert len(found) == 1
        drop = found[0]
        assert drop.code == "SDC-"
        assert drop.signal == 'Bearish'
        assert (drop.start_index, drop.end_index) == (N - 2, N - 1)
        assert drop.probability == 90.0
        assert drop.stop_loss == pytest.approx(100.3 * 1.02)
        assert drop.target_price == pytest.approx(96.2 - 1.5 * (100.3 * 1.02 - 96.2))
        assert drop.target_price < drop.entry_price < drop.stop_loss

    def test_small_drop_ignored(self):
        df = _frame((100.0, 100.2, 97.8, 98.0), volume=1_000_000.0, last_volume=2_000_000.0)
        ctx = _context(df, rsi=[55.0, 52.0, 33.0], volume_ma=[1_100_000.0], sma_50=[97.9])

        assert SetupMatcher().match(ctx) == []

    def test_thin_liquidity_ignored(self):
        df = _frame((100.0, 100.2, 95.5, 96.0), volume=100_000.0, last_volume=200_000.0)
        ctx = _context(df, rsi=[55.0, 52.0, 33.0], volume_ma=[110_000.0], sma_50=[95.6])

        assert SetupMatcher().match(ctx) == []

    def test_weak_scores_give_no_signal(self):
        """Neither score reaches the signal threshold."""
        df = _frame((100.0, 100.2, 95.5, 96.0), volume=1_000_000.0, last_volume=1_320_000.0)
        ctx = _context(df, rsi=[55.0, 52.0, 40.0], volume_ma=[1_100_000.0])

        assert SetupMatcher().match(ctx) == []
