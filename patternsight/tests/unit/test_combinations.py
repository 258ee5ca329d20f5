"""
Unit tests for the advanced combination matcher.

Most scenarios use a quiet 60-bar series with hand-set indicator arrays so
that exactly one detector has the inputs it needs. Divergence scenarios
place two price pivots at bars N-12 and N-5 of the quiet series.
"""

import numpy as np
import pandas as pd
import pytest

from patternsight.data.normalizer import normalize_series
from patternsight.indicators.moving_averages import compute_sma
from patternsight.services.indicator_service import IndicatorService
from patternsight.shared.models.indicators import IndicatorSet
from patternsight.shared.models.patterns import Level
from patternsight.strategy.patterns.base import MatchContext
from patternsight.strategy.patterns.combinations import CombinationMatcher
from patternsight.tests.fixtures.market_data import (
    frame_from_closes,
    frame_from_rows,
    make_golden_cross_df,
    make_ohlcv_df,
)


N = 60
QUIET = (100.0, 100.3, 99.7, 100.0)


def _tail(values, n=N):
    """Full-length indicator array, undefined except for the last values."""
    return pd.Series([np.nan] * (n - len(values)) + list(values), dtype=float)


def _context(df, levels=(), **arrays):
    df = normalize_series(df)
    indicators = IndicatorSet(length=len(df), **{name: _tail(v, len(df)) for name, v in arrays.items()})
    return MatchContext(df=df, indicators=indicators, levels=list(levels))


def _quiet_closes(*last):
    return frame_from_closes([100.0] * (N - len(last)) + list(last))


def _named(ctx, name):
    return [p for p in CombinationMatcher().match(ctx) if p.name == name]


class TestMinimumHistory:
    """Tests for the minimum bar count."""

    def test_short_series_returns_nothing(self):
        df = normalize_series(make_ohlcv_df(n=40))
        ctx = MatchContext(df=df, indicators=IndicatorService().compute(df))

        assert CombinationMatcher().match(ctx) == []


class TestCrosses:
    """Tests for MACD, Stochastic and moving-average crosses."""

    def test_macd_bullish_cross(self):
        ctx = _context(_quiet_closes(), macd_line=[-0.2, 0.1, 0.2], macd_signal=[0.0, 0.0, 0.0])
        found = _named(ctx, "MACD Bullish Cross")

        assert len(found) == 1
        cross = found[0]
        assert (cross.start_index, cross.end_index) == (N - 3, N - 1)
        assert cross.code == "MX+"
        assert cross.stop_loss == pytest.approx(100.0 - 0.6 * 1.5)
        assert cross.risk_reward == pytest.approx(2.0)
        assert cross.indicators == ('macd_line', 'macd_signal')

    def test_cross_must_still_hold(self):
        ctx = _context(_quiet_closes(), macd_line=[-0.2, 0.1, 0.0], macd_signal=[0.0, 0.0, 0.0])

        assert _named(ctx, "MACD Bullish Cross") == []

    def test_macd_bearish_cross(self):
        ctx = _context(_quiet_closes(), macd_line=[0.3, 0.1, -0.1], macd_signal=[0.0, 0.0, 0.0])
        cross = _named(ctx, "MACD Bearish Cross")[0]

        assert cross.signal == 'Bearish'
        assert cross.target_price < cross.entry_price < cross.stop_loss

    def test_stochastic_cross_in_oversold_zone(self):
        ctx = _context(_quiet_closes(), stoch_k=[10.0, 15.0], stoch_d=[12.0, 13.0])
        cross = _named(ctx, "Stochastic Bullish Cross")[0]

        assert (cross.start_index, cross.end_index) == (N - 2, N - 1)
        assert cross.confidence == 'Medium'

    def test_stochastic_cross_outside_zone(self):
        ctx = _context(_quiet_closes(), stoch_k=[40.0, 45.0], stoch_d=[42.0, 43.0])

        assert CombinationMatcher().match(ctx) == []

    def test_golden_cross(self):
        df = make_golden_cross_df()
        spread = compute_sma(df, 50) - compute_sma(df, 200)
        cross_index = next(k for k in range(1, len(df)) if spread[k - 1] <= 0 < spread[k])

        frame = normalize_series(df.iloc[:cross_index + 3])
        ctx = MatchContext(df=frame, indicators=IndicatorService().compute(frame))
        found = [p for p in CombinationMatcher().match(ctx) if p.code in ("GC", "DC")]

        assert len(found) == 1
        golden = found[0]
        assert golden.name == "Golden Cross"
        assert golden.start_index <= cross_index <= golden.end_index
        assert golden.end_index == len(frame) - 1
        assert golden.stop_loss < golden.entry_price < golden.target_price


class TestMomentum:
    """Tests for MACD histogram acceleration."""

    def test_rising_histogram(self):
        ctx = _context(_quiet_closes(), macd_histogram=[0.1, 0.2, 0.3])
        found = _named(ctx, "MACD Bullish Acceleration")

        assert len(found) == 1
        assert found[0].start_index == N - 3

    def test_flat_step_is_not_acceleration(self):
        ctx = _context(_quiet_closes(), macd_histogram=[0.1, 0.2, 0.2])

        assert _named(ctx, "MACD Bullish Acceleration") == []

    def test_falling_histogram_needs_negative_value(self):
        ctx = _context(_quiet_closes(), macd_histogram=[0.3, 0.2, 0.1])

        assert _named(ctx, "MACD Bearish Acceleration") == []


class TestVWAP:
    """Tests for VWAP reclaim and rejection."""

    def test_bullish_reclaim(self):
        ctx = _context(_quiet_closes(99.8, 100.5), vwap=[100.0, 99.5])
        reclaim = _named(ctx, "VWAP Bullish Reclaim")[0]

        assert reclaim.stop_loss == pytest.approx(99.5 * 0.995)
        assert reclaim.entry_price == pytest.approx(100.5)

    def test_bearish_rejection(self):
        ctx = _context(_quiet_closes(100.5, 99.8), vwap=[100.0, 100.2])
        rejection = _named(ctx, "VWAP Bearish Rejection")[0]

        assert rejection.signal == 'Bearish'
        assert rejection.stop_loss == pytest.approx(100.2 * 1.005)


class TestLevelInteractions:
    """Tests for breakouts, sweeps and pullbacks at levels."""

    def test_breakout_with_volume(self):
        df = _quiet_closes(100.0, 101.5)
        df.loc[N - 1, 'volume'] = 2000.0
        ctx = _context(df, levels=[Level(101.0, 'Resistance', 3, 10, 40)], volume_ma=[1000.0] * N)
        breakout = _named(ctx, "Breakout above Resistance + Volume Surge")[0]

        assert breakout.code == "BRV"
        assert breakout.stop_loss == pytest.approx(101.0 * 0.99)
        assert breakout.risk_reward == pytest.approx(2.3)

    def test_breakout_without_volume(self):
        ctx = _context(
            _quiet_closes(100.0, 101.5),
            levels=[Level(101.0, 'Resistance', 3, 10, 40)],
            volume_ma=[1000.0] * N,
        )

        assert _named(ctx, "Breakout above Resistance + Volume Surge") == []

    def test_bullish_liquidity_sweep(self):
        rows = [QUIET] * (N - 1) + [(99.9, 100.2, 99.2, 100.1)]
        ctx = _context(frame_from_rows(rows), levels=[Level(99.5, 'Support', 3, 5, 40)])
        sweep = _named(ctx, "Liquidity Sweep")[0]

        assert sweep.signal == 'Bullish'
        assert sweep.stop_loss == pytest.approx(99.2 * 0.995)
        # table value + closed inside prior range + strong level
        assert sweep.probability == pytest.approx(68.9 + 7 + 5)
        assert sweep.confidence == 'Medium'

    def test_bullish_engulfing_at_support(self):
        rows = [QUIET] * (N - 2) + [(100.0, 100.1, 99.3, 99.4), (99.3, 100.4, 99.2, 100.3)]
        ctx = _context(frame_from_rows(rows), levels=[Level(99.5, 'Support', 2, 5, 40)])
        found = _named(ctx, "Bullish Engulfing + Support Zone")

        assert len(found) == 1
        assert found[0].stop_loss == pytest.approx(99.5 * 0.98)
        assert found[0].risk_reward == pytest.approx(2.1)

    def test_ema_pullback(self):
        ctx = _context(_quiet_closes(100.0, 101.0), ema_20=[100.2], ema_50=[99.5])
        pullback = _named(ctx, "EMA 20/50 Pullback")[0]

        assert pullback.signal == 'Bullish'
        assert pullback.stop_loss == pytest.approx(100.2 * 0.985)
        # EMA 20 within 2% of EMA 50, no volume confirmation
        assert pullback.probability == pytest.approx(72.8 + 5)
        assert pullback.confidence == 'Medium'


BULLISH_PIVOTS = ((100.0, 100.3, 99.0, 100.0), (100.0, 100.3, 98.5, 100.0))
BEARISH_PIVOTS = ((100.0, 101.0, 99.7, 100.0), (100.0, 101.5, 99.7, 100.0))


def _pivot_frame(pivots):
    """Quiet series with swing pivots at bars N-12 and N-5."""
    rows = [QUIET] * N
    rows[N - 12], rows[N - 5] = pivots
    return frame_from_rows(rows)


# Twelve values ending at the last bar: N-12 is index 0, N-5 is index 7
RISING_RSI = [32.0, 35.0, 36.0, 37.0, 38.0, 39.0, 40.0, 38.0, 38.0, 39.0, 40.0, 41.0]
FALLING_RSI = [68.0, 65.0, 64.0, 63.0, 62.0, 61.0, 60.0, 62.0, 62.0, 61.0, 60.0, 60.0]


class TestDivergences:
    """Tests for RSI and MACD histogram divergences."""

    def test_rsi_bullish_divergence(self):
        ctx = _context(_pivot_frame(BULLISH_PIVOTS), rsi=RISING_RSI)
        found = _named(ctx, "RSI Bullish Divergence")

        assert len(found) == 1
        divergence = found[0]
        assert divergence.signal == 'Bullish'
        assert (divergence.start_index, divergence.end_index) == (N - 21, N - 1)
        assert divergence.stop_loss == pytest.approx(98.5 * 0.98)
        assert divergence.stop_loss < divergence.entry_price < divergence.target_price
        assert divergence.indicators == ('rsi',)

    def test_rsi_outside_entry_zone(self):
        ctx = _context(_pivot_frame(BULLISH_PIVOTS), rsi=RISING_RSI[:-1] + [50.0])

        assert _named(ctx, "RSI Bullish Divergence") == []

    def test_rsi_bearish_divergence(self):
        ctx = _context(_pivot_frame(BEARISH_PIVOTS), rsi=FALLING_RSI)
        divergence = _named(ctx, "RSI Bearish Divergence")[0]

        assert divergence.signal == 'Bearish'
        assert (divergence.start_index, divergence.end_index) == (N - 21, N - 1)
        assert divergence.stop_loss == pytest.approx(101.5 * 1.02)
        assert divergence.target_price < divergence.entry_price < divergence.stop_loss

    def test_macd_bullish_divergence(self):
        histogram = [-0.5, -0.4, -0.35, -0.3, -0.3, -0.25, -0.22, -0.2, -0.18, -0.15, -0.1, -0.05]
        ctx = _context(_pivot_frame(BULLISH_PIVOTS), macd_histogram=histogram)
        divergence = _named(ctx, "MACD Bullish Divergence")[0]

        assert divergence.signal == 'Bullish'
        assert (divergence.start_index, divergence.end_index) == (N - 21, N - 1)
        assert divergence.stop_loss == pytest.approx(98.5 * 0.98)
        assert divergence.stop_loss < divergence.entry_price < divergence.target_price

    def test_macd_confirming_low_is_not_divergence(self):
        histogram = [-0.2, -0.25, -0.3, -0.35, -0.4, -0.45, -0.48, -0.5, -0.45, -0.4, -0.35, -0.3]
        ctx = _context(_pivot_frame(BULLISH_PIVOTS), macd_histogram=histogram)

        assert _named(ctx, "MACD Bullish Divergence") == []

    def test_macd_bearish_divergence(self):
        histogram = [0.5, 0.45, 0.4, 0.35, 0.3, 0.25, 0.22, 0.2, 0.2, 0.2, 0.2, 0.2]
        ctx = _context(_pivot_frame(BEARISH_PIVOTS), macd_histogram=histogram)
        divergence = _named(ctx, "MACD Bearish Divergence")[0]

        assert divergence.signal == 'Bearish'
        assert (divergence.start_index, divergence.end_index) == (N - 21, N - 1)
        assert divergence.stop_loss == pytest.approx(101.5 * 1.02)
        assert divergence.target_price < divergence.entry_price < divergence.stop_loss

    def test_rsi_divergence_at_support(self):
        support = Level(99.0, 'Support', 4, 5, 40)
        ctx = _context(_pivot_frame(BULLISH_PIVOTS), levels=[support], rsi=RISING_RSI)
        found = _named(ctx, "RSI Divergence + Support")

        assert len(found) == 1
        setup = found[0]
        assert setup.signal == 'Bullish'
        assert (setup.start_index, setup.end_index) == (N - 21, N - 1)
        assert setup.stop_loss == pytest.approx(99.0 * 0.97)
        assert setup.risk_reward == pytest.approx(2.5)
        # table value + level with more than three touches
        assert setup.probability == pytest.approx(78.0 + 5)

    def test_rsi_divergence_away_from_support(self):
        ctx = _context(_pivot_frame(BULLISH_PIVOTS), levels=[Level(95.0, 'Support', 4, 5, 40)], rsi=RISING_RSI)

        assert _named(ctx, "RSI Divergence + Support") == []


class TestMovingAverageCrosses:
    """Tests for the 50/200 SMA cross variants."""

    def test_death_cross(self):
        ctx = _context(_quiet_closes(), sma_50=[100.5, 99.5, 99.4], sma_200=[100.0] * 3)
        found = _named(ctx, "Death Cross")

        assert len(found) == 1
        cross = found[0]
        assert cross.signal == 'Bearish'
        assert (cross.start_index, cross.end_index) == (N - 3, N - 1)
        assert cross.stop_loss == pytest.approx(100.0 + 0.6 * 1.5)
        assert cross.target_price < cross.entry_price < cross.stop_loss

    def test_death_cross_without_failed_rally(self):
        """Close above the 50 SMA is not a failed rally."""
        ctx = _context(_quiet_closes(), sma_50=[100.5, 99.5, 99.4], sma_200=[100.0] * 3)

        assert _named(ctx, "Death Cross + Failed Rally to 50 MA") == []

    def test_death_cross_failed_rally(self):
        rows = [QUIET] * (N - 1) + [(100.0, 100.3, 99.0, 99.2)]
        ctx = _context(frame_from_rows(rows), sma_50=[100.5, 99.5, 99.4], sma_200=[100.0] * 3)
        found = _named(ctx, "Death Cross + Failed Rally to 50 MA")

        assert len(found) == 1
        rally = found[0]
        assert rally.signal == 'Bearish'
        assert (rally.start_index, rally.end_index) == (N - 3, N - 1)
        assert rally.stop_loss == pytest.approx(99.4 * 1.03)
        assert rally.risk_reward == pytest.approx(1.5)
        assert rally.target_price < rally.entry_price < rally.stop_loss

    def test_golden_cross_pullback(self):
        ctx = _context(_quiet_closes(), sma_50=[99.0, 99.6, 99.8], sma_200=[99.5] * 3)
        found = _named(ctx, "Golden Cross + Pullback to 50 MA")

        assert len(found) == 1
        pullback = found[0]
        assert pullback.signal == 'Bullish'
        assert (pullback.start_index, pullback.end_index) == (N - 3, N - 1)
        assert pullback.stop_loss == pytest.approx(99.8 * 0.97)
        assert pullback.risk_reward == pytest.approx(1.5)
        assert pullback.stop_loss < pullback.entry_price < pullback.target_price

    def test_golden_cross_without_touch(self):
        """Bar low stays above the 50 SMA."""
        ctx = _context(_quiet_closes(), sma_50=[99.0, 99.6, 99.6], sma_200=[99.5] * 3)

        assert _named(ctx, "Golden Cross + Pullback to 50 MA") == []
        assert len(_named(ctx, "Golden Cross")) == 1


class TestLevelBreakdowns:
    """Tests for bearish level interactions."""

    def test_bearish_engulfing_at_resistance(self):
        rows = [QUIET] * (N - 2) + [(99.8, 100.5, 99.7, 100.4), (100.5, 100.6, 99.6, 99.7)]
        ctx = _context(frame_from_rows(rows), levels=[Level(100.8, 'Resistance', 3, 5, 40)])
        found = _named(ctx, "Bearish Engulfing + Resistance Zone")

        assert len(found) == 1
        engulfing = found[0]
        assert engulfing.signal == 'Bearish'
        assert (engulfing.start_index, engulfing.end_index) == (N - 2, N - 1)
        assert engulfing.stop_loss == pytest.approx(100.8 * 1.02)
        assert engulfing.risk_reward == pytest.approx(2.1)
        assert engulfing.target_price < engulfing.entry_price < engulfing.stop_loss

    def test_bearish_engulfing_without_resistance(self):
        rows = [QUIET] * (N - 2) + [(99.8, 100.5, 99.7, 100.4), (100.5, 100.6, 99.6, 99.7)]
        ctx = _context(frame_from_rows(rows), levels=[Level(97.0, 'Support', 3, 5, 40)])

        assert _named(ctx, "Bearish Engulfing + Resistance Zone") == []

    def test_breakdown_with_volume(self):
        df = _quiet_closes(100.0, 98.5)
        df.loc[N - 1, 'volume'] = 2000.0
        ctx = _context(df, levels=[Level(99.0, 'Support', 3, 10, 40)], volume_ma=[1000.0] * N)
        found = _named(ctx, "Breakdown below Support + Volume Spike")

        assert len(found) == 1
        breakdown = found[0]
        assert breakdown.code == "BSV"
        assert breakdown.signal == 'Bearish'
        assert (breakdown.start_index, breakdown.end_index) == (N - 2, N - 1)
        assert breakdown.stop_loss == pytest.approx(99.0 * 1.01)
        assert breakdown.risk_reward == pytest.approx(2.3)
        assert breakdown.target_price < breakdown.entry_price < breakdown.stop_loss

    def test_breakdown_without_volume(self):
        ctx = _context(
            _quiet_closes(100.0, 98.5),
            levels=[Level(99.0, 'Support', 3, 10, 40)],
            volume_ma=[1000.0] * N,
        )

        assert _named(ctx, "Breakdown below Support + Volume Spike") == []
