"""
Unit tests for composite strategy matchers.

Tests:
- Triple Confirmation Bounce: every sub-condition on one bar
- 2-3 Day Swing Trade: breakout and bounce variants, probability bonuses
- Intraday Gap-Up Breakout on the first bar of a session
"""

import pandas as pd
import pytest

from patternsight.data.normalizer import normalize_series
from patternsight.services.indicator_service import IndicatorService
from patternsight.shared.models.indicators import IndicatorSet
from patternsight.shared.models.patterns import Level
from patternsight.strategy.patterns.base import MatchContext
from patternsight.strategy.patterns.composite import (
    GapBreakoutMatcher,
    SwingStrategyMatcher,
    SwingTradeMatcher,
)
from patternsight.tests.fixtures.market_data import GAP_INDEX, frame_from_closes, make_gap_session_df


SWING_CLOSES = [100.0, 99.0, 98.0, 99.0, 100.5]


def _swing_context(histogram=(-0.5, -0.4, -0.3, -0.1, 0.2), levels=(), volume_ma=None):
    df = normalize_series(frame_from_closes(SWING_CLOSES))
    n = len(df)
    arrays = dict(
        sma_50=pd.Series([100.0] * n),
        sma_200=pd.Series([95.0] * n),
        rsi=pd.Series([30.0, 25.0, 28.0, 32.0, 36.0]),
        macd_histogram=pd.Series(list(histogram)),
    )
    if volume_ma is not None:
        arrays['volume_ma'] = pd.Series([volume_ma] * n)
    return MatchContext(df=df, indicators=IndicatorSet(length=n, **arrays), levels=list(levels))


class TestSwingStrategy:
    """Tests for SwingStrategyMatcher."""

    def test_all_conditions_hold(self):
        patterns = SwingStrategyMatcher().match(_swing_context())

        assert len(patterns) == 1
        bounce = patterns[0]
        assert bounce.name == "Triple Confirmation Bounce"
        assert (bounce.start_index, bounce.end_index) == (2, 4)
        assert bounce.strategy == 'swing'
        assert all(bounce.conditions.values())
        assert bounce.stop_loss == pytest.approx(100.0 * 0.98)
        assert bounce.target_price == pytest.approx(100.5 + 100.5 * 0.05)
        assert bounce.probability == 72.0

    def test_conditions_report(self):
        ctx = _swing_context(histogram=(-0.5, -0.4, -0.3, -0.2, -0.1))
        conditions, support = SwingStrategyMatcher().conditions(ctx, 4)

        assert conditions == {
            'uptrend': True,
            'at_support': True,
            'rsi_recovering': True,
            'macd_turning_positive': False,
        }
        assert support is None

    def test_failed_condition_suppresses_signal(self):
        ctx = _swing_context(histogram=(-0.5, -0.4, -0.3, -0.2, -0.1))

        assert SwingStrategyMatcher().match(ctx) == []

    def test_undefined_inputs(self):
        """RSI is needed on the two bars before the evaluated one."""
        ctx = _swing_context()

        assert SwingStrategyMatcher().conditions(ctx, 1) is None
        assert SwingStrategyMatcher().evaluate(ctx, 1) is None

    def test_support_level_and_volume_bonuses(self):
        support = Level(99.8, 'Support', 4, 0, 2)
        ctx = _swing_context(levels=[support], volume_ma=500.0)
        bounce = SwingStrategyMatcher().match(ctx)[0]

        assert bounce.stop_loss == pytest.approx(99.8 * 0.98)
        assert bounce.probability == pytest.approx(72.0 + 8 + 5)

    def test_future_level_not_used(self):
        """A level first touched after the bar cannot confirm it."""
        _, support = SwingStrategyMatcher().conditions(
            _swing_context(levels=[Level(99.8, 'Support', 4, 10, 20)]), 4
        )

        assert support is None


TRADE_CLOSES = [100.0, 100.5, 101.0, 101.5, 102.5]


def _trade_context(levels=(), last_volume=1500.0, atr=1.0):
    df = normalize_series(frame_from_closes(TRADE_CLOSES))
    df.loc[len(df) - 1, 'volume'] = last_volume
    n = len(df)
    arrays = dict(
        sma_50=pd.Series([100.0] * n),
        sma_200=pd.Series([95.0] * n),
        rsi=pd.Series([45.0, 48.0, 49.0, 52.0, 56.0]),
        macd_line=pd.Series([-0.3, -0.2, -0.1, 0.05, 0.2]),
        macd_signal=pd.Series([0.0] * n),
        volume_ma=pd.Series([1000.0] * n),
    )
    if atr is not None:
        arrays['atr'] = pd.Series([atr] * n)
    return MatchContext(df=df, indicators=IndicatorSet(length=n, **arrays), levels=list(levels))


class TestSwingTrade:
    """Tests for SwingTradeMatcher."""

    def test_resistance_breakout(self):
        ctx = _trade_context(levels=[Level(102.0, 'Resistance', 3, 0, 2)])
        patterns = SwingTradeMatcher().match(ctx)

        assert len(patterns) == 1
        trade = patterns[0]
        assert trade.name == "2-3 Day Swing Trade"
        assert trade.code == "ST"
        assert trade.signal == 'Bullish'
        assert (trade.start_index, trade.end_index) == (2, 4)
        assert trade.strategy == 'swing'
        assert all(trade.conditions.values())
        assert trade.entry_price == pytest.approx(102.5)
        assert trade.stop_loss == pytest.approx(102.5 - 1.5)
        assert trade.target_price == pytest.approx(102.5 + 2.0)
        # table value + breakout + RSI above 55
        assert trade.probability == pytest.approx(75.0 + 7 + 5)
        assert trade.confidence == 'High'

    def test_support_bounce(self):
        ctx = _trade_context(levels=[Level(101.3, 'Support', 3, 0, 2)])
        trade = SwingTradeMatcher().match(ctx)[0]

        assert trade.probability == pytest.approx(75.0 + 5)
        assert trade.confidence == 'Medium'

    def test_conditions_without_volume_surge(self):
        ctx = _trade_context(levels=[Level(102.0, 'Resistance', 3, 0, 2)], last_volume=1100.0)
        conditions, action = SwingTradeMatcher().conditions(ctx, 4)

        assert conditions == {
            'uptrend': True,
            'volume_surge': False,
            'momentum': True,
            'price_action': True,
        }
        assert action[0] == 'breakout'
        assert SwingTradeMatcher().match(ctx) == []

    def test_no_level_interaction(self):
        ctx = _trade_context()

        assert SwingTradeMatcher().conditions(ctx, 4)[0]['price_action'] is False
        assert SwingTradeMatcher().match(ctx) == []

    def test_future_level_not_used(self):
        ctx = _trade_context(levels=[Level(102.0, 'Resistance', 3, 8, 12)])

        assert SwingTradeMatcher().match(ctx) == []

    def test_undefined_atr(self):
        ctx = _trade_context(levels=[Level(102.0, 'Resistance', 3, 0, 2)], atr=None)

        assert SwingTradeMatcher().evaluate(ctx, 4) is None


class TestGapBreakout:
    """Tests for GapBreakoutMatcher."""

    @pytest.fixture
    def gap_context(self):
        df = normalize_series(make_gap_session_df())
        return MatchContext(df=df, indicators=IndicatorService().compute(df))

    def test_gap_up_at_session_open(self, gap_context):
        patterns = GapBreakoutMatcher().match(gap_context)

        assert len(patterns) == 1
        gap = patterns[0]
        bar = gap_context.df.iloc[GAP_INDEX]
        assert (gap.start_index, gap.end_index) == (GAP_INDEX - 1, GAP_INDEX)
        assert gap.strategy == 'intraday'
        assert gap.entry_price == pytest.approx(bar['high'])
        assert gap.stop_loss == pytest.approx(bar['open'] * 0.98)
        prev_close = gap_context.df['close'].iloc[GAP_INDEX - 1]
        assert gap.target_price == pytest.approx(bar['high'] + 2 * (bar['open'] - prev_close))

    def test_conditions_at_gap_bar(self, gap_context):
        conditions = GapBreakoutMatcher().conditions(gap_context, GAP_INDEX, session_open=True)

        assert conditions == {
            'session_open': True,
            'gap_up': True,
            'volume_surge': True,
            'rsi_in_range': True,
            'above_sma20': True,
        }

    def test_mid_session_bar_is_not_a_gap(self, gap_context):
        conditions = GapBreakoutMatcher().conditions(gap_context, GAP_INDEX + 1, session_open=False)

        assert conditions['session_open'] is False
        assert conditions['gap_up'] is False

    def test_without_volume_surge(self):
        df = normalize_series(make_gap_session_df())
        df.loc[GAP_INDEX, 'volume'] = 1000.0
        ctx = MatchContext(df=df, indicators=IndicatorService().compute(df))

        assert GapBreakoutMatcher().match(ctx) == []
