"""
Unit tests for swing detection and regular divergences.
"""

import pandas as pd

from patternsight.indicators.divergence import (
    detect_regular_bearish_divergence,
    detect_regular_bullish_divergence,
    find_swing_highs,
    find_swing_lows,
)


LOWS = [10, 9, 8, 7, 8, 9, 10, 9, 8, 6.5, 8, 9, 10]


class TestSwings:
    """Tests for swing high/low detection."""

    def test_swing_lows(self):
        assert find_swing_lows(pd.Series(LOWS), lookback=3) == [3, 9]

    def test_swing_highs_of_mirrored_series(self):
        highs = pd.Series([20 - v for v in LOWS])

        assert find_swing_highs(highs, lookback=3) == [3, 9]

    def test_plateau_is_not_a_swing(self):
        assert find_swing_highs(pd.Series([1, 2, 3, 3, 2, 1, 0]), lookback=2) == []


class TestDivergence:
    """Tests for regular bullish/bearish divergences."""

    def test_bullish_divergence(self):
        df = pd.DataFrame({'low': LOWS})
        indicator = pd.Series([50.0] * len(LOWS))
        indicator.iloc[3] = 30.0
        indicator.iloc[9] = 35.0

        result = detect_regular_bullish_divergence(df, indicator, 'rsi', lookback=3)

        assert result is not None
        assert result.is_bullish()
        assert (result.pivot_1, result.pivot_2) == (3, 9)
        assert result.price_value_2 < result.price_value_1
        assert 0 < result.strength <= 100

    def test_no_divergence_when_indicator_confirms(self):
        df = pd.DataFrame({'low': LOWS})
        indicator = pd.Series([50.0] * len(LOWS))
        indicator.iloc[3] = 30.0
        indicator.iloc[9] = 25.0

        assert detect_regular_bullish_divergence(df, indicator, 'rsi', lookback=3) is None

    def test_bearish_divergence(self):
        df = pd.DataFrame({'high': [20 - v for v in LOWS]})
        indicator = pd.Series([50.0] * len(LOWS))
        indicator.iloc[3] = 72.0
        indicator.iloc[9] = 66.0

        result = detect_regular_bearish_divergence(df, indicator, 'rsi', lookback=3)

        assert result is not None
        assert result.is_bearish()
        assert result.to_dict()['pivots'] == [3, 9]

    def test_undefined_indicator_at_pivot(self):
        df = pd.DataFrame({'low': LOWS})
        indicator = pd.Series([float('nan')] * len(LOWS))

        assert detect_regular_bullish_divergence(df, indicator, 'rsi', lookback=3) is None
