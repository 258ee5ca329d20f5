"""
Composite Strategy Signals

Strategy matchers AND together several sub-signals evaluated on the same
bar. A bar produces a pattern only when every condition holds; the
conditions that held are carried on the pattern for display.

Swing (Triple Confirmation Bounce):
    1. Uptrend: 50 SMA above 200 SMA and close above 200 SMA
    2. Location: close near the 50 SMA or a known support level
    3. Momentum: RSI oversold and rising
    4. MACD histogram turning positive

Swing (2-3 Day Swing Trade):
    Close above 50 SMA above 200 SMA, volume surge, RSI and MACD
    momentum, and a resistance breakout or support bounce on the bar

Intraday (Gap-Up Breakout):
    First bar of a session gapping up on volume, RSI in range, above 20 SMA
"""

from typing import Dict, List, Optional, Tuple

from loguru import logger

from patternsight.analysis.levels import levels_near
from patternsight.indicators.volume import session_ids
from patternsight.shared.config.defaults import (
    CATEGORY_COMPOSITE_INTRADAY,
    CATEGORY_COMPOSITE_SWING,
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    CONFIDENCE_MEDIUM,
)
from patternsight.shared.models.patterns import CompositePattern, Level
from patternsight.strategy.patterns.base import MatchContext, PatternMatcher, levels_are_valid
from patternsight.strategy.patterns.candlestick import (
    is_bullish_engulfing,
    is_hammer,
    is_morning_star,
)


class SwingStrategyMatcher(PatternMatcher):
    """Triple Confirmation Bounce: trend, location, momentum and MACD agree."""

    category = CATEGORY_COMPOSITE_SWING
    name = "Triple Confirmation Bounce"

    def match(self, ctx: MatchContext) -> List[CompositePattern]:
        patterns = []
        for i in range(self.thresholds.swing_rsi_rising_bars, len(ctx.df)):
            pattern = self.evaluate(ctx, i)
            if pattern is not None:
                patterns.append(pattern)

        logger.debug(f"Swing strategy matched {len(patterns)} bars")
        return patterns

    def conditions(self, ctx: MatchContext, i: int) -> Optional[Tuple[Dict[str, bool], Optional[Level]]]:
        """
        Evaluate every sub-condition at bar i.

        Returns None while any input is undefined, otherwise the
        condition map and the support level that satisfied the location
        check (if a level rather than the 50 SMA did).
        """
        t = self.thresholds
        k = t.swing_rsi_rising_bars
        sma50, sma200 = ctx.value('sma_50', i), ctx.value('sma_200', i)
        histogram = ctx.values('macd_histogram', i - 1, i)
        rsi = ctx.values('rsi', *range(i - k, i + 1))
        if sma50 is None or sma200 is None or histogram is None or rsi is None:
            return None
        hist_prev, hist = histogram

        close = ctx.close(i)
        known = [l for l in ctx.levels if l.kind == 'Support' and l.first_index <= i]
        supports = levels_near(known, close, t.swing_location_tolerance_pct, kind='Support')
        near_sma = abs(close - sma50) / sma50 <= t.swing_location_tolerance_pct

        conditions = {
            'uptrend': sma50 > sma200 and close > sma200,
            'at_support': near_sma or bool(supports),
            'rsi_recovering': rsi[-1] < t.swing_rsi_max and all(b > a for a, b in zip(rsi, rsi[1:])),
            'macd_turning_positive': hist_prev <= 0 < hist,
        }
        return conditions, (supports[0] if supports else None)

    def evaluate(self, ctx: MatchContext, i: int) -> Optional[CompositePattern]:
        result = self.conditions(ctx, i)
        if result is None:
            return None
        conditions, support = result
        if not all(conditions.values()):
            return None

        t = self.thresholds
        close = ctx.close(i)
        sma50 = ctx.value('sma_50', i)
        reference = support.price if support is not None else sma50

        stop = min(reference, close) * t.swing_stop_buffer
        risk = close - stop
        target = close + max(2 * risk, close * t.swing_min_target_pct)
        if not levels_are_valid('Bullish', close, stop, target):
            return None

        stats = self.stats(self.name)
        probability = stats.probability
        evidence = [
            "50 SMA above 200 SMA with price above the 200 SMA",
            (f"Price at support {support.price:.2f} ({support.strength} touches)"
             if support is not None else f"Price at the 50 SMA ({sma50:.2f})"),
            f"RSI {ctx.value('rsi', i):.1f} rising from oversold",
            "MACD histogram turned positive",
        ]
        ratio = ctx.volume_ratio(i)
        if ratio is not None and ratio > 1:
            probability += 8
            evidence.append(f"Volume {ratio:.1f}x average")
        if support is not None and support.strength > 3:
            probability += 5

        return CompositePattern(
            name=self.name,
            code=stats.code,
            signal='Bullish',
            confidence=stats.confidence,
            probability=min(probability, t.swing_probability_cap),
            start_index=i - t.swing_rsi_rising_bars,
            end_index=i,
            entry_price=close,
            target_price=target,
            stop_loss=stop,
            evidence=evidence,
            confirmation=["Next bar holds above the entry bar low", "Hold 2-3 bars towards target"],
            strategy='swing',
            conditions=conditions,
        )


class SwingTradeMatcher(PatternMatcher):
    """2-3 Day Swing Trade: trend, volume, momentum and price action agree."""

    category = CATEGORY_COMPOSITE_SWING
    name = "2-3 Day Swing Trade"

    def match(self, ctx: MatchContext) -> List[CompositePattern]:
        patterns = []
        for i in range(2, len(ctx.df)):
            pattern = self.evaluate(ctx, i)
            if pattern is not None:
                patterns.append(pattern)

        logger.debug(f"Swing trade strategy matched {len(patterns)} bars")
        return patterns

    def conditions(self, ctx: MatchContext, i: int) -> Optional[Tuple[Dict[str, bool], Optional[Tuple[str, Level]]]]:
        """
        Evaluate every sub-condition at bar i.

        Returns None while any input is undefined, otherwise the
        condition map and the ('breakout' | 'bounce', level) pair that
        satisfied the price-action check.
        """
        t = self.thresholds
        window = (i - 2, i - 1, i)
        rsi = ctx.values('rsi', *window)
        line = ctx.values('macd_line', *window)
        signal = ctx.values('macd_signal', *window)
        sma50, sma200 = ctx.value('sma_50', i), ctx.value('sma_200', i)
        ratio = ctx.volume_ratio(i)
        if any(v is None for v in (rsi, line, signal, sma50, sma200, ratio)):
            return None

        close = ctx.close(i)
        midline = t.swing_trade_rsi_midline
        rsi_cross = rsi[2] > midline and min(rsi[0], rsi[1]) <= midline
        spread = [l - s for l, s in zip(line, signal)]
        macd_cross = spread[2] > 0 and min(spread[0], spread[1]) <= 0
        action = self._price_action(ctx, i)

        conditions = {
            'uptrend': close > sma50 > sma200,
            'volume_surge': ratio > t.swing_trade_volume_ratio,
            'momentum': (rsi_cross or rsi[2] > t.swing_trade_rsi_strong) and macd_cross,
            'price_action': action is not None,
        }
        return conditions, action

    def _price_action(self, ctx: MatchContext, i: int) -> Optional[Tuple[str, Level]]:
        """A resistance broken on this bar, else a support the bar bounced from."""
        t = self.thresholds
        close, prev_close = ctx.close(i), ctx.close(i - 1)
        low = float(ctx.candles.low[i])
        known = [l for l in ctx.levels if l.first_index <= i]

        for level in known:
            if (level.kind == 'Resistance' and prev_close < level.price <= close
                    and (close - level.price) / level.price <= t.swing_trade_breakout_pct):
                return 'breakout', level
        for level in known:
            if (level.kind == 'Support' and low <= level.price * 1.01 and close >= level.price
                    and (close - level.price) / level.price <= t.swing_trade_bounce_pct):
                return 'bounce', level
        return None

    def evaluate(self, ctx: MatchContext, i: int) -> Optional[CompositePattern]:
        result = self.conditions(ctx, i)
        if result is None:
            return None
        conditions, action = result
        if not all(conditions.values()):
            return None

        atr = ctx.value('atr', i)
        if not atr:
            return None

        t = self.thresholds
        close = ctx.close(i)
        stop = close - t.swing_trade_stop_atr * atr
        target = close + t.swing_trade_target_atr * atr
        if not levels_are_valid('Bullish', close, stop, target):
            return None

        kind, level = action
        rsi = ctx.value('rsi', i)
        evidence = [
            "Close above the 50 SMA, 50 SMA above the 200 SMA",
            f"Volume {ctx.volume_ratio(i):.1f}x average",
            f"RSI {rsi:.1f} with MACD crossing above its signal line",
            (f"Broke resistance {level.price:.2f}" if kind == 'breakout'
             else f"Bounced from support {level.price:.2f}"),
        ]

        stats = self.stats(self.name)
        probability = stats.probability
        c = ctx.candles
        if is_hammer(c, i, t) or is_bullish_engulfing(c, i) or is_morning_star(c, i, t):
            probability += 8
            evidence.append("Bullish reversal candle on the entry bar")
        if kind == 'breakout':
            probability += 7
        if rsi > t.swing_trade_rsi_strong:
            probability += 5
        probability = min(probability, t.swing_trade_probability_cap)

        if probability > 80:
            confidence = CONFIDENCE_HIGH
        elif probability > 70:
            confidence = CONFIDENCE_MEDIUM
        else:
            confidence = CONFIDENCE_LOW

        return CompositePattern(
            name=self.name,
            code=stats.code,
            signal='Bullish',
            confidence=confidence,
            probability=probability,
            start_index=i - 2,
            end_index=i,
            entry_price=close,
            target_price=target,
            stop_loss=stop,
            evidence=evidence,
            confirmation=["Hold 2-3 bars towards target", f"Stop {t.swing_trade_stop_atr:g} ATR below entry"],
            strategy='swing',
            conditions=conditions,
        )


class GapBreakoutMatcher(PatternMatcher):
    """Intraday gap-up breakout on the first bar of a session."""

    category = CATEGORY_COMPOSITE_INTRADAY
    name = "Intraday Gap-Up Breakout"

    def match(self, ctx: MatchContext) -> List[CompositePattern]:
        if len(ctx.df) < 2:
            return []

        sessions = session_ids(ctx.df).to_numpy()
        patterns = []
        for i in range(1, len(ctx.df)):
            pattern = self.evaluate(ctx, i, session_open=bool(sessions[i] != sessions[i - 1]))
            if pattern is not None:
                patterns.append(pattern)

        logger.debug(f"Gap breakout strategy matched {len(patterns)} bars")
        return patterns

    def conditions(self, ctx: MatchContext, i: int, session_open: bool) -> Optional[Dict[str, bool]]:
        t = self.thresholds
        rsi = ctx.value('rsi', i)
        sma20 = ctx.value('sma_20', i)
        ratio = ctx.volume_ratio(i)
        if rsi is None or sma20 is None or ratio is None:
            return None

        prev_close = ctx.close(i - 1)
        gap_pct = (float(ctx.candles.open[i]) - prev_close) / prev_close

        return {
            'session_open': session_open,
            'gap_up': gap_pct >= t.gap_min_pct,
            'volume_surge': ratio >= t.gap_volume_ratio,
            'rsi_in_range': t.gap_rsi_min <= rsi <= t.gap_rsi_max,
            'above_sma20': ctx.close(i) > sma20,
        }

    def evaluate(self, ctx: MatchContext, i: int, session_open: bool) -> Optional[CompositePattern]:
        conditions = self.conditions(ctx, i, session_open)
        if conditions is None or not all(conditions.values()):
            return None

        t = self.thresholds
        c = ctx.candles
        prev_close = ctx.close(i - 1)
        gap = float(c.open[i]) - prev_close

        entry = float(c.high[i])
        stop = float(c.open[i]) * t.gap_stop_buffer
        target = entry + t.gap_target_multiple * gap
        if not levels_are_valid('Bullish', entry, stop, target):
            return None

        stats = self.stats(self.name)
        ratio = ctx.volume_ratio(i)
        return CompositePattern(
            name=self.name,
            code=stats.code,
            signal='Bullish',
            confidence=stats.confidence,
            probability=stats.probability,
            start_index=i - 1,
            end_index=i,
            entry_price=entry,
            target_price=target,
            stop_loss=stop,
            evidence=[
                f"Gapped up {gap / prev_close:.2%} at the session open",
                f"Volume {ratio:.1f}x average",
                f"RSI {ctx.value('rsi', i):.1f} with close above the 20 SMA",
            ],
            confirmation=[f"Trade above the opening bar high {entry:.2f}", "Gap does not fill"],
            strategy='intraday',
            conditions=conditions,
        )
