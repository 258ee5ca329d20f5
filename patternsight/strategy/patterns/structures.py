"""
Multi-Bar Structure Detection

Shape heuristics over a sliding window ending at the last bar:
- Cup & Handle: rounded 12-33% retracement followed by a shallow handle
  and price back at the rim
- Triple Top: three swing highs at the same price, price rolling over
- Ascending Triangle: flat swing highs with rising swing lows
- Inside Bar Volume Breakout: mother bar, inside bar, then a volume
  breakout of the mother bar's range
"""

from typing import List, Optional

import numpy as np
from loguru import logger

from patternsight.indicators.divergence import find_swing_highs, find_swing_lows
from patternsight.shared.config.defaults import CATEGORY_COMBINATION, CONFIDENCE_MEDIUM
from patternsight.shared.models.patterns import CombinationPattern
from patternsight.strategy.patterns.base import (
    MatchContext,
    PatternMatcher,
    levels_are_valid,
    target_from_stop,
)
from patternsight.strategy.patterns.candlestick import is_inside_bar


class StructureMatcher(PatternMatcher):
    """Chart structures built from several swings."""

    category = CATEGORY_COMBINATION

    def match(self, ctx: MatchContext) -> List[CombinationPattern]:
        n = len(ctx.df)
        if n < self.thresholds.combination_min_bars:
            return []

        i = ctx.last_index
        patterns = []
        for detector in (self._cup_and_handle, self._triple_top, self._ascending_triangle,
                         self._inside_bar_breakout):
            pattern = detector(ctx, i)
            if pattern is not None:
                patterns.append(pattern)

        logger.debug(f"Structure matcher found {len(patterns)} structures at bar {i}")
        return patterns

    def _build(self, name, signal, start, end, entry, stop, target, evidence, confirmation,
               probability=None, confidence=None) -> Optional[CombinationPattern]:
        if not levels_are_valid(signal, entry, stop, target):
            logger.debug(f"{name} rejected: invalid trade levels entry={entry} stop={stop} target={target}")
            return None
        stats = self.stats(name)
        return CombinationPattern(
            name=name,
            code=stats.code,
            signal=signal,
            confidence=confidence or stats.confidence,
            probability=stats.probability if probability is None else min(probability, 95.0),
            start_index=start,
            end_index=end,
            entry_price=entry,
            target_price=target,
            stop_loss=stop,
            evidence=evidence,
            confirmation=confirmation,
            indicators=('volume_ma',),
        )

    def _cup_and_handle(self, ctx: MatchContext, i: int) -> Optional[CombinationPattern]:
        t = self.thresholds
        lookback = t.structure_window
        start = max(0, i - lookback)
        window = ctx.df.iloc[start:i + 1]
        closes = window['close'].to_numpy(dtype=float)
        highs = window['high'].to_numpy(dtype=float)
        lows = window['low'].to_numpy(dtype=float)
        length = len(closes)

        # Rim: highest close in the middle of the window
        rim_lo, rim_hi = int(lookback * 0.3), min(int(lookback * 0.7), length - 1)
        if rim_hi < rim_lo:
            return None
        rim_index = rim_lo + int(np.argmax(closes[rim_lo:rim_hi + 1]))
        rim_price = closes[rim_index]

        bottom_end = int(length * 0.8)
        if bottom_end <= rim_index + 1:
            return None
        bottom_price = min(rim_price, lows[rim_index + 1:bottom_end].min())

        handle_start = int(length * 0.75)
        if handle_start >= length - 1:
            return None
        handle_low = min(closes[handle_start], lows[handle_start:length - 1].min())
        handle_high = max(closes[handle_start], highs[handle_start:length - 1].max())

        cup_depth = (rim_price - bottom_price) / rim_price
        handle_depth = (handle_high - handle_low) / handle_high
        close = ctx.close(i)
        if not (t.cup_min_depth <= cup_depth <= t.cup_max_depth):
            return None
        if handle_depth > t.handle_max_depth or close < rim_price * 0.98:
            return None

        ratio = ctx.volume_ratio(i)
        volume_confirmed = ratio is not None and ratio >= t.breakout_volume_ratio
        stats = self.stats("Cup & Handle Breakout")

        entry = rim_price * 1.01
        stop = handle_low * 0.97
        target = entry + (rim_price - bottom_price) * stats.reward_multiple
        return self._build(
            "Cup & Handle Breakout", 'Bullish', start, i, entry, stop, target,
            evidence=[
                f"Cup retraced {cup_depth:.1%} from rim {rim_price:.2f}",
                f"Handle pulled back {handle_depth:.1%}",
                f"Volume surge {ratio:.1f}x confirmed" if volume_confirmed else "Awaiting volume confirmation",
            ],
            confirmation=[f"Break above rim {rim_price:.2f}", "Volume >= 1.5x average on breakout"],
            probability=stats.probability + (10 if volume_confirmed else 0),
            confidence=None if volume_confirmed else CONFIDENCE_MEDIUM,
        )

    def _window_swings(self, ctx: MatchContext, i: int):
        start = max(0, i - self.thresholds.structure_window)
        window = ctx.df.iloc[start:i + 1]
        lookback = self.thresholds.divergence_pivot_lookback
        highs = [start + k for k in find_swing_highs(window['high'], lookback)]
        lows = [start + k for k in find_swing_lows(window['low'], lookback)]
        return start, highs, lows

    def _triple_top(self, ctx: MatchContext, i: int) -> Optional[CombinationPattern]:
        _, swing_highs, _ = self._window_swings(ctx, i)
        if len(swing_highs) < 3:
            return None

        peaks = swing_highs[-3:]
        prices = ctx.df['high'].iloc[peaks].to_numpy(dtype=float)
        mean_peak = prices.mean()
        if np.abs(prices - mean_peak).max() > mean_peak * self.thresholds.triple_top_tolerance_pct:
            return None

        trough = float(ctx.df['low'].iloc[peaks[0]:peaks[-1] + 1].min())
        close = ctx.close(i)
        if close >= mean_peak * (1 - self.thresholds.triple_top_tolerance_pct):
            return None

        stop = float(prices.max()) * 1.01
        target = close - (mean_peak - trough)
        return self._build(
            "Triple Top", 'Bearish', peaks[0], i, close, stop, target,
            evidence=[
                f"Three swing highs at {', '.join(f'{p:.2f}' for p in prices)}",
                f"Neckline (lowest trough) at {trough:.2f}",
            ],
            confirmation=[f"Close below neckline {trough:.2f}", "Volume rises on the breakdown"],
        )

    def _ascending_triangle(self, ctx: MatchContext, i: int) -> Optional[CombinationPattern]:
        t = self.thresholds
        _, swing_highs, swing_lows = self._window_swings(ctx, i)
        if len(swing_highs) < t.triangle_min_touches or len(swing_lows) < t.triangle_min_touches:
            return None

        tops = ctx.df['high'].iloc[swing_highs].to_numpy(dtype=float)
        bottoms = ctx.df['low'].iloc[swing_lows].to_numpy(dtype=float)
        resistance = tops.mean()
        if np.abs(tops - resistance).max() > resistance * t.triple_top_tolerance_pct:
            return None
        if not (np.diff(bottoms) > 0).all():
            return None

        close = ctx.close(i)
        if close < resistance * (1 - t.level_proximity_pct):
            return None

        stop = bottoms[-1] * 0.99
        target = close + (resistance - bottoms[0])
        return self._build(
            "Ascending Triangle", 'Bullish', min(swing_highs[0], swing_lows[0]), i, close, stop, target,
            evidence=[
                f"Flat resistance at {resistance:.2f} ({len(tops)} touches)",
                f"Rising lows {' -> '.join(f'{b:.2f}' for b in bottoms)}",
            ],
            confirmation=[f"Close above {resistance:.2f}", "Volume expands on the breakout"],
        )

    def _inside_bar_breakout(self, ctx: MatchContext, i: int) -> Optional[CombinationPattern]:
        if i < 2:
            return None
        candles = ctx.candles
        if not is_inside_bar(candles, i - 1):
            return None

        ratio = ctx.volume_ratio(i)
        if ratio is None or ratio < self.thresholds.breakout_volume_ratio:
            return None

        mother_high, mother_low = candles.high[i - 2], candles.low[i - 2]
        bar_open, close = candles.open[i], candles.close[i]
        if close > mother_high > bar_open:
            signal = 'Bullish'
            stop = mother_low - (mother_high - mother_low) * 0.1
        elif close < mother_low < bar_open:
            signal = 'Bearish'
            stop = mother_high + (mother_high - mother_low) * 0.1
        else:
            return None

        stats = self.stats("Inside Bar Volume Breakout")
        target = target_from_stop(signal, close, stop, stats.reward_multiple)
        return self._build(
            "Inside Bar Volume Breakout", signal, i - 2, i, float(close), float(stop), float(target),
            evidence=[
                "Inside bar formed (range contraction)",
                f"{signal} breakout of mother bar {mother_low:.2f}-{mother_high:.2f}",
                f"Volume {ratio:.1f}x average",
            ],
            confirmation=[f"Volume: {ratio:.1f}x average", f"Breakout: {signal.lower()}"],
        )
