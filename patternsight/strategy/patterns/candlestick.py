"""
Candlestick Pattern Detection

Single- and multi-bar candle shapes:
- Doji, Hammer, Shooting Star, Marubozu (1 bar)
- Bullish/Bearish Engulfing, Inside Bar (2 bars)
- Morning/Evening Star (3 bars)

Each shape is a pure predicate over open/high/low/close ratios of a fixed
window. Matches are independent: several shapes may fire on overlapping
windows and nothing is deduplicated here.

Trade levels: entry is the close of the pattern's last bar; stop and
target sit a pattern-specific number of risk units away, where the risk
unit is the recent mean true range.
"""

from typing import Callable, List, NamedTuple, Optional, Tuple

from loguru import logger

from patternsight.shared.config.defaults import CATEGORY_CANDLESTICK, PatternThresholds
from patternsight.shared.models.patterns import CandlestickPattern
from patternsight.strategy.patterns.base import (
    Candles,
    MatchContext,
    PatternMatcher,
    levels_are_valid,
    risk_bracket,
)


# ============================================================================
# SHAPE PREDICATES
# ============================================================================

def is_doji(c: Candles, i: int, t: PatternThresholds) -> bool:
    rng = c.range(i)
    return rng > 0 and c.body(i) <= t.doji_body_ratio * rng


def is_hammer(c: Candles, i: int, t: PatternThresholds) -> bool:
    body, rng = c.body(i), c.range(i)
    return (
        rng > 0
        and c.lower_shadow(i) >= t.hammer_shadow_ratio * body
        and c.upper_shadow(i) <= t.hammer_opposite_shadow_ratio * body
        and body <= t.hammer_body_ratio * rng
    )


def is_shooting_star(c: Candles, i: int, t: PatternThresholds) -> bool:
    body, rng = c.body(i), c.range(i)
    return (
        rng > 0
        and c.upper_shadow(i) >= t.hammer_shadow_ratio * body
        and c.lower_shadow(i) <= t.hammer_opposite_shadow_ratio * body
        and body <= t.hammer_body_ratio * rng
    )


def is_bullish_engulfing(c: Candles, i: int) -> bool:
    if i < 1:
        return False
    p = i - 1
    return (
        c.is_bearish(p)
        and c.is_bullish(i)
        and c.open[i] < c.close[p]
        and c.close[i] > c.open[p]
    )


def is_bearish_engulfing(c: Candles, i: int) -> bool:
    if i < 1:
        return False
    p = i - 1
    return (
        c.is_bullish(p)
        and c.is_bearish(i)
        and c.open[i] > c.close[p]
        and c.close[i] < c.open[p]
    )


def is_morning_star(c: Candles, i: int, t: PatternThresholds) -> bool:
    if i < 2:
        return False
    first, second, third = i - 2, i - 1, i
    first_body = c.body(first)
    return (
        c.is_bearish(first)
        and first_body > t.star_body_ratio * c.range(first)
        and c.body(second) < t.star_middle_body_ratio * first_body
        and c.is_bullish(third)
        and c.body(third) > t.star_body_ratio * c.range(third)
        and c.close[third] > (c.open[first] + c.close[first]) / 2
    )


def is_evening_star(c: Candles, i: int, t: PatternThresholds) -> bool:
    if i < 2:
        return False
    first, second, third = i - 2, i - 1, i
    first_body = c.body(first)
    return (
        c.is_bullish(first)
        and first_body > t.star_body_ratio * c.range(first)
        and c.body(second) < t.star_middle_body_ratio * first_body
        and c.is_bearish(third)
        and c.body(third) > t.star_body_ratio * c.range(third)
        and c.close[third] < (c.open[first] + c.close[first]) / 2
    )


def is_inside_bar(c: Candles, i: int) -> bool:
    if i < 1:
        return False
    return c.high[i] <= c.high[i - 1] and c.low[i] >= c.low[i - 1]


def is_marubozu(c: Candles, i: int, t: PatternThresholds) -> bool:
    body = c.body(i)
    return body > 0 and (c.range(i) - body) / body < t.marubozu_shadow_ratio


# ============================================================================
# MATCHER
# ============================================================================

class _Shape(NamedTuple):
    name: str
    signal: str
    start_index: int
    evidence: List[str]
    confirmation: List[str]


class CandlestickMatcher(PatternMatcher):
    """Scans every bar once and reports every candle shape that fires."""

    category = CATEGORY_CANDLESTICK

    def match(self, ctx: MatchContext) -> List[CandlestickPattern]:
        if len(ctx.df) == 0:
            return []

        candles = ctx.candles
        detectors: List[Callable[[MatchContext, Candles, int], Optional[_Shape]]] = [
            self._doji,
            self._hammer,
            self._shooting_star,
            self._bullish_engulfing,
            self._bearish_engulfing,
            self._morning_star,
            self._evening_star,
            self._inside_bar,
            self._marubozu,
        ]

        patterns: List[CandlestickPattern] = []
        for i in range(len(ctx.df)):
            for detector in detectors:
                shape = detector(ctx, candles, i)
                if shape is None:
                    continue
                pattern = self._build(ctx, candles, i, shape)
                if pattern is not None:
                    patterns.append(pattern)

        logger.debug(f"Candlestick matcher found {len(patterns)} shapes over {len(ctx.df)} bars")
        return patterns

    def _build(self, ctx: MatchContext, c: Candles, i: int, shape: _Shape) -> Optional[CandlestickPattern]:
        stats = self.stats(shape.name)
        risk = ctx.mean_true_range(i, self.thresholds.true_range_period)
        if not risk or risk <= 0:
            return None

        entry = float(c.close[i])
        stop, target = risk_bracket(shape.signal, entry, risk, stats.stop_multiple, stats.reward_multiple)
        if not levels_are_valid(shape.signal, entry, stop, target):
            return None

        return CandlestickPattern(
            name=shape.name,
            code=stats.code,
            signal=shape.signal,
            confidence=stats.confidence,
            probability=stats.probability,
            start_index=shape.start_index,
            end_index=i,
            entry_price=entry,
            target_price=target,
            stop_loss=stop,
            evidence=shape.evidence,
            confirmation=shape.confirmation,
        )

    def _volume_note(self, ctx: MatchContext, i: int, ratio_needed: float) -> Tuple[bool, Optional[float]]:
        ratio = ctx.volume_ratio(i)
        return (ratio is not None and ratio >= ratio_needed), ratio

    def _doji(self, ctx, c, i):
        if not is_doji(c, i, self.thresholds):
            return None
        return _Shape(
            "Doji", "Neutral", i,
            [
                f"Body {c.body(i):.2f} is {c.body(i) / c.range(i):.0%} of range {c.range(i):.2f}",
                "Open and close nearly equal: buyers and sellers in balance",
            ],
            ["Next candle direction decides the break", "Context: location at support or resistance"],
        )

    def _hammer(self, ctx, c, i):
        if not is_hammer(c, i, self.thresholds):
            return None
        body = c.body(i)
        shadow = f"{c.lower_shadow(i) / body:.1f}x body" if body else "with no body"
        return _Shape(
            "Hammer", "Bullish", i,
            [f"Lower shadow {shadow}", "Small upper shadow: sellers rejected intrabar"],
            ["Next candle closes above hammer high", "Appears after a decline"],
        )

    def _shooting_star(self, ctx, c, i):
        if not is_shooting_star(c, i, self.thresholds):
            return None
        body = c.body(i)
        shadow = f"{c.upper_shadow(i) / body:.1f}x body" if body else "with no body"
        return _Shape(
            "Shooting Star", "Bearish", i,
            [f"Upper shadow {shadow}", "Small lower shadow: buyers rejected intrabar"],
            ["Next candle closes below shooting star low", "Appears after an advance"],
        )

    def _bullish_engulfing(self, ctx, c, i):
        if not is_bullish_engulfing(c, i):
            return None
        return _Shape(
            "Bullish Engulfing", "Bullish", i - 1,
            [
                f"Bullish body {c.body(i):.2f} engulfs prior bearish body {c.body(i - 1):.2f}",
                "Opened below prior close and closed above prior open",
            ],
            ["Follow-through above engulfing high", "Volume above average"],
        )

    def _bearish_engulfing(self, ctx, c, i):
        if not is_bearish_engulfing(c, i):
            return None
        return _Shape(
            "Bearish Engulfing", "Bearish", i - 1,
            [
                f"Bearish body {c.body(i):.2f} engulfs prior bullish body {c.body(i - 1):.2f}",
                "Opened above prior close and closed below prior open",
            ],
            ["Follow-through below engulfing low", "Volume above average"],
        )

    def _morning_star(self, ctx, c, i):
        if not is_morning_star(c, i, self.thresholds):
            return None
        volume_ok, ratio = self._volume_note(ctx, i, self.thresholds.star_volume_ratio)
        evidence = [
            f"Strong bearish candle (body {c.body(i - 2) / c.range(i - 2):.0%} of range)",
            f"Indecision candle (body {c.body(i - 1):.2f})",
            f"Bullish close {c.close[i]:.2f} above first candle midpoint",
        ]
        confirmation = ["Price holds above the star low"]
        if volume_ok:
            evidence.append(f"Volume {ratio:.1f}x average on confirmation candle")
        else:
            confirmation.append(f"Volume >= {self.thresholds.star_volume_ratio}x average on third candle")
        return _Shape("Morning Star", "Bullish", i - 2, evidence, confirmation)

    def _evening_star(self, ctx, c, i):
        if not is_evening_star(c, i, self.thresholds):
            return None
        volume_ok, ratio = self._volume_note(ctx, i, self.thresholds.star_volume_ratio)
        evidence = [
            f"Strong bullish candle (body {c.body(i - 2) / c.range(i - 2):.0%} of range)",
            f"Indecision candle (body {c.body(i - 1):.2f})",
            f"Bearish close {c.close[i]:.2f} below first candle midpoint",
        ]
        confirmation = ["Price holds below the star high"]
        if volume_ok:
            evidence.append(f"Volume {ratio:.1f}x average on confirmation candle")
        else:
            confirmation.append(f"Volume >= {self.thresholds.star_volume_ratio}x average on third candle")
        return _Shape("Evening Star", "Bearish", i - 2, evidence, confirmation)

    def _inside_bar(self, ctx, c, i):
        if not is_inside_bar(c, i):
            return None
        trend = ctx.trend(i)
        if trend is None or trend == 0:
            signal, trend_note = "Neutral", "No short-term trend bias"
        elif trend > 0:
            signal, trend_note = "Bullish", f"Close {trend:.1%} above 20-bar average"
        else:
            signal, trend_note = "Bearish", f"Close {abs(trend):.1%} below 20-bar average"
        return _Shape(
            "Inside Bar", signal, i - 1,
            [f"Range {c.range(i):.2f} inside mother bar range {c.range(i - 1):.2f}", trend_note],
            ["Breakout of the mother bar range", "Breakout volume >= 1.5x average"],
        )

    def _marubozu(self, ctx, c, i):
        if not is_marubozu(c, i, self.thresholds):
            return None
        bullish = c.is_bullish(i)
        evidence = [f"Body {c.body(i):.2f} covers the full range: no meaningful shadows"]
        trend = ctx.trend(i)
        if trend is not None and (trend > 0) == bullish:
            evidence.append("Candle continues the short-term trend")
        return _Shape(
            "Bullish Marubozu" if bullish else "Bearish Marubozu",
            "Bullish" if bullish else "Bearish",
            i,
            evidence,
            ["Volume >= 1.2x average", "Next candle does not retrace the body midpoint"],
        )
