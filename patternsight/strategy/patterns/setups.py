"""
Trade Setups

Price-action setups evaluated on the most recent bar of the series:
- Opening range breakout: close leaves the range of the first bars of a
  fixed look-back window, on volume
- VWAP bounce / reject: previous bar tests VWAP and the close resolves
  away from it, filtered by the short-term close slope
- End-of-day sharp drop: a 3-5% down day scored twice, once for a bounce
  and once for continuation; the stronger score decides the direction

Setups share the combination category and its minimum series length.
"""

from typing import List, Optional, Sequence, Tuple

from loguru import logger

from patternsight.shared.config.defaults import (
    CATEGORY_COMBINATION,
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    CONFIDENCE_MEDIUM,
)
from patternsight.shared.models.patterns import CombinationPattern
from patternsight.strategy.patterns.base import (
    MatchContext,
    PatternMatcher,
    levels_are_valid,
    target_from_stop,
)


SHARP_DROP_STOP_BUFFER = 0.02
HAMMER_CLOSE_POSITION = 0.6
WEAK_CLOSE_POSITION = 0.1
PROBABILITY_CAP = 95.0


class SetupMatcher(PatternMatcher):
    """Opening range, VWAP and sharp-drop setups at the last bar."""

    category = CATEGORY_COMBINATION

    def match(self, ctx: MatchContext) -> List[CombinationPattern]:
        n = len(ctx.df)
        if n < self.thresholds.combination_min_bars:
            logger.debug(f"Setup matcher needs {self.thresholds.combination_min_bars} bars, got {n}")
            return []

        i = ctx.last_index
        patterns = []
        for detector in (self._opening_range_breakout, self._vwap_bounce, self._sharp_drop):
            pattern = detector(ctx, i)
            if pattern is not None:
                patterns.append(pattern)

        logger.debug(f"Setup matcher found {len(patterns)} signals at bar {i}")
        return patterns

    def _build(
        self,
        name: str,
        signal: str,
        start_index: int,
        end_index: int,
        entry: float,
        stop: float,
        target: Optional[float] = None,
        evidence: Sequence[str] = (),
        confirmation: Sequence[str] = (),
        indicators: Tuple[str, ...] = (),
        probability: Optional[float] = None,
        confidence: Optional[str] = None,
    ) -> Optional[CombinationPattern]:
        stats = self.stats(name)
        if target is None:
            target = target_from_stop(signal, entry, stop, stats.reward_multiple)
        if not levels_are_valid(signal, entry, stop, target):
            logger.debug(f"{name} rejected: invalid trade levels entry={entry} stop={stop} target={target}")
            return None

        return CombinationPattern(
            name=name,
            code=stats.code,
            signal=signal,
            confidence=confidence or stats.confidence,
            probability=stats.probability if probability is None else min(probability, PROBABILITY_CAP),
            start_index=start_index,
            end_index=end_index,
            entry_price=entry,
            target_price=target,
            stop_loss=stop,
            evidence=list(evidence),
            confirmation=list(confirmation),
            indicators=indicators,
        )

    # ------------------------------------------------------------------
    # Opening range breakout
    # ------------------------------------------------------------------

    def _opening_range_breakout(self, ctx: MatchContext, i: int) -> Optional[CombinationPattern]:
        t = self.thresholds
        if i < t.orb_window:
            return None

        c = ctx.candles
        start = i - t.orb_window + 1
        range_high = float(c.high[start:start + t.orb_range_bars].max())
        range_low = float(c.low[start:start + t.orb_range_bars].min())
        size = range_high - range_low
        prev_close, close = ctx.close(i - 1), ctx.close(i)

        if close > range_high >= prev_close:
            signal = 'Bullish'
            stop = range_low - size * t.orb_stop_buffer
            target = close + size * t.orb_target_multiple
        elif close < range_low <= prev_close:
            signal = 'Bearish'
            stop = range_high + size * t.orb_stop_buffer
            target = close - size * t.orb_target_multiple
        else:
            return None

        ratio = ctx.volume_ratio(i)
        if ratio is None or ratio < t.orb_volume_ratio:
            logger.debug(f"Opening range {signal.lower()} break at bar {i} lacks volume")
            return None

        return self._build(
            f"Opening Range {signal} Breakout", signal, start, i,
            entry=close,
            stop=stop,
            target=target,
            evidence=[
                f"Opening range {range_low:.2f} - {range_high:.2f} ({size:.2f} wide)",
                f"Close {close:.2f} broke {'above' if signal == 'Bullish' else 'below'} the range",
                f"Volume {ratio:.1f}x trailing average",
                f"Range is {size / close:.1%} of price",
            ],
            confirmation=[f"Range: {range_low:.2f}-{range_high:.2f}", f"Volume: {ratio:.1f}x"],
            indicators=('volume_ma',),
        )

    # ------------------------------------------------------------------
    # VWAP bounce / reject
    # ------------------------------------------------------------------

    def _vwap_bounce(self, ctx: MatchContext, i: int) -> Optional[CombinationPattern]:
        t = self.thresholds
        vwap = ctx.value('vwap', i)
        if vwap is None or i < t.vwap_trend_bars:
            return None

        c = ctx.candles
        close = ctx.close(i)
        slope = (close - ctx.close(i - t.vwap_trend_bars)) / (t.vwap_trend_bars + 1)
        bias = 'bullish' if slope > 0 else 'bearish' if slope < 0 else 'neutral'

        if c.low[i - 1] <= vwap < close and bias != 'bearish':
            name, signal = "VWAP Bounce", 'Bullish'
            stop = vwap * (1 - t.vwap_bounce_stop_buffer)
        elif c.high[i - 1] >= vwap > close and bias != 'bullish':
            name, signal = "VWAP Reject", 'Bearish'
            stop = vwap * (1 + t.vwap_bounce_stop_buffer)
        else:
            return None

        risk = self.risk_unit(ctx, i)
        if not risk:
            return None
        offset = risk * t.vwap_bounce_target_multiple
        target = close + offset if signal == 'Bullish' else close - offset

        probability = self.stats(name).probability
        ratio = ctx.volume_ratio(i)
        volume_confirmed = ratio is not None and ratio >= t.vwap_bounce_volume_ratio
        if volume_confirmed:
            probability += 8
        if abs(slope) < t.vwap_flat_slope:
            probability += 5

        return self._build(
            name, signal, i - 1, i,
            entry=close,
            stop=stop,
            target=target,
            evidence=[
                f"Price {'bounced from' if signal == 'Bullish' else 'rejected at'} VWAP ({vwap:.2f})",
                f"Trend filter: {bias} bias (slope {slope:.4f})",
                f"Volume {ratio:.1f}x average" if volume_confirmed else "Low volume",
            ],
            confirmation=[f"VWAP: {vwap:.2f}", f"Trend: {bias}"],
            indicators=('vwap',),
            probability=probability,
            confidence=CONFIDENCE_MEDIUM if volume_confirmed else CONFIDENCE_LOW,
        )

    # ------------------------------------------------------------------
    # End-of-day sharp drop
    # ------------------------------------------------------------------

    def _sharp_drop(self, ctx: MatchContext, i: int) -> Optional[CombinationPattern]:
        t = self.thresholds
        if i < t.sharp_drop_swing_window:
            return None

        prev_close, close = ctx.close(i - 1), ctx.close(i)
        change = (close - prev_close) / prev_close
        if not -t.sharp_drop_max_pct <= change <= -t.sharp_drop_min_pct:
            return None

        avg_volume = ctx.value('volume_ma', i)
        rsi = ctx.values('rsi', i - 2, i - 1, i)
        if avg_volume is None or rsi is None:
            return None
        if avg_volume < t.sharp_drop_min_avg_volume or close < t.sharp_drop_min_price:
            logger.debug(f"Sharp drop at bar {i} outside the liquidity/price universe")
            return None

        c = ctx.candles
        swing_low = float(c.low[i - t.sharp_drop_swing_window:i].min())
        ratio = float(ctx.volume[i]) / avg_volume

        bounce, bounce_notes = self._bounce_score(ctx, i, rsi, ratio, swing_low)
        continuation, continuation_notes = self._continuation_score(ctx, i, rsi, ratio, swing_low)

        margin = t.sharp_drop_score_margin
        bounce_ready = bounce >= t.sharp_drop_signal_score
        continuation_ready = continuation >= t.sharp_drop_signal_score
        if bounce_ready and (not continuation_ready or bounce - continuation >= margin):
            signal, score, notes = 'Bullish', bounce, bounce_notes
        elif continuation_ready and (not bounce_ready or continuation - bounce >= margin):
            signal, score, notes = 'Bearish', continuation, continuation_notes
        else:
            logger.debug(f"Sharp drop at bar {i} is neutral (bounce {bounce:.0f}, continuation {continuation:.0f})")
            return None

        if signal == 'Bullish':
            name = "EOD Sharp Drop Bounce"
            stop = min(swing_low, float(c.low[i])) * (1 - SHARP_DROP_STOP_BUFFER)
        else:
            name = "EOD Sharp Drop Continuation"
            stop = float(c.high[i - 1]) * (1 + SHARP_DROP_STOP_BUFFER)

        if score >= 80:
            confidence = CONFIDENCE_HIGH
        elif score >= 65:
            confidence = CONFIDENCE_MEDIUM
        else:
            confidence = CONFIDENCE_LOW

        return self._build(
            name, signal, i - 1, i,
            entry=close,
            stop=stop,
            evidence=[f"Dropped {change:.1%} on the day"] + notes,
            confirmation=[
                f"Bounce score {bounce:.0f}, continuation score {continuation:.0f}",
                "Next session opens above the close" if signal == 'Bullish' else "No reclaim of the prior close",
            ],
            indicators=('rsi', 'volume_ma'),
            probability=score,
            confidence=confidence,
        )

    def _bounce_score(self, ctx: MatchContext, i: int, rsi, ratio: float, swing_low: float):
        t = self.thresholds
        c = ctx.candles
        score = 50.0
        notes = []

        if rsi[2] < 35 and rsi[1] > 50:
            score += 15
            notes.append(f"Oversold shock: RSI {rsi[2]:.1f} from {rsi[1]:.1f}")
        if ratio >= 1.5:
            score += 10
            notes.append(f"Capitulation volume {ratio:.1f}x average")

        low = float(c.low[i])
        supports = [
            ('50 SMA', ctx.value('sma_50', i)),
            ('200 SMA', ctx.value('sma_200', i)),
            (f"{t.sharp_drop_swing_window}-bar swing low", swing_low),
        ]
        for label, price in supports:
            if price and abs(low - price) / price <= t.sharp_drop_support_pct:
                score += 15
                notes.append(f"Low caught at the {label} ({price:.2f})")
                break

        body = c.body(i)
        bar_range = c.range(i)
        hammer = (
            bar_range > 0
            and c.lower_shadow(i) >= 2 * body
            and (float(c.close[i]) - low) / bar_range >= HAMMER_CLOSE_POSITION
        )
        engulfing = (
            c.is_bullish(i)
            and body > c.body(i - 1)
            and c.open[i] < c.close[i - 1]
            and c.close[i] > c.open[i - 1]
        )
        if hammer or engulfing:
            score += 5
            notes.append("Hammer reversal candle" if hammer else "Bullish engulfing candle")

        return min(score, t.sharp_drop_score_cap), notes

    def _continuation_score(self, ctx: MatchContext, i: int, rsi, ratio: float, swing_low: float):
        t = self.thresholds
        c = ctx.candles
        close = ctx.close(i)
        score = 50.0
        notes = []

        if rsi[2] < 30 and rsi[2] < rsi[1] < rsi[0]:
            score += 20
            notes.append(f"Deep oversold and falling: RSI {rsi[2]:.1f}")
        if ratio < 1.0:
            score += 20
            notes.append(f"No capitulation: volume {ratio:.1f}x average")

        bar_range = c.range(i)
        position = (close - float(c.low[i])) / bar_range if bar_range > 0 else 0.5
        if position <= WEAK_CLOSE_POSITION:
            score += 15
            notes.append(f"Weak close in the bottom {position:.0%} of the range")

        sma50 = ctx.value('sma_50', i)
        lost_sma = sma50 is not None and ctx.close(i - 1) < sma50 and close < sma50 * 0.99
        if close < swing_low * 0.99 or lost_sma:
            score += 10
            notes.append("Closed below the swing low" if close < swing_low * 0.99 else "Lost the 50 SMA")

        histogram = ctx.values('macd_histogram', i - 2, i - 1, i)
        if histogram is not None and histogram[2] < histogram[1] < histogram[0]:
            score += 5
            notes.append("MACD histogram falling for 3 bars")

        return min(score, t.sharp_drop_score_cap), notes
