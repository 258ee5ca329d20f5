"""
Advanced Combination Detection

Cross-indicator signals evaluated on the most recent bar of the series:
- RSI / MACD regular divergences
- MACD line/signal crosses and histogram acceleration
- Stochastic %K/%D crosses in the extreme zones
- VWAP reclaim / rejection
- Golden / Death cross of the 50 and 200 bar SMAs, with pullback variants
- Level breakouts and breakdowns on volume
- Engulfing candles and RSI divergence at levels
- EMA 20/50 pullbacks and liquidity sweeps

Each detector fires at most once per call. Probabilities and confidence
tiers come from the pattern table; a few detectors add bonuses for volume
or level strength on top of the table value.
"""

from typing import List, Optional, Sequence, Tuple

import pandas as pd
from loguru import logger

from patternsight.analysis.levels import levels_near
from patternsight.indicators.divergence import (
    detect_regular_bearish_divergence,
    detect_regular_bullish_divergence,
)
from patternsight.shared.config.defaults import CATEGORY_COMBINATION, CONFIDENCE_HIGH
from patternsight.shared.models.patterns import CombinationPattern
from patternsight.strategy.patterns.base import (
    MatchContext,
    PatternMatcher,
    levels_are_valid,
    target_from_stop,
)
from patternsight.strategy.patterns.candlestick import (
    is_bearish_engulfing,
    is_bullish_engulfing,
)


# Stop placement buffers around the reference price of each setup
DIVERGENCE_STOP_BUFFER = 0.02
VWAP_STOP_BUFFER = 0.005
CROSS_PULLBACK_STOP_BUFFER = 0.03
BREAKOUT_STOP_BUFFER = 0.01
ENGULFING_STOP_BUFFER = 0.02
EMA_STOP_BUFFER = 0.015
SWEEP_STOP_BUFFER = 0.005

PROBABILITY_CAP = 95.0


class CombinationMatcher(PatternMatcher):
    """Cross-indicator and level-interaction signals at the last bar."""

    category = CATEGORY_COMBINATION

    def match(self, ctx: MatchContext) -> List[CombinationPattern]:
        n = len(ctx.df)
        if n < self.thresholds.combination_min_bars:
            logger.debug(
                f"Combination matcher needs {self.thresholds.combination_min_bars} bars, got {n}"
            )
            return []

        i = ctx.last_index
        detectors = [
            self._rsi_divergence,
            self._macd_divergence,
            self._macd_cross,
            self._macd_acceleration,
            self._stochastic_cross,
            self._vwap_signal,
            self._ma_cross,
            self._golden_cross_pullback,
            self._death_cross_failure,
            self._level_break,
            self._engulfing_at_level,
            self._rsi_divergence_at_support,
            self._ema_pullback,
            self._liquidity_sweep,
        ]

        patterns: List[CombinationPattern] = []
        for detector in detectors:
            found = detector(ctx, i)
            if found is None:
                continue
            if isinstance(found, CombinationPattern):
                patterns.append(found)
            else:
                patterns.extend(found)

        logger.debug(f"Combination matcher found {len(patterns)} signals at bar {i}")
        return patterns

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

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

    def _atr_stop(self, ctx: MatchContext, i: int, signal: str) -> Optional[float]:
        risk = self.risk_unit(ctx, i)
        if not risk:
            return None
        entry = ctx.close(i)
        offset = risk * self.thresholds.atr_stop_multiplier
        return entry + offset if signal == 'Bearish' else entry - offset

    @staticmethod
    def _series(ctx: MatchContext, name: str) -> Optional[pd.Series]:
        return getattr(ctx.indicators, name) if ctx.indicators.has(name) else None

    # ------------------------------------------------------------------
    # Divergences
    # ------------------------------------------------------------------

    def _divergence(self, ctx: MatchContext, i: int, indicator: str):
        series = self._series(ctx, indicator)
        if series is None:
            return None, None
        t = self.thresholds
        kwargs = dict(
            lookback=t.divergence_pivot_lookback,
            max_lookback_bars=t.divergence_window + 1,
            end_index=i,
        )
        bullish = detect_regular_bullish_divergence(ctx.df, series, indicator, **kwargs)
        bearish = detect_regular_bearish_divergence(ctx.df, series, indicator, **kwargs)
        return bullish, bearish

    def _rsi_bullish_divergence(self, ctx: MatchContext, i: int):
        """Bullish RSI divergence with RSI inside the bullish entry zone."""
        bullish, _ = self._divergence(ctx, i, 'rsi')
        rsi = ctx.value('rsi', i)
        low, high = self.thresholds.rsi_bullish_zone
        if bullish is None or rsi is None or not low <= rsi <= high:
            return None
        return bullish

    def _rsi_divergence(self, ctx: MatchContext, i: int) -> List[CombinationPattern]:
        t = self.thresholds
        start = max(0, i - t.divergence_window)
        entry = ctx.close(i)
        rsi = ctx.value('rsi', i)
        found = []

        bullish = self._rsi_bullish_divergence(ctx, i)
        if bullish is not None:
            pattern = self._build(
                "RSI Bullish Divergence", 'Bullish', start, i,
                entry=entry,
                stop=bullish.price_value_2 * (1 - DIVERGENCE_STOP_BUFFER),
                evidence=[
                    f"Price made lower low at {bullish.price_value_2:.2f}",
                    f"RSI made higher low ({bullish.indicator_value_1:.1f} -> {bullish.indicator_value_2:.1f})",
                    f"Current RSI {rsi:.1f} inside {t.rsi_bullish_zone[0]:.0f}-{t.rsi_bullish_zone[1]:.0f} zone",
                ],
                confirmation=["Close above the divergence high", "Support nearby"],
                indicators=('rsi',),
            )
            if pattern:
                found.append(pattern)

        _, bearish = self._divergence(ctx, i, 'rsi')
        low, high = t.rsi_bearish_zone
        if bearish is not None and rsi is not None and low <= rsi <= high:
            pattern = self._build(
                "RSI Bearish Divergence", 'Bearish', start, i,
                entry=entry,
                stop=bearish.price_value_2 * (1 + DIVERGENCE_STOP_BUFFER),
                evidence=[
                    f"Price made higher high at {bearish.price_value_2:.2f}",
                    f"RSI made lower high ({bearish.indicator_value_1:.1f} -> {bearish.indicator_value_2:.1f})",
                    f"Current RSI {rsi:.1f} inside {low:.0f}-{high:.0f} zone",
                ],
                confirmation=["Close below the divergence low", "Resistance nearby"],
                indicators=('rsi',),
            )
            if pattern:
                found.append(pattern)

        return found

    def _macd_divergence(self, ctx: MatchContext, i: int) -> List[CombinationPattern]:
        bullish, bearish = self._divergence(ctx, i, 'macd_histogram')
        start = max(0, i - self.thresholds.divergence_window)
        entry = ctx.close(i)
        found = []

        if bullish is not None:
            pattern = self._build(
                "MACD Bullish Divergence", 'Bullish', start, i,
                entry=entry,
                stop=bullish.price_value_2 * (1 - DIVERGENCE_STOP_BUFFER),
                evidence=[
                    f"Price made lower low at {bullish.price_value_2:.2f}",
                    f"MACD histogram made higher low ({bullish.indicator_value_1:.3f} -> "
                    f"{bullish.indicator_value_2:.3f})",
                ],
                confirmation=["Histogram crosses above zero"],
                indicators=('macd_histogram',),
            )
            if pattern:
                found.append(pattern)

        if bearish is not None:
            pattern = self._build(
                "MACD Bearish Divergence", 'Bearish', start, i,
                entry=entry,
                stop=bearish.price_value_2 * (1 + DIVERGENCE_STOP_BUFFER),
                evidence=[
                    f"Price made higher high at {bearish.price_value_2:.2f}",
                    f"MACD histogram made lower high ({bearish.indicator_value_1:.3f} -> "
                    f"{bearish.indicator_value_2:.3f})",
                ],
                confirmation=["Histogram crosses below zero"],
                indicators=('macd_histogram',),
            )
            if pattern:
                found.append(pattern)

        return found

    # ------------------------------------------------------------------
    # Crosses and momentum
    # ------------------------------------------------------------------

    def _last_sign_change(self, ctx: MatchContext, fast: str, slow: str, i: int, window: int):
        """
        Most recent bar j in the last ``window`` bars where fast - slow
        changed sign against bar j - 1.

        Returns (j, 'Bullish' | 'Bearish') or None. The cross must still
        hold at bar i.
        """
        for j in range(i, max(0, i - window), -1):
            values = ctx.values(fast, j - 1, j)
            anchors = ctx.values(slow, j - 1, j)
            if values is None or anchors is None:
                continue
            before = values[0] - anchors[0]
            after = values[1] - anchors[1]
            if before <= 0 < after:
                direction = 'Bullish'
            elif before >= 0 > after:
                direction = 'Bearish'
            else:
                continue

            now = ctx.values(fast, i)
            now_anchor = ctx.values(slow, i)
            if now is None or now_anchor is None:
                return None
            spread = now[0] - now_anchor[0]
            if (direction == 'Bullish' and spread > 0) or (direction == 'Bearish' and spread < 0):
                return j, direction
            return None
        return None

    def _macd_cross(self, ctx: MatchContext, i: int) -> Optional[CombinationPattern]:
        cross = self._last_sign_change(
            ctx, 'macd_line', 'macd_signal', i, self.thresholds.signal_cross_lookback
        )
        if cross is None:
            return None
        j, signal = cross
        stop = self._atr_stop(ctx, i, signal)
        if stop is None:
            return None

        line = ctx.value('macd_line', i)
        word = 'above' if signal == 'Bullish' else 'below'
        return self._build(
            f"MACD {signal} Cross", signal, j - 1, i,
            entry=ctx.close(i),
            stop=stop,
            evidence=[
                f"MACD line crossed {word} signal line {i - j} bar(s) ago",
                f"MACD line {line:.3f} {'above' if line > 0 else 'below'} zero",
            ],
            confirmation=[f"Histogram keeps {'expanding' if signal == 'Bullish' else 'falling'}"],
            indicators=('macd_line', 'macd_signal'),
        )

    def _macd_acceleration(self, ctx: MatchContext, i: int) -> Optional[CombinationPattern]:
        bars = self.thresholds.acceleration_bars
        hist = ctx.values('macd_histogram', *range(i - bars + 1, i + 1))
        if hist is None:
            return None

        pairs = list(zip(hist, hist[1:]))
        if all(b > a for a, b in pairs) and hist[-1] > 0:
            signal = 'Bullish'
        elif all(b < a for a, b in pairs) and hist[-1] < 0:
            signal = 'Bearish'
        else:
            return None

        stop = self._atr_stop(ctx, i, signal)
        if stop is None:
            return None
        return self._build(
            f"MACD {signal} Acceleration", signal, i - bars + 1, i,
            entry=ctx.close(i),
            stop=stop,
            evidence=[
                f"MACD histogram {'rising' if signal == 'Bullish' else 'falling'} for {bars} consecutive bars",
                f"Current histogram {hist[-1]:.3f}",
            ],
            confirmation=["Price follows through in the histogram direction"],
            indicators=('macd_histogram',),
        )

    def _stochastic_cross(self, ctx: MatchContext, i: int) -> Optional[CombinationPattern]:
        k = ctx.values('stoch_k', i - 1, i)
        d = ctx.values('stoch_d', i - 1, i)
        if k is None or d is None:
            return None

        t = self.thresholds
        if k[0] <= d[0] and k[1] > d[1] and k[1] < t.stoch_oversold and d[1] < t.stoch_oversold:
            signal, zone = 'Bullish', f"below {t.stoch_oversold:.0f} (oversold)"
        elif k[0] >= d[0] and k[1] < d[1] and k[1] > t.stoch_overbought and d[1] > t.stoch_overbought:
            signal, zone = 'Bearish', f"above {t.stoch_overbought:.0f} (overbought)"
        else:
            return None

        stop = self._atr_stop(ctx, i, signal)
        if stop is None:
            return None
        return self._build(
            f"Stochastic {signal} Cross", signal, i - 1, i,
            entry=ctx.close(i),
            stop=stop,
            evidence=[
                f"%K crossed {'above' if signal == 'Bullish' else 'below'} %D ({k[1]:.1f} vs {d[1]:.1f})",
                f"Both lines {zone}",
            ],
            confirmation=[f"%K: {k[1]:.1f}, %D: {d[1]:.1f}"],
            indicators=('stoch_k', 'stoch_d'),
        )

    def _vwap_signal(self, ctx: MatchContext, i: int) -> Optional[CombinationPattern]:
        vwap = ctx.values('vwap', i - 1, i)
        if vwap is None:
            return None

        prev_close, close = ctx.close(i - 1), ctx.close(i)
        c = ctx.candles
        entry = close

        if prev_close <= vwap[0] and close > vwap[1] and c.low[i] > vwap[1] * 0.999:
            return self._build(
                "VWAP Bullish Reclaim", 'Bullish', i - 1, i,
                entry=entry,
                stop=vwap[1] * (1 - VWAP_STOP_BUFFER),
                evidence=[
                    f"Price crossed above VWAP ({vwap[1]:.2f})",
                    "Low held above VWAP",
                ],
                confirmation=[f"VWAP: {vwap[1]:.2f}"],
                indicators=('vwap',),
            )

        failed_reclaim = c.high[i] >= vwap[1] and close < vwap[1]
        rejection = prev_close >= vwap[0] and close < vwap[1]
        if failed_reclaim or rejection:
            return self._build(
                "VWAP Bearish Rejection", 'Bearish', i - 1, i,
                entry=entry,
                stop=vwap[1] * (1 + VWAP_STOP_BUFFER),
                evidence=[
                    f"Price rejected at VWAP ({vwap[1]:.2f})",
                    "Failed to reclaim VWAP" if failed_reclaim else "Lost VWAP from above",
                ],
                confirmation=[f"VWAP: {vwap[1]:.2f}"],
                indicators=('vwap',),
            )
        return None

    # ------------------------------------------------------------------
    # Moving average crosses
    # ------------------------------------------------------------------

    def _sma_cross(self, ctx: MatchContext, i: int):
        return self._last_sign_change(ctx, 'sma_50', 'sma_200', i, self.thresholds.cross_lookback)

    def _ma_cross(self, ctx: MatchContext, i: int) -> Optional[CombinationPattern]:
        cross = self._sma_cross(ctx, i)
        if cross is None:
            return None
        j, signal = cross
        stop = self._atr_stop(ctx, i, signal)
        if stop is None:
            return None

        sma50, sma200 = ctx.value('sma_50', i), ctx.value('sma_200', i)
        name = "Golden Cross" if signal == 'Bullish' else "Death Cross"
        return self._build(
            name, signal, j - 1, i,
            entry=ctx.close(i),
            stop=stop,
            evidence=[
                f"50 SMA crossed {'above' if signal == 'Bullish' else 'below'} 200 SMA at bar {j}",
                f"50 SMA {sma50:.2f} vs 200 SMA {sma200:.2f}",
            ],
            confirmation=["Price holds on the trend side of the 50 SMA", "Volume expands after the cross"],
            indicators=('sma_50', 'sma_200'),
        )

    def _golden_cross_pullback(self, ctx: MatchContext, i: int) -> Optional[CombinationPattern]:
        cross = self._sma_cross(ctx, i)
        if cross is None or cross[1] != 'Bullish':
            return None
        sma50 = ctx.value('sma_50', i)
        close = ctx.close(i)

        near = abs(close - sma50) / close <= self.thresholds.ma_proximity_pct
        bounced = ctx.candles.low[i] <= sma50 < close
        if not (near and bounced):
            return None

        return self._build(
            "Golden Cross + Pullback to 50 MA", 'Bullish', cross[0] - 1, i,
            entry=close,
            stop=sma50 * (1 - CROSS_PULLBACK_STOP_BUFFER),
            evidence=[
                "50 SMA crossed above 200 SMA (Golden Cross)",
                f"Price tested the 50 SMA ({sma50:.2f}) and closed above it",
            ],
            confirmation=["Volume confirmation", "MACD bullish crossover"],
            indicators=('sma_50', 'sma_200'),
        )

    def _death_cross_failure(self, ctx: MatchContext, i: int) -> Optional[CombinationPattern]:
        cross = self._sma_cross(ctx, i)
        if cross is None or cross[1] != 'Bearish':
            return None
        sma50 = ctx.value('sma_50', i)
        close = ctx.close(i)

        failed_rally = ctx.candles.high[i] >= sma50 * (1 - self.thresholds.level_proximity_pct) and close < sma50
        if not failed_rally:
            return None

        return self._build(
            "Death Cross + Failed Rally to 50 MA", 'Bearish', cross[0] - 1, i,
            entry=close,
            stop=sma50 * (1 + CROSS_PULLBACK_STOP_BUFFER),
            evidence=[
                "50 SMA crossed below 200 SMA (Death Cross)",
                f"Rally failed at the 50 SMA ({sma50:.2f})",
            ],
            confirmation=["Volume on rejection", "MACD bearish crossover"],
            indicators=('sma_50', 'sma_200'),
        )

    def _ema_pullback(self, ctx: MatchContext, i: int) -> Optional[CombinationPattern]:
        ema20 = ctx.value('ema_20', i)
        ema50 = ctx.value('ema_50', i)
        if ema20 is None or ema50 is None:
            return None

        close = ctx.close(i)
        prev_low, prev_high = ctx.candles.low[i - 1], ctx.candles.high[i - 1]
        if close > ema20 > ema50:
            signal = 'Bullish'
            touched = [(p, label) for p, label in ((ema20, '20'), (ema50, '50'))
                       if prev_low <= p < close]
        elif close < ema20 < ema50:
            signal = 'Bearish'
            touched = [(p, label) for p, label in ((ema20, '20'), (ema50, '50'))
                       if prev_high >= p > close]
        else:
            return None
        if not touched:
            return None

        ema_level, ema_label = touched[0]
        stop = ema_level * (1 - EMA_STOP_BUFFER) if signal == 'Bullish' else ema_level * (1 + EMA_STOP_BUFFER)

        stats = self.stats("EMA 20/50 Pullback")
        probability = stats.probability
        ratio = ctx.volume_ratio(i)
        volume_confirmed = ratio is not None and ratio >= 1.3
        if volume_confirmed:
            probability += 8
        if abs(ema_level - ema50) / ema50 < self.thresholds.level_proximity_pct:
            probability += 5

        return self._build(
            "EMA 20/50 Pullback", signal, i - 1, i,
            entry=close,
            stop=stop,
            evidence=[
                f"{signal} trend: price {'above' if signal == 'Bullish' else 'below'} both EMAs",
                f"Pullback to EMA {ema_label} ({ema_level:.2f})",
                f"Volume {ratio:.1f}x average" if volume_confirmed else "Awaiting volume confirmation",
            ],
            confirmation=[f"EMA {ema_label}: {ema_level:.2f}"],
            indicators=('ema_20', 'ema_50'),
            probability=probability,
            confidence=CONFIDENCE_HIGH if volume_confirmed else None,
        )

    # ------------------------------------------------------------------
    # Level interactions
    # ------------------------------------------------------------------

    def _level_break(self, ctx: MatchContext, i: int) -> List[CombinationPattern]:
        ratio = ctx.volume_ratio(i)
        if ratio is None or ratio < self.thresholds.breakout_volume_ratio:
            return []

        prev_close, close = ctx.close(i - 1), ctx.close(i)
        found = []

        broken = [l for l in ctx.levels if l.kind == 'Resistance' and prev_close <= l.price < close]
        if broken:
            level = max(broken, key=lambda l: l.price)
            pattern = self._build(
                "Breakout above Resistance + Volume Surge", 'Bullish', i - 1, i,
                entry=close,
                stop=level.price * (1 - BREAKOUT_STOP_BUFFER),
                evidence=[
                    f"Close {close:.2f} broke resistance {level.price:.2f} ({level.strength} touches)",
                    f"Volume {ratio:.1f}x trailing average",
                ],
                confirmation=["Retest of the broken level holds", "Follow-through close above the level"],
                indicators=('volume_ma',),
            )
            if pattern:
                found.append(pattern)

        broken = [l for l in ctx.levels if l.kind == 'Support' and prev_close >= l.price > close]
        if broken:
            level = min(broken, key=lambda l: l.price)
            pattern = self._build(
                "Breakdown below Support + Volume Spike", 'Bearish', i - 1, i,
                entry=close,
                stop=level.price * (1 + BREAKOUT_STOP_BUFFER),
                evidence=[
                    f"Close {close:.2f} broke support {level.price:.2f} ({level.strength} touches)",
                    f"Volume {ratio:.1f}x trailing average",
                ],
                confirmation=["Retest of the broken level fails", "Follow-through close below the level"],
                indicators=('volume_ma',),
            )
            if pattern:
                found.append(pattern)

        return found

    def _engulfing_at_level(self, ctx: MatchContext, i: int) -> Optional[CombinationPattern]:
        candles = ctx.candles
        close = ctx.close(i)
        tolerance = self.thresholds.level_proximity_pct

        if is_bullish_engulfing(candles, i):
            nearby = levels_near(ctx.levels, close, tolerance, kind='Support')
            if not nearby:
                return None
            level = nearby[0]
            return self._build(
                "Bullish Engulfing + Support Zone", 'Bullish', i - 1, i,
                entry=close,
                stop=level.price * (1 - ENGULFING_STOP_BUFFER),
                evidence=[
                    "Bullish engulfing pattern confirmed",
                    f"Support at {level.price:.2f} ({level.strength} touches)",
                ],
                confirmation=["Volume above average", "RSI above 30"],
            )

        if is_bearish_engulfing(candles, i):
            nearby = levels_near(ctx.levels, close, tolerance, kind='Resistance')
            if not nearby:
                return None
            level = nearby[0]
            return self._build(
                "Bearish Engulfing + Resistance Zone", 'Bearish', i - 1, i,
                entry=close,
                stop=level.price * (1 + ENGULFING_STOP_BUFFER),
                evidence=[
                    "Bearish engulfing pattern confirmed",
                    f"Resistance at {level.price:.2f} ({level.strength} touches)",
                ],
                confirmation=["Volume above average", "RSI below 70"],
            )
        return None

    def _rsi_divergence_at_support(self, ctx: MatchContext, i: int) -> Optional[CombinationPattern]:
        divergence = self._rsi_bullish_divergence(ctx, i)
        if divergence is None:
            return None

        close = ctx.close(i)
        nearby = [
            l for l in levels_near(ctx.levels, close, self.thresholds.level_proximity_pct, kind='Support')
            if close >= l.price * (1 - self.thresholds.level_proximity_pct)
        ]
        if not nearby:
            return None
        level = nearby[0]

        stats = self.stats("RSI Divergence + Support")
        probability = stats.probability
        ratio = ctx.volume_ratio(i)
        volume_confirmed = ratio is not None and ratio >= 1.1
        if volume_confirmed:
            probability += 10
        if level.strength > 3:
            probability += 5

        return self._build(
            "RSI Divergence + Support", 'Bullish', max(0, i - self.thresholds.divergence_window), i,
            entry=close,
            stop=level.price * (1 - CROSS_PULLBACK_STOP_BUFFER),
            evidence=[
                "RSI bullish divergence confirmed",
                f"Support at {level.price:.2f} ({level.strength} touches)",
                "Volume confirmation" if volume_confirmed else "No volume confirmation",
            ],
            confirmation=[f"Support: {level.price:.2f}"],
            indicators=('rsi',),
            probability=probability,
        )

    def _liquidity_sweep(self, ctx: MatchContext, i: int) -> Optional[CombinationPattern]:
        close = ctx.close(i)
        c = ctx.candles
        nearby = levels_near(ctx.levels, close, self.thresholds.sweep_proximity_pct)

        swept, signal = None, None
        for level in nearby:
            if level.kind == 'Support' and c.low[i] < level.price <= c.low[i - 1] and close > level.price:
                swept, signal = level, 'Bullish'
                break
            if level.kind == 'Resistance' and c.high[i] > level.price >= c.high[i - 1] and close < level.price:
                swept, signal = level, 'Bearish'
                break
        if swept is None:
            return None

        prior = ctx.df.iloc[max(0, i - 5):i]
        closed_inside = prior['low'].min() <= close <= prior['high'].max()
        ratio = ctx.volume_ratio(i)
        volume_spike = ratio is not None and ratio >= 1.3

        probability = self.stats("Liquidity Sweep").probability
        if volume_spike:
            probability += 8
        if closed_inside:
            probability += 7
        if swept.strength >= 3:
            probability += 5

        if signal == 'Bullish':
            stop = float(c.low[i]) * (1 - SWEEP_STOP_BUFFER)
        else:
            stop = float(c.high[i]) * (1 + SWEEP_STOP_BUFFER)

        return self._build(
            "Liquidity Sweep", signal, max(0, i - 5), i,
            entry=close,
            stop=stop,
            evidence=[
                f"Swept {swept.kind.lower()} at {swept.price:.2f} then reversed",
                f"Volume {ratio:.1f}x average" if volume_spike else "No volume spike",
                "Closed back inside prior range" if closed_inside else "No range confirmation",
            ],
            confirmation=[f"Swept {swept.kind.lower()}: {swept.price:.2f}"],
            probability=probability,
            confidence=CONFIDENCE_HIGH if volume_spike and closed_inside else None,
        )
