"""
Confluence Pattern Detection

Promotes a directional candlestick match when the close of its last bar
sits near a level of matching bias:
- Bullish shape near Support
- Bearish shape near Resistance

The promoted pattern is one confidence tier above its base and carries a
probability bonus (larger when the bar traded on above-average volume).
Base matches are left untouched; the ranker sees both.
"""

from typing import List, Optional

from loguru import logger

from patternsight.analysis.levels import levels_near
from patternsight.shared.config.defaults import CATEGORY_CONFLUENCE
from patternsight.shared.models.patterns import CandlestickPattern, ConfluencePattern, Level
from patternsight.strategy.patterns.base import (
    MatchContext,
    PatternMatcher,
    levels_are_valid,
    promote_confidence,
    target_from_stop,
)


_BIAS = {'Bullish': 'Support', 'Bearish': 'Resistance'}


class ConfluenceMatcher(PatternMatcher):
    """Candlestick shape + level of matching bias."""

    category = CATEGORY_CONFLUENCE

    def match(self, ctx: MatchContext) -> List[ConfluencePattern]:
        if not ctx.candlesticks or not ctx.levels:
            return []

        patterns = []
        for base in ctx.candlesticks:
            promoted = self._promote(ctx, base)
            if promoted is not None:
                patterns.append(promoted)

        logger.debug(
            f"Confluence matcher promoted {len(patterns)} of {len(ctx.candlesticks)} candlestick matches"
        )
        return patterns

    def _promote(self, ctx: MatchContext, base: CandlestickPattern) -> Optional[ConfluencePattern]:
        kind = _BIAS.get(base.signal)
        if kind is None:
            return None

        close = ctx.close(base.end_index)
        nearby = levels_near(ctx.levels, close, self.thresholds.confluence_tolerance_pct, kind=kind)
        if not nearby:
            return None
        level = nearby[0]

        t = self.thresholds
        probability = base.probability + t.confluence_probability_bonus
        evidence = list(base.evidence)
        evidence.append(
            f"Close {close:.2f} within {level.distance_pct(close):.1%} of {kind.lower()} "
            f"{level.price:.2f} ({level.strength} touches)"
        )
        ratio = ctx.volume_ratio(base.end_index)
        if ratio is not None and ratio > t.confluence_volume_ratio:
            probability += t.confluence_volume_bonus
            evidence.append(f"Volume {ratio:.1f}x average at the level")
        probability = min(probability, t.confluence_probability_cap)

        stop, target = self._levels(base, level)
        if not levels_are_valid(base.signal, base.entry_price, stop, target):
            return None

        suffix = 'S' if kind == 'Support' else 'R'
        return ConfluencePattern(
            name=f"{base.name} at {kind}",
            code=f"{base.code}@{suffix}",
            signal=base.signal,
            confidence=promote_confidence(base.confidence),
            probability=probability,
            start_index=base.start_index,
            end_index=base.end_index,
            entry_price=base.entry_price,
            target_price=target,
            stop_loss=stop,
            evidence=evidence,
            confirmation=list(base.confirmation) + [f"{kind} at {level.price:.2f} holds on a closing basis"],
            base_pattern=base.name,
            level_price=level.price,
            level_kind=kind,
        )

    def _levels(self, base: CandlestickPattern, level: Level):
        """Stop moves beyond the level's band; target keeps the base reward multiple."""
        band = self.config.levels.tolerance_pct
        if base.signal == 'Bearish':
            stop = max(base.stop_loss, level.price * (1 + band))
        else:
            stop = min(base.stop_loss, level.price * (1 - band))
        multiple = self.stats(base.name).reward_multiple
        return stop, target_from_stop(base.signal, base.entry_price, stop, multiple)
