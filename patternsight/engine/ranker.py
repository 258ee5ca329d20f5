"""
Pattern ranking.

Merges the matches of every category, scores them by confidence tier and
probability, and keeps the best few so the chart stays readable.

score = tier_score * 100 + probability

Ties are broken by larger risk/reward, then by earlier start bar.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from loguru import logger

from patternsight.shared.config.defaults import CONFIDENCE_TIER_SCORES, TOP_K
from patternsight.shared.models.patterns import DetectedPattern


def pattern_score(pattern: DetectedPattern, tier_scores: Mapping[str, int] = CONFIDENCE_TIER_SCORES) -> float:
    """Combined tier/probability score; any tier outranks every lower tier."""
    return tier_scores[pattern.confidence] * 100 + pattern.probability


def _sort_key(pattern: DetectedPattern, tier_scores: Mapping[str, int]) -> Tuple[float, float, int]:
    return (-pattern_score(pattern, tier_scores), -pattern.risk_reward, pattern.start_index)


def rank_patterns(
    patterns: Iterable[DetectedPattern],
    top_k: int = TOP_K,
    tier_scores: Optional[Mapping[str, int]] = None,
) -> List[DetectedPattern]:
    """
    Deduplicate, sort and truncate detected patterns.

    Patterns sharing (name, start_index, end_index) are the same match
    reported twice; only the better-scored one is kept.

    Args:
        patterns: Matches from all enabled matchers
        top_k: Maximum number of patterns returned
        tier_scores: Score per confidence tier (defaults to Low 1, Medium 2, High 3)

    Returns:
        At most top_k patterns, best first
    """
    scores = tier_scores or CONFIDENCE_TIER_SCORES
    best: Dict[Tuple[str, int, int], DetectedPattern] = {}

    for pattern in patterns:
        key = (pattern.name, pattern.start_index, pattern.end_index)
        current = best.get(key)
        if current is None or _sort_key(pattern, scores) < _sort_key(current, scores):
            best[key] = pattern

    ranked = sorted(best.values(), key=lambda p: _sort_key(p, scores))
    kept = ranked[:top_k]

    if kept:
        logger.debug(
            f"Ranked {len(ranked)} unique patterns, kept {len(kept)}: "
            + ", ".join(f"{p.code}({pattern_score(p, scores):.0f})" for p in kept)
        )
    return kept
