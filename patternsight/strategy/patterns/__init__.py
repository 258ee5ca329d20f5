"""Pattern matchers - one class per matcher category."""

from patternsight.strategy.patterns.base import MatchContext, PatternMatcher
from patternsight.strategy.patterns.candlestick import CandlestickMatcher
from patternsight.strategy.patterns.confluence import ConfluenceMatcher
from patternsight.strategy.patterns.combinations import CombinationMatcher
from patternsight.strategy.patterns.structures import StructureMatcher
from patternsight.strategy.patterns.setups import SetupMatcher
from patternsight.strategy.patterns.composite import (
    GapBreakoutMatcher,
    SwingStrategyMatcher,
    SwingTradeMatcher,
)

__all__ = [
    "MatchContext",
    "PatternMatcher",
    "CandlestickMatcher",
    "ConfluenceMatcher",
    "CombinationMatcher",
    "StructureMatcher",
    "SetupMatcher",
    "SwingStrategyMatcher",
    "SwingTradeMatcher",
    "GapBreakoutMatcher",
]
