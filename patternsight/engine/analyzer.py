"""
PatternSight analysis pipeline.

Wires every component together for one series:
1. Option validation
2. Series normalization
3. Indicator computation
4. Support/resistance detection
5. Pattern matching (enabled categories only)
6. Ranking
7. Overlay generation

The pipeline is synchronous and keeps no state between calls: the same
input always produces the same result.
"""

import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from patternsight.analysis.levels import detect_levels
from patternsight.data.normalizer import BarsInput, normalize_series
from patternsight.engine.overlays import generate_overlays
from patternsight.engine.ranker import rank_patterns
from patternsight.services.indicator_service import IndicatorService, resolve_indicator_families
from patternsight.shared.config.defaults import (
    ALL_CATEGORIES,
    CATEGORY_CANDLESTICK,
    CATEGORY_COMBINATION,
    CATEGORY_COMPOSITE_INTRADAY,
    CATEGORY_COMPOSITE_SWING,
    CATEGORY_CONFLUENCE,
    EngineConfig,
)
from patternsight.shared.config.pattern_table import DEFAULT_PATTERN_TABLE, PatternTable
from patternsight.shared.models.indicators import IndicatorSet
from patternsight.shared.models.patterns import DetectedPattern, Level, Overlay
from patternsight.shared.utils.error_policy import ConfigError
from patternsight.shared.utils.logging_utils import log_timing, timed_stage
from patternsight.strategy.patterns.base import MatchContext
from patternsight.strategy.patterns.candlestick import CandlestickMatcher
from patternsight.strategy.patterns.combinations import CombinationMatcher
from patternsight.strategy.patterns.composite import (
    GapBreakoutMatcher,
    SwingStrategyMatcher,
    SwingTradeMatcher,
)
from patternsight.strategy.patterns.confluence import ConfluenceMatcher
from patternsight.strategy.patterns.setups import SetupMatcher
from patternsight.strategy.patterns.structures import StructureMatcher


@dataclass
class AnalysisOptions:
    """
    Per-call options.

    Attributes:
        categories: Matcher categories to run (default: all five)
        indicators: Indicator families to compute (None = all); families an
            enabled matcher needs are always added
        top_k: Override for the number of ranked patterns kept
        vwap_reset: Override for the VWAP reset policy ('series' or 'session')
        symbol: Label used in log lines
        timestamp_unit: Unit for numeric epoch timestamps
    """
    categories: Sequence[str] = ALL_CATEGORIES
    indicators: Optional[Sequence[str]] = None
    top_k: Optional[int] = None
    vwap_reset: Optional[str] = None
    symbol: str = "series"
    timestamp_unit: str = 's'

    def __post_init__(self):
        if isinstance(self.categories, str):
            self.categories = (self.categories,)
        if isinstance(self.indicators, str):
            self.indicators = (self.indicators,)

    def validate(self) -> None:
        """
        Raises:
            ConfigError: On unknown categories or an invalid top_k
        """
        unknown = [c for c in self.categories if c not in ALL_CATEGORIES]
        if unknown:
            raise ConfigError(f"Unknown matcher categories {unknown}; expected a subset of {list(ALL_CATEGORIES)}")
        if self.top_k is not None and (not isinstance(self.top_k, int) or self.top_k < 1):
            raise ConfigError(f"top_k must be a positive integer, got {self.top_k!r}")


@dataclass
class AnalysisResult:
    """Everything the presentation layer needs for one series."""
    indicators: IndicatorSet
    levels: List[Level] = field(default_factory=list)
    patterns: List[DetectedPattern] = field(default_factory=list)
    overlays: List[Overlay] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'indicators': self.indicators.to_dict(),
            'levels': [level.to_dict() for level in self.levels],
            'patterns': [pattern.to_dict() for pattern in self.patterns],
            'overlays': [overlay.to_dict() for overlay in self.overlays],
        }


class PatternEngine:
    """
    Runs the full analysis pipeline.

    Usage:
        engine = PatternEngine()
        result = engine.analyze(bars, AnalysisOptions(categories=['candlestick']))
    """

    def __init__(self, table: Optional[PatternTable] = None, config: Optional[EngineConfig] = None):
        """
        Args:
            table: Pattern probability table (default: built-in table)
            config: Engine configuration (default: built-in defaults)

        Raises:
            ConfigError: If the configuration is invalid
        """
        self.table = table or DEFAULT_PATTERN_TABLE
        self.config = config or EngineConfig()
        self.config.validate()

    def _resolve_config(self, options: AnalysisOptions) -> EngineConfig:
        config = self.config
        if options.top_k is not None:
            config = replace(config, ranking=replace(config.ranking, top_k=options.top_k))
        if options.vwap_reset is not None:
            config = replace(config, vwap_reset=options.vwap_reset)
        config.validate()
        return config

    def analyze(self, series: BarsInput, options: Optional[AnalysisOptions] = None) -> AnalysisResult:
        """
        Analyze one OHLCV series.

        Args:
            series: Bars (DataFrame or iterable of OHLCV / mappings), time-ordered
            options: Per-call options

        Returns:
            AnalysisResult with indicators, levels, ranked patterns and overlays

        Raises:
            ConfigError: On invalid options, before any data is read
            InputError: On a malformed series, before any computation
        """
        options = options or AnalysisOptions()
        options.validate()
        config = self._resolve_config(options)
        categories = tuple(dict.fromkeys(options.categories))
        families = resolve_indicator_families(options.indicators, categories)
        label = options.symbol
        started = time.perf_counter()

        with timed_stage("NORMALIZE", label) as stage:
            df = normalize_series(series, timestamp_unit=options.timestamp_unit)
            stage['bars'] = len(df)

        with timed_stage("INDICATORS", label) as stage:
            indicators = IndicatorService(config, families).compute(df)
            stage['computed'] = len(indicators.arrays())

        with timed_stage("LEVELS", label) as stage:
            levels = detect_levels(
                df,
                radius=config.levels.radius,
                tolerance_pct=config.levels.tolerance_pct,
                min_touches=config.levels.min_touches,
            )
            stage['levels'] = len(levels)

        with timed_stage("PATTERNS", label) as stage:
            found = self._match(df, indicators, levels, categories, config)
            stage['matches'] = len(found)

        with timed_stage("RANKING", label) as stage:
            ranked = rank_patterns(found, config.ranking.top_k, config.ranking.tier_scores)
            stage['kept'] = len(ranked)

        with timed_stage("OVERLAYS", label) as stage:
            overlays = generate_overlays(ranked, df, levels, config.overlays, config.levels)
            stage['overlays'] = len(overlays)

        logger.info(
            f"{label}: {len(df)} bars, {len(levels)} levels, "
            f"{len(found)} matches -> {len(ranked)} ranked patterns"
        )
        log_timing("analyze", (time.perf_counter() - started) * 1000, label)
        return AnalysisResult(indicators=indicators, levels=levels, patterns=ranked, overlays=overlays)

    def _match(
        self,
        df,
        indicators: IndicatorSet,
        levels: List[Level],
        categories: Sequence[str],
        config: EngineConfig,
    ) -> List[DetectedPattern]:
        ctx = MatchContext(df=df, indicators=indicators, levels=levels)
        found: List[DetectedPattern] = []

        # Confluence promotes candlestick matches, so they are needed even
        # when the candlestick category itself is disabled
        if CATEGORY_CANDLESTICK in categories or CATEGORY_CONFLUENCE in categories:
            ctx.candlesticks = CandlestickMatcher(self.table, config).match(ctx)
            if CATEGORY_CANDLESTICK in categories:
                found.extend(ctx.candlesticks)

        matchers = []
        if CATEGORY_CONFLUENCE in categories:
            matchers.append(ConfluenceMatcher(self.table, config))
        if CATEGORY_COMBINATION in categories:
            matchers.extend([
                CombinationMatcher(self.table, config),
                StructureMatcher(self.table, config),
                SetupMatcher(self.table, config),
            ])
        if CATEGORY_COMPOSITE_SWING in categories:
            matchers.extend([SwingStrategyMatcher(self.table, config), SwingTradeMatcher(self.table, config)])
        if CATEGORY_COMPOSITE_INTRADAY in categories:
            matchers.append(GapBreakoutMatcher(self.table, config))

        for matcher in matchers:
            found.extend(matcher.match(ctx))

        return found


def analyze(
    series: BarsInput,
    options: Optional[AnalysisOptions] = None,
    table: Optional[PatternTable] = None,
    config: Optional[EngineConfig] = None,
) -> AnalysisResult:
    """Analyze one series with a fresh PatternEngine."""
    return PatternEngine(table, config).analyze(series, options)
