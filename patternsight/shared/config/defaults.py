"""
Default configuration for the PatternSight engine.

Indicator windows, detector thresholds, ranking constants and overlay
geometry. Every numeric threshold a matcher uses is declared here so a
caller can tune it without touching detector code.
"""
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Tuple

from patternsight.shared.utils.error_policy import ConfigError


# ============================================================================
# MATCHER CATEGORIES
# ============================================================================

CATEGORY_CANDLESTICK = "candlestick"
CATEGORY_CONFLUENCE = "confluence"
CATEGORY_COMBINATION = "combination"
CATEGORY_COMPOSITE_SWING = "composite-swing"
CATEGORY_COMPOSITE_INTRADAY = "composite-intraday"

ALL_CATEGORIES: Tuple[str, ...] = (
    CATEGORY_CANDLESTICK,
    CATEGORY_CONFLUENCE,
    CATEGORY_COMBINATION,
    CATEGORY_COMPOSITE_SWING,
    CATEGORY_COMPOSITE_INTRADAY,
)


# ============================================================================
# INDICATOR FAMILIES
# ============================================================================
#
# Callers select indicator families; each family fills one or more arrays
# of the IndicatorSet.

INDICATOR_FAMILIES: Dict[str, Tuple[str, ...]] = {
    "sma": ("sma_20", "sma_50", "sma_200"),
    "ema": ("ema_12", "ema_26", "ema_20", "ema_50"),
    "rsi": ("rsi",),
    "macd": ("macd_line", "macd_signal", "macd_histogram"),
    "bollinger": ("bb_upper", "bb_middle", "bb_lower"),
    "stochastic": ("stoch_k", "stoch_d"),
    "obv": ("obv",),
    "vwap": ("vwap",),
    "atr": ("atr",),
    "volume_ma": ("volume_ma",),
}

ALL_INDICATORS: Tuple[str, ...] = tuple(INDICATOR_FAMILIES)

# Families a matcher category reads; computed even when not selected
CATEGORY_DEPENDENCIES: Dict[str, FrozenSet[str]] = {
    CATEGORY_CANDLESTICK: frozenset({"sma", "volume_ma"}),
    CATEGORY_CONFLUENCE: frozenset({"sma", "volume_ma"}),
    CATEGORY_COMBINATION: frozenset(
        {"sma", "ema", "rsi", "macd", "stochastic", "vwap", "atr", "volume_ma"}
    ),
    CATEGORY_COMPOSITE_SWING: frozenset({"sma", "rsi", "macd", "atr", "volume_ma"}),
    CATEGORY_COMPOSITE_INTRADAY: frozenset({"sma", "rsi", "volume_ma"}),
}


# ============================================================================
# VWAP RESET POLICY
# ============================================================================
#
# 'series'  - one cumulative VWAP over the whole series
# 'session' - restart at every calendar-day change of the bar timestamp

VWAP_RESET_SERIES = "series"
VWAP_RESET_SESSION = "session"
VWAP_RESET_POLICIES: Tuple[str, ...] = (VWAP_RESET_SERIES, VWAP_RESET_SESSION)
VWAP_RESET = VWAP_RESET_SERIES


# ============================================================================
# RANKING
# ============================================================================

CONFIDENCE_LOW = "Low"
CONFIDENCE_MEDIUM = "Medium"
CONFIDENCE_HIGH = "High"
CONFIDENCE_TIERS: Tuple[str, ...] = (CONFIDENCE_LOW, CONFIDENCE_MEDIUM, CONFIDENCE_HIGH)

CONFIDENCE_TIER_SCORES: Dict[str, int] = {
    CONFIDENCE_LOW: 1,
    CONFIDENCE_MEDIUM: 2,
    CONFIDENCE_HIGH: 3,
}

TOP_K = 3


# ============================================================================
# OVERLAY COLORS
# ============================================================================

COLOR_BULLISH = "#10b981"
COLOR_BEARISH = "#ef4444"
COLOR_NEUTRAL = "#f59e0b"
COLOR_ENTRY = "#3b82f6"
COLOR_SUPPORT = "#22d3ee"
COLOR_RESISTANCE = "#f472b6"

SIGNAL_COLORS: Dict[str, str] = {
    "Bullish": COLOR_BULLISH,
    "Bearish": COLOR_BEARISH,
    "Neutral": COLOR_NEUTRAL,
}


@dataclass
class WindowSizes:
    """Indicator calculation window sizes."""
    # Simple moving averages
    sma_fast: int = 20
    sma_medium: int = 50
    sma_slow: int = 200

    # Exponential moving averages
    ema_fast: int = 12
    ema_slow: int = 26
    ema_pullback_fast: int = 20
    ema_pullback_slow: int = 50

    # RSI/Momentum
    rsi_period: int = 14
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    stoch_k_period: int = 14
    stoch_d_period: int = 3

    # Volatility
    atr_period: int = 14
    bb_period: int = 20
    bb_std: float = 2.0

    # Volume
    volume_ma_period: int = 20


@dataclass
class LevelConfig:
    """Support/resistance clustering parameters."""
    radius: int = 5  # Bars on each side an extremum must dominate
    tolerance_pct: float = 0.005  # 0.5% price band for one cluster
    min_touches: int = 2

    # Level lines drawn by the overlay generator
    overlay_min_strength: int = 3
    overlay_max_levels: int = 3


@dataclass
class PatternThresholds:
    """Shape ratios and gates used by the pattern matchers."""
    # Candlestick shapes
    doji_body_ratio: float = 0.1
    hammer_shadow_ratio: float = 2.0
    hammer_opposite_shadow_ratio: float = 0.1
    hammer_body_ratio: float = 0.3
    star_body_ratio: float = 0.6
    star_middle_body_ratio: float = 0.3
    star_volume_ratio: float = 1.3
    marubozu_shadow_ratio: float = 0.01
    true_range_period: int = 14

    # Confluence
    confluence_tolerance_pct: float = 0.02
    confluence_probability_bonus: float = 15.0
    confluence_volume_bonus: float = 10.0
    confluence_volume_ratio: float = 1.5
    confluence_probability_cap: float = 95.0

    # Advanced combinations
    combination_min_bars: int = 50
    cross_lookback: int = 10
    signal_cross_lookback: int = 3
    breakout_volume_ratio: float = 1.5
    level_proximity_pct: float = 0.02
    ma_proximity_pct: float = 0.015
    divergence_window: int = 20
    divergence_pivot_lookback: int = 3
    rsi_bullish_zone: Tuple[float, float] = (30.0, 45.0)
    rsi_bearish_zone: Tuple[float, float] = (55.0, 70.0)
    stoch_oversold: float = 20.0
    stoch_overbought: float = 80.0
    acceleration_bars: int = 3
    atr_stop_multiplier: float = 1.5
    reward_multiple: float = 2.0
    structure_window: int = 30
    cup_min_depth: float = 0.12
    cup_max_depth: float = 0.33
    handle_max_depth: float = 0.12
    triple_top_tolerance_pct: float = 0.015
    triangle_min_touches: int = 2
    sweep_proximity_pct: float = 0.03

    # Opening range breakout
    orb_window: int = 15
    orb_range_bars: int = 4
    orb_volume_ratio: float = 1.5
    orb_stop_buffer: float = 0.1  # Fraction of the range beyond its far side
    orb_target_multiple: float = 1.5  # Target distance in range sizes

    # VWAP bounce / reject
    vwap_trend_bars: int = 10
    vwap_bounce_volume_ratio: float = 1.2
    vwap_bounce_stop_buffer: float = 0.002
    vwap_bounce_target_multiple: float = 1.5  # Target distance in risk units
    vwap_flat_slope: float = 0.001

    # End-of-day sharp drop
    sharp_drop_min_pct: float = 0.03
    sharp_drop_max_pct: float = 0.05
    sharp_drop_min_avg_volume: float = 500_000.0
    sharp_drop_min_price: float = 3.0
    sharp_drop_swing_window: int = 30
    sharp_drop_support_pct: float = 0.01
    sharp_drop_signal_score: float = 70.0
    sharp_drop_score_margin: float = 10.0
    sharp_drop_score_cap: float = 90.0

    # Composite swing strategy
    swing_location_tolerance_pct: float = 0.02
    swing_rsi_max: float = 40.0
    swing_rsi_rising_bars: int = 2
    swing_stop_buffer: float = 0.98
    swing_min_target_pct: float = 0.05
    swing_probability_cap: float = 90.0

    # Composite 2-3 day swing trade
    swing_trade_volume_ratio: float = 1.2
    swing_trade_rsi_midline: float = 50.0
    swing_trade_rsi_strong: float = 55.0
    swing_trade_breakout_pct: float = 0.02
    swing_trade_bounce_pct: float = 0.03
    swing_trade_stop_atr: float = 1.5
    swing_trade_target_atr: float = 2.0
    swing_trade_probability_cap: float = 90.0

    # Composite intraday gap strategy
    gap_min_pct: float = 0.003
    gap_volume_ratio: float = 1.2
    gap_rsi_min: float = 40.0
    gap_rsi_max: float = 80.0
    gap_stop_buffer: float = 0.98
    gap_target_multiple: float = 2.0


@dataclass
class RankingConfig:
    """Confidence tier scores and top-K cutoff for the ranker."""
    top_k: int = TOP_K
    tier_scores: Dict[str, int] = field(default_factory=lambda: dict(CONFIDENCE_TIER_SCORES))


@dataclass
class OverlayConfig:
    """Overlay geometry in chart coordinates (x = bar index, y = price)."""
    projection_bars: int = 15
    icon_offset_pct: float = 0.02
    label_max_attempts: int = 10
    label_char_width: float = 0.35  # Bars per label character
    label_height_pct: float = 0.03  # Fraction of the series price span
    label_gap_ratio: float = 0.25  # Vertical gap as a fraction of label height


@dataclass
class EngineConfig:
    """Complete engine configuration."""
    windows: WindowSizes = field(default_factory=WindowSizes)
    levels: LevelConfig = field(default_factory=LevelConfig)
    thresholds: PatternThresholds = field(default_factory=PatternThresholds)
    ranking: RankingConfig = field(default_factory=RankingConfig)
    overlays: OverlayConfig = field(default_factory=OverlayConfig)
    vwap_reset: str = VWAP_RESET

    def validate(self) -> None:
        """
        Check the configuration for impossible values.

        Raises:
            ConfigError: If a window, tolerance or ranking constant is invalid
        """
        for name, value in vars(self.windows).items():
            if value <= 0:
                raise ConfigError(f"Window '{name}' must be positive, got {value}")

        if self.levels.radius < 1:
            raise ConfigError(f"Level radius must be >= 1, got {self.levels.radius}")
        if self.levels.tolerance_pct <= 0:
            raise ConfigError(f"Level tolerance must be positive, got {self.levels.tolerance_pct}")
        if self.levels.min_touches < 1:
            raise ConfigError(f"Level min_touches must be >= 1, got {self.levels.min_touches}")

        if self.ranking.top_k < 1:
            raise ConfigError(f"top_k must be >= 1, got {self.ranking.top_k}")
        missing_tiers = set(CONFIDENCE_TIERS) - set(self.ranking.tier_scores)
        if missing_tiers:
            raise ConfigError(f"Tier scores missing for: {sorted(missing_tiers)}")

        if self.overlays.label_max_attempts < 1:
            raise ConfigError(
                f"label_max_attempts must be >= 1, got {self.overlays.label_max_attempts}"
            )

        if self.vwap_reset not in VWAP_RESET_POLICIES:
            raise ConfigError(
                f"Unknown VWAP reset policy '{self.vwap_reset}', expected one of {VWAP_RESET_POLICIES}"
            )


# Default instances
DEFAULT_WINDOWS = WindowSizes()
DEFAULT_LEVELS = LevelConfig()
DEFAULT_THRESHOLDS = PatternThresholds()
DEFAULT_RANKING = RankingConfig()
DEFAULT_OVERLAYS = OverlayConfig()
