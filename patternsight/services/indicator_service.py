"""
Indicator Service - computes the IndicatorSet for one normalized series.

Computes only the requested indicator families plus whatever the enabled
matcher categories read:
- Trend: SMA 20/50/200, EMA 12/26/20/50
- Momentum: RSI, MACD, Stochastic
- Volatility: ATR, Bollinger Bands
- Volume: OBV, VWAP, Volume MA
"""

import logging
from typing import Dict, FrozenSet, Iterable, Optional

import pandas as pd

from patternsight.shared.config.defaults import (
    ALL_CATEGORIES,
    ALL_INDICATORS,
    CATEGORY_DEPENDENCIES,
    INDICATOR_FAMILIES,
    EngineConfig,
)
from patternsight.shared.models.indicators import IndicatorSet
from patternsight.shared.utils.error_policy import ConfigError

from patternsight.indicators.moving_averages import compute_sma, compute_ema
from patternsight.indicators.momentum import compute_rsi, compute_macd, compute_stochastic
from patternsight.indicators.volatility import compute_atr, compute_bollinger_bands
from patternsight.indicators.volume import compute_obv, compute_vwap, compute_volume_ma
from patternsight.indicators.validation_utils import validate_series

logger = logging.getLogger(__name__)


def resolve_indicator_families(
    selected: Optional[Iterable[str]],
    categories: Iterable[str],
) -> FrozenSet[str]:
    """
    Work out which indicator families must be computed.

    Args:
        selected: Families the caller wants on the chart (None = all)
        categories: Enabled matcher categories

    Returns:
        Selected families plus every family an enabled matcher depends on

    Raises:
        ConfigError: If a family or category name is unknown
    """
    families = set(ALL_INDICATORS if selected is None else selected)
    unknown = families - set(ALL_INDICATORS)
    if unknown:
        raise ConfigError(f"Unknown indicators: {sorted(unknown)}; expected a subset of {list(ALL_INDICATORS)}")

    for category in categories:
        if category not in CATEGORY_DEPENDENCIES:
            raise ConfigError(f"Unknown matcher category '{category}'; expected one of {list(ALL_CATEGORIES)}")
        families |= CATEGORY_DEPENDENCIES[category]

    return frozenset(families)


class IndicatorService:
    """
    Service for computing technical indicators of one series.

    Usage:
        service = IndicatorService(config, families={'rsi', 'macd'})
        indicators = service.compute(df)
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        families: Optional[Iterable[str]] = None,
    ):
        """
        Initialize indicator service.

        Args:
            config: Engine configuration (window sizes, VWAP reset policy)
            families: Indicator families to compute (None = all)
        """
        self._config = config or EngineConfig()
        self._families = resolve_indicator_families(families, ())
        self._diagnostics: Dict[str, list] = {'undefined_indicators': []}

    @property
    def families(self) -> FrozenSet[str]:
        return self._families

    @property
    def diagnostics(self) -> Dict[str, list]:
        """Get diagnostic information from last computation."""
        return self._diagnostics

    def compute(self, df: pd.DataFrame) -> IndicatorSet:
        """
        Compute the selected indicator families.

        Args:
            df: Normalized OHLCV series

        Returns:
            IndicatorSet whose arrays all have len(df) values
        """
        self._diagnostics = {'undefined_indicators': []}
        windows = self._config.windows
        arrays: Dict[str, pd.Series] = {}

        if 'sma' in self._families:
            arrays['sma_20'] = compute_sma(df, windows.sma_fast)
            arrays['sma_50'] = compute_sma(df, windows.sma_medium)
            arrays['sma_200'] = compute_sma(df, windows.sma_slow)

        if 'ema' in self._families:
            arrays['ema_12'] = compute_ema(df, windows.ema_fast)
            arrays['ema_26'] = compute_ema(df, windows.ema_slow)
            arrays['ema_20'] = compute_ema(df, windows.ema_pullback_fast)
            arrays['ema_50'] = compute_ema(df, windows.ema_pullback_slow)

        if 'rsi' in self._families:
            arrays['rsi'] = compute_rsi(df, windows.rsi_period)

        if 'macd' in self._families:
            macd_line, macd_signal, macd_hist = compute_macd(
                df, windows.macd_fast, windows.macd_slow, windows.macd_signal
            )
            arrays['macd_line'] = macd_line
            arrays['macd_signal'] = macd_signal
            arrays['macd_histogram'] = macd_hist

        if 'bollinger' in self._families:
            bb_upper, bb_middle, bb_lower = compute_bollinger_bands(df, windows.bb_period, windows.bb_std)
            arrays['bb_upper'] = bb_upper
            arrays['bb_middle'] = bb_middle
            arrays['bb_lower'] = bb_lower

        if 'stochastic' in self._families:
            stoch_k, stoch_d = compute_stochastic(df, windows.stoch_k_period, windows.stoch_d_period)
            arrays['stoch_k'] = stoch_k
            arrays['stoch_d'] = stoch_d

        if 'atr' in self._families:
            arrays['atr'] = compute_atr(df, windows.atr_period)

        if 'obv' in self._families:
            arrays['obv'] = compute_obv(df)

        if 'vwap' in self._families:
            arrays['vwap'] = compute_vwap(df, reset=self._config.vwap_reset)

        if 'volume_ma' in self._families:
            arrays['volume_ma'] = compute_volume_ma(df, windows.volume_ma_period)

        for name, values in arrays.items():
            validate_series(values, name)
            if len(values) and values.isna().all():
                self._diagnostics['undefined_indicators'].append(name)

        if self._diagnostics['undefined_indicators']:
            logger.debug(
                "Insufficient data (%d bars) for: %s",
                len(df), ", ".join(self._diagnostics['undefined_indicators'])
            )

        return IndicatorSet(length=len(df), **arrays)
