"""
Technical Indicators Package

Provides:
- Moving averages (SMA, EMA)
- Momentum indicators (RSI, MACD, Stochastic)
- Volatility indicators (True Range, ATR, Bollinger Bands)
- Volume indicators (Volume MA, RVOL, OBV, VWAP)
- Data validation utilities

All indicator functions follow consistent patterns:
- Accept pandas DataFrame with OHLCV columns
- Return pandas Series or tuple of Series aligned to the input index
- Leave the warm-up window NaN instead of raising on short series
- Raise ValueError for missing columns
"""

from patternsight.indicators.moving_averages import (
    compute_sma,
    compute_ema,
    sma_of_series,
    ema_of_series,
)

from patternsight.indicators.momentum import (
    compute_rsi,
    compute_macd,
    compute_stochastic,
)

from patternsight.indicators.volatility import (
    compute_true_range,
    compute_atr,
    recent_true_range,
    rolling_true_range,
    compute_bollinger_bands,
)

from patternsight.indicators.volume import (
    compute_volume_ma,
    compute_relative_volume,
    compute_obv,
    compute_vwap,
    session_ids,
)

from patternsight.indicators.validation_utils import (
    ValidationReport,
    validate_ohlcv,
    validate_series,
    require_columns,
)

__all__ = [
    # Moving averages
    'compute_sma',
    'compute_ema',
    'sma_of_series',
    'ema_of_series',
    # Momentum
    'compute_rsi',
    'compute_macd',
    'compute_stochastic',
    # Volatility
    'compute_true_range',
    'compute_atr',
    'recent_true_range',
    'rolling_true_range',
    'compute_bollinger_bands',
    # Volume
    'compute_volume_ma',
    'compute_relative_volume',
    'compute_obv',
    'compute_vwap',
    'session_ids',
    # Validation
    'ValidationReport',
    'validate_ohlcv',
    'validate_series',
    'require_columns',
]
