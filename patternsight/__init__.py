"""PatternSight - technical indicator and chart pattern detection engine."""

from patternsight.engine.analyzer import AnalysisOptions, AnalysisResult, PatternEngine, analyze
from patternsight.shared.utils.error_policy import ConfigError, InputError, InvalidPatternError

__version__ = "0.1.0"

__all__ = [
    "analyze",
    "AnalysisOptions",
    "AnalysisResult",
    "PatternEngine",
    "ConfigError",
    "InputError",
    "InvalidPatternError",
]
