"""Services package - indicator computation for PatternSight."""

from patternsight.services.indicator_service import IndicatorService, resolve_indicator_families

__all__ = [
    "IndicatorService",
    "resolve_indicator_families",
]
