"""
Support/Resistance Level Detection

Finds horizontal price levels from clustered local extrema:
- Support: cluster of local lows
- Resistance: cluster of local highs

A level's strength is its touch count (the number of extrema in its
cluster). Clusters that overlap under the tolerance band are always merged,
preferring fewer, stronger levels over many weak ones.
"""

from typing import List, Optional, Tuple

import numpy as np
import pandas as pd
from loguru import logger

from patternsight.shared.config.defaults import DEFAULT_LEVELS
from patternsight.shared.models.patterns import Level


def find_local_extrema(values: np.ndarray, radius: int, find_max: bool) -> List[int]:
    """
    Indices that dominate their edge-clamped neighbourhood.

    A bar qualifies when no neighbour within ``radius`` bars is beyond it
    and at least one neighbour is strictly inside it, so a flat stretch
    produces no extrema at all.
    """
    series = pd.Series(values, dtype=float)
    window = series.rolling(window=2 * radius + 1, center=True, min_periods=1)
    highest = window.max().to_numpy()
    lowest = window.min().to_numpy()

    if find_max:
        mask = (values >= highest) & (values > lowest)
    else:
        mask = (values <= lowest) & (values < highest)
    return np.flatnonzero(mask).tolist()


def _cluster(points: List[Tuple[float, int]], tolerance_pct: float) -> List[List[Tuple[float, int]]]:
    """Group (price, index) points whose prices sit within the tolerance band."""
    if not points:
        return []

    ordered = sorted(points)
    clusters: List[List[Tuple[float, int]]] = [[ordered[0]]]
    for price, index in ordered[1:]:
        current = clusters[-1]
        mean = sum(p for p, _ in current) / len(current)
        if abs(price - mean) <= mean * tolerance_pct:
            current.append((price, index))
        else:
            clusters.append([(price, index)])

    # Neighbouring clusters whose means drifted into the band are merged
    merged = True
    while merged and len(clusters) > 1:
        merged = False
        for k in range(len(clusters) - 1):
            left_mean = sum(p for p, _ in clusters[k]) / len(clusters[k])
            right_mean = sum(p for p, _ in clusters[k + 1]) / len(clusters[k + 1])
            if abs(right_mean - left_mean) <= left_mean * tolerance_pct:
                clusters[k] = clusters[k] + clusters[k + 1]
                del clusters[k + 1]
                merged = True
                break

    return clusters


def _build_levels(
    values: np.ndarray,
    kind: str,
    radius: int,
    tolerance_pct: float,
    min_touches: int,
) -> List[Level]:
    extrema = find_local_extrema(values, radius, find_max=(kind == 'Resistance'))
    points = [(float(values[i]), i) for i in extrema]

    levels = []
    for cluster in _cluster(points, tolerance_pct):
        if len(cluster) < min_touches:
            continue
        indices = [i for _, i in cluster]
        levels.append(Level(
            price=sum(p for p, _ in cluster) / len(cluster),
            kind=kind,
            strength=len(cluster),
            first_index=min(indices),
            last_index=max(indices),
        ))
    return levels


def detect_levels(
    df: pd.DataFrame,
    radius: int = DEFAULT_LEVELS.radius,
    tolerance_pct: float = DEFAULT_LEVELS.tolerance_pct,
    min_touches: int = DEFAULT_LEVELS.min_touches,
) -> List[Level]:
    """
    Detect support and resistance levels.

    Args:
        df: Normalized OHLCV series
        radius: Bars on each side a local extremum must dominate
        tolerance_pct: Relative price band for clustering extrema
        min_touches: Minimum cluster size for a level to be reported

    Returns:
        Levels sorted by strength (desc), then most recent touch (desc),
        then price
    """
    if len(df) < 2:
        logger.debug("Not enough bars for level detection")
        return []

    lows = df['low'].to_numpy(dtype=float)
    highs = df['high'].to_numpy(dtype=float)

    levels = (
        _build_levels(lows, 'Support', radius, tolerance_pct, min_touches)
        + _build_levels(highs, 'Resistance', radius, tolerance_pct, min_touches)
    )
    levels.sort(key=lambda l: (-l.strength, -l.last_index, l.price))

    logger.debug(
        f"Detected {sum(l.kind == 'Support' for l in levels)} support and "
        f"{sum(l.kind == 'Resistance' for l in levels)} resistance levels"
    )
    return levels


def get_nearest_level(
    levels: List[Level],
    current_price: float,
    kind: Optional[str] = None,
    direction: str = "both",
) -> Optional[Level]:
    """
    Find the nearest level to current price.

    Args:
        levels: Detected levels
        current_price: Current price
        kind: 'Support', 'Resistance' or None for either
        direction: 'above', 'below', or 'both'

    Returns:
        Nearest Level or None
    """
    candidates = [l for l in levels if kind is None or l.kind == kind]
    if not candidates:
        return None

    if direction == "above":
        above = [l for l in candidates if l.price > current_price]
        return min(above, key=lambda l: l.price - current_price) if above else None
    elif direction == "below":
        below = [l for l in candidates if l.price < current_price]
        return max(below, key=lambda l: l.price) if below else None
    else:
        return min(candidates, key=lambda l: (abs(l.price - current_price), -l.strength))


def levels_near(
    levels: List[Level],
    price: float,
    tolerance_pct: float,
    kind: Optional[str] = None,
) -> List[Level]:
    """Levels of the given kind within tolerance_pct of price, closest first."""
    matches = [
        l for l in levels
        if (kind is None or l.kind == kind) and l.distance_pct(price) <= tolerance_pct
    ]
    return sorted(matches, key=lambda l: (l.distance_pct(price), -l.strength))
