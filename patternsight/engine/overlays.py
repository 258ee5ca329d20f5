"""
Overlay generation.

Projects ranked patterns and strong levels into renderer-agnostic chart
primitives. Coordinates are chart coordinates (x = bar index, y = price);
mapping to pixels is the renderer's job.

Per pattern, in ranker order:
- box over the pattern's bars (low..high)
- icon above the box carrying the code and "Name (prob%)" label
- entry, target and stop lines projected past the pattern
- arrow from entry to target

Icon labels are placed greedily, so earlier (better ranked) patterns keep
their preferred position and later ones move out of the way.
"""

from typing import List, Optional, Sequence, Tuple

import pandas as pd
from loguru import logger

from patternsight.shared.config.defaults import (
    COLOR_BEARISH,
    COLOR_BULLISH,
    COLOR_ENTRY,
    COLOR_RESISTANCE,
    COLOR_SUPPORT,
    SIGNAL_COLORS,
    DEFAULT_LEVELS,
    DEFAULT_OVERLAYS,
    LevelConfig,
    OverlayConfig,
)
from patternsight.shared.models.patterns import DetectedPattern, Level, Overlay


Box = Tuple[float, float, float, float]  # x, y, width, height


class LabelPlacer:
    """
    Greedy label anti-collision.

    Each label tries its preferred position first. On collision, even
    attempts shift it up by one label height plus gap, odd attempts shift
    it right by half its width and return to the preferred height. If
    every attempt collides the preferred position is used anyway.
    """

    def __init__(self, max_attempts: int = DEFAULT_OVERLAYS.label_max_attempts, gap: float = 0.0):
        self.max_attempts = max_attempts
        self.gap = gap
        self.placed: List[Box] = []

    @staticmethod
    def _overlaps(a: Box, b: Box) -> bool:
        ax, ay, aw, ah = a
        bx, by, bw, bh = b
        return ax < bx + bw and ax + aw > bx and ay < by + bh and ay + ah > by

    def collides(self, box: Box) -> bool:
        return any(self._overlaps(box, other) for other in self.placed)

    def place(self, x: float, y: float, width: float, height: float) -> Tuple[float, float]:
        """Reserve a position for a label and return its (x, y)."""
        cx, cy = x, y
        for attempt in range(self.max_attempts):
            box = (cx, cy, width, height)
            if not self.collides(box):
                self.placed.append(box)
                return cx, cy
            if attempt % 2 == 0:
                cy += height + self.gap
            else:
                cx += width / 2
                cy = y

        self.placed.append((x, y, width, height))
        return x, y


def _label(pattern: DetectedPattern) -> str:
    return f"{pattern.name} ({pattern.probability:g}%)"


def pattern_overlays(
    pattern: DetectedPattern,
    df: pd.DataFrame,
    placer: LabelPlacer,
    config: OverlayConfig = DEFAULT_OVERLAYS,
    label_height: float = 1.0,
) -> List[Overlay]:
    """Box, icon, trade-level lines and arrow for one pattern."""
    span = df.iloc[pattern.start_index:pattern.end_index + 1]
    low, high = float(span['low'].min()), float(span['high'].max())
    color = SIGNAL_COLORS[pattern.signal]
    projected = min(pattern.end_index + config.projection_bars, len(df) - 1)

    label = _label(pattern)
    icon_x, icon_y = placer.place(
        (pattern.start_index + pattern.end_index) / 2,
        high * (1 + config.icon_offset_pct),
        len(label) * config.label_char_width,
        label_height,
    )

    return [
        Overlay('box', pattern.start_index, low, color, end_x=pattern.end_index, end_y=high),
        Overlay('icon', icon_x, icon_y, color, label=label, code=pattern.code),
        Overlay('line', pattern.start_index, pattern.entry_price, COLOR_ENTRY,
                end_x=projected, end_y=pattern.entry_price, label="Entry"),
        Overlay('line', pattern.start_index, pattern.target_price, COLOR_BULLISH,
                end_x=projected, end_y=pattern.target_price, label="Target", dashed=True),
        Overlay('line', pattern.start_index, pattern.stop_loss, COLOR_BEARISH,
                end_x=projected, end_y=pattern.stop_loss, label="Stop", dashed=True),
        Overlay('arrow', pattern.end_index, pattern.entry_price, color,
                end_x=projected, end_y=pattern.target_price),
    ]


def level_overlays(
    levels: Sequence[Level],
    last_index: int,
    config: LevelConfig = DEFAULT_LEVELS,
) -> List[Overlay]:
    """Horizontal lines for the strongest levels, coded S1/S2... and R1/R2..."""
    strong = [l for l in levels if l.strength >= config.overlay_min_strength]
    strong = sorted(strong, key=lambda l: (-l.strength, -l.last_index, l.price))[:config.overlay_max_levels]

    overlays = []
    counts = {'Support': 0, 'Resistance': 0}
    for level in strong:
        counts[level.kind] += 1
        prefix = 'S' if level.kind == 'Support' else 'R'
        overlays.append(Overlay(
            'line',
            level.first_index,
            level.price,
            COLOR_SUPPORT if level.kind == 'Support' else COLOR_RESISTANCE,
            end_x=last_index,
            end_y=level.price,
            label=f"{level.kind} {level.price:.2f}",
            code=f"{prefix}{counts[level.kind]}",
            stroke_width=float(min(level.strength, 3)),
        ))
    return overlays


def generate_overlays(
    patterns: Sequence[DetectedPattern],
    df: pd.DataFrame,
    levels: Sequence[Level] = (),
    config: Optional[OverlayConfig] = None,
    level_config: Optional[LevelConfig] = None,
) -> List[Overlay]:
    """
    Build every overlay for one analysis result.

    Args:
        patterns: Ranked patterns (processing order decides label priority)
        df: Normalized OHLCV series the patterns index into
        levels: Detected levels
        config: Overlay geometry
        level_config: Which levels are strong enough to draw

    Returns:
        Pattern overlays in ranker order followed by level lines
    """
    if len(df) == 0:
        return []

    config = config or DEFAULT_OVERLAYS
    level_config = level_config or DEFAULT_LEVELS

    price_span = float(df['high'].max() - df['low'].min())
    if price_span <= 0:
        price_span = abs(float(df['close'].iloc[-1])) or 1.0
    label_height = price_span * config.label_height_pct
    placer = LabelPlacer(config.label_max_attempts, gap=label_height * config.label_gap_ratio)

    overlays: List[Overlay] = []
    for pattern in patterns:
        overlays.extend(pattern_overlays(pattern, df, placer, config, label_height))
    overlays.extend(level_overlays(levels, len(df) - 1, level_config))

    logger.debug(f"Generated {len(overlays)} overlays for {len(patterns)} patterns")
    return overlays
