"""
Unit tests for overlay generation and label placement.
"""

import pytest

from patternsight.engine.overlays import LabelPlacer, generate_overlays, level_overlays
from patternsight.shared.config.defaults import COLOR_BULLISH, COLOR_SUPPORT, OverlayConfig
from patternsight.shared.models.patterns import CandlestickPattern, Level
from patternsight.tests.fixtures.market_data import make_ohlcv_df


def _pattern(start=10, end=12, probability=75.0, name="Morning Star"):
    return CandlestickPattern(
        name=name,
        code="MS",
        signal='Bullish',
        confidence='High',
        probability=probability,
        start_index=start,
        end_index=end,
        entry_price=100.0,
        target_price=104.0,
        stop_loss=98.0,
        evidence=[],
        confirmation=[],
    )


class TestLabelPlacer:
    """Tests for greedy label anti-collision."""

    def test_free_position_kept(self):
        placer = LabelPlacer()

        assert placer.place(0, 0, 2, 1) == (0, 0)

    def test_first_retry_moves_up(self):
        placer = LabelPlacer(gap=0.5)
        placer.place(0, 0, 2, 1)

        assert placer.place(0, 0, 2, 1) == (0, 1.5)

    def test_second_retry_moves_right_at_base_height(self):
        placer = LabelPlacer()
        placer.place(0, 0, 2, 1)
        placer.place(0, 0, 2, 1)  # lands at (0, 1)

        # (0, 1) taken, (1, 0) and (1, 1) overlap, (2, 0) is clear
        assert placer.place(0, 0, 2, 1) == (2, 0)

    def test_falls_back_to_base_position(self):
        placer = LabelPlacer(max_attempts=1)
        placer.place(0, 0, 2, 1)

        assert placer.place(0, 0, 2, 1) == (0, 0)
        assert len(placer.placed) == 2

    def test_touching_boxes_do_not_collide(self):
        placer = LabelPlacer()
        placer.place(0, 0, 2, 1)

        assert not placer.collides((2, 0, 2, 1))
        assert placer.collides((1.9, 0.5, 2, 1))


class TestPatternOverlays:
    """Tests for generate_overlays."""

    def test_pattern_primitives(self):
        df = make_ohlcv_df(n=40)
        overlays = generate_overlays([_pattern()], df)

        assert [o.type for o in overlays] == ['box', 'icon', 'line', 'line', 'line', 'arrow']
        box, icon, entry, target, stop, arrow = overlays
        assert (box.start_x, box.end_x) == (10, 12)
        assert box.start_y == pytest.approx(df['low'].iloc[10:13].min())
        assert box.end_y == pytest.approx(df['high'].iloc[10:13].max())
        assert box.color == COLOR_BULLISH
        assert icon.label == "Morning Star (75%)"
        assert icon.code == "MS"
        assert icon.start_y == pytest.approx(df['high'].iloc[10:13].max() * 1.02)
        assert entry.end_x == 27
        assert not entry.dashed and target.dashed and stop.dashed
        assert (target.start_y, stop.start_y) == (104.0, 98.0)
        assert (arrow.start_y, arrow.end_y) == (100.0, 104.0)

    def test_projection_clipped_to_series(self):
        df = make_ohlcv_df(n=40)
        overlays = generate_overlays([_pattern(start=35, end=38)], df)

        assert all(o.end_x == 39 for o in overlays if o.type == 'line')

    def test_overlapping_labels_are_separated(self):
        df = make_ohlcv_df(n=40)
        overlays = generate_overlays([_pattern(), _pattern(name="Hammer", probability=59.0)], df)
        icons = [o for o in overlays if o.type == 'icon']

        assert (icons[0].start_x, icons[0].start_y) != (icons[1].start_x, icons[1].start_y)

    def test_custom_projection(self):
        df = make_ohlcv_df(n=60)
        overlays = generate_overlays([_pattern()], df, config=OverlayConfig(projection_bars=5))

        assert overlays[2].end_x == 17

    def test_empty_series(self):
        assert generate_overlays([], make_ohlcv_df(n=40).iloc[0:0]) == []


class TestLevelOverlays:
    """Tests for level lines."""

    def test_strong_levels_only(self):
        levels = [
            Level(95.0, 'Support', 4, 6, 36),
            Level(100.4, 'Resistance', 3, 0, 24),
            Level(97.0, 'Support', 2, 3, 20),
        ]
        overlays = level_overlays(levels, last_index=36)

        assert [o.code for o in overlays] == ["S1", "R1"]
        support = overlays[0]
        assert support.color == COLOR_SUPPORT
        assert (support.start_x, support.end_x) == (6, 36)
        assert support.stroke_width == 3.0
        assert support.label == "Support 95.00"

    def test_at_most_three_levels(self):
        levels = [Level(90.0 + k, 'Support', 3 + k, k, 30) for k in range(5)]
        overlays = level_overlays(levels, last_index=40)

        assert [o.code for o in overlays] == ["S1", "S2", "S3"]
        assert overlays[0].start_y == 94.0
