"""Tests for tally.bar — day bar rendering."""

from datetime import datetime, timezone

import pytest

from tally.bar import (
    BLOCK_MASKS,
    EMPTY_BAR,
    NEAREST_MASK,
    BarOp,
    glyph,
    nearest_mask,
    render_bar,
)
from tally.intervals import Interval

INV = "\033[7;33m"
NORM_FIRST = "\033[33m"
NORM = "\033[0;33m"
END = "\033[m]"

FULL = "█"         # █
LEFT_HALF = "▌"    # ▌
LEFT_QUARTER = "▎"  # ▎
LEFT_3_4 = "▊"     # ▊
HEAVY = "┃"        # ┃
LIGHT = "│"        # │

MORNING = int(datetime(2017, 7, 1, 9, 0, tzinfo=timezone.utc).timestamp())


def _iv(start_min: int, end_min: int) -> Interval:
    return Interval(MORNING + start_min * 60, MORNING + end_min * 60)


def _glyphs(bar: str) -> str:
    """Strip brackets and escape sequences, leaving the 60 glyphs."""
    out = []
    i = 1
    while i < len(bar) - 1:
        if bar[i] == "\033":
            i = bar.index("m", i) + 1
            continue
        out.append(bar[i])
        i += 1
    return "".join(out)


class TestBlockMasks:
    def test_table_size(self):
        assert len(BLOCK_MASKS) == 58
        assert len(set(BLOCK_MASKS)) == 58

    def test_table_order_anchors(self):
        assert BLOCK_MASKS[0] == 0x00
        assert BLOCK_MASKS[1] == 0xFF
        assert BLOCK_MASKS[2] == 0xFE
        assert BLOCK_MASKS[9] == 0x7F
        assert BLOCK_MASKS[16] == 0x40
        assert BLOCK_MASKS[27] == 0xBF
        assert BLOCK_MASKS[38] == 0x70
        assert BLOCK_MASKS[57] == 0xF1

    def test_lookup_table_matches_linear_scan(self):
        for w in range(256):
            expected = min(
                range(len(BLOCK_MASKS)),
                key=lambda i: (bin(BLOCK_MASKS[i] ^ w).count("1"), i),
            )
            assert NEAREST_MASK[w] == expected == nearest_mask(w)

    def test_exact_matches(self):
        for i, mask in enumerate(BLOCK_MASKS):
            assert NEAREST_MASK[mask] == i


class TestGlyph:
    @pytest.mark.parametrize("index, expected", [
        (0, (FULL, True)),
        (1, (FULL, False)),
        (2, ("▉", False)),
        (5, (LEFT_HALF, False)),
        (8, ("▏", False)),
        (9, ("▏", True)),
        (12, (LEFT_HALF, True)),
        (15, ("▉", True)),
        (16, (LIGHT, False)),
        (27, (LIGHT, True)),
        (41, (HEAVY, False)),
        (57, (HEAVY, True)),
    ])
    def test_mapping(self, index, expected):
        assert glyph(index) == expected

    def test_out_of_range(self):
        with pytest.raises(ValueError):
            glyph(58)


class TestBarOp:
    def test_first_inverted(self):
        op = BarOp()
        op.put(0)
        assert op.finish() == "[" + INV + FULL + END

    def test_first_normal(self):
        op = BarOp()
        op.put(1)
        assert op.finish() == "[" + NORM_FIRST + FULL + END

    def test_only_transitions_emit_escapes(self):
        op = BarOp()
        for idx in (1, 1, 0, 0, 1, 0):
            op.put(idx)
        assert op.finish() == (
            "[" + NORM_FIRST + FULL + FULL + INV + FULL + FULL
            + NORM + FULL + INV + FULL + END
        )


class TestRenderBar:
    def test_empty_bar(self):
        assert EMPTY_BAR == "[" + INV + FULL * 60 + END
        assert render_bar(MORNING, []) == EMPTY_BAR

    def test_empty_bar_matches_general_sweep(self):
        # an interval entirely before the day leaves every bit off
        before = [Interval(MORNING - 7200, MORNING - 3600)]
        assert render_bar(MORNING, before) == EMPTY_BAR

    def test_full_day(self):
        bar = render_bar(MORNING, [Interval(MORNING, MORNING + 86400)])
        assert bar == "[" + NORM_FIRST + FULL * 60 + END

    def test_interval_fits_in_char(self):
        bar = render_bar(MORNING, [_iv(4, 20)])
        assert bar == "[" + NORM_FIRST + HEAVY + INV + FULL * 59 + END

    def test_half_char(self):
        bar = render_bar(MORNING, [_iv(0, 12)])
        assert bar == "[" + NORM_FIRST + LEFT_HALF + INV + FULL * 59 + END

    def test_basic(self):
        bar = render_bar(MORNING, [_iv(4, 20), _iv(60, 240), _iv(270, 306)])
        assert bar == (
            "[" + NORM_FIRST + HEAVY          # 0:00  01111110
            + INV + FULL + LEFT_HALF          # 0:24  empty, 0:48 00001111
            + NORM + FULL * 7                 # 1:12 .. 4:00
            + INV + FULL + LEFT_QUARTER       # 4:00  empty, 4:24 00111111
            + NORM + LEFT_3_4                 # 4:48  11111100
            + INV + FULL * 47
            + END
        )

    def test_short_coverage_does_not_set_bit(self):
        # 90 seconds is not more than half of a 3-minute bit
        bar = render_bar(MORNING, [Interval(MORNING, MORNING + 90)])
        assert bar == EMPTY_BAR

    def test_just_over_half_sets_bit(self):
        bar = render_bar(MORNING, [Interval(MORNING, MORNING + 91)])
        assert _glyphs(bar)[0] == "▏"  # 10000000, left eighth

    def test_always_sixty_glyphs(self):
        bar = render_bar(MORNING, [_iv(4, 20), _iv(100, 101), _iv(500, 900)])
        assert len(_glyphs(bar)) == 60
        assert bar.startswith("[") and bar.endswith(END)

    def test_deterministic(self):
        ivs = [_iv(30, 95), _iv(400, 410), _iv(1000, 1300)]
        assert render_bar(MORNING, ivs) == render_bar(MORNING, list(ivs))
