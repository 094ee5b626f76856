"""Day bar — renders 24 hours of intervals as a 60-character terminal bar.

1. The day is split into 60 characters of 24 minutes, each split into 8 bits
   of 3 minutes. Bits run left to right, so the high bit is the earliest.
2. A bit is on if more than half of its 3 minutes is covered by intervals.
3. Each character's byte is matched to the closest entry of BLOCK_MASKS
   (fewest differing bits, first entry wins ties).
4. Each BLOCK_MASKS entry maps to one block-drawing glyph, drawn either
   normally or in inverted video (so e.g. an inverted left-eighth box reads
   as a right seven-eighths box).
"""

from __future__ import annotations

import logging
from typing import Sequence

import tally.config as config
from tally.intervals import Interval

log = logging.getLogger(__name__)

# █ ▉ ▊ ▋ ▌ ▍ ▎ ▏  (U+2588 .. U+258F, full box down to left eighth)
FULL_BLOCK = 0x2588
LIGHT_VERTICAL_LINE = 0x2502  # │, about 1/8
HEAVY_VERTICAL_LINE = 0x2503  # ┃, about 3/8

# SGR: 7 = inverted, 33 = yellow foreground, 0 = normal
_SGR_NORMAL_FIRST = "\033[33m"
_SGR_INVERTED = "\033[7;33m"
_SGR_NORMAL = "\033[0;33m"
_SGR_RESET = "\033[m"

BLOCK_MASKS = (
    # 0 - off, 1 - full
    0x00, 0xFF,
    # [2-8] left boxes
    0xFE, 0xFC, 0xF8, 0xF0, 0xE0, 0xC0, 0x80,
    # [9-15] right boxes
    0x7F, 0x3F, 0x1F, 0x0F, 0x07, 0x03, 0x01,
    # [16-26] thin vertical line
    0x40, 0x20, 0x10, 0x08, 0x04, 0x02,
    0x60, 0x30, 0x18, 0x0C, 0x06,
    # [27-37] inverted thin vertical line
    0xBF, 0xDF, 0xEF, 0xF7, 0xFB, 0xFD,
    0x9F, 0xCF, 0xE7, 0xF3, 0xF9,
    # [38-47] thick vertical line
    0x70, 0x78, 0x7C, 0x7E, 0x38, 0x3C, 0x3E, 0x1C, 0x1E, 0x0E,
    # [48-57] inverted thick vertical line
    0x8F, 0x87, 0x83, 0x81, 0xC7, 0xC3, 0xC1, 0xE3, 0xE1, 0xF1,
)


def nearest_mask(window: int) -> int:
    """Index of the BLOCK_MASKS entry closest to *window* in Hamming distance."""
    if window == 0x00 or window == 0xFF:
        return window >> 7
    best, best_count = -1, 8
    for i, mask in enumerate(BLOCK_MASKS):
        diff = bin(mask ^ window).count("1")
        if diff < best_count:
            best, best_count = i, diff
        if diff == 0:
            break
    return best


# mask -> BLOCK_MASKS index, for all 256 possible characters
NEAREST_MASK = tuple(nearest_mask(w) for w in range(256))


def glyph(index: int) -> tuple[str, bool]:
    """Return ``(char, inverted)`` for a BLOCK_MASKS index."""
    if index == 0:
        return chr(FULL_BLOCK), True
    if index == 1:
        return chr(FULL_BLOCK), False
    if index <= 8:
        return chr(FULL_BLOCK + index - 1), False
    if index <= 15:
        return chr(FULL_BLOCK + 16 - index), True
    if index <= 26:
        return chr(LIGHT_VERTICAL_LINE), False
    if index <= 37:
        return chr(LIGHT_VERTICAL_LINE), True
    if index <= 47:
        return chr(HEAVY_VERTICAL_LINE), False
    if index <= 57:
        return chr(HEAVY_VERTICAL_LINE), True
    raise ValueError(f"no glyph for mask index {index}")


class BarOp:
    """Accumulates one bar, emitting colour escapes only on state changes."""

    def __init__(self):
        self._parts = ["["]
        self.empty = True
        self.inverted = False

    def write_inverted(self, ch: str) -> None:
        if self.empty or not self.inverted:
            self._parts.append(_SGR_INVERTED)
            self.empty = False
            self.inverted = True
        self._parts.append(ch)

    def write_normal(self, ch: str) -> None:
        if self.empty:
            # colours are already normal, only set the foreground
            self._parts.append(_SGR_NORMAL_FIRST)
            self.empty = False
        elif self.inverted:
            self._parts.append(_SGR_NORMAL)
            self.inverted = False
        self._parts.append(ch)

    def put(self, index: int) -> None:
        ch, inverted = glyph(index)
        if inverted:
            self.write_inverted(ch)
        else:
            self.write_normal(ch)

    def finish(self) -> str:
        self._parts.append(_SGR_RESET + "]")
        return "".join(self._parts)


def _empty_bar() -> str:
    op = BarOp()
    for _ in range(config.BAR_CHARS):
        op.put(0)
    return op.finish()


EMPTY_BAR = _empty_bar()


def render_bar(morning: int, intervals: Sequence[Interval]) -> str:
    """Render the day starting at *morning* (Unix seconds) as a bar.

    *intervals* must be sorted and non-overlapping; they are not validated.
    """
    if not intervals:
        return EMPTY_BAR

    op = BarOp()
    bits_per_char = config.BAR_BITS_PER_CHAR
    step = config.BAR_BIT_SECONDS

    n = 0
    il, ir = intervals[0].start, intervals[0].end
    cr = morning
    window = 0
    for i in range(config.BAR_CHARS * bits_per_char):
        cl, cr = cr, cr + step

        # seconds of [cl, cr] covered by intervals
        covered = 0
        while n < len(intervals):
            if cr < il:
                break
            if cl <= ir:
                covered += min(cr, ir) - max(cl, il)
            if cr <= ir:
                break  # intervals[n] reaches into the next bit too
            n += 1
            if n < len(intervals):
                il, ir = intervals[n].start, intervals[n].end

        if covered > config.BAR_BIT_THRESHOLD:
            window |= 1 << (bits_per_char - 1 - i % bits_per_char)

        if i % bits_per_char == bits_per_char - 1:
            op.put(NEAREST_MASK[window])
            window = 0

    bar = op.finish()
    log.debug("rendered bar for %d (%d intervals)", morning, len(intervals))
    return bar
