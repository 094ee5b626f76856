"""Tracker API — records ticks and answers interval queries.

The HTTP server and the tests both drive this class; it owns no transport.
"""

from __future__ import annotations

import logging

import tally.config as config
from tally.bar import render_bar
from tally.clock import SystemClock, local_midnight
from tally.db import Database
from tally.intervals import Interval, collect_intervals

log = logging.getLogger(__name__)

# sqlite INTEGER range
MIN_TS = -(2 ** 63)
MAX_TS = 2 ** 63 - 1


def _widen(start: int, end: int, gap: int) -> tuple[int, int]:
    return max(MIN_TS, start - gap), min(MAX_TS, end + gap)


class Tracker:
    """Tick recording and interval synthesis over a :class:`Database`."""

    def __init__(self, db: Database, clock=None):
        self.db = db
        self.clock = clock or SystemClock()
        self.started_at = self.clock.now()

    def tick(self, label: str = "") -> int:
        """Record a tick for *label* at the current time and return that time."""
        ts = self.clock.now()
        self.db.insert_tick(ts, label)
        log.debug("tick %d (%r)", ts, label)
        return ts

    def get_intervals(self, start: int, end: int, label: str = "") -> list[Interval]:
        """Intervals overlapping ``[start, end]``, clipped to it, sorted by start.

        With an empty *label* every label gets its own intervals (which may
        overlap one another); otherwise only *label*'s intervals are returned.
        """
        if end < start:
            raise ValueError(f"end ({end}) is before start ({start})")
        lo, hi = _widen(start, end, config.MAX_EVENT_GAP)
        ticks = self.db.ticks_between(lo, hi, label or None)
        intervals = collect_intervals(ticks, start, end)
        log.info("intervals [%d, %d] label=%r: %d", start, end, label, len(intervals))
        return intervals

    def day_intervals(self, morning: int) -> list[Interval]:
        """Union of all labels' activity over the day starting at *morning*."""
        end = morning + config.DAY_SECONDS
        lo, hi = _widen(morning, end, config.MAX_EVENT_GAP)
        return collect_intervals(self.db.ticks_between(lo, hi), morning, end, union=True)

    def today(self) -> tuple[int, list[Interval], str]:
        """Return ``(morning, intervals, bar)`` for the current local day."""
        morning = local_midnight(self.clock.now())
        intervals = self.day_intervals(morning)
        return morning, intervals, render_bar(morning, intervals)

    def clear(self) -> int:
        return self.db.clear()

    def status(self) -> dict:
        return {
            "uptime_s": self.clock.now() - self.started_at,
            "ticks": self.db.count("ticks"),
        }
