"""Ticks to intervals.

Ticks for one label are fed, in chronological order, to a :class:`Collector`,
which joins ticks separated by at most ``max_gap`` seconds into one interval
and clips every interval to the query window ``[left, right]``. The
per-label results are then combined by :func:`merge_intervals`.

Callers must widen the tick query by ``max_gap`` on both sides of the window,
otherwise an interval that starts before ``left`` (or ends after ``right``)
is split at the window edge or lost.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

import tally.config as config

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Interval:
    """A span of activity, in Unix seconds. ``label`` is "" for a union."""
    start: int
    end: int
    label: str = ""

    @property
    def duration(self) -> int:
        return self.end - self.start

    def to_dict(self) -> dict:
        return {"Start": self.start, "End": self.end, "Label": self.label}

    @classmethod
    def from_dict(cls, d: dict) -> Interval:
        return cls(start=int(d["Start"]), end=int(d["End"]), label=d.get("Label") or "")

    def __str__(self) -> str:
        start = datetime.fromtimestamp(self.start)
        return f"[{timedelta(seconds=self.duration)} starting {start} ({self.label})]"


class Collector:
    """Builds the intervals of one label for one query window.

    Usage:
        c = Collector(left, right, label)
        for t in timestamps:
            if not c.add(t):
                break
        intervals = c.finish()
    """

    def __init__(self, left: int, right: int, label: str = "",
                 max_gap: int | None = None):
        self.left = left
        self.right = right
        self.label = label
        self.max_gap = config.MAX_EVENT_GAP if max_gap is None else max_gap
        self._start: int | None = None
        self._end: int | None = None
        self._intervals: list[Interval] = []
        self._finished = False

    def add(self, t: int) -> bool:
        """Add a tick at Unix time *t*.

        Returns False once the open interval starts after the window, i.e.
        no later tick can produce output.
        """
        if self._finished:
            raise RuntimeError("collector already finished")
        if self._start is None:
            self._start = self._end = t
            return True
        if self._start > self.right:
            return False
        if t < self._end:
            raise ValueError(
                f"ticks must be added in chronological order ({t} < {self._end})"
            )
        if t - self._end <= self.max_gap:
            self._end = t
            return True
        self._close()
        self._start = self._end = t
        return True

    def finish(self) -> list[Interval]:
        """Close the open interval and return every interval collected."""
        if self._finished:
            raise RuntimeError("collector already finished")
        self._close()
        self._finished = True
        return self._intervals

    def _close(self) -> None:
        if self._start is None:
            return
        iv = Interval(
            start=max(self.left, self._start),
            end=min(self.right, self._end),
            label=self.label,
        )
        # zero width (isolated tick) or entirely outside [left, right]
        if iv.end <= iv.start:
            log.debug("dropping %d..%d (%r)", self._start, self._end, self.label)
            return
        self._intervals.append(iv)


def merge_intervals(sequences: Iterable[list[Interval]]) -> list[Interval]:
    """K-way merge of per-label interval lists, each already sorted by start.

    Intervals with equal starts come out in the order of their input lists.
    """
    heap = []
    seqs = list(sequences)
    for idx, seq in enumerate(seqs):
        if seq:
            heap.append((seq[0].start, idx, 0))
    heapq.heapify(heap)

    merged: list[Interval] = []
    while heap:
        _, idx, pos = heapq.heappop(heap)
        seq = seqs[idx]
        merged.append(seq[pos])
        if pos + 1 < len(seq):
            heapq.heappush(heap, (seq[pos + 1].start, idx, pos + 1))
    return merged


def collect_intervals(ticks: Iterable[tuple[int, str]], left: int, right: int,
                      max_gap: int | None = None,
                      union: bool = False) -> list[Interval]:
    """Run one collector per distinct label over *ticks* and merge the results.

    *ticks* are ``(timestamp, label)`` pairs in chronological order. With
    ``union=True`` every tick goes to a single collector labelled "", which
    yields non-overlapping intervals across all labels.
    """
    collectors: dict[str, Collector] = {}
    done: set[str] = set()
    for ts, label in ticks:
        key = "" if union else label
        if key in done:
            continue
        c = collectors.get(key)
        if c is None:
            c = collectors[key] = Collector(left, right, key, max_gap)
        if not c.add(ts):
            done.add(key)
    return merge_intervals(c.finish() for c in collectors.values())
