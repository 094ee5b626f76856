"""Injectable clocks, so the tracker can be driven by tests."""

import time
from datetime import datetime


class SystemClock:
    """Wall clock: ``now()`` is the current Unix time in whole seconds."""

    def now(self) -> int:
        return int(time.time())


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: int = 0):
        self._now = int(now)

    def now(self) -> int:
        return self._now

    def set(self, ts: int) -> None:
        self._now = int(ts)

    def advance(self, seconds: int) -> None:
        self._now += int(seconds)


def local_midnight(ts: int) -> int:
    """Unix time of the most recent local midnight at or before *ts*."""
    dt = datetime.fromtimestamp(ts)
    return int(dt.replace(hour=0, minute=0, second=0, microsecond=0).timestamp())
