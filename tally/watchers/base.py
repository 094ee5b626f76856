"""Base watcher ABC — polls some source of activity and sends ticks."""

from __future__ import annotations

import abc
import logging
import threading
from typing import Callable

log = logging.getLogger(__name__)


class BaseWatcher(abc.ABC):
    """Abstract base for activity watchers.

    Subclasses must implement:
        name        — unique string identifier
        interval    — seconds between polls
        poll()      — return True if activity happened since the last poll

    Every poll that reports activity sends one tick with ``label``.
    """

    name: str = ""
    interval: float = 10.0

    def __init__(self, tick: Callable[[str], object], label: str = ""):
        self.tick = tick
        self.label = label
        self.ticks_sent = 0
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    # ── abstract ────────────────────────────────────────────────────────
    @abc.abstractmethod
    def poll(self) -> bool:
        """Run one poll cycle."""

    # ── lifecycle ───────────────────────────────────────────────────────
    def setup(self) -> None:
        """Optional one-time init (override in subclass)."""

    def teardown(self) -> None:
        """Optional cleanup (override in subclass)."""

    def start(self) -> None:
        """Start the watcher in a background daemon thread."""
        self.setup()
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop, name=f"watcher-{self.name}", daemon=True
        )
        self._thread.start()
        log.info("[%s] started (interval=%.1fs, label=%r)", self.name, self.interval, self.label)

    def stop(self) -> None:
        """Signal the watcher to stop and wait for its thread."""
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=self.interval + 2)
        self.teardown()
        log.info("[%s] stopped after %d ticks", self.name, self.ticks_sent)

    def wait(self) -> None:
        """Block until the watcher is stopped."""
        while self._thread and self._thread.is_alive():
            self._thread.join(timeout=1)

    @property
    def running(self) -> bool:
        return not self._stop_event.is_set()

    def run_once(self) -> bool:
        """Poll once and tick if there was activity. Returns whether it ticked."""
        if not self.poll():
            return False
        self.tick(self.label)
        self.ticks_sent += 1
        return True

    # ── internal ────────────────────────────────────────────────────────
    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                log.exception("[%s] poll error", self.name)
            self._stop_event.wait(timeout=self.interval)
