"""Directory watcher — ticks while files under a project directory change.

Polls file modification times rather than subscribing to OS events, so it
works the same on every platform. The first scan only records a baseline.
"""

import logging
import os
from pathlib import Path

import tally.config as config
from tally.watchers.base import BaseWatcher

log = logging.getLogger(__name__)


class DirectoryWatcher(BaseWatcher):
    name = "directory"
    interval = config.WATCH_INTERVAL

    def __init__(self, tick, root: Path, label: str = "",
                 interval: float | None = None):
        super().__init__(tick, label)
        self.root = Path(root).expanduser().resolve()
        if interval is not None:
            self.interval = interval
        self._mtimes: dict[str, float] | None = None

    def setup(self) -> None:
        if not self.root.is_dir():
            raise ValueError(f"not a directory: {self.root}")
        self._mtimes = self.scan()
        log.info("[%s] watching %s (%d files)", self.name, self.root, len(self._mtimes))

    def scan(self) -> dict[str, float]:
        """Map every non-excluded file under root to its mtime."""
        mtimes = {}
        for dirpath, dirnames, filenames in os.walk(self.root):
            for fname in filenames:
                path = os.path.join(dirpath, fname)
                if any(pat in path for pat in config.WATCH_EXCLUDED_PATTERNS):
                    continue
                try:
                    mtimes[path] = os.stat(path).st_mtime
                except OSError:
                    continue  # removed mid-scan
        return mtimes

    def poll(self) -> bool:
        if self._mtimes is None:
            self.setup()
            return False
        current = self.scan()
        changed = current != self._mtimes
        if changed:
            log.debug("[%s] change detected under %s", self.name, self.root)
        self._mtimes = current
        return changed
