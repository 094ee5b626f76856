"""SQLite tick store — schema, connection, tick inserts and range reads.

- Thread-safe via a dedicated lock (the HTTP server handles requests on
  several threads; check_same_thread=False alone is not enough)
- WAL journal for concurrent reads during writes
- Schema version recorded in schema_meta; a newer file is refused
- Labels are stored through the label codec, one escaped label per row
- Parameterized queries only
"""

import sqlite3
import logging
import threading
from pathlib import Path
from typing import Iterator

from tally.config import DB_PATH
from tally.labels import escape_label, unescape_label

log = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_VALID_TABLES = frozenset({"ticks", "server_health"})

_SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS ticks (
    id INTEGER PRIMARY KEY,
    timestamp INTEGER NOT NULL,
    label TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_ticks_ts ON ticks(timestamp);

CREATE TABLE IF NOT EXISTS server_health (
    id INTEGER PRIMARY KEY,
    timestamp REAL NOT NULL,
    event_type TEXT,
    details TEXT
);
CREATE INDEX IF NOT EXISTS idx_health_ts ON server_health(timestamp);
"""


class Database:
    """Thread-safe SQLite wrapper holding the tick stream.

    Usage:
        with Database() as db:
            db.insert_tick(ts, "writing")
            for ts, label in db.ticks_between(start, end):
                ...
    """

    def __init__(self, path: Path | None = None):
        self.path = path or DB_PATH
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ── lifecycle ───────────────────────────────────────────────────────

    def open(self) -> None:
        """Open the database, apply pragmas, and ensure schema exists."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(self.path),
            check_same_thread=False,
            timeout=10.0,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.executescript(_SCHEMA)
        self._conn.execute(
            "INSERT OR IGNORE INTO schema_meta (key, value) VALUES ('version', ?)",
            (str(SCHEMA_VERSION),),
        )
        self._conn.commit()
        version = self.schema_version()
        if version > SCHEMA_VERSION:
            self._conn.close()
            self._conn = None
            raise RuntimeError(
                f"database {self.path} has schema v{version}, "
                f"this tally understands up to v{SCHEMA_VERSION}"
            )
        log.info("database opened at %s (schema v%d)", self.path, SCHEMA_VERSION)

    def close(self) -> None:
        """Close the database connection safely."""
        with self._lock:
            if self._conn:
                try:
                    self._conn.execute("PRAGMA optimize")
                    self._conn.close()
                except sqlite3.Error:
                    log.exception("error during database close")
                finally:
                    self._conn = None
                    log.info("database closed")

    def _ensure_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("database is not open, call .open() first")
        return self._conn

    def schema_version(self) -> int:
        """Return the schema version stored in the file."""
        conn = self._ensure_conn()
        with self._lock:
            row = conn.execute(
                "SELECT value FROM schema_meta WHERE key = 'version'"
            ).fetchone()
        return int(row[0])

    # ── ticks ───────────────────────────────────────────────────────────

    def insert_tick(self, ts: int, label: str = "") -> None:
        """Record one tick."""
        conn = self._ensure_conn()
        with self._lock:
            with conn:
                conn.execute(
                    "INSERT INTO ticks (timestamp, label) VALUES (?, ?)",
                    (int(ts), escape_label(label)),
                )

    def ticks_between(self, start: int, end: int,
                      label: str | None = None) -> Iterator[tuple[int, str]]:
        """Yield ``(timestamp, label)`` for ticks in ``[start, end]``.

        Ordered by timestamp, then by insertion. With *label*, only ticks
        carrying exactly that label are returned.
        """
        conn = self._ensure_conn()
        if label is None:
            sql = ("SELECT timestamp, label FROM ticks WHERE timestamp BETWEEN ? AND ? "
                   "ORDER BY timestamp, id")
            params = (start, end)
        else:
            sql = ("SELECT timestamp, label FROM ticks WHERE timestamp BETWEEN ? AND ? "
                   "AND label = ? ORDER BY timestamp, id")
            params = (start, end, escape_label(label))
        with self._lock:
            rows = conn.execute(sql, params).fetchall()
        for ts, encoded in rows:
            yield ts, unescape_label(encoded)

    def clear(self) -> int:
        """Delete every tick. Returns the number of rows removed."""
        conn = self._ensure_conn()
        with self._lock:
            with conn:
                cur = conn.execute("DELETE FROM ticks")
        log.info("cleared %d ticks", cur.rowcount)
        return cur.rowcount

    # ── health ──────────────────────────────────────────────────────────

    def log_health(self, ts: float, event_type: str, details: str = "") -> None:
        """Record a server health event."""
        conn = self._ensure_conn()
        with self._lock:
            with conn:
                conn.execute(
                    "INSERT INTO server_health (timestamp, event_type, details) VALUES (?, ?, ?)",
                    (ts, event_type, details),
                )

    # ── reads (for verification / debugging) ────────────────────────────

    def count(self, table: str) -> int:
        """Return the row count for a table."""
        if table not in _VALID_TABLES:
            raise ValueError(f"unknown table: {table!r}")
        conn = self._ensure_conn()
        with self._lock:
            cur = conn.execute(f"SELECT COUNT(*) FROM {table}")
            return cur.fetchone()[0]
