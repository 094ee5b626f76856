"""Central configuration for tally."""

import os
from pathlib import Path

# ── Paths ──────────────────────────────────────────────────────────────
_PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Load .env from project root
_env_path = _PROJECT_ROOT / ".env"
if _env_path.exists():
    for _line in _env_path.read_text().splitlines():
        _line = _line.strip()
        if _line and not _line.startswith("#") and "=" in _line:
            _k, _, _v = _line.partition("=")
            os.environ.setdefault(_k.strip(), _v.strip())


def _default_data_dir() -> Path:
    env = os.environ.get("TALLY_DATA_DIR")
    if env:
        return Path(env)
    return Path.home() / ".tally"


DATA_DIR = _default_data_dir()
DB_PATH = DATA_DIR / "tally.db"
LOG_PATH = DATA_DIR / "tally.log"
PID_PATH = DATA_DIR / "tally.pid"

# ── Server ─────────────────────────────────────────────────────────────
HOST = os.environ.get("TALLY_HOST", "127.0.0.1")
PORT = int(os.environ.get("TALLY_PORT", "10101"))
CLIENT_TIMEOUT = 5  # seconds
MAX_BODY_BYTES = 64 * 1024

# ── Intervals ──────────────────────────────────────────────────────────
# A silence longer than this (seconds) between consecutive ticks ends an interval
MAX_EVENT_GAP = 23 * 60
DAY_SECONDS = 24 * 60 * 60

# ── Bar ────────────────────────────────────────────────────────────────
BAR_CHARS = 60
BAR_BITS_PER_CHAR = 8
BAR_BIT_SECONDS = DAY_SECONDS // (BAR_CHARS * BAR_BITS_PER_CHAR)  # 180
BAR_BIT_THRESHOLD = BAR_BIT_SECONDS // 2  # bit is on above 90s of coverage

# ── Directory watcher ──────────────────────────────────────────────────
WATCH_INTERVAL = 10  # seconds between scans
WATCH_EXCLUDED_PATTERNS = (
    "/.git/",
    "/__pycache__/",
    "/.DS_Store",
    "/node_modules/",
    "/.venv/", "/venv/", "/site-packages/",
    "/target/",
    ".swp", ".swx", ".tmp",
)

# ── Server health ──────────────────────────────────────────────────────
HEALTH_HEARTBEAT_INTERVAL = 60
