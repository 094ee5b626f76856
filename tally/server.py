"""tally server — serves the tracker API over HTTP.

Opens the tick database, starts a threaded HTTP server, and runs a
heartbeat loop on the main thread until SIGTERM/SIGINT.

Endpoints:
  POST /tick        {"label": "..."}
  GET  /intervals   ?start=&end=&label=
  GET  /today
  GET  /status
  POST /clear       {"confirm": "yes"}
"""

import json
import logging
import os
import signal
import sys
import threading
import time
import urllib.parse
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import tally.config as config
from tally.api import MAX_TS, MIN_TS, Tracker
from tally.db import Database

log = logging.getLogger("tally")


class BadRequest(ValueError):
    """Request parameters or body could not be used."""


def _setup_logging() -> None:
    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(str(config.LOG_PATH)),
            logging.StreamHandler(sys.stderr),
        ],
    )


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def _write_pid() -> None:
    """Write our pid, refusing to start if another server is alive."""
    if config.PID_PATH.exists():
        try:
            pid = int(config.PID_PATH.read_text().strip())
        except ValueError:
            pid = None
        if pid and pid != os.getpid() and _pid_alive(pid):
            raise RuntimeError(f"tally server already running (pid {pid})")
        log.info("removing stale pid file %s", config.PID_PATH)
        config.PID_PATH.unlink(missing_ok=True)
    config.PID_PATH.write_text(str(os.getpid()))


def _remove_pid() -> None:
    config.PID_PATH.unlink(missing_ok=True)


def _int_param(query: dict, name: str, default: int) -> int:
    raw = (query.get(name) or [""])[0]
    if raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise BadRequest(f'invalid "{name}" param: {raw!r}') from None
    if not MIN_TS <= value <= MAX_TS:
        raise BadRequest(f'"{name}" param out of range: {raw}')
    return value


class TrackerHandler(BaseHTTPRequestHandler):
    server: "TrackerServer"

    def log_message(self, fmt: str, *args) -> None:  # noqa: A003
        log.debug("%s - %s", self.address_string(), fmt % args)

    def _json(self, payload, status: int = 200) -> None:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _error(self, status: int, message: str) -> None:
        self._json({"error": message}, status=status)

    def _read_body(self) -> dict:
        try:
            length = int(self.headers.get("Content-Length", "0"))
        except ValueError:
            raise BadRequest("invalid Content-Length") from None
        if length < 0:
            raise BadRequest("invalid Content-Length")
        if length > config.MAX_BODY_BYTES:
            raise BadRequest("request body too large")
        raw = self.rfile.read(length) if length > 0 else b""
        try:
            body = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise BadRequest(f"request did not match expected type: {exc}") from None
        if not isinstance(body, dict):
            raise BadRequest("request body must be a JSON object")
        return body

    def _dispatch(self, method: str) -> None:
        parsed = urllib.parse.urlparse(self.path)
        route = self.server.routes.get(parsed.path)
        if route is None:
            self._error(404, "not found")
            return
        allowed, handler = route
        if method != allowed:
            self._error(405, f"must use {allowed} to access {parsed.path}")
            return
        log.info("handling %s %s", method, parsed.path)
        try:
            handler(self, urllib.parse.parse_qs(parsed.query))
        except BadRequest as exc:
            self._error(400, str(exc))
        except Exception as exc:
            log.exception("error handling %s", parsed.path)
            self._error(500, str(exc))

    def do_GET(self) -> None:  # noqa: N802
        self._dispatch("GET")

    def do_POST(self) -> None:  # noqa: N802
        self._dispatch("POST")

    # ── endpoints ───────────────────────────────────────────────────────

    def tick(self, query: dict) -> None:
        body = self._read_body()
        label = body.get("label", body.get("Label", ""))
        if not isinstance(label, str):
            raise BadRequest("label must be a string")
        ts = self.server.tracker.tick(label)
        self._json({"ok": True, "timestamp": ts})

    def intervals(self, query: dict) -> None:
        start = _int_param(query, "start", 0)
        end = _int_param(query, "end", MAX_TS)
        label = (query.get("label") or [""])[0]
        try:
            result = self.server.tracker.get_intervals(start, end, label)
        except ValueError as exc:
            raise BadRequest(str(exc)) from None
        self._json({"Intervals": [iv.to_dict() for iv in result]})

    def today(self, query: dict) -> None:
        morning, intervals, bar = self.server.tracker.today()
        self._json({
            "morning": morning,
            "bar": bar,
            "Intervals": [iv.to_dict() for iv in intervals],
        })

    def status(self, query: dict) -> None:
        self._json(self.server.tracker.status())

    def clear(self, query: dict) -> None:
        # require an explicit body so a stray request can't wipe the data
        body = self._read_body()
        if body.get("confirm") != "yes":
            raise BadRequest("must send confirmation message to delete all server data")
        removed = self.server.tracker.clear()
        self._json({"ok": True, "removed": removed})


class TrackerServer(ThreadingHTTPServer):
    daemon_threads = True

    routes = {
        "/tick": ("POST", TrackerHandler.tick),
        "/intervals": ("GET", TrackerHandler.intervals),
        "/today": ("GET", TrackerHandler.today),
        "/status": ("GET", TrackerHandler.status),
        "/clear": ("POST", TrackerHandler.clear),
    }

    def __init__(self, server_address: tuple[str, int], tracker: Tracker):
        super().__init__(server_address, TrackerHandler)
        self.tracker = tracker


class Server:
    """Server process that owns the DB, the tracker, and the HTTP listener."""

    def __init__(self, host: str | None = None, port: int | None = None):
        self.host = host or config.HOST
        self.port = config.PORT if port is None else port
        self.db = Database()
        self.httpd: TrackerServer | None = None
        self._thread: threading.Thread | None = None
        self._running = False

    def start(self) -> None:
        _setup_logging()
        _write_pid()
        log.info("tally server starting (pid=%d)", os.getpid())

        self.db.open()
        self.db.log_health(time.time(), "startup", f"pid={os.getpid()}")
        self.httpd = TrackerServer((self.host, self.port), Tracker(self.db))
        self._thread = threading.Thread(
            target=self.httpd.serve_forever, name="tally-http", daemon=True
        )
        self._thread.start()
        log.info("listening on http://%s:%d", self.host, self.port)

        self._running = True
        signal.signal(signal.SIGTERM, self._handle_signal)
        signal.signal(signal.SIGINT, self._handle_signal)

        self._run_heartbeat_loop()
        self.stop()

    def stop(self) -> None:
        log.info("tally server shutting down")
        self._running = False
        if self.httpd:
            self.httpd.shutdown()
            self.httpd.server_close()
            self.httpd = None
        self.db.log_health(time.time(), "shutdown", "clean")
        self.db.close()
        _remove_pid()
        log.info("tally server stopped")

    def _run_heartbeat_loop(self) -> None:
        last_heartbeat = time.time()
        while self._running:
            time.sleep(1)
            now = time.time()
            if now - last_heartbeat >= config.HEALTH_HEARTBEAT_INTERVAL:
                self.db.log_health(now, "heartbeat")
                last_heartbeat = now

    def _handle_signal(self, signum, frame) -> None:
        log.info("received signal %d", signum)
        self._running = False


def main() -> None:
    Server().start()


if __name__ == "__main__":
    main()
