"""tally CLI — run the server, record ticks, and show the day's bar."""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

from tally.config import DATA_DIR, DB_PATH, LOG_PATH, PID_PATH
from tally.client import ClientError, TallyClient


def _client(args: argparse.Namespace) -> TallyClient:
    return TallyClient(host=args.host, port=args.port)


def _fmt_ts(ts: int) -> str:
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def _fmt_duration(seconds: int) -> str:
    h, rem = divmod(int(seconds), 3600)
    m, s = divmod(rem, 60)
    if h:
        return f"{h}h {m:02d}m"
    return f"{m}m {s:02d}s"


def _parse_time(value: str) -> int:
    """Accept Unix seconds or an ISO date/datetime (local time)."""
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return int(datetime.fromisoformat(value).timestamp())
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a timestamp or ISO date: {value!r}") from None


def _positive_seconds(value: str) -> float:
    try:
        seconds = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None
    if not seconds > 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0: {value!r}")
    return seconds


# ── Subcommands ──────────────────────────────────────────────────────────


def cmd_serve(args: argparse.Namespace) -> None:
    from tally.server import Server
    Server(host=args.host, port=args.port).start()


def cmd_tick(args: argparse.Namespace) -> None:
    _client(args).tick(args.label)


def cmd_today(args: argparse.Namespace) -> None:
    resp = _client(args).today()
    morning = datetime.fromtimestamp(resp["morning"])
    print(f"{morning:%Y/%m/%d}: {resp['bar']}")


def cmd_intervals(args: argparse.Namespace) -> None:
    intervals = _client(args).intervals(args.start, args.end, args.label)
    if not intervals:
        print("no intervals")
        return
    total = 0
    for iv in intervals:
        total += iv.duration
        label = f"  {iv.label}" if iv.label else ""
        print(f"  {_fmt_ts(iv.start)}  {_fmt_ts(iv.end)}  {_fmt_duration(iv.duration):>8}{label}")
    print(f"\n  {len(intervals)} intervals, {_fmt_duration(total)} total")


def cmd_status(args: argparse.Namespace) -> None:
    print("\n  tally status")
    print("  ──────────────────\n")
    try:
        status = _client(args).status()
        print(f"  Server       running, up {_fmt_duration(status['uptime_s'])}")
        print(f"  Ticks        {status['ticks']:,}")
    except ClientError:
        print("  Server       not running")
    print(f"  Data dir     {DATA_DIR}")
    if DB_PATH.exists():
        size_mb = DB_PATH.stat().st_size / (1024 * 1024)
        print(f"  Database     {size_mb:.1f} MB")
    else:
        print("  Database     not created yet")
    if PID_PATH.exists():
        print(f"  Pid file     {PID_PATH}")
    print()


def cmd_clear(args: argparse.Namespace) -> None:
    if not args.yes:
        print("refusing to delete all ticks without --yes")
        sys.exit(1)
    removed = _client(args).clear()
    print(f"removed {removed:,} ticks")


def cmd_watch(args: argparse.Namespace) -> None:
    from tally.watchers.directory import DirectoryWatcher

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    watcher = DirectoryWatcher(
        _client(args).tick, Path(args.directory), label=args.label,
        interval=args.interval,
    )
    watcher.start()
    try:
        watcher.wait()
    except KeyboardInterrupt:
        pass
    finally:
        watcher.stop()


def cmd_logs(args: argparse.Namespace) -> None:
    if not LOG_PATH.exists():
        print(f"No log file found at {LOG_PATH}")
        return
    lines = LOG_PATH.read_text().splitlines()
    for line in lines[-args.lines:]:
        print(line)


# ── Main ─────────────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tally",
        description="record work ticks and see where the day went",
    )
    parser.add_argument("--host", default=None, help="server host (default: TALLY_HOST or 127.0.0.1)")
    parser.add_argument("--port", type=int, default=None, help="server port (default: TALLY_PORT or 10101)")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="run the tally server in the foreground")

    p_tick = sub.add_parser("tick", help="record a tick with the given label")
    p_tick.add_argument("label", nargs="?", default="")

    sub.add_parser("today", help="print today's activity bar")

    p_intervals = sub.add_parser("intervals", help="list activity intervals")
    p_intervals.add_argument("--start", type=_parse_time, default=None,
                             help="window start (Unix seconds or ISO date)")
    p_intervals.add_argument("--end", type=_parse_time, default=None,
                             help="window end (Unix seconds or ISO date)")
    p_intervals.add_argument("--label", default="", help="only this label")

    sub.add_parser("status", help="show server status and stats")

    p_clear = sub.add_parser("clear", help="delete all recorded ticks")
    p_clear.add_argument("--yes", action="store_true", help="confirm deletion")

    p_watch = sub.add_parser("watch", help="tick while files in a directory change")
    p_watch.add_argument("directory")
    p_watch.add_argument("--label", default="", help="label for the ticks")
    p_watch.add_argument("--interval", type=_positive_seconds, default=None,
                         help="seconds between scans (default: 10)")

    p_logs = sub.add_parser("logs", help="show recent server log output")
    p_logs.add_argument("-n", "--lines", type=int, default=30,
                        help="number of lines to show (default: 30)")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    commands = {
        "serve": cmd_serve,
        "tick": cmd_tick,
        "today": cmd_today,
        "intervals": cmd_intervals,
        "status": cmd_status,
        "clear": cmd_clear,
        "watch": cmd_watch,
        "logs": cmd_logs,
    }

    if args.command not in commands:
        parser.print_help()
        return
    try:
        commands[args.command](args)
    except (ClientError, RuntimeError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
