#!/usr/bin/env python3
"""
Engine Health CLI - reads the heartbeat file written by the engine.

Usage:
    life-os-health                 # Current status
    life-os-health hourly          # 24h hourly log
    life-os-health actions         # Recent work items
    life-os-health --json          # JSON output
    life-os-health --file PATH     # Read a specific heartbeat file

Always exits 0 when the read succeeds, including "no data yet".
"""

import argparse
import json
import sys
from datetime import UTC, datetime
from pathlib import Path

from life_os import paths
from life_os.heartbeat import heartbeat_view, read_heartbeat

STATUS_COLORS = {
    "running": "\033[92m",  # Green
    "stalled": "\033[91m",  # Red
    "paused": "\033[93m",  # Yellow
}
RESET = "\033[0m"


def print_header(text: str):
    """Print a section header."""
    print(f"\n{'═' * 50}")
    print(f"  {text}")
    print(f"{'═' * 50}")


def print_table(headers: list, rows: list, widths: list = None):
    """Print a simple table."""
    if not widths:
        widths = [max(len(str(row[i])) for row in [headers] + rows) for i in range(len(headers))]

    header_str = " │ ".join(str(h).ljust(w) for h, w in zip(headers, widths))
    print(header_str)
    print("─" * len(header_str))
    for row in rows:
        print(" │ ".join(str(c)[:w].ljust(w) for c, w in zip(row, widths)))


def _minutes(value) -> str:
    if value is None:
        return "never"
    if value < 60:
        return f"{value:.1f}m ago"
    return f"{value / 60:.1f}h ago"


def show_status(view: dict):
    print_header("LIFE ENGINE HEALTH")
    status = view["status"]
    color = STATUS_COLORS.get(status, "")
    print(f"  Status:       {color}{status.upper()}{RESET}")
    if view.get("current_step"):
        print(f"  Step:         {view['current_step']}")
    print(f"  Last beat:    {_minutes(view.get('minutes_since_beat'))}")
    print(f"  Last work:    {_minutes(view.get('minutes_since_work'))}")
    uptime = view.get("uptime_minutes")
    print(f"  Uptime:       {f'{uptime / 60:.1f}h' if uptime is not None else '-'}")
    print(f"  Work items:   {view.get('total_work', 0)}")
    print(f"  Errors:       {view.get('total_errors', 0)}")
    print(f"  Restarts:     {view.get('restarts', 0)}")

    day = view.get("last_24h") or {}
    print(
        f"  Last 24h:     {day.get('beats', 0)} beats, "
        f"{day.get('work_items', 0)} work items, {day.get('errors', 0)} errors"
    )
    if view.get("last_error"):
        err = view["last_error"]
        print(f"  Last error:   {err.get('message')} ({err.get('timestamp', '')[:19]})")

    if view.get("recent_actions"):
        print("\n  Recent:")
        for action in view["recent_actions"][:5]:
            print(f"    {action.get('timestamp', '')[:19]}  {action.get('action')}")


def show_hourly(data: dict):
    print_header("HOURLY LOG (24h)")
    rows = [
        [b.get("hour", "")[:13].replace("T", " ") + ":00", b.get("beats", 0), b.get("work_items", 0), b.get("errors", 0)]
        for b in data.get("hourly_log") or []
    ]
    if not rows:
        print("  No hourly data yet")
        return
    print_table(["Hour", "Beats", "Work", "Errors"], rows)


def show_actions(data: dict):
    print_header("RECENT ACTIONS")
    rows = [
        [a.get("timestamp", "")[:19], a.get("action", ""), a.get("duration_ms") or "-"]
        for a in data.get("recent_actions") or []
    ]
    if not rows:
        print("  No work recorded yet")
        return
    print_table(["Time", "Action", "ms"], rows)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Life engine health - reads the heartbeat file")
    parser.add_argument("view", nargs="?", default="status", choices=["status", "hourly", "actions"])
    parser.add_argument("--json", "-j", action="store_true", help="Output JSON")
    parser.add_argument("--file", "-f", type=Path, default=None, help="Heartbeat file path")
    parser.add_argument(
        "--step-timeout", type=float, default=30.0, help="Step deadline used for stall detection"
    )
    args = parser.parse_args(argv)

    path = args.file or paths.heartbeat_path()
    data = read_heartbeat(path)
    now = datetime.now(UTC)

    if data is None:
        if args.json:
            print(json.dumps({"status": "no_data", "file": str(path)}))
        else:
            print(f"No heartbeat data yet ({path})")
        return 0

    if args.view == "hourly":
        payload = {"hourly_log": data.get("hourly_log") or []}
    elif args.view == "actions":
        payload = {"recent_actions": data.get("recent_actions") or []}
    else:
        payload = heartbeat_view(data, now, args.step_timeout)

    if args.json:
        print(json.dumps(payload, indent=2, default=str))
    elif args.view == "hourly":
        show_hourly(data)
    elif args.view == "actions":
        show_actions(data)
    else:
        show_status(payload)
    return 0


if __name__ == "__main__":
    sys.exit(main())
