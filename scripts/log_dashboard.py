#!/usr/bin/env python3
"""Terminal view of the run log (syncs, cron refreshes, migrations).

Usage:
    python scripts/log_dashboard.py --tail 30
    python scripts/log_dashboard.py --task sync:propose
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.table import Table

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from ly_fantasy.run_log import get_log_path, load_recent_runs  # noqa: E402

console = Console()


def _t(s: str) -> str:
    """Shorten an ISO timestamp."""
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).strftime("%m/%d %H:%M")
    except ValueError:
        return s[:16]


def _fmt_dur(s: float | None) -> str:
    if s is None:
        return "-"
    return f"{s / 60:.1f}m" if s >= 60 else f"{s:.1f}s"


def main() -> int:
    parser = argparse.ArgumentParser(description="View the run log.")
    parser.add_argument("--tail", "-n", type=int, default=20, help="Runs to show (default: 20).")
    parser.add_argument("--task", default=None, help="Task prefix filter (e.g. sync, refresh).")
    args = parser.parse_args()

    path = get_log_path()
    runs = load_recent_runs(args.tail, task=args.task)
    if not runs:
        console.print(f"[dim]No runs found in {path} (task={args.task or 'any'}).[/]")
        return 0

    table = Table(title=f"Run log ({len(runs)})", title_style="bold green")
    table.add_column("Started", style="dim")
    table.add_column("Task", style="yellow")
    table.add_column("Time", justify="right")
    table.add_column("Status")
    table.add_column("Created", justify="right")
    table.add_column("Errors", justify="right")
    for r in runs:
        status = f"[green]{r.status}[/]" if r.status == "ok" else f"[red]{r.status}[/]"
        created = r.meta.get("totalScoresCreated", "")
        errors = r.meta.get("errorCount", "")
        table.add_row(
            _t(r.started_at), r.task, _fmt_dur(r.duration_s), status, str(created), str(errors)
        )
    console.print(table)
    console.print(f"[dim]Log file: {path}[/]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
