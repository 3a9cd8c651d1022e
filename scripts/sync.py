#!/usr/bin/env python3
"""Pull legislative activity from the LY APIs and write score rows.

Usage::

    python scripts/sync.py                          # roster + every score type
    python scripts/sync.py propose --limit 10       # first 10 legislators by name
    python scripts/sync.py cosign --legislator 伍麗華
    python scripts/sync.py rollcall --rollcall-limit 50 --rollcall-offset 100
    python scripts/sync.py roster                   # legislator roster only

Exit code is 1 when any legislator or vote record failed, else 0.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

# Ensure the project is importable
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from ly_fantasy import config as cfg  # noqa: E402
from ly_fantasy.client import LYApiClient, LYApiError  # noqa: E402
from ly_fantasy.db import Database  # noqa: E402
from ly_fantasy.etl import REFRESH_TYPES, RefreshOptions, run_one, total_result  # noqa: E402
from ly_fantasy.fetchers.rollcall import DEFAULT_LIMIT  # noqa: E402
from ly_fantasy.fetchers.roster import sync_roster  # noqa: E402
from ly_fantasy.models import SyncResult  # noqa: E402
from ly_fantasy.run_log import RunLogger  # noqa: E402

console = Console()


def main() -> int:
    parser = argparse.ArgumentParser(description="Sync LY activity into fantasy scores.")
    parser.add_argument(
        "category",
        nargs="?",
        default="all",
        choices=["all", "roster", *REFRESH_TYPES],
        help="What to sync (default: roster followed by every score type).",
    )
    parser.add_argument("--legislator", help="Only this legislator (exact Chinese name).")
    parser.add_argument("--limit", type=int, default=None, help="Max legislators to process.")
    parser.add_argument("--offset", type=int, default=0, help="Skip this many legislators.")
    parser.add_argument(
        "--rollcall-limit",
        type=int,
        default=DEFAULT_LIMIT,
        help=f"Roll-call records per run (default: {DEFAULT_LIMIT}; 0 = all).",
    )
    parser.add_argument("--rollcall-offset", type=int, default=0)
    parser.add_argument("--database-url", default=cfg.DATABASE_URL)
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s:     %(message)s",
    )

    kinds = (
        ["roster", *REFRESH_TYPES]
        if args.category == "all"
        else [args.category]
    )
    opts = RefreshOptions(
        legislator=args.legislator,
        limit=args.limit,
        offset=args.offset,
        rollcall_limit=args.rollcall_limit or None,
        rollcall_offset=args.rollcall_offset,
    )

    results: dict[str, SyncResult] = {}
    client = LYApiClient()
    try:
        with Database(args.database_url) as db, RunLogger(f"sync:{args.category}") as log:
            db.create_all()
            for kind in kinds:
                console.print(f"\n[bold cyan]== {kind} ==[/]")
                with log.phase(kind):
                    if kind == "roster":
                        try:
                            results[kind] = sync_roster(db, client)
                        except LYApiError as exc:
                            console.print(f"[red]Roster sync failed: {exc}[/]")
                            results[kind] = SyncResult(error_count=1, errors=[str(exc)])
                    else:
                        results[kind] = run_one(kind, db, client, opts)
            total = total_result(results)
            log.meta.update({k: v for k, v in total.to_dict().items() if k != "errors"})
            log.meta["byType"] = {k: r.to_dict() for k, r in results.items()}
            failed = total.error_count
            if failed:
                log.fail(f"{failed} error(s)")
    finally:
        client.close()

    summary = Table(title="Sync Complete", show_lines=True, title_style="bold green")
    summary.add_column("Type", style="bold")
    summary.add_column("Processed", justify="right")
    summary.add_column("Errors", justify="right")
    summary.add_column("New scores", justify="right")
    for kind, r in results.items():
        err_style = "red" if r.error_count else "dim"
        summary.add_row(
            kind,
            str(r.processed_count),
            f"[{err_style}]{r.error_count}[/]",
            str(r.total_scores_created),
        )
    console.print()
    console.print(summary)
    for kind, r in results.items():
        for err in r.errors[:10]:
            console.print(f"[dim]{kind}: {err}[/]")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
