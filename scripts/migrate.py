#!/usr/bin/env python3
"""Apply pending data migrations to the score table.

Usage::

    python scripts/migrate.py             # apply everything not yet applied
    python scripts/migrate.py --list      # show applied / pending versions
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from ly_fantasy import config as cfg  # noqa: E402
from ly_fantasy.db import Database  # noqa: E402
from ly_fantasy.migrations import MIGRATIONS, applied_versions, apply_pending  # noqa: E402
from ly_fantasy.run_log import RunLogger  # noqa: E402

console = Console()


def main() -> int:
    parser = argparse.ArgumentParser(description="Apply versioned data migrations.")
    parser.add_argument("--list", action="store_true", help="List migrations and exit.")
    parser.add_argument("--database-url", default=cfg.DATABASE_URL)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:     %(message)s")

    with Database(args.database_url) as db:
        db.create_all()
        if args.list:
            with db.session() as session:
                done = applied_versions(session)
            table = Table(title="Data migrations")
            table.add_column("Version", style="bold")
            table.add_column("Name")
            table.add_column("Status")
            for m in MIGRATIONS:
                status = "[green]applied[/]" if m.version in done else "[yellow]pending[/]"
                table.add_row(m.version, m.name, status)
            console.print(table)
            return 0

        with RunLogger("migrate") as log:
            try:
                with db.session() as session:
                    applied = apply_pending(session)
                    rows = [(e.version, e.name, e.rows_affected) for e in applied]
            except SQLAlchemyError as exc:
                log.fail(str(exc))
                console.print(f"[red]Migration failed: {exc}[/]")
                return 1
            log.meta["applied"] = [v for v, _, _ in rows]

    if not rows:
        console.print("[dim]Nothing to apply.[/]")
        return 0
    for version, name, count in rows:
        console.print(f"[green]✓[/] {version}_{name}: {count} row(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
