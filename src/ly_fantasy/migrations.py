"""Versioned data migrations over existing score rows.

Each migration runs at most once; applied versions are recorded in the
``data_migrations`` table, so :func:`apply_pending` can be re-run safely.

- ``0001`` moves written-interpellation rows that were filed under
  FLOOR_SPEECH into WRITTEN_SPEECH.  Genuine floor speeches stay put.
- ``0002`` rewrites the point values of rows created under the old table
  (PROPOSE_BILL 6→3 for base proposals, COSIGN_BILL 1→3, WRITTEN_SPEECH 1→3).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from .db import DataMigration
from .rules import Category
from .store import ScoreStore

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    version: str
    name: str
    apply: Callable[[ScoreStore], int]


def _written_interpellations_category(store: ScoreStore) -> int:
    return store.recategorize(
        Category.FLOOR_SPEECH,
        Category.WRITTEN_SPEECH,
        description_prefix="Written Interpellation",
    )


def _point_values_v2(store: ScoreStore) -> int:
    changed = store.rewrite_points(Category.PROPOSE_BILL, 6, 3, description_prefix="Proposed:")
    LOGGER.info("PROPOSE_BILL 6 -> 3: %d row(s)", changed)
    cosign = store.rewrite_points(Category.COSIGN_BILL, 1, 3)
    LOGGER.info("COSIGN_BILL 1 -> 3: %d row(s)", cosign)
    written = store.rewrite_points(Category.WRITTEN_SPEECH, 1, 3)
    LOGGER.info("WRITTEN_SPEECH 1 -> 3: %d row(s)", written)
    return changed + cosign + written


MIGRATIONS: tuple[Migration, ...] = (
    Migration("0001", "written_interpellations_category", _written_interpellations_category),
    Migration("0002", "point_values_v2", _point_values_v2),
)


def applied_versions(session: Session) -> set[str]:
    return set(session.scalars(select(DataMigration.version)))


def pending(session: Session) -> list[Migration]:
    done = applied_versions(session)
    return [m for m in MIGRATIONS if m.version not in done]


def apply_pending(session: Session) -> list[DataMigration]:
    """Apply every unapplied migration in version order; returns the new log rows."""
    store = ScoreStore(session)
    applied: list[DataMigration] = []
    for migration in pending(session):
        rows = migration.apply(store)
        entry = DataMigration(version=migration.version, name=migration.name, rows_affected=rows)
        session.add(entry)
        session.flush()
        applied.append(entry)
        LOGGER.info("Applied migration %s_%s (%d rows)", migration.version, migration.name, rows)
    if not applied:
        LOGGER.info("No pending data migrations.")
    return applied
