"""Score upsert layer and legislator lookups over a SQLAlchemy session.

Every fetcher funnels its :class:`~ly_fantasy.models.ScoreCandidate` rows
through :meth:`ScoreStore.upsert`, which guarantees at most one score per
external activity so re-running a sync never double-counts.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from .db import Legislator, Score
from .models import ScoreCandidate
from .rules import Category

LOGGER = logging.getLogger(__name__)


class ScoreStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    # ── Scores ────────────────────────────────────────────────────────────

    def find_existing(self, candidate: ScoreCandidate) -> Score | None:
        """Look up the stored score for the same activity.

        Keyed on ``(legislator, category, external_id)`` when the candidate
        carries an external id, else ``(legislator, category, date, description)``.
        """
        stmt = select(Score).where(
            Score.legislator_id == candidate.legislator_id,
            Score.category == Category(candidate.category).value,
        )
        if candidate.external_id:
            stmt = stmt.where(Score.external_id == candidate.external_id)
        else:
            stmt = stmt.where(
                Score.date == candidate.date,
                Score.description == candidate.description,
            )
        return self.session.scalars(stmt.limit(1)).first()

    def upsert(self, candidate: ScoreCandidate) -> bool:
        """Insert *candidate* unless it already exists.  Returns True when inserted."""
        if self.find_existing(candidate) is not None:
            return False
        self.session.add(
            Score(
                legislator_id=candidate.legislator_id,
                category=Category(candidate.category).value,
                points=candidate.points,
                date=candidate.date,
                description=candidate.description,
                external_id=candidate.external_id,
                bill_number=candidate.bill_number,
                bill_title=candidate.bill_title,
                metadata_json=candidate.metadata_json(),
            )
        )
        # Flush so a duplicate later in the same batch is seen by find_existing
        self.session.flush()
        return True

    def upsert_many(self, candidates: Iterable[ScoreCandidate]) -> int:
        return sum(1 for c in candidates if self.upsert(c))

    def rewrite_points(
        self,
        category: Category | str,
        old_points: float,
        new_points: float,
        *,
        description_prefix: str | None = None,
    ) -> int:
        """Bulk-correct point values; returns the number of rows changed."""
        stmt = (
            update(Score)
            .where(Score.category == Category(category).value, Score.points == old_points)
            .values(points=new_points)
        )
        if description_prefix:
            stmt = stmt.where(Score.description.startswith(description_prefix))
        result = self.session.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount or 0

    def recategorize(
        self, old: Category | str, new: Category | str, *, description_prefix: str
    ) -> int:
        stmt = (
            update(Score)
            .where(
                Score.category == Category(old).value,
                Score.description.startswith(description_prefix),
            )
            .values(category=Category(new).value)
        )
        result = self.session.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount or 0

    def scores_for(
        self,
        legislator_ids: Iterable[str],
        start: date | None = None,
        end: date | None = None,
    ) -> list[Score]:
        ids = list(legislator_ids)
        if not ids:
            return []
        stmt = select(Score).where(Score.legislator_id.in_(ids))
        if start is not None:
            stmt = stmt.where(Score.date >= start)
        if end is not None:
            stmt = stmt.where(Score.date <= end)
        return list(self.session.scalars(stmt.order_by(Score.date.desc(), Score.created_at.desc())))

    def points_by_legislator(self) -> dict[str, float]:
        stmt = select(Score.legislator_id, func.sum(Score.points)).group_by(Score.legislator_id)
        return {lid: float(total or 0) for lid, total in self.session.execute(stmt)}

    def count_scores(self, category: Category | str | None = None) -> int:
        stmt = select(func.count()).select_from(Score)
        if category is not None:
            stmt = stmt.where(Score.category == Category(category).value)
        return self.session.scalar(stmt) or 0

    # ── Legislators ───────────────────────────────────────────────────────

    def select_legislators(
        self, name: str | None = None, limit: int | None = None, offset: int = 0
    ) -> list[Legislator]:
        """Legislators ordered by Chinese name, optionally filtered and paged."""
        stmt = select(Legislator)
        if name:
            stmt = stmt.where(Legislator.name_ch == name)
        stmt = stmt.order_by(Legislator.name_ch, Legislator.id).offset(max(offset, 0))
        if limit is not None and limit > 0:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt))

    def list_legislators(self) -> list[Legislator]:
        return self.select_legislators()

    def legislator_by_id(self, legislator_id: str) -> Legislator | None:
        return self.session.get(Legislator, legislator_id)

    def legislator_by_external_id(self, external_id: str) -> Legislator | None:
        stmt = select(Legislator).where(Legislator.external_id == external_id)
        return self.session.scalars(stmt).first()

    def mark_error(self, legislator: Legislator, reason: str) -> None:
        legislator.error_flag = True
        legislator.error_reason = reason
        self.session.flush()

    def clear_error(self, legislator: Legislator) -> None:
        if legislator.error_flag or legislator.error_reason:
            legislator.error_flag = False
            legislator.error_reason = None
            self.session.flush()
