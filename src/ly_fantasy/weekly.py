"""Weekly aggregation: Monday-to-Sunday windows and per-category rollups.

Everything here is a pure function over score-like objects (anything with
``category``, ``points`` and ``date``), so the same code serves persisted
:class:`~ly_fantasy.db.Score` rows and in-memory candidates in tests.

Weeks are anchored on the Monday of the season-start week; week 1 is the
week containing ``season_start``.
"""

from __future__ import annotations

import math
from collections.abc import Collection, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Protocol

from .normalize import as_date
from .rules import Category, capped_points


class ScoreLike(Protocol):
    category: str
    points: float
    date: date


class LegislatorScoreLike(ScoreLike, Protocol):
    legislator_id: str


# ── Week arithmetic ──────────────────────────────────────────────────────────


def week_start(d: date | datetime) -> date:
    """Monday of *d*'s week.

        >>> week_start(date(2024, 3, 17))
        datetime.date(2024, 3, 11)
    """
    d = as_date(d)
    return d - timedelta(days=d.weekday())


def week_end(d: date | datetime) -> date:
    """Sunday of *d*'s week."""
    return week_start(d) + timedelta(days=6)


def week_index(season_start: date, d: date | datetime) -> int:
    """Zero-based week offset of *d* from the season's first Monday (negative before it)."""
    return math.floor((as_date(d) - week_start(season_start)).days / 7)


def current_week(season_start: date, today: date | None = None) -> int:
    """1-based week number, or 0 before the season starts."""
    idx = week_index(season_start, today or date.today())
    return 0 if idx < 0 else idx + 1


@dataclass(frozen=True)
class WeekWindow:
    week: int
    start: date
    end: date

    @property
    def end_of_day(self) -> datetime:
        return datetime.combine(self.end, time.max)

    def contains(self, d: date | datetime) -> bool:
        return self.start <= as_date(d) <= self.end


def week_window(season_start: date, week: int) -> WeekWindow:
    """Inclusive Monday..Sunday range of 1-based *week*."""
    start = week_start(season_start) + timedelta(weeks=week - 1)
    return WeekWindow(week=week, start=start, end=start + timedelta(days=6))


# ── Per-category totals ──────────────────────────────────────────────────────


@dataclass
class CategoryTotals:
    by_category: dict[str, float] = field(
        default_factory=lambda: {c.value: 0.0 for c in Category}
    )

    @property
    def total(self) -> float:
        return sum(self.by_category.values())

    def __getitem__(self, category: Category | str) -> float:
        return self.by_category[Category(category).value]

    def to_dict(self) -> dict[str, float]:
        return {**self.by_category, "total": self.total}


def _raw_totals(scores: Iterable[ScoreLike]) -> dict[str, float]:
    raw = {c.value: 0.0 for c in Category}
    for s in scores:
        raw[Category(s.category).value] += float(s.points)
    return raw


def sum_by_category(scores: Iterable[ScoreLike], *, apply_caps: bool = True) -> CategoryTotals:
    raw = _raw_totals(scores)
    if apply_caps:
        raw = {cat: capped_points(cat, pts) for cat, pts in raw.items()}
    return CategoryTotals(raw)


@dataclass
class WeeklyScoreSummary:
    window: WeekWindow
    totals: CategoryTotals

    @property
    def week(self) -> int:
        return self.window.week

    @property
    def total(self) -> float:
        return self.totals.total

    def to_dict(self) -> dict[str, object]:
        return {
            "week": self.window.week,
            "weekStart": self.window.start.isoformat(),
            "weekEnd": self.window.end.isoformat(),
            "categories": self.totals.by_category,
            "total": self.total,
        }


def summarize_week(scores: Iterable[ScoreLike], window: WeekWindow) -> WeeklyScoreSummary:
    """Category sums for scores dated inside *window*, weekly caps applied."""
    in_window = [s for s in scores if window.contains(s.date)]
    return WeeklyScoreSummary(window=window, totals=sum_by_category(in_window))


def weekly_breakdown(
    scores: Iterable[ScoreLike], season_start: date, weeks: int
) -> list[WeeklyScoreSummary]:
    """One summary per week 1..*weeks*, each capped independently."""
    buckets: dict[int, list[ScoreLike]] = {w: [] for w in range(1, weeks + 1)}
    for s in scores:
        w = week_index(season_start, s.date) + 1
        if w in buckets:
            buckets[w].append(s)
    return [
        WeeklyScoreSummary(week_window(season_start, w), sum_by_category(bucket))
        for w, bucket in buckets.items()
    ]


# ── Averages ─────────────────────────────────────────────────────────────────


def weeks_elapsed(first: date, as_of: date | None = None) -> int:
    """Whole weeks from the first score's week to *as_of*'s week (at least 1)."""
    span = (week_start(as_of or date.today()) - week_start(first)).days // 7
    return max(span, 1)


def average_by_category(
    scores: Collection[ScoreLike], as_of: date | None = None
) -> CategoryTotals:
    """All-time per-category sums divided by weeks elapsed since the first score."""
    if not scores:
        return CategoryTotals()
    first = min(as_date(s.date) for s in scores)
    divisor = weeks_elapsed(first, as_of)
    raw = _raw_totals(scores)
    return CategoryTotals({cat: pts / divisor for cat, pts in raw.items()})


def average_weekly_score(scores: Iterable[ScoreLike]) -> float:
    """Total points over the number of distinct weeks with any score."""
    by_week: dict[date, float] = {}
    for s in scores:
        key = week_start(s.date)
        by_week[key] = by_week.get(key, 0.0) + float(s.points)
    if not by_week:
        return 0.0
    return sum(by_week.values()) / len(by_week)


# ── Team helpers ─────────────────────────────────────────────────────────────


def team_weekly_score(
    scores: Iterable[LegislatorScoreLike],
    bench_ids: Collection[str],
    window: WeekWindow,
) -> float:
    """Capped in-window points summed over every legislator not on the bench."""
    per_legislator: dict[str, list[LegislatorScoreLike]] = {}
    for s in scores:
        if s.legislator_id not in bench_ids and window.contains(s.date):
            per_legislator.setdefault(s.legislator_id, []).append(s)
    return sum(sum_by_category(rows).total for rows in per_legislator.values())
