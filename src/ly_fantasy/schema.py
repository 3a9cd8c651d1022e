from __future__ import annotations

from enum import Enum

import strawberry

from .db import Legislator as LegislatorModel
from .db import Score as ScoreModel
from .db import Team as TeamModel
from .rules import Category
from .weekly import CategoryTotals, WeeklyScoreSummary

# ── Enums ─────────────────────────────────────────────────────────────────────


@strawberry.enum
class ScoreCategory(Enum):
    """Activity category a score was earned in."""

    PROPOSE_BILL = "PROPOSE_BILL"
    COSIGN_BILL = "COSIGN_BILL"
    WRITTEN_SPEECH = "WRITTEN_SPEECH"
    FLOOR_SPEECH = "FLOOR_SPEECH"
    ROLLCALL_VOTE = "ROLLCALL_VOTE"
    MAVERICK_BONUS = "MAVERICK_BONUS"


@strawberry.enum
class LegislatorSortField(Enum):
    NAME = "name"
    PARTY = "party"


@strawberry.enum
class SortOrder(Enum):
    ASC = "asc"
    DESC = "desc"


# ── Pagination ────────────────────────────────────────────────────────────────


@strawberry.type
class PageInfo:
    """Pagination metadata returned with every paginated query."""

    total_count: int = strawberry.field(
        description="Total number of items matching the query (before pagination).",
    )
    has_next_page: bool = strawberry.field(
        description="True when more items exist beyond the current page.",
    )
    has_previous_page: bool = strawberry.field(
        description="True when items exist before the current page.",
    )


def paginate(items: list, offset: int, limit: int) -> tuple[list, PageInfo]:
    """Apply offset/limit pagination and build PageInfo.

    When *limit* is 0 the full list is returned (no cap).
    """
    total = len(items)
    page = items[offset : offset + limit] if limit > 0 else items[offset:]
    return page, PageInfo(
        total_count=total,
        has_next_page=limit > 0 and (offset + limit) < total,
        has_previous_page=offset > 0,
    )


# ── Scores ────────────────────────────────────────────────────────────────────


@strawberry.type
class ScoreType:
    id: str
    category: ScoreCategory
    points: float
    date: str
    description: str
    bill_number: str | None = None
    bill_title: str | None = None

    @classmethod
    def from_model(cls, s: ScoreModel) -> ScoreType:
        return cls(
            id=s.id,
            category=ScoreCategory(Category(s.category).value),
            points=float(s.points),
            date=s.date.isoformat(),
            description=s.description,
            bill_number=s.bill_number,
            bill_title=s.bill_title,
        )


@strawberry.type
class CategoryTotalsType:
    propose_bill: float
    cosign_bill: float
    written_speech: float
    floor_speech: float
    rollcall_vote: float
    maverick_bonus: float
    total: float

    @classmethod
    def from_model(cls, t: CategoryTotals) -> CategoryTotalsType:
        return cls(
            propose_bill=t[Category.PROPOSE_BILL],
            cosign_bill=t[Category.COSIGN_BILL],
            written_speech=t[Category.WRITTEN_SPEECH],
            floor_speech=t[Category.FLOOR_SPEECH],
            rollcall_vote=t[Category.ROLLCALL_VOTE],
            maverick_bonus=t[Category.MAVERICK_BONUS],
            total=t.total,
        )


@strawberry.type
class WeeklyScoreType:
    week: int
    week_start: str
    week_end: str
    totals: CategoryTotalsType

    @classmethod
    def from_model(cls, w: WeeklyScoreSummary) -> WeeklyScoreType:
        return cls(
            week=w.window.week,
            week_start=w.window.start.isoformat(),
            week_end=w.window.end.isoformat(),
            totals=CategoryTotalsType.from_model(w.totals),
        )


# ── Legislators ───────────────────────────────────────────────────────────────


@strawberry.type
class LegislatorType:
    id: str
    external_id: str
    name_ch: str
    name_en: str | None
    party: str | None
    area_name: str | None
    committee: str | None
    pic_url: str | None
    on_leave: bool
    error_flag: bool
    error_reason: str | None
    total_points: float = 0.0
    scores: list[ScoreType] = strawberry.field(default_factory=list)

    @classmethod
    def from_model(
        cls, m: LegislatorModel, scores: list[ScoreModel] | None = None
    ) -> LegislatorType:
        rows = scores or []
        return cls(
            id=m.id,
            external_id=m.external_id,
            name_ch=m.name_ch,
            name_en=m.name_en,
            party=m.party,
            area_name=m.area_name,
            committee=m.committee,
            pic_url=m.pic_url,
            on_leave=m.on_leave,
            error_flag=m.error_flag,
            error_reason=m.error_reason,
            total_points=sum(float(s.points) for s in rows),
            scores=[ScoreType.from_model(s) for s in rows],
        )


@strawberry.type
class LegislatorConnection:
    items: list[LegislatorType]
    page_info: PageInfo


# ── League standings ──────────────────────────────────────────────────────────


@strawberry.type
class TeamStandingType:
    id: str
    name: str
    wins: int
    losses: int
    ties: int

    @classmethod
    def from_model(cls, t: TeamModel) -> TeamStandingType:
        return cls(id=t.id, name=t.name, wins=t.wins, losses=t.losses, ties=t.ties)
