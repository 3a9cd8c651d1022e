"""ROLLCALL_VOTE and MAVERICK_BONUS scores from recorded (記名) votes.

Pipeline per vote record:

1. Download the record's XLS sheet and read it with polars (calamine engine).
2. Walk the rows: ``贊成:`` / ``反對:`` / ``棄權:`` header cells switch the
   current vote; names appear either as ``"025伍麗華"`` or as a
   ``["025", "伍麗華"]`` cell pair.
3. Match each name to a legislator (exact, then prefix, then containment).
4. Tally per-party statistics, award one roll-call point per matched vote and
   a maverick bonus to anyone who broke with a lopsided party majority.
"""

from __future__ import annotations

import io
import logging
import re
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import polars as pl

from ..client import LYApiClient, LYApiError
from ..db import Database, Legislator
from ..models import ParsedVote, RollcallRecord, ScoreCandidate, SyncResult
from ..normalize import normalize_sheet_name, roc_to_date
from ..rules import Category, maverick_bonus, points_for
from ..store import ScoreStore

LOGGER = logging.getLogger(__name__)

SOURCE = "Rollcall API"
DEFAULT_LIMIT = 20

VOTE_FOR = "贊成"
VOTE_AGAINST = "反對"
VOTE_ABSTAIN = "棄權"

_SECTION_HEADERS: dict[str, str] = {
    f"{VOTE_FOR}:": VOTE_FOR,
    f"{VOTE_AGAINST}:": VOTE_AGAINST,
    f"{VOTE_ABSTAIN}:": VOTE_ABSTAIN,
}
_EMPTY_SECTION = "無"

_RE_SEAT_AND_NAME = re.compile(r"^([\d０-９]{1,3})([^\d０-９].*)$")
_RE_SEAT_ONLY = re.compile(r"^[\d０-９]+$")
_RE_ANY_SPACE = re.compile(r"\s+")


# ── Sheet parsing ────────────────────────────────────────────────────────────


def read_sheet_rows(content: bytes) -> list[list[str]]:
    """Read the first worksheet of an XLS/XLSX payload as rows of strings."""
    df = pl.read_excel(
        io.BytesIO(content),
        engine="calamine",
        has_header=False,
        infer_schema_length=0,
    )
    return [["" if cell is None else str(cell) for cell in row] for row in df.rows()]


def parse_vote_rows(rows: Iterable[Sequence[object]]) -> list[ParsedVote]:
    """Extract ``(name, vote)`` pairs from sheet rows.

    Rows before the first section header are ignored, as are rows containing
    ``無`` (an empty section).  Each name is kept once, first section wins.
    """
    votes: list[ParsedVote] = []
    seen: set[str] = set()
    current: str | None = None

    def _add(raw_name: str) -> None:
        name = normalize_sheet_name(raw_name)
        if name and name not in seen:
            seen.add(name)
            votes.append(ParsedVote(name, current))  # type: ignore[arg-type]

    for row in rows:
        cells = ["" if c is None else str(c).strip() for c in row]

        header = next((_SECTION_HEADERS[c] for c in cells if c in _SECTION_HEADERS), None)
        if header is not None:
            current = header
            continue
        if current is None or _EMPTY_SECTION in cells:
            continue

        # "025伍麗華" in one cell
        for cell in cells:
            m = _RE_SEAT_AND_NAME.match(cell)
            if m:
                _add(m.group(2))
        # "025" | "伍麗華" in adjacent cells
        for left, right in zip(cells, cells[1:]):
            if right and _RE_SEAT_ONLY.match(left):
                _add(right)
    return votes


# ── Matching & party statistics ──────────────────────────────────────────────


def match_legislator(legislators: Sequence[Legislator], name: str) -> Legislator | None:
    cleaned = _RE_ANY_SPACE.sub("", name)
    if not cleaned:
        return None
    for leg in legislators:
        if leg.name_ch == cleaned:
            return leg
    # Indigenous names: the sheet may carry only the Chinese prefix
    for leg in legislators:
        if leg.name_ch.startswith(cleaned):
            return leg
    for leg in legislators:
        if cleaned in leg.name_ch or leg.name_ch in cleaned:
            return leg
    return None


@dataclass
class PartyStats:
    for_: int = 0
    against: int = 0
    abstain: int = 0
    total: int = 0

    def add(self, vote: str) -> None:
        self.total += 1
        if vote == VOTE_FOR:
            self.for_ += 1
        elif vote == VOTE_AGAINST:
            self.against += 1
        elif vote == VOTE_ABSTAIN:
            self.abstain += 1

    @property
    def share_for(self) -> float:
        return self.for_ / self.total if self.total else 0.0

    @property
    def share_against(self) -> float:
        return self.against / self.total if self.total else 0.0

    @property
    def pct_for(self) -> float:
        return self.share_for * 100

    @property
    def pct_against(self) -> float:
        return self.share_against * 100

    @property
    def majority_for(self) -> bool:
        return self.pct_for > 50


def party_key(legislator: Legislator) -> str:
    return legislator.party or ""


def compute_party_stats(
    votes: Iterable[ParsedVote], matched: dict[str, Legislator]
) -> dict[str, PartyStats]:
    stats: dict[str, PartyStats] = {}
    for v in votes:
        leg = matched.get(v.legislator_name)
        if leg is None:
            continue
        stats.setdefault(party_key(leg), PartyStats()).add(v.vote)
    return stats


def maverick_points(vote: str, stats: PartyStats | None) -> int:
    """Bonus for voting against the party majority; abstentions never qualify."""
    if vote == VOTE_ABSTAIN or stats is None or stats.total == 0:
        return 0
    voted_for = vote == VOTE_FOR
    if stats.majority_for == voted_for:
        return 0
    share = stats.share_for if stats.majority_for else stats.share_against
    return maverick_bonus(share)


def rollcall_candidates(
    record: RollcallRecord,
    votes: list[ParsedVote],
    legislators: Sequence[Legislator],
) -> tuple[list[ScoreCandidate], list[str]]:
    """Score rows and unmatched-name errors for one vote record."""
    vote_date = roc_to_date(record.vote_date)
    if vote_date is None:
        raise ValueError(f"invalid vote date {record.vote_date!r}")

    errors: list[str] = []
    matched: dict[str, Legislator] = {}
    for v in votes:
        leg = match_legislator(legislators, v.legislator_name)
        if leg is None:
            errors.append(f"Unmatched legislator: {v.legislator_name}")
        else:
            matched[v.legislator_name] = leg

    stats = compute_party_stats(votes, matched)
    candidates: list[ScoreCandidate] = []
    for v in votes:
        leg = matched.get(v.legislator_name)
        if leg is None:
            continue
        meta = {"vote": v.vote, "sessionPeriod": record.session_period, "party": leg.party}
        candidates.append(
            ScoreCandidate(
                legislator_id=leg.id,
                category=Category.ROLLCALL_VOTE,
                points=points_for(Category.ROLLCALL_VOTE),
                date=vote_date,
                description=f"Rollcall vote on {record.issue}",
                external_id=f"rollcall:{record.vote_key}",
                metadata=meta,
            )
        )
        party_stats = stats.get(party_key(leg))
        bonus = maverick_points(v.vote, party_stats)
        if bonus > 0:
            candidates.append(
                ScoreCandidate(
                    legislator_id=leg.id,
                    category=Category.MAVERICK_BONUS,
                    points=bonus,
                    date=vote_date,
                    description=f"Voted independently ({v.vote}) on {record.issue}",
                    external_id=f"maverick:{record.vote_key}",
                    metadata={
                        **meta,
                        "partyPctFor": round(party_stats.pct_for, 2),
                        "partyPctAgainst": round(party_stats.pct_against, 2),
                    },
                )
            )
    return candidates, errors


# ── Sync ─────────────────────────────────────────────────────────────────────


class RollcallSync:
    source = SOURCE
    pause: float = 0.25

    def __init__(self, db: Database, client: LYApiClient, *, pause: float | None = None) -> None:
        self.db = db
        self.client = client
        if pause is not None:
            self.pause = pause

    def recorded_votes(self) -> list[RollcallRecord]:
        records = [RollcallRecord.from_api(r) for r in self.client.fetch_rollcall_index()]
        return [r for r in records if r.is_recorded]

    def parse_sheet(self, record: RollcallRecord) -> list[ParsedVote]:
        return parse_vote_rows(read_sheet_rows(self.client.get_bytes(record.sheet_url)))

    def run(self, limit: int | None = DEFAULT_LIMIT, offset: int = 0) -> SyncResult:
        result = SyncResult()
        try:
            records = self.recorded_votes()
        except LYApiError as exc:
            LOGGER.error("%s: failed to fetch roll-call index: %s", SOURCE, exc)
            result.error_count += 1
            result.errors.append(f"{SOURCE}: {exc}")
            return result

        start = max(offset, 0)
        end = start + limit if limit else len(records)
        batch = records[start:end]
        LOGGER.info(
            "%s: %d recorded vote(s), processing %d (offset=%d)",
            SOURCE,
            len(records),
            len(batch),
            start,
        )

        with self.db.session() as session:
            legislators = ScoreStore(session).list_legislators()

        for i, record in enumerate(batch):
            LOGGER.info("%s: %d/%d %s", SOURCE, i + 1, len(batch), record.issue[:60])
            try:
                votes = self.parse_sheet(record)
                candidates, unmatched = rollcall_candidates(record, votes, legislators)
            except (LYApiError, ValueError, pl.exceptions.PolarsError) as exc:
                LOGGER.error("%s: record %r failed: %s", SOURCE, record.issue[:60], exc)
                result.error_count += 1
                result.errors.append(f"{record.issue}: {exc}")
            else:
                with self.db.session() as session:
                    result.total_scores_created += ScoreStore(session).upsert_many(candidates)
                result.processed_count += 1
                result.error_count += len(unmatched)
                result.errors.extend(unmatched)
            if self.pause and i < len(batch) - 1:
                time.sleep(self.pause)
        return result
