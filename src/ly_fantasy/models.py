from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from .normalize import first_value, parse_speakers
from .rules import Category


@dataclass
class ScoreCandidate:
    """A normalized, not-yet-persisted score row produced by a fetcher."""

    legislator_id: str
    category: Category
    points: float
    date: date
    description: str
    external_id: str | None = None  # e.g. "propose:立法院議案字號" -- dedup key
    bill_number: str | None = None
    bill_title: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def metadata_json(self) -> str | None:
        if not self.metadata:
            return None
        return json.dumps(self.metadata, ensure_ascii=False)


@dataclass
class BillRecord:
    """One bill from the propose_bills / cosign_bills endpoints."""

    bill_id: str  # 議案編號
    title: str  # 議案名稱
    status: str  # 議案狀態
    proposed_date: str  # 提案日期
    latest_progress_date: str  # 最新進度日期
    bill_number: str | None = None  # 字號
    law_number: str | None = None  # 法律編號 (first element)
    proposing_unit: str = ""  # 提案單位

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> BillRecord:
        return cls(
            bill_id=str(raw.get("議案編號") or ""),
            title=raw.get("議案名稱") or "",
            status=raw.get("議案狀態") or "",
            proposed_date=raw.get("提案日期") or "",
            latest_progress_date=raw.get("最新進度日期") or "",
            bill_number=first_value(raw.get("字號")),
            law_number=first_value(raw.get("法律編號")),
            proposing_unit=raw.get("提案單位") or "",
        )

    @property
    def key(self) -> str:
        """字號 when present, else 議案編號."""
        return self.bill_number or self.bill_id


@dataclass
class InterpellationRecord:
    interpellation_id: str  # 質詢編號
    published_date: str  # 刊登日期
    subject: str = ""  # 事由
    session_period: int | None = None  # 會期

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> InterpellationRecord:
        period = raw.get("會期")
        return cls(
            interpellation_id=str(raw.get("質詢編號") or ""),
            published_date=raw.get("刊登日期") or "",
            subject=raw.get("事由") or "",
            session_period=int(period) if str(period or "").isdigit() else None,
        )


@dataclass
class SpeechMeeting:
    meeting_date: str  # ROC, e.g. "113/02/27"
    meeting_name: str
    meeting_unit: str = ""
    meeting_content: str = ""
    meeting_status: str = ""
    speakers: list[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> SpeechMeeting:
        return cls(
            meeting_date=raw.get("smeeting_date") or "",
            meeting_name=raw.get("meeting_name") or "",
            meeting_unit=raw.get("meeting_unit") or "",
            meeting_content=raw.get("meeting_content") or "",
            meeting_status=raw.get("meeting_status") or "",
            speakers=parse_speakers(raw.get("speechers")),
        )


@dataclass
class RollcallRecord:
    vote_date: str  # ROC
    issue: str
    vote_type: str  # "記名" for recorded votes
    sheet_url: str
    session_period: str = ""
    term: str = ""
    vote_time: str = ""

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> RollcallRecord:
        return cls(
            vote_date=raw.get("voteDate") or "",
            issue=raw.get("voteIssue") or "",
            vote_type=raw.get("voteType") or "",
            sheet_url=raw.get("url") or "",
            session_period=str(raw.get("sessionPeriod") or ""),
            term=str(raw.get("term") or ""),
            vote_time=raw.get("voteTime") or "",
        )

    @property
    def vote_key(self) -> str:
        """Identity of one recorded vote; several can share a date and issue."""
        return self.sheet_url or f"{self.vote_date}:{self.vote_time}:{self.issue}"

    @property
    def is_recorded(self) -> bool:
        return self.vote_type == "記名"


@dataclass(frozen=True)
class ParsedVote:
    legislator_name: str
    vote: str  # 贊成 | 反對 | 棄權


@dataclass
class RosterEntry:
    name: str
    name_en: str
    party: str
    pic_url: str
    sex: str = ""
    area_name: str | None = None
    committee: str | None = None
    onboard_date: str | None = None
    leave_flag: str | None = None
    leave_date: str | None = None
    leave_reason: str | None = None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> RosterEntry:
        return cls(
            name=(raw.get("name") or "").strip(),
            name_en=(raw.get("ename") or "").strip(),
            party=(raw.get("party") or "").strip(),
            pic_url=raw.get("picUrl") or "",
            sex=raw.get("sex") or "",
            area_name=raw.get("areaName") or None,
            committee=raw.get("committee") or None,
            onboard_date=raw.get("onboardDate") or None,
            leave_flag=raw.get("leaveFlag") or None,
            leave_date=raw.get("leaveDate") or None,
            leave_reason=raw.get("leaveReason") or None,
        )


@dataclass
class SyncResult:
    processed_count: int = 0
    error_count: int = 0
    total_scores_created: int = 0
    errors: list[str] = field(default_factory=list)

    def merge(self, other: SyncResult) -> SyncResult:
        return SyncResult(
            processed_count=self.processed_count + other.processed_count,
            error_count=self.error_count + other.error_count,
            total_scores_created=self.total_scores_created + other.total_scores_created,
            errors=self.errors + other.errors,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "processedCount": self.processed_count,
            "errorCount": self.error_count,
            "totalScoresCreated": self.total_scores_created,
            "errors": list(self.errors),
        }
