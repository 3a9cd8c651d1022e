"""Relational schema and the database handle.

Tables: legislators, scores, users, leagues, teams, roster_slots,
draft_picks, draft_preferences, matchups, data_migrations.

The :class:`Database` handle is constructed explicitly and passed to whatever
needs it (API app, scripts, tests).  Sessions come from
:meth:`Database.session`, which commits on success and rolls back on error.

Usage::

    db = Database("sqlite:///ly_fantasy.db")
    db.create_all()
    with db.session() as session:
        ...
    db.close()
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    relationship,
    sessionmaker,
)
from sqlalchemy.pool import StaticPool

LOGGER = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


# ── Legislators & scores ─────────────────────────────────────────────────────


class Legislator(Base):
    __tablename__ = "legislators"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    external_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    name_ch: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    name_en: Mapped[str | None] = mapped_column(String(200))
    party: Mapped[str | None] = mapped_column(String(50))
    sex: Mapped[str | None] = mapped_column(String(10))
    area_name: Mapped[str | None] = mapped_column(String(100))
    committee: Mapped[str | None] = mapped_column(Text)
    onboard_date: Mapped[str | None] = mapped_column(String(20))
    pic_url: Mapped[str | None] = mapped_column(Text)

    # On-leave status straight from the roster feed
    leave_flag: Mapped[str | None] = mapped_column(String(10))
    leave_date: Mapped[str | None] = mapped_column(String(20))
    leave_reason: Mapped[str | None] = mapped_column(Text)

    # Data-quality flag set by fetchers for manual follow-up
    error_flag: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    error_reason: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    scores: Mapped[list[Score]] = relationship(
        back_populates="legislator", cascade="all, delete-orphan"
    )

    @property
    def on_leave(self) -> bool:
        return self.leave_flag == "是"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "externalId": self.external_id,
            "nameCh": self.name_ch,
            "nameEn": self.name_en,
            "party": self.party,
            "sex": self.sex,
            "areaName": self.area_name,
            "committee": self.committee,
            "onboardDate": self.onboard_date,
            "picUrl": self.pic_url,
            "leaveFlag": self.leave_flag,
            "leaveDate": self.leave_date,
            "leaveReason": self.leave_reason,
            "errorFlag": self.error_flag,
            "errorReason": self.error_reason,
        }


class Score(Base):
    __tablename__ = "scores"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    legislator_id: Mapped[str] = mapped_column(
        ForeignKey("legislators.id", ondelete="CASCADE"), nullable=False
    )
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    points: Mapped[float] = mapped_column(Numeric(8, 2, asdecimal=False), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    external_id: Mapped[str | None] = mapped_column(String(255))
    bill_number: Mapped[str | None] = mapped_column(String(100))
    bill_title: Mapped[str | None] = mapped_column(Text)
    # "metadata" is reserved on declarative classes
    metadata_json: Mapped[str | None] = mapped_column("metadata", Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    legislator: Mapped[Legislator] = relationship(back_populates="scores")

    __table_args__ = (
        Index("ix_scores_natural_key", "legislator_id", "category", "external_id"),
        Index("ix_scores_legislator_date", "legislator_id", "date"),
        Index("ix_scores_bill_number", "bill_number"),
    )

    @property
    def meta(self) -> dict[str, Any]:
        """Parsed metadata (empty dict when missing or malformed)."""
        if not self.metadata_json:
            return {}
        try:
            value = json.loads(self.metadata_json)
        except json.JSONDecodeError:
            LOGGER.warning("Score %s has malformed metadata", self.id)
            return {}
        return value if isinstance(value, dict) else {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "legislatorId": self.legislator_id,
            "category": self.category,
            "points": self.points,
            "date": self.date.isoformat(),
            "description": self.description,
            "billNumber": self.bill_number,
            "billTitle": self.bill_title,
            "metadata": self.meta,
        }


# ── Fantasy league entities ──────────────────────────────────────────────────


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(200))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    teams: Mapped[list[Team]] = relationship(back_populates="owner")


class League(Base):
    __tablename__ = "leagues"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    commissioner_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"))
    season_start: Mapped[date] = mapped_column(Date, nullable=False)
    total_weeks: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    draft_status: Mapped[str] = mapped_column(String(20), default="PENDING", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    teams: Mapped[list[Team]] = relationship(
        back_populates="league", cascade="all, delete-orphan", order_by="Team.created_at"
    )
    matchups: Mapped[list[Matchup]] = relationship(
        back_populates="league", cascade="all, delete-orphan"
    )
    draft_picks: Mapped[list[DraftPick]] = relationship(
        back_populates="league", cascade="all, delete-orphan"
    )


class Team(Base):
    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    league_id: Mapped[str] = mapped_column(
        ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False
    )
    owner_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"))
    wins: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    losses: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    ties: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    league: Mapped[League] = relationship(back_populates="teams")
    owner: Mapped[User | None] = relationship(back_populates="teams")
    roster: Mapped[list[RosterSlot]] = relationship(
        back_populates="team", cascade="all, delete-orphan"
    )
    preferences: Mapped[list[DraftPreference]] = relationship(
        back_populates="team", cascade="all, delete-orphan", order_by="DraftPreference.rank"
    )

    @property
    def legislator_ids(self) -> set[str]:
        return {slot.legislator_id for slot in self.roster}

    @property
    def bench_ids(self) -> set[str]:
        return {slot.legislator_id for slot in self.roster if slot.is_bench}

    @property
    def starter_ids(self) -> set[str]:
        return {slot.legislator_id for slot in self.roster if not slot.is_bench}


class RosterSlot(Base):
    """Team ↔ legislator membership; the bench is the set of slots with ``is_bench``."""

    __tablename__ = "roster_slots"

    team_id: Mapped[str] = mapped_column(
        ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True
    )
    legislator_id: Mapped[str] = mapped_column(
        ForeignKey("legislators.id", ondelete="CASCADE"), primary_key=True
    )
    is_bench: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    team: Mapped[Team] = relationship(back_populates="roster")
    legislator: Mapped[Legislator] = relationship()


class DraftPick(Base):
    __tablename__ = "draft_picks"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    league_id: Mapped[str] = mapped_column(
        ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False
    )
    team_id: Mapped[str] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"))
    legislator_id: Mapped[str] = mapped_column(ForeignKey("legislators.id", ondelete="CASCADE"))
    round: Mapped[int] = mapped_column(Integer, nullable=False)
    pick_number: Mapped[int] = mapped_column(Integer, nullable=False)

    league: Mapped[League] = relationship(back_populates="draft_picks")

    __table_args__ = (UniqueConstraint("league_id", "legislator_id", name="uq_pick_league_leg"),)


class DraftPreference(Base):
    __tablename__ = "draft_preferences"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    team_id: Mapped[str] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"))
    legislator_id: Mapped[str] = mapped_column(ForeignKey("legislators.id", ondelete="CASCADE"))
    rank: Mapped[int] = mapped_column(Integer, nullable=False)

    team: Mapped[Team] = relationship(back_populates="preferences")


class Matchup(Base):
    __tablename__ = "matchups"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    league_id: Mapped[str] = mapped_column(
        ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False
    )
    week: Mapped[int] = mapped_column(Integer, nullable=False)
    week_start: Mapped[date] = mapped_column(Date, nullable=False)
    team1_id: Mapped[str] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"))
    team2_id: Mapped[str | None] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"))
    team1_score: Mapped[float | None] = mapped_column(Numeric(8, 2, asdecimal=False))
    team2_score: Mapped[float | None] = mapped_column(Numeric(8, 2, asdecimal=False))
    winner_id: Mapped[str | None] = mapped_column(String(32))
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    league: Mapped[League] = relationship(back_populates="matchups")

    __table_args__ = (Index("ix_matchups_league_week", "league_id", "week"),)


# ── Data migration log ───────────────────────────────────────────────────────


class DataMigration(Base):
    __tablename__ = "data_migrations"

    version: Mapped[str] = mapped_column(String(10), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    rows_affected: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    applied_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


# ── Database handle ──────────────────────────────────────────────────────────


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


class Database:
    """Owns the engine and session factory for one process or request scope."""

    def __init__(self, url: str, *, echo: bool = False) -> None:
        if not url:
            raise ValueError("Database URL is empty (set LYF_DATABASE_URL).")
        self.url = url
        kwargs: dict[str, Any] = {}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if _is_memory_sqlite(url):
                # One shared connection so every session sees the same in-memory DB
                kwargs["poolclass"] = StaticPool
        self.engine = create_engine(url, echo=echo, **kwargs)
        self._sessionmaker = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._closed = False

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        if self._closed:
            raise RuntimeError("Database handle is closed.")
        session = self._sessionmaker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        if not self._closed:
            self.engine.dispose()
            self._closed = True
            LOGGER.debug("Database handle closed (%s)", self.url)

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
