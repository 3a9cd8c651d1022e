"""Round-robin schedules, weekly matchup scoring and league standings."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .db import League, Matchup, Team
from .store import ScoreStore
from .weekly import team_weekly_score, week_window

LOGGER = logging.getLogger(__name__)


def round_robin_pairings(
    team_ids: Sequence[str], total_weeks: int
) -> list[list[tuple[str, str | None]]]:
    """Weekly pairings by the circle method.

    With an odd team count a ``None`` placeholder joins the rotation; the team
    paired with it has a bye that week.  Full cycles repeat until
    *total_weeks* weeks are filled.
    """
    if len(team_ids) < 2:
        raise ValueError("Need at least 2 teams to generate a schedule")
    base: list[str | None] = list(team_ids)
    if len(base) % 2:
        base.append(None)
    n = len(base)
    cycle_weeks = n - 1

    weeks: list[list[tuple[str, str | None]]] = []
    for _ in range(math.ceil(total_weeks / cycle_weeks)):
        rotation = list(base)
        for _ in range(cycle_weeks):
            if len(weeks) == total_weeks:
                return weeks
            pairs: list[tuple[str, str | None]] = []
            for i in range(n // 2):
                home, away = rotation[i], rotation[n - 1 - i]
                if home is None:
                    home, away = away, None
                if home is not None:
                    pairs.append((home, away))
            weeks.append(pairs)
            # First slot stays fixed; the rest rotate one step clockwise
            rotation = [rotation[0], rotation[-1], *rotation[1:-1]]
    return weeks


def generate_schedule(session: Session, league: League) -> list[Matchup]:
    """Replace the league's matchups with a fresh round-robin schedule."""
    session.execute(delete(Matchup).where(Matchup.league_id == league.id))
    team_ids = [t.id for t in league.teams]
    matchups: list[Matchup] = []
    for week, pairs in enumerate(round_robin_pairings(team_ids, league.total_weeks), start=1):
        start = week_window(league.season_start, week).start
        for team1_id, team2_id in pairs:
            matchups.append(
                Matchup(
                    league_id=league.id,
                    week=week,
                    week_start=start,
                    team1_id=team1_id,
                    team2_id=team2_id,
                )
            )
    session.add_all(matchups)
    session.flush()
    session.expire(league, ["matchups"])
    LOGGER.info("Generated %d matchups for league %s", len(matchups), league.name)
    return matchups


def team_score(session: Session, team: Team, week: int) -> float:
    window = week_window(team.league.season_start, week)
    scores = ScoreStore(session).scores_for(team.legislator_ids, window.start, window.end)
    return team_weekly_score(scores, team.bench_ids, window)


def score_matchup(session: Session, matchup: Matchup) -> Matchup:
    """Fill in both scores and the winner; a bye counts as a win, a tie has no winner."""
    team1 = session.get(Team, matchup.team1_id)
    if team1 is None:
        raise LookupError(f"Team {matchup.team1_id} not found")
    matchup.team1_score = team_score(session, team1, matchup.week)

    if matchup.team2_id is None:
        matchup.team2_score = None
        matchup.winner_id = matchup.team1_id
    else:
        team2 = session.get(Team, matchup.team2_id)
        if team2 is None:
            raise LookupError(f"Team {matchup.team2_id} not found")
        matchup.team2_score = team_score(session, team2, matchup.week)
        if matchup.team1_score > matchup.team2_score:
            matchup.winner_id = matchup.team1_id
        elif matchup.team2_score > matchup.team1_score:
            matchup.winner_id = matchup.team2_id
        else:
            matchup.winner_id = None
    matchup.completed = True
    session.flush()
    return matchup


def update_team_records(session: Session, league: League) -> None:
    """Recompute every team's W/L/T from completed matchups."""
    records = {t.id: [0, 0, 0] for t in league.teams}
    completed = session.scalars(
        select(Matchup).where(Matchup.league_id == league.id, Matchup.completed.is_(True))
    )
    for m in completed:
        if m.winner_id is not None:
            loser = m.team2_id if m.winner_id == m.team1_id else m.team1_id
            if m.winner_id in records:
                records[m.winner_id][0] += 1
            if loser is not None and loser in records:
                records[loser][1] += 1
        elif m.team2_id is not None and m.team1_score is not None and m.team2_score is not None:
            for tid in (m.team1_id, m.team2_id):
                if tid in records:
                    records[tid][2] += 1
    for team in league.teams:
        team.wins, team.losses, team.ties = records[team.id]
    session.flush()


def update_standings(session: Session, league: League, up_to_week: int | None = None) -> None:
    max_week = up_to_week or league.total_weeks
    matchups = session.scalars(
        select(Matchup)
        .where(Matchup.league_id == league.id, Matchup.week <= max_week)
        .order_by(Matchup.week)
    )
    for m in matchups:
        score_matchup(session, m)
    update_team_records(session, league)


def standings(league: League) -> list[Team]:
    """Teams ordered by wins, then ties, then fewest losses."""
    return sorted(league.teams, key=lambda t: (-t.wins, -t.ties, t.losses, t.name))
