"""Snake draft: odd rounds run in team order, even rounds in reverse."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from .db import DraftPick, League, Legislator, RosterSlot, Team
from .matchups import generate_schedule

LOGGER = logging.getLogger(__name__)

TOTAL_ROUNDS = 9
STARTERS = 6


@dataclass(frozen=True)
class PickSlot:
    team_id: str
    round: int
    pick_number: int


def snake_order(team_ids: list[str], rounds: int = TOTAL_ROUNDS) -> list[PickSlot]:
    order: list[PickSlot] = []
    pick = 1
    for rnd in range(1, rounds + 1):
        ids = team_ids if rnd % 2 == 1 else list(reversed(team_ids))
        for team_id in ids:
            order.append(PickSlot(team_id, rnd, pick))
            pick += 1
    return order


def run_snake_draft(
    session: Session,
    league: League,
    rounds: int = TOTAL_ROUNDS,
    starters: int = STARTERS,
    rng: random.Random | None = None,
) -> list[DraftPick]:
    """Draft every team's roster, then build the season schedule.

    Each pick takes the team's highest-ranked undrafted preference, falling
    back to a random undrafted legislator.  Picks after round *starters* land
    on the bench.
    """
    teams: list[Team] = list(league.teams)
    if not teams:
        raise ValueError("No teams in league")
    rng = rng or random.Random()

    drafted = set(
        session.scalars(select(DraftPick.legislator_id).where(DraftPick.league_id == league.id))
    )
    all_ids = list(session.scalars(select(Legislator.id).order_by(Legislator.name_ch)))
    by_id = {t.id: t for t in teams}

    picks: list[DraftPick] = []
    for slot in snake_order([t.id for t in teams], rounds):
        team = by_id[slot.team_id]
        chosen = next(
            (p.legislator_id for p in team.preferences if p.legislator_id not in drafted), None
        )
        if chosen is None:
            available = [lid for lid in all_ids if lid not in drafted]
            if not available:
                LOGGER.warning("Legislator pool exhausted at pick %d", slot.pick_number)
                break
            chosen = rng.choice(available)
        drafted.add(chosen)
        picks.append(
            DraftPick(
                league_id=league.id,
                team_id=team.id,
                legislator_id=chosen,
                round=slot.round,
                pick_number=slot.pick_number,
            )
        )
        team.roster.append(
            RosterSlot(team_id=team.id, legislator_id=chosen, is_bench=slot.round > starters)
        )

    session.add_all(picks)
    league.draft_status = "COMPLETED"
    session.flush()

    if len(teams) >= 2:
        generate_schedule(session, league)
    else:
        LOGGER.warning("League %s has one team; no schedule generated", league.name)
    return picks
