"""Legislator roster sync from LY open data (dataset 9).

Legislators are upserted by ``external_id``, the numeric id embedded in the
roster's picture URL.
"""

from __future__ import annotations

import logging

from ..client import LYApiClient
from ..db import Database, Legislator
from ..models import RosterEntry, SyncResult
from ..normalize import external_id_from_pic_url
from ..store import ScoreStore

LOGGER = logging.getLogger(__name__)


def apply_entry(legislator: Legislator, entry: RosterEntry) -> None:
    legislator.name_ch = entry.name
    legislator.name_en = entry.name_en or None
    legislator.party = entry.party or None
    legislator.sex = entry.sex or None
    legislator.pic_url = entry.pic_url or None
    legislator.area_name = entry.area_name
    legislator.committee = entry.committee
    legislator.onboard_date = entry.onboard_date
    legislator.leave_flag = entry.leave_flag
    legislator.leave_date = entry.leave_date
    legislator.leave_reason = entry.leave_reason


def sync_roster(db: Database, client: LYApiClient) -> SyncResult:
    """Create or update every legislator in the roster feed.

    ``total_scores_created`` is unused here; ``processed_count`` counts
    legislators written.  Entries without a usable id count as errors.
    """
    result = SyncResult()
    entries = [RosterEntry.from_api(raw) for raw in client.fetch_roster()]
    LOGGER.info("Roster feed returned %d legislator(s)", len(entries))

    with db.session() as session:
        store = ScoreStore(session)
        for entry in entries:
            external_id = external_id_from_pic_url(entry.pic_url)
            if not external_id or not entry.name:
                LOGGER.warning("Could not extract id from picUrl %r", entry.pic_url)
                result.error_count += 1
                result.errors.append(f"No id for {entry.name or '?'} ({entry.pic_url})")
                continue
            legislator = store.legislator_by_external_id(external_id)
            if legislator is None:
                legislator = Legislator(external_id=external_id, name_ch=entry.name)
                session.add(legislator)
            apply_entry(legislator, entry)
            session.flush()
            result.processed_count += 1
    return result
