"""FLOOR_SPEECH scores from the LY speech WebAPI.

Unlike the govapi fetchers this one makes a single request for a date window
and then matches every selected legislator against each meeting's speaker
list by exact name.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

from .. import config as cfg
from ..client import LYApiClient, LYApiError
from ..db import Database
from ..models import ScoreCandidate, SpeechMeeting, SyncResult
from ..normalize import roc_to_date
from ..rules import Category, points_for
from ..store import ScoreStore

LOGGER = logging.getLogger(__name__)

SOURCE = "Floor Speeches API"


def default_window(today: date | None = None) -> tuple[date, date]:
    end = today or date.today()
    return end - timedelta(days=cfg.FLOOR_SPEECH_WINDOW_DAYS), end


def floor_candidates(
    legislator_id: str, name: str, meetings: list[SpeechMeeting]
) -> list[ScoreCandidate]:
    candidates: list[ScoreCandidate] = []
    for meeting in meetings:
        if name not in meeting.speakers:
            continue
        when = roc_to_date(meeting.meeting_date)
        if when is None:
            LOGGER.debug("Skipping meeting with invalid date %r", meeting.meeting_date)
            continue
        candidates.append(
            ScoreCandidate(
                legislator_id=legislator_id,
                category=Category.FLOOR_SPEECH,
                points=points_for(Category.FLOOR_SPEECH),
                date=when,
                description=f"Floor Speech: {meeting.meeting_name}",
                external_id=f"floor:{when.isoformat()}:{meeting.meeting_name}",
                metadata={
                    "meetingUnit": meeting.meeting_unit,
                    "meetingContent": meeting.meeting_content,
                    "meetingStatus": meeting.meeting_status,
                },
            )
        )
    return candidates


class FloorSpeechSync:
    source = SOURCE

    def __init__(self, db: Database, client: LYApiClient) -> None:
        self.db = db
        self.client = client

    def run(
        self,
        name: str | None = None,
        limit: int | None = None,
        offset: int = 0,
        *,
        start: date | None = None,
        end: date | None = None,
    ) -> SyncResult:
        result = SyncResult()
        if start is None or end is None:
            default_start, default_end = default_window()
            start = start or default_start
            end = end or default_end

        try:
            raw = self.client.fetch_floor_speeches(start, end)
            meetings = [SpeechMeeting.from_api(m) for m in raw]
        except (LYApiError, TypeError, AttributeError) as exc:
            LOGGER.error("%s: failed to fetch %s..%s: %s", SOURCE, start, end, exc)
            result.error_count += 1
            result.errors.append(f"{SOURCE}: {exc}")
            return result
        LOGGER.info("%s: %d meeting(s) between %s and %s", SOURCE, len(meetings), start, end)

        with self.db.session() as session:
            store = ScoreStore(session)
            for legislator in store.select_legislators(name, limit, offset):
                created = store.upsert_many(
                    floor_candidates(legislator.id, legislator.name_ch, meetings)
                )
                store.clear_error(legislator)
                result.processed_count += 1
                result.total_scores_created += created
        return result
