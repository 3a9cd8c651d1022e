"""WRITTEN_SPEECH scores: one row per written interpellation (書面質詢).

The interpellation endpoint only recognizes the Chinese part of a name, so
indigenous legislators' romanized suffixes are stripped before the call.
"""

from __future__ import annotations

import logging

from ..db import Legislator
from ..models import InterpellationRecord, ScoreCandidate
from ..normalize import chinese_only, parse_api_date
from ..rules import Category, points_for
from .base import LegislatorSync

LOGGER = logging.getLogger(__name__)


def written_candidates(
    legislator_id: str, records: list[InterpellationRecord]
) -> list[ScoreCandidate]:
    candidates: list[ScoreCandidate] = []
    for rec in records:
        published = parse_api_date(rec.published_date)
        if published is None:
            LOGGER.debug("Skipping interpellation %s with no date", rec.interpellation_id)
            continue
        subject = rec.subject or "Unknown"
        candidates.append(
            ScoreCandidate(
                legislator_id=legislator_id,
                category=Category.WRITTEN_SPEECH,
                points=points_for(Category.WRITTEN_SPEECH),
                date=published,
                description=f"Written Interpellation: {subject}",
                external_id=f"written:{rec.interpellation_id}" if rec.interpellation_id else None,
                bill_title=rec.subject or None,
                metadata={
                    "interpellationId": rec.interpellation_id,
                    "sessionPeriod": rec.session_period,
                },
            )
        )
    return candidates


class WrittenSpeechSync(LegislatorSync):
    source = "Written Interpellations API"

    def fetch(self, legislator: Legislator) -> list[InterpellationRecord]:
        raw = self.client.fetch_interpellations(chinese_only(legislator.name_ch))
        return [InterpellationRecord.from_api(r) for r in raw]

    def build(
        self, legislator: Legislator, records: list[InterpellationRecord]
    ) -> list[ScoreCandidate]:
        return written_candidates(legislator.id, records)
