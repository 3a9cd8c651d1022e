"""COSIGN_BILL scores: cosponsored bills that reached third reading."""

from __future__ import annotations

import logging

from ..db import Legislator
from ..models import BillRecord, ScoreCandidate
from ..normalize import parse_api_date
from ..rules import Category, is_third_reading, points_for
from .base import LegislatorSync
from .propose import bill_metadata

LOGGER = logging.getLogger(__name__)


def cosign_candidates(legislator_id: str, bills: list[BillRecord]) -> list[ScoreCandidate]:
    candidates: list[ScoreCandidate] = []
    for bill in bills:
        if not is_third_reading(bill.status):
            continue
        when = parse_api_date(bill.proposed_date) or parse_api_date(bill.latest_progress_date)
        if when is None:
            LOGGER.debug("Skipping cosigned bill %s with no usable date", bill.key)
            continue
        candidates.append(
            ScoreCandidate(
                legislator_id=legislator_id,
                category=Category.COSIGN_BILL,
                points=points_for(Category.COSIGN_BILL),
                date=when,
                description=f"Cosigned: {bill.title} (字號: {bill.key})",
                external_id=f"cosign:{bill.key}",
                bill_number=bill.key,
                bill_title=bill.title,
                metadata=bill_metadata(bill),
            )
        )
    return candidates


class CosignBillSync(LegislatorSync):
    source = "Cosign Bills API"

    def fetch(self, legislator: Legislator) -> list[BillRecord]:
        return [BillRecord.from_api(b) for b in self.client.fetch_cosign_bills(legislator.name_ch)]

    def build(self, legislator: Legislator, records: list[BillRecord]) -> list[ScoreCandidate]:
        return cosign_candidates(legislator.id, records)
