"""PROPOSE_BILL scores from ``/legislators/{term}/{name}/propose_bills``.

Every proposed bill earns the base points, dated at 提案日期.  A bill that has
passed earns a second, independent ``Passed:`` row dated at 最新進度日期.
"""

from __future__ import annotations

import logging
from typing import Any

from ..db import Legislator
from ..models import BillRecord, ScoreCandidate
from ..normalize import parse_api_date
from ..rules import PASSED_BILL_BONUS, Category, is_bill_passed, points_for
from .base import LegislatorSync

LOGGER = logging.getLogger(__name__)


def bill_metadata(bill: BillRecord) -> dict[str, Any]:
    return {
        "billId": bill.bill_id,
        "lawNumber": bill.law_number,
        "status": bill.status,
        "proposingUnit": bill.proposing_unit,
        "proposedDate": bill.proposed_date,
        "latestProgressDate": bill.latest_progress_date,
    }


def propose_candidates(legislator_id: str, bills: list[BillRecord]) -> list[ScoreCandidate]:
    candidates: list[ScoreCandidate] = []
    for bill in bills:
        proposed = parse_api_date(bill.proposed_date) or parse_api_date(bill.latest_progress_date)
        if proposed is None:
            LOGGER.debug("Skipping bill %s with no usable date", bill.key)
            continue
        meta = bill_metadata(bill)
        candidates.append(
            ScoreCandidate(
                legislator_id=legislator_id,
                category=Category.PROPOSE_BILL,
                points=points_for(Category.PROPOSE_BILL),
                date=proposed,
                description=f"Proposed: {bill.title} (字號: {bill.key})",
                external_id=f"propose:{bill.key}",
                bill_number=bill.key,
                bill_title=bill.title,
                metadata=meta,
            )
        )
        if is_bill_passed(bill.status):
            passed = parse_api_date(bill.latest_progress_date) or proposed
            candidates.append(
                ScoreCandidate(
                    legislator_id=legislator_id,
                    category=Category.PROPOSE_BILL,
                    points=PASSED_BILL_BONUS,
                    date=passed,
                    description=f"Passed: {bill.title} (字號: {bill.key})",
                    external_id=f"propose-passed:{bill.key}",
                    bill_number=bill.key,
                    bill_title=bill.title,
                    metadata={**meta, "passed": True},
                )
            )
    return candidates


class ProposeBillSync(LegislatorSync):
    source = "Propose Bills API"

    def fetch(self, legislator: Legislator) -> list[BillRecord]:
        return [BillRecord.from_api(b) for b in self.client.fetch_propose_bills(legislator.name_ch)]

    def build(self, legislator: Legislator, records: list[BillRecord]) -> list[ScoreCandidate]:
        return propose_candidates(legislator.id, records)
