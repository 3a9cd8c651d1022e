"""Shared per-legislator sync loop used by the bill and interpellation fetchers.

Each concrete fetcher supplies two hooks: :meth:`LegislatorSync.fetch` pulls
raw records for one legislator and :meth:`LegislatorSync.build` turns them into
:class:`~ly_fantasy.models.ScoreCandidate` rows.  The loop handles selection,
persistence, error flags and pacing.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from ..client import LYApiClient, LYApiError
from ..db import Database, Legislator
from ..models import ScoreCandidate, SyncResult
from ..store import ScoreStore

LOGGER = logging.getLogger(__name__)

# Errors raised while decoding a payload that count as a per-legislator failure.
PAYLOAD_ERRORS = (LYApiError, KeyError, TypeError, ValueError)


class LegislatorSync:
    #: Prefix stored in ``error_reason`` (e.g. "Cosign Bills API").
    source: str = ""
    #: Seconds slept between legislators.
    pause: float = 0.25

    def __init__(self, db: Database, client: LYApiClient, *, pause: float | None = None) -> None:
        self.db = db
        self.client = client
        if pause is not None:
            self.pause = pause

    def fetch(self, legislator: Legislator) -> list[Any]:
        raise NotImplementedError

    def build(self, legislator: Legislator, records: list[Any]) -> list[ScoreCandidate]:
        raise NotImplementedError

    def run(
        self, name: str | None = None, limit: int | None = None, offset: int = 0
    ) -> SyncResult:
        result = SyncResult()
        with self.db.session() as session:
            legislators = ScoreStore(session).select_legislators(name, limit, offset)
        if not legislators:
            LOGGER.warning("%s: no legislators selected (name=%r).", self.source, name)
            return result

        LOGGER.info("%s: processing %d legislator(s)", self.source, len(legislators))
        for i, legislator in enumerate(legislators):
            try:
                records = self.fetch(legislator)
                candidates = self.build(legislator, records)
            except PAYLOAD_ERRORS as exc:
                self._record_failure(result, legislator, exc)
            else:
                created = self._persist(legislator, candidates)
                result.processed_count += 1
                result.total_scores_created += created
                LOGGER.info(
                    "%s: %s -> %d record(s), %d new score(s)",
                    self.source,
                    legislator.name_ch,
                    len(records),
                    created,
                )
            if self.pause and i < len(legislators) - 1:
                time.sleep(self.pause)

        LOGGER.info(
            "%s: done (processed=%d, errors=%d, created=%d)",
            self.source,
            result.processed_count,
            result.error_count,
            result.total_scores_created,
        )
        return result

    def _persist(self, legislator: Legislator, candidates: list[ScoreCandidate]) -> int:
        with self.db.session() as session:
            store = ScoreStore(session)
            created = store.upsert_many(candidates)
            current = store.legislator_by_id(legislator.id)
            if current is not None:
                store.clear_error(current)
        return created

    def _record_failure(self, result: SyncResult, legislator: Legislator, exc: Exception) -> None:
        reason = f"{self.source}: {exc}"
        LOGGER.error("%s failed for %s: %s", self.source, legislator.name_ch, exc)
        result.error_count += 1
        result.errors.append(f"{legislator.name_ch}: {reason}")
        with self.db.session() as session:
            store = ScoreStore(session)
            current = store.legislator_by_id(legislator.id)
            if current is not None:
                store.mark_error(current, reason)
