"""Refresh orchestration: run one or all score fetchers.

Both the cron endpoint (``GET /api/refresh-data``) and ``scripts/sync.py``
call :func:`run_refresh`.  Each fetcher reports its own
:class:`~ly_fantasy.models.SyncResult`; results are keyed by refresh type.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .client import LYApiClient
from .db import Database
from .fetchers.cosign import CosignBillSync
from .fetchers.floor_speech import FloorSpeechSync
from .fetchers.propose import ProposeBillSync
from .fetchers.rollcall import DEFAULT_LIMIT as ROLLCALL_DEFAULT_LIMIT
from .fetchers.rollcall import RollcallSync
from .fetchers.written_speech import WrittenSpeechSync
from .models import SyncResult

LOGGER = logging.getLogger(__name__)

REFRESH_TYPES: tuple[str, ...] = ("rollcall", "propose", "cosign", "written_speech", "floor_speech")

# Older cron configurations use the interpellation name.
_ALIASES: dict[str, str] = {"written_interpellation": "written_speech"}


@dataclass
class RefreshOptions:
    """Selection knobs shared by every refresh type."""

    legislator: str | None = None
    limit: int | None = None
    offset: int = 0
    rollcall_limit: int | None = ROLLCALL_DEFAULT_LIMIT
    rollcall_offset: int = 0
    pause: float | None = None


def resolve_types(kind: str | None) -> list[str]:
    """Expand ``all``/``None`` and aliases; raise ValueError for unknown types."""
    if not kind or kind == "all":
        return list(REFRESH_TYPES)
    kind = _ALIASES.get(kind, kind)
    if kind not in REFRESH_TYPES:
        raise ValueError(f"Unknown refresh type {kind!r}; expected all or one of {REFRESH_TYPES}")
    return [kind]


def run_one(kind: str, db: Database, client: LYApiClient, opts: RefreshOptions) -> SyncResult:
    LOGGER.info("Refreshing %s", kind)
    if kind == "rollcall":
        return RollcallSync(db, client, pause=opts.pause).run(
            limit=opts.rollcall_limit, offset=opts.rollcall_offset
        )
    if kind == "floor_speech":
        return FloorSpeechSync(db, client).run(opts.legislator, opts.limit, opts.offset)
    sync_cls = {
        "propose": ProposeBillSync,
        "cosign": CosignBillSync,
        "written_speech": WrittenSpeechSync,
    }[kind]
    return sync_cls(db, client, pause=opts.pause).run(opts.legislator, opts.limit, opts.offset)


def run_refresh(
    db: Database,
    client: LYApiClient,
    kind: str | None = "all",
    opts: RefreshOptions | None = None,
) -> dict[str, SyncResult]:
    opts = opts or RefreshOptions()
    return {k: run_one(k, db, client, opts) for k in resolve_types(kind)}


def results_to_dict(results: dict[str, SyncResult]) -> dict[str, Any]:
    return {kind: r.to_dict() for kind, r in results.items()}


def total_result(results: dict[str, SyncResult]) -> SyncResult:
    total = SyncResult()
    for r in results.values():
        total = total.merge(r)
    return total
