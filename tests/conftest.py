from __future__ import annotations

from collections.abc import Iterator
from datetime import date
from typing import Any

import pytest

from ly_fantasy.client import LYApiError
from ly_fantasy.db import Database, Legislator

# ── Database fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def db() -> Iterator[Database]:
    database = Database("sqlite://")
    database.create_all()
    yield database
    database.close()


@pytest.fixture
def legislators(db: Database) -> dict[str, str]:
    """Five legislators across three parties; returns name -> id."""
    rows = [
        ("1001", "伍麗華Saidhai Tahovecahe", "民主進步黨"),
        ("1002", "王定宇", "民主進步黨"),
        ("1003", "林俊憲", "民主進步黨"),
        ("1004", "賴士葆", "中國國民黨"),
        ("1005", "黃珊珊", "台灣民眾黨"),
    ]
    ids: dict[str, str] = {}
    with db.session() as session:
        for external_id, name, party in rows:
            leg = Legislator(external_id=external_id, name_ch=name, party=party)
            session.add(leg)
            session.flush()
            ids[name] = leg.id
    return ids


# ── API payload fixtures ──────────────────────────────────────────────────────


def make_bill(
    bill_id: str,
    title: str,
    status: str,
    proposed: str = "2024-03-05",
    progress: str = "2024-05-10",
    number: str | None = None,
) -> dict[str, Any]:
    return {
        "屆": 11,
        "議案編號": bill_id,
        "議案名稱": title,
        "提案單位": "本院委員",
        "議案狀態": status,
        "提案日期": proposed,
        "最新進度日期": progress,
        "字號": number,
        "法律編號": ["01234"],
    }


@pytest.fixture
def passed_bill() -> dict[str, Any]:
    return make_bill("202110012340000", "所得稅法第十七條條文修正草案", "三讀", number="院總第20號委員提案第10001號")


@pytest.fixture
def pending_bill() -> dict[str, Any]:
    return make_bill("202110012350000", "勞動基準法部分條文修正草案", "交付審查", number="院總第20號委員提案第10002號")


# ── Fake API client ───────────────────────────────────────────────────────────


class FakeClient:
    """Stands in for LYApiClient; every call is served from canned payloads."""

    def __init__(self) -> None:
        self.propose: dict[str, list[dict[str, Any]]] = {}
        self.cosign: dict[str, list[dict[str, Any]]] = {}
        self.interpellations: dict[str, list[dict[str, Any]]] = {}
        self.speeches: list[dict[str, Any]] = []
        self.roster: list[dict[str, Any]] = []
        self.rollcall_index: list[dict[str, Any]] = []
        self.sheets: dict[str, bytes] = {}
        self.fail_names: set[str] = set()
        self.fail_speeches = False
        self.calls: list[tuple[str, Any]] = []
        self.close_count = 0

    def _check(self, name: str) -> None:
        if name in self.fail_names:
            raise LYApiError(f"status 500 for {name}")

    def fetch_propose_bills(self, name: str) -> list[dict[str, Any]]:
        self.calls.append(("propose", name))
        self._check(name)
        return self.propose.get(name, [])

    def fetch_cosign_bills(self, name: str) -> list[dict[str, Any]]:
        self.calls.append(("cosign", name))
        self._check(name)
        return self.cosign.get(name, [])

    def fetch_interpellations(self, name: str) -> list[dict[str, Any]]:
        self.calls.append(("interpellations", name))
        self._check(name)
        return self.interpellations.get(name, [])

    def fetch_floor_speeches(self, start: date, end: date) -> list[dict[str, Any]]:
        self.calls.append(("speeches", (start, end)))
        if self.fail_speeches:
            raise LYApiError("speech API returned status 503")
        return self.speeches

    def fetch_roster(self) -> list[dict[str, Any]]:
        return self.roster

    def fetch_rollcall_index(self) -> list[dict[str, Any]]:
        return self.rollcall_index

    def get_bytes(self, url: str) -> bytes:
        if url not in self.sheets:
            raise LYApiError(f"{url} returned status 404")
        return self.sheets[url]

    def close(self) -> None:
        self.close_count += 1


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()
