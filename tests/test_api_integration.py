"""Integration tests for the FastAPI app: REST endpoints, cron auth and GraphQL.

Every test builds its own app over the in-memory database fixture and a
:class:`FakeClient`, so nothing touches the network.
"""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest
from conftest import FakeClient
from fastapi.testclient import TestClient

from ly_fantasy import config as cfg
from ly_fantasy.client import LYApiError
from ly_fantasy.db import Database, League, Score, Team
from ly_fantasy.fetchers.base import LegislatorSync
from ly_fantasy.fetchers.rollcall import RollcallSync
from ly_fantasy.main import create_app

SECRET = "cron-secret"
AUTH = {"Authorization": f"Bearer {SECRET}"}


@pytest.fixture
def api(
    db: Database,
    legislators: dict[str, str],
    fake_client: FakeClient,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path,
) -> TestClient:
    monkeypatch.setattr(cfg, "CRON_SECRET", SECRET)
    monkeypatch.setattr(cfg, "API_KEY", "")
    monkeypatch.setattr(cfg, "RUN_LOG_PATH", tmp_path / "runs.jsonl")
    monkeypatch.setattr(LegislatorSync, "pause", 0)
    monkeypatch.setattr(RollcallSync, "pause", 0)
    return TestClient(create_app(db, lambda: fake_client))


def _add_score(db: Database, legislator_id: str, category: str, points: float, day: date) -> None:
    with db.session() as session:
        session.add(
            Score(
                legislator_id=legislator_id,
                category=category,
                points=points,
                date=day,
                description=f"{category} {day.isoformat()} {points}",
            )
        )


# ── Health & REST ─────────────────────────────────────────────────────────────


class TestRest:
    def test_health(self, api: TestClient) -> None:
        body = api.get("/health").json()
        assert body["status"] == "ok"
        assert body["ready"] is True
        assert body["legislators"] == 5
        assert body["scores"] == 0

    def test_list_legislators_paged(self, api: TestClient) -> None:
        body = api.get("/api/legislators", params={"limit": 2}).json()
        assert len(body["items"]) == 2
        assert body["totalCount"] == 5
        assert body["hasNextPage"] is True

    def test_list_legislators_by_party(self, api: TestClient) -> None:
        body = api.get("/api/legislators", params={"party": "民主進步黨"}).json()
        assert body["totalCount"] == 3
        assert all(item["party"] == "民主進步黨" for item in body["items"])

    def test_legislator_detail(
        self, api: TestClient, db: Database, legislators: dict[str, str]
    ) -> None:
        leg = legislators["王定宇"]
        _add_score(db, leg, "PROPOSE_BILL", 3, date(2024, 3, 5))
        _add_score(db, leg, "ROLLCALL_VOTE", 1, date(2024, 3, 12))

        body = api.get(f"/api/legislators/{leg}").json()
        assert body["nameCh"] == "王定宇"
        assert body["totalPoints"] == 4
        assert [s["date"] for s in body["scores"]] == ["2024-03-12", "2024-03-05"]
        assert "PROPOSE_BILL" in body["averageByCategory"]

    def test_legislator_not_found(self, api: TestClient) -> None:
        assert api.get("/api/legislators/missing").status_code == 404

    def test_weekly_breakdown(
        self, api: TestClient, db: Database, legislators: dict[str, str]
    ) -> None:
        leg = legislators["賴士葆"]
        for _ in range(7):
            _add_score(db, leg, "FLOOR_SPEECH", 1, date(2024, 3, 5))
        body = api.get(
            f"/api/legislators/{leg}/weekly",
            params={"season_start": "2024-03-04", "weeks": 2},
        ).json()
        assert body["seasonStart"] == "2024-03-04"
        assert [w["total"] for w in body["weeks"]] == [5, 0]


# ── Cron refresh ──────────────────────────────────────────────────────────────


class TestRefresh:
    def test_requires_bearer_secret(self, api: TestClient) -> None:
        assert api.get("/api/refresh-data").status_code == 401
        bad = {"Authorization": "Bearer nope"}
        assert api.get("/api/refresh-data", headers=bad).status_code == 401

    def test_closed_when_secret_unset(
        self, api: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(cfg, "CRON_SECRET", "")
        assert api.get("/api/refresh-data", headers={"Authorization": "Bearer "}).status_code == 401

    def test_unknown_type(self, api: TestClient) -> None:
        resp = api.get("/api/refresh-data", params={"type": "bogus"}, headers=AUTH)
        assert resp.status_code == 400

    def test_single_type(
        self, api: TestClient, fake_client: FakeClient, passed_bill: dict[str, Any]
    ) -> None:
        fake_client.propose["王定宇"] = [passed_bill]
        resp = api.get("/api/refresh-data", params={"type": "propose"}, headers=AUTH)
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert "timestamp" in body
        assert body["results"]["propose"]["processedCount"] == 5
        assert body["results"]["propose"]["totalScoresCreated"] == 2

    def test_interpellation_alias(self, api: TestClient) -> None:
        resp = api.get(
            "/api/refresh-data", params={"type": "written_interpellation"}, headers=AUTH
        )
        assert resp.status_code == 200
        assert list(resp.json()["results"]) == ["written_speech"]

    def test_all_types(self, api: TestClient) -> None:
        body = api.get("/api/refresh-data", headers=AUTH).json()
        assert set(body["results"]) == {
            "rollcall",
            "propose",
            "cosign",
            "written_speech",
            "floor_speech",
        }

    def test_failure_returns_500(
        self, api: TestClient, fake_client: FakeClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def boom() -> list:
            raise RuntimeError("index unavailable")

        monkeypatch.setattr(fake_client, "fetch_rollcall_index", boom)
        resp = api.get("/api/refresh-data", params={"type": "rollcall"}, headers=AUTH)
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "index unavailable"}

    def test_runs_are_logged(self, api: TestClient) -> None:
        api.get("/api/refresh-data", params={"type": "cosign"}, headers=AUTH)
        runs = api.get("/api/runs").json()
        assert runs[0]["task"] == "refresh:cosign"
        assert runs[0]["status"] == "ok"
        assert runs[0]["meta"]["processedCount"] == 5

    def test_roster_sync_requires_auth(self, api: TestClient) -> None:
        assert api.post("/api/legislators/sync").status_code == 401

    def test_roster_sync(self, api: TestClient, fake_client: FakeClient) -> None:
        fake_client.roster = [
            {"name": "新委員", "party": "無黨籍", "picUrl": "http://x/Legislators/120099.jpg"}
        ]
        body = api.post("/api/legislators/sync", headers=AUTH).json()
        assert body["success"] is True
        assert body["processedCount"] == 1
        assert api.get("/health").json()["legislators"] == 6

    def test_client_closed_after_refresh(self, api: TestClient, fake_client: FakeClient) -> None:
        api.get("/api/refresh-data", params={"type": "propose"}, headers=AUTH)
        assert fake_client.close_count == 1

    def test_client_closed_when_refresh_fails(
        self, api: TestClient, fake_client: FakeClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def boom() -> list:
            raise RuntimeError("index unavailable")

        monkeypatch.setattr(fake_client, "fetch_rollcall_index", boom)
        api.get("/api/refresh-data", params={"type": "rollcall"}, headers=AUTH)
        assert fake_client.close_count == 1

    def test_roster_sync_upstream_failure(
        self, api: TestClient, fake_client: FakeClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def boom() -> list:
            raise LYApiError("open data returned status 503")

        monkeypatch.setattr(fake_client, "fetch_roster", boom)
        resp = api.post("/api/legislators/sync", headers=AUTH)
        assert resp.status_code == 502
        assert resp.json()["success"] is False
        assert fake_client.close_count == 1


# ── API key ───────────────────────────────────────────────────────────────────


class TestApiKey:
    def test_key_enforced_when_set(self, api: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(cfg, "API_KEY", "k")
        assert api.get("/api/legislators").status_code == 401
        assert api.get("/api/legislators", headers={"X-API-Key": "k"}).status_code == 200
        assert api.get("/health").status_code == 200
        # cron routes have their own auth
        resp = api.get("/api/refresh-data", params={"type": "cosign"}, headers=AUTH)
        assert resp.status_code == 200
        assert api.post("/api/legislators/sync", headers=AUTH).status_code == 200


# ── GraphQL ───────────────────────────────────────────────────────────────────


class TestGraphQL:
    def test_legislators_query(
        self, api: TestClient, db: Database, legislators: dict[str, str]
    ) -> None:
        _add_score(db, legislators["黃珊珊"], "WRITTEN_SPEECH", 3, date(2024, 3, 5))
        query = """
        {
          legislators(sortBy: NAME, sortOrder: ASC, limit: 10) {
            items { nameCh party totalPoints }
            pageInfo { totalCount hasNextPage }
          }
        }
        """
        resp = api.post("/graphql", json={"query": query})
        assert resp.status_code == 200
        data = resp.json()["data"]["legislators"]
        assert data["pageInfo"] == {"totalCount": 5, "hasNextPage": False}
        points = {i["nameCh"]: i["totalPoints"] for i in data["items"]}
        assert points["黃珊珊"] == 3

    def test_legislator_with_scores(
        self, api: TestClient, db: Database, legislators: dict[str, str]
    ) -> None:
        leg = legislators["林俊憲"]
        _add_score(db, leg, "MAVERICK_BONUS", 9, date(2024, 3, 5))
        query = """
        query($id: String!) {
          legislator(id: $id) { nameCh totalPoints scores { category points } }
        }
        """
        resp = api.post("/graphql", json={"query": query, "variables": {"id": leg}})
        data = resp.json()["data"]["legislator"]
        assert data["totalPoints"] == 9
        assert data["scores"] == [{"category": "MAVERICK_BONUS", "points": 9.0}]

    def test_weekly_scores_query(
        self, api: TestClient, db: Database, legislators: dict[str, str]
    ) -> None:
        leg = legislators["王定宇"]
        _add_score(db, leg, "COSIGN_BILL", 3, date(2024, 3, 12))
        query = """
        query($id: String!) {
          weeklyScores(legislatorId: $id, seasonStart: "2024-03-04", weeks: 2) {
            week weekStart totals { cosignBill total }
          }
        }
        """
        resp = api.post("/graphql", json={"query": query, "variables": {"id": leg}})
        weeks = resp.json()["data"]["weeklyScores"]
        assert [w["totals"]["total"] for w in weeks] == [0, 3]
        assert weeks[1]["weekStart"] == "2024-03-11"

    def test_standings_query(self, api: TestClient, db: Database) -> None:
        with db.session() as session:
            league = League(name="L", season_start=date(2024, 3, 4))
            session.add(league)
            session.flush()
            session.add_all(
                [
                    Team(name="Alpha", league_id=league.id, wins=1),
                    Team(name="Beta", league_id=league.id, wins=3),
                ]
            )
            league_id = league.id
        query = "query($id: String!) { standings(leagueId: $id) { name wins } }"
        resp = api.post("/graphql", json={"query": query, "variables": {"id": league_id}})
        assert [t["name"] for t in resp.json()["data"]["standings"]] == ["Beta", "Alpha"]
