"""Tests for refresh-type resolution and result aggregation."""

from __future__ import annotations

import pytest
from conftest import FakeClient

from ly_fantasy.db import Database
from ly_fantasy.etl import REFRESH_TYPES, RefreshOptions, resolve_types, run_refresh, total_result
from ly_fantasy.models import SyncResult


class TestResolveTypes:
    def test_all(self) -> None:
        assert resolve_types("all") == list(REFRESH_TYPES)
        assert resolve_types(None) == list(REFRESH_TYPES)

    def test_alias(self) -> None:
        assert resolve_types("written_interpellation") == ["written_speech"]

    def test_unknown(self) -> None:
        with pytest.raises(ValueError, match="bogus"):
            resolve_types("bogus")


class TestRunRefresh:
    def test_single_legislator(
        self, db: Database, legislators: dict[str, str], fake_client: FakeClient
    ) -> None:
        opts = RefreshOptions(legislator="黃珊珊", pause=0)
        results = run_refresh(db, fake_client, "cosign", opts)
        assert list(results) == ["cosign"]
        assert results["cosign"].processed_count == 1
        assert fake_client.calls == [("cosign", "黃珊珊")]

    def test_total_result(self) -> None:
        total = total_result(
            {
                "propose": SyncResult(2, 1, 5, ["a"]),
                "cosign": SyncResult(3, 0, 1, []),
            }
        )
        assert total.to_dict() == {
            "processedCount": 5,
            "errorCount": 1,
            "totalScoresCreated": 6,
            "errors": ["a"],
        }
