"""Tests for versioned data migrations over score rows."""

from __future__ import annotations

from datetime import date

from sqlalchemy import select

from ly_fantasy.db import Database, DataMigration, Score
from ly_fantasy.migrations import MIGRATIONS, apply_pending, pending


def _add(db: Database, legislator_id: str, category: str, points: float, description: str) -> None:
    with db.session() as session:
        session.add(
            Score(
                legislator_id=legislator_id,
                category=category,
                points=points,
                date=date(2024, 3, 5),
                description=description,
            )
        )


def _rows(db: Database) -> dict[str, tuple[str, float]]:
    with db.session() as session:
        return {s.description: (s.category, s.points) for s in session.scalars(select(Score))}


class TestMigrations:
    def test_written_interpellations_move_out_of_floor_speech(
        self, db: Database, legislators: dict[str, str]
    ) -> None:
        leg = legislators["王定宇"]
        _add(db, leg, "FLOOR_SPEECH", 3, "Written Interpellation: 國防預算")
        _add(db, leg, "FLOOR_SPEECH", 1, "Floor Speech: 第1次會議")

        with db.session() as session:
            apply_pending(session)

        rows = _rows(db)
        assert rows["Written Interpellation: 國防預算"][0] == "WRITTEN_SPEECH"
        assert rows["Floor Speech: 第1次會議"] == ("FLOOR_SPEECH", 1)

    def test_point_values_rewritten(self, db: Database, legislators: dict[str, str]) -> None:
        leg = legislators["賴士葆"]
        _add(db, leg, "PROPOSE_BILL", 6, "Proposed: 所得稅法")
        _add(db, leg, "PROPOSE_BILL", 6, "Passed: 所得稅法")
        _add(db, leg, "COSIGN_BILL", 1, "Cosigned: 勞基法")
        _add(db, leg, "WRITTEN_SPEECH", 1, "Written Interpellation: 交通")

        with db.session() as session:
            applied = apply_pending(session)
        assert [m.version for m in applied] == ["0001", "0002"]
        assert applied[1].rows_affected == 3

        rows = _rows(db)
        assert rows["Proposed: 所得稅法"] == ("PROPOSE_BILL", 3)
        assert rows["Passed: 所得稅法"] == ("PROPOSE_BILL", 6)
        assert rows["Cosigned: 勞基法"] == ("COSIGN_BILL", 3)
        assert rows["Written Interpellation: 交通"] == ("WRITTEN_SPEECH", 3)

    def test_rerun_is_a_no_op(self, db: Database, legislators: dict[str, str]) -> None:
        leg = legislators["王定宇"]
        with db.session() as session:
            apply_pending(session)
        _add(db, leg, "COSIGN_BILL", 1, "Cosigned: 新紀錄")

        with db.session() as session:
            assert pending(session) == []
            assert apply_pending(session) == []
            assert session.scalar(select(DataMigration).where(DataMigration.version == "0002"))

        assert _rows(db)["Cosigned: 新紀錄"] == ("COSIGN_BILL", 1)

    def test_versions_are_ordered_and_unique(self) -> None:
        versions = [m.version for m in MIGRATIONS]
        assert versions == sorted(set(versions))
