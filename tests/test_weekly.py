"""Tests for week windows and per-category aggregation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from ly_fantasy.rules import Category
from ly_fantasy.weekly import (
    average_by_category,
    average_weekly_score,
    current_week,
    summarize_week,
    team_weekly_score,
    week_end,
    week_index,
    week_start,
    week_window,
    weekly_breakdown,
    weeks_elapsed,
)

SEASON = date(2024, 3, 4)  # Monday


@dataclass
class S:
    category: str
    points: float
    date: date
    legislator_id: str = "leg-1"


class TestWeekArithmetic:
    def test_week_start_of_sunday(self) -> None:
        assert week_start(date(2024, 3, 17)) == date(2024, 3, 11)

    def test_week_start_is_always_monday(self) -> None:
        for day in range(1, 29):
            assert week_start(date(2024, 2, day)).weekday() == 0

    def test_week_start_accepts_datetime(self) -> None:
        assert week_start(datetime(2024, 3, 13, 18, 0)) == date(2024, 3, 11)

    def test_week_end_is_sunday(self) -> None:
        assert week_end(date(2024, 3, 11)) == date(2024, 3, 17)
        assert week_end(date(2024, 3, 17)) == date(2024, 3, 17)

    def test_week_index(self) -> None:
        assert week_index(SEASON, date(2024, 3, 4)) == 0
        assert week_index(SEASON, date(2024, 3, 10)) == 0
        assert week_index(SEASON, date(2024, 3, 11)) == 1
        assert week_index(SEASON, date(2024, 3, 1)) == -1

    def test_season_start_midweek_anchors_on_monday(self) -> None:
        assert week_index(date(2024, 3, 6), date(2024, 3, 4)) == 0

    def test_current_week(self) -> None:
        assert current_week(SEASON, date(2024, 3, 1)) == 0
        assert current_week(SEASON, date(2024, 3, 4)) == 1
        assert current_week(SEASON, date(2024, 3, 24)) == 3

    def test_week_window(self) -> None:
        w = week_window(SEASON, 2)
        assert (w.start, w.end) == (date(2024, 3, 11), date(2024, 3, 17))
        assert w.end_of_day == datetime(2024, 3, 17, 23, 59, 59, 999999)
        assert w.contains(date(2024, 3, 17))
        assert not w.contains(date(2024, 3, 18))


class TestSummaries:
    def test_floor_speech_capped(self) -> None:
        scores = [S(Category.FLOOR_SPEECH.value, 1, date(2024, 3, 5)) for _ in range(8)]
        summary = summarize_week(scores, week_window(SEASON, 1))
        assert summary.totals[Category.FLOOR_SPEECH] == 5
        assert summary.total == 5

    def test_rollcall_uncapped(self) -> None:
        scores = [S("ROLLCALL_VOTE", 1, date(2024, 3, 5)) for _ in range(12)]
        assert summarize_week(scores, week_window(SEASON, 1)).total == 12

    def test_out_of_window_scores_ignored(self) -> None:
        scores = [
            S("PROPOSE_BILL", 3, date(2024, 3, 10)),
            S("PROPOSE_BILL", 3, date(2024, 3, 11)),
        ]
        assert summarize_week(scores, week_window(SEASON, 1)).total == 3

    def test_breakdown_caps_each_week(self) -> None:
        scores = [S("FLOOR_SPEECH", 1, date(2024, 3, 5)) for _ in range(7)]
        scores += [S("FLOOR_SPEECH", 1, date(2024, 3, 12)) for _ in range(2)]
        scores.append(S("MAVERICK_BONUS", 9, date(2024, 3, 13)))
        weeks = weekly_breakdown(scores, SEASON, 3)
        assert [w.week for w in weeks] == [1, 2, 3]
        assert [w.total for w in weeks] == [5, 11, 0]

    def test_to_dict(self) -> None:
        summary = summarize_week([S("COSIGN_BILL", 3, date(2024, 3, 6))], week_window(SEASON, 1))
        d = summary.to_dict()
        assert d["weekStart"] == "2024-03-04"
        assert d["categories"]["COSIGN_BILL"] == 3
        assert d["total"] == 3


class TestAverages:
    def test_average_by_category_over_elapsed_weeks(self) -> None:
        scores = [
            S("PROPOSE_BILL", 3, date(2024, 3, 4)),
            S("PROPOSE_BILL", 3, date(2024, 3, 20)),
            S("ROLLCALL_VOTE", 1, date(2024, 3, 21)),
        ]
        avg = average_by_category(scores, as_of=date(2024, 4, 1))
        # 4 weeks from the week of Mar 4 to the week of Apr 1
        assert avg[Category.PROPOSE_BILL] == 6 / 4
        assert avg[Category.ROLLCALL_VOTE] == 1 / 4

    def test_average_guard_against_zero_weeks(self) -> None:
        scores = [S("PROPOSE_BILL", 3, date(2024, 3, 5))]
        assert average_by_category(scores, as_of=date(2024, 3, 6))[Category.PROPOSE_BILL] == 3

    def test_average_of_nothing(self) -> None:
        assert average_by_category([]).total == 0
        assert average_weekly_score([]) == 0

    def test_weeks_elapsed_minimum(self) -> None:
        assert weeks_elapsed(date(2024, 3, 4), date(2024, 3, 4)) == 1

    def test_average_weekly_score_over_active_weeks(self) -> None:
        scores = [
            S("PROPOSE_BILL", 3, date(2024, 3, 4)),
            S("ROLLCALL_VOTE", 1, date(2024, 3, 5)),
            S("PROPOSE_BILL", 6, date(2024, 4, 1)),
        ]
        assert average_weekly_score(scores) == 5


class TestTeamScore:
    def test_bench_excluded(self) -> None:
        scores = [
            S("PROPOSE_BILL", 3, date(2024, 3, 5), "a"),
            S("PROPOSE_BILL", 3, date(2024, 3, 5), "b"),
            S("PROPOSE_BILL", 3, date(2024, 3, 5), "bench"),
        ]
        assert team_weekly_score(scores, {"bench"}, week_window(SEASON, 1)) == 6

    def test_cap_applies_per_legislator(self) -> None:
        scores = [S("FLOOR_SPEECH", 1, date(2024, 3, 5), "a") for _ in range(6)]
        scores += [S("FLOOR_SPEECH", 1, date(2024, 3, 5), "b") for _ in range(6)]
        assert team_weekly_score(scores, set(), week_window(SEASON, 1)) == 10
