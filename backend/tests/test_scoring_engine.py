"""
Unit tests for the fantasy scoring rule engine.

Run: pytest backend/tests/test_scoring_engine.py -v
"""
from __future__ import annotations

import pytest

from shared.models.domain import (
    BattingRow,
    BowlingRow,
    FieldingEvent,
    PointsBreakdown,
    ProviderScorecard,
    ScorecardInning,
)
from shared.models.enums import DismissalKind, FieldingKind, ProviderName

from lineup.names import RosterIndex
from scoring import rules
from scoring.engine import (
    PlayerMatchStats,
    batting_points,
    bowling_points,
    fielding_points,
    score_scorecard,
)


def bat(name: str, runs: int, balls: int, fours: int = 0, sixes: int = 0, sr: float = 0.0,
        kind: DismissalKind = DismissalKind.NOT_OUT, bowler: str | None = None) -> BattingRow:
    return BattingRow(
        player_name=name, runs=runs, balls=balls, fours=fours, sixes=sixes,
        strike_rate=sr, dismissal_kind=kind, bowler_name=bowler,
    )


def bowl(name: str, balls: int, wickets: int = 0, runs: int = 0, maidens: int = 0, eco: float = 0.0) -> BowlingRow:
    return BowlingRow(
        player_name=name, legal_balls=balls, wickets=wickets, runs_conceded=runs,
        maidens=maidens, economy=eco,
    )


# ── Batting ─────────────────────────────────────────────────────────────

def test_fifty_at_155_stacks_milestones_and_strike_rate_bonus() -> None:
    # 50 runs + 4 fours + 2x2 sixes + 4 (30) + 8 (50) + 4 (SR 155)
    row = bat("A", runs=50, balls=32, fours=4, sixes=2, sr=155.0)
    assert batting_points(row) == 50 + 4 + 4 + 4 + 8 + 4


def test_century_earns_every_run_milestone() -> None:
    row = bat("A", runs=100, balls=80, sr=125.0)
    assert batting_points(row) == 100 + 4 + 8 + 16


def test_duck_only_when_dismissed() -> None:
    assert batting_points(bat("A", 0, 3, kind=DismissalKind.CAUGHT)) == rules.DUCK
    assert batting_points(bat("A", 0, 3)) == 0
    assert batting_points(bat("A", 0, 0, kind=DismissalKind.RUN_OUT)) == 0


def test_strike_rate_needs_ten_balls() -> None:
    assert batting_points(bat("A", 2, 9, sr=22.2)) == 2
    assert batting_points(bat("A", 2, 10, sr=20.0)) == 2 - 6


@pytest.mark.parametrize(
    "sr, bonus",
    [(171, 6), (170, 4), (150, 4), (149.9, 2), (130, 2), (129.9, 0), (70, 0), (69.9, -2), (60, -2), (55, -4), (49.9, -6)],
)
def test_strike_rate_bands(sr: float, bonus: int) -> None:
    assert rules.band_points(rules.STRIKE_RATE_BANDS, sr) == bonus


def test_strike_rate_derived_when_not_reported() -> None:
    # 10 off 20 is SR 50: -4
    assert batting_points(bat("A", 10, 20)) == 10 - 4


# ── Bowling ─────────────────────────────────────────────────────────────

def test_five_wicket_haul_before_economy() -> None:
    # Under two overs, so no economy band: 150 + 4 + 8 + 16
    assert bowling_points(bowl("B", balls=11, wickets=5, runs=10)) == 178


def test_five_wicket_haul_with_economy() -> None:
    # 20 off 4 overs is 5.0 an over: +4
    assert bowling_points(bowl("B", balls=24, wickets=5, runs=20)) == 182


@pytest.mark.parametrize(
    "eco, bonus",
    [(4.99, 6), (5.0, 4), (6.0, 2), (7.0, 2), (7.01, 0), (9.99, 0), (10.0, -2), (11.0, -2), (12.0, -4), (12.01, -6)],
)
def test_economy_bands(eco: float, bonus: int) -> None:
    assert rules.band_points(rules.ECONOMY_BANDS, eco) == bonus


def test_maidens() -> None:
    assert bowling_points(bowl("B", balls=24, maidens=2, runs=24, eco=6.0)) == 24 + 2


# ── Fielding ────────────────────────────────────────────────────────────

def test_catch_haul_bonus() -> None:
    assert fielding_points(PlayerMatchStats(player_id="x", catches=3)) == 3 * 8 + 4
    assert fielding_points(PlayerMatchStats(player_id="x", catches=2)) == 16


def test_stumping_and_run_outs() -> None:
    stats = PlayerMatchStats(player_id="x", stumpings=1, run_outs_direct=1, run_outs_shared=1)
    assert fielding_points(stats) == 12 + 12 + 6


# ── Whole scorecard ─────────────────────────────────────────────────────

@pytest.fixture
def scorecard() -> ProviderScorecard:
    inning = ScorecardInning(
        label="India Inning 1",
        batting=[
            bat("Rohit Sharma", 45, 30, fours=5, sixes=1, sr=150.0, kind=DismissalKind.CAUGHT, bowler="Cummins"),
            bat("Virat Kohli", 12, 15, fours=1, sr=80.0, kind=DismissalKind.LBW, bowler="Cummins"),
            bat("Shubman Gill", 0, 2, kind=DismissalKind.BOWLED, bowler="Cummins"),
        ],
        bowling=[bowl("Pat Cummins", balls=24, wickets=3, runs=24, maidens=1, eco=6.0)],
        fielding=[FieldingEvent(kind=FieldingKind.CATCH, player_name="Head")],
    )
    return ProviderScorecard(provider=ProviderName.CRICAPI, innings=[inning])


def test_score_scorecard_exact_totals(scorecard: ProviderScorecard, roster) -> None:
    result = score_scorecard(scorecard, RosterIndex(roster))
    totals = {pid: b.total for pid, b in result.points.items()}
    assert totals == {
        "p1": 45 + 5 + 2 + 4 + 4,        # Rohit: 30 milestone, SR 150
        "p3": 12 + 1,                    # Kohli: SR 80 earns nothing
        "p2": -2,                        # Gill: duck
        "a3": 90 + 12 + 4 + 2 + 2 * 8,   # Cummins: 3w, maiden, eco 6, lbw + bowled
        "a1": 8,                         # Head: catch
    }
    assert result.points["a3"].bowling == 124
    assert result.unmatched == []


def test_score_scorecard_is_idempotent(scorecard: ProviderScorecard, roster) -> None:
    index = RosterIndex(roster)
    assert score_scorecard(scorecard, index).points == score_scorecard(scorecard, index).points


def test_unmatched_names_score_nothing(roster) -> None:
    scorecard = ProviderScorecard(
        provider=ProviderName.CRICAPI,
        innings=[ScorecardInning(label="1", batting=[bat("Mitchell Starc", 20, 10, sr=200.0)])],
    )
    result = score_scorecard(scorecard, RosterIndex(roster))
    assert result.points == {}
    assert result.unmatched == ["Mitchell Starc"]


def test_repeated_row_counts_once(roster) -> None:
    scorecard = ProviderScorecard(
        provider=ProviderName.CRICAPI,
        innings=[
            ScorecardInning(
                label="1",
                batting=[bat("Virat Kohli", 5, 4), bat("Virat Kohli", 9, 6)],
            )
        ],
    )
    result = score_scorecard(scorecard, RosterIndex(roster))
    assert result.points["p3"] == PointsBreakdown(batting=9)


def test_shared_run_out_credits_both_fielders(roster) -> None:
    scorecard = ProviderScorecard(
        provider=ProviderName.CRICAPI,
        innings=[
            ScorecardInning(
                label="1",
                fielding=[
                    FieldingEvent(kind=FieldingKind.RUN_OUT_THROWER, player_name="Ravindra Jadeja"),
                    FieldingEvent(kind=FieldingKind.RUN_OUT_RECEIVER, player_name="KL Rahul"),
                ],
            )
        ],
    )
    result = score_scorecard(scorecard, RosterIndex(roster))
    assert result.points["p7"].fielding == 6
    assert result.points["p5"].fielding == 6
