"""
Unit tests for team total recomputation.

Run: pytest backend/tests/test_team_aggregator.py -v
"""
from __future__ import annotations

import pytest

from scoring.aggregator import PlayerLookup, TeamPointsAggregator, compute_team_total, round_half_up

from conftest import InMemoryRepository, make_team

ELEVEN = [f"p{i}" for i in range(1, 12)]


def with_points(roster, points: dict[str, int]):
    return [p.model_copy(update={"points": points.get(p.id, 10)}) for p in roster]


@pytest.mark.parametrize("value, expected", [(10.5, 11), (-4.5, -4), (7.4, 7), (-7.6, -8), (0.0, 0)])
def test_round_half_up(value: float, expected: int) -> None:
    assert round_half_up(value) == expected


def test_captain_and_vice_captain_multipliers(roster) -> None:
    players = with_points(roster, {"p1": 61, "p2": 7})
    team = make_team("t1", ELEVEN, captain="p1", vice="p2")
    result = compute_team_total(team, PlayerLookup(players))
    # 61 x 2 + round(7 x 1.5) + 9 x 10
    assert result.total == 122 + 11 + 90
    assert result.orphaned == []


def test_negative_vice_captain_rounds_toward_positive(roster) -> None:
    players = with_points(roster, {"p2": -3})
    team = make_team("t1", ELEVEN, captain="p1", vice="p2")
    # p1 20, p2 round(-4.5) = -4, nine others 10 each
    assert compute_team_total(team, PlayerLookup(players)).total == 20 - 4 + 90


def test_missing_player_counts_zero_and_is_reported(roster) -> None:
    players = with_points(roster, {})
    ids = ELEVEN[:10] + ["gone"]
    team = make_team("t1", ids, captain="p1", vice="p2")
    result = compute_team_total(team, PlayerLookup(players))
    assert result.total == 20 + 15 + 8 * 10
    assert result.orphaned == ["gone"]


def test_team_may_reference_players_by_external_id(roster) -> None:
    players = with_points(roster, {"p3": 25})
    ids = ["ext-p3" if pid == "p3" else pid for pid in ELEVEN]
    team = make_team("t1", ids, captain="ext-p3", vice="p2")
    assert compute_team_total(team, PlayerLookup(players)).total == 50 + 15 + 9 * 10


@pytest.mark.asyncio
async def test_recompute_writes_only_changed_totals(roster) -> None:
    players = with_points(roster, {})
    repo = InMemoryRepository(
        players=players,
        teams=[
            make_team("t1", ELEVEN, captain="p1", vice="p2"),
            make_team("t2", ELEVEN, captain="p3", vice="p4", total_points=20 + 15 + 90),
        ],
    )
    aggregator = TeamPointsAggregator(repo)

    assert await aggregator.recompute("m1") == 1
    assert repo.writes == [("team", "t1", {"total_points": 125})]

    repo.writes.clear()
    assert await aggregator.recompute("m1") == 0
    assert repo.writes == []


@pytest.mark.asyncio
async def test_recompute_uses_supplied_players(roster) -> None:
    repo = InMemoryRepository(players=roster, teams=[make_team("t1", ELEVEN, captain="p1", vice="p2")])
    aggregator = TeamPointsAggregator(repo)
    fresh = with_points(roster, {"p1": 0})
    assert await aggregator.recompute("m1", players=fresh) == 1
    assert repo.teams["t1"].total_points == 0 + 15 + 90
