"""
Shared fixtures: an in-memory repository, canned provider results, and
factories for matches, players and teams.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Optional
from unittest.mock import AsyncMock

import pytest

from shared.config import Settings
from shared.models.domain import Match, Player, SquadPlayer, TeamDescriptor, UserTeam
from shared.models.enums import FetchOutcome, MatchStatus, PlayerRole, ProviderName
from shared.repository import MATCH_FIELDS, PLAYER_FIELDS, MatchRepository

from ingest.providers.base import ProviderResult

NOW = datetime(2026, 3, 1, 14, 0, tzinfo=timezone.utc)


# ── Factories ───────────────────────────────────────────────────────────

def make_match(match_id: str = "m1", **overrides: Any) -> Match:
    data: dict[str, Any] = dict(
        id=match_id,
        external_id="cric-1",
        series_id="series-1",
        team1=TeamDescriptor(name="India", short="IND"),
        team2=TeamDescriptor(name="Australia", short="AUS"),
        venue="Wankhede Stadium, Mumbai",
        start_time=NOW,
        status=MatchStatus.LIVE,
    )
    data.update(overrides)
    return Match(**data)


def make_player(
    player_id: str,
    name: str,
    team_short: str = "IND",
    external_id: Optional[str] = None,
    **overrides: Any,
) -> Player:
    data: dict[str, Any] = dict(
        id=player_id,
        match_id="m1",
        name=name,
        team="India" if team_short == "IND" else "Australia",
        team_short=team_short,
        role=PlayerRole.BAT,
        external_id=external_id if external_id is not None else f"ext-{player_id}",
    )
    data.update(overrides)
    return Player(**data)


def make_team(team_id: str, player_ids: list[str], captain: str, vice: str, **overrides: Any) -> UserTeam:
    data: dict[str, Any] = dict(
        id=team_id,
        user_id=f"user-{team_id}",
        match_id="m1",
        player_ids=player_ids,
        captain_id=captain,
        vice_captain_id=vice,
    )
    data.update(overrides)
    return UserTeam(**data)


def result(
    provider: ProviderName,
    operation: str,
    payload: Any = None,
    outcome: Optional[FetchOutcome] = None,
) -> ProviderResult:
    if outcome is None:
        outcome = FetchOutcome.OK if payload is not None else FetchOutcome.NO_DATA
    return ProviderResult(provider=provider, operation=operation, outcome=outcome, payload=payload)


# ── Fakes ───────────────────────────────────────────────────────────────

class InMemoryRepository(MatchRepository):
    """MatchRepository over dicts, recording every write in .writes."""

    def __init__(
        self,
        matches: Iterable[Match] = (),
        players: Iterable[Player] = (),
        teams: Iterable[UserTeam] = (),
    ) -> None:
        self.matches = {m.id: m for m in matches}
        self.players = {p.id: p for p in players}
        self.teams = {t.id: t for t in teams}
        self.writes: list[tuple[str, str, dict[str, Any]]] = []

    async def get_match(self, match_id: str) -> Optional[Match]:
        return self.matches.get(match_id)

    async def get_all_matches(self) -> list[Match]:
        return sorted(self.matches.values(), key=lambda m: m.start_time)

    async def update_match(self, match_id: str, **fields: Any) -> None:
        assert set(fields) <= MATCH_FIELDS
        self.matches[match_id] = self.matches[match_id].model_copy(update=fields)
        self.writes.append(("match", match_id, fields))

    async def get_players_for_match(self, match_id: str) -> list[Player]:
        return [p for p in self.players.values() if p.match_id == match_id]

    async def update_player(self, player_id: str, **fields: Any) -> None:
        assert set(fields) <= PLAYER_FIELDS
        self.players[player_id] = self.players[player_id].model_copy(update=fields)
        self.writes.append(("player", player_id, fields))

    async def upsert_players_for_match(self, match_id: str, players: Iterable[SquadPlayer]) -> int:
        known = {p.external_id: p for p in self.players.values() if p.match_id == match_id}
        inserted = 0
        for sp in players:
            if sp.external_id in known:
                continue
            player = Player(
                id=f"{match_id}-{sp.external_id}",
                match_id=match_id,
                name=sp.name,
                team=sp.team,
                team_short=sp.team_short,
                role=sp.role,
                credits=sp.credits,
                external_id=sp.external_id,
            )
            self.players[player.id] = player
            known[sp.external_id] = player
            inserted += 1
        return inserted

    async def mark_playing_xi(self, match_id: str, external_ids: Iterable[str]) -> int:
        ids = set(external_ids)
        marked = 0
        for pid, p in list(self.players.items()):
            if p.match_id != match_id:
                continue
            playing = p.external_id in ids
            marked += playing
            self.players[pid] = p.model_copy(update={"is_playing_xi": playing})
        self.writes.append(("playing_xi", match_id, {"external_ids": sorted(ids)}))
        return marked

    async def get_all_teams_for_match(self, match_id: str) -> list[UserTeam]:
        return [t for t in self.teams.values() if t.match_id == match_id]

    async def update_team_points(self, team_id: str, total_points: int) -> None:
        self.teams[team_id] = self.teams[team_id].model_copy(update={"total_points": total_points})
        self.writes.append(("team", team_id, {"total_points": total_points}))

    def xi(self, match_id: str = "m1") -> set[str]:
        return {p.id for p in self.players.values() if p.match_id == match_id and p.is_playing_xi}


class StubProvider:
    """Adapter stand-in whose operations return canned ProviderResults."""

    def __init__(
        self,
        name: ProviderName,
        scorecard: Any = None,
        lineup: Any = None,
        event: Any = None,
        outcome: Optional[FetchOutcome] = None,
    ) -> None:
        self.name = name
        self.fetch_scorecard = AsyncMock(return_value=result(name, "fetch_scorecard", scorecard, outcome))
        self.fetch_lineup = AsyncMock(return_value=result(name, "fetch_lineup", lineup, outcome))
        self.fetch_match_status = AsyncMock(return_value=result(name, "fetch_match_status", event, outcome))


# ── Fixtures ────────────────────────────────────────────────────────────

@pytest.fixture
def settings() -> Settings:
    return Settings(
        cricapi_api_key="tier1-key-aaaa",
        cricapi_api_key_tier2="tier2-key-bbbb",
        cricbuzz_rapidapi_key="cb-key",
        api_cricket_api_key="ac-key",
        metrics_enabled=False,
    )


@pytest.fixture
def roster() -> list[Player]:
    """Eleven Indian and three Australian players for match m1."""
    names = [
        "Rohit Sharma", "Shubman Gill", "Virat Kohli", "Shreyas Iyer", "KL Rahul",
        "Hardik Pandya", "Ravindra Jadeja", "Axar Patel", "Kuldeep Yadav",
        "Jasprit Bumrah", "Mohammed Siraj",
    ]
    players = [make_player(f"p{i}", n) for i, n in enumerate(names, start=1)]
    players += [
        make_player("a1", "Travis Head", "AUS"),
        make_player("a2", "Steve Smith", "AUS"),
        make_player("a3", "Pat Cummins", "AUS", role=PlayerRole.BOWL),
    ]
    return players
