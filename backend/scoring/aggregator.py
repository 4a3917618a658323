"""
Team points aggregator.

A user team's total is always recomputed from the current player points,
never adjusted incrementally, and written only when it changed.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional

from shared.models.domain import Player, UserTeam
from shared.repository import MatchRepository
from shared.utils.logging import get_logger
from shared.utils.metrics import ORPHANED_TEAM_PLAYERS, TEAM_TOTAL_WRITES

from scoring import rules

logger = get_logger(__name__)


def multiplier_for(team: UserTeam, team_player_id: str) -> float:
    if team_player_id == team.captain_id:
        return rules.CAPTAIN_MULTIPLIER
    if team_player_id == team.vice_captain_id:
        return rules.VICE_CAPTAIN_MULTIPLIER
    return 1.0


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


@dataclass
class TeamTotal:
    total: int
    orphaned: list[str]


class PlayerLookup:
    """Finds a team's player by row id, falling back to the provider external id."""

    def __init__(self, players: Iterable[Player]) -> None:
        players = list(players)
        self._by_id = {p.id: p for p in players}
        self._by_external = {p.external_id: p for p in players if p.external_id}

    def get(self, team_player_id: str) -> Optional[Player]:
        return self._by_id.get(team_player_id) or self._by_external.get(team_player_id)


def compute_team_total(team: UserTeam, lookup: PlayerLookup) -> TeamTotal:
    total = 0
    orphaned: list[str] = []
    for pid in team.player_ids:
        player = lookup.get(pid)
        if player is None:
            orphaned.append(pid)
            continue
        total += round_half_up(player.points * multiplier_for(team, pid))
    return TeamTotal(total=total, orphaned=orphaned)


class TeamPointsAggregator:
    def __init__(self, repository: MatchRepository) -> None:
        self._repo = repository

    async def recompute(self, match_id: str, players: Optional[list[Player]] = None) -> int:
        """Recompute every team of the match. Returns how many totals were written."""
        if players is None:
            players = await self._repo.get_players_for_match(match_id)
        lookup = PlayerLookup(players)
        written = 0

        for team in await self._repo.get_all_teams_for_match(match_id):
            result = compute_team_total(team, lookup)
            if result.orphaned:
                ORPHANED_TEAM_PLAYERS.inc(len(result.orphaned))
                logger.warning(
                    "team_orphaned_players",
                    match_id=match_id,
                    team_id=team.id,
                    player_ids=result.orphaned,
                )
            if result.total == team.total_points:
                continue
            await self._repo.update_team_points(team.id, result.total)
            TEAM_TOTAL_WRITES.inc()
            written += 1
            logger.debug(
                "team_total_updated",
                team_id=team.id,
                old=team.total_points,
                new=result.total,
            )

        if written:
            logger.info("team_totals_recomputed", match_id=match_id, written=written)
        return written
