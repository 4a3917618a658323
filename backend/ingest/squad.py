"""
Roster bootstrap: import the two squads of an upcoming match.

Only matches without any players are imported, so credits set by an
administrator after the first import are never overwritten.
"""
from __future__ import annotations

from shared.models.domain import FixtureRef, Match
from shared.repository import MatchRepository
from shared.utils.logging import get_logger

from ingest.providers.cricapi import CricApiProvider

logger = get_logger(__name__)


class SquadImporter:
    def __init__(self, repository: MatchRepository, provider: CricApiProvider) -> None:
        self._repo = repository
        self._provider = provider

    async def import_squad(self, match: Match) -> int:
        """Returns the number of players inserted."""
        if await self._repo.get_players_for_match(match.id):
            return 0

        result = await self._provider.fetch_squad(FixtureRef.for_match(match))
        if not result.ok:
            logger.info(
                "squad_unavailable",
                match_id=match.id,
                match=match.label,
                outcome=result.outcome.value,
            )
            return 0

        inserted = await self._repo.upsert_players_for_match(match.id, result.payload)
        teams = sorted({p.team_short for p in result.payload})
        logger.info(
            "squad_imported",
            match_id=match.id,
            match=match.label,
            players=inserted,
            teams=teams,
        )
        return inserted
