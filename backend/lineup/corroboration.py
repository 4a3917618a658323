"""
Lineup verification against a second provider.

Runs close to and during play, after the primary resolver has had its turn.
The secondary provider may fill an empty XI or extend the current one, but it
never shrinks or replaces an XI it disagrees with; disagreements are logged
for an administrator to look at.
"""
from __future__ import annotations

from enum import Enum

from shared.config import Settings, get_settings
from shared.models.domain import FixtureRef, Match
from shared.repository import MatchRepository
from shared.utils.logging import get_logger
from shared.utils.metrics import LINEUP_CORROBORATIONS, UNMATCHED_PLAYER_NAMES

from ingest.providers.base import BaseProvider
from lineup.names import RosterIndex
from lineup.resolver import markable

logger = get_logger(__name__)


class Corroboration(str, Enum):
    SKIPPED = "skipped"
    UNAVAILABLE = "unavailable"
    INSUFFICIENT = "insufficient"
    CONFIRMED = "confirmed"
    FILLED = "filled"
    EXTENDED = "extended"
    MISMATCH = "mismatch"


class LineupCorroborator:
    def __init__(
        self,
        repository: MatchRepository,
        provider: BaseProvider,
        settings: Settings | None = None,
    ) -> None:
        self._repo = repository
        self._provider = provider
        self._settings = settings or get_settings()

    async def verify(self, match: Match) -> Corroboration:
        result = await self._verify(match)
        LINEUP_CORROBORATIONS.labels(result=result.value).inc()
        return result

    async def _verify(self, match: Match) -> Corroboration:
        if match.playing_xi_manual:
            return Corroboration.SKIPPED

        fetched = await self._provider.fetch_lineup(FixtureRef.for_match(match))
        if not fetched.ok:
            logger.debug(
                "lineup_corroboration_no_data",
                match_id=match.id,
                provider=self._provider.name.value,
                outcome=fetched.outcome.value,
            )
            return Corroboration.UNAVAILABLE

        roster = await self._repo.get_players_for_match(match.id)
        index = RosterIndex(roster)
        players, unmatched = index.resolve_all(
            (e.player_name, e.provider_player_id) for e in fetched.payload.entries
        )
        if unmatched:
            UNMATCHED_PLAYER_NAMES.labels(provider=self._provider.name.value).inc(len(unmatched))
        found, _ = markable(players)
        found_set = set(found)

        if len(found_set) < self._settings.playing_xi_min_matched:
            return Corroboration.INSUFFICIENT
        if len(found_set) > 2 * self._settings.lineup_max_per_side:
            logger.info("lineup_corroboration_oversized", match_id=match.id, matched=len(found_set))
            return Corroboration.INSUFFICIENT

        current = {p.external_id for p in roster if p.is_playing_xi and p.external_id}
        if found_set == current:
            return Corroboration.CONFIRMED

        if not current or found_set > current:
            marked = await self._repo.mark_playing_xi(match.id, sorted(found_set))
            outcome = Corroboration.FILLED if not current else Corroboration.EXTENDED
            logger.info(
                "lineup_corroboration_marked",
                match_id=match.id,
                match=match.label,
                provider=self._provider.name.value,
                result=outcome.value,
                marked=marked,
            )
            return outcome

        by_external = {p.external_id: p.name for p in roster if p.external_id}
        logger.warning(
            "lineup_corroboration_mismatch",
            match_id=match.id,
            match=match.label,
            provider=self._provider.name.value,
            only_secondary=sorted(by_external.get(x, x) for x in found_set - current),
            only_current=sorted(by_external.get(x, x) for x in current - found_set),
        )
        return Corroboration.MISMATCH
