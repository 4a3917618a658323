"""
Playing XI resolver.

Tries each lineup strategy in priority order and marks the XI from the first
one whose names resolve to enough roster players. A match whose XI an
administrator set by hand is never touched, and a cycle where every source
comes back empty leaves the previous XI in place.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from shared.config import Settings, get_settings
from shared.models.domain import FixtureRef, LineupEntry, Match, Player
from shared.repository import MatchRepository
from shared.utils.logging import get_logger
from shared.utils.metrics import PLAYING_XI_RESOLUTIONS, UNMATCHED_PLAYER_NAMES

from lineup.names import RosterIndex
from lineup.strategies import LineupStrategy, first_success

logger = get_logger(__name__)


@dataclass
class ResolutionOutcome:
    source: Optional[str] = None
    matched: int = 0
    names: list[str] = field(default_factory=list)
    skipped_reason: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.source is not None


def markable(players: Sequence[Player]) -> tuple[list[str], list[str]]:
    """External ids of resolved players, plus names of those that have none and cannot be marked."""
    ids: list[str] = []
    missing: list[str] = []
    for p in players:
        if p.external_id:
            ids.append(p.external_id)
        else:
            missing.append(p.name)
    return ids, missing


class PlayingXIResolver:
    def __init__(
        self,
        repository: MatchRepository,
        strategies: Sequence[LineupStrategy],
        settings: Settings | None = None,
    ) -> None:
        self._repo = repository
        self._strategies = list(strategies)
        self._settings = settings or get_settings()

    @property
    def strategy_names(self) -> list[str]:
        return [s.name for s in self._strategies]

    async def resolve(self, match: Match) -> ResolutionOutcome:
        if match.playing_xi_manual:
            logger.debug("playing_xi_manual_skip", match_id=match.id)
            return ResolutionOutcome(skipped_reason="manual_override")

        roster = await self._repo.get_players_for_match(match.id)
        if not roster:
            logger.info("playing_xi_empty_roster", match_id=match.id, match=match.label)
            return ResolutionOutcome(skipped_reason="empty_roster")

        index = RosterIndex(roster)
        fixture = FixtureRef.for_match(match)
        min_matched = self._settings.playing_xi_min_matched

        def accept(source: str, entries: list[LineupEntry]) -> Optional[list[Player]]:
            players, unmatched = index.resolve_all((e.player_name, e.provider_player_id) for e in entries)
            if unmatched:
                UNMATCHED_PLAYER_NAMES.labels(provider=source.split("_")[0]).inc(len(unmatched))
                logger.info(
                    "playing_xi_unmatched_names",
                    match_id=match.id,
                    source=source,
                    names=unmatched,
                )
            ids, missing = markable(players)
            if missing:
                logger.warning(
                    "playing_xi_players_without_external_id",
                    match_id=match.id,
                    names=missing,
                )
            if len(ids) < min_matched:
                PLAYING_XI_RESOLUTIONS.labels(source=source, result="insufficient").inc()
                logger.info(
                    "playing_xi_source_insufficient",
                    match_id=match.id,
                    source=source,
                    retrieved=len(entries),
                    matched=len(ids),
                )
                return None
            return [p for p in players if p.external_id]

        winner = await first_success(
            ((s.name, lambda s=s: s(fixture)) for s in self._strategies),
            accept,
        )
        if winner is None:
            PLAYING_XI_RESOLUTIONS.labels(source="none", result="unresolved").inc()
            logger.info("playing_xi_unresolved", match_id=match.id, match=match.label)
            return ResolutionOutcome(skipped_reason="no_source")

        source, players = winner
        marked = await self._repo.mark_playing_xi(match.id, [p.external_id for p in players])
        PLAYING_XI_RESOLUTIONS.labels(source=source, result="resolved").inc()
        logger.info(
            "playing_xi_marked",
            match_id=match.id,
            match=match.label,
            source=source,
            matched=len(players),
            marked=marked,
        )
        return ResolutionOutcome(
            source=source,
            matched=len(players),
            names=[p.name for p in players],
        )
