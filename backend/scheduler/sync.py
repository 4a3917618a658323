"""
Scorecard and points sync for one match.

fetch (first provider with a usable scorecard) → stale check → score →
write changed player points → recompute team totals → stamp last_sync_at.
Every step is idempotent: running it twice on the same scorecard writes
nothing the second time.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from shared.config import Settings, get_settings
from shared.models.domain import FixtureRef, Match, Player, ProviderScorecard
from shared.models.enums import MatchStatus
from shared.repository import MatchRepository
from shared.utils.logging import get_logger
from shared.utils.metrics import PLAYER_POINT_WRITES, STALE_SCORECARDS, UNMATCHED_PLAYER_NAMES

from ingest.providers.base import BaseProvider
from lineup.names import RosterIndex
from lineup.strategies import first_success
from scoring.aggregator import TeamPointsAggregator
from scoring.engine import ScoringResult, score_scorecard

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SyncReport:
    source: Optional[str] = None
    players_written: int = 0
    teams_written: int = 0
    unmatched: list[str] = field(default_factory=list)
    stale: bool = False
    completed: bool = False


def progress_of(scorecard: ProviderScorecard) -> tuple[int, int]:
    """(innings with rows, legal balls bowled): how much play a scorecard covers."""
    return sum(1 for inn in scorecard.innings if not inn.is_empty), scorecard.legal_balls


def next_points(player: Player, result: ScoringResult, xi_bonus: int) -> Optional[int]:
    """
    Points a player should hold after this scorecard, or None to leave them alone.

    Players named in the scorecard get engine points plus the announced-XI
    bonus when they are in the XI. An XI player the scorecard has not reached
    yet (still to bat or bowl) holds just the bonus.
    """
    bonus = xi_bonus if player.is_playing_xi else 0
    breakdown = result.points.get(player.id)
    if breakdown is not None:
        return breakdown.total + bonus
    if player.is_playing_xi and player.points == 0:
        return bonus
    return None


class ScorecardSync:
    def __init__(
        self,
        repository: MatchRepository,
        providers: Sequence[BaseProvider],
        aggregator: TeamPointsAggregator,
        settings: Settings | None = None,
        now_fn: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = repository
        self._providers = list(providers)
        self._aggregator = aggregator
        self._settings = settings or get_settings()
        self._now = now_fn
        self._high_water: dict[str, tuple[int, int]] = {}

    async def _fetch(self, match: Match) -> Optional[tuple[str, ProviderScorecard]]:
        fixture = FixtureRef.for_match(match)

        async def attempt(provider: BaseProvider) -> Optional[ProviderScorecard]:
            result = await provider.fetch_scorecard(fixture)
            return result.payload if result.ok else None

        return await first_success(
            ((p.name.value, lambda p=p: attempt(p)) for p in self._providers),
            lambda _name, sc: sc if sc.has_rows else None,
        )

    def _is_stale(self, match_id: str, source: str, scorecard: ProviderScorecard) -> bool:
        innings, balls = progress_of(scorecard)
        prev = self._high_water.get(match_id)
        if prev is not None and balls < prev[1] and innings <= prev[0]:
            STALE_SCORECARDS.labels(provider=source).inc()
            logger.info(
                "scorecard_stale_skipped",
                match_id=match_id,
                provider=source,
                balls=balls,
                high_water_balls=prev[1],
            )
            return True
        self._high_water[match_id] = (innings, balls)
        return False

    def forget(self, match_id: str) -> None:
        self._high_water.pop(match_id, None)

    async def sync(self, match: Match) -> SyncReport:
        fetched = await self._fetch(match)
        if fetched is None:
            logger.info("scorecard_unavailable", match_id=match.id, match=match.label)
            return SyncReport()

        source, scorecard = fetched
        if self._is_stale(match.id, source, scorecard):
            return SyncReport(source=source, stale=True)

        players = await self._repo.get_players_for_match(match.id)
        result = score_scorecard(scorecard, RosterIndex(players))
        if result.unmatched:
            UNMATCHED_PLAYER_NAMES.labels(provider=source).inc(len(result.unmatched))
            logger.info(
                "scorecard_unmatched_names",
                match_id=match.id,
                provider=source,
                names=result.unmatched,
            )

        report = SyncReport(source=source, unmatched=result.unmatched)
        updated: list[Player] = []
        for player in players:
            points = next_points(player, result, self._settings.announced_xi_bonus)
            if points is None or points == player.points:
                updated.append(player)
                continue
            await self._repo.update_player(player.id, points=points)
            PLAYER_POINT_WRITES.inc()
            report.players_written += 1
            updated.append(player.model_copy(update={"points": points}))

        report.teams_written = await self._aggregator.recompute(match.id, updated)

        fields: dict = {"last_sync_at": self._now()}
        if scorecard.ended and match.status != MatchStatus.COMPLETED:
            if match.status.can_transition_to(MatchStatus.COMPLETED):
                fields["status"] = MatchStatus.COMPLETED
                if scorecard.status_text:
                    fields["status_note"] = scorecard.status_text
                report.completed = True
        await self._repo.update_match(match.id, **fields)
        if report.completed or match.status == MatchStatus.COMPLETED:
            self.forget(match.id)

        logger.info(
            "scorecard_synced",
            match_id=match.id,
            match=match.label,
            provider=source,
            players_written=report.players_written,
            teams_written=report.teams_written,
            unmatched=len(report.unmatched),
            completed=report.completed,
        )
        return report
