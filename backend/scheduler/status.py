"""
Match status refresh.

Maps a provider's live-state hints onto the match lifecycle. Status only
moves forward (upcoming and delayed may swap while play has not started);
the status note is refreshed whatever happens to the status. An upcoming
match past its start time is promoted to live.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Sequence

from shared.models.domain import FixtureRef, Match, ProviderEvent
from shared.models.enums import MatchStatus
from shared.repository import MatchRepository
from shared.utils.logging import get_logger

from ingest.normalization.normalizer import determine_match_status
from ingest.providers.base import BaseProvider
from lineup.strategies import first_success
from scheduler.sync import utcnow

logger = get_logger(__name__)


class StatusRefresher:
    def __init__(
        self,
        repository: MatchRepository,
        providers: Sequence[BaseProvider],
        on_completed: Optional[Callable[[Match], Awaitable[Any]]] = None,
        now_fn: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = repository
        self._providers = list(providers)
        # Completed matches leave the scorecard window, so the final scorecard is applied here
        self._on_completed = on_completed
        self._now = now_fn

    def _past_start(self, match: Match) -> bool:
        return match.status == MatchStatus.UPCOMING and match.start_time <= self._now()

    async def refresh(self, match: Match) -> Match:
        """Returns the match as it stands after the refresh."""
        fixture = FixtureRef.for_match(match)

        async def attempt(provider: BaseProvider):
            result = await provider.fetch_match_status(fixture)
            return result.payload if result.ok else None

        found = await first_success(
            ((p.name.value, lambda p=p: attempt(p)) for p in self._providers),
            lambda _name, event: event,
        )
        if found is None:
            if self._past_start(match):
                return await self._write(match, {"status": MatchStatus.LIVE}, "start_time")
            return match

        source, event = found
        return await self.apply(match, event, source)

    async def apply(self, match: Match, event: ProviderEvent, source: str = "") -> Match:
        status, note = determine_match_status(event.started, event.ended, event.status_text, event.has_score)
        # Past its start time the match is in play whatever the provider still says
        if status == MatchStatus.UPCOMING and self._past_start(match):
            status = MatchStatus.LIVE
        updates: dict[str, Any] = {}

        if status != match.status:
            if match.status.can_transition_to(status):
                updates["status"] = status
            else:
                logger.debug(
                    "status_transition_rejected",
                    match_id=match.id,
                    current=match.status.value,
                    proposed=status.value,
                )
        if note and note != match.status_note:
            updates["status_note"] = note

        if not updates:
            return match
        return await self._write(match, updates, source)

    async def _write(self, match: Match, updates: dict[str, Any], source: str) -> Match:
        await self._repo.update_match(match.id, **updates)
        logger.info(
            "match_status_refreshed",
            match_id=match.id,
            match=match.label,
            provider=source,
            old=match.status.value,
            new=updates.get("status", match.status).value,
            note=updates.get("status_note"),
        )
        updated = match.model_copy(update=updates)
        if updates.get("status") == MatchStatus.COMPLETED and self._on_completed is not None:
            await self._on_completed(updated)
        return updated
