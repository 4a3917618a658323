"""
Playing XI sources and the "first success wins" combinator.

Each strategy asks one provider for the names of players who are playing and
returns them as LineupEntry values, or None when it has nothing usable.
Strategies never write and never raise for provider trouble; the resolver
decides what counts as usable.
"""
from __future__ import annotations

from typing import Awaitable, Callable, Iterable, Optional, Protocol, TypeVar

from shared.models.domain import FixtureRef, LineupEntry
from shared.utils.logging import get_logger

from ingest.providers.base import BaseProvider

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


async def first_success(
    attempts: Iterable[tuple[str, Callable[[], Awaitable[Optional[T]]]]],
    accept: Callable[[str, T], Optional[R]],
) -> Optional[tuple[str, R]]:
    """
    Run attempts in order until one yields a value that accept() turns into a result.

    Later attempts are never started once one succeeds. Returns (name, result)
    of the winner, or None when every attempt came back empty or was rejected.
    """
    for name, attempt in attempts:
        value = await attempt()
        if value is None:
            continue
        result = accept(name, value)
        if result is not None:
            return name, result
    return None


class LineupStrategy(Protocol):
    name: str

    async def __call__(self, fixture: FixtureRef) -> Optional[list[LineupEntry]]:
        ...


class ScorecardAppearances:
    """Everyone named in any batting, bowling or fielding row. Only works once play has begun."""

    def __init__(self, provider: BaseProvider) -> None:
        self._provider = provider
        self.name = f"{provider.name.value}_scorecard"

    async def __call__(self, fixture: FixtureRef) -> Optional[list[LineupEntry]]:
        result = await self._provider.fetch_scorecard(fixture)
        if not result.ok:
            return None
        return result.payload.appearances() or None


class AnnouncedElevens:
    """Starting elevens as reported by a match-info endpoint."""

    def __init__(self, provider: BaseProvider) -> None:
        self._provider = provider
        self.name = f"{provider.name.value}_match_info"

    async def __call__(self, fixture: FixtureRef) -> Optional[list[LineupEntry]]:
        result = await self._provider.fetch_lineup(fixture)
        if not result.ok:
            return None
        return result.payload.entries or None


class RegionalLineup:
    """
    Starting lineups from the regional provider.

    Before the toss this provider returns the whole squad in the lineup
    fields; more than max_per_side names on either side is not a confirmed
    XI and is discarded.
    """

    def __init__(self, provider: BaseProvider, max_per_side: int = 11) -> None:
        self._provider = provider
        self._max_per_side = max_per_side
        self.name = f"{provider.name.value}_lineup"

    async def __call__(self, fixture: FixtureRef) -> Optional[list[LineupEntry]]:
        result = await self._provider.fetch_lineup(fixture)
        if not result.ok:
            return None
        lineup = result.payload
        if len(lineup.home) > self._max_per_side or len(lineup.away) > self._max_per_side:
            logger.info(
                "lineup_full_squad_discarded",
                provider=self._provider.name.value,
                home=len(lineup.home),
                away=len(lineup.away),
            )
            return None
        return lineup.entries or None
