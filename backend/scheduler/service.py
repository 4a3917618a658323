"""
Reconciliation scheduler.

One cooperative tick every scheduler_tick_interval_s. Each tick loads all
matches and, per match, runs the loops whose window and debounce both say so,
always in the same order: squad import, status refresh, Playing XI
resolution, lineup verification, scorecard sync. Different matches run
concurrently up to max_concurrent_matches; the steps of one match never
interleave.
"""
from __future__ import annotations

import asyncio
import signal
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from shared.config import Settings, get_settings
from shared.models.domain import Match
from shared.models.enums import ProviderName
from shared.repository import MatchRepository, SqlAlchemyMatchRepository
from shared.utils.database import DatabaseManager
from shared.utils.health_server import start_health_server
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import (
    ELIGIBLE_MATCHES,
    SCHEDULER_JOB_FAILURES,
    SCHEDULER_JOB_SECONDS,
    SCHEDULER_TICKS,
    SERVICE_INFO,
    atrack_latency,
    start_metrics_server,
)

from ingest.providers.api_cricket import ApiCricketProvider
from ingest.providers.cricapi import CricApiProvider
from ingest.providers.cricbuzz import CricbuzzProvider
from ingest.providers.registry import CredentialRouter, ProviderRegistry
from ingest.squad import SquadImporter
from lineup.corroboration import LineupCorroborator
from lineup.resolver import PlayingXIResolver
from lineup.strategies import AnnouncedElevens, RegionalLineup, ScorecardAppearances
from scheduler.engine.polling import (
    Debouncer,
    Window,
    scorecard_window,
    squad_window,
    status_window,
    verify_window,
    xi_window,
)
from scheduler.status import StatusRefresher
from scheduler.sync import ScorecardSync, utcnow
from scoring.aggregator import TeamPointsAggregator

logger = get_logger(__name__)


@dataclass
class Loop:
    """One periodic job: which matches it wants, how often, and what to run."""
    name: str
    window: Window
    debouncer: Debouncer
    job: Callable[[Match], Awaitable[Any]]


class ReconciliationScheduler:
    def __init__(
        self,
        repository: MatchRepository,
        loops: list[Loop],
        settings: Settings | None = None,
        now_fn: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = repository
        self._loops = loops
        self._settings = settings or get_settings()
        self._now = now_fn
        self._semaphore = asyncio.Semaphore(self._settings.max_concurrent_matches)
        self._shutdown = asyncio.Event()
        self.last_tick_at: Optional[datetime] = None

    @property
    def loops(self) -> list[Loop]:
        return self._loops

    async def _run_match(self, match: Match, now: datetime, counts: dict[str, int]) -> None:
        async with self._semaphore:
            for loop in self._loops:
                if not loop.window(match, now) or not loop.debouncer.due(match.id, now):
                    continue
                # Marked before running so a failing job is retried on the next interval, not every tick
                loop.debouncer.mark(match.id, now)
                counts[loop.name] += 1
                try:
                    async with atrack_latency(SCHEDULER_JOB_SECONDS, loop=loop.name):
                        result = await loop.job(match)
                except Exception as exc:
                    SCHEDULER_JOB_FAILURES.labels(loop=loop.name).inc()
                    logger.error(
                        f"{loop.name}_job_failed",
                        match_id=match.id,
                        match=match.label,
                        error=str(exc),
                        exc_info=True,
                    )
                    continue
                # A status change earlier in the pass decides the windows of the later loops
                if isinstance(result, Match):
                    match = result

    async def tick(self) -> dict[str, int]:
        """Run one pass over every match. Returns how many jobs each loop ran."""
        now = self._now()
        matches = await self._repo.get_all_matches()
        counts = {loop.name: 0 for loop in self._loops}
        for loop in self._loops:
            # Ledgers only hold matches the loop can still run for
            loop.debouncer.retain(m.id for m in matches if loop.window(m, now))
            SCHEDULER_TICKS.labels(loop=loop.name).inc()

        await asyncio.gather(*(self._run_match(m, now, counts) for m in matches))

        for name, n in counts.items():
            ELIGIBLE_MATCHES.labels(loop=name).set(n)
        self.last_tick_at = now
        if any(counts.values()):
            logger.debug("scheduler_tick", matches=len(matches), **counts)
        return counts

    async def run(self) -> None:
        while not self._shutdown.is_set():
            try:
                await self.tick()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.error("scheduler_loop_error", error=str(exc), exc_info=True)
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=self._settings.scheduler_tick_interval_s)
            except asyncio.TimeoutError:
                pass

    def request_shutdown(self) -> None:
        self._shutdown.set()


def build_router(settings: Settings) -> CredentialRouter:
    router = CredentialRouter(cooldown_s=settings.credential_cooldown_s, clock=time.monotonic)
    router.register(ProviderName.CRICAPI, settings.cricapi_keys)
    router.register(ProviderName.CRICBUZZ, [settings.cricbuzz_rapidapi_key])
    router.register(ProviderName.API_CRICKET, [settings.api_cricket_api_key])
    return router


def build_loops(
    repository: MatchRepository,
    registry: ProviderRegistry,
    settings: Settings,
) -> list[Loop]:
    cricapi = registry.get(ProviderName.CRICAPI)
    cricbuzz = registry.get(ProviderName.CRICBUZZ)
    api_cricket = registry.get(ProviderName.API_CRICKET)
    has_key = registry.router.has_credentials
    ordered = registry.ordered(settings.scorecard_provider_order)

    strategies = []
    if cricapi is not None and has_key(ProviderName.CRICAPI):
        strategies += [ScorecardAppearances(cricapi), AnnouncedElevens(cricapi)]
    if api_cricket is not None and has_key(ProviderName.API_CRICKET):
        strategies.append(RegionalLineup(api_cricket, settings.lineup_max_per_side))

    resolver = PlayingXIResolver(repository, strategies, settings)
    sync = ScorecardSync(repository, ordered, TeamPointsAggregator(repository), settings)
    refresher = StatusRefresher(repository, ordered, on_completed=sync.sync)

    loops: list[Loop] = []
    if isinstance(cricapi, CricApiProvider) and has_key(ProviderName.CRICAPI):
        importer = SquadImporter(repository, cricapi)
        loops.append(Loop("squad_import", squad_window(settings), Debouncer(settings.squad_import_interval_s), importer.import_squad))
    loops += [
        Loop("status_refresh", status_window(settings), Debouncer(settings.status_refresh_interval_s), refresher.refresh),
        Loop("playing_xi", xi_window(settings), Debouncer(settings.playing_xi_interval_s), resolver.resolve),
    ]
    if cricbuzz is not None and has_key(ProviderName.CRICBUZZ):
        corroborator = LineupCorroborator(repository, cricbuzz, settings)
        loops.append(Loop("lineup_verify", verify_window(settings), Debouncer(settings.lineup_verify_interval_s), corroborator.verify))
    loops.append(Loop("scorecard_sync", scorecard_window(settings), Debouncer(settings.scorecard_sync_interval_s), sync.sync))
    return loops


async def main() -> None:
    """Reconciliation worker entrypoint."""
    settings = get_settings()
    setup_logging("scheduler")
    start_metrics_server()
    SERVICE_INFO.info({"service": "scheduler", "environment": settings.environment.value})

    db = DatabaseManager(settings)
    await db.connect()
    await db.create_schema()
    repository = SqlAlchemyMatchRepository(db)

    router = build_router(settings)
    registry = ProviderRegistry(
        {
            ProviderName.CRICAPI: CricApiProvider(router, settings),
            ProviderName.CRICBUZZ: CricbuzzProvider(router, settings),
            ProviderName.API_CRICKET: ApiCricketProvider(router, settings),
        },
        router,
    )
    await registry.start()

    service = ReconciliationScheduler(repository, build_loops(repository, registry, settings), settings)
    start_health_server(
        "scheduler",
        lambda: {
            "last_tick_at": service.last_tick_at,
            "database": db.connected,
            "loops": [loop.name for loop in service.loops],
            "credentials": {p.value: router.tier_states(p) for p in ProviderName},
        },
    )

    event_loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        event_loop.add_signal_handler(sig, service.request_shutdown)

    logger.info(
        "scheduler_service_started",
        instance_id=settings.instance_id,
        loops=[entry.name for entry in service.loops],
    )

    try:
        await service.run()
    finally:
        await registry.close()
        await db.disconnect()
        logger.info("scheduler_service_stopped")


def run_main() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run_main()
